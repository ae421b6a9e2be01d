"""Perch — a small request-routing engine for ASGI applications.

Maps an incoming request (method + path) to a handler or to a mounted
application, extracts named path segments, and generates paths and URLs
back from named routes.

Basic usage::

    from perch import App

    app = App()

    @app.get("/user/:id/settings")
    def settings(id: int):
        return f"settings for {id}"

    app.mount("/admin", admin_app)

    app.path_for("user_settings_path", 42)  # "/user/42/settings"
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ArityMismatch",
    "ConfigurationError",
    "HTTPError",
    "Middleware",
    "Next",
    "NotFound",
    "PerchError",
    "Redirect",
    "Request",
    "Response",
    "Route",
    "RouteTable",
    "UnknownRoute",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "App":
        from perch.app import App

        return App

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name in ("Route", "RouteTable"):
        from perch import routing as _routing

        return getattr(_routing, name)

    if name in ("Middleware", "Next"):
        from perch.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in (
        "ArityMismatch",
        "ConfigurationError",
        "HTTPError",
        "NotFound",
        "PerchError",
        "UnknownRoute",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
