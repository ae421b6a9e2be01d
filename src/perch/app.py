"""Perch application class.

Mutable during setup (route registration, mounts, middleware, error
handlers). Frozen at runtime when ``__call__()`` is first invoked.
"""

from __future__ import annotations

import inspect
import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeAlias

from perch._internal.asgi import Receive, Scope, Send
from perch.config import AppConfig
from perch.middleware.protocol import Middleware
from perch.routing.route import Route
from perch.routing.table import RouteTable
from perch.server.handler import handle_request

logger = logging.getLogger("perch.app")

# Called with the arguments its signature asks for: request, params,
# options, or path params by name.
Handler: TypeAlias = Callable[..., Any]

# Called with (), (request) or (request, exc), whichever it accepts.
ErrorHandler: TypeAlias = Callable[..., Any]


class App:
    """The perch application.

    Routes are matched in registration order within each HTTP method;
    the first route whose pattern accepts the path wins. Mounted
    applications are tried, in mount order, only when no route matches.

    Usage::

        app = App()

        @app.get("/")
        def index():
            return "Hello"

        @app.get("/user/:id")
        def show_user(id: int):
            return f"user {id}"

        app.get("/hola", lambda: "Hola")
        app.mount("/admin", admin_app)

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check so exactly one
        thread freezes the route table, even when several ASGI workers
        receive their first request concurrently.
    """

    __slots__ = (
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_middleware_list",
        "_routes",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
    )

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config: AppConfig = config or AppConfig()
        self._routes = RouteTable()
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

        # Set during _freeze()
        self._middleware: tuple[Callable[..., Any], ...] = ()

    # -- Route registration --

    def route(
        self,
        method: str,
        path: str,
        handler: Handler | None = None,
        **options: Any,
    ) -> Any:
        """Register a route for ``method``.

        With a handler, registers it directly and returns the ``Route``.
        Without one, returns a decorator::

            app.route("GET", "/hola", lambda: "Hola")

            @app.route("POST", "/user")
            def create_user(): ...

        Keyword arguments become the route's options, passed through
        untouched to handlers that ask for ``options``.
        """
        self._check_not_frozen()
        if handler is not None:
            return self._routes.add_route(method, path, handler, options)

        def decorator(func: Handler) -> Handler:
            self._check_not_frozen()
            self._routes.add_route(method, path, func, options)
            return func

        return decorator

    def get(self, path: str, handler: Handler | None = None, **options: Any) -> Any:
        """Register a GET route (decorator or direct)."""
        return self.route("GET", path, handler, **options)

    def post(self, path: str, handler: Handler | None = None, **options: Any) -> Any:
        """Register a POST route (decorator or direct)."""
        return self.route("POST", path, handler, **options)

    def put(self, path: str, handler: Handler | None = None, **options: Any) -> Any:
        """Register a PUT route (decorator or direct)."""
        return self.route("PUT", path, handler, **options)

    def delete(self, path: str, handler: Handler | None = None, **options: Any) -> Any:
        """Register a DELETE route (decorator or direct)."""
        return self.route("DELETE", path, handler, **options)

    def head(self, path: str, handler: Handler | None = None, **options: Any) -> Any:
        """Register a HEAD route (decorator or direct)."""
        return self.route("HEAD", path, handler, **options)

    def link(self, path: str, handler: Handler | None = None, **options: Any) -> Any:
        """Register a LINK route (decorator or direct)."""
        return self.route("LINK", path, handler, **options)

    def unlink(self, path: str, handler: Handler | None = None, **options: Any) -> Any:
        """Register an UNLINK route (decorator or direct)."""
        return self.route("UNLINK", path, handler, **options)

    def mount(self, prefix: str, app: Any, **options: Any) -> Route:
        """Delegate every request under ``prefix`` to another ASGI app.

        The mounted app sees the path with ``prefix`` removed (``/`` when
        nothing remains) and the full path under ``perch.original_path``
        in its scope. A bare ``RouteTable`` is matched in-process instead.
        Mounting another perch ``App`` or ``RouteTable`` also lists its
        routes in ``app.routes`` iteration, prefixed.
        """
        self._check_not_frozen()
        return self._routes.mount(prefix, app, options)

    # -- Static files --

    def static(self, url: str, directory: str | Path) -> None:
        """Serve files under ``directory`` at ``url``.

        Tries the exact file, then each of ``config.static_try_suffixes``
        (``/about`` -> ``about.html`` -> ``about/index.html``) before
        falling through to the routes.
        """
        from perch.middleware.static import StaticFiles

        self.add_middleware(
            StaticFiles(directory, prefix=url, try_suffixes=self.config.static_try_suffixes)
        )

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator.

        Keyed by status code (``404``, ``500``) or exception type::

            @app.error(404)
            def missing(request):
                return 404, {}, f"nothing at {request.path}"
        """

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline. First added runs outermost."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    use = add_middleware

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Introspection and reverse routing --

    @property
    def routes(self) -> RouteTable:
        """The application's route table.

        Iterating it yields every route, with mounted perch apps flattened
        in under their mount prefix.
        """
        return self._routes

    def path_for(self, key: str, *values: object) -> str:
        """Generate a path from a route key::

        app.path_for("user_settings_path", 42)  # -> "/user/42/settings"
        """
        return self._routes.path_for(key, *values)

    def url_for(self, root: str, key: str, *values: object) -> str:
        """Generate an absolute URL under ``root`` from a route key."""
        return self._routes.url_for(root, key, *values)

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles lifespan scopes directly, then delegates HTTP scopes to
        the request handler pipeline.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()

        await handle_request(
            scope,
            receive,
            send,
            routes=self._routes,
            middleware=self._middleware,
            error_handlers=self._error_handlers,
            config=self.config,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before the first HTTP request), then
        runs registered startup/shutdown hooks.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    for hook in self._startup_hooks:
                        result = hook()
                        if inspect.isawaitable(result):
                            await result
                except Exception as exc:
                    logger.exception("startup hook failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    result = hook()
                    if inspect.isawaitable(result):
                        await result
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Freeze the route table and capture middleware.

        MUST only be called while holding _freeze_lock.
        """
        self._routes.freeze()
        self._middleware = tuple(self._middleware_list)
        self._frozen = True
        logger.debug(
            "app frozen: %d routes, %d middleware", len(self._routes), len(self._middleware)
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, mounts, and middleware before the first request."
            )
            raise RuntimeError(msg)
