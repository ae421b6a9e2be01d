"""Perch exception hierarchy.

Shared across the route table, app, dispatcher, and middleware so every
module raises and catches the same types.

``NoMatch`` is deliberately absent: a request that matches nothing is a
normal outcome of ``RouteTable.match`` and is returned, not raised.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when route registration or app configuration is invalid.

    Typically raised at import time, while routes are being declared.
    """


class ArityMismatch(PerchError, ValueError):  # noqa: N818
    """Wrong number of values supplied when generating a path from a route.

    Carries the template plus the expected and given counts so callers can
    report which route was misused.
    """

    def __init__(self, path: str, expected: int, given: int) -> None:
        self.path = path
        self.expected = expected
        self.given = given
        super().__init__(
            f"wrong number of arguments for {path!r}: expected {expected}, got {given}"
        )


class UnknownRoute(PerchError, KeyError):  # noqa: N818
    """No route is registered under the requested reverse-routing key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(key)

    def __str__(self) -> str:
        return f"no route registered as {self.key!r}"


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """An error that maps directly to an HTTP status code.

    Raised by the dispatcher, middleware, or handlers. The ASGI handler
    catches these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """404 — no route or mount matched the request path."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)
