"""Static file serving middleware.

Serves files from a directory for matching URL prefixes. For each
request the exact file is tried first, then the same path with each
configured suffix appended, so ``/about`` can be answered by
``about.html`` or ``about/index.html``.

Falls through to the next handler (the route table) for non-matching
paths and for paths with no file behind them.
"""

import mimetypes
from pathlib import Path

import anyio

from perch.http.request import Request
from perch.http.response import Response
from perch.middleware.protocol import Next


class StaticFiles:
    """Middleware that serves static files from a directory.

    Security: resolves symlinks and verifies the final path is within
    the configured directory to prevent path traversal.

    Usage::

        app.add_middleware(StaticFiles("./public", prefix="/"))

        # or, equivalently
        app.static("/", "./public")
    """

    __slots__ = ("_cache_control", "_directory", "_prefix", "_try_suffixes")

    def __init__(
        self,
        directory: str | Path,
        prefix: str = "/static",
        *,
        try_suffixes: tuple[str, ...] = (".html", "/index.html"),
        cache_control: str = "public, max-age=3600",
    ) -> None:
        self._directory = Path(directory).resolve()
        self._try_suffixes = try_suffixes
        self._cache_control = cache_control

        # Root prefix "/" normalizes to "" (every path is a candidate)
        stripped = "/" + prefix.strip("/")
        self._prefix = stripped if stripped != "/" else ""

    async def __call__(self, request: Request, next: Next) -> Response:
        """Serve a static file or fall through."""
        if request.method not in ("GET", "HEAD"):
            return await next(request)

        path = request.path
        if self._prefix:
            if not path.startswith(self._prefix + "/") and path != self._prefix:
                return await next(request)
            relative = path[len(self._prefix) :].lstrip("/")
        else:
            relative = path.lstrip("/")

        if relative:
            file_path = await anyio.Path(self._directory / relative).resolve()
            if not file_path.is_relative_to(self._directory):
                return Response(body="Forbidden", status=403)

        for candidate in await self._candidates(relative):
            if await candidate.is_file():
                return await self._serve_file(candidate)

        return await next(request)

    async def _candidates(self, relative: str) -> list[anyio.Path]:
        """Files to try for ``relative``, in order, all inside the directory."""
        bases = [relative] if relative else []
        bases.extend(relative.rstrip("/") + suffix for suffix in self._try_suffixes)
        found: list[anyio.Path] = []
        for base in bases:
            stripped = base.lstrip("/")
            if not stripped:
                continue
            candidate = await anyio.Path(self._directory / stripped).resolve()
            if candidate.is_relative_to(self._directory):
                found.append(candidate)
        return found

    async def _serve_file(self, file_path: anyio.Path) -> Response:
        """Read a file and build a response."""
        content_type, _ = mimetypes.guess_type(str(file_path))
        if content_type is None:
            content_type = "application/octet-stream"

        body = await file_path.read_bytes()

        return Response(body=body, content_type=content_type).with_header(
            "Cache-Control", self._cache_control
        )
