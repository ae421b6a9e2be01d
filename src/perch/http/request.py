"""Immutable HTTP request.

Frozen metadata with async body access. Path parameters and route options
are attached by the dispatcher once a route has matched.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from perch._internal.asgi import Receive, Scope
from perch.http.headers import Headers
from perch.http.query import QueryParams

ORIGINAL_PATH_KEY = "perch.original_path"


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    ``path`` is the path this application sees; inside a mounted
    application it has the mount prefix removed and ``original_path``
    holds the path as the outermost application received it.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    scope: Scope
    root_path: str = ""
    original_path: str = ""
    path_params: Mapping[str, str] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    # Private: ASGI receive callable for body streaming
    _receive: Receive | None = field(default=None, repr=False, compare=False)

    # Private: mutable cache for the body
    # (dict contents are mutable even though the field reference is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def params(self) -> dict[str, str]:
        """Query parameters merged with path parameters (path wins)."""
        return {**self.query, **self.path_params}

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def url(self) -> str:
        """Full request path (root path + path + query string)."""
        qs = self.query.raw
        full = self.root_path + self.path
        if qs:
            return f"{full}?{qs.decode('latin-1')}"
        return full

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        Result is cached — the ASGI receive is consumed once.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        if self._receive is None:
            return
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON."""
        import json as json_module

        raw = await self.body()
        return json_module.loads(raw)

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    # -- Derivation --

    def with_route(
        self,
        path_params: Mapping[str, str],
        options: Mapping[str, Any],
    ) -> Request:
        """Return a copy carrying the matched route's params and options.

        Shares the body cache so a body read by middleware is not lost.
        """
        return replace(self, path_params=path_params, options=options, _cache=self._cache)

    def with_mount(self, path: str, prefix: str) -> Request:
        """Return a copy as seen from inside a mount at ``prefix``.

        ``path`` is the rewritten path; ``original_path`` is kept.
        """
        return replace(self, path=path, root_path=self.root_path + prefix, _cache=self._cache)

    # -- Factory --

    @classmethod
    def from_asgi(
        cls,
        scope: Scope,
        receive: Receive | None = None,
        *,
        method_override_param: str | None = None,
    ) -> Request:
        """Create a Request from an ASGI scope and receive callable.

        When ``method_override_param`` names a query parameter present on
        the request, its value (upper-cased) replaces the HTTP method.
        """
        query = QueryParams(scope.get("query_string", b""))
        method = scope["method"].upper()
        if method_override_param and method_override_param in query:
            method = query[method_override_param].upper()
        return cls(
            method=method,
            path=scope["path"],
            headers=Headers(scope.get("headers", ())),
            query=query,
            scope=scope,
            root_path=scope.get("root_path", ""),
            original_path=scope.get(ORIGINAL_PATH_KEY, scope["path"]),
            _receive=receive,
        )
