"""Route table — ordered, per-method route lists with mount delegation.

Routes are registered during setup and the table is frozen before the
first request. After freezing, ``match`` is a pure read and may be called
from any number of threads or tasks without locking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from perch.errors import ConfigurationError, UnknownRoute
from perch.routing.pattern import split_path
from perch.routing.route import (
    METHODS,
    MOUNT,
    NO_MATCH,
    ActionMatch,
    DelegateMatch,
    Match,
    Route,
    freeze_options,
)

logger = logging.getLogger("perch.routing")


def nested_table(app: Any) -> RouteTable | None:
    """Return the RouteTable behind a mounted application, if it exposes one.

    Accepts a RouteTable itself or any object with a ``routes`` attribute
    holding a RouteTable (such as a perch ``App``).
    """
    if isinstance(app, RouteTable):
        return app
    routes = getattr(app, "routes", None)
    if isinstance(routes, RouteTable):
        return routes
    return None


class RouteTable:
    """Ordered route lists keyed by HTTP method.

    Matching is first-registered-first-matched within a method; there is
    no specificity ranking. Mounted applications are consulted only when
    no ordinary route for the method matches.

    Usage::

        table = RouteTable()
        table.add_route("GET", "/user/:id", show_user)
        table.mount("/admin", admin_app)
        table.freeze()

        match = table.match("/user/42", "GET")
        if match:
            ...
    """

    __slots__ = ("_by_method", "_frozen", "_named")

    def __init__(self) -> None:
        self._by_method: dict[str, list[Route]] = {}
        self._named: dict[str, Route] = {}
        self._frozen = False

    # -- Registration --

    def add_route(
        self,
        method: str,
        path: str,
        action: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Route:
        """Append a route for ``method``. Must be called before ``freeze()``.

        Registering the same method and path twice is allowed; the first
        registration always wins during matching.
        """
        self._check_not_frozen()
        method = method.upper()
        if method not in METHODS:
            allowed = ", ".join(sorted(METHODS))
            msg = f"Invalid method: {method!r}. Expected one of: {allowed}"
            raise ConfigurationError(msg)

        route = Route(method, path, action, freeze_options(options))
        self._by_method.setdefault(method, []).append(route)
        self._named[route.path_name] = route
        logger.debug("route %s %s -> %s", method, path, _describe(action))
        return route

    def mount(
        self,
        prefix: str,
        app: Any,
        options: Mapping[str, Any] | None = None,
    ) -> Route:
        """Delegate every path under ``prefix`` to ``app``.

        Mount prefixes are literal: a prefix with ``:name`` or ``*``
        segments is stored but never matches. Each prefix may be mounted
        once per table.
        """
        self._check_not_frozen()
        route = Route(MOUNT, prefix, app, freeze_options(options))

        for existing in self._by_method.get(MOUNT, ()):
            if existing.pattern.segments == route.pattern.segments:
                msg = f"Mount prefix {prefix!r} is already mounted as {existing.path!r}."
                raise ConfigurationError(msg)

        if not route.pattern.is_literal:
            logger.warning(
                "mount prefix %r has non-literal segments and will never match", prefix
            )

        self._by_method.setdefault(MOUNT, []).append(route)
        logger.debug("mount %s -> %s", prefix, _describe(app))
        return route

    def freeze(self) -> None:
        """Freeze the table. No more routes or mounts can be added."""
        self._frozen = True
        logger.debug("route table frozen with %d entries", len(self))

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- Matching --

    def match(self, path: str, method: str) -> Match:
        """Resolve a request path and method.

        Returns an ``ActionMatch`` for the first ordinary route of
        ``method`` whose pattern accepts the path, otherwise a
        ``DelegateMatch`` for the first mount whose prefix the path starts
        with, otherwise ``NO_MATCH``.
        """
        parts = split_path(path)

        for route in self._by_method.get(method.upper(), ()):
            params = route.pattern.match(parts)
            if params is not None:
                return ActionMatch(route=route, params=params)

        for mount in self._by_method.get(MOUNT, ()):
            remaining = mount.pattern.match_prefix(parts)
            if remaining is not None:
                return DelegateMatch(
                    route=mount,
                    rewritten_path="/" + "/".join(remaining),
                    original_path=path,
                )

        return NO_MATCH

    # -- Introspection --

    def each_route(self) -> Iterator[Route]:
        """Yield every concrete route, flattening mounted route tables.

        Routes from a mounted table are reported with the mount prefix
        prepended to their paths. A mount whose application has no route
        table is yielded as the mount route itself.
        """
        for method, routes in self._by_method.items():
            for route in routes:
                table = nested_table(route.action) if method == MOUNT else None
                if table is None:
                    yield route
                    continue
                for nested in table.each_route():
                    yield nested.with_prefix(route.path)

    def __iter__(self) -> Iterator[Route]:
        return self.each_route()

    def __len__(self) -> int:
        return sum(len(routes) for routes in self._by_method.values())

    def __contains__(self, key: object) -> bool:
        return key in self._named

    @property
    def mounts(self) -> tuple[Route, ...]:
        """Mount routes in registration order."""
        return tuple(self._by_method.get(MOUNT, ()))

    def routes_for(self, method: str) -> tuple[Route, ...]:
        """Ordinary routes registered for ``method``, in match order."""
        return tuple(self._by_method.get(method.upper(), ()))

    # -- Reverse routing --

    def lookup(self, key: str) -> Route:
        """Find the route registered under a ``*_path`` key.

        Own routes are checked first, then routes of mounted tables with
        their prefixed names (``/admin`` + ``/users`` -> ``admin_users_path``).
        """
        route = self._named.get(key)
        if route is not None:
            return route
        for candidate in self.each_route():
            if not candidate.is_mount and candidate.path_name == key:
                return candidate
        raise UnknownRoute(key)

    def path_for(self, key: str, *values: object) -> str:
        """Generate a concrete path for the route registered under ``key``."""
        return self.lookup(key).generate_path(*values)

    def url_for(self, root: str, key: str, *values: object) -> str:
        """Generate an absolute URL under ``root`` for the route ``key``."""
        return self.lookup(key).generate_url(root, *values)

    # -- Internal --

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = "Cannot add routes after the route table has been frozen."
            raise RuntimeError(msg)

    def __repr__(self) -> str:
        return f"<RouteTable routes={len(self)} frozen={self._frozen}>"


def _describe(action: Any) -> str:
    return getattr(action, "__qualname__", None) or type(action).__name__
