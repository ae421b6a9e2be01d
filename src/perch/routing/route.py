"""Route, match result, and reverse-routing frozen dataclasses."""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, TypeAlias

from perch.errors import ArityMismatch
from perch.routing.pattern import PathPattern, compile_pattern

# Methods a route may be registered under
METHODS: frozenset[str] = frozenset(
    {"GET", "POST", "PUT", "DELETE", "HEAD", "LINK", "UNLINK"}
)

# Pseudo-method under which mounted applications are stored
MOUNT = "MOUNT"

_EMPTY_OPTIONS: Mapping[str, Any] = MappingProxyType({})

# A whole path component that starts with ":" and names something
_VARIABLE = re.compile(r"(?:^|(?<=/)):[^/]+")
_NON_WORD = re.compile(r"\W+")


def freeze_options(options: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Copy route options into a read-only mapping."""
    if not options:
        return _EMPTY_OPTIONS
    return MappingProxyType(dict(options))


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Created when a route is registered; never mutated afterwards.
    ``action`` is the handler for ordinary routes and the mounted
    application for ``MOUNT`` routes.
    """

    method: str
    path: str
    action: Any
    options: Mapping[str, Any] = field(default_factory=lambda: _EMPTY_OPTIONS)
    pattern: PathPattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", compile_pattern(self.path))

    @property
    def is_mount(self) -> bool:
        return self.method == MOUNT

    @property
    def variable_count(self) -> int:
        """Number of ``:name`` placeholders in the template."""
        return len(_VARIABLE.findall(self.path))

    @property
    def path_prefix(self) -> str:
        """Stable identifier built from the template's literal components.

        ``/`` is ``root``; ``/user/:id/settings`` is ``user_settings``.
        """
        if self.path == "/":
            return "root"
        parts = [
            _NON_WORD.sub("_", part)
            for part in self.path.split("/")
            if part and not _VARIABLE.fullmatch(part)
        ]
        return "_".join(parts)

    @property
    def path_name(self) -> str:
        """Reverse-routing key for :meth:`generate_path`."""
        return f"{self.path_prefix}_path"

    @property
    def url_name(self) -> str:
        """Reverse-routing key for :meth:`generate_url`."""
        return f"{self.path_prefix}_url"

    def with_prefix(self, prefix: str) -> Route:
        """Return a copy of this route with ``prefix`` prepended to its path.

        The pattern is recompiled from the new template; method, options,
        and action are shared with the original.
        """
        return replace(self, path=prefix + self.path)

    def generate_path(self, *values: object) -> str:
        """Fill the template's ``:name`` placeholders left to right.

        Raises ``ArityMismatch`` unless exactly one value is supplied per
        placeholder.

        Example::

            Route("GET", "/user/:id/packages/:pkg", h).generate_path(7, "abc")
            # -> "/user/7/packages/abc"
        """
        expected = self.variable_count
        if len(values) != expected:
            raise ArityMismatch(self.path, expected, len(values))
        if expected == 0:
            return self.path
        remaining = iter(values)
        return _VARIABLE.sub(lambda _m: str(next(remaining)), self.path)

    def generate_url(self, root: str, *values: object) -> str:
        """Absolute URL for this route under ``root`` (e.g. ``https://host``)."""
        return root.rstrip("/") + self.generate_path(*values)


@dataclass(frozen=True, slots=True)
class ActionMatch:
    """An ordinary route matched the request."""

    route: Route
    params: dict[str, str]

    @property
    def handler(self) -> Callable[..., Any]:
        return self.route.action

    @property
    def options(self) -> Mapping[str, Any]:
        return self.route.options

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class DelegateMatch:
    """A mount prefix matched; the request belongs to a nested application.

    ``rewritten_path`` is the request path with the mount prefix removed,
    always starting with ``/``. ``original_path`` is the path as received.
    """

    route: Route
    rewritten_path: str
    original_path: str

    @property
    def app(self) -> Any:
        return self.route.action

    @property
    def prefix(self) -> str:
        """The consumed prefix, normalised to ``/a/b`` (empty for a root mount)."""
        return "".join(f"/{seg.text}" for seg in self.route.pattern.segments)

    @property
    def options(self) -> Mapping[str, Any]:
        return self.route.options

    def __bool__(self) -> bool:
        return True


class NoMatch:
    """Nothing in the table matched. Falsy; use the ``NO_MATCH`` singleton."""

    __slots__ = ()

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_MATCH"


NO_MATCH = NoMatch()

Match: TypeAlias = ActionMatch | DelegateMatch | NoMatch
