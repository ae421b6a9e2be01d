"""Path templates compiled into per-segment matchers.

A template such as ``/user/:id/files/img*`` compiles to one matcher per
``/``-delimited component::

    "user"   -> Literal("user")
    ":id"    -> Named("id")
    "img*"   -> PrefixWildcard("img")

Compilation is lenient: anything that is not recognisably a named or
wildcard segment is matched literally, and repeated slashes collapse.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Protocol

_SEPARATOR = re.compile(r"/+")

# ASCII word characters or hyphens, the whole component
_NAME_VALUE = re.compile(r"[\w-]+", re.ASCII)


def split_path(path: str) -> list[str]:
    """Split a path or template into its non-empty components.

    One leading ``/`` is stripped; runs of ``/`` act as a single separator
    and empty components are dropped::

        "/"             -> []
        "/user/42"      -> ["user", "42"]
        "//user///42/"  -> ["user", "42"]
    """
    if path.startswith("/"):
        path = path[1:]
    return [part for part in _SEPARATOR.split(path) if part]


class SegmentMatcher(Protocol):
    """Anything that can accept or reject a single path component."""

    def accepts(self, part: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class Literal:
    """Matches one exact component."""

    text: str

    def accepts(self, part: str) -> bool:
        return part == self.text


@dataclass(frozen=True, slots=True)
class Named:
    """Matches a non-empty component of word characters or hyphens."""

    name: str

    def accepts(self, part: str) -> bool:
        return _NAME_VALUE.fullmatch(part) is not None


@dataclass(frozen=True, slots=True)
class PrefixWildcard:
    """Matches any component starting with ``prefix``, ignoring case."""

    prefix: str

    def accepts(self, part: str) -> bool:
        return part.lower().startswith(self.prefix.lower())


def compile_segment(component: str) -> Literal | Named | PrefixWildcard:
    """Compile one template component.

    A lone ``:`` has no name to capture under and stays literal.
    """
    if component.startswith(":") and len(component) > 1:
        return Named(component[1:])
    if component.endswith("*"):
        return PrefixWildcard(component[:-1])
    return Literal(component)


@dataclass(frozen=True, slots=True)
class PathPattern:
    """A compiled path template.

    ``segments`` holds one matcher per template component, in order.
    ``variable_names`` maps segment index to variable name for the
    named segments only.
    """

    segments: tuple[Literal | Named | PrefixWildcard, ...]
    variable_names: MappingProxyType[int, str]

    def __len__(self) -> int:
        return len(self.segments)

    @property
    def is_literal(self) -> bool:
        """True when every segment is a ``Literal`` (usable as a mount prefix)."""
        return all(type(seg) is Literal for seg in self.segments)

    def match(self, parts: list[str]) -> dict[str, str] | None:
        """Match already-split request components.

        Returns the captured variables, or ``None`` when the component
        count differs or any segment rejects its component.
        """
        if len(parts) != len(self.segments):
            return None
        for segment, part in zip(self.segments, parts, strict=True):
            if not segment.accepts(part):
                return None
        return {name: parts[index] for index, name in self.variable_names.items()}

    def match_prefix(self, parts: list[str]) -> list[str] | None:
        """Match the pattern as a literal prefix of ``parts``.

        Returns the remaining components, or ``None`` if ``parts`` is
        shorter than the prefix or any prefix segment is not a ``Literal``
        equal to its component.
        """
        count = len(self.segments)
        if len(parts) < count:
            return None
        for segment, part in zip(self.segments, parts[:count], strict=True):
            if type(segment) is not Literal or segment.text != part:
                return None
        return parts[count:]


def compile_pattern(template: str) -> PathPattern:
    """Compile a path template into a :class:`PathPattern`.

    Never raises for string input; malformed components degrade to
    literal matching.
    """
    segments = tuple(compile_segment(part) for part in split_path(template))
    names = {
        index: seg.name for index, seg in enumerate(segments) if isinstance(seg, Named)
    }
    return PathPattern(segments=segments, variable_names=MappingProxyType(names))
