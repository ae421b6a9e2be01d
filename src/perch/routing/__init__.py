"""Routing — ordered route table with mount delegation and reverse routing.

Routes are registered during setup and frozen into a read-only table
before the first request.
"""

from perch.routing.pattern import (
    Literal,
    Named,
    PathPattern,
    PrefixWildcard,
    compile_pattern,
    split_path,
)
from perch.routing.route import (
    METHODS,
    MOUNT,
    NO_MATCH,
    ActionMatch,
    DelegateMatch,
    Match,
    NoMatch,
    Route,
)
from perch.routing.table import RouteTable

__all__ = [
    "METHODS",
    "MOUNT",
    "NO_MATCH",
    "ActionMatch",
    "DelegateMatch",
    "Literal",
    "Match",
    "Named",
    "NoMatch",
    "PathPattern",
    "PrefixWildcard",
    "Route",
    "RouteTable",
    "compile_pattern",
    "split_path",
]
