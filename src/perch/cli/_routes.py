"""``perch routes`` — list registered routes.

Resolves an import string to a perch App and prints every route,
mounted perch apps flattened in under their prefix.
"""

import argparse
import sys

from perch.cli._resolve import resolve_app
from perch.server.not_found import describe_action


def run_routes(args: argparse.Namespace) -> None:
    """Print a METHOD / PATH / ACTION table for ``args.app``.

    Ordinary routes show their reverse-routing key next to the action.
    """
    try:
        app = resolve_app(args.app)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    app._ensure_frozen()

    rows: list[tuple[str, str, str]] = []
    for route in app.routes.each_route():
        action = describe_action(route)
        if not route.is_mount:
            action = f"{action} ({route.path_name})"
        rows.append((route.method, route.path, action))

    if not rows:
        print("No routes registered.")
        return

    max_method = max(max(len(r[0]) for r in rows), 6)  # "METHOD" header
    max_path = max(max(len(r[1]) for r in rows), 4)  # "PATH" header

    fmt = f"{{:<{max_method}}}  {{:<{max_path}}}  {{}}"
    print(fmt.format("METHOD", "PATH", "ACTION"))
    sep_len = max_method + max_path + 4 + max(len(r[2]) for r in rows)
    print("-" * min(sep_len, 80))
    for method, path, action in rows:
        print(fmt.format(method, path, action))
