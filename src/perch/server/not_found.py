"""Self-contained not-found page renderer.

Uses plain f-strings and ``html.escape`` so the page renders without
any template system. Outside production the page lists every route the
application knows about (mounted tables flattened) and the request
scope, to help spot a mistyped path or a missing registration.
"""

import html
import pprint
from collections.abc import Iterable

from perch.http.request import Request
from perch.routing.route import Route

_STYLE = """
body { font-family: sans-serif }
main { width: 80%; margin-right: auto; margin-left: auto; }
table { font-family: sans-serif; border-spacing: 0; border-collapse: collapse; }
.routes table { font-family: monospace; }
.routes table, .routes table tr { border: solid 1px #e0e0e0; }
.routes table td, .routes table th { padding: 5px 10px; }
.environment { margin-top: 20px; max-width: 100vw; }
.environment > h2 { margin-bottom: 0; }
.environment table td > pre { max-height: 50px; overflow: scroll; }
.environment table th { text-align: right; padding-right: 10px; }
"""

h = html.escape


def describe_action(route: Route) -> str:
    """Human-readable name for a route's handler or mounted app."""
    action = route.action
    name = getattr(action, "__qualname__", None)
    if name is None:
        name = type(action).__qualname__
    module = getattr(action, "__module__", None)
    return f"{module}.{name}" if module else name


def _routes_table(routes: Iterable[Route]) -> str:
    rows = "".join(
        f"<tr><td>{h(route.method)}</td><td>{h(route.path)}</td>"
        f"<td>{h(describe_action(route))}</td></tr>"
        for route in routes
    )
    return (
        '<div class="routes"><h2>Valid Routes</h2><table>'
        "<thead><tr><th>Method</th><th>Path</th><th>Action</th></tr></thead>"
        f"<tbody>{rows}</tbody></table></div>"
    )


def _scope_table(request: Request) -> str:
    rows = "".join(
        f"<tr><th>{h(str(key))}</th><td><pre>{h(pprint.pformat(value))}</pre></td></tr>"
        for key, value in request.scope.items()
    )
    return (
        '<div class="environment"><h2>Environment</h2>'
        f"<table><tbody>{rows}</tbody></table></div>"
    )


def render_not_found_page(
    request: Request,
    routes: Iterable[Route] | None = None,
) -> str:
    """Render the 404 page.

    ``routes`` is ``None`` in production, which omits both the route
    listing and the request scope.
    """
    parts = [
        "<h1>Not Found</h1>",
        f"<p>{h(request.method)} - {h(request.original_path)}</p>",
    ]
    if routes is not None:
        parts.append(_routes_table(routes))
        parts.append(_scope_table(request))
    body = "\n".join(parts)
    return (
        '<!doctype html>\n<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>Not Found</title>\n<style>{_STYLE}</style>\n</head>\n"
        f"<body>\n<main>\n{body}\n</main>\n</body>\n</html>\n"
    )
