"""ASGI handler — translates ASGI scope/messages to perch types.

The only component that touches raw ASGI directly. Converts scope dicts
to typed Request objects, dispatches through middleware and the route
table, and sends the Response back through ASGI send().
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from perch._internal.asgi import Receive, Scope, Send, collect_response
from perch._internal.invoke import invoke
from perch.config import AppConfig
from perch.errors import HTTPError, NotFound
from perch.http.request import ORIGINAL_PATH_KEY, Request
from perch.http.response import Response
from perch.middleware.protocol import Next
from perch.routing.route import ActionMatch, DelegateMatch
from perch.routing.table import RouteTable
from perch.server.coerce import coerce
from perch.server.errors import handle_http_error, handle_internal_error
from perch.server.sender import send_response


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    routes: RouteTable,
    middleware: tuple[Callable[..., Any], ...],
    error_handlers: dict[int | type, Callable[..., Any]],
    config: AppConfig,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(
        scope, receive, method_override_param=config.method_override_param
    )

    try:
        # Build the innermost handler (route table dispatch)
        async def dispatch(req: Request) -> Response:
            return await _dispatch(routes, req, config)

        # Wrap middleware around the dispatch
        handler: Next = dispatch
        for mw in reversed(middleware):
            outer = handler

            async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> Response:
                return await _mw(req, _next)

            handler = make_next

        response = await handler(request)

    except HTTPError as exc:
        response = await handle_http_error(exc, request, error_handlers, routes, config)
    except Exception as exc:
        response = await handle_internal_error(exc, request, error_handlers, config)

    await send_response(response, send, method=request.method)


async def _dispatch(table: RouteTable, request: Request, config: AppConfig) -> Response:
    """Match against ``table`` and run the winning route or mount.

    A mounted ``RouteTable`` is matched in-process against the rewritten
    path; any other mounted object is called as an ASGI app.
    """
    match = table.match(request.path, request.method)
    if isinstance(match, ActionMatch):
        return await _invoke_handler(match, request, config)
    if isinstance(match, DelegateMatch):
        if isinstance(match.app, RouteTable):
            mounted = request.with_mount(match.rewritten_path, match.prefix)
            return await _dispatch(match.app, mounted, config)
        return await _delegate(match, request)
    raise NotFound(f"No route matches {request.method} {request.original_path or request.path!r}")


async def _invoke_handler(
    match: ActionMatch,
    request: Request,
    config: AppConfig,
) -> Response:
    """Call the matched route handler, converting params and return value."""
    handler = match.handler
    request = request.with_route(match.params, match.options)
    kwargs = _build_handler_kwargs(handler, request, match.params)
    result = await invoke(handler, **kwargs)
    return coerce(result, default_content_type=config.default_content_type)


def _build_handler_kwargs(
    handler: Callable[..., Any],
    request: Request,
    path_params: Mapping[str, str],
) -> dict[str, Any]:
    """Inspect handler signature and build kwargs from request + path params.

    Resolution order:
    1. ``request`` parameter (by name or ``Request`` annotation)
    2. ``params`` — query parameters merged with path parameters
    3. ``options`` — the matched route's options
    4. Path parameters (by name, with type conversion)
    5. ``**kwargs`` — receives every path parameter not already bound
    """
    try:
        sig = inspect.signature(handler, eval_str=True)
    except (TypeError, ValueError):
        return {}

    kwargs: dict[str, Any] = {}
    var_keyword = False

    for name, param in sig.parameters.items():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            var_keyword = True
        elif param.kind is inspect.Parameter.VAR_POSITIONAL:
            continue
        elif name == "request" or param.annotation is Request:
            kwargs[name] = request
        elif name == "params":
            kwargs[name] = request.params
        elif name == "options":
            kwargs[name] = request.options
        elif name in path_params:
            value = path_params[name]
            if param.annotation is not inspect.Parameter.empty:
                try:
                    kwargs[name] = param.annotation(value)
                except (ValueError, TypeError):
                    kwargs[name] = value
            else:
                kwargs[name] = value

    if var_keyword:
        for name, value in path_params.items():
            kwargs.setdefault(name, value)

    return kwargs


async def _delegate(match: DelegateMatch, request: Request) -> Response:
    """Run a mounted application with the mount prefix stripped from the path.

    The child scope keeps the outermost original path under
    ``perch.original_path`` and extends ``root_path`` by the consumed
    prefix, so nested mounts compose.
    """
    scope: Scope = dict(request.scope)
    scope["method"] = request.method
    scope["path"] = match.rewritten_path
    scope["raw_path"] = match.rewritten_path.encode("utf-8")
    scope["root_path"] = request.root_path + match.prefix
    scope[ORIGINAL_PATH_KEY] = request.original_path
    scope["perch.mount_options"] = match.options
    return await collect_response(match.app, scope, _replay_receive(request))


def _replay_receive(request: Request) -> Receive:
    """Receive callable for a mounted app.

    If middleware already consumed the body, replay it from the request
    cache; otherwise hand over the original receive.
    """
    if "_body" not in request._cache and request._receive is not None:
        return request._receive

    body: bytes = request._cache.get("_body", b"")
    sent = False

    async def receive() -> dict[str, Any]:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return {"type": "http.disconnect"}

    return receive
