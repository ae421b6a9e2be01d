"""Error handling pipeline for perch requests.

Maps HTTPError exceptions and unexpected failures to appropriate
Response objects, using registered error handlers or sensible defaults.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

from perch.config import AppConfig
from perch.errors import HTTPError
from perch.http.request import Request
from perch.http.response import Response
from perch.routing.table import RouteTable
from perch.server.coerce import coerce
from perch.server.not_found import render_not_found_page

logger = logging.getLogger("perch.server")


async def call_error_handler(
    handler: Callable[..., Any],
    request: Request,
    exc: Exception,
    config: AppConfig,
) -> Response:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc) args.
    Supports both sync and async error handlers.
    """
    sig = inspect.signature(handler)
    params = list(sig.parameters.values())

    if len(params) >= 2:
        result = handler(request, exc)
    elif len(params) == 1:
        result = handler(request)
    else:
        result = handler()

    if inspect.isawaitable(result):
        result = await result

    return coerce(result, default_content_type=config.default_content_type)


async def handle_http_error(
    exc: HTTPError,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    routes: RouteTable,
    config: AppConfig,
) -> Response:
    """Map an HTTPError to a Response using registered error handlers."""
    logger.debug("%d %s %s: %s", exc.status, request.method, request.path, exc.detail)

    # Try exact exception type, then status code
    handler = error_handlers.get(type(exc)) or error_handlers.get(exc.status)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, config)
        # Preserve the HTTP status from the exception unless the handler
        # explicitly chose its own
        if response.status == 200:
            response = response.with_status(exc.status)
        return response

    if exc.status == 404:
        listing = None if config.is_production else routes.each_route()
        resp = Response(
            body=render_not_found_page(request, listing),
            content_type="text/html",
        ).with_status(404)
    else:
        resp = Response(body=exc.detail or f"Error {exc.status}").with_status(exc.status)

    for name, value in exc.headers:
        resp = resp.with_header(name, value)
    return resp


async def handle_internal_error(
    exc: Exception,
    request: Request,
    error_handlers: dict[int | type, Callable[..., Any]],
    config: AppConfig,
) -> Response:
    """Handle unexpected exceptions as 500 errors.

    Outside production the exception is re-raised so the ASGI server
    (and the developer) sees the original traceback.
    """
    logger.exception("500 %s %s", request.method, request.path)

    handler = error_handlers.get(type(exc)) or error_handlers.get(500)
    if handler is not None:
        response = await call_error_handler(handler, request, exc, config)
        if response.status == 200:
            response = response.with_status(500)
        return response

    if not config.is_production:
        raise exc

    return Response(body="Server Error", status=500)
