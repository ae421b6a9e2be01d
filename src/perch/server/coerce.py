"""Return-value coercion — maps handler results to Response objects.

isinstance-based dispatch, no magic, fully predictable. Handlers may
return:

1. ``Response``                      -> pass through
2. ``Redirect``                      -> 302 (or given status) + Location
3. ``(status, headers, body)`` tuple -> explicit triple
4. ``{"status": ..., "body": ...}``  -> explicit mapping
5. ``dict`` / ``list``               -> 200, application/json
6. ``str``                           -> 200, default content type
7. ``bytes``                         -> 200, application/octet-stream
8. ``None``                          -> 200, empty body
9. any other iterable                -> 200, chunks joined
10. anything else                    -> 200, ``str(value)``
"""

import json as json_module
from collections.abc import Iterable, Mapping
from typing import Any

from perch.http.response import Redirect, Response


def _join_chunks(chunks: Iterable[Any]) -> str | bytes:
    """Join an iterable body into one str (or bytes if any chunk is bytes)."""
    items = list(chunks)
    if any(isinstance(item, bytes | bytearray) for item in items):
        return b"".join(
            bytes(item) if isinstance(item, bytes | bytearray) else str(item).encode("utf-8")
            for item in items
        )
    return "".join(str(item) for item in items)


def _body(value: Any) -> str | bytes:
    match value:
        case None:
            return ""
        case str() | bytes():
            return value
        case bytearray():
            return bytes(value)
        case Iterable():
            return _join_chunks(value)
        case _:
            return str(value)


def _with_explicit_headers(
    body: Any,
    status: int,
    headers: Any,
    default_content_type: str,
) -> Response:
    """Build a Response from a status, header collection, and raw body."""
    pairs = headers.items() if isinstance(headers, Mapping) else (headers or ())
    content_type = default_content_type
    extra: list[tuple[str, str]] = []
    for name, value in pairs:
        if str(name).lower() == "content-type":
            content_type = str(value)
        else:
            extra.append((str(name), str(value)))
    return Response(
        body=_body(body),
        status=status,
        content_type=content_type,
        headers=tuple(extra),
    )


def coerce(value: Any, *, default_content_type: str = "text/html") -> Response:
    """Convert a route handler's return value to a Response."""
    match value:
        case Response():
            return value
        case Redirect():
            return (
                Response(body="")
                .with_status(value.status)
                .with_header("Location", value.url)
                .with_headers(dict(value.headers))
            )
        case (int() as status, headers, body) if isinstance(value, tuple):
            return _with_explicit_headers(body, status, headers, default_content_type)
        case {"status": int() as status, **rest}:
            return _with_explicit_headers(
                rest.get("body"), status, rest.get("headers"), default_content_type
            )
        case dict() | list():
            return Response(
                body=json_module.dumps(value, default=str),
                content_type="application/json",
            )
        case str():
            return Response(body=value, content_type=default_content_type)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case None:
            return Response(body="", content_type=default_content_type)
        case Iterable():
            return Response(body=_join_chunks(value), content_type=default_content_type)
        case _:
            return Response(body=str(value), content_type=default_content_type)


def redirect_to(url: str, status: int = 302) -> Redirect:
    """Shorthand for returning a redirect from a handler."""
    return Redirect(url=url, status=status)
