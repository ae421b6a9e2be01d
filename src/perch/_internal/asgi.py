"""ASGI type aliases and in-process ASGI calls.

Used by the dispatcher to run mounted applications and by the test
client to run the app itself. Both need the app's output as a single
``Response`` rather than a stream of messages.
"""

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any, TypeAlias

from perch.http.response import Response

# Raw ASGI 3.0 types
Scope: TypeAlias = MutableMapping[str, Any]
Receive: TypeAlias = Callable[[], Awaitable[MutableMapping[str, Any]]]
Send: TypeAlias = Callable[[MutableMapping[str, Any]], Awaitable[None]]
ASGIApp: TypeAlias = Callable[[Scope, Receive, Send], Awaitable[None]]


async def collect_response(app: ASGIApp, scope: Scope, receive: Receive) -> Response:
    """Call an ASGI app and gather everything it sends into a ``Response``.

    Raises ``RuntimeError`` if the app returns without starting a response.
    """
    status: int | None = None
    raw_headers: list[tuple[bytes, bytes]] = []
    body_parts: list[bytes] = []

    async def send(message: MutableMapping[str, Any]) -> None:
        nonlocal status
        if message["type"] == "http.response.start":
            status = message["status"]
            raw_headers.extend(message.get("headers", ()))
        elif message["type"] == "http.response.body":
            body_parts.append(message.get("body", b""))

    await app(scope, receive, send)

    if status is None:
        msg = f"ASGI app {app!r} returned without sending a response"
        raise RuntimeError(msg)

    content_type = "text/html"
    headers: list[tuple[str, str]] = []
    for name_b, value_b in raw_headers:
        name = name_b.decode("latin-1")
        value = value_b.decode("latin-1")
        if name.lower() == "content-type":
            content_type = value
        elif name.lower() != "content-length":
            headers.append((name, value))

    return Response(
        body=b"".join(body_parts),
        status=status,
        content_type=content_type,
        headers=tuple(headers),
    )
