"""ASGI response sending — translates a Response into ASGI messages.

The body has already been read (``Response.read_body``) by the time it
gets here, so a serialization failure can never leave a half-written
response behind.
"""

import logging

import anyio

from warble._internal.asgi import Send
from warble.errors import ClientDisconnect
from warble.http.response import Response

logger = logging.getLogger("warble.server")


def _body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def raw_headers(response: Response, body: bytes) -> list[tuple[bytes, bytes]]:
    """Header multimap as ASGI byte pairs, with a computed ``content-length``."""
    headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in response.headers
        if name.lower() != "content-length"
    ]
    if _body_allowed(response.status):
        headers.append((b"content-length", str(len(body)).encode("latin-1")))
    return headers


async def send_response(
    response: Response,
    send: Send,
    *,
    head: bool = False,
    write_timeout: float | None = None,
) -> None:
    """Write *response*: status and headers first, then the body.

    ``head`` drops the body but keeps its length. Raises
    ``ClientDisconnect`` if the client is gone or the write times out.
    """
    body = response.read_body() if _body_allowed(response.status) else b""
    messages = (
        {"type": "http.response.start", "status": response.status, "headers": raw_headers(response, body)},
        {"type": "http.response.body", "body": b"" if head else body},
    )
    try:
        with anyio.fail_after(write_timeout or None):
            for message in messages:
                await send(message)
    except TimeoutError:
        raise ClientDisconnect("response write timed out") from None
    except OSError as exc:
        raise ClientDisconnect(str(exc)) from exc
