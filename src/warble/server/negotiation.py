"""Content negotiation — maps handler return values to Response objects.

isinstance-based dispatch, no magic, fully predictable.
"""

import dataclasses
from typing import Any

from warble.http.response import Response, SSEResponse, new_json_response, new_status_response, with_body, with_header


def negotiate(value: Any) -> Response | SSEResponse:
    """Convert a handler's return value to a Response.

    Dispatch order:

    1. ``Response`` / ``SSEResponse`` -> pass through
    2. ``None``              -> 204, no body
    3. ``str``               -> 200, text/plain
    4. ``bytes``             -> 200, application/octet-stream
    5. ``dict`` / ``list`` / dataclass -> 200, application/json
    6. ``(value, int)``      -> negotiate value, override status
    7. ``(value, int, dict)`` -> negotiate value, override status + add headers

    Raises:
        TypeError: For any other type.
    """
    match value:
        case Response() | SSEResponse():
            return value
        case None:
            return new_status_response(204)
        case str():
            return new_status_response(
                200,
                with_body(value),
                with_header("Content-Type", "text/plain; charset=utf-8"),
            )
        case bytes():
            return new_status_response(
                200,
                with_body(value),
                with_header("Content-Type", "application/octet-stream"),
            )
        case dict() | list():
            return new_json_response(value)
        case (inner, int() as status):
            return negotiate(inner).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner).with_status(status).with_headers(headers)
        case _ if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return new_json_response(value)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                f"Return Response, str, bytes, dict, list, a dataclass, or None."
            )
            raise TypeError(msg)
