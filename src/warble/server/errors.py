"""Error responses.

An error handler turns a status code and an exception into a Response.
The default renders ``{"err": "<message>"}``; ``App(error_handler=...)``
swaps it per app, never globally.
"""

import logging
from collections.abc import Callable

from warble.errors import HTTPError, PipelineError
from warble.http.response import Response, new_json_response, with_status_code

logger = logging.getLogger("warble.server")

type ErrorHandler = Callable[[int, BaseException], Response]


def json_error_handler(status: int, exc: BaseException) -> Response:
    """``{"err": "<message>"}`` with *status*."""
    return new_json_response({"err": str(exc)}, with_status_code(status))


def error_headers(exc: BaseException) -> tuple[tuple[str, str], ...]:
    """Headers an ``HTTPError`` (possibly wrapped in a pipeline error) asks for."""
    if isinstance(exc, HTTPError):
        return exc.headers
    if isinstance(exc, PipelineError) and isinstance(exc.cause, HTTPError):
        return exc.cause.headers
    return ()


def error_status(exc: BaseException) -> int:
    if isinstance(exc, HTTPError | PipelineError):
        return exc.status
    return 500


def render_error(error_handler: ErrorHandler, exc: BaseException) -> Response:
    """Run *error_handler* for *exc*, falling back to the JSON handler if it fails."""
    status = error_status(exc)
    try:
        response = error_handler(status, exc)
        response.read_body()
    except Exception:
        logger.exception("error handler failed for %s", type(exc).__name__)
        response = json_error_handler(status, exc)
    headers = error_headers(exc)
    if headers:
        response = response.with_headers(headers)
    return response
