"""Error translation middleware.

Pipeline errors (bind, handler, response) and ``HTTPError`` raised by
routing or handlers become responses through the server's error
handler. The error is kept on the request so outer middleware (the
access log) can still report it.
"""

from warble.errors import HTTPError, PipelineError
from warble.http.request import Request
from warble.middleware.protocol import AnyResponse, Next
from warble.server.errors import ErrorHandler, json_error_handler, render_error


class ErrorTranslation:
    __slots__ = ("_error_handler",)

    def __init__(self, error_handler: ErrorHandler = json_error_handler) -> None:
        self._error_handler = error_handler

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        try:
            return await next(request)
        except (PipelineError, HTTPError) as exc:
            request._cache["error"] = exc
            return render_error(self._error_handler, exc)
