"""Access log middleware.

Logs one line per request on the ``warble.http`` logger with the
request's metadata as structured fields. Correlation ids from the
``X-Request-Id`` and ``X-Session-Id`` headers are bound to the log
context for the whole request, so every record emitted while serving
it carries them.
"""

import base64
import logging
import time
from collections.abc import Callable
from typing import Any

from warble.config import LoggingSettings
from warble.errors import ClientDisconnect, is_connection_error, is_request_canceled
from warble.http.request import Request
from warble.http.response import Response
from warble.log import bind_log_context, reset_log_context
from warble.middleware.protocol import AnyResponse, Next

# Status codes whose query parameters are not logged (likely scanners)
QUIET_QUERY_STATUSES = frozenset({401, 403, 404})

# nginx's "client closed request"
CLIENT_CLOSED_REQUEST = 499


class LoggingMiddleware:
    """Structured access log.

    Fields: ``bytes``, ``client_ip``, ``host``, ``protocol``,
    ``request_method``, ``request_path``, ``request_query``,
    ``request_referer``, ``request_user_agent``, ``scheme``,
    ``request_time`` (seconds), ``status``, optionally ``request_body``,
    and ``request_query_parameters`` unless the status is 401, 403 or 404.
    """

    __slots__ = ("_clock", "_logger", "_settings")

    def __init__(
        self,
        settings: LoggingSettings | None = None,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._settings = settings or LoggingSettings()
        self._logger = logger or logging.getLogger("warble.http")
        self._clock = clock

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        ids: dict[str, str] = {}
        if request_id := request.headers.get("x-request-id"):
            ids["request_id"] = request_id
        if session_id := request.headers.get("x-session-id"):
            ids["session_id"] = session_id
        token = bind_log_context(**ids)

        start = self._clock()
        fields = self._prepare(request)
        response: AnyResponse | None = None
        error: BaseException | None = None
        try:
            if self._settings.request_body:
                fields["request_body"] = self._body_field(await request.body())
            response = await next(request)
            return response
        except BaseException as exc:
            error = exc
            raise
        finally:
            try:
                self._finalize(request, fields, response, error, self._clock() - start)
            finally:
                reset_log_context(token)

    def _prepare(self, request: Request) -> dict[str, Any]:
        return {
            "bytes": 0,
            "client_ip": request.client_ip,
            "host": request.host,
            "protocol": f"HTTP/{request.http_version}",
            "request_method": request.method,
            "request_path": request.url,
            "request_query": request.query.raw,
            "request_referer": request.referer,
            "request_user_agent": request.user_agent,
            "scheme": request.scheme,
        }

    def _body_field(self, body: bytes) -> str:
        if self._settings.request_body_base64:
            return base64.b64encode(body).decode("ascii")
        return body.decode("utf-8", errors="replace")

    def _finalize(
        self,
        request: Request,
        fields: dict[str, Any],
        response: AnyResponse | None,
        error: BaseException | None,
        elapsed: float,
    ) -> None:
        if response is not None:
            status = response.status
        elif error is not None and (is_request_canceled(error) or is_connection_error(error)):
            status = CLIENT_CLOSED_REQUEST
        else:
            status = 500

        fields["bytes"] = _body_size(response)
        fields["request_time"] = elapsed
        fields["status"] = status
        if status not in QUIET_QUERY_STATUSES:
            fields["request_query_parameters"] = request.query.first_values()

        # An error translated into a response still counts as a failed request
        error = error or request.error
        method, path, protocol = fields["request_method"], fields["request_path"], fields["protocol"]
        extra = {"fields": fields}

        if error is None:
            self._logger.info("%s %s %s", method, path, protocol, extra=extra)
        elif is_request_canceled(error):
            self._logger.info("%s %s %s - request canceled: %s", method, path, protocol, error, extra=extra)
        elif isinstance(error, ClientDisconnect) or is_connection_error(error):
            self._logger.info("%s %s %s - connection error: %s", method, path, protocol, error, extra=extra)
        else:
            self._logger.error("%s %s %s: %s", method, path, protocol, error, extra=extra)


def _body_size(response: AnyResponse | None) -> int:
    if not isinstance(response, Response):
        return 0
    if response.has_payload:
        # Serialization failures surface in the sender, not here
        try:
            return len(response.read_body())
        except Exception:
            return 0
    return len(response.body)
