"""Recovery middleware.

Turns any exception escaping the inner pipeline into a 500 response so
one faulty handler never takes the connection (or the server) down.
Connection errors are the exception: there is nobody left to answer, so
they propagate as ``ClientDisconnect``.
"""

import logging

from warble.errors import ClientDisconnect, is_connection_error
from warble.http.request import Request
from warble.http.response import new_json_response, with_status_code
from warble.middleware.protocol import AnyResponse, Next

logger = logging.getLogger("warble.server")


class Recovery:
    __slots__ = ("_logger",)

    def __init__(self, *, logger: logging.Logger = logger) -> None:
        self._logger = logger

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        try:
            return await next(request)
        except ClientDisconnect:
            raise
        except Exception as exc:
            if is_connection_error(exc):
                self._logger.warning("connection error: %s", exc)
                raise ClientDisconnect(str(exc)) from exc
            self._logger.error("recovered from error in %s %s: %s", request.method, request.path, exc, exc_info=exc)
            request._cache["error"] = exc
            return new_json_response({"err": str(exc)}, with_status_code(500))
