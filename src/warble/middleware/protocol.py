"""The middleware calling convention.

Server middleware (``App.use``), group middleware (``Router.use``) and
route middleware (``Router.get(path, mw, handler)``) share one shape:
an async callable taking the request and the rest of the chain.
"""

from collections.abc import Awaitable, Callable
from typing import Protocol

from warble.http.request import Request
from warble.http.response import Response, SSEResponse

type AnyResponse = Response | SSEResponse

# The remainder of the chain, ending in the route endpoint
type Next = Callable[[Request], Awaitable[AnyResponse]]


class Middleware(Protocol):
    """Structural type for middleware; plain functions qualify.

    A middleware either returns ``await next(request)`` (optionally
    transformed) or short-circuits with its own response::

        async def require_token(request: Request, next: Next) -> AnyResponse:
            if "authorization" not in request.headers:
                return Response(status=401)
            return await next(request)
    """

    async def __call__(self, request: Request, next: Next) -> AnyResponse: ...
