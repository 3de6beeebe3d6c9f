"""Connection lifecycle middleware.

Counts in-flight requests and, once the server starts draining, asks
clients to close their keep-alive connections. ``Engine.stop`` waits
on ``wait_idle`` and reports whatever the shutdown timeout cuts off.
"""

import anyio

from warble.http.request import Request
from warble.http.response import Response
from warble.middleware.protocol import AnyResponse, Next


class ConnectionLifecycle:
    """In-flight tracking and ``Connection: close`` while draining.

    Streaming responses count only while their middleware chain runs.
    """

    __slots__ = ("_draining", "_idle", "_in_flight")

    def __init__(self) -> None:
        self._in_flight = 0
        self._draining = False
        self._idle: anyio.Event | None = None

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def draining(self) -> bool:
        return self._draining

    def start_draining(self) -> None:
        self._draining = True

    async def wait_idle(self, timeout: float) -> bool:
        """Wait up to *timeout* seconds for in-flight requests. True if idle."""
        with anyio.move_on_after(timeout):
            while self._in_flight:
                self._idle = anyio.Event()
                await self._idle.wait()
        return not self._in_flight

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        self._in_flight += 1
        try:
            response = await next(request)
        finally:
            self._in_flight -= 1
            if not self._in_flight and self._idle is not None:
                self._idle.set()
        if self._draining and isinstance(response, Response):
            return response.with_header("Connection", "close")
        return response
