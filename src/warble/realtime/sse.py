"""Server-Sent Events writer over ASGI.

``SseWriter`` is handed to SSE handlers (see ``bind_sse``). Headers go
out with the first event; every event is framed as ``data: ...`` and
flushed immediately. ``stream_sse`` runs a producer while watching for
the client to disconnect.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import anyio

from warble._internal.asgi import Receive, Send
from warble.errors import ClientDisconnect

logger = logging.getLogger("warble.server")

SSE_HEADERS: tuple[tuple[str, str], ...] = (
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Expose-Headers", "Content-Type"),
    ("Content-Type", "text/event-stream"),
    ("Cache-Control", "no-cache"),
    ("Connection", "keep-alive"),
)


def encode_event(data: str) -> bytes:
    """Frame *data* as one event; each line gets its own ``data:`` field."""
    lines = [f"data: {line}\n" for line in data.split("\n")]
    return ("".join(lines) + "\n").encode("utf-8")


class SseWriter:
    """Writes events to one client.

    ``await writer("payload")`` and ``await writer.write("payload")`` are
    equivalent. Raises ``ClientDisconnect`` once the client is gone.
    """

    __slots__ = ("_closed", "_finished", "_send", "_started", "_write_timeout")

    def __init__(self, send: Send, *, write_timeout: float | None = None) -> None:
        self._send = send
        self._write_timeout = write_timeout or None
        self._started = False
        self._finished = False
        self._closed = False

    @property
    def started(self) -> bool:
        """True once headers have been sent; the status can't change anymore."""
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Mark the client as gone. Later writes raise ``ClientDisconnect``."""
        self._closed = True

    async def __call__(self, data: str) -> None:
        await self.write(data)

    async def write(self, data: str) -> None:
        """Send one event and flush it."""
        await self._start()
        await self._emit(encode_event(data), more_body=True)

    async def finish(self) -> None:
        """Terminate the stream. Safe to call more than once."""
        if self._finished or self._closed:
            return
        await self._start()
        await self._emit(b"", more_body=False)
        self._finished = True

    async def _start(self) -> None:
        if self._started:
            return
        self._started = True
        headers = [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in SSE_HEADERS]
        await self._raw_send({"type": "http.response.start", "status": 200, "headers": headers})

    async def _emit(self, body: bytes, *, more_body: bool) -> None:
        await self._raw_send({"type": "http.response.body", "body": body, "more_body": more_body})

    async def _raw_send(self, message: dict[str, object]) -> None:
        if self._closed:
            raise ClientDisconnect("client closed the event stream")
        try:
            if self._write_timeout is None:
                await self._send(message)
            else:
                with anyio.fail_after(self._write_timeout):
                    await self._send(message)
        except TimeoutError:
            self._closed = True
            raise ClientDisconnect("event stream write timed out") from None
        except OSError as exc:
            self._closed = True
            raise ClientDisconnect(str(exc)) from exc


async def stream_sse(
    producer: Callable[[SseWriter], Awaitable[None]],
    writer: SseWriter,
    receive: Receive,
) -> None:
    """Run *producer* against *writer* until it returns or the client leaves.

    An exception from the producer is re-raised after the disconnect
    watcher has stopped; check ``writer.started`` to tell whether
    anything reached the client. A disconnect is not an error.
    """
    error: Exception | None = None

    async with anyio.create_task_group() as tg:

        async def watch_disconnect() -> None:
            while True:
                message = await receive()
                if message.get("type") == "http.disconnect":
                    writer.close()
                    tg.cancel_scope.cancel()
                    return

        tg.start_soon(watch_disconnect)
        try:
            await producer(writer)
        except Exception as exc:
            error = exc
        finally:
            tg.cancel_scope.cancel()

    if error is not None:
        if isinstance(error, ClientDisconnect):
            logger.info("event stream closed by client: %s", error)
            return
        raise error
    if writer.closed:
        logger.info("event stream closed by client")
        return
    await writer.finish()
