"""Tests for warble.realtime.sse and the bind_sse family."""

from dataclasses import dataclass
from typing import Any

import anyio
import pytest

from warble import bind_sse, bind_sse_n, bind_sse_nr, bind_sse_r, param
from warble.app import App
from warble.errors import ClientDisconnect
from warble.realtime.sse import SseWriter, encode_event, stream_sse
from warble.testing import TestClient
from warble.testing.sse import parse_sse_frames


@dataclass
class Feed:
    topic: str = param(path=True)
    count: int = param(form=True, default=3)


class TestEncodeEvent:
    def test_single_line(self) -> None:
        assert encode_event("hello") == b"data: hello\n\n"

    def test_multi_line(self) -> None:
        assert encode_event("a\nb") == b"data: a\ndata: b\n\n"

    def test_parse_roundtrip(self) -> None:
        raw = (encode_event("one") + encode_event("two\nlines")).decode()
        assert parse_sse_frames(raw) == ["one", "two\nlines"]


class TestSseWriter:
    async def test_headers_sent_with_first_event(self) -> None:
        messages: list[dict[str, Any]] = []

        async def send(message: dict[str, Any]) -> None:
            messages.append(message)

        writer = SseWriter(send)
        assert writer.started is False
        await writer("tick")
        await writer.finish()
        await writer.finish()

        assert writer.started is True
        start, event, end = messages
        headers = dict(start["headers"])
        assert start["status"] == 200
        assert headers[b"content-type"] == b"text/event-stream"
        assert headers[b"cache-control"] == b"no-cache"
        assert headers[b"access-control-allow-origin"] == b"*"
        assert event == {"type": "http.response.body", "body": b"data: tick\n\n", "more_body": True}
        assert end["more_body"] is False

    async def test_write_after_close(self) -> None:
        async def send(message: dict[str, Any]) -> None:
            return None

        writer = SseWriter(send)
        writer.close()
        with pytest.raises(ClientDisconnect):
            await writer.write("late")

    async def test_oserror_becomes_disconnect(self) -> None:
        async def send(message: dict[str, Any]) -> None:
            raise BrokenPipeError("pipe")

        writer = SseWriter(send)
        with pytest.raises(ClientDisconnect):
            await writer.write("x")
        assert writer.closed


class TestStreamSse:
    async def test_producer_error_reraised(self) -> None:
        async def receive() -> dict[str, Any]:
            await anyio.sleep_forever()
            return {}

        async def send(message: dict[str, Any]) -> None:
            return None

        async def producer(writer: SseWriter) -> None:
            raise ValueError("bad feed")

        writer = SseWriter(send)
        with pytest.raises(ValueError, match="bad feed"):
            await stream_sse(producer, writer, receive)
        assert writer.started is False


class TestBindSse:
    async def test_bind_sse(self) -> None:
        async def feed(value: Feed, writer: SseWriter) -> None:
            for i in range(value.count):
                await writer(f"{value.topic} {i}")

        app = App()
        app.router.get("/feed/{topic}", bind_sse(feed))
        async with TestClient(app) as client:
            result = await client.sse("/feed/news?count=2")

        assert result.status == 200
        assert result.headers["content-type"] == "text/event-stream"
        assert result.events == ("news 0", "news 1")

    async def test_bind_sse_r(self) -> None:
        async def feed(request, value: Feed, writer: SseWriter) -> None:
            await writer(f"{request.method} {value.topic}")

        app = App()
        app.router.get("/feed/{topic}", bind_sse_r(feed))
        async with TestClient(app) as client:
            result = await client.sse("/feed/sports")
        assert result.events == ("GET sports",)

    async def test_bind_sse_n(self) -> None:
        async def ticks(writer: SseWriter) -> None:
            await writer("tick")

        app = App()
        app.router.get("/ticks", bind_sse_n(ticks))
        async with TestClient(app) as client:
            result = await client.sse("/ticks")
        assert result.events == ("tick",)

    async def test_bind_sse_nr(self) -> None:
        async def hello(request, writer: SseWriter) -> None:
            await writer(request.path)

        app = App()
        app.router.get("/hello", bind_sse_nr(hello))
        async with TestClient(app) as client:
            result = await client.sse("/hello")
        assert result.events == ("/hello",)

    async def test_client_disconnect_stops_producer(self) -> None:
        stopped = anyio.Event()

        async def forever(writer: SseWriter) -> None:
            try:
                i = 0
                while True:
                    await writer(str(i))
                    i += 1
                    await anyio.sleep(0)
            finally:
                stopped.set()

        app = App()
        app.router.get("/forever", bind_sse_n(forever))
        async with TestClient(app) as client:
            result = await client.sse("/forever", max_events=3)

        assert stopped.is_set()
        assert result.events[:3] == ("0", "1", "2")

    async def test_error_before_first_event_is_a_response(self) -> None:
        async def broken(writer: SseWriter) -> None:
            raise RuntimeError("no feed")

        app = App()
        app.router.get("/broken", bind_sse_n(broken))
        async with TestClient(app) as client:
            response = await client.get("/broken")

        assert response.status == 500
        assert response.text == '{"err":"handler error: no feed"}'

    async def test_error_after_first_event_ends_stream(self) -> None:
        async def flaky(writer: SseWriter) -> None:
            await writer("first")
            raise RuntimeError("lost upstream")

        app = App()
        app.router.get("/flaky", bind_sse_n(flaky))
        async with TestClient(app) as client:
            result = await client.sse("/flaky")

        assert result.status == 200
        assert result.events == ("first",)
