"""Tests for warble.middleware.logging — structured access log."""

import base64
import logging

import pytest

from warble.app import App
from warble.config import LoggingSettings
from warble.http.response import new_text_response
from warble.log import log_context
from warble.middleware import ErrorTranslation, LoggingMiddleware, Recovery
from warble.testing import TestClient


def _app(settings: LoggingSettings | None = None) -> App:
    app = App()
    app.use(LoggingMiddleware(settings), Recovery(), ErrorTranslation())
    app.router.get("/orders/{id}", lambda request: new_text_response(f"order {request.path_params['id']}"))
    app.router.post("/echo", lambda request: "ok")
    app.router.get("/boom", _boom)
    return app


def _boom(request):
    raise RuntimeError("kaboom")


def _access_records(caplog: pytest.LogCaptureFixture) -> list[logging.LogRecord]:
    return [record for record in caplog.records if record.name == "warble.http"]


class TestAccessLog:
    async def test_success_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="warble.http")
        async with TestClient(_app()) as client:
            await client.get(
                "/orders/7?expand=items",
                headers={"User-Agent": "tests", "Referer": "http://example.com", "Host": "api.local"},
            )

        (record,) = _access_records(caplog)
        assert record.levelno == logging.INFO
        assert record.getMessage() == "GET /orders/7?expand=items HTTP/1.1"
        fields = record.fields
        assert fields["status"] == 200
        assert fields["bytes"] == len(b"order 7")
        assert fields["request_method"] == "GET"
        assert fields["request_path"] == "/orders/7?expand=items"
        assert fields["request_query"] == "expand=items"
        assert fields["request_query_parameters"] == {"expand": "items"}
        assert fields["request_user_agent"] == "tests"
        assert fields["request_referer"] == "http://example.com"
        assert fields["host"] == "api.local"
        assert fields["client_ip"] == "127.0.0.1"
        assert fields["protocol"] == "HTTP/1.1"
        assert fields["scheme"] == "http"
        assert fields["request_time"] >= 0
        assert "request_body" not in fields

    async def test_not_found_omits_query_parameters(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="warble.http")
        async with TestClient(_app()) as client:
            await client.get("/wp-admin?user=admin")

        (record,) = _access_records(caplog)
        assert record.fields["status"] == 404
        assert "request_query_parameters" not in record.fields
        assert record.levelno == logging.ERROR

    async def test_recovered_error_logged_at_error(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="warble.http")
        async with TestClient(_app()) as client:
            response = await client.get("/boom")

        assert response.status == 500
        (record,) = _access_records(caplog)
        assert record.levelno == logging.ERROR
        assert record.getMessage() == "GET /boom HTTP/1.1: kaboom"
        assert record.fields["status"] == 500

    async def test_request_body(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="warble.http")
        async with TestClient(_app(LoggingSettings(request_body=True))) as client:
            await client.post("/echo", body="hello")

        (record,) = _access_records(caplog)
        assert record.fields["request_body"] == "hello"

    async def test_request_body_base64(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="warble.http")
        settings = LoggingSettings(request_body=True, request_body_base64=True)
        async with TestClient(_app(settings)) as client:
            await client.post("/echo", body=b"\xff\x00")

        (record,) = _access_records(caplog)
        assert record.fields["request_body"] == base64.b64encode(b"\xff\x00").decode("ascii")

    async def test_forwarded_client_ip(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="warble.http")
        async with TestClient(_app()) as client:
            await client.get("/orders/1", headers={"X-Real-IP": "192.0.2.4"})

        (record,) = _access_records(caplog)
        assert record.fields["client_ip"] == "192.0.2.4"


class TestLogContext:
    async def test_correlation_ids_bound_during_request(self) -> None:
        seen = []

        def handler(request):
            seen.append(dict(log_context()))
            return "ok"

        app = App()
        app.use(LoggingMiddleware())
        app.router.get("/", handler)
        async with TestClient(app) as client:
            await client.get("/", headers={"X-Request-Id": "req-1", "X-Session-Id": "sess-1"})

        assert seen == [{"request_id": "req-1", "session_id": "sess-1"}]
        assert dict(log_context()) == {}
