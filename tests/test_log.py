"""Tests for warble.log — log context, formatters, and configure_logging."""

import io
import json
import logging

import pytest

from warble.log import (
    LOGGER_NAME,
    JsonFormatter,
    LogContextFilter,
    TextFormatter,
    bind_log_context,
    configure_logging,
    log_context,
    reset_log_context,
)


@pytest.fixture
def restore_warble_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved = (logger.level, logger.propagate, list(logger.handlers))
    yield
    for handler in logger.handlers:
        handler.close()
    logger.setLevel(saved[0])
    logger.propagate = saved[1]
    logger.handlers[:] = saved[2]


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("warble.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_bind_and_reset(self) -> None:
        token = bind_log_context(request_id="r1")
        inner = bind_log_context(session_id="s1")
        assert dict(log_context()) == {"request_id": "r1", "session_id": "s1"}
        reset_log_context(inner)
        assert dict(log_context()) == {"request_id": "r1"}
        reset_log_context(token)
        assert dict(log_context()) == {}

    def test_filter_copies_context(self) -> None:
        record = _record()
        token = bind_log_context(request_id="r2")
        try:
            assert LogContextFilter().filter(record) is True
        finally:
            reset_log_context(token)
        assert record.context == {"request_id": "r2"}
        assert record.fields == {}


class TestFormatters:
    def test_json(self) -> None:
        record = _record("GET /", context={"request_id": "r3"}, fields={"status": 200})
        data = json.loads(JsonFormatter().format(record))
        assert data["level"] == "info"
        assert data["logger"] == "warble.test"
        assert data["message"] == "GET /"
        assert data["context"] == {"request_id": "r3"}
        assert data["fields"] == {"status": 200}
        assert "timestamp" in data

    def test_text(self) -> None:
        record = _record("GET /", context={"request_id": "r4"})
        line = TextFormatter().format(record)
        assert "INFO warble.test :: GET /" in line
        assert line.endswith("[request_id=r4]")


class TestConfigureLogging:
    def test_json_lines(self, restore_warble_logger) -> None:
        stream = io.StringIO()
        configure_logging("debug", stream=stream)
        logging.getLogger("warble.server").debug("started %s", "x", extra={"fields": {"port": 8080}})

        data = json.loads(stream.getvalue())
        assert data["message"] == "started x"
        assert data["fields"] == {"port": 8080}

    def test_idempotent(self, restore_warble_logger) -> None:
        configure_logging(stream=io.StringIO())
        logger = configure_logging(json_output=False, stream=io.StringIO())
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, TextFormatter)
        assert logger.level == logging.INFO
