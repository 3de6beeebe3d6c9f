"""Tests for warble.errors — messages and connection error detection."""

import asyncio

import anyio

from warble.errors import (
    BindError,
    ClientDisconnect,
    HandlerError,
    HTTPError,
    MethodNotAllowed,
    ResponseError,
    is_connection_error,
    is_request_canceled,
)
from warble.server.errors import error_headers, error_status


class TestMessages:
    def test_bind_error(self) -> None:
        err = BindError("json", ValueError("bad"))
        assert str(err) == "bind error: json: bad"
        assert err.decoder == "json"
        assert err.status == 500

    def test_handler_error(self) -> None:
        assert str(HandlerError(RuntimeError("order 42 does not exist"))) == "handler error: order 42 does not exist"

    def test_response_error(self) -> None:
        assert str(ResponseError("boom")) == "response error: body read error: boom"

    def test_http_error(self) -> None:
        assert str(HTTPError(418)) == "418"
        assert str(HTTPError(418, "teapot")) == "418: teapot"


class TestStatusAndHeaders:
    def test_wrapped_http_error(self) -> None:
        cause = MethodNotAllowed(frozenset({"GET"}))
        err = HandlerError(cause, status=cause.status)
        assert error_status(err) == 405
        assert error_headers(err) == (("Allow", "GET"),)

    def test_plain_exception(self) -> None:
        assert error_status(RuntimeError()) == 500
        assert error_headers(RuntimeError()) == ()


class TestConnectionErrors:
    def test_direct(self) -> None:
        assert is_connection_error(ConnectionResetError())
        assert is_connection_error(BrokenPipeError())
        assert is_connection_error(ClientDisconnect())
        assert is_connection_error(anyio.BrokenResourceError())

    def test_wrapped(self) -> None:
        assert is_connection_error(HandlerError(ConnectionResetError("reset")))
        try:
            try:
                raise ConnectionAbortedError
            except ConnectionAbortedError as exc:
                raise RuntimeError("outer") from exc
        except RuntimeError as outer:
            assert is_connection_error(outer)

    def test_other(self) -> None:
        assert not is_connection_error(ValueError())
        assert not is_connection_error(HandlerError("plain"))

    def test_canceled(self) -> None:
        assert is_request_canceled(asyncio.CancelledError())
        assert not is_request_canceled(ValueError())
