"""Tests for warble.server.negotiation — return values to responses."""

import json
from dataclasses import dataclass

import pytest

from warble.http.response import Response, SSEResponse, new_text_response
from warble.server.negotiation import negotiate


@dataclass
class Item:
    id: int


class TestNegotiate:
    def test_response_passthrough(self) -> None:
        response = new_text_response("x")
        assert negotiate(response) is response

    def test_sse_passthrough(self) -> None:
        async def produce(writer):
            return None

        sse = SSEResponse(produce)
        assert negotiate(sse) is sse

    def test_none_is_204(self) -> None:
        assert negotiate(None).status == 204

    def test_str(self) -> None:
        response = negotiate("hi")
        assert response.content_type == "text/plain; charset=utf-8"
        assert response.read_body() == b"hi"

    def test_bytes(self) -> None:
        response = negotiate(b"\x00")
        assert response.content_type == "application/octet-stream"

    def test_dict_and_list(self) -> None:
        assert json.loads(negotiate({"a": 1}).read_body()) == {"a": 1}
        assert json.loads(negotiate([1, 2]).read_body()) == [1, 2]

    def test_dataclass(self) -> None:
        assert json.loads(negotiate(Item(id=3)).read_body()) == {"id": 3}

    def test_tuple_status(self) -> None:
        response = negotiate(({"created": True}, 201))
        assert response.status == 201

    def test_tuple_status_headers(self) -> None:
        response = negotiate(("moved", 301, {"Location": "/new"}))
        assert isinstance(response, Response)
        assert response.status == 301
        assert response.header("Location") == "/new"

    def test_unsupported(self) -> None:
        with pytest.raises(TypeError, match="Cannot convert int"):
            negotiate(42)
