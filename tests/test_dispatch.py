"""Tests for warble.dispatch — the bind family and its error stages."""

import json
from dataclasses import dataclass

from warble import HTTPError, bind, bind_n, bind_nr, bind_r, new_text_response, param, with_status_code
from warble.app import App
from warble.http.request import Request
from warble.testing import TestClient


@dataclass
class GetOrder:
    id: int = param(path=True)


def _app(path: str, endpoint, method: str = "GET") -> App:
    app = App()
    app.router.handle(method, path, endpoint)
    return app


class TestVariants:
    async def test_bind(self) -> None:
        def get_order(order: GetOrder) -> dict:
            return {"id": order.id}

        async with TestClient(_app("/orders/{id:int}", bind(get_order))) as client:
            response = await client.get("/orders/7")
        assert response.status == 200
        assert json.loads(response.text) == {"id": 7}

    async def test_bind_async_handler(self) -> None:
        async def get_order(order: GetOrder) -> dict:
            return {"id": order.id}

        async with TestClient(_app("/orders/{id}", bind(get_order))) as client:
            response = await client.get("/orders/8")
        assert json.loads(response.text) == {"id": 8}

    async def test_bind_r(self) -> None:
        def get_order(request: Request, order: GetOrder) -> dict:
            return {"id": order.id, "agent": request.user_agent}

        async with TestClient(_app("/orders/{id}", bind_r(get_order))) as client:
            response = await client.get("/orders/9", headers={"User-Agent": "tests"})
        assert json.loads(response.text) == {"id": 9, "agent": "tests"}

    async def test_bind_n(self) -> None:
        def ping() -> str:
            return "pong"

        async with TestClient(_app("/ping", bind_n(ping))) as client:
            response = await client.get("/ping")
        assert response.text == "pong"
        assert response.header("content-type") == "text/plain; charset=utf-8"

    async def test_bind_nr(self) -> None:
        def whoami(request: Request) -> dict:
            return {"ip": request.client_ip}

        async with TestClient(_app("/whoami", bind_nr(whoami))) as client:
            response = await client.get("/whoami", headers={"X-Forwarded-For": "10.0.0.1, 10.0.0.2"})
        assert json.loads(response.text) == {"ip": "10.0.0.1"}

    async def test_explicit_input_type(self) -> None:
        def get_order(order) -> dict:
            return {"id": order.id}

        async with TestClient(_app("/orders/{id}", bind(get_order, input_type=GetOrder))) as client:
            response = await client.get("/orders/3")
        assert json.loads(response.text) == {"id": 3}

    async def test_response_passes_through(self) -> None:
        def created() -> object:
            return new_text_response("made", with_status_code(201))

        async with TestClient(_app("/make", bind_n(created), method="POST")) as client:
            response = await client.post("/make")
        assert response.status == 201
        assert response.text == "made"


class TestPipelineErrors:
    async def test_handler_error(self) -> None:
        def get_order(order: GetOrder) -> dict:
            raise LookupError(f"order {order.id} does not exist")

        async with TestClient(_app("/orders/{id}", bind(get_order))) as client:
            response = await client.get("/orders/42")
        assert response.status == 500
        assert json.loads(response.text) == {"err": "handler error: order 42 does not exist"}

    async def test_http_error_keeps_status(self) -> None:
        def gone() -> None:
            raise HTTPError(410, "gone for good")

        async with TestClient(_app("/gone", bind_n(gone))) as client:
            response = await client.get("/gone")
        assert response.status == 410
        assert json.loads(response.text) == {"err": "handler error: 410: gone for good"}

    async def test_response_error(self) -> None:
        def broken() -> dict:
            return {"when": object()}

        async with TestClient(_app("/broken", bind_n(broken))) as client:
            response = await client.get("/broken")
        assert response.status == 500
        assert json.loads(response.text) == {
            "err": "response error: body read error: Object of type object is not JSON serializable"
        }

    async def test_unconvertible_return_value(self) -> None:
        def odd() -> int:
            return 42

        async with TestClient(_app("/odd", bind_n(odd))) as client:
            response = await client.get("/odd")
        assert response.status == 500
        assert json.loads(response.text)["err"].startswith("response error: body read error: Cannot convert int")

    async def test_custom_error_handler(self) -> None:
        def fail() -> None:
            raise ValueError("nope")

        app = App(error_handler=lambda status, exc: new_text_response(f"{status} {exc}", with_status_code(status)))
        app.router.get("/fail", bind_n(fail))
        async with TestClient(app) as client:
            response = await client.get("/fail")
        assert response.status == 500
        assert response.text == "500 handler error: nope"

    async def test_failing_error_handler_falls_back_to_json(self) -> None:
        def fail() -> None:
            raise ValueError("nope")

        def broken_handler(status, exc):
            raise RuntimeError("handler broke")

        app = App(error_handler=broken_handler)
        app.router.get("/fail", bind_n(fail))
        async with TestClient(app) as client:
            response = await client.get("/fail")
        assert json.loads(response.text) == {"err": "handler error: nope"}
