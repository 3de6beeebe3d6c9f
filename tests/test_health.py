"""Tests for warble.health — registry, result, and endpoint."""

import json
import logging

import pytest

from warble.app import App
from warble.config import HealthCheckSettings
from warble.health import HealthCheckResult, HealthCheckServer, HealthRegistry, ModuleHealth, health_endpoint
from warble.testing import TestClient


def _app(registry: HealthRegistry) -> App:
    app = App()
    app.router.get("/health", health_endpoint(registry))
    return app


class TestHealthCheckResult:
    def test_empty_is_healthy(self) -> None:
        result = HealthCheckResult()
        assert result.is_healthy()
        assert result.error is None

    def test_single_error(self) -> None:
        err = ConnectionError("refused")
        result = HealthCheckResult((ModuleHealth("db", False, err), ModuleHealth("cache", True)))
        assert not result.is_healthy()
        assert [m.name for m in result.unhealthy()] == ["db"]
        assert result.error is err

    def test_grouped_errors(self) -> None:
        result = HealthCheckResult(
            (ModuleHealth("a", False, ValueError("x")), ModuleHealth("b", False, ValueError("y")))
        )
        assert isinstance(result.error, BaseExceptionGroup)
        assert len(result.error.exceptions) == 2


class TestHealthRegistry:
    async def test_sync_and_async_checks(self) -> None:
        registry = HealthRegistry()

        async def cache() -> bool:
            return True

        registry.register("db", lambda: True)
        registry.register("cache", cache)
        result = await registry()
        assert result.is_healthy()
        assert registry.names == ["db", "cache"]

    async def test_raising_check_is_unhealthy(self) -> None:
        registry = HealthRegistry()

        def db() -> bool:
            raise ConnectionError("refused")

        registry.register("db", db)
        result = await registry.check()
        (module,) = result.modules
        assert module.healthy is False
        assert str(module.error) == "refused"

    async def test_unregister(self) -> None:
        registry = HealthRegistry()
        registry.register("db", lambda: False)
        registry.unregister("db")
        registry.unregister("unknown")
        assert (await registry()).is_healthy()


class TestHealthEndpoint:
    async def test_healthy(self) -> None:
        registry = HealthRegistry()
        registry.register("httpserver-default", lambda: True)
        async with TestClient(_app(registry)) as client:
            response = await client.get("/health")
        assert response.status == 200
        assert json.loads(response.text) == {}

    async def test_unhealthy(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.ERROR, logger="warble.health")
        registry = HealthRegistry()
        registry.register("httpserver-default", lambda: False)

        def db() -> bool:
            raise ConnectionError("connection refused")

        registry.register("db", db)
        async with TestClient(_app(registry)) as client:
            response = await client.get("/health")

        assert response.status == 500
        assert json.loads(response.text) == {"httpserver-default": "unhealthy", "db": "connection refused"}
        assert "encountered an error during the health check: connection refused" in caplog.text


class TestHealthCheckServer:
    async def test_serves_configured_path(self) -> None:
        registry = HealthRegistry()
        registry.register("db", lambda: True)
        server = HealthCheckServer(HealthCheckSettings(path="/ready", port=0), registry, host="127.0.0.1")
        async with TestClient(server.app) as client:
            assert (await client.get("/ready")).status == 200
            assert (await client.get("/health")).status == 404
        assert server.timeouts.shutdown == 5.0
        assert server.label == "httpserver health check"
