"""Tests for warble.debug.profiling — the /debug/profiling endpoints."""

import sys
import tracemalloc

import pytest

from warble.app import App
from warble.config import ProfilingSettings
from warble.debug.profiling import BASE_PATH, ProfilingServer, add_profiling_endpoints
from warble.testing import TestClient


@pytest.fixture
def app() -> App:
    app = App("profiling")
    add_profiling_endpoints(app.router)
    return app


class TestProfilingEndpoints:
    async def test_index(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get(BASE_PATH)
        assert response.status == 200
        assert f"{BASE_PATH}/heap" in response.text

    async def test_cmdline(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get(f"{BASE_PATH}/cmdline")
        assert response.text.split("\x00") == sys.argv

    async def test_threads(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get(f"{BASE_PATH}/threads")
        assert "MainThread" in response.text

    async def test_tasks(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get(f"{BASE_PATH}/tasks")
        assert "task(s)" in response.text

    async def test_profile(self, app: App) -> None:
        async with TestClient(app) as client:
            response = await client.get(f"{BASE_PATH}/profile?seconds=0.05")
        assert response.status == 200
        assert "function calls" in response.text

    @pytest.mark.parametrize("seconds", ["abc", "0", "601"])
    async def test_profile_invalid_seconds(self, app: App, seconds: str) -> None:
        async with TestClient(app) as client:
            response = await client.get(f"{BASE_PATH}/profile?seconds={seconds}")
        assert response.status == 400

    async def test_heap(self, app: App) -> None:
        was_tracing = tracemalloc.is_tracing()
        try:
            async with TestClient(app) as client:
                first = await client.get(f"{BASE_PATH}/heap")
                second = await client.get(f"{BASE_PATH}/heap")
            if not was_tracing:
                assert first.text.startswith("tracemalloc started")
            assert second.text.startswith("traced: ")
        finally:
            if not was_tracing:
                tracemalloc.stop()


class TestProfilingServer:
    def test_routes(self) -> None:
        server = ProfilingServer(ProfilingSettings(enabled=True, port=0), host="127.0.0.1")
        paths = {handler.path for handler in server.app.metadata.handlers}
        assert paths == {f"{BASE_PATH}{suffix}" for suffix in ("", "/cmdline", "/heap", "/profile", "/tasks", "/threads")}
        assert server.label == "profiling api server"
