"""Running servers as one application.

``run_servers`` creates every named HTTP server (module
``httpserver-<name>``), the health check server and, when enabled, the
profiling server, runs them in one task group, and stops them all on
SIGINT or SIGTERM::

    run_default_server(router_factory, config=load_config("config.yml"))
"""

import logging
import signal
from collections.abc import Mapping

import anyio

from warble._internal.types import Config
from warble.config import health_check_settings, profiling_settings
from warble.debug.profiling import ProfilingServer
from warble.health import HealthCheckServer, HealthRegistry
from warble.metrics.datum import MetricWriter
from warble.metrics.prometheus import PrometheusMetricWriter
from warble.server.engine import Engine
from warble.server.module import RouterFactory, new_server

logger = logging.getLogger("warble.server")

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def create_engines(
    servers: Mapping[str, RouterFactory],
    *,
    config: Config | None = None,
    writer: MetricWriter | None = None,
) -> list[Engine]:
    """Create and open every server. Any failure closes what was opened and re-raises."""
    config = config or {}
    writer = writer if writer is not None else PrometheusMetricWriter()
    health = HealthRegistry()
    engines: list[Engine] = []
    try:
        for name, router_factory in servers.items():
            engines.append(new_server(name, router_factory, config=config, writer=writer, health=health))

        health_server = HealthCheckServer(health_check_settings(config), health)
        health_server.open()
        engines.append(health_server)

        profiling = profiling_settings(config)
        if profiling.enabled:
            profiling_server = ProfilingServer(profiling)
            profiling_server.open()
            engines.append(profiling_server)
    except BaseException:
        for engine in engines:
            engine.close()
        raise
    return engines


async def serve(engines: list[Engine]) -> None:
    """Run *engines* until a stop signal arrives or one of them fails."""

    async def stop_all() -> None:
        async with anyio.create_task_group() as tg:
            for engine in engines:
                tg.start_soon(engine.stop)

    async def watch_signals() -> None:
        with anyio.open_signal_receiver(*STOP_SIGNALS) as signals:
            async for signum in signals:
                logger.info("received %s, stopping", signal.Signals(signum).name)
                await stop_all()
                return

    async with anyio.create_task_group() as tg:
        tg.start_soon(watch_signals)
        async with anyio.create_task_group() as servers:
            for engine in engines:
                servers.start_soon(engine.run)
        tg.cancel_scope.cancel()


def run_servers(
    servers: Mapping[str, RouterFactory],
    *,
    config: Config | None = None,
    writer: MetricWriter | None = None,
) -> None:
    """Create and run *servers* until SIGINT or SIGTERM."""
    engines = create_engines(servers, config=config, writer=writer)
    anyio.run(serve, engines)


def run_default_server(
    router_factory: RouterFactory,
    *,
    config: Config | None = None,
    writer: MetricWriter | None = None,
) -> None:
    """Run a single server named ``default``."""
    run_servers({"default": router_factory}, config=config, writer=writer)
