"""HTTP server module.

``new_server`` assembles one named server from a router factory::

    def router_factory(config, router):
        router.get("/orders/{id:int}", bind(get_order))

    server = new_server("default", router_factory, config=config)
    await server.run()

Assembly order: settings, server middleware (logging, metrics,
recovery, connection lifecycle, error translation), ``GET /health``,
the router factory, the router build, metric seeding, and finally the
listening socket. The socket is bound before ``new_server`` returns.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import anyio

from warble._internal.types import Config
from warble.app import App
from warble.config import ServerSettings, server_settings
from warble.errors import ConfigurationError
from warble.health import HealthRegistry, health_endpoint
from warble.metrics.datum import MetricWriter
from warble.metrics.prometheus import PrometheusMetricWriter
from warble.middleware.errors import ErrorTranslation
from warble.middleware.lifecycle import ConnectionLifecycle
from warble.middleware.logging import LoggingMiddleware
from warble.middleware.metrics import MetricsMiddleware
from warble.middleware.protocol import Middleware
from warble.middleware.recover import Recovery
from warble.routing.router import Router
from warble.server.engine import Engine
from warble.server.errors import ErrorHandler, json_error_handler
from warble.server.metadata import ServerMetadata

type RouterFactory = Callable[[Config, Router], None]

HEALTH_PATH = "/health"


def module_name(name: str) -> str:
    return f"httpserver-{name}"


class HttpServer(Engine):
    """One named HTTP server on its own pre-opened socket."""

    label = "httpserver"

    def __init__(
        self,
        app: App,
        settings: ServerSettings,
        *,
        lifecycle: ConnectionLifecycle | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(
            app,
            host=settings.host,
            port=settings.port,
            timeouts=settings.timeout,
            lifecycle=lifecycle,
            logger=logger or logging.getLogger(f"warble.server.{module_name(app.name)}"),
        )
        self.settings = settings

    @property
    def name(self) -> str:
        return self.app.name

    @property
    def metadata(self) -> ServerMetadata:
        return self.app.metadata

    def _on_open(self, address: str) -> None:
        self.logger.info("serving httpserver requests on address %s", address)

    async def _drain(self) -> None:
        if self.lifecycle is not None:
            self.lifecycle.start_draining()
        self.logger.info("waiting %gs until shutting down the server", self.timeouts.drain)
        await anyio.sleep(self.timeouts.drain)


def new_server(
    name: str,
    router_factory: RouterFactory,
    *,
    config: Config | None = None,
    settings: ServerSettings | None = None,
    writer: MetricWriter | None = None,
    health: HealthRegistry | None = None,
    error_handler: ErrorHandler = json_error_handler,
    middleware: Sequence[Middleware] = (),
) -> HttpServer:
    """Create, build, and open the HTTP server *name*.

    Settings come from ``httpserver.<name>`` in *config* unless given.
    The server registers its health flag in *health* (a fresh registry
    if omitted) and answers ``GET /health`` from it.

    Raises:
        ConfigurationError: The router factory or the router build failed.
        OSError: The socket could not be bound.
    """
    config = config or {}
    settings = settings or server_settings(config, name)
    writer = writer if writer is not None else PrometheusMetricWriter()
    health = health if health is not None else HealthRegistry()
    logger = logging.getLogger(f"warble.server.{module_name(name)}")

    app = App(name, config=config, error_handler=error_handler, timeouts=settings.timeout)
    lifecycle = ConnectionLifecycle()
    metrics = MetricsMiddleware(name, writer)
    app.use(
        LoggingMiddleware(settings.logging),
        metrics,
        Recovery(logger=logger),
        lifecycle,
        ErrorTranslation(error_handler),
        *middleware,
    )
    app.router.get(HEALTH_PATH, health_endpoint(health, logger))

    try:
        router_factory(config, app.router)
    except Exception as exc:
        msg = f"can not create router from factory: {exc}"
        raise ConfigurationError(msg) from exc

    app.on_build(metrics.seed)
    try:
        app.freeze()
    except ConfigurationError as exc:
        msg = f"could not build router: {exc}"
        raise ConfigurationError(msg) from exc

    server = HttpServer(app, settings, lifecycle=lifecycle, logger=logger)
    health.register(module_name(name), server.is_healthy)
    server.open()
    return server
