"""Health checks.

A ``HealthRegistry`` collects named checks (every HTTP server registers
its own health flag) and runs them into a ``HealthCheckResult``. The
result is served as JSON::

    GET /health  ->  200 {}
    GET /health  ->  500 {"httpserver-default": "unhealthy", "db": "connection refused"}

Each HTTP server answers ``GET /health`` itself; ``HealthCheckServer``
serves the same endpoint on a dedicated port for orchestrators.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from warble._internal.invoke import invoke
from warble.app import App
from warble.config import HealthCheckSettings, LoggingSettings
from warble.http.request import Request
from warble.http.response import Response, new_json_response, with_status_code
from warble.middleware.logging import LoggingMiddleware
from warble.server.engine import Engine

logger = logging.getLogger("warble.health")

type HealthCheck = Callable[[], bool | Awaitable[bool]]


@dataclass(frozen=True, slots=True)
class ModuleHealth:
    """The health of one named module. ``error`` explains a failed check."""

    name: str
    healthy: bool
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class HealthCheckResult:
    modules: tuple[ModuleHealth, ...] = ()

    def is_healthy(self) -> bool:
        return all(module.healthy for module in self.modules)

    def unhealthy(self) -> list[ModuleHealth]:
        return [module for module in self.modules if not module.healthy]

    @property
    def error(self) -> BaseException | None:
        """The error of the failed checks, grouped when more than one failed."""
        errors = [module.error for module in self.modules if module.error is not None]
        if not errors:
            return None
        if len(errors) == 1:
            return errors[0]
        return BaseExceptionGroup("health checks failed", errors)


type HealthChecker = Callable[[], HealthCheckResult | Awaitable[HealthCheckResult]]


class HealthRegistry:
    """Named health checks. A check that raises counts as unhealthy with that error.

    The registry itself is a ``HealthChecker``::

        registry = HealthRegistry()
        registry.register("db", db.ping)
        result = await registry()
    """

    __slots__ = ("_checks",)

    def __init__(self) -> None:
        self._checks: dict[str, HealthCheck] = {}

    def register(self, name: str, check: HealthCheck) -> None:
        self._checks[name] = check

    def unregister(self, name: str) -> None:
        self._checks.pop(name, None)

    @property
    def names(self) -> list[str]:
        return list(self._checks)

    async def check(self) -> HealthCheckResult:
        modules = []
        for name, check in list(self._checks.items()):
            try:
                healthy = bool(await invoke(check))
            except Exception as exc:
                modules.append(ModuleHealth(name=name, healthy=False, error=exc))
            else:
                modules.append(ModuleHealth(name=name, healthy=healthy))
        return HealthCheckResult(modules=tuple(modules))

    async def __call__(self) -> HealthCheckResult:
        return await self.check()


def health_endpoint(checker: HealthChecker, logger: logging.Logger = logger) -> Callable[[Request], Awaitable[Response]]:
    """An endpoint answering 200 ``{}`` when healthy, else 500 with one entry per unhealthy module."""

    async def health(request: Request) -> Response:
        result: HealthCheckResult = await invoke(checker)
        if result.is_healthy():
            return new_json_response({})

        if result.error is not None:
            logger.error("encountered an error during the health check: %s", result.error)

        body = {module.name: str(module.error) if module.error is not None else "unhealthy" for module in result.unhealthy()}
        return new_json_response(body, with_status_code(500))

    return health


class HealthCheckServer(Engine):
    """Serves the health endpoint on its own port, with an access log."""

    label = "httpserver health check"

    def __init__(
        self,
        settings: HealthCheckSettings,
        checker: HealthChecker,
        *,
        host: str = "0.0.0.0",
        logger: logging.Logger | None = None,
    ) -> None:
        logger = logger or logging.getLogger("warble.health")
        app = App("health-check", timeouts=settings.timeout)
        app.use(LoggingMiddleware(LoggingSettings(), logger=logger))
        app.router.get(settings.path, health_endpoint(checker, logger))
        app.freeze()
        super().__init__(app, host=host, port=settings.port, timeouts=settings.timeout, logger=logger)
        self.settings = settings
