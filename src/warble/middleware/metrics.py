"""Request metrics middleware.

Per request, three metrics are written twice: once per route
(``...PerRoute`` with ``Method``, ``Path`` and ``ServerName``) and once
for the whole server (``ServerName`` only). Requests no route matched
are counted for the server only, so ``Path`` takes only values from the
route table::

    HttpRequestResponseTime    Milliseconds
    HttpRequestCount           Count
    HttpStatus<N>XX            Count
"""

import time
from collections.abc import Callable, Iterable

from warble.errors import ClientDisconnect, is_connection_error, is_request_canceled
from warble.http.request import Request
from warble.metrics.datum import MetricDatum, MetricWriter, Unit, with_dimensions
from warble.middleware.protocol import AnyResponse, Next
from warble.routing.route import Route

METRIC_RESPONSE_TIME = "HttpRequestResponseTime"
METRIC_REQUEST_COUNT = "HttpRequestCount"
METRIC_STATUS = "HttpStatus"
PER_ROUTE_SUFFIX = "PerRoute"

CLIENT_CLOSED_REQUEST = 499


class MetricsMiddleware:
    __slots__ = ("_clock", "_server_name", "_writer")

    def __init__(
        self,
        server_name: str,
        writer: MetricWriter,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._server_name = server_name
        self._writer = writer
        self._clock = clock

    def seed(self, routes: Iterable[Route]) -> None:
        """Publish zero counts so every route's series exists before traffic."""
        data = [
            MetricDatum(
                metric_name=METRIC_REQUEST_COUNT + PER_ROUTE_SUFFIX,
                value=0,
                dimensions=self._route_dimensions(route.method, route.path),
            )
            for route in routes
        ]
        data.append(
            MetricDatum(metric_name=METRIC_REQUEST_COUNT, value=0, dimensions={"ServerName": self._server_name})
        )
        self._writer.write(data)

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        start = self._clock()
        status = 500
        try:
            response = await next(request)
            status = response.status
            return response
        except BaseException as exc:
            if isinstance(exc, ClientDisconnect) or is_request_canceled(exc) or is_connection_error(exc):
                status = CLIENT_CLOSED_REQUEST
            raise
        finally:
            elapsed_ms = (self._clock() - start) * 1000
            self._record(request, status, elapsed_ms)

    def _record(self, request: Request, status: int, elapsed_ms: float) -> None:
        data = [
            MetricDatum(metric_name=METRIC_RESPONSE_TIME, value=elapsed_ms, unit=Unit.MILLISECONDS),
            MetricDatum(metric_name=METRIC_REQUEST_COUNT, value=1),
            MetricDatum(metric_name=f"{METRIC_STATUS}{status // 100}XX", value=1),
        ]
        dimensions: dict[str, dict[str, str]] = {}
        if request.route is not None:
            dimensions[PER_ROUTE_SUFFIX] = self._route_dimensions(request.method, request.route.path)
        dimensions[""] = {"ServerName": self._server_name}
        self._writer.write(with_dimensions(data, dimensions))

    def _route_dimensions(self, method: str, path: str) -> dict[str, str]:
        return {"Method": method, "Path": path, "ServerName": self._server_name}
