"""Middleware — Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> Response

Built-in middleware (installed by ``new_server`` in this order):
    LoggingMiddleware -- Structured access log with correlation ids
    MetricsMiddleware -- Request count, latency and status class per route
    Recovery -- Turn unexpected exceptions into 500 responses
    ConnectionLifecycle -- In-flight tracking and draining
    ErrorTranslation -- Pipeline errors through the error handler

Optional:
    EmbeddedFiles -- Serve a packaged single-page app
"""

from warble.middleware.embedded import EmbeddedFiles
from warble.middleware.errors import ErrorTranslation
from warble.middleware.lifecycle import ConnectionLifecycle
from warble.middleware.logging import LoggingMiddleware
from warble.middleware.metrics import MetricsMiddleware
from warble.middleware.protocol import AnyResponse, Middleware, Next
from warble.middleware.recover import Recovery

__all__ = [
    "AnyResponse",
    "ConnectionLifecycle",
    "EmbeddedFiles",
    "ErrorTranslation",
    "LoggingMiddleware",
    "Middleware",
    "MetricsMiddleware",
    "Next",
    "Recovery",
]
