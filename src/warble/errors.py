"""Warble exception hierarchy.

Shared across Router, binding, the request pipeline, and the server
lifecycle so every module raises and catches the same types.

Pipeline errors carry the stage that failed in their message::

    bind error: json: Expecting value: line 1 column 1 (char 0)
    handler error: order 42 does not exist
    response error: body read error: Object of type Decimal is not JSON serializable
"""

import asyncio
from dataclasses import dataclass

import anyio


class WarbleError(Exception):
    """Base for all warble-specific errors."""


class ConfigurationError(WarbleError):
    """Raised when router or server configuration is invalid.

    Surfaces while building the router or opening the server, never
    while serving requests.
    """


class ServerNotRunningError(WarbleError):
    """Raised when server state is requested before the server is running."""


class ClientDisconnect(WarbleError):
    """The client went away. No response can be written."""


@dataclass(frozen=True, slots=True)
class HTTPError(WarbleError):
    """An error that maps directly to an HTTP status code.

    Raised by the route table, middleware, or handlers. The pipeline
    converts it into a response through the configured error handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: nothing is routed at this path."""

    def __init__(self, detail: str = "not found") -> None:
        super().__init__(404, detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: the path is routed, but not for this method. Carries ``Allow``."""

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        methods = ", ".join(sorted(allowed))
        super().__init__(405, detail or f"method not allowed, use one of {methods}", (("Allow", methods),))


class RequestTimeout(HTTPError):  # noqa: N818
    """408: the body did not arrive within the read timeout."""

    def __init__(self, detail: str = "timed out reading the request body") -> None:
        super().__init__(408, detail)


class PipelineError(WarbleError):
    """A failure in one stage of a bound handler.

    Not a fault: pipeline errors flow to the error handler as ordinary
    errors, with ``status`` as the response status.
    """

    prefix = "pipeline error"

    def __init__(self, cause: BaseException | str, *, status: int = 500) -> None:
        self.cause = cause
        self.status = status
        super().__init__(f"{self.prefix}: {cause}")


class BindError(PipelineError):
    """Decoding the request into the handler's input failed."""

    prefix = "bind error"

    def __init__(self, decoder: str, cause: BaseException | str, *, status: int = 500) -> None:
        self.decoder = decoder
        super().__init__(f"{decoder}: {cause}", status=status)


class HandlerError(PipelineError):
    """The application handler raised."""

    prefix = "handler error"


class ResponseError(PipelineError):
    """Producing the response body failed after the handler succeeded."""

    prefix = "response error"

    def __init__(self, cause: BaseException | str, *, status: int = 500) -> None:
        super().__init__(f"body read error: {cause}", status=status)


_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    ClientDisconnect,
    ConnectionResetError,
    ConnectionAbortedError,
    BrokenPipeError,
    anyio.BrokenResourceError,
    anyio.ClosedResourceError,
    anyio.EndOfStream,
)


def is_connection_error(exc: BaseException) -> bool:
    """True if *exc* (or what it wraps) means the client connection is gone."""
    current: object = exc
    while isinstance(current, BaseException):
        if isinstance(current, _CONNECTION_ERRORS):
            return True
        current = getattr(current, "cause", None) or current.__cause__
    return False


def is_request_canceled(exc: BaseException) -> bool:
    """True if *exc* is a cancellation of the request task."""
    return isinstance(exc, asyncio.CancelledError)
