"""Typed handler wrapping — the ``bind`` family.

Turns a typed application handler into a route endpoint
``(request) -> Response``: decode the input, call the handler, read the
response body once. Each stage reports its own failure::

    bind error: json: Expecting value: line 1 column 1 (char 0)
    handler error: order 42 does not exist
    response error: body read error: Object of type Decimal is not JSON serializable

Variants follow one naming scheme. ``_r`` handlers also receive the
``Request``; ``_n`` handlers take no input; ``bind_sse*`` handlers get
an ``SseWriter`` instead of returning a response::

    bind(handler)          handler(input)
    bind_r(handler)        handler(request, input)
    bind_n(handler)        handler()
    bind_nr(handler)       handler(request)
    bind_sse(handler)      handler(input, writer)
    bind_sse_r(handler)    handler(request, input, writer)
    bind_sse_n(handler)    handler(writer)
    bind_sse_nr(handler)   handler(request, writer)

Handlers may be ``def`` or ``async def``. The input type is read from
the annotation of the input parameter, or given as ``input_type=``.
"""

import inspect
from collections.abc import Callable, Sequence
from typing import Any, get_type_hints

from warble._internal.invoke import callable_name, invoke
from warble.binding.decoders import Decoder
from warble.binding.resolver import bind_input
from warble.binding.schema import Schema
from warble.errors import ClientDisconnect, ConfigurationError, HandlerError, HTTPError, PipelineError, ResponseError
from warble.http.request import Request
from warble.http.response import Response, SSEResponse
from warble.realtime.sse import SseWriter
from warble.server.negotiation import negotiate

__all__ = [
    "bind",
    "bind_n",
    "bind_nr",
    "bind_r",
    "bind_sse",
    "bind_sse_n",
    "bind_sse_nr",
    "bind_sse_r",
]

type Endpoint = Callable[[Request], Any]


def _input_type(handler: Callable[..., Any], position: int, explicit: type | None) -> type:
    """Resolve and validate the input dataclass of *handler*."""
    if explicit is not None:
        Schema.of(explicit)
        return explicit

    name = callable_name(handler)
    target = handler if inspect.isfunction(handler) or inspect.ismethod(handler) else getattr(handler, "__call__", handler)
    try:
        params = list(inspect.signature(target).parameters.values())
        hints = get_type_hints(target)
    except (NameError, TypeError, ValueError) as exc:
        msg = f"can not inspect handler {name}: {exc}"
        raise ConfigurationError(msg) from exc

    if len(params) <= position:
        msg = f"handler {name} must accept its input as parameter {position + 1}"
        raise ConfigurationError(msg)
    annotation = hints.get(params[position].name)
    if annotation is None:
        msg = f"can not determine the input type of handler {name}; annotate parameter {params[position].name!r} or pass input_type="
        raise ConfigurationError(msg)
    Schema.of(annotation)
    return annotation


async def _bind(request: Request, input_type: type, decoders: Sequence[Decoder]) -> Any:
    return await bind_input(request, input_type, decoders or None)


async def _call(handler: Callable[..., Any], *args: Any) -> Any:
    try:
        return await invoke(handler, *args)
    except (ClientDisconnect, PipelineError):
        raise
    except HTTPError as exc:
        raise HandlerError(exc, status=exc.status) from exc
    except Exception as exc:
        raise HandlerError(exc) from exc


def _respond(result: Any) -> Response | SSEResponse:
    """Negotiate *result* and read its body once, before any byte is sent."""
    try:
        response = negotiate(result)
        if isinstance(response, Response):
            response.read_body()
    except Exception as exc:
        raise ResponseError(exc) from exc
    return response


def _endpoint(handler: Callable[..., Any], endpoint: Callable[[Request], Any]) -> Endpoint:
    endpoint.__name__ = getattr(handler, "__name__", endpoint.__name__)
    endpoint.__qualname__ = callable_name(handler)
    endpoint.__doc__ = getattr(handler, "__doc__", None)
    return endpoint


# -- Response handlers --


def bind(
    handler: Callable[..., Any],
    *,
    input_type: type | None = None,
    decoders: Sequence[Decoder] = (),
) -> Endpoint:
    """Wrap ``handler(input)``."""
    target = _input_type(handler, 0, input_type)

    async def endpoint(request: Request) -> Response | SSEResponse:
        value = await _bind(request, target, decoders)
        return _respond(await _call(handler, value))

    return _endpoint(handler, endpoint)


def bind_r(
    handler: Callable[..., Any],
    *,
    input_type: type | None = None,
    decoders: Sequence[Decoder] = (),
) -> Endpoint:
    """Wrap ``handler(request, input)``."""
    target = _input_type(handler, 1, input_type)

    async def endpoint(request: Request) -> Response | SSEResponse:
        value = await _bind(request, target, decoders)
        return _respond(await _call(handler, request, value))

    return _endpoint(handler, endpoint)


def bind_n(handler: Callable[..., Any]) -> Endpoint:
    """Wrap ``handler()``."""

    async def endpoint(request: Request) -> Response | SSEResponse:
        return _respond(await _call(handler))

    return _endpoint(handler, endpoint)


def bind_nr(handler: Callable[..., Any]) -> Endpoint:
    """Wrap ``handler(request)``."""

    async def endpoint(request: Request) -> Response | SSEResponse:
        return _respond(await _call(handler, request))

    return _endpoint(handler, endpoint)


# -- Server-Sent Events handlers --


def bind_sse(
    handler: Callable[..., Any],
    *,
    input_type: type | None = None,
    decoders: Sequence[Decoder] = (),
) -> Endpoint:
    """Wrap ``handler(input, writer)``."""
    target = _input_type(handler, 0, input_type)

    async def endpoint(request: Request) -> SSEResponse:
        value = await _bind(request, target, decoders)

        async def produce(writer: SseWriter) -> None:
            await _call(handler, value, writer)

        return SSEResponse(produce)

    return _endpoint(handler, endpoint)


def bind_sse_r(
    handler: Callable[..., Any],
    *,
    input_type: type | None = None,
    decoders: Sequence[Decoder] = (),
) -> Endpoint:
    """Wrap ``handler(request, input, writer)``."""
    target = _input_type(handler, 1, input_type)

    async def endpoint(request: Request) -> SSEResponse:
        value = await _bind(request, target, decoders)

        async def produce(writer: SseWriter) -> None:
            await _call(handler, request, value, writer)

        return SSEResponse(produce)

    return _endpoint(handler, endpoint)


def bind_sse_n(handler: Callable[..., Any]) -> Endpoint:
    """Wrap ``handler(writer)``."""

    async def endpoint(request: Request) -> SSEResponse:
        async def produce(writer: SseWriter) -> None:
            await _call(handler, writer)

        return SSEResponse(produce)

    return _endpoint(handler, endpoint)


def bind_sse_nr(handler: Callable[..., Any]) -> Endpoint:
    """Wrap ``handler(request, writer)``."""

    async def endpoint(request: Request) -> SSEResponse:
        async def produce(writer: SseWriter) -> None:
            await _call(handler, request, writer)

        return SSEResponse(produce)

    return _endpoint(handler, endpoint)
