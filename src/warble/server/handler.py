"""ASGI handler — translates ASGI scope/messages to warble types.

The only component (besides the sender and the SSE writer) that touches
raw ASGI directly. Converts the scope to a typed Request, runs the
server middleware around route dispatch, and sends the result back
through ASGI send().
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import Any

from warble._internal.asgi import Receive, Scope, Send
from warble._internal.invoke import invoke
from warble.config import TimeoutSettings
from warble.errors import ClientDisconnect, HTTPError, PipelineError, is_connection_error
from warble.http.request import Request
from warble.http.response import SSEResponse
from warble.middleware.protocol import AnyResponse, Next
from warble.realtime.sse import SseWriter, stream_sse
from warble.routing.table import RouteTable
from warble.server.errors import ErrorHandler, json_error_handler, render_error
from warble.server.negotiation import negotiate
from warble.server.sender import send_response

logger = logging.getLogger("warble.server")


def chain(middleware: Sequence[Callable[..., Any]], endpoint: Next) -> Next:
    """Wrap *middleware* around *endpoint*; the first entry runs outermost."""
    handler = endpoint
    for mw in reversed(middleware):
        outer = handler

        async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> AnyResponse:
            return await _mw(req, _next)

        handler = make_next
    return handler


def route_dispatcher(table: RouteTable) -> Next:
    """Innermost handler: match the route, then run its handler chain."""

    async def dispatch(request: Request) -> AnyResponse:
        match = table.match(request.method, request.path)
        request._cache["route"] = match.route
        request = replace(request, path_params=match.path_params)
        route = match.route

        async def endpoint(req: Request) -> AnyResponse:
            return negotiate(await invoke(route.endpoint, req))

        return await chain(route.middleware, endpoint)(request)

    return dispatch


async def handle_request(
    scope: Scope,
    receive: Receive,
    send: Send,
    *,
    pipeline: Next,
    error_handler: ErrorHandler = json_error_handler,
    timeouts: TimeoutSettings | None = None,
) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return
    timeouts = timeouts or TimeoutSettings()

    request = Request.from_asgi(scope, receive, read_timeout=timeouts.read)

    try:
        response = await pipeline(request)
    except ClientDisconnect:
        return
    except (HTTPError, PipelineError) as exc:
        response = render_error(error_handler, exc)
    except Exception as exc:
        if is_connection_error(exc):
            return
        logger.exception("unhandled error in %s %s", request.method, request.path)
        response = render_error(error_handler, exc)

    if isinstance(response, SSEResponse):
        await _send_sse(response, send, receive, error_handler=error_handler, write_timeout=timeouts.write)
        return

    try:
        await send_response(response, send, head=request.method == "HEAD", write_timeout=timeouts.write)
    except ClientDisconnect as exc:
        logger.info("client went away before the response was written: %s", exc)


async def _send_sse(
    response: SSEResponse,
    send: Send,
    receive: Receive,
    *,
    error_handler: ErrorHandler,
    write_timeout: float,
) -> None:
    writer = SseWriter(send, write_timeout=write_timeout)
    try:
        await stream_sse(response.producer, writer, receive)
    except Exception as exc:
        if writer.started:
            # Headers are out; the status can't change anymore
            logger.error("event stream failed after the first event: %s", exc)
            return
        try:
            await send_response(render_error(error_handler, exc), send, write_timeout=write_timeout)
        except ClientDisconnect:
            return
