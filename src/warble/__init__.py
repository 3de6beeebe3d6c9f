"""Warble — typed HTTP servers on ASGI.

Router groups with middleware, content-negotiated request binding,
response values built from options, and a server lifecycle with
health gating and drained shutdown.

Basic usage::

    from dataclasses import dataclass

    from warble import bind, param, run_default_server

    @dataclass
    class GetOrder:
        id: int = param(path=True)

    def get_order(order: GetOrder) -> dict:
        return {"id": order.id}

    def router_factory(config, router):
        router.get("/orders/{id:int}", bind(get_order))

    run_default_server(router_factory)
"""

__version__ = "0.1.0"
__all__ = [
    "AnyResponse",
    "App",
    "BindError",
    "ClientDisconnect",
    "ConfigurationError",
    "HTTPError",
    "HandlerError",
    "HttpServer",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "Request",
    "Response",
    "ResponseError",
    "Router",
    "ServerSettings",
    "SseWriter",
    "WarbleError",
    "bind",
    "bind_n",
    "bind_nr",
    "bind_r",
    "bind_sse",
    "bind_sse_n",
    "bind_sse_nr",
    "bind_sse_r",
    "new_json_response",
    "new_response",
    "new_server",
    "new_status_response",
    "new_text_response",
    "param",
    "run_default_server",
    "run_servers",
    "with_body",
    "with_handler",
    "with_header",
    "with_headers",
    "with_status_code",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import warble`` fast while providing a clean top-level API.
    """
    if name == "App":
        from warble.app import App

        return App

    if name == "Request":
        from warble.http.request import Request

        return Request

    if name in (
        "Response",
        "new_json_response",
        "new_response",
        "new_status_response",
        "new_text_response",
        "with_body",
        "with_header",
        "with_headers",
        "with_status_code",
    ):
        from warble.http import response as _resp

        return getattr(_resp, name)

    if name in ("Router", "with_handler"):
        from warble.routing import router as _router

        return getattr(_router, name)

    if name == "param":
        from warble.binding.schema import param

        return param

    if name.startswith("bind"):
        from warble import dispatch as _dispatch

        if name in _dispatch.__all__:
            return getattr(_dispatch, name)

    if name == "SseWriter":
        from warble.realtime.sse import SseWriter

        return SseWriter

    if name in ("AnyResponse", "Middleware", "Next"):
        from warble.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("HttpServer", "new_server"):
        from warble.server import module as _module

        return getattr(_module, name)

    if name in ("run_servers", "run_default_server"):
        from warble.server import run as _run

        return getattr(_run, name)

    if name == "ServerSettings":
        from warble.config import ServerSettings

        return ServerSettings

    if name in (
        "BindError",
        "ClientDisconnect",
        "ConfigurationError",
        "HTTPError",
        "HandlerError",
        "MethodNotAllowed",
        "NotFound",
        "ResponseError",
        "WarbleError",
    ):
        from warble import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
