"""App — the ASGI application behind one warble server."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any

from warble._internal.asgi import Receive, Scope, Send
from warble._internal.invoke import invoke
from warble._internal.types import Config
from warble.config import TimeoutSettings
from warble.errors import ConfigurationError
from warble.middleware.protocol import Middleware, Next
from warble.routing.route import Route
from warble.routing.router import Router
from warble.routing.table import RouteTable
from warble.server.errors import ErrorHandler, json_error_handler
from warble.server.handler import chain, handle_request, route_dispatcher
from warble.server.metadata import ServerMetadata

logger = logging.getLogger("warble.server")

type BuildHook = Callable[[Sequence[Route]], None]


class App:
    """A named ASGI application: a root router plus server-wide middleware.

    Mutable during setup (routes, middleware, hooks). Frozen when
    ``freeze()`` is called or the first request arrives: the router
    tree is built once, the route table compiled, and the build hooks
    run with the final route list.

    The error handler is a field of the app, never global state, so
    apps with different handlers can run side by side.

    Thread safety:
        The freeze transition uses a Lock + double-check so exactly one
        thread compiles the app, even if several requests arrive on
        first use.
    """

    __slots__ = (
        "_build_hooks",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_pipeline",
        "_routes",
        "_shutdown_hooks",
        "_startup_hooks",
        "config",
        "error_handler",
        "name",
        "router",
        "timeouts",
    )

    def __init__(
        self,
        name: str = "default",
        *,
        config: Config | None = None,
        error_handler: ErrorHandler = json_error_handler,
        timeouts: TimeoutSettings | None = None,
    ) -> None:
        self.name = name
        self.config: Config = config or {}
        self.error_handler = error_handler
        self.timeouts = timeouts or TimeoutSettings()
        self.router = Router()
        self._middleware: list[Middleware] = []
        self._build_hooks: list[BuildHook] = []
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._frozen = False
        self._freeze_lock = threading.Lock()

        # Compiled state, set during _freeze()
        self._routes: tuple[Route, ...] = ()
        self._pipeline: Next | None = None

    def __repr__(self) -> str:
        return f"<App {self.name!r} frozen={self._frozen}>"

    # -- Setup --

    def use(self, *middleware: Middleware) -> App:
        """Add server-wide middleware; runs outside route matching, first added outermost."""
        self._check_not_frozen()
        for mw in middleware:
            if mw is None:
                msg = "middleware must not be None"
                raise ConfigurationError(msg)
            self._middleware.append(mw)
        return self

    def on_build(self, hook: BuildHook) -> BuildHook:
        """Run *hook* with the built route list once the app is frozen."""
        self._check_not_frozen()
        self._build_hooks.append(hook)
        return hook

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync hook for ASGI lifespan startup."""
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync hook for ASGI lifespan shutdown."""
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Compiled state --

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def routes(self) -> tuple[Route, ...]:
        self._ensure_frozen()
        return self._routes

    @property
    def metadata(self) -> ServerMetadata:
        return ServerMetadata.from_routes(self.name, self.routes)

    def freeze(self) -> None:
        """Build the router tree now. Build errors raise ``ConfigurationError``."""
        self._ensure_frozen()

    # -- ASGI --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        self._ensure_frozen()
        assert self._pipeline is not None

        await handle_request(
            scope,
            receive,
            send,
            pipeline=self._pipeline,
            error_handler=self.error_handler,
            timeouts=self.timeouts,
        )

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    self._ensure_frozen()
                    for hook in self._startup_hooks:
                        await invoke(hook)
                except Exception as exc:
                    logger.exception("startup of %s failed", self.name)
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                for hook in self._shutdown_hooks:
                    try:
                        await invoke(hook)
                    except Exception:
                        logger.exception("shutdown hook of %s failed", self.name)
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """MUST only be called while holding _freeze_lock."""
        routes = self.router.build(self.config)
        table = RouteTable(routes)
        self._routes = tuple(table.routes)
        self._pipeline = chain(self._middleware, route_dispatcher(table))
        self._frozen = True

        # Late factories have run by now, so hooks see every route
        for hook in self._build_hooks:
            hook(self._routes)

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has been built. "
                "Register routes, middleware, and hooks before serving."
            )
            raise RuntimeError(msg)
