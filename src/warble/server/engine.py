"""Serving an App on a pre-opened socket with uvicorn.

``Engine`` owns one listening socket and one ``uvicorn.Server``. The
socket is bound in ``open()``, before anything runs, so the port exists
(and ``get_port()`` answers) as soon as the server has been created.

Lifecycle::

    created -> open (listening, unhealthy) -> run (healthy once uvicorn
    has started) -> stop (unhealthy, drain, graceful shutdown) -> stopped

Signals are never captured here; whoever runs the engines decides when
to call ``stop()``.
"""

from __future__ import annotations

import contextlib
import logging
import math
import socket
import threading
from collections.abc import Generator

import anyio
import uvicorn

from warble.app import App
from warble.config import TimeoutSettings
from warble.errors import ServerNotRunningError, WarbleError
from warble.middleware.lifecycle import ConnectionLifecycle

# Extra time granted to uvicorn on top of the shutdown timeout before giving up on it
SHUTDOWN_GRACE = 1.0

_STARTUP_POLL_INTERVAL = 0.01


class HealthFlag:
    """Process-local boolean shared between the lifecycle task and health readers.

    Backed by ``threading.Event``: setting and reading never block and
    need no lock shared with other state.
    """

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self, value: bool = True) -> None:
        if value:
            self._event.set()
        else:
            self._event.clear()

    def clear(self) -> None:
        self._event.clear()

    def is_set(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()


class _UvicornServer(uvicorn.Server):
    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None]:
        yield


class Engine:
    """Runs *app* on its own socket."""

    label = "httpserver"

    def __init__(
        self,
        app: App,
        *,
        host: str = "0.0.0.0",
        port: int = 0,
        timeouts: TimeoutSettings | None = None,
        lifecycle: ConnectionLifecycle | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.app = app
        self.host = host
        self.port = port
        self.timeouts = timeouts or TimeoutSettings()
        self.lifecycle = lifecycle
        self.logger = logger or logging.getLogger("warble.server")
        self._healthy = HealthFlag()
        self._socket: socket.socket | None = None
        self._bound_port: int | None = None
        self._server: _UvicornServer | None = None
        self._done: anyio.Event | None = None
        self._stopping = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.app.name!r} port={self._bound_port}>"

    # -- Socket --

    def open(self) -> None:
        """Bind and listen. A bind failure raises ``OSError``; it is fatal at startup."""
        if self._socket is not None:
            return
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(socket.SOMAXCONN)
        except OSError:
            sock.close()
            raise
        self._socket = sock
        self._bound_port = sock.getsockname()[1]
        self._on_open(self.address)

    def _on_open(self, address: str) -> None:
        self.logger.debug("%s listening on address %s", self.label, address)

    @property
    def address(self) -> str:
        port = self.get_port()
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{port}"

    def get_port(self) -> int:
        """The bound port. Raises ``ServerNotRunningError`` before ``open()``."""
        if self._bound_port is None:
            raise ServerNotRunningError("could not get port. module is not yet running")
        return self._bound_port

    # -- Health --

    def is_healthy(self) -> bool:
        """True only while uvicorn is accepting connections and no stop has begun."""
        return self._healthy.is_set()

    # -- Run / stop --

    @property
    def graceful_shutdown_seconds(self) -> int:
        """Whole seconds uvicorn waits for requests before cancelling them, never below ``shutdown``."""
        return max(1, math.ceil(self.timeouts.shutdown))

    def uvicorn_config(self) -> uvicorn.Config:
        return uvicorn.Config(
            self.app,
            lifespan="on",
            log_config=None,
            access_log=False,
            proxy_headers=False,
            server_header=False,
            timeout_keep_alive=max(1, math.ceil(self.timeouts.idle)),
            timeout_graceful_shutdown=self.graceful_shutdown_seconds,
        )

    async def run(self) -> None:
        """Serve until ``stop()`` is called."""
        if self._stopping:
            return
        self.open()
        assert self._socket is not None

        self._done = anyio.Event()
        server = self._server = _UvicornServer(self.uvicorn_config())
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._watch_started, server)
                try:
                    await server.serve(sockets=[self._socket])
                finally:
                    tg.cancel_scope.cancel()
        finally:
            self._healthy.clear()
            self._done.set()

        if not server.started:
            msg = f"{self.label} closed unexpectedly: startup failed"
            raise WarbleError(msg)
        self.logger.info("leaving %s", self.label)

    async def _watch_started(self, server: _UvicornServer) -> None:
        while not server.started:
            if server.should_exit:
                return
            await anyio.sleep(_STARTUP_POLL_INTERVAL)
        if not self._stopping:
            self._healthy.set()

    async def stop(self) -> None:
        """Flip health off, drain, then shut down gracefully. Safe to call twice.

        Shutdown errors are logged, never raised.
        """
        if self._stopping:
            return
        self._stopping = True
        self._healthy.clear()

        await self._drain()

        self.logger.info("trying to gracefully shutdown %s", self.label)
        server, done = self._server, self._done
        if server is None or done is None:
            self.close()
            return

        deadline = anyio.current_time() + self.graceful_shutdown_seconds + SHUTDOWN_GRACE
        server.should_exit = True
        # uvicorn cancels leftovers no earlier than this wait ends
        if self.lifecycle is not None and not await self.lifecycle.wait_idle(self.timeouts.shutdown):
            self.logger.error(
                "server shutdown: %d request(s) still in flight after %gs are terminated",
                self.lifecycle.in_flight,
                self.timeouts.shutdown,
            )
        with anyio.CancelScope(deadline=deadline):
            await done.wait()
        if not done.is_set():
            server.force_exit = True
            self.logger.error("server shutdown: not finished within %gs", self.timeouts.shutdown)

    async def _drain(self) -> None:
        return None

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
