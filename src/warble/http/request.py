"""The inbound request seen by middleware and handlers.

Everything except the body is decoded from the ASGI scope up front.
The body is read lazily and at most once; copies made with
``dataclasses.replace`` share that read through ``_cache``.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import anyio

from warble._internal.asgi import Receive, Scope
from warble.errors import ClientDisconnect, RequestTimeout
from warble.http.forms import FORM_URLENCODED, media_type, parse_form_data
from warble.http.headers import Headers
from warble.http.query import QueryParams

if TYPE_CHECKING:
    from warble.http.forms import FormData
    from warble.routing.route import Route


def _address(value: Any) -> tuple[str, int] | None:
    return (value[0], value[1]) if value else None


@dataclass(frozen=True, slots=True)
class Request:
    method: str
    path: str
    headers: Headers
    query: QueryParams
    path_params: dict[str, str]
    http_version: str
    scheme: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None
    read_timeout: float | None

    _receive: Receive

    # body, form, route, error
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive, *, read_timeout: float | None = None) -> Request:
        """Build a request from an ``http`` scope; ``read_timeout`` of 0 means none."""
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers.from_asgi(scope.get("headers", ())),
            query=QueryParams(scope.get("query_string", b"")),
            path_params={},
            http_version=scope.get("http_version", "1.1"),
            scheme=scope.get("scheme", "http"),
            server=_address(scope.get("server")),
            client=_address(scope.get("client")),
            read_timeout=read_timeout or None,
            _receive=receive,
        )

    # -- headers --

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @property
    def media_type(self) -> str:
        """Lower-cased content type without parameters, ``""`` if unset."""
        return media_type(self.content_type)

    @property
    def content_length(self) -> int | None:
        raw = self.headers.get("content-length")
        return int(raw) if raw is not None and raw.isdigit() else None

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def referer(self) -> str:
        return self.headers.get("referer", "")

    @property
    def host(self) -> str:
        """``Host`` header, or ``server`` as ``host:port``."""
        if host := self.headers.get("host"):
            return host
        return f"{self.server[0]}:{self.server[1]}" if self.server else ""

    @property
    def client_ip(self) -> str:
        """Originating address: ``X-Forwarded-For`` (first hop), ``X-Real-IP``, then the peer."""
        for candidate in (
            self.headers.get("x-forwarded-for", "").split(",")[0],
            self.headers.get("x-real-ip", ""),
        ):
            if candidate.strip():
                return candidate.strip()
        return self.client[0] if self.client else ""

    @property
    def url(self) -> str:
        """Path plus ``?query`` when there is one."""
        return f"{self.path}?{self.query.raw}" if self.query.raw else self.path

    # -- dispatch state --

    @property
    def route(self) -> Route | None:
        return self._cache.get("route")

    @property
    def error(self) -> BaseException | None:
        """Error recorded by error translation for this request."""
        return self._cache.get("error")

    # -- body --

    async def stream(self) -> AsyncGenerator[bytes]:
        """Yield body chunks straight from ``receive``.

        Raises ``ClientDisconnect`` when the peer leaves before the last
        chunk arrives.
        """
        more = True
        while more:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                raise ClientDisconnect("client disconnected while sending the request body")
            more = message.get("more_body", False)
            if chunk := message.get("body", b""):
                yield chunk

    async def body(self) -> bytes:
        """The whole body, read once.

        Raises ``RequestTimeout`` when ``read_timeout`` elapses first.
        """
        if "body" not in self._cache:
            self._cache["body"] = await self._read_all()
        return self._cache["body"]

    async def _read_all(self) -> bytes:
        if self.read_timeout is None:
            return b"".join([chunk async for chunk in self.stream()])
        try:
            with anyio.fail_after(self.read_timeout):
                return b"".join([chunk async for chunk in self.stream()])
        except TimeoutError:
            raise RequestTimeout from None

    async def text(self) -> str:
        return (await self.body()).decode("utf-8")

    async def json(self) -> Any:
        return json.loads(await self.body())

    async def form(self) -> FormData:
        """Parsed form body, cached. A missing content type counts as urlencoded."""
        if "form" not in self._cache:
            self._cache["form"] = await parse_form_data(await self.body(), self.content_type or FORM_URLENCODED)
        return self._cache["form"]
