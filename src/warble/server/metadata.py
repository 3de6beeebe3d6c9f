"""Route metadata published by a server."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from warble.routing.route import Route


@dataclass(frozen=True, slots=True)
class HandlerMetadata:
    method: str
    path: str


@dataclass(frozen=True, slots=True)
class ServerMetadata:
    """The name of a server and every route it serves, sorted by path then method."""

    name: str
    handlers: tuple[HandlerMetadata, ...] = ()

    @classmethod
    def from_routes(cls, name: str, routes: Iterable[Route]) -> ServerMetadata:
        handlers = sorted(
            (HandlerMetadata(method=route.method, path=route.path) for route in routes),
            key=lambda handler: handler.path + handler.method,
        )
        return cls(name=name, handlers=tuple(handlers))
