"""A compiled route and the result of matching one."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"})


@dataclass(frozen=True, slots=True)
class Route:
    """Method and absolute path bound to a handler chain.

    The chain runs enclosing group middleware first, then the route's
    own middleware, ending with the endpoint at ``handlers[-1]``.
    """

    method: str
    path: str
    handlers: tuple[Callable[..., Any], ...]

    @property
    def endpoint(self) -> Callable[..., Any]:
        return self.handlers[-1]

    @property
    def middleware(self) -> tuple[Callable[..., Any], ...]:
        return self.handlers[:-1]


@dataclass(frozen=True, slots=True)
class RouteMatch:
    route: Route
    path_params: dict[str, str]
