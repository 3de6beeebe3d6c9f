"""Router tree — groups, middleware, and deferred registration.

A ``Router`` node owns a base path segment, its own middleware, route
definitions, child groups, and registration factories. Nothing is
compiled while the tree is being declared; ``build()`` walks it once,
depth-first, and returns the flattened ``Route`` list.

    def router_factory(config, router):
        router.use(auth_middleware)
        router.get("/health", bind_n(ok))

        orders = router.group("/orders")
        orders.get("/{id:int}", bind(get_order))
        orders.handle_with(with_handler(OrderHandler.create, OrderHandler.register))
"""

from __future__ import annotations

import posixpath
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from warble._internal.invoke import callable_name
from warble._internal.types import Config
from warble.errors import ConfigurationError
from warble.routing.route import METHODS, Route

# factory(config, router) -> register(router)
RegisterFactory = Callable[[Config, "Router"], Callable[["Router"], None]]


def join_paths(*segments: str) -> str:
    """Join path segments into one normalized absolute path.

    Redundant slashes collapse and trailing slashes are trimmed; an
    all-empty chain is ``"/"``::

        join_paths("//a//b/")      -> "/a/b"
        join_paths("/api", "v1/")  -> "/api/v1"
        join_paths("", "")         -> "/"
    """
    parts: list[str] = []
    for segment in segments:
        parts.extend(part for part in segment.split("/") if part)
    return "/" + "/".join(parts)


def clean_path(path: str) -> str:
    """Normalize a raw request path (dot segments, duplicate slashes)."""
    if not path:
        return "/"
    cleaned = posixpath.normpath("/" + path.lstrip("/"))
    # POSIX allows exactly two leading slashes to survive normpath
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


@dataclass(frozen=True, slots=True)
class _Definition:
    method: str
    path: str
    handlers: tuple[Callable[..., Any], ...]


class Router:
    """A node in the router tree.

    Mutable during setup. ``build()`` may be called more than once but
    runs each registration factory only once.
    """

    __slots__ = ("_children", "_definitions", "_factories", "_middleware", "_parent", "_path")

    def __init__(self, path: str = "", *, parent: Router | None = None) -> None:
        self._path = path
        self._parent = parent
        self._middleware: list[Callable[..., Any]] = []
        self._definitions: list[_Definition] = []
        self._children: list[Router] = []
        self._factories: list[RegisterFactory] = []

    def __repr__(self) -> str:
        return f"Router({self.absolute_path!r})"

    @property
    def path(self) -> str:
        """The node's own segment, as declared."""
        return self._path

    @property
    def parent(self) -> Router | None:
        return self._parent

    @property
    def absolute_path(self) -> str:
        """Parent's absolute path joined with this node's segment."""
        if self._parent is None:
            return join_paths(self._path)
        return join_paths(self._parent.absolute_path, self._path)

    # -- Registration --

    def group(self, path: str, *middleware: Callable[..., Any]) -> Router:
        """Create and return a child node under *path*."""
        child = Router(path, parent=self)
        child.use(*middleware)
        self._children.append(child)
        return child

    def use(self, *middleware: Callable[..., Any]) -> Router:
        """Append middleware applied to every route on this node and below."""
        for mw in middleware:
            if mw is None:
                msg = f"middleware for {self.absolute_path!r} must not be None"
                raise ConfigurationError(msg)
            self._middleware.append(mw)
        return self

    def handle(self, method: str, path: str, *handlers: Callable[..., Any]) -> Router:
        """Register a route; the last handler is the endpoint, the rest middleware."""
        method = method.upper()
        if method not in METHODS:
            msg = f"unsupported HTTP method {method!r}; expected one of {', '.join(sorted(METHODS))}"
            raise ConfigurationError(msg)
        if not handlers or any(handler is None for handler in handlers):
            msg = f"route {method} {join_paths(self.absolute_path, path)} needs a handler"
            raise ConfigurationError(msg)
        self._definitions.append(_Definition(method, path, handlers))
        return self

    def get(self, path: str, *handlers: Callable[..., Any]) -> Router:
        return self.handle("GET", path, *handlers)

    def head(self, path: str, *handlers: Callable[..., Any]) -> Router:
        return self.handle("HEAD", path, *handlers)

    def post(self, path: str, *handlers: Callable[..., Any]) -> Router:
        return self.handle("POST", path, *handlers)

    def put(self, path: str, *handlers: Callable[..., Any]) -> Router:
        return self.handle("PUT", path, *handlers)

    def patch(self, path: str, *handlers: Callable[..., Any]) -> Router:
        return self.handle("PATCH", path, *handlers)

    def delete(self, path: str, *handlers: Callable[..., Any]) -> Router:
        return self.handle("DELETE", path, *handlers)

    def options(self, path: str, *handlers: Callable[..., Any]) -> Router:
        return self.handle("OPTIONS", path, *handlers)

    def handle_with(self, factory: RegisterFactory) -> Router:
        """Defer registration until ``build()``.

        *factory* is called as ``factory(config, router)`` and must
        return a ``register(router)`` callable that performs the actual
        ``group``/``use``/``handle`` calls.
        """
        if factory is None:
            msg = f"registration factory for {self.absolute_path!r} must not be None"
            raise ConfigurationError(msg)
        self._factories.append(factory)
        return self

    # -- Build --

    def build(self, config: Config | None = None) -> list[Route]:
        """Flatten the tree into route definitions.

        Depth-first, parent before children: run this node's factories
        in declaration order, then emit this node's routes (ancestor
        middleware + node middleware + chain), then recurse.

        Raises:
            ConfigurationError: If a factory or a child group fails.
        """
        return self._build(config or {}, ())

    def _build(self, config: Config, inherited: tuple[Callable[..., Any], ...]) -> list[Route]:
        # Factories may register further factories; run until none are left
        while self._factories:
            factory = self._factories.pop(0)
            try:
                factory(config, self)(self)
            except ConfigurationError:
                raise
            except Exception as exc:
                msg = f"registration factory {callable_name(factory)} failed: {exc}"
                raise ConfigurationError(msg) from exc

        chain = (*inherited, *self._middleware)
        base = self.absolute_path
        routes = [
            Route(method=d.method, path=join_paths(base, d.path), handlers=(*chain, *d.handlers))
            for d in self._definitions
        ]

        for child in self._children:
            try:
                routes.extend(child._build(config, chain))
            except Exception as exc:
                msg = f'can not build router for group "{child.path}": {exc}'
                raise ConfigurationError(msg) from exc
        return routes


def with_handler(
    handler_factory: Callable[[Config], Any],
    register: Callable[[Router, Any], None],
) -> RegisterFactory:
    """Build a registration factory from a handler factory and a register function.

    At build time ``handler_factory(config)`` constructs the handler;
    ``register(router, handler)`` then adds its routes::

        router.handle_with(with_handler(OrderHandler.create, register_orders))
    """

    def factory(config: Config, router: Router) -> Callable[[Router], None]:
        try:
            handler = handler_factory(config)
        except Exception as exc:
            msg = f"failed to create handler of type {_handler_type(handler_factory)}: {exc}"
            raise ConfigurationError(msg) from exc

        def apply(target: Router) -> None:
            register(target, handler)

        return apply

    return factory


def _handler_type(handler_factory: Callable[..., Any]) -> str:
    try:
        returns = getattr(handler_factory, "__annotations__", {}).get("return")
    except NameError:
        returns = None
    if isinstance(returns, type):
        return returns.__qualname__
    if isinstance(returns, str) and returns:
        return returns
    if isinstance(handler_factory, type):
        return handler_factory.__qualname__
    return callable_name(handler_factory)
