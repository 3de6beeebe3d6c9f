"""Method and path lookup over a segment trie.

The table is filled once at build time and only read afterwards.
Lookup prefers, at every depth, a static child over a parameter child
over a catch-all, backtracking when a branch dead-ends.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from warble.errors import ConfigurationError, MethodNotAllowed, NotFound
from warble.routing.params import PATTERNS, PathSegment, parse_segment
from warble.routing.route import Route, RouteMatch

type _Methods = dict[str, Route]


def _split(path: str) -> list[str]:
    return [part for part in path.split("/") if part]


def parse_path(path: str) -> list[PathSegment]:
    """``"/users/{id:int}"`` -> ``[PathSegment("users"), PathSegment("{id:int}", True, "id", "int")]``.

    Raises ``ConfigurationError`` for an unknown converter, or for a
    catch-all segment that is followed by more segments.
    """
    parts = _split(path)
    segments: list[PathSegment] = []
    for position, part in enumerate(parts, start=1):
        try:
            segment = parse_segment(part)
        except KeyError as exc:
            raise ConfigurationError(f"unknown path converter {exc.args[0]!r} in route {path!r}") from None
        if segment.is_catch_all and position < len(parts):
            raise ConfigurationError(
                f"path parameter {segment.param_name!r} must be the last segment of route {path!r}"
            )
        segments.append(segment)
    return segments


class _Node:
    __slots__ = ("catch_all", "catch_all_name", "methods", "param", "param_name", "param_pattern", "static")

    def __init__(self) -> None:
        self.static: dict[str, _Node] = {}
        self.methods: _Methods = {}
        self.param: _Node | None = None
        self.param_name = ""
        self.param_pattern: re.Pattern[str] | None = None
        self.catch_all: _Methods | None = None
        self.catch_all_name = ""


class RouteTable:
    """Immutable after construction; ``match`` is safe to call concurrently."""

    __slots__ = ("_root", "_routes")

    def __init__(self, routes: Iterable[Route] = ()) -> None:
        self._root = _Node()
        self._routes: list[Route] = []
        for route in routes:
            self._insert(route)

    @property
    def routes(self) -> list[Route]:
        return list(self._routes)

    def _insert(self, route: Route) -> None:
        node = self._root
        for segment in parse_path(route.path):
            name = segment.param_name or ""
            if segment.is_catch_all:
                if node.catch_all is None:
                    node.catch_all, node.catch_all_name = {}, name
                elif node.catch_all_name != name:
                    _conflict(route, node.catch_all_name)
                self._add_method(node.catch_all, route)
                return
            if not segment.is_param:
                node = node.static.setdefault(segment.value, _Node())
                continue
            pattern = re.compile(f"{PATTERNS[segment.param_type]}\\Z")
            if node.param is None:
                node.param, node.param_name, node.param_pattern = _Node(), name, pattern
            elif node.param_name != name or node.param_pattern.pattern != pattern.pattern:
                _conflict(route, node.param_name)
            node = node.param
        self._add_method(node.methods, route)

    def _add_method(self, methods: _Methods, route: Route) -> None:
        if route.method in methods:
            raise ConfigurationError(f"duplicate route {route.method} {route.path}")
        methods[route.method] = route
        self._routes.append(route)

    def match(self, method: str, path: str) -> RouteMatch:
        """Find the route for *method* and *path*.

        Raises ``NotFound`` when no route has this path and
        ``MethodNotAllowed`` (carrying the allowed methods) when routes
        have the path under other methods.
        """
        params: dict[str, str] = {}
        methods = _lookup(self._root, _split(path), params)
        if methods is None:
            raise NotFound(f"No route matches {method} {path!r}")
        if (route := methods.get(method)) is None:
            raise MethodNotAllowed(frozenset(methods))
        return RouteMatch(route=route, path_params=params)


def _lookup(node: _Node, parts: list[str], params: dict[str, str]) -> _Methods | None:
    """Walk *parts* from *node*, filling *params* only along the winning branch."""
    if not parts:
        return node.methods or None
    head, rest = parts[0], parts[1:]
    if (child := node.static.get(head)) is not None and (found := _lookup(child, rest, params)) is not None:
        return found
    if node.param is not None and node.param_pattern.match(head):
        found = _lookup(node.param, rest, params)
        if found is not None:
            params[node.param_name] = head
            return found
    if node.catch_all is not None:
        params[node.catch_all_name] = "/".join(parts)
        return node.catch_all
    return None


def _conflict(route: Route, existing: str) -> None:
    raise ConfigurationError(
        f"route {route.method} {route.path} conflicts with parameter {existing!r} at the same position"
    )
