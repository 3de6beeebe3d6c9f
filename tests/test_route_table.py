"""Tests for warble.routing.table — path parsing and trie matching."""

import pytest

from warble.errors import ConfigurationError, MethodNotAllowed, NotFound
from warble.routing.route import Route
from warble.routing.table import RouteTable, parse_path


def _handler(request):
    return "ok"


def _route(method: str, path: str) -> Route:
    return Route(method=method, path=path, handlers=(_handler,))


class TestParsePath:
    def test_static(self) -> None:
        segments = parse_path("/api/v2/users")
        assert [s.value for s in segments] == ["api", "v2", "users"]
        assert not any(s.is_param for s in segments)

    def test_brace_param(self) -> None:
        segments = parse_path("/users/{id}")
        assert segments[1].is_param is True
        assert segments[1].param_name == "id"
        assert segments[1].param_type == "str"

    def test_typed_param(self) -> None:
        assert parse_path("/users/{id:int}")[1].param_type == "int"

    def test_colon_param(self) -> None:
        segment = parse_path("/users/:id")[1]
        assert segment.param_name == "id"
        assert segment.param_type == "str"

    def test_star_param(self) -> None:
        segment = parse_path("/files/*rest")[1]
        assert segment.param_name == "rest"
        assert segment.param_type == "path"

    def test_unknown_converter(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown path converter"):
            parse_path("/users/{id:uuid}")

    def test_path_param_must_be_last(self) -> None:
        with pytest.raises(ConfigurationError, match="must be the last segment"):
            parse_path("/files/{rest:path}/meta")


class TestMatch:
    def test_static_match(self) -> None:
        table = RouteTable([_route("GET", "/users")])
        match = table.match("GET", "/users")
        assert match.route.path == "/users"
        assert match.path_params == {}

    def test_param_match(self) -> None:
        table = RouteTable([_route("POST", "/mixed/{id}")])
        match = table.match("POST", "/mixed/3")
        assert match.path_params == {"id": "3"}

    def test_int_converter_rejects_text(self) -> None:
        table = RouteTable([_route("GET", "/orders/{id:int}")])
        assert table.match("GET", "/orders/-7").path_params == {"id": "-7"}
        with pytest.raises(NotFound):
            table.match("GET", "/orders/seven")

    def test_static_beats_param(self) -> None:
        table = RouteTable([_route("GET", "/users/{id}"), _route("GET", "/users/me")])
        assert table.match("GET", "/users/me").route.path == "/users/me"
        assert table.match("GET", "/users/42").route.path == "/users/{id}"

    def test_catch_all(self) -> None:
        table = RouteTable([_route("GET", "/files/{rest:path}")])
        match = table.match("GET", "/files/a/b/c.txt")
        assert match.path_params == {"rest": "a/b/c.txt"}

    def test_trailing_slash(self) -> None:
        table = RouteTable([_route("GET", "/users")])
        assert table.match("GET", "/users/").route.path == "/users"

    def test_root(self) -> None:
        table = RouteTable([_route("GET", "/")])
        assert table.match("GET", "/").route.path == "/"


class TestMatchErrors:
    def test_not_found(self) -> None:
        table = RouteTable([_route("GET", "/users")])
        with pytest.raises(NotFound) as exc_info:
            table.match("GET", "/missing")
        assert exc_info.value.status == 404

    def test_method_not_allowed_lists_methods(self) -> None:
        table = RouteTable([_route("GET", "/users"), _route("POST", "/users")])
        with pytest.raises(MethodNotAllowed) as exc_info:
            table.match("DELETE", "/users")
        assert exc_info.value.status == 405
        assert exc_info.value.headers == (("Allow", "GET, POST"),)


class TestConstruction:
    def test_duplicate_route(self) -> None:
        with pytest.raises(ConfigurationError, match="duplicate route GET /users"):
            RouteTable([_route("GET", "/users"), _route("GET", "/users")])

    def test_conflicting_param_names(self) -> None:
        with pytest.raises(ConfigurationError, match="conflicts with parameter"):
            RouteTable([_route("GET", "/users/{id}"), _route("POST", "/users/{name}")])

    def test_routes_in_registration_order(self) -> None:
        routes = [_route("GET", "/b"), _route("GET", "/a")]
        assert RouteTable(routes).routes == routes
