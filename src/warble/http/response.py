"""HTTP response built from option functions.

A ``Response`` is constructed once, from a list of options, and is
immutable afterwards. Structured payloads are serialized lazily: the
encoder runs the first time ``read_body()`` is called and the bytes are
cached, so a response is serialized exactly once.

    new_json_response({"id": 7}, with_status_code(201), with_header("Location", "/orders/7"))
"""

from __future__ import annotations

import dataclasses
import datetime
import enum
import json
import uuid
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from warble._internal.types import TAGS_METADATA

if TYPE_CHECKING:
    from warble.realtime.sse import SseWriter

TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"
JSON_CONTENT_TYPE = "application/json; charset=utf-8"

# Marks "no structured payload" (``None`` is a valid JSON payload)
_NO_PAYLOAD: Any = object()


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result: dict[str, Any] = {}
        for f in dataclasses.fields(value):
            key = f.metadata.get(TAGS_METADATA, {}).get("json")
            if not isinstance(key, str):
                key = f.name
            if key == "-":
                continue
            result[key] = getattr(value, f.name)
        return result
    if isinstance(value, datetime.datetime | datetime.date | datetime.time):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, set | frozenset | tuple):
        return list(value)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, uuid.UUID):
        return str(value)
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def encode_json(payload: Any) -> bytes:
    """Serialize *payload* to compact UTF-8 JSON.

    Dataclasses are encoded by field, honouring ``json`` tag names
    (``"-"`` skips a field). Datetimes become ISO 8601 strings, enums
    their values, and sets lists.

    Raises:
        TypeError: If a value cannot be serialized.
    """
    return json.dumps(payload, default=_json_default, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


@dataclass(frozen=True, slots=True)
class Response:
    """An HTTP response: status, header multimap, and a lazily read body.

    The zero value is a ``200`` with no headers and an empty body.
    Header values are appended, never overwritten; a name may appear
    more than once.
    """

    status: int = 200
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""
    payload: Any = field(default=_NO_PAYLOAD, repr=False)
    encoder: Callable[[Any], bytes] = field(default=encode_json, repr=False)

    # serialized payload, shared by status and header copies
    _cache: dict[str, bytes] = field(default_factory=dict, repr=False, compare=False)

    @property
    def has_payload(self) -> bool:
        """True if the body is produced by serializing a payload."""
        return self.payload is not _NO_PAYLOAD

    def read_body(self) -> bytes:
        """Return the body bytes, serializing the payload on first call.

        Raises whatever the encoder raises; nothing is cached then, so
        the failure repeats on every call.
        """
        if not self.has_payload:
            return self.body
        if "body" not in self._cache:
            self._cache["body"] = self.encoder(self.payload)
        return self._cache["body"]

    def header(self, name: str) -> str | None:
        """First value of header *name* (case-insensitive)."""
        values = self.header_list(name)
        return values[0] if values else None

    def header_list(self, name: str) -> list[str]:
        """All values of header *name* (case-insensitive), in order."""
        lower = name.lower()
        return [value for key, value in self.headers if key.lower() == lower]

    @property
    def content_type(self) -> str | None:
        return self.header("content-type")

    @property
    def text(self) -> str:
        """Body decoded as UTF-8."""
        return self.read_body().decode("utf-8")

    # -- Chainable transformations --

    def with_status(self, status: int) -> Response:
        """Return a new Response with a different status code."""
        return replace(self, status=status)

    def with_header(self, name: str, value: str) -> Response:
        """Return a new Response with an additional header."""
        return replace(self, headers=(*self.headers, (name, value)))

    def with_headers(self, headers: Mapping[str, str] | Iterable[tuple[str, str]]) -> Response:
        """Return a new Response with additional headers."""
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        return replace(self, headers=(*self.headers, *pairs))


ResponseOption = Callable[[Response], Response]


def with_body(body: bytes | str) -> ResponseOption:
    """Set a raw body, replacing any structured payload."""
    raw = body.encode("utf-8") if isinstance(body, str) else bytes(body)

    def option(response: Response) -> Response:
        return replace(response, body=raw, payload=_NO_PAYLOAD, _cache={})

    return option


def with_header(name: str, value: str) -> ResponseOption:
    """Append one header value."""

    def option(response: Response) -> Response:
        return response.with_header(name, value)

    return option


def with_headers(headers: Mapping[str, str | Iterable[str]] | Iterable[tuple[str, str]]) -> ResponseOption:
    """Append every value of every header.

    Accepts ``(name, value)`` pairs or a mapping whose values are a
    string or a list of strings.
    """
    pairs: list[tuple[str, str]] = []
    if isinstance(headers, Mapping):
        for name, values in headers.items():
            if isinstance(values, str):
                pairs.append((name, values))
            else:
                pairs.extend((name, value) for value in values)
    else:
        pairs.extend(headers)

    def option(response: Response) -> Response:
        return response.with_headers(pairs)

    return option


def with_status_code(status: int) -> ResponseOption:
    """Set the status code."""

    def option(response: Response) -> Response:
        return response.with_status(status)

    return option


def _apply(response: Response, options: Iterable[ResponseOption]) -> Response:
    for option in options:
        response = option(response)
    return response


def new_response(*options: ResponseOption) -> Response:
    """Status 200, no headers, empty body, then *options*."""
    return _apply(Response(), options)


def new_status_response(status: int, *options: ResponseOption) -> Response:
    """An empty response with *status*."""
    return _apply(Response(status=status), options)


def new_text_response(text: str, *options: ResponseOption) -> Response:
    """A ``text/plain; charset=utf-8`` response."""
    response = Response(headers=(("Content-Type", TEXT_CONTENT_TYPE),), body=text.encode("utf-8"))
    return _apply(response, options)


def new_json_response(
    payload: Any,
    *options: ResponseOption,
    encoder: Callable[[Any], bytes] = encode_json,
) -> Response:
    """An ``application/json`` response; *payload* is serialized when first read."""
    response = Response(
        headers=(("Content-Type", JSON_CONTENT_TYPE),),
        payload=payload,
        encoder=encoder,
    )
    return _apply(response, options)


@dataclass(frozen=True, slots=True)
class SSEResponse:
    """Response whose body is produced by an SSE writer.

    The server calls ``producer(writer)`` once the rest of the pipeline
    has returned. Status and headers are fixed by the writer; the
    ``.with_*()`` methods are no-ops so middleware chains don't crash.
    """

    producer: Callable[[SseWriter], Awaitable[None]]
    status: int = 200
    headers: tuple[tuple[str, str], ...] = ()

    def with_status(self, status: int) -> SSEResponse:  # noqa: ARG002
        """No-op: SSE always sends 200."""
        return self

    def with_header(self, name: str, value: str) -> SSEResponse:  # noqa: ARG002
        """No-op: SSE headers are fixed by the writer."""
        return self

    def with_headers(self, headers: Any) -> SSEResponse:  # noqa: ARG002
        """No-op: SSE headers are fixed by the writer."""
        return self
