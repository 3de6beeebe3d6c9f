"""Request decoders.

Each decoder reads one source of the request (a body encoding, the
query string, headers, or path parameters) and returns the values it
found, keyed by field name. Decoders never build the input instance;
the resolver merges their results and constructs it once.

A decoder that reads the body returns nothing for an empty body.
"""

from __future__ import annotations

import json
import tomllib
import xml.etree.ElementTree as ET
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

import msgpack
import yaml

from warble.binding.convert import convert_text, convert_upload, convert_value, wants_upload
from warble.errors import ConfigurationError
from warble.http.forms import FORM_MULTIPART, FORM_URLENCODED

if TYPE_CHECKING:
    from warble.binding.schema import Schema
    from warble.http.request import Request


def _text_values(schema: Schema, family: str, source: Mapping[str, Sequence[str]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for spec in schema.fields:
        key = spec.key_for(family)
        if key is None or key not in source:
            continue
        values[spec.name] = convert_text(key, source[key], spec.annotation)
    return values


def _structured_values(
    schema: Schema,
    family: str,
    document: Any,
    *,
    lenient: bool = False,
) -> dict[str, Any]:
    if not isinstance(document, Mapping):
        msg = f"expected an object, got {type(document).__name__}"
        raise ValueError(msg)
    values: dict[str, Any] = {}
    for spec in schema.fields:
        key = spec.key_for(family)
        if key is None or key not in document:
            continue
        values[spec.name] = convert_value(key, document[key], spec.annotation, lenient=lenient)
    return values


class Decoder:
    """Base decoder. Subclasses set ``name`` and ``family`` and implement ``decode``."""

    name: ClassVar[str] = ""
    family: ClassVar[str] = ""
    reads_body: ClassVar[bool] = False

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class _BodyDecoder(Decoder):
    """Parses the whole body into a document, then picks fields by tag key."""

    reads_body = True
    lenient: ClassVar[bool] = False

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        body = await request.body()
        if not body:
            return {}
        return _structured_values(schema, self.family, self.parse(body, schema), lenient=self.lenient)

    def parse(self, body: bytes, schema: Schema) -> Any:
        raise NotImplementedError


class JsonDecoder(_BodyDecoder):
    name = "json"
    family = "json"

    def parse(self, body: bytes, schema: Schema) -> Any:
        return json.loads(body)


class YamlDecoder(_BodyDecoder):
    name = "yaml"
    family = "yaml"

    def parse(self, body: bytes, schema: Schema) -> Any:
        return yaml.safe_load(body)


class TomlDecoder(_BodyDecoder):
    name = "toml"
    family = "toml"

    def parse(self, body: bytes, schema: Schema) -> Any:
        return tomllib.loads(body.decode("utf-8"))


class MsgpackDecoder(_BodyDecoder):
    name = "msgpack"
    family = "msgpack"

    def parse(self, body: bytes, schema: Schema) -> Any:
        return msgpack.unpackb(body, raw=False)


class ProtobufDecoder(_BodyDecoder):
    """Decodes a protocol buffer message.

    The input type names its generated message class in a
    ``__protobuf_message__`` class attribute. Requires the ``protobuf``
    extra (``pip install warble[protobuf]``).
    """

    name = "protobuf"
    family = "protobuf"
    lenient = True

    def parse(self, body: bytes, schema: Schema) -> Any:
        message_type = getattr(schema.input_type, "__protobuf_message__", None)
        if message_type is None:
            msg = f"{schema.input_type.__qualname__} has no __protobuf_message__ attribute"
            raise ConfigurationError(msg)
        try:
            from google.protobuf import json_format
        except ImportError:
            msg = "protobuf binding requires the 'protobuf' package. Install it with: pip install warble[protobuf]"
            raise ConfigurationError(msg) from None
        message = message_type.FromString(body)
        return json_format.MessageToDict(message, preserving_proto_field_name=True)


class XmlDecoder(_BodyDecoder):
    """Reads attributes and child elements of the document root as text."""

    name = "xml"
    family = "xml"

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        body = await request.body()
        if not body:
            return {}
        root = ET.fromstring(body)  # noqa: S314
        source: dict[str, list[str]] = {}
        for key, value in root.attrib.items():
            source.setdefault(key, []).append(value)
        for child in root:
            source.setdefault(child.tag, []).append((child.text or "").strip())
        return _text_values(schema, self.family, source)


class PlainDecoder(Decoder):
    """Assigns the raw body text to ``plain``-tagged fields."""

    name = "plain"
    family = "plain"
    reads_body = True

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        body = await request.body()
        if not body:
            return {}
        text = body.decode("utf-8")
        return {spec.name: text for spec in schema.fields if spec.key_for(self.family) is not None}


class QueryDecoder(Decoder):
    name = "query"
    family = "form"

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        query = {key: request.query.get_list(key) for key in request.query}
        return _text_values(schema, self.family, query)


class FormDecoder(Decoder):
    """Form fields from the body (URL-encoded or multipart) followed by the query string."""

    name = "form"
    family = "form"

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        source: dict[str, list[str]] = {}
        if request.media_type in (FORM_URLENCODED, FORM_MULTIPART) and await request.body():
            form = await request.form()
            source = {key: form.get_list(key) for key in form}
        for key in request.query:
            source.setdefault(key, []).extend(request.query.get_list(key))
        return _text_values(schema, self.family, source)


class MultipartDecoder(Decoder):
    """Multipart form fields and uploaded files."""

    name = "multipart/form-data"
    family = "form"
    reads_body = True

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        if not await request.body():
            return {}
        form = await request.form()
        values: dict[str, Any] = {}
        for spec in schema.fields:
            key = spec.key_for(self.family)
            if key is None:
                continue
            if wants_upload(spec.annotation):
                if key in form.files:
                    values[spec.name] = convert_upload(key, form.files[key], spec.annotation)
            elif key in form:
                values[spec.name] = convert_text(key, form.get_list(key), spec.annotation)
        return values


class HeaderDecoder(Decoder):
    name = "header"
    family = "header"

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for spec in schema.fields:
            key = spec.key_for(self.family)
            if key is None or key not in request.headers:
                continue
            values[spec.name] = convert_text(key, request.headers.get_list(key), spec.annotation)
        return values


class PathDecoder(Decoder):
    name = "path"
    family = "path"

    async def decode(self, request: Request, schema: Schema) -> dict[str, Any]:
        params = {key: [value] for key, value in request.path_params.items()}
        return _text_values(schema, self.family, params)


@dataclass(frozen=True, slots=True)
class _Decoders:
    json: Decoder = JsonDecoder()
    xml: Decoder = XmlDecoder()
    protobuf: Decoder = ProtobufDecoder()
    msgpack: Decoder = MsgpackDecoder()
    yaml: Decoder = YamlDecoder()
    toml: Decoder = TomlDecoder()
    multipart: Decoder = MultipartDecoder()
    form: Decoder = FormDecoder()
    query: Decoder = QueryDecoder()
    header: Decoder = HeaderDecoder()
    plain: Decoder = PlainDecoder()
    path: Decoder = PathDecoder()


# Shared, stateless decoder instances: ``DECODERS.json``, ``DECODERS.form``, ...
DECODERS = _Decoders()
