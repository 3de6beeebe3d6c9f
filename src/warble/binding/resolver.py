"""Binder resolution — which decoders run, and in what order.

1. The request's media type selects at most one body decoder. An
   unknown or missing content type selects none; that alone is not an
   error.
2. Every tag family declared on the input type adds its decoders
   (``form`` adds the form and query decoders).
3. The list is de-duplicated, keeping first-seen order.
4. Decoders run in order; the first failure aborts binding.
5. If any field is path-tagged, path parameters are bound last, so
   they win over every other source.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from warble.binding.decoders import DECODERS, Decoder
from warble.binding.schema import Schema
from warble.errors import BindError, ClientDisconnect, ConfigurationError, HTTPError

if TYPE_CHECKING:
    from warble.http.request import Request

CONTENT_TYPE_DECODERS: dict[str, Decoder] = {
    "application/json": DECODERS.json,
    "application/xml": DECODERS.xml,
    "text/xml": DECODERS.xml,
    "application/x-protobuf": DECODERS.protobuf,
    "application/x-msgpack": DECODERS.msgpack,
    "application/msgpack": DECODERS.msgpack,
    "application/x-yaml": DECODERS.yaml,
    "application/yaml": DECODERS.yaml,
    "application/toml": DECODERS.toml,
    "multipart/form-data": DECODERS.multipart,
    "application/x-www-form-urlencoded": DECODERS.form,
}

TAG_DECODERS: dict[str, tuple[Decoder, ...]] = {
    "form": (DECODERS.form, DECODERS.query),
    "header": (DECODERS.header,),
    "json": (DECODERS.json,),
    "yaml": (DECODERS.yaml,),
    "xml": (DECODERS.xml,),
    "protobuf": (DECODERS.protobuf,),
    "msgpack": (DECODERS.msgpack,),
    "toml": (DECODERS.toml,),
    "plain": (DECODERS.plain,),
}


def content_type_decoder(media_type: str) -> Decoder | None:
    """The body decoder for *media_type* (already lower-cased, no parameters)."""
    return CONTENT_TYPE_DECODERS.get(media_type)


def tag_decoders(tag_families: Sequence[str]) -> list[Decoder]:
    """Decoders implied by *tag_families*; unknown families are ignored."""
    decoders: list[Decoder] = []
    for family in tag_families:
        decoders.extend(TAG_DECODERS.get(family, ()))
    return decoders


def resolve_decoders(schema: Schema, media_type: str) -> list[Decoder]:
    """Ordered, de-duplicated decoders for a request with *media_type*."""
    candidates: list[Decoder] = []
    body_decoder = content_type_decoder(media_type)
    if body_decoder is not None:
        candidates.append(body_decoder)
    candidates.extend(tag_decoders(schema.tag_families))

    decoders: list[Decoder] = []
    for decoder in candidates:
        if decoder not in decoders:
            decoders.append(decoder)
    return decoders


async def bind_input(
    request: Request,
    input_type: type,
    decoders: Sequence[Decoder] | None = None,
) -> Any:
    """Decode *request* into a new *input_type* instance.

    *decoders*, when given, replace resolution entirely; path binding
    still runs last for path-tagged types.

    Raises:
        BindError: ``"<decoder>: <cause>"`` for the first decoder that
            fails, or for a required field that no source supplied.
    """
    schema = Schema.of(input_type)
    if not decoders:
        decoders = resolve_decoders(schema, request.media_type)

    values: dict[str, Any] = {}
    for decoder in decoders:
        values.update(await _run(decoder, request, schema))
    if schema.has_path:
        values.update(await _run(DECODERS.path, request, schema))

    missing = [spec.name for spec in schema.fields if spec.required and spec.name not in values]
    if missing:
        raise BindError("validate", f"missing required field(s): {', '.join(missing)}")
    try:
        return input_type(**values)
    except (TypeError, ValueError) as exc:
        raise BindError("validate", exc) from exc


async def _run(decoder: Decoder, request: Request, schema: Schema) -> dict[str, Any]:
    try:
        return await decoder.decode(request, schema)
    except (ClientDisconnect, ConfigurationError, HTTPError):
        raise
    except Exception as exc:
        raise BindError(decoder.name, exc) from exc
