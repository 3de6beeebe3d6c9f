"""Value conversion for bound fields.

Two flavours:

- ``convert_text`` — values that arrive as strings (query, form,
  header, path, XML text). ``"42"`` becomes ``42`` for an ``int`` field.
- ``convert_value`` — values that arrive already typed (JSON, YAML,
  TOML, msgpack, protobuf). Types are checked, not coerced: ``"42"`` is
  rejected for an ``int`` field unless ``lenient`` is set.

Both raise ``ValueError`` with a message naming the field on failure.
"""

from __future__ import annotations

import dataclasses
import datetime
import enum
import types
import typing
from collections.abc import Mapping, Sequence
from typing import Any, Union, get_args, get_origin, get_type_hints

from warble.http.forms import UploadFile

_TRUE = frozenset({"1", "t", "true", "yes", "on"})
_FALSE = frozenset({"0", "f", "false", "no", "off", ""})


def is_optional(annotation: Any) -> bool:
    return _is_union(annotation) and type(None) in get_args(annotation)


def _is_union(annotation: Any) -> bool:
    origin = get_origin(annotation)
    return origin is Union or origin is types.UnionType


def _strip_optional(annotation: Any) -> Any:
    if not _is_union(annotation):
        return annotation
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if len(args) == 1:
        return args[0]
    return Union[tuple(args)]  # noqa: UP007


def is_list(annotation: Any) -> bool:
    """True for ``list[X]`` / ``tuple[X, ...]`` / ``Sequence[X]`` (not ``str``)."""
    origin = get_origin(_strip_optional(annotation))
    return origin in (list, tuple, set, frozenset, Sequence, typing.Sequence)


def _item_type(annotation: Any) -> Any:
    args = get_args(_strip_optional(annotation))
    return args[0] if args else Any


def _collect(annotation: Any, items: list[Any]) -> Any:
    origin = get_origin(_strip_optional(annotation))
    if origin is tuple:
        return tuple(items)
    if origin in (set, frozenset):
        return origin(items)
    return items


def convert_text(name: str, values: Sequence[str], annotation: Any) -> Any:
    """Convert one or more text values for field *name*.

    List fields take every value; scalar fields take the first.
    """
    if is_list(annotation):
        item = _item_type(annotation)
        return _collect(annotation, [_scalar_from_text(name, value, item) for value in values])
    if not values:
        msg = f"field {name!r}: no value"
        raise ValueError(msg)
    return _scalar_from_text(name, values[0], annotation)


def _scalar_from_text(name: str, text: str, annotation: Any) -> Any:
    if annotation is Any or annotation is str or annotation is object:
        return text
    if _is_union(annotation):
        if is_optional(annotation) and text == "":
            return None
        last: ValueError | None = None
        for arg in get_args(annotation):
            if arg is type(None):
                continue
            try:
                return _scalar_from_text(name, text, arg)
            except ValueError as exc:
                last = exc
        raise last or ValueError(f"field {name!r}: can not convert {text!r}")
    if annotation is bool:
        lowered = text.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        msg = f"field {name!r}: invalid boolean {text!r}"
        raise ValueError(msg)
    if annotation is int:
        try:
            return int(text.strip()) if text.strip() else 0
        except ValueError:
            msg = f"field {name!r}: invalid integer {text!r}"
            raise ValueError(msg) from None
    if annotation is float:
        try:
            return float(text.strip()) if text.strip() else 0.0
        except ValueError:
            msg = f"field {name!r}: invalid number {text!r}"
            raise ValueError(msg) from None
    if annotation is bytes:
        return text.encode("utf-8")
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return _enum_member(name, annotation, text)
    if annotation is datetime.datetime:
        return _parse_iso(name, text, datetime.datetime.fromisoformat)
    if annotation is datetime.date:
        return _parse_iso(name, text, datetime.date.fromisoformat)
    if isinstance(annotation, type) and issubclass(annotation, str):
        return annotation(text)
    msg = f"field {name!r}: can not bind text to {getattr(annotation, '__name__', annotation)!r}"
    raise ValueError(msg)


def _enum_member(name: str, enum_type: type[enum.Enum], raw: Any) -> enum.Enum:
    for member in enum_type:
        if member.value == raw or str(member.value) == str(raw) or member.name == raw:
            return member
    msg = f"field {name!r}: {raw!r} is not a valid {enum_type.__name__}"
    raise ValueError(msg)


def _parse_iso(name: str, text: str, parse: Any) -> Any:
    try:
        return parse(text)
    except ValueError:
        msg = f"field {name!r}: invalid ISO 8601 value {text!r}"
        raise ValueError(msg) from None


def convert_value(name: str, value: Any, annotation: Any, *, lenient: bool = False) -> Any:
    """Validate and convert a structured (already decoded) value."""
    if annotation is Any or annotation is object:
        return value
    if value is None:
        if annotation is type(None) or is_optional(annotation):
            return None
        msg = f"field {name!r}: null is not allowed"
        raise ValueError(msg)
    if _is_union(annotation):
        last: ValueError | None = None
        for arg in get_args(annotation):
            if arg is type(None):
                continue
            try:
                return convert_value(name, value, arg, lenient=lenient)
            except ValueError as exc:
                last = exc
        raise last or ValueError(f"field {name!r}: can not convert {value!r}")

    origin = get_origin(annotation)
    if origin is not None and is_list(annotation):
        if isinstance(value, str | bytes | Mapping) or not isinstance(value, Sequence):
            msg = f"field {name!r}: expected a list, got {type(value).__name__}"
            raise ValueError(msg)
        item = _item_type(annotation)
        return _collect(annotation, [convert_value(f"{name}[{i}]", v, item, lenient=lenient) for i, v in enumerate(value)])
    if origin in (dict, Mapping, typing.Mapping):
        if not isinstance(value, Mapping):
            msg = f"field {name!r}: expected an object, got {type(value).__name__}"
            raise ValueError(msg)
        args = get_args(annotation)
        value_type = args[1] if len(args) == 2 else Any
        return {str(k): convert_value(f"{name}.{k}", v, value_type, lenient=lenient) for k, v in value.items()}

    if annotation is bool:
        if isinstance(value, bool):
            return value
        if lenient and isinstance(value, str):
            return _scalar_from_text(name, value, bool)
        return _type_error(name, value, "boolean")
    if annotation is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if lenient and isinstance(value, str):
            return _scalar_from_text(name, value, int)
        return _type_error(name, value, "integer")
    if annotation is float:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return float(value)
        if lenient and isinstance(value, str):
            return _scalar_from_text(name, value, float)
        return _type_error(name, value, "number")
    if annotation is str:
        if isinstance(value, str):
            return value
        return _type_error(name, value, "string")
    if annotation is bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
        return _type_error(name, value, "bytes")
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return _enum_member(name, annotation, value)
    if annotation in (datetime.datetime, datetime.date):
        if isinstance(value, annotation):
            return value
        if isinstance(value, str):
            return _parse_iso(name, value, annotation.fromisoformat)
        return _type_error(name, value, annotation.__name__)
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return build_dataclass(name, annotation, value, lenient=lenient)
    if isinstance(annotation, type) and isinstance(value, annotation):
        return value
    msg = f"field {name!r}: can not bind {type(value).__name__} to {getattr(annotation, '__name__', annotation)!r}"
    raise ValueError(msg)


def _type_error(name: str, value: Any, expected: str) -> Any:
    msg = f"field {name!r}: expected {expected}, got {type(value).__name__}"
    raise ValueError(msg)


def build_dataclass(name: str, cls: type, value: Any, *, lenient: bool = False) -> Any:
    """Build a nested dataclass from a mapping, by field name."""
    if not isinstance(value, Mapping):
        msg = f"field {name!r}: expected an object, got {type(value).__name__}"
        raise ValueError(msg)
    hints = get_type_hints(cls)
    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(cls):
        if not f.init or f.name not in value:
            continue
        kwargs[f.name] = convert_value(f"{name}.{f.name}", value[f.name], hints.get(f.name, Any), lenient=lenient)
    try:
        return cls(**kwargs)
    except TypeError as exc:
        msg = f"field {name!r}: {exc}"
        raise ValueError(msg) from None


def convert_upload(name: str, files: Sequence[UploadFile], annotation: Any) -> Any:
    """Bind uploaded files to an ``UploadFile`` or ``list[UploadFile]`` field."""
    if is_list(annotation):
        return _collect(annotation, list(files))
    if not files:
        msg = f"field {name!r}: no file uploaded"
        raise ValueError(msg)
    return files[0]


def wants_upload(annotation: Any) -> bool:
    target = _item_type(annotation) if is_list(annotation) else _strip_optional(annotation)
    return target is UploadFile
