"""Binding schema — per-field source tags of an input dataclass.

    @dataclass
    class UpdateOrder:
        id: int = param(path=True)
        name: str = param(json=True)
        trace: str = param(header="X-Trace-Id", default="")

A tag value of ``True`` means "use the field name". Fields without any
tag are filled by field name from every source except headers, path
parameters, and plain text bodies.
"""

from __future__ import annotations

import dataclasses
from dataclasses import MISSING, dataclass
from typing import Any, get_type_hints

from warble._internal.types import TAGS_METADATA
from warble.errors import ConfigurationError

# Tag families, in the order ``param()`` accepts them
TAG_FAMILIES = ("path", "form", "header", "json", "yaml", "xml", "protobuf", "msgpack", "toml", "plain")

# Families that never fall back to the field name
EXPLICIT_FAMILIES = frozenset({"path", "header", "plain"})


def param(
    *,
    path: bool | str = False,
    form: bool | str = False,
    header: bool | str = False,
    json: bool | str = False,
    yaml: bool | str = False,
    xml: bool | str = False,
    protobuf: bool | str = False,
    msgpack: bool | str = False,
    toml: bool | str = False,
    plain: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    """Declare a dataclass field together with the sources it binds from."""
    declared = {
        "path": path,
        "form": form,
        "header": header,
        "json": json,
        "yaml": yaml,
        "xml": xml,
        "protobuf": protobuf,
        "msgpack": msgpack,
        "toml": toml,
        "plain": plain,
    }
    tags = {family: value for family, value in declared.items() if value is not False and value is not None}
    for family, value in tags.items():
        if not isinstance(value, bool | str) or value == "":
            msg = f"tag {family!r} must be True or a non-empty key, got {value!r}"
            raise ConfigurationError(msg)
    return dataclasses.field(default=default, default_factory=default_factory, metadata={TAGS_METADATA: tags})


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One input field: its resolved annotation and tag keys."""

    name: str
    annotation: Any
    tags: dict[str, str]
    required: bool

    def key_for(self, family: str) -> str | None:
        """The key this field reads from *family*, or ``None`` if it doesn't."""
        key = self.tags.get(family)
        if key is not None:
            return key
        if family in EXPLICIT_FAMILIES:
            return None
        return self.name


@dataclass(frozen=True, slots=True)
class Schema:
    """Cached description of an input dataclass."""

    input_type: type
    fields: tuple[FieldSpec, ...]
    tag_families: tuple[str, ...]

    @property
    def has_path(self) -> bool:
        return "path" in self.tag_families

    @classmethod
    def of(cls, target: type) -> Schema:
        """Describe *target*, caching the result per type.

        Raises:
            ConfigurationError: If *target* is not a dataclass or its
                annotations can't be resolved.
        """
        schema = _SCHEMAS.get(target)
        if schema is None:
            schema = _SCHEMAS[target] = cls._build(target)
        return schema

    @classmethod
    def _build(cls, target: type) -> Schema:
        if not isinstance(target, type) or not dataclasses.is_dataclass(target):
            msg = f"input type {target!r} must be a dataclass"
            raise ConfigurationError(msg)
        try:
            hints = get_type_hints(target)
        except (NameError, TypeError) as exc:
            msg = f"can not resolve annotations of {target.__qualname__}: {exc}"
            raise ConfigurationError(msg) from exc

        specs: list[FieldSpec] = []
        families: list[str] = []
        for f in dataclasses.fields(target):
            if not f.init:
                continue
            raw_tags = f.metadata.get(TAGS_METADATA, {})
            tags = {family: (f.name if value is True else value) for family, value in raw_tags.items()}
            for family in tags:
                if family not in families:
                    families.append(family)
            specs.append(
                FieldSpec(
                    name=f.name,
                    annotation=hints.get(f.name, Any),
                    tags=tags,
                    required=f.default is MISSING and f.default_factory is MISSING,
                )
            )
        return cls(input_type=target, fields=tuple(specs), tag_families=tuple(families))


_SCHEMAS: dict[type, Schema] = {}
