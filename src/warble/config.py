"""Server settings.

Settings are frozen dataclasses — immutable after creation,
IDE-autocompletable, no string-key dict lookups at runtime.

They are read from a nested application config mapping, usually
loaded from YAML::

    httpserver:
      default:
        port: 8080
        timeout:
          drain: 5s
          shutdown: 1m
        logging:
          request-body: true
      health-check:
        port: 8090
        path: /health
    profiling:
      enabled: false
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Self

import yaml

from warble._internal.types import Config
from warble.errors import ConfigurationError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds.

    Accepts numbers (seconds) and strings like ``"500ms"``, ``"60s"``,
    ``"1m30s"``, or ``"2h"``.

    Raises ``ConfigurationError`` for anything else.
    """
    if isinstance(value, bool):
        msg = f"invalid duration {value!r}"
        raise ConfigurationError(msg)
    if isinstance(value, int | float):
        if value < 0:
            msg = f"invalid duration {value!r}: must not be negative"
            raise ConfigurationError(msg)
        return float(value)
    if isinstance(value, str):
        text = value.strip().replace(" ", "")
        if not text:
            msg = "invalid duration: empty string"
            raise ConfigurationError(msg)
        try:
            return float(text)
        except ValueError:
            pass
        total = 0.0
        position = 0
        for part in _DURATION_PART.finditer(text):
            if part.start() != position:
                break
            total += float(part.group(1)) * _DURATION_UNITS[part.group(2)]
            position = part.end()
        if position == len(text):
            return total
    msg = f"invalid duration {value!r}"
    raise ConfigurationError(msg)


def _normalize_keys(cls: type, mapping: Mapping[str, Any]) -> dict[str, Any]:
    """Map ``kebab-case`` / ``snake_case`` keys onto dataclass field names."""
    if not isinstance(mapping, Mapping):
        msg = f"{cls.__name__} settings must be a mapping, got {type(mapping).__name__}"
        raise ConfigurationError(msg)
    known = {f.name for f in fields(cls)}
    result: dict[str, Any] = {}
    for key, value in mapping.items():
        name = str(key).replace("-", "_")
        if name not in known:
            msg = f"unknown {cls.__name__} key {key!r}"
            raise ConfigurationError(msg)
        result[name] = value
    return result


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes", "on", "false", "0", "no", "off"):
        return value.lower() in ("true", "1", "yes", "on")
    msg = f"invalid boolean for {name}: {value!r}"
    raise ConfigurationError(msg)


def _as_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        msg = f"invalid port {value!r}"
        raise ConfigurationError(msg) from None
    if not 0 <= port <= 65535:
        msg = f"invalid port {value!r}: out of range"
        raise ConfigurationError(msg)
    return port


@dataclass(frozen=True, slots=True)
class TimeoutSettings:
    """Connection and lifecycle timeouts, in seconds.

    ``drain`` is the grace period between the stop signal and the start
    of the graceful shutdown; ``shutdown`` bounds the graceful shutdown.
    """

    read: float = 60.0
    write: float = 60.0
    idle: float = 60.0
    drain: float = 0.0
    shutdown: float = 60.0

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], *, base: TimeoutSettings | None = None) -> Self:
        values = _normalize_keys(cls, mapping)
        start = base or cls()
        return cls(**{f.name: parse_duration(values.get(f.name, getattr(start, f.name))) for f in fields(cls)})


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    """Access log options."""

    request_body: bool = False
    request_body_base64: bool = False

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Self:
        values = _normalize_keys(cls, mapping)
        return cls(**{name: _as_bool(name, value) for name, value in values.items()})


@dataclass(frozen=True, slots=True)
class HealthCheckSettings:
    """The standalone health check server."""

    path: str = "/health"
    port: int = 8090
    timeout: TimeoutSettings = field(default_factory=lambda: TimeoutSettings(shutdown=5.0))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Self:
        values = _normalize_keys(cls, mapping)
        default = cls()
        return cls(
            path=str(values.get("path", default.path)),
            port=_as_port(values.get("port", default.port)),
            timeout=TimeoutSettings.from_mapping(values.get("timeout", {}), base=default.timeout),
        )


@dataclass(frozen=True, slots=True)
class ProfilingSettings:
    """The profiling server (``/debug/profiling``)."""

    enabled: bool = False
    port: int = 8091

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Self:
        values = _normalize_keys(cls, mapping)
        default = cls()
        return cls(
            enabled=_as_bool("enabled", values.get("enabled", default.enabled)),
            port=_as_port(values.get("port", default.port)),
        )


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Settings of one named HTTP server. Immutable after creation.

    All fields have defaults. Override what you need::

        settings = ServerSettings(port=0, timeout=TimeoutSettings(drain=5.0))
    """

    host: str = "0.0.0.0"
    port: int = 8080
    timeout: TimeoutSettings = field(default_factory=TimeoutSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    health_check: HealthCheckSettings = field(default_factory=HealthCheckSettings)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Self:
        values = _normalize_keys(cls, mapping)
        default = cls()
        return cls(
            host=str(values.get("host", default.host)),
            port=_as_port(values.get("port", default.port)),
            timeout=TimeoutSettings.from_mapping(values.get("timeout", {})),
            logging=LoggingSettings.from_mapping(values.get("logging", {})),
            health_check=HealthCheckSettings.from_mapping(values.get("health_check", {})),
        )


def load_config(path: str | Path) -> dict[str, Any]:
    """Read a YAML application config file into a plain dict.

    An empty file yields an empty config.
    """
    try:
        with Path(path).open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"can not read config file {str(path)!r}: {exc}"
        raise ConfigurationError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"can not parse config file {str(path)!r}: {exc}"
        raise ConfigurationError(msg) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"config file {str(path)!r} must contain a mapping at the top level"
        raise ConfigurationError(msg)
    return data


def _lookup(config: Config | None, *keys: str) -> Mapping[str, Any]:
    node: Any = config or {}
    for key in keys:
        if not isinstance(node, Mapping):
            return {}
        node = node.get(key, {})
    return node if node is not None else {}


def server_settings(config: Config | None, name: str) -> ServerSettings:
    """Settings for the server called *name* (key ``httpserver.<name>``)."""
    return ServerSettings.from_mapping(_lookup(config, "httpserver", name))


def health_check_settings(config: Config | None) -> HealthCheckSettings:
    """Settings for the health check server (key ``httpserver.health-check``)."""
    return HealthCheckSettings.from_mapping(_lookup(config, "httpserver", "health-check"))


def profiling_settings(config: Config | None) -> ProfilingSettings:
    """Settings for the profiling server (key ``profiling``)."""
    return ProfilingSettings.from_mapping(_lookup(config, "profiling"))
