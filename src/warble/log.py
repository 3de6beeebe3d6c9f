"""Structured logging for warble servers.

Uses stdlib ``logging`` throughout. Request-scoped fields (the
``X-Request-Id`` / ``X-Session-Id`` correlation ids) live in a
``ContextVar`` so every record emitted while a request is being served
carries them, whichever logger emitted it.

Call ``configure_logging()`` once at process start to get JSON lines on
stdout. Libraries embedding warble can skip it and attach
``LogContextFilter`` to their own handlers instead.
"""

import json
import logging
import sys
from collections.abc import Mapping
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from typing import IO, Any

LOGGER_NAME = "warble"

_log_context: ContextVar[Mapping[str, Any]] = ContextVar("warble_log_context", default={})


def log_context() -> Mapping[str, Any]:
    """Return the log fields bound to the current request."""
    return _log_context.get()


def bind_log_context(**fields: Any) -> Token[Mapping[str, Any]]:
    """Add *fields* to the current log context.

    Returns a token for ``reset_log_context()``. Fields are merged on top
    of the existing context; the previous mapping is never mutated.
    """
    return _log_context.set({**_log_context.get(), **fields})


def reset_log_context(token: Token[Mapping[str, Any]]) -> None:
    """Restore the log context that was active before ``bind_log_context()``."""
    _log_context.reset(token)


class LogContextFilter(logging.Filter):
    """Copy the request log context onto every record.

    Also guarantees a ``fields`` attribute (the per-call structured
    fields passed via ``extra={"fields": {...}}``) so formatters never
    have to guess.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = dict(_log_context.get())
        if not hasattr(record, "fields"):
            record.fields = {}
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record with stable key ordering."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            data["context"] = context
        fields = getattr(record, "fields", None)
        if fields:
            data["fields"] = fields
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, sort_keys=True, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable single line with the context fields appended."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s :: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in sorted(context.items()))
            line = f"{line} [{pairs}]"
        return line


def configure_logging(
    level: str | int = "INFO",
    *,
    json_output: bool = True,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Install a single handler on the ``warble`` logger.

    Idempotent: earlier handlers installed on the ``warble`` logger are
    closed and replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        resolved = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    else:
        resolved = level
    logger.setLevel(resolved)
    logger.propagate = False

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(JsonFormatter() if json_output else TextFormatter())
    handler.addFilter(LogContextFilter())
    logger.addHandler(handler)
    return logger
