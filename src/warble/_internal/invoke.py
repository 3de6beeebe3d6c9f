"""Invoke helpers — call sync or async callables uniformly.

Handlers, factories, and health checks can be ``def`` or ``async def``.
The sync/async check lives here so call sites stay one line::

    result = await invoke(handler, request, value)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


def callable_name(func: Any) -> str:
    """Best-effort readable name for a callable (used in error messages)."""
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None)
    if name is None:
        name = type(func).__qualname__
    return name
