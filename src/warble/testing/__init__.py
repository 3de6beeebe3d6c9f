"""Test utilities for warble servers.

``TestClient`` drives an app in-process through ASGI; ``running_server``
serves a router factory on a real socket and hands out an
``httpx.AsyncClient`` bound to it::

    from warble.testing import TestClient, running_server
"""

from warble.testing.client import TestClient
from warble.testing.server import running_server
from warble.testing.sse import SSETestResult

__all__ = [
    "SSETestResult",
    "TestClient",
    "running_server",
]
