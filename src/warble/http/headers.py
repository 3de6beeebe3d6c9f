"""Request headers: a case-insensitive multi-value mapping.

Names are folded to lower case once, when the ASGI byte pairs are
decoded; lookups fold the requested name the same way.
"""

from collections.abc import Iterable

from warble._internal.multimap import MultiValueMap


class Headers(MultiValueMap):
    __slots__ = ()

    @classmethod
    def from_asgi(cls, raw: Iterable[tuple[bytes, bytes]]) -> "Headers":
        """Decode ASGI header pairs (latin-1, as HTTP/1.1 allows)."""
        grouped: dict[str, list[str]] = {}
        for name, value in raw:
            grouped.setdefault(name.decode("latin-1").lower(), []).append(value.decode("latin-1"))
        return cls(grouped)

    def _key(self, key: str) -> str:
        return key.lower()
