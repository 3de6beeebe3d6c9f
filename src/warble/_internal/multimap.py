"""Read-only multi-value string mapping.

Query strings, form bodies, and headers all map a key to one or more
string values. Indexing answers the first value; ``get_list`` answers
all of them in arrival order. Decoders read any of them the same way.
"""

from collections.abc import Iterable, Iterator, Mapping


class MultiValueMap(Mapping[str, str]):
    """Keys with ordered value lists. Immutable after construction."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Iterable[str]] | None = None) -> None:
        self._values: dict[str, list[str]] = {key: list(items) for key, items in (values or {}).items()}

    def _key(self, key: str) -> str:
        return key

    def __getitem__(self, key: str) -> str:
        values = self._values.get(self._key(key))
        if not values:
            raise KeyError(key)
        return values[0]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._key(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._values!r})"

    def get_list(self, key: str) -> list[str]:
        """Every value of *key*, oldest first; empty when absent."""
        return list(self._values.get(self._key(key), ()))

    def first_values(self) -> dict[str, str]:
        """``{key: first value}`` for every key that has a value."""
        return {key: values[0] for key, values in self._values.items() if values}
