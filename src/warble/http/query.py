"""Query string parameters of a request."""

from urllib.parse import parse_qsl

from warble._internal.multimap import MultiValueMap


class QueryParams(MultiValueMap):
    """Decoded query parameters; blank values are kept (``?flag=`` -> ``""``)."""

    __slots__ = ("_raw",)

    def __init__(self, query_string: bytes | str = b"") -> None:
        raw = query_string.decode("latin-1") if isinstance(query_string, bytes) else query_string
        grouped: dict[str, list[str]] = {}
        for key, value in parse_qsl(raw, keep_blank_values=True):
            grouped.setdefault(key, []).append(value)
        super().__init__(grouped)
        self._raw = raw

    @property
    def raw(self) -> str:
        """The query string exactly as received."""
        return self._raw
