"""Route path segments and their parameter converters.

Three spellings declare a parameter segment:

``{name}`` / ``{name:int}``
    brace form with an optional converter (``str`` by default)
``:name``
    a ``str`` parameter
``*name``
    a ``path`` parameter that swallows the rest of the URL
"""

from dataclasses import dataclass

# converter -> regex one segment must match ("path" spans segments)
PATTERNS: dict[str, str] = {
    "str": r"[^/]+",
    "int": r"-?\d+",
    "float": r"-?\d+(?:\.\d+)?",
    "path": r".+",
}


@dataclass(frozen=True, slots=True)
class PathSegment:
    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"

    @property
    def is_catch_all(self) -> bool:
        return self.is_param and self.param_type == "path"


def parse_segment(raw: str) -> PathSegment:
    """Classify one ``/``-separated piece of a route path.

    Raises ``KeyError`` naming the converter when it is not in ``PATTERNS``.
    """
    match raw[:1]:
        case "{" if raw.endswith("}"):
            name, _, kind = raw[1:-1].partition(":")
            kind = kind or "str"
        case ":" if len(raw) > 1:
            name, kind = raw[1:], "str"
        case "*" if len(raw) > 1:
            name, kind = raw[1:], "path"
        case _:
            return PathSegment(raw)
    if kind not in PATTERNS:
        raise KeyError(kind)
    return PathSegment(raw, is_param=True, param_name=name, param_type=kind)
