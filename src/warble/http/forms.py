"""Form bodies: ``application/x-www-form-urlencoded`` and ``multipart/form-data``.

Urlencoded bodies go through ``urllib.parse``; multipart bodies are fed
to ``python-multipart`` whose callbacks fill a ``_PartCollector``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import parse_qsl

from python_multipart.multipart import MultipartParser, parse_options_header

from warble._internal.multimap import MultiValueMap

FORM_URLENCODED = "application/x-www-form-urlencoded"
FORM_MULTIPART = "multipart/form-data"


@dataclass(frozen=True, slots=True)
class UploadFile:
    """One file part of a multipart body, held in memory."""

    filename: str
    content_type: str
    size: int
    _content: bytes = field(repr=False)

    async def read(self) -> bytes:
        return self._content

    async def save(self, path: Path) -> None:
        """Write the upload to *path*; the parent directory must exist."""
        path.write_bytes(self._content)


class FormData(MultiValueMap):
    """Text fields as a multi-value map, plus ``files`` keyed by field name."""

    __slots__ = ("_files",)

    def __init__(
        self,
        values: Mapping[str, Iterable[str]] | None = None,
        files: Mapping[str, list[UploadFile]] | None = None,
    ) -> None:
        super().__init__(values)
        self._files = dict(files or {})

    @property
    def files(self) -> Mapping[str, list[UploadFile]]:
        return self._files


def media_type(content_type: str | None) -> str:
    """``"Text/HTML; charset=utf-8"`` -> ``"text/html"``; ``""`` when missing."""
    if not content_type:
        return ""
    return content_type.partition(";")[0].strip().lower()


async def parse_form_data(body: bytes, content_type: str) -> FormData:
    """Parse *body* according to *content_type*.

    Raises:
        ValueError: Not a form content type, or a multipart type with
            no boundary.
    """
    kind = media_type(content_type)
    if kind == FORM_URLENCODED:
        grouped: dict[str, list[str]] = {}
        for key, value in parse_qsl(body.decode("utf-8"), keep_blank_values=True):
            grouped.setdefault(key, []).append(value)
        return FormData(grouped)
    if kind == FORM_MULTIPART:
        _, options = parse_options_header(content_type.encode("latin-1"))
        boundary = options.get(b"boundary")
        if boundary is None:
            raise ValueError("multipart content type has no boundary")
        collector = _PartCollector()
        parser = MultipartParser(boundary, collector.callbacks())
        parser.write(body)
        parser.finalize()
        return FormData(collector.fields, collector.files)
    raise ValueError(f"not a form content type: {content_type!r}")


class _PartCollector:
    """Accumulates multipart parts as the parser reports them."""

    def __init__(self) -> None:
        self.fields: dict[str, list[str]] = {}
        self.files: dict[str, list[UploadFile]] = {}
        self._headers: dict[str, str] = {}
        self._header_name = ""
        self._buffer = bytearray()

    def callbacks(self) -> dict[str, object]:
        return {
            "on_part_begin": self._begin,
            "on_header_field": self._header_field,
            "on_header_value": self._header_value,
            "on_part_data": self._data,
            "on_part_end": self._end,
        }

    def _begin(self) -> None:
        self._headers = {}
        self._buffer = bytearray()

    def _header_field(self, chunk: bytes, start: int, end: int) -> None:
        self._header_name = chunk[start:end].decode("latin-1").lower()

    def _header_value(self, chunk: bytes, start: int, end: int) -> None:
        self._headers[self._header_name] = chunk[start:end].decode("latin-1")

    def _data(self, chunk: bytes, start: int, end: int) -> None:
        self._buffer.extend(chunk[start:end])

    def _end(self) -> None:
        disposition = self._headers.get("content-disposition")
        if disposition is None:
            return
        _, params = parse_options_header(disposition.encode("latin-1"))
        name = params.get(b"name")
        if name is None:
            return
        key = name.decode("utf-8")
        filename = params.get(b"filename")
        if filename is None:
            self.fields.setdefault(key, []).append(self._buffer.decode("utf-8", errors="replace"))
            return
        content = bytes(self._buffer)
        upload = UploadFile(
            filename=filename.decode("utf-8"),
            content_type=self._headers.get("content-type", "application/octet-stream"),
            size=len(content),
            _content=content,
        )
        self.files.setdefault(key, []).append(upload)
