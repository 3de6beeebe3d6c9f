"""Embedded file serving middleware.

Serves files from a virtual root: a directory, or package data
reached through ``importlib.resources`` so a built single-page app can
ship inside the wheel::

    from importlib.resources import files

    app.use(EmbeddedFiles(files("myapp") / "dist", "/api", "/health"))

Paths under an excluded prefix fall through to the next handler. An
empty path, or one whose last segment has no extension, serves
``index.html`` so client-side routes of a single-page app resolve.
"""

import mimetypes
import posixpath
from importlib.resources.abc import Traversable
from pathlib import Path

from warble.http.request import Request
from warble.http.response import new_response, new_text_response, with_body, with_header, with_status_code
from warble.middleware.protocol import AnyResponse, Next

INDEX_FILE = "index.html"


class EmbeddedFiles:
    __slots__ = ("_excludes", "_root")

    def __init__(self, root: Traversable | str | Path, *excludes: str) -> None:
        self._root: Traversable = Path(root) if isinstance(root, str) else root
        self._excludes = tuple(excludes)

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        if any(request.path.startswith(prefix) for prefix in self._excludes):
            return await next(request)

        name = request.path.lstrip("/")
        if not name or not posixpath.splitext(name)[1]:
            name = INDEX_FILE
        return self._serve(name)

    def _serve(self, name: str) -> AnyResponse:
        parts = [part for part in name.split("/") if part]
        try:
            if ".." in parts:
                msg = "invalid path"
                raise FileNotFoundError(msg)
            resource = self._root.joinpath(*parts)
            body = resource.read_bytes()
        except (OSError, ValueError) as exc:
            return new_text_response(f"failed to open {name}: {exc}", with_status_code(404))

        content_type, _ = mimetypes.guess_type(name)
        return new_response(
            with_body(body),
            with_header("Content-Type", content_type or "application/octet-stream"),
        )
