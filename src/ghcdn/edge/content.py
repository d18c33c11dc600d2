"""Closed set of content kinds recognised by file extension."""

from __future__ import annotations

from enum import Enum
from typing import Optional

DEFAULT_MIME = "application/octet-stream"


class ContentKind(str, Enum):
    JAVASCRIPT = ".js"
    CSS = ".css"
    JSON = ".json"
    HTML = ".html"
    WASM = ".wasm"

    @property
    def mime(self) -> str:
        return _MIME_TYPES[self]

    @property
    def minifiable(self) -> bool:
        return self is not ContentKind.WASM


_MIME_TYPES = {
    ContentKind.JAVASCRIPT: "application/javascript",
    ContentKind.CSS: "text/css",
    ContentKind.JSON: "application/json",
    ContentKind.HTML: "text/html",
    ContentKind.WASM: "application/wasm",
}


def kind_for_path(path: str) -> Optional[ContentKind]:
    for kind in ContentKind:
        if path.endswith(kind.value):
            return kind
    return None


def mime_for_path(path: str) -> str:
    kind = kind_for_path(path)
    return kind.mime if kind else DEFAULT_MIME


def is_compressible(path: str) -> bool:
    return kind_for_path(path) is not None
