"""Byte-range slicing and response header assembly."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from .content import mime_for_path
from .errors import RangeNotSatisfiable

CACHE_CONTROL = "public, max-age=31536000, immutable"
SOURCE_HEADER = "x-ghcdn-source"
BROTLI_ENCODING = "br"

_RANGE_PATTERN = re.compile(r"bytes=(\d*)-(\d*)")


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int

    def slice(self, data: bytes) -> bytes:
        return data[self.start:self.end + 1]


@dataclass
class EdgeResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    media_type: Optional[str] = None
    payload: Optional[dict[str, Any]] = None


def parse_range(header: Optional[str], length: int) -> Optional[ByteRange]:
    """Parse a single ``bytes=start-end`` range against ``length`` bytes.

    Returns ``None`` when no range was requested or the header is not a byte
    range. Either bound may be omitted; the end is not clamped to the
    resource length.
    """
    if not header:
        return None
    match = _RANGE_PATTERN.search(header)
    if match is None:
        return None
    start = int(match.group(1)) if match.group(1) else 0
    end = int(match.group(2)) if match.group(2) else length - 1
    if start > end or start >= length:
        raise RangeNotSatisfiable(header, length)
    return ByteRange(start, end)


def content_headers(path: str, etag: str, source: str) -> dict[str, str]:
    return {
        "content-type": mime_for_path(path),
        "cache-control": CACHE_CONTROL,
        "etag": etag,
        "vary": "Accept-Encoding",
        SOURCE_HEADER: source,
    }


def build_body_response(
    *,
    path: str,
    raw_length: int,
    served: bytes,
    byte_range: Optional[ByteRange],
    encoding: Optional[str],
    etag: str,
    source: str,
) -> EdgeResponse:
    """Assemble a 200 or 206 response around ``served``.

    ``served`` is either the raw bytes or their brotli form. The requested
    indices are applied to it as-is, and ``content-range`` always reports the
    raw length.
    """
    headers = content_headers(path, etag, source)
    if encoding:
        headers["content-encoding"] = encoding
    if byte_range is None:
        return EdgeResponse(status=200, headers=headers, body=served)
    headers["content-range"] = f"bytes {byte_range.start}-{byte_range.end}/{raw_length}"
    return EdgeResponse(status=206, headers=headers, body=byte_range.slice(served))


def build_metadata_response(
    *,
    path: str,
    size: int,
    integrity: str,
    source: str,
    brotli: bool,
    minified: bool,
) -> EdgeResponse:
    return EdgeResponse(
        status=200,
        payload={
            "path": path,
            "size": size,
            "integrity": integrity,
            "source": source,
            "brotli": brotli,
            "minified": minified,
            "mime": mime_for_path(path),
        },
    )


def plain_text(status: int, text: str) -> EdgeResponse:
    return EdgeResponse(status=status, body=text.encode("utf-8"), media_type="text/plain")
