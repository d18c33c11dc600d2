"""Heuristic comment and whitespace stripping for text payloads."""

from __future__ import annotations

import json
import re
from typing import Callable, Dict

import structlog

from .content import ContentKind, kind_for_path
from .errors import MalformedStructuredData

LOGGER = structlog.get_logger("ghcdn.minify")

_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
_JS_PUNCTUATION = re.compile(r"\s*([{}\[\]()=;:,])\s*")
_CSS_PUNCTUATION = re.compile(r"\s*([{}:;,])\s*")
_BETWEEN_TAGS = re.compile(r">\s+<")


def minify_js(code: str) -> str:
    code = _LINE_COMMENT.sub("", code)
    code = _BLOCK_COMMENT.sub("", code)
    code = _WHITESPACE.sub(" ", code)
    return _JS_PUNCTUATION.sub(r"\1", code).strip()


def minify_css(code: str) -> str:
    code = _BLOCK_COMMENT.sub("", code)
    code = _WHITESPACE.sub(" ", code)
    return _CSS_PUNCTUATION.sub(r"\1", code).strip()


def _compact_json(code: str) -> str:
    try:
        parsed = json.loads(code)
    except (ValueError, RecursionError) as exc:
        raise MalformedStructuredData(str(exc)) from exc
    return json.dumps(parsed, separators=(",", ":"), ensure_ascii=False)


def minify_json(code: str) -> str:
    """Re-serialise JSON compactly; malformed documents come back untouched."""
    try:
        return _compact_json(code)
    except MalformedStructuredData as exc:
        LOGGER.debug("json_minify_skipped", error=str(exc))
        return code


def minify_html(code: str) -> str:
    code = _HTML_COMMENT.sub("", code)
    code = _WHITESPACE.sub(" ", code)
    return _BETWEEN_TAGS.sub("><", code).strip()


Minifier = Callable[[str], str]

DEFAULT_MINIFIERS: Dict[ContentKind, Minifier] = {
    ContentKind.JAVASCRIPT: minify_js,
    ContentKind.CSS: minify_css,
    ContentKind.JSON: minify_json,
    ContentKind.HTML: minify_html,
}


class MinificationGate:
    """Decides whether a payload is minified before it is cached."""

    def __init__(self, minifiers: Dict[ContentKind, Minifier] | None = None):
        self._minifiers = dict(DEFAULT_MINIFIERS if minifiers is None else minifiers)

    def should_minify(self, path: str, requested: bool) -> bool:
        if not requested:
            return False
        kind = kind_for_path(path)
        return kind is not None and kind.minifiable

    def apply(self, path: str, data: bytes) -> bytes:
        kind = kind_for_path(path)
        minifier = self._minifiers.get(kind) if kind else None
        if minifier is None:
            return data
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            LOGGER.info("minify_skipped_binary", path=path)
            return data
        try:
            return minifier(text).encode("utf-8")
        except Exception as exc:  # noqa: BLE001 - serve the bytes unminified
            LOGGER.warning("minify_failed", path=path, kind=kind.value, error=str(exc))
            return data
