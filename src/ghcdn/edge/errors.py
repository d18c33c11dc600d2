"""Failure taxonomy for the request pipeline."""

from __future__ import annotations


class EdgeError(Exception):
    """Base class for pipeline failures."""


class OriginUnavailable(EdgeError):
    """Every configured origin answered with a non-success outcome."""

    def __init__(self, path: str, attempts: list[str]):
        super().__init__(f"No origin could serve {path!r} (tried {', '.join(attempts)})")
        self.path = path
        self.attempts = attempts


class RangeNotSatisfiable(EdgeError):
    """The requested byte range lies outside the resource."""

    def __init__(self, header: str, length: int):
        super().__init__(f"Range {header!r} not satisfiable for {length} bytes")
        self.header = header
        self.length = length


class MalformedStructuredData(EdgeError):
    """Structured payload could not be parsed for minification."""


class CacheWriteFailure(EdgeError):
    """A background cache write did not complete."""

    def __init__(self, key: str, cause: BaseException):
        super().__init__(f"Cache write for {key!r} failed: {cause}")
        self.key = key
        self.cause = cause
