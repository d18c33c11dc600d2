"""In-memory collaborators shared by the edge tests."""

from __future__ import annotations

GITHUB = "https://raw.githubusercontent.com/"
JSDELIVR = "https://cdn.jsdelivr.net/gh/"


class FakeOriginFetcher:
    """Serves canned bodies by URL and records every fetch."""

    def __init__(self, responses: dict[str, bytes] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[str] = []
        self.closed = False

    async def fetch(self, url: str) -> tuple[bytes, bool]:
        self.calls.append(url)
        if url in self.responses:
            return self.responses[url], True
        return b"", False

    async def aclose(self) -> None:
        self.closed = True


class FailingStore:
    """Store whose every operation raises, for degradation tests."""

    def __init__(self, *, fail_reads: bool = True, fail_writes: bool = True) -> None:
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.values: dict[str, bytes] = {}

    async def get(self, key: str):
        if self.fail_reads:
            raise ConnectionError("store offline")
        return self.values.get(key)

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if self.fail_writes:
            raise ConnectionError("store offline")
        self.values[key] = value

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    async def ping(self) -> bool:
        if self.fail_reads:
            raise ConnectionError("store offline")
        return True

    async def aclose(self) -> None:
        return None
