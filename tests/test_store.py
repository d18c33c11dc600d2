from __future__ import annotations

import pytest

from ghcdn.edge.store import InMemoryStore, RedisStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, bytes] = {}
        self.expiries: dict[str, int] = {}
        self.closed = False

    async def get(self, key: str):
        return self.values.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        self.values[key] = value
        if ex is not None:
            self.expiries[key] = ex

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.mark.anyio
async def test_in_memory_store_expires_entries() -> None:
    clock = FakeClock()
    store = InMemoryStore(clock=clock)
    await store.put("raw:a.js", b"payload", ttl_seconds=60)
    clock.now += 59
    assert await store.get("raw:a.js") == b"payload"
    assert "raw:a.js" in store
    clock.now += 1
    assert await store.get("raw:a.js") is None
    assert "raw:a.js" not in store


@pytest.mark.anyio
async def test_in_memory_store_overwrites_and_deletes() -> None:
    store = InMemoryStore()
    await store.put("k", b"one", ttl_seconds=10)
    await store.put("k", b"two", ttl_seconds=10)
    assert await store.get("k") == b"two"
    await store.delete("k")
    await store.delete("k")
    assert await store.get("k") is None


@pytest.mark.anyio
async def test_redis_store_sets_expiry() -> None:
    redis = FakeRedis()
    store = RedisStore(redis)  # type: ignore[arg-type]
    await store.put("raw:o/r/main/a.js", b"data", ttl_seconds=604800)
    assert redis.expiries["raw:o/r/main/a.js"] == 604800
    assert await store.get("raw:o/r/main/a.js") == b"data"
    assert await store.get("raw:missing") is None
    assert await store.ping() is True
    await store.delete("raw:o/r/main/a.js")
    assert await store.get("raw:o/r/main/a.js") is None
    await store.aclose()
    assert redis.closed
