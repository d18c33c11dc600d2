"""Key-addressed byte stores with per-key expiry."""

from __future__ import annotations

import time
from typing import Callable, Optional, Protocol

from redis.asyncio import Redis, from_url as redis_from_url


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def ping(self) -> bool:
        ...

    async def aclose(self) -> None:
        ...


class RedisStore:
    """Redis-backed store; expiry is delegated to Redis ``SET ... EX``."""

    def __init__(self, redis: Redis):
        self._redis = redis

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis_from_url(url, decode_responses=False))

    async def get(self, key: str) -> Optional[bytes]:
        value = await self._redis.get(key)
        if value is None:
            return None
        return bytes(value)

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        await self._redis.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def ping(self) -> bool:
        return bool(await self._redis.ping())

    async def aclose(self) -> None:
        await self._redis.aclose()


class InMemoryStore:
    """Per-process store for local runs and tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[bytes, float]] = {}

    async def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self._entries[key] = (bytes(value), self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry[1]
