"""Raw and brotli cache tiers layered over a key-value store."""

from __future__ import annotations

from typing import Optional

import structlog

from ..common.metrics import GLOBAL_REGISTRY
from .background import BackgroundWriter
from .store import KeyValueStore

LOGGER = structlog.get_logger("ghcdn.tiers")

DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 7
RAW_PREFIX = "raw:"
COMPRESSED_SUFFIX = ":br"

RAW_HIT_COUNTER = GLOBAL_REGISTRY.counter("ghcdn_raw_cache_hits_total", "Raw tier hits")
RAW_MISS_COUNTER = GLOBAL_REGISTRY.counter("ghcdn_raw_cache_misses_total", "Raw tier misses")
COMPRESSED_HIT_COUNTER = GLOBAL_REGISTRY.counter("ghcdn_compressed_cache_hits_total", "Compressed tier hits")
COMPRESSED_MISS_COUNTER = GLOBAL_REGISTRY.counter("ghcdn_compressed_cache_misses_total", "Compressed tier misses")


def raw_key(path: str) -> str:
    return RAW_PREFIX + path


def compressed_key(path: str) -> str:
    return raw_key(path) + COMPRESSED_SUFFIX


class CacheTierManager:
    """Reads tiers inline and writes them through a :class:`BackgroundWriter`.

    Read errors from the store are reported as misses.
    """

    def __init__(
        self,
        store: KeyValueStore,
        writer: BackgroundWriter,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ):
        self._store = store
        self._writer = writer
        self._ttl_seconds = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    async def get_raw(self, path: str) -> Optional[bytes]:
        data = await self._read(raw_key(path))
        (RAW_HIT_COUNTER if data is not None else RAW_MISS_COUNTER).inc()
        return data

    def put_raw(self, path: str, data: bytes) -> None:
        self._schedule_put(raw_key(path), data)

    async def get_compressed(self, path: str) -> Optional[bytes]:
        data = await self._read(compressed_key(path))
        (COMPRESSED_HIT_COUNTER if data is not None else COMPRESSED_MISS_COUNTER).inc()
        return data

    def put_compressed(self, path: str, data: bytes) -> None:
        self._schedule_put(compressed_key(path), data)

    def invalidate_compressed(self, path: str) -> None:
        key = compressed_key(path)
        self._writer.submit(key, lambda: self._store.delete(key))

    async def _read(self, key: str) -> Optional[bytes]:
        try:
            return await self._store.get(key)
        except Exception as exc:  # noqa: BLE001 - store failures degrade to a miss
            LOGGER.warning("cache_read_failed", key=key, error=str(exc))
            return None

    def _schedule_put(self, key: str, data: bytes) -> None:
        ttl = self._ttl_seconds
        self._writer.submit(key, lambda: self._store.put(key, data, ttl))
