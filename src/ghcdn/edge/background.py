"""Fire-and-forget executor for cache population."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Awaitable, Callable

import structlog

from ..common.metrics import GLOBAL_REGISTRY
from .errors import CacheWriteFailure

LOGGER = structlog.get_logger("ghcdn.background")

WRITE_FAILURE_COUNTER = GLOBAL_REGISTRY.counter(
    "ghcdn_cache_write_failures_total",
    "Background cache writes that failed and were dropped",
)
PENDING_WRITES_GAUGE = GLOBAL_REGISTRY.gauge("ghcdn_cache_pending_writes", "Background cache writes not yet completed")


class BackgroundWriter:
    """Runs cache writes outside the response path.

    Each submitted write runs exactly once. A failing write is logged and
    dropped; it never reaches the request that scheduled it. Writes are shielded
    from request cancellation.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()
        self.recent_failures: deque[CacheWriteFailure] = deque(maxlen=100)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, key: str, write: Callable[[], Awaitable[None]]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(self._run(key, write), name=f"cache-write:{key}")
        self._tasks.add(task)
        PENDING_WRITES_GAUGE.set(float(len(self._tasks)))
        task.add_done_callback(self._forget)
        return task

    async def _run(self, key: str, write: Callable[[], Awaitable[None]]) -> None:
        try:
            await write()
        except Exception as exc:  # noqa: BLE001 - log-and-drop policy
            failure = CacheWriteFailure(key, exc)
            self.recent_failures.append(failure)
            WRITE_FAILURE_COUNTER.inc()
            LOGGER.warning("cache_write_failed", key=key, error=str(exc))

    def _forget(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        PENDING_WRITES_GAUGE.set(float(len(self._tasks)))

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight writes, giving up after ``timeout`` seconds."""
        if not self._tasks:
            return
        _, not_done = await asyncio.wait(set(self._tasks), timeout=timeout)
        if not_done:
            LOGGER.warning("cache_writes_abandoned", count=len(not_done))
