"""Upstream fetching with a single fallback origin."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

import httpx
import structlog
from opentelemetry import trace

from ..common.metrics import GLOBAL_REGISTRY
from .errors import OriginUnavailable

LOGGER = structlog.get_logger("ghcdn.origin")
TRACER = trace.get_tracer("ghcdn.origin")

ORIGIN_FETCH_COUNTER = GLOBAL_REGISTRY.counter("ghcdn_origin_fetches_total", "Origin fetch attempts", label="source")
ORIGIN_FAILURE_COUNTER = GLOBAL_REGISTRY.counter(
    "ghcdn_origin_failures_total", "Origin fetch attempts without a success status", label="source"
)


class OriginFetcher(Protocol):
    async def fetch(self, url: str) -> tuple[bytes, bool]:
        """Return the body and whether the origin answered with a success status."""


class HttpxOriginFetcher:
    """Fetches origin URLs with a shared ``httpx.AsyncClient``."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @classmethod
    def create(cls, timeout_seconds: float) -> "HttpxOriginFetcher":
        client = httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)
        return cls(client)

    async def fetch(self, url: str) -> tuple[bytes, bool]:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            LOGGER.warning("origin_transport_error", url=url, error=str(exc))
            return b"", False
        if not response.is_success:
            return b"", False
        return response.content, True

    async def aclose(self) -> None:
        await self._client.aclose()


@dataclass(frozen=True)
class Origin:
    label: str
    url_template: str

    def url_for(self, path: str) -> str:
        return self.url_template.format(path=path)


@dataclass(frozen=True)
class OriginResult:
    data: bytes
    source: str


GITHUB_ORIGIN = Origin("github", "https://raw.githubusercontent.com/{path}")
JSDELIVR_ORIGIN = Origin("jsdelivr", "https://cdn.jsdelivr.net/gh/{path}")


class OriginResolver:
    """Tries each origin in order and reports which one served the path."""

    def __init__(self, fetcher: OriginFetcher, origins: Sequence[Origin] = (GITHUB_ORIGIN, JSDELIVR_ORIGIN)):
        if not origins:
            raise ValueError("at least one origin is required")
        self._fetcher = fetcher
        self._origins = tuple(origins)

    @property
    def origins(self) -> tuple[Origin, ...]:
        return self._origins

    async def resolve(self, path: str) -> OriginResult:
        attempted: list[str] = []
        for origin in self._origins:
            url = origin.url_for(path)
            attempted.append(origin.label)
            ORIGIN_FETCH_COUNTER.inc(label=origin.label)
            with TRACER.start_as_current_span(
                "origin.fetch",
                attributes={"ghcdn.origin": origin.label, "ghcdn.path": path},
            ) as span:
                data, ok = await self._fetcher.fetch(url)
                span.set_attribute("ghcdn.origin_ok", ok)
            if ok:
                LOGGER.info("origin_fetch", path=path, source=origin.label, bytes=len(data))
                return OriginResult(data=data, source=origin.label)
            ORIGIN_FAILURE_COUNTER.inc(label=origin.label)
            LOGGER.info("origin_fetch_failed", path=path, source=origin.label)
        raise OriginUnavailable(path, attempted)
