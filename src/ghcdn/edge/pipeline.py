"""Per-request orchestration of cache lookup, origin fetch and response assembly."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping, Optional, TypeVar

import brotli
import structlog
from opentelemetry import trace

from ..common.metrics import GLOBAL_REGISTRY
from .content import is_compressible
from .digest import WEAK_ETAG_THRESHOLD, compute_integrity, make_etag
from .errors import OriginUnavailable, RangeNotSatisfiable
from .minify import MinificationGate
from .origin import OriginResolver
from .response import (
    BROTLI_ENCODING,
    EdgeResponse,
    build_body_response,
    build_metadata_response,
    parse_range,
    plain_text,
)
from .tiers import CacheTierManager

LOGGER = structlog.get_logger("ghcdn.pipeline")
TRACER = trace.get_tracer("ghcdn.pipeline")

CACHE_SOURCE = "kv"
LIVENESS_TEXT = "GHCDN Alive"

COMPRESSED_BUILD_COUNTER = GLOBAL_REGISTRY.counter(
    "ghcdn_compressed_builds_total", "Brotli payloads built on a compressed tier miss"
)
COMPRESSION_FAILURE_COUNTER = GLOBAL_REGISTRY.counter(
    "ghcdn_compression_failures_total", "Brotli compressions that failed and fell back to identity"
)
BYTES_SERVED_COUNTER = GLOBAL_REGISTRY.counter("ghcdn_bytes_served_total", "Body bytes served")

T = TypeVar("T")
Compressor = Callable[[bytes], bytes]

# Bodies at or above this size are minified and hashed on a worker thread.
OFFLOAD_THRESHOLD_BYTES = 64 * 1024


def accepts_brotli(accept_encoding: str | None) -> bool:
    """True when ``Accept-Encoding`` lists ``br`` with a non-zero q-value."""
    if not accept_encoding:
        return False
    for part in accept_encoding.split(","):
        coding, *params = (item.strip() for item in part.split(";"))
        if coding.lower() != BROTLI_ENCODING:
            continue
        q_value = 1.0
        for param in params:
            if param.startswith("q="):
                try:
                    q_value = float(param[2:])
                except ValueError:
                    q_value = 0.0
        return q_value > 0
    return False


def _flag(query: Mapping[str, str], name: str, expected: str = "true") -> bool:
    return query.get(name) == expected


@dataclass(frozen=True)
class RequestContext:
    path: str
    meta: bool = False
    integrity: bool = False
    minified: bool = False
    prewarm: bool = False
    accept_encoding: str = ""
    range_header: Optional[str] = None

    @classmethod
    def from_request_parts(
        cls,
        raw_path: str,
        query: Mapping[str, str],
        headers: Mapping[str, str],
    ) -> "RequestContext":
        return cls(
            path=raw_path.lstrip("/"),
            meta=_flag(query, "meta"),
            integrity=_flag(query, "integrity"),
            minified=_flag(query, "need", "minified"),
            prewarm=_flag(query, "prewarm"),
            accept_encoding=headers.get("accept-encoding") or "",
            range_header=headers.get("range"),
        )


def brotli_compressor(quality: int = 11) -> Compressor:
    return partial(brotli.compress, quality=quality)


class RequestOrchestrator:
    """Serves one request end to end.

    Order within a request: resolve, minify, persist (in the background),
    digest the final bytes, then either emit metadata or negotiate encoding
    and slice the requested range.
    """

    def __init__(
        self,
        tiers: CacheTierManager,
        resolver: OriginResolver,
        gate: MinificationGate,
        *,
        compressor: Compressor | None = None,
        weak_etag_threshold: int = WEAK_ETAG_THRESHOLD,
        invalidate_compressed_on_prewarm: bool = False,
        offload_threshold: int = OFFLOAD_THRESHOLD_BYTES,
    ):
        self._tiers = tiers
        self._resolver = resolver
        self._gate = gate
        self._compressor = compressor or brotli_compressor()
        self._weak_etag_threshold = weak_etag_threshold
        self._invalidate_compressed_on_prewarm = invalidate_compressed_on_prewarm
        self._offload_threshold = offload_threshold

    async def handle(self, ctx: RequestContext) -> EdgeResponse:
        if not ctx.path:
            return plain_text(200, LIVENESS_TEXT)

        with TRACER.start_as_current_span(
            "edge.request",
            attributes={"ghcdn.path": ctx.path, "ghcdn.prewarm": ctx.prewarm, "ghcdn.meta": ctx.meta},
        ) as span:
            response = await self._serve(ctx)
            span.set_attribute("ghcdn.status", response.status)
            BYTES_SERVED_COUNTER.inc(len(response.body))
            return response

    async def _serve(self, ctx: RequestContext) -> EdgeResponse:
        path = ctx.path
        use_brotli = accepts_brotli(ctx.accept_encoding) and is_compressible(path)
        minify = self._gate.should_minify(path, ctx.minified)

        raw = None if ctx.prewarm else await self._tiers.get_raw(path)
        source = CACHE_SOURCE
        if raw is None:
            try:
                result = await self._resolver.resolve(path)
            except OriginUnavailable as exc:
                LOGGER.info("origin_unavailable", path=path, attempts=exc.attempts)
                return plain_text(404, "Not Found")
            raw, source = result.data, result.source
            if minify:
                raw = await self._offload(len(raw), self._gate.apply, path, raw)
            self._tiers.put_raw(path, raw)
            if ctx.prewarm and self._invalidate_compressed_on_prewarm:
                self._tiers.invalidate_compressed(path)
            LOGGER.info("raw_cache_populated", path=path, source=source, bytes=len(raw), prewarm=ctx.prewarm)

        integrity = await self._offload(len(raw), compute_integrity, raw)
        if ctx.meta:
            return build_metadata_response(
                path=path,
                size=len(raw),
                integrity=integrity,
                source=source,
                brotli=use_brotli,
                minified=minify,
            )

        etag = make_etag(integrity, len(raw), weak_threshold=self._weak_etag_threshold)
        try:
            byte_range = parse_range(ctx.range_header, len(raw))
        except RangeNotSatisfiable as exc:
            LOGGER.info("range_not_satisfiable", path=path, range=exc.header, length=exc.length)
            return plain_text(416, "Range Not Satisfiable")

        served, encoding = raw, None
        if use_brotli:
            compressed = await self._compressed(path, raw)
            if compressed is not None:
                served, encoding = compressed, BROTLI_ENCODING

        return build_body_response(
            path=path,
            raw_length=len(raw),
            served=served,
            byte_range=byte_range,
            encoding=encoding,
            etag=etag,
            source=source,
        )

    async def _offload(self, size: int, func: Callable[..., T], *args: Any) -> T:
        if size < self._offload_threshold:
            return func(*args)
        return await asyncio.to_thread(func, *args)

    async def _compressed(self, path: str, raw: bytes) -> Optional[bytes]:
        cached = await self._tiers.get_compressed(path)
        if cached is not None:
            return cached
        try:
            compressed = await asyncio.to_thread(self._compressor, raw)
        except Exception as exc:  # noqa: BLE001 - serve identity bytes instead
            COMPRESSION_FAILURE_COUNTER.inc()
            LOGGER.warning("compression_failed", path=path, error=str(exc))
            return None
        COMPRESSED_BUILD_COUNTER.inc()
        self._tiers.put_compressed(path, compressed)
        return compressed
