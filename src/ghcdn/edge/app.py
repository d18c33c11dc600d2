"""FastAPI surface for the repository content edge."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from ..common.http_security import MetricsGuard
from ..common.metrics import GLOBAL_REGISTRY
from ..common.observability import configure_logging, configure_tracing, instrument_app
from ..common.settings import EdgeSettings
from .background import BackgroundWriter
from .minify import MinificationGate
from .origin import HttpxOriginFetcher, Origin, OriginFetcher, OriginResolver
from .pipeline import RequestContext, RequestOrchestrator, brotli_compressor
from .response import EdgeResponse
from .store import InMemoryStore, KeyValueStore, RedisStore
from .tiers import CacheTierManager

REQUEST_COUNTER = GLOBAL_REGISTRY.counter("ghcdn_requests_total", "Total content requests")
REQUEST_LATENCY_HISTOGRAM = GLOBAL_REGISTRY.histogram(
    "ghcdn_request_latency_seconds",
    "Edge request latency",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

OPS_PREFIX = "/_edge"


class EdgeState:
    def __init__(
        self,
        settings: EdgeSettings,
        store: KeyValueStore,
        fetcher: OriginFetcher,
        writer: BackgroundWriter,
        orchestrator: RequestOrchestrator,
    ):
        self.settings = settings
        self.store = store
        self.fetcher = fetcher
        self.writer = writer
        self.orchestrator = orchestrator
        self.logger = structlog.get_logger("ghcdn.edge").bind(store=type(store).__name__)

    async def shutdown(self) -> None:
        await self.writer.drain(timeout=self.settings.shutdown_drain_seconds)
        close = getattr(self.fetcher, "aclose", None)
        if close is not None:
            await close()
        await self.store.aclose()


def build_store(settings: EdgeSettings) -> KeyValueStore:
    if settings.redis_url:
        return RedisStore.from_url(settings.redis_url)
    structlog.get_logger("ghcdn.edge").warning("in_memory_store_enabled")
    return InMemoryStore()


def build_state(
    settings: EdgeSettings,
    store: Optional[KeyValueStore] = None,
    fetcher: Optional[OriginFetcher] = None,
) -> EdgeState:
    store = store if store is not None else build_store(settings)
    fetcher = fetcher if fetcher is not None else HttpxOriginFetcher.create(settings.origin_timeout_seconds)
    writer = BackgroundWriter()
    resolver = OriginResolver(
        fetcher,
        origins=(
            Origin("github", settings.primary_origin_template),
            Origin("jsdelivr", settings.fallback_origin_template),
        ),
    )
    orchestrator = RequestOrchestrator(
        CacheTierManager(store, writer, ttl_seconds=settings.cache_ttl_seconds),
        resolver,
        MinificationGate(),
        compressor=brotli_compressor(settings.brotli_quality),
        weak_etag_threshold=settings.weak_etag_threshold_bytes,
        invalidate_compressed_on_prewarm=settings.invalidate_compressed_on_prewarm,
    )
    return EdgeState(settings, store, fetcher, writer, orchestrator)


def get_state(request: Request) -> EdgeState:
    return request.app.state.edge_state  # type: ignore[attr-defined]


def raw_request_path(request: Request) -> str:
    """The request path exactly as sent, percent-escapes intact."""
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    return raw_path.split(b"?", 1)[0].decode("latin-1")


def to_http_response(edge_response: EdgeResponse) -> Response:
    if edge_response.payload is not None:
        return JSONResponse(edge_response.payload, status_code=edge_response.status, headers=edge_response.headers)
    return Response(
        content=edge_response.body,
        status_code=edge_response.status,
        headers=edge_response.headers,
        media_type=edge_response.media_type,
    )


def create_app(
    settings: Optional[EdgeSettings] = None,
    *,
    store: Optional[KeyValueStore] = None,
    fetcher: Optional[OriginFetcher] = None,
) -> FastAPI:
    settings = settings or EdgeSettings()
    configure_logging(settings)
    configure_tracing(settings)
    state = build_state(settings, store=store, fetcher=fetcher)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await state.shutdown()

    app = FastAPI(lifespan=lifespan)
    instrument_app(app)
    app.state.edge_state = state

    @app.middleware("http")
    async def record_latency(request: Request, call_next):  # noqa: ANN001 - FastAPI middleware signature
        start = time.perf_counter()
        state = request.app.state.edge_state  # type: ignore[attr-defined]
        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            REQUEST_LATENCY_HISTOGRAM.observe(duration)
            state.logger.exception(
                "http_request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration * 1000, 2),
            )
            raise

        duration = time.perf_counter() - start
        REQUEST_LATENCY_HISTOGRAM.observe(duration)

        log_kwargs = {
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration * 1000, 2),
        }
        if response.status_code >= 500:
            state.logger.error("http_request", **log_kwargs)
        elif duration >= 1.0:
            state.logger.warning("http_request", **log_kwargs)
        else:
            state.logger.info("http_request", **log_kwargs)

        return response

    @app.get(f"{OPS_PREFIX}/healthz")
    async def health_check(state: EdgeState = Depends(get_state)) -> dict:
        """Health check for readiness/liveness probes."""
        health: dict = {"status": "healthy", "checks": {"store": type(state.store).__name__}}
        try:
            reachable = await state.store.ping()
        except Exception as exc:  # noqa: BLE001 - reported in the payload
            reachable = False
            health["checks"]["store_error"] = str(exc)
        health["checks"]["store_reachable"] = reachable
        health["checks"]["pending_writes"] = state.writer.pending
        if not reachable:
            health["status"] = "unhealthy"
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=health)
        return health

    token = settings.metrics_token.get_secret_value() if settings.metrics_token else None

    @app.get(
        f"{OPS_PREFIX}/metrics",
        response_class=PlainTextResponse,
        dependencies=[Depends(MetricsGuard(token))],
    )
    async def metrics_endpoint() -> PlainTextResponse:
        return PlainTextResponse(GLOBAL_REGISTRY.render())

    @app.get("/")
    async def liveness(request: Request, state: EdgeState = Depends(get_state)) -> Response:
        return await serve_content("", request, state)

    @app.get("/{path:path}")
    async def serve_content(
        path: str,
        request: Request,
        state: EdgeState = Depends(get_state),
    ) -> Response:
        REQUEST_COUNTER.inc()
        raw_path = raw_request_path(request) if path else ""
        ctx = RequestContext.from_request_parts(raw_path, request.query_params, request.headers)
        edge_response = await state.orchestrator.handle(ctx)
        return to_http_response(edge_response)

    return app
