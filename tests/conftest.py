from __future__ import annotations

import httpx
import pytest

from ghcdn.common.settings import EdgeSettings
from ghcdn.edge.app import create_app
from ghcdn.edge.background import BackgroundWriter
from ghcdn.edge.minify import MinificationGate
from ghcdn.edge.origin import OriginResolver
from ghcdn.edge.pipeline import RequestOrchestrator
from ghcdn.edge.store import InMemoryStore
from ghcdn.edge.tiers import CacheTierManager
from tests.utils.fakes import FakeOriginFetcher


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def fetcher() -> FakeOriginFetcher:
    return FakeOriginFetcher()


@pytest.fixture
def writer() -> BackgroundWriter:
    return BackgroundWriter()


@pytest.fixture
def tiers(store: InMemoryStore, writer: BackgroundWriter) -> CacheTierManager:
    return CacheTierManager(store, writer)


@pytest.fixture
def orchestrator(tiers: CacheTierManager, fetcher: FakeOriginFetcher) -> RequestOrchestrator:
    return RequestOrchestrator(tiers, OriginResolver(fetcher), MinificationGate())


@pytest.fixture
def edge_app(store: InMemoryStore, fetcher: FakeOriginFetcher):
    return create_app(EdgeSettings(), store=store, fetcher=fetcher)


@pytest.fixture
async def client(edge_app):
    transport = httpx.ASGITransport(app=edge_app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"accept-encoding": "identity"},
    ) as test_client:
        yield test_client
