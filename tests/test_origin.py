from __future__ import annotations

import httpx
import pytest

from ghcdn.edge.errors import OriginUnavailable
from ghcdn.edge.origin import HttpxOriginFetcher, Origin, OriginResolver

from tests.utils.fakes import GITHUB, JSDELIVR, FakeOriginFetcher


@pytest.mark.anyio
async def test_resolver_prefers_primary_origin() -> None:
    fetcher = FakeOriginFetcher({GITHUB + "o/r/main/a.js": b"primary"})
    result = await OriginResolver(fetcher).resolve("o/r/main/a.js")
    assert result.data == b"primary"
    assert result.source == "github"
    assert fetcher.calls == [GITHUB + "o/r/main/a.js"]


@pytest.mark.anyio
async def test_resolver_falls_back_once() -> None:
    fetcher = FakeOriginFetcher({JSDELIVR + "o/r/main/a.js": b"mirror"})
    result = await OriginResolver(fetcher).resolve("o/r/main/a.js")
    assert result.source == "jsdelivr"
    assert result.data == b"mirror"
    assert fetcher.calls == [GITHUB + "o/r/main/a.js", JSDELIVR + "o/r/main/a.js"]


@pytest.mark.anyio
async def test_resolver_raises_when_all_origins_fail() -> None:
    fetcher = FakeOriginFetcher()
    with pytest.raises(OriginUnavailable) as exc_info:
        await OriginResolver(fetcher).resolve("o/r/main/missing.js")
    assert exc_info.value.attempts == ["github", "jsdelivr"]
    assert len(fetcher.calls) == 2


@pytest.mark.anyio
async def test_resolver_uses_custom_templates() -> None:
    fetcher = FakeOriginFetcher({"http://mirror.local/files/x.css": b"body{}"})
    resolver = OriginResolver(fetcher, origins=(Origin("github", "http://mirror.local/files/{path}"),))
    result = await resolver.resolve("x.css")
    assert result.data == b"body{}"


def test_resolver_requires_an_origin() -> None:
    with pytest.raises(ValueError):
        OriginResolver(FakeOriginFetcher(), origins=())


@pytest.mark.anyio
async def test_httpx_fetcher_reports_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/ok.js":
            return httpx.Response(200, content=b"let a;")
        return httpx.Response(404, content=b"404: Not Found")

    fetcher = HttpxOriginFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    assert await fetcher.fetch("https://origin.test/ok.js") == (b"let a;", True)
    assert await fetcher.fetch("https://origin.test/missing.js") == (b"", False)
    await fetcher.aclose()


@pytest.mark.anyio
async def test_httpx_fetcher_treats_transport_errors_as_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = HttpxOriginFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    assert await fetcher.fetch("https://origin.test/a.js") == (b"", False)
    await fetcher.aclose()
