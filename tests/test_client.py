"""
Tests for the search provider adapters.

HTTP traffic goes through ``httpx.MockTransport``; rendering goes through a
fake pool and a patched ``render_page``.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from browser_client import BrowserConfig, RenderedPage
from models.enums import FailureCategory
from search.client import (
    BING,
    BRAVE,
    DUCKDUCKGO,
    ProviderAdapter,
    browser_headers,
    build_providers,
)
from search.config import SearchConfig


def _ddg_page(n):
    blocks = "".join(
        f'<div class="result"><a class="result__a" href="https://site{i}.example.com/">Result {i}</a>'
        f'<a class="result__snippet">Snippet number {i}</a></div>'
        for i in range(n)
    )
    return f"<html><body>{blocks}</body></html>"


class FakePool:
    """Records the engine kind of each session; never launches a browser."""

    def __init__(self):
        self.config = BrowserConfig(enabled=False)
        self.kinds = []

    @asynccontextmanager
    async def session(self, kind=None):
        self.kinds.append(kind)
        yield MagicMock()


def _rendered(html, status=200):
    return RenderedPage(
        url="https://search.example/",
        content=html,
        status_code=status,
        retrieved_at=datetime.now(timezone.utc),
        load_time_ms=10,
    )


class TestBrowserHeaders:

    def test_looks_like_a_browser(self):
        headers = browser_headers("UA/1.0")
        assert headers["User-Agent"] == "UA/1.0"
        for key in ("Accept", "Accept-Language", "DNT", "Upgrade-Insecure-Requests"):
            assert key in headers
        assert "Referer" not in headers

    def test_referer(self):
        headers = browser_headers("UA/1.0", referer="https://www.bing.com/")
        assert headers["Referer"] == "https://www.bing.com/"


@pytest.mark.asyncio
class TestProviderAdapter:

    def setup_method(self):
        self.config = SearchConfig(browser=BrowserConfig(enabled=False))
        self.requests = []

    def _transport(self, html, status=200):
        def handler(request):
            self.requests.append(request)
            return httpx.Response(status, html=html)
        return httpx.MockTransport(handler)

    async def test_duckduckgo_lightweight(self, ddg_html):
        adapter = ProviderAdapter(DUCKDUCKGO, self.config, transport=self._transport(ddg_html))
        outcome = await adapter.fetch_results("async await", 5)

        assert outcome.ok
        assert outcome.failure is None
        assert outcome.method == "http"
        assert [r.provider for r in outcome.results] == ["duckduckgo", "duckduckgo"]
        assert outcome.results[0].url == "https://en.wikipedia.org/wiki/Async%2Fawait"

        request = self.requests[0]
        assert request.url.host == "html.duckduckgo.com"
        assert request.url.params["q"] == "async await"
        assert request.headers["Referer"] == "https://html.duckduckgo.com/"

    async def test_count_is_respected(self):
        adapter = ProviderAdapter(DUCKDUCKGO, self.config, transport=self._transport(_ddg_page(8)))
        outcome = await adapter.fetch_results("anything", 3)
        assert len(outcome.results) == 3
        assert [r.title for r in outcome.results] == ["Result 0", "Result 1", "Result 2"]

    async def test_duplicates_dropped(self):
        html = _ddg_page(2).replace("site1", "site0")
        adapter = ProviderAdapter(DUCKDUCKGO, self.config, transport=self._transport(html))
        outcome = await adapter.fetch_results("anything", 5)
        assert len(outcome.results) == 1

    async def test_bot_block_becomes_failure(self):
        html = "<html><body>Unfortunately, bots use DuckDuckGo too.</body></html>"
        adapter = ProviderAdapter(DUCKDUCKGO, self.config, transport=self._transport(html))
        outcome = await adapter.fetch_results("anything", 5)
        assert not outcome.ok
        assert outcome.failure.category == FailureCategory.BOT_DETECTION
        assert outcome.failure.provider == "duckduckgo"

    async def test_empty_page_becomes_failure(self):
        adapter = ProviderAdapter(DUCKDUCKGO, self.config, transport=self._transport("<html></html>"))
        outcome = await adapter.fetch_results("anything", 5)
        assert outcome.results == []
        assert outcome.failure is not None

    async def test_network_error_never_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = ProviderAdapter(DUCKDUCKGO, self.config, transport=httpx.MockTransport(handler))
        outcome = await adapter.fetch_results("anything", 5)
        assert outcome.results == []
        assert outcome.failure.category == FailureCategory.NETWORK_ERROR

    async def test_timeout(self):
        config = SearchConfig(extraction_timeout_ms=50, browser=BrowserConfig(enabled=False))

        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200, html="<html></html>")

        adapter = ProviderAdapter(DUCKDUCKGO, config, transport=httpx.MockTransport(handler))
        outcome = await adapter.fetch_results("anything", 5)
        assert outcome.results == []
        assert outcome.failure.category == FailureCategory.TIMEOUT

    async def test_bing_falls_back_to_rendering(self, bing_html):
        pool = FakePool()

        adapter = ProviderAdapter(BING, self.config, pool=pool, transport=self._transport("captcha", status=200))
        with patch("search.client.render_page", AsyncMock(return_value=_rendered(bing_html))) as render:
            outcome = await adapter.fetch_results("python asyncio", 5)

        render.assert_awaited_once()
        assert outcome.method == "playwright"
        assert len(outcome.results) == 2
        assert pool.kinds == ["chromium"]

    async def test_brave_renders_with_its_engine(self, brave_html):
        pool = FakePool()
        config = SearchConfig(browser=BrowserConfig(enabled=False, engine_kinds=("chromium", "firefox")))
        adapter = ProviderAdapter(BRAVE, config, pool=pool)
        with patch("search.client.render_page", AsyncMock(return_value=_rendered(brave_html))):
            outcome = await adapter.fetch_results("tokio", 5)

        assert pool.kinds == ["firefox"]
        assert outcome.results[0].provider == "brave"
        assert outcome.results[0].url == "https://tokio.rs/"

    async def test_render_without_pool_is_a_failure(self):
        adapter = ProviderAdapter(BRAVE, self.config, pool=None)
        outcome = await adapter.fetch_results("tokio", 5)
        assert not outcome.ok
        assert "no rendering pool" in outcome.failure.error


class TestBuildProviders:

    def test_default_order(self):
        providers = build_providers(SearchConfig(browser=BrowserConfig(enabled=False)))
        assert [p.name for p in providers] == ["bing", "brave", "duckduckgo"]

    def test_custom_order(self):
        config = SearchConfig(provider_order=("duckduckgo", "bing"), browser=BrowserConfig(enabled=False))
        assert [p.name for p in build_providers(config)] == ["duckduckgo", "bing"]

    def test_unknown_provider(self):
        config = SearchConfig(provider_order=("altavista",), browser=BrowserConfig(enabled=False))
        with pytest.raises(ValueError):
            build_providers(config)
