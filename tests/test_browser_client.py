"""
Unit tests for browser_client module.

Tests pool configuration, slot accounting, acquisition timeouts and
shutdown. Browsers are mocked; nothing is launched.
"""

import asyncio
import random
from unittest.mock import AsyncMock, MagicMock

import pytest

# Skip all tests if playwright not installed
pytest.importorskip("playwright")

from browser_client import (
    BrowserConfig,
    PoolUnavailableError,
    RenderingEnginePool,
    simulate_human,
)


def _fake_browser():
    """Browser mock whose contexts and pages record their close() calls."""
    browser = MagicMock()
    browser.contexts_created = []

    def new_context(**kwargs):
        context = MagicMock()
        context.close = AsyncMock()
        page = MagicMock()
        page.close = AsyncMock()
        context.new_page = AsyncMock(return_value=page)
        browser.contexts_created.append(context)
        return context

    browser.new_context = AsyncMock(side_effect=new_context)
    return browser


def _pool(**kwargs):
    config = BrowserConfig(**kwargs)
    pool = RenderingEnginePool(config)
    browser = _fake_browser()
    pool._get_browser = AsyncMock(return_value=browser)
    return pool, browser


class TestBrowserConfig:
    """Test browser configuration."""

    def test_default_config(self):
        config = BrowserConfig()
        assert config.enabled == True
        assert config.engine_kinds == ("chromium", "firefox")
        assert config.headless == True
        assert config.max_browsers == 3
        assert config.acquire_timeout_ms == 15000

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BROWSER_TYPES", "firefox, webkit")
        monkeypatch.setenv("MAX_BROWSERS", "5")
        monkeypatch.setenv("BROWSER_HEADLESS", "false")
        monkeypatch.setenv("BROWSER_ACQUIRE_TIMEOUT", "2000")
        monkeypatch.setenv("DEBUG_BROWSER_LIFECYCLE", "true")

        config = BrowserConfig.from_env()
        assert config.engine_kinds == ("firefox", "webkit")
        assert config.max_browsers == 5
        assert config.headless == False
        assert config.acquire_timeout_ms == 2000
        assert config.debug_lifecycle == True

    def test_unknown_engine(self):
        with pytest.raises(ValueError):
            BrowserConfig(engine_kinds=("chromium", "netscape"))

    def test_needs_capacity(self):
        with pytest.raises(ValueError):
            BrowserConfig(max_browsers=0)

    def test_resolve_kind(self):
        config = BrowserConfig(engine_kinds=("chromium", "firefox"))
        assert config.resolve_kind("firefox") == "firefox"
        assert config.resolve_kind("webkit") == "chromium"
        assert config.resolve_kind(None) == "chromium"


@pytest.mark.asyncio
class TestRenderingEnginePool:
    """Test slot accounting on a mocked browser."""

    async def test_disabled_pool_fails_closed(self):
        pool = RenderingEnginePool(BrowserConfig(enabled=False))
        with pytest.raises(PoolUnavailableError):
            await pool.acquire()

    async def test_acquire_and_release(self):
        pool, browser = _pool(max_browsers=2)

        ctx = await pool.acquire("firefox")
        assert ctx.kind == "firefox"
        assert pool.in_use == 1

        await pool.release(ctx)
        assert pool.in_use == 0
        ctx.page.close.assert_awaited_once()
        ctx.context.close.assert_awaited_once()

    async def test_fresh_context_per_acquire(self):
        pool, browser = _pool(max_browsers=1)

        first = await pool.acquire()
        await pool.release(first)
        second = await pool.acquire()

        assert first.context is not second.context
        assert len(browser.contexts_created) == 2
        await pool.release(second)

    async def test_release_is_idempotent(self):
        pool, _ = _pool(max_browsers=1)

        ctx = await pool.acquire()
        await pool.release(ctx)
        await pool.release(ctx)

        assert pool._free.qsize() == 1
        ctx.context.close.assert_awaited_once()

    async def test_acquire_timeout(self):
        pool, _ = _pool(max_browsers=1, acquire_timeout_ms=50)

        held = await pool.acquire()
        with pytest.raises(PoolUnavailableError):
            await pool.acquire()
        await pool.release(held)

    async def test_waiter_gets_released_slot(self):
        pool, _ = _pool(max_browsers=1, acquire_timeout_ms=1000)

        held = await pool.acquire()
        waiter = asyncio.create_task(pool.acquire())
        await asyncio.sleep(0.01)
        assert not waiter.done()

        await pool.release(held)
        ctx = await waiter
        assert ctx.handle == held.handle
        await pool.release(ctx)

    async def test_session_releases_on_error(self):
        pool, _ = _pool(max_browsers=1)

        with pytest.raises(RuntimeError):
            async with pool.session() as ctx:
                raise RuntimeError("navigation failed")

        assert ctx.released
        assert pool.in_use == 0

    async def test_failed_context_returns_slot(self):
        pool, browser = _pool(max_browsers=1)
        browser.new_context = AsyncMock(side_effect=RuntimeError("browser crashed"))

        with pytest.raises(RuntimeError):
            await pool.acquire()

        assert pool._free.qsize() == 1

    async def test_close_all(self):
        pool, _ = _pool(max_browsers=2)
        ctx = await pool.acquire()

        await pool.close_all()
        await pool.close_all()

        assert pool.closed
        assert ctx.released
        with pytest.raises(PoolUnavailableError):
            await pool.acquire()


@pytest.mark.asyncio
class TestSimulateHuman:

    async def test_moves_and_scrolls(self):
        page = MagicMock()
        page.mouse.move = AsyncMock()
        page.mouse.wheel = AsyncMock()
        page.wait_for_timeout = AsyncMock()

        await simulate_human(page, rng=random.Random(1))

        page.mouse.move.assert_awaited_once()
        assert page.mouse.wheel.await_count >= 1

    async def test_closed_page_is_tolerated(self):
        page = MagicMock()
        page.mouse.move = AsyncMock(side_effect=RuntimeError("Target closed"))

        await simulate_human(page)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
