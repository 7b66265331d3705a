"""
Browser Client — Playwright-based rendering engine pool.

Provides:
  - A fixed-capacity pool of rendering slots (FIFO-fair acquisition)
  - Lazily launched browsers, one per engine kind (chromium/firefox/webkit)
  - A fresh isolated browser context for every acquisition
  - Resource blocking (images, fonts, media, trackers)
  - Generic consent handler for cookie banners
  - Minimal human-like interaction (mouse, scroll, delays)

Usage:
    pool = RenderingEnginePool(BrowserConfig.from_env())
    async with pool.session("chromium") as ctx:
        page = await render_page(ctx, "https://example.com")
    await pool.close_all()
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Route,
    Request,
)

from models.enums import EngineKind

logger = logging.getLogger(__name__)


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


class PoolUnavailableError(RuntimeError):
    """Raised when the pool cannot hand out a rendering context."""


# ------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------

@dataclass
class BrowserConfig:
    """Rendering engine pool configuration."""

    enabled: bool = True
    engine_kinds: Tuple[str, ...] = ("chromium", "firefox")
    headless: bool = True
    max_browsers: int = 3
    acquire_timeout_ms: int = 15000
    timeout_ms: int = 20000
    navigation_timeout_ms: int = 15000
    user_agent: str = DEFAULT_USER_AGENT
    locale: str = "en-US"
    debug_lifecycle: bool = False

    # Resource blocking
    block_images: bool = True
    block_fonts: bool = True
    block_media: bool = True
    block_trackers: bool = True

    def __post_init__(self):
        kinds = []
        for kind in self.engine_kinds:
            kind = kind.strip().lower()
            if kind and kind not in kinds:
                EngineKind(kind)  # raises ValueError on unknown engines
                kinds.append(kind)
        if not kinds:
            raise ValueError("At least one rendering engine kind must be enabled")
        if self.max_browsers < 1:
            raise ValueError("max_browsers must be >= 1")
        self.engine_kinds = tuple(kinds)

    @classmethod
    def from_env(cls) -> BrowserConfig:
        """Load configuration from environment variables."""
        return cls(
            enabled=os.getenv("PLAYWRIGHT_ENABLED", "true").lower() == "true",
            engine_kinds=tuple(os.getenv("BROWSER_TYPES", "chromium,firefox").split(",")),
            headless=os.getenv("BROWSER_HEADLESS", "true").lower() == "true",
            max_browsers=int(os.getenv("MAX_BROWSERS", "3")),
            acquire_timeout_ms=int(os.getenv("BROWSER_ACQUIRE_TIMEOUT", "15000")),
            debug_lifecycle=os.getenv("DEBUG_BROWSER_LIFECYCLE", "false").lower() == "true",
        )

    def resolve_kind(self, kind: Optional[str]) -> str:
        """Map a requested engine kind onto an enabled one."""
        if kind and kind.lower() in self.engine_kinds:
            return kind.lower()
        return self.engine_kinds[0]


# ------------------------------------------------------------------
# Data models
# ------------------------------------------------------------------

@dataclass
class RenderedPage:
    """Result of rendering a page."""

    url: str
    content: str  # HTML content
    status_code: int
    retrieved_at: datetime
    load_time_ms: float
    method: str = "playwright_dom"
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class RenderingContext:
    """
    One isolated browsing session handed out by the pool.

    Owned by a single task until released; never shared.
    """

    handle: int
    kind: str
    context: BrowserContext
    page: Page
    acquired_at: float = field(default_factory=time.monotonic)
    released: bool = False


# ------------------------------------------------------------------
# Rendering engine pool
# ------------------------------------------------------------------

class RenderingEnginePool:
    """
    Fixed-capacity pool of rendering slots.

    ``acquire``, ``release`` and ``close_all`` are the only mutators. Free
    slot indices live in an ``asyncio.Queue`` so waiters are served in
    request order; browser launches are serialized by a lock.
    """

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or BrowserConfig.from_env()
        self._playwright = None
        self._browsers: Dict[str, Browser] = {}
        self._slots: List[Optional[RenderingContext]] = [None] * self.config.max_browsers
        self._free: asyncio.Queue = asyncio.Queue()
        for idx in range(self.config.max_browsers):
            self._free.put_nowait(idx)
        self._launch_lock = asyncio.Lock()
        self._closed = False

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def in_use(self) -> int:
        return sum(1 for s in self._slots if s is not None)

    @property
    def closed(self) -> bool:
        return self._closed

    def _debug(self, msg: str, *args):
        if self.config.debug_lifecycle:
            logger.info("[pool] " + msg, *args)
        else:
            logger.debug("[pool] " + msg, *args)

    async def _get_browser(self, kind: str) -> Browser:
        """Launch (once) and return the browser for an engine kind."""
        async with self._launch_lock:
            if self._closed:
                raise PoolUnavailableError("Rendering pool is shut down")
            browser = self._browsers.get(kind)
            if browser is not None and browser.is_connected():
                return browser

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            if kind == EngineKind.FIREFOX.value:
                browser_type = self._playwright.firefox
            elif kind == EngineKind.WEBKIT.value:
                browser_type = self._playwright.webkit
            else:
                browser_type = self._playwright.chromium

            browser = await browser_type.launch(headless=self.config.headless)
            self._browsers[kind] = browser
            self._debug("launched %s browser", kind)
            return browser

    async def acquire(self, kind: Optional[str] = None) -> RenderingContext:
        """
        Wait for a free slot and open a fresh isolated context on it.

        Raises:
            PoolUnavailableError: pool disabled, shut down, or no slot
                became free within ``acquire_timeout_ms``.
        """
        if not self.config.enabled:
            raise PoolUnavailableError("Browser rendering is disabled")
        if self._closed:
            raise PoolUnavailableError("Rendering pool is shut down")

        kind = self.config.resolve_kind(kind)
        timeout = self.config.acquire_timeout_ms / 1000
        try:
            handle = await asyncio.wait_for(self._free.get(), timeout=timeout)
        except asyncio.TimeoutError:
            raise PoolUnavailableError(
                f"No rendering slot available within {self.config.acquire_timeout_ms}ms"
            )

        try:
            if self._closed:
                raise PoolUnavailableError("Rendering pool is shut down")
            browser = await self._get_browser(kind)
            context = await browser.new_context(
                user_agent=self.config.user_agent,
                locale=self.config.locale,
                viewport={"width": 1366, "height": 900},
            )
            context.set_default_timeout(self.config.timeout_ms)
            context.set_default_navigation_timeout(self.config.navigation_timeout_ms)
            page = await context.new_page()
        except BaseException:
            # slot goes back on any failure, including cancellation
            self._free.put_nowait(handle)
            raise

        ctx = RenderingContext(handle=handle, kind=kind, context=context, page=page)
        self._slots[handle] = ctx
        self._debug("slot %d acquired (%s), %d/%d in use", handle, kind, self.in_use, self.capacity)
        return ctx

    async def release(self, ctx: RenderingContext):
        """Close the context and free its slot. Safe to call repeatedly."""
        if ctx.released:
            return
        ctx.released = True

        try:
            await ctx.page.close()
        except Exception as e:
            logger.debug("Error closing page in slot %d: %s", ctx.handle, e)
        try:
            await ctx.context.close()
        except Exception as e:
            logger.debug("Error closing context in slot %d: %s", ctx.handle, e)

        if self._slots[ctx.handle] is ctx:
            self._slots[ctx.handle] = None
            self._free.put_nowait(ctx.handle)
        self._debug(
            "slot %d released after %.0fms",
            ctx.handle,
            (time.monotonic() - ctx.acquired_at) * 1000,
        )

    @asynccontextmanager
    async def session(self, kind: Optional[str] = None):
        """Acquire a context for the duration of a ``with`` block."""
        ctx = await self.acquire(kind)
        try:
            yield ctx
        finally:
            # shield so a cancelled task still returns its slot
            await asyncio.shield(self.release(ctx))

    async def close_all(self):
        """Terminate every live context, browser and the Playwright driver."""
        if self._closed:
            return
        self._closed = True

        for ctx in [s for s in self._slots if s is not None]:
            await self.release(ctx)

        async with self._launch_lock:
            for kind, browser in list(self._browsers.items()):
                try:
                    await browser.close()
                    self._debug("closed %s browser", kind)
                except Exception as e:
                    logger.warning("Error closing %s browser: %s", kind, e)
            self._browsers.clear()

            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.warning("Error stopping Playwright: %s", e)
                self._playwright = None


# ------------------------------------------------------------------
# Resource blocking
# ------------------------------------------------------------------

TRACKER_DOMAINS = {
    "google-analytics.com",
    "googletagmanager.com",
    "doubleclick.net",
    "googlesyndication.com",
    "analytics.google.com",
    "hotjar.com",
    "mixpanel.com",
    "segment.com",
    "scorecardresearch.com",
}


async def _block_resources(route: Route, request: Request, config: BrowserConfig):
    """Route handler to block unwanted resources."""
    resource_type = request.resource_type
    url = request.url.lower()

    if config.block_images and resource_type == "image":
        await route.abort()
        return
    if config.block_fonts and resource_type == "font":
        await route.abort()
        return
    if config.block_media and resource_type == "media":
        await route.abort()
        return

    if config.block_trackers:
        for tracker in TRACKER_DOMAINS:
            if tracker in url:
                await route.abort()
                return

    await route.continue_()


# ------------------------------------------------------------------
# Consent handler
# ------------------------------------------------------------------

CONSENT_BUTTON_PATTERNS = [
    "accept all",
    "allow all",
    "i agree",
    "accept",
    "agree",
    "consent",
]


async def _handle_consent(page: Page) -> bool:
    """
    Try to dismiss cookie consent banners.

    Returns True if consent button found and clicked.
    """
    for pattern in CONSENT_BUTTON_PATTERNS:
        try:
            selector = f"button:has-text('{pattern}')"
            button = page.locator(selector).first
            if await button.count() > 0:
                await button.click(timeout=1500)
                await page.wait_for_timeout(300)
                return True
        except Exception:
            continue
    return False


# ------------------------------------------------------------------
# Human-like interaction
# ------------------------------------------------------------------

async def simulate_human(page: Page, rng: Optional[random.Random] = None):
    """Move the mouse, scroll a little and pause, like a reader would."""
    rng = rng or random
    try:
        await page.mouse.move(rng.randint(100, 800), rng.randint(100, 600), steps=rng.randint(3, 8))
        await page.wait_for_timeout(rng.randint(150, 400))
        for _ in range(rng.randint(1, 3)):
            await page.mouse.wheel(0, rng.randint(250, 700))
            await page.wait_for_timeout(rng.randint(200, 500))
    except Exception as e:
        # interaction is best-effort; a closed page surfaces later in content()
        logger.debug("Human simulation interrupted: %s", e)


# ------------------------------------------------------------------
# Rendering
# ------------------------------------------------------------------

async def render_page(
    ctx: RenderingContext,
    url: str,
    *,
    config: Optional[BrowserConfig] = None,
    wait_for: Optional[str] = None,
    timeout_ms: Optional[int] = None,
    handle_consent: bool = True,
    human: bool = True,
) -> RenderedPage:
    """
    Navigate an acquired context to ``url`` and return the rendered DOM.

    Args:
        ctx: Context obtained from :meth:`RenderingEnginePool.acquire`
        url: URL to fetch
        config: Browser configuration (blocking rules)
        wait_for: CSS selector to wait for (optional)
        timeout_ms: Override navigation timeout
        handle_consent: Try to dismiss cookie banners
        human: Simulate minimal human interaction before reading the DOM
    """
    cfg = config or BrowserConfig()
    page = ctx.page
    start_time = time.time()

    await page.route("**/*", lambda route, request: _block_resources(route, request, cfg))

    response = await page.goto(
        url,
        wait_until="domcontentloaded",
        timeout=timeout_ms or cfg.navigation_timeout_ms,
    )

    # Wait for network idle (best effort, don't fail if timeout)
    try:
        await page.wait_for_load_state("networkidle", timeout=3000)
    except Exception:
        pass

    if handle_consent:
        await _handle_consent(page)

    if human:
        await simulate_human(page)

    if wait_for:
        await page.wait_for_selector(wait_for, timeout=timeout_ms or cfg.timeout_ms)

    content = await page.content()
    status_code = response.status if response else 0

    return RenderedPage(
        url=page.url or url,
        content=content,
        status_code=status_code,
        retrieved_at=datetime.now(timezone.utc),
        load_time_ms=(time.time() - start_time) * 1000,
        method="playwright_dom",
        metadata={"engine": ctx.kind},
    )
