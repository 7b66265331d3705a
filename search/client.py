"""
Search providers: scrape result pages from public search engines.

Supports (default priority order):
  - Bing        (plain HTTP first, rendered fallback)
  - Brave       (always rendered; blocks non-browser clients)
  - DuckDuckGo  (plain HTTP against the HTML endpoint)

Each provider is a ``ProviderVariant`` entry (URL builder, parser, fetch
mode) driven by the same ``ProviderAdapter``. Adapters never raise: any
failure comes back as an empty list plus a ``FailureRecord``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from browser_client import RenderingEnginePool, render_page
from models.schema import FailureRecord, SearchResult

from .cleaning import detect_bot_challenge
from .config import SearchConfig
from .failures import make_failure
from .parsers import ParsedResult, parse_bing, parse_brave, parse_duckduckgo

logger = logging.getLogger(__name__)


def browser_headers(user_agent: str, referer: Optional[str] = None) -> Dict[str, str]:
    """Headers of an ordinary desktop browser navigation."""
    headers = {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none" if referer is None else "same-origin",
    }
    if referer:
        headers["Referer"] = referer
    return headers


# ------------------------------------------------------------------
# Data classes
# ------------------------------------------------------------------

class FetchMode(str, Enum):
    LIGHTWEIGHT = "lightweight"
    RENDER = "render"
    LIGHTWEIGHT_THEN_RENDER = "lightweight_then_render"


class ProviderError(RuntimeError):
    """A provider answered, but not with a usable result page."""


@dataclass
class ProviderResults:
    """Outcome of one provider call."""

    provider: str
    results: List[SearchResult] = field(default_factory=list)
    failure: Optional[FailureRecord] = None
    method: str = ""

    @property
    def ok(self) -> bool:
        return bool(self.results)


@dataclass(frozen=True)
class ProviderVariant:
    """Everything that differs between providers."""

    name: str
    build_url: Callable[[str, int], str]
    parse: Callable[[str], List[ParsedResult]]
    mode: FetchMode
    home_url: str


class ResultProvider(Protocol):
    """Capability shared by every provider the orchestrator iterates."""

    name: str

    async def fetch_results(self, query: str, count: int) -> ProviderResults:
        ...


# ------------------------------------------------------------------
# Variants
# ------------------------------------------------------------------

def _bing_url(query: str, count: int) -> str:
    return "https://www.bing.com/search?" + urlencode(
        {"q": query, "count": max(count, 10), "form": "QBLH"}
    )


def _brave_url(query: str, count: int) -> str:
    return "https://search.brave.com/search?" + urlencode({"q": query, "source": "web"})


def _duckduckgo_url(query: str, count: int) -> str:
    return "https://html.duckduckgo.com/html/?" + urlencode({"q": query, "kl": "us-en"})


BING = ProviderVariant(
    name="bing",
    build_url=_bing_url,
    parse=parse_bing,
    mode=FetchMode.LIGHTWEIGHT_THEN_RENDER,
    home_url="https://www.bing.com/",
)

BRAVE = ProviderVariant(
    name="brave",
    build_url=_brave_url,
    parse=parse_brave,
    mode=FetchMode.RENDER,
    home_url="https://search.brave.com/",
)

DUCKDUCKGO = ProviderVariant(
    name="duckduckgo",
    build_url=_duckduckgo_url,
    parse=parse_duckduckgo,
    mode=FetchMode.LIGHTWEIGHT,
    home_url="https://html.duckduckgo.com/",
)

PROVIDER_VARIANTS: Dict[str, ProviderVariant] = {
    v.name: v for v in (BING, BRAVE, DUCKDUCKGO)
}


# ------------------------------------------------------------------
# Adapter
# ------------------------------------------------------------------

class ProviderAdapter:
    """Submit a query to one provider and parse its result page."""

    def __init__(
        self,
        variant: ProviderVariant,
        config: SearchConfig,
        pool: Optional[RenderingEnginePool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.variant = variant
        self.name = variant.name
        self._config = config
        self._pool = pool
        self._transport = transport

    async def fetch_results(self, query: str, count: int) -> ProviderResults:
        """Return up to ``count`` results in provider order; never raises."""
        url = self.variant.build_url(query, count)
        try:
            return await asyncio.wait_for(
                self._fetch(url, count),
                timeout=self._config.extraction_timeout,
            )
        except asyncio.TimeoutError:
            msg = f"Timeout: {self.name} did not answer within {self._config.extraction_timeout:.0f}s"
            logger.warning(msg)
            return ProviderResults(provider=self.name, failure=make_failure(url, msg, self.name))
        except Exception as e:
            logger.warning("Provider %s failed: %s", self.name, e)
            return ProviderResults(provider=self.name, failure=make_failure(url, e, self.name))

    async def _fetch(self, url: str, count: int) -> ProviderResults:
        mode = self.variant.mode
        if mode == FetchMode.RENDER:
            html = await self._fetch_rendered(url)
            return self._to_results(html, count, method="playwright")

        try:
            html = await self._fetch_http(url)
            results = self._to_results(html, count, method="http")
        except (httpx.HTTPError, ProviderError) as e:
            if mode != FetchMode.LIGHTWEIGHT_THEN_RENDER:
                raise
            logger.info("%s plain HTTP failed (%s), rendering instead", self.name, e)
        else:
            return results

        html = await self._fetch_rendered(url)
        return self._to_results(html, count, method="playwright")

    async def _fetch_http(self, url: str) -> str:
        headers = browser_headers(self._config.browser.user_agent, referer=self.variant.home_url)
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=self._config.default_timeout,
            transport=self._transport,
        ) as client:
            resp = await client.get(url, headers=headers)

        blocked = detect_bot_challenge(resp.text, resp.status_code)
        if blocked:
            raise ProviderError(f"{self.name}: {blocked}")
        if resp.status_code != 200:
            raise ProviderError(f"{self.name}: HTTP {resp.status_code}")
        return resp.text

    async def _fetch_rendered(self, url: str) -> str:
        if self._pool is None:
            raise ProviderError(f"{self.name}: no rendering pool configured")

        kind = self._config.engine_for(self.name)
        async with self._pool.session(kind) as ctx:
            rendered = await render_page(ctx, url, config=self._pool.config)

        blocked = detect_bot_challenge(rendered.content)
        if blocked:
            raise ProviderError(f"{self.name}: {blocked}")
        if rendered.status_code and rendered.status_code != 200:
            raise ProviderError(f"{self.name}: HTTP {rendered.status_code}")
        return rendered.content

    def _to_results(self, html: str, count: int, method: str) -> ProviderResults:
        parsed = self.variant.parse(html)
        results: List[SearchResult] = []
        seen = set()
        for p in parsed:
            if p.url in seen:
                continue
            try:
                results.append(
                    SearchResult(
                        title=p.title,
                        url=p.url,
                        description=p.description,
                        provider=self.name,
                    )
                )
            except ValidationError:
                logger.debug("%s: dropping malformed entry %r", self.name, p.url)
                continue
            seen.add(p.url)
            if len(results) >= count:
                break

        if not results:
            raise ProviderError(f"{self.name}: empty result page")

        logger.debug("%s returned %d results via %s", self.name, len(results), method)
        return ProviderResults(provider=self.name, results=results, method=method)

    def __repr__(self) -> str:
        return f"ProviderAdapter({self.name!r}, mode={self.variant.mode.value})"


def build_providers(
    config: SearchConfig,
    pool: Optional[RenderingEnginePool] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[ProviderAdapter]:
    """Adapters in the configured priority order."""
    providers = []
    for name in config.provider_order:
        variant = PROVIDER_VARIANTS.get(name)
        if variant is None:
            raise ValueError(
                f"Unknown provider '{name}'. Choose from: {list(PROVIDER_VARIANTS.keys())}"
            )
        providers.append(ProviderAdapter(variant, config, pool=pool, transport=transport))
    return providers
