"""
Web search service: the request-level surface used by the front end.

Wires one shared RenderingEnginePool into the SearchOrchestrator and the
ContentExtractor, validates arguments, builds the status summary and owns
shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from typing import List, Optional, Union
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from browser_client import RenderingEnginePool
from models.enums import FetchStatus
from models.schema import EnrichedResult, SearchResponse, SearchResult

from .cleaning import TRUNCATION_MARKER
from .client import build_providers
from .config import SearchConfig
from .extractor import ContentExtractor, ExtractionReport, is_pdf_url
from .orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)

MAX_LIMIT = 10
OVERFETCH_CAP = 10


class WebSearchOutput(BaseModel):
    """Everything one search request returns."""
    results: List[Union[EnrichedResult, SearchResult]] = Field(default_factory=list)
    total_results: int = 0
    search_time_ms: int = 0
    query: str
    provider: str
    status: str = ""
    degraded: bool = False


class PageContent(BaseModel):
    """Readable content of a single page."""
    url: str
    title: str
    word_count: int
    content: str

    @property
    def content_length(self) -> int:
        return len(self.content)


def validate_limit(limit: int) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_LIMIT:
        raise ValueError(f"Invalid limit: must be a number between 1 and {MAX_LIMIT}")
    return limit


def validate_max_content_length(value: Optional[int]) -> Optional[int]:
    """``None`` and ``0`` both mean no limit; negative values are rejected."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("Invalid max_content_length: must be a non-negative number")
    return value or None


def overfetch_count(limit: int, include_content: bool) -> int:
    """How many provider results to ask for so skipped documents don't starve the output."""
    if not include_content:
        return limit
    return min(limit * 2 + 2, OVERFETCH_CAP)


def build_status_summary(
    response: SearchResponse,
    limit: int,
    report: Optional[ExtractionReport] = None,
    returned: Optional[int] = None,
) -> str:
    """
    One-line request summary, e.g.::

        Search engine: bing; 3 requested/8 obtained; PDF: 1; 7 followed;
        3 successful, 2 failed (Bot detection (2)); Results: 3
    """
    obtained = response.count
    pdf_count = sum(1 for r in response.results if is_pdf_url(r.url))
    parts = [
        f"Search engine: {response.provider}",
        f"{limit} requested/{obtained} obtained",
        f"PDF: {pdf_count}",
        f"{obtained - pdf_count} followed",
    ]
    if report is not None:
        extraction = f"{report.success_count} successful, {report.failed_count} failed"
        reasons = report.failure_categories()
        if reasons:
            extraction += f" ({', '.join(reasons)})"
        parts.append(extraction)
        if returned is None:
            returned = len(report.selected)
    if returned is None:
        returned = min(obtained, limit)
    parts.append(f"Results: {returned}")

    summary = "; ".join(parts)
    if response.degraded:
        summary += "; degraded quality"
    return summary


def _cut(text: str, max_length: Optional[int]) -> str:
    if max_length and len(text) > max_length:
        return text[:max_length] + TRUNCATION_MARKER.format(n=max_length)
    return text


def format_results(output: WebSearchOutput, max_content_length: Optional[int] = None) -> str:
    """Render a WebSearchOutput as markdown-style text."""
    lines = [f'Search completed for "{output.query}" with {output.total_results} results:', ""]
    if output.status:
        lines += [f"**Status:** {output.status}", ""]

    for idx, r in enumerate(output.results, 1):
        lines.append(f"**{idx}. {r.title}**")
        lines.append(f"URL: {r.url}")
        lines.append(f"Description: {r.description}")

        if isinstance(r, EnrichedResult):
            if r.full_content and r.full_content.strip():
                lines += ["", "**Full Content:**", _cut(r.full_content, max_content_length)]
            elif r.content_preview and r.content_preview.strip():
                lines += ["", "**Content Preview:**", _cut(r.content_preview, max_content_length)]
            elif r.fetch_status == FetchStatus.ERROR:
                lines += ["", f"**Content Extraction Failed:** {r.error}"]
            elif r.fetch_status == FetchStatus.SKIPPED:
                lines += ["", f"**Content Skipped:** {r.error}"]

        lines += ["", "---", ""]
    return "\n".join(lines)


def format_page_content(page: PageContent) -> str:
    return "\n".join([
        f"**Page Content from: {page.url}**",
        "",
        f"**Title:** {page.title}",
        f"**Word Count:** {page.word_count}",
        f"**Content Length:** {page.content_length} characters",
        "",
        "**Content:**",
        page.content,
    ])


class WebSearchService:
    """
    Query in, ranked pages with readable content out.

    Usage:
        service = WebSearchService(SearchConfig.from_env())
        try:
            output = await service.full_web_search("rust async runtimes", limit=3)
        finally:
            await service.shutdown()
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        pool: Optional[RenderingEnginePool] = None,
        orchestrator: Optional[SearchOrchestrator] = None,
        extractor: Optional[ContentExtractor] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or SearchConfig.from_env()
        self.pool = pool or RenderingEnginePool(self.config.browser)
        self.orchestrator = orchestrator or SearchOrchestrator(
            self.config,
            providers=build_providers(self.config, pool=self.pool, transport=transport),
            pool=self.pool,
        )
        self.extractor = extractor or ContentExtractor(self.config, pool=self.pool, transport=transport)
        self._shutdown_started = False
        self._signal_tasks = set()

    async def full_web_search(
        self,
        query: str,
        limit: int = 5,
        include_content: bool = True,
        max_content_length: Optional[int] = None,
    ) -> WebSearchOutput:
        """
        Search and (optionally) extract content for up to ``limit`` results.

        Raises:
            ValueError: invalid ``limit`` or ``max_content_length``
            NoResultsError: no provider produced any result list
        """
        limit = validate_limit(limit)
        max_content_length = validate_max_content_length(max_content_length)
        start = time.monotonic()

        response = await self.orchestrator.search(query, overfetch_count(limit, include_content))
        logger.info(
            "Search engine %s returned %d results for %r%s",
            response.provider, response.count, query, " (degraded)" if response.degraded else "",
        )

        report = None
        if include_content:
            report = await self.extractor.extract_batch(response.results, limit, max_content_length)
            results = report.selected
        else:
            results = response.results[:limit]

        status = build_status_summary(response, limit, report, returned=len(results))
        logger.info(status)

        return WebSearchOutput(
            results=results,
            total_results=len(results),
            search_time_ms=int((time.monotonic() - start) * 1000),
            query=query,
            provider=response.provider,
            status=status,
            degraded=response.degraded,
        )

    async def search_summaries(self, query: str, limit: int = 5) -> List[SearchResult]:
        """Result titles, URLs and descriptions only; no page is fetched."""
        limit = validate_limit(limit)
        response = await self.orchestrator.search(query, limit)
        return response.results[:limit]

    async def page_content(self, url: str, max_content_length: Optional[int] = None) -> PageContent:
        """
        Extract one page.

        Raises:
            ValueError: not an absolute http(s) URL, or negative ``max_content_length``
            ExtractionError: the page could not be extracted
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid url: {url!r}")
        max_content_length = validate_max_content_length(max_content_length)

        content = await self.extractor.extract_content(url, max_content_length)
        logger.info("Extracted %d characters from %s", len(content), url)
        return PageContent(
            url=url,
            title=parsed.netloc + parsed.path,
            word_count=len(content.split()),
            content=content,
        )

    async def shutdown(self):
        """Close extractor and orchestrator, bounded by ``shutdown_timeout``."""
        if self._shutdown_started:
            return
        self._shutdown_started = True
        try:
            await asyncio.wait_for(
                asyncio.gather(self.extractor.close_all(), self.orchestrator.close_all()),
                timeout=self.config.shutdown_timeout,
            )
            logger.info("Search service shut down")
        except asyncio.TimeoutError:
            logger.warning("Shutdown did not finish within %.0fs", self.config.shutdown_timeout)

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Run :meth:`shutdown` on SIGINT/SIGTERM."""
        loop = loop or asyncio.get_running_loop()

        def _on_signal(sig):
            logger.info("Received %s, shutting down", sig.name)
            task = loop.create_task(self.shutdown())
            self._signal_tasks.add(task)
            task.add_done_callback(self._signal_tasks.discard)

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _on_signal, sig)
