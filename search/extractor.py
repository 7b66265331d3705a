"""
Content Extractor: fetch result URLs and reduce them to readable text.

Per URL, stopping at the first success:
  1. Non-HTML targets (PDF, office documents, archives, media) are skipped
     without a request.
  2. Lightweight fetch with httpx (HTTP/2, retried once over HTTP/1.1 on a
     protocol-negotiation failure).
  3. Rendered fetch through the RenderingEnginePool when the lightweight
     fetch fails, is bot-blocked or returns too little text. Domains that
     keep failing the lightweight path go straight to rendering.
  4. Boilerplate stripped, content truncated on request.

Batches run on a bounded worker pool, each URL under its own timeout. A
URL's failure never fails the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set
from urllib.parse import urlparse

import httpx

from browser_client import PoolUnavailableError, RenderingEnginePool, render_page
from models.enums import FailureCategory, FetchStatus
from models.schema import EnrichedResult, SearchResult

from .cleaning import clean_html_to_text, detect_bot_challenge, make_preview, truncate_content
from .client import browser_headers
from .config import SearchConfig
from .failures import categorize_error, describe_error, summarize_categories

logger = logging.getLogger(__name__)


NON_HTML_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".odt", ".ods",
    ".rtf", ".epub", ".zip", ".gz", ".tgz", ".tar", ".rar", ".7z", ".exe",
    ".dmg", ".iso", ".apk", ".mp3", ".wav", ".mp4", ".avi", ".mov", ".mkv",
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".csv", ".json", ".xml",
}

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "text/plain")

NOT_FOUND_STATUS_CODES = {404, 410}

# Least recently failing domains are forgotten beyond this many
MAX_TRACKED_DOMAINS = 512


def is_pdf_url(url: str) -> bool:
    """PDF heuristic on the URL alone (path suffix or common PDF routes)."""
    parsed = urlparse(url.lower())
    path = parsed.path.rstrip("/")
    return (
        path.endswith(".pdf")
        or "format=pdf" in parsed.query
        or "type=pdf" in parsed.query
    )


def is_non_html_url(url: str) -> bool:
    """True when the URL points at a document that is not an HTML page."""
    if is_pdf_url(url):
        return True
    path = urlparse(url.lower()).path
    dot = path.rfind(".")
    if dot == -1 or "/" in path[dot:]:
        return False
    return path[dot:] in NON_HTML_EXTENSIONS


# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------

class ExtractionError(Exception):
    """Terminal or per-stage extraction failure with a diagnostic category."""

    default_category: Optional[FailureCategory] = None

    def __init__(self, message: str, category: Optional[FailureCategory] = None):
        super().__init__(message)
        self.category = category or self.default_category or categorize_error(message)


class BotDetectedError(ExtractionError):
    default_category = FailureCategory.BOT_DETECTION


class ContentTooLargeError(ExtractionError):
    default_category = FailureCategory.CONTENT_TOO_LARGE


class InsufficientContentError(ExtractionError):
    pass


class UnsupportedContentError(ExtractionError):
    """The target is not an HTML document; results are marked skipped."""


# ------------------------------------------------------------------
# Data classes
# ------------------------------------------------------------------

class ExtractionStage(str, Enum):
    NOT_STARTED = "not_started"
    LIGHTWEIGHT = "lightweight_attempted"
    RENDER = "render_attempted"
    DONE = "done"


@dataclass
class ExtractionTrace:
    """Per-URL state: where the extraction is and what went wrong so far."""

    url: str
    stage: ExtractionStage = ExtractionStage.NOT_STARTED
    method: Optional[str] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class ExtractionReport:
    """Every outcome of a batch plus the results handed back to the caller."""

    outcomes: List[EnrichedResult]
    selected: List[EnrichedResult]
    target_count: int

    def _count(self, status: FetchStatus) -> int:
        return sum(1 for r in self.outcomes if r.fetch_status == status)

    @property
    def success_count(self) -> int:
        return self._count(FetchStatus.SUCCESS)

    @property
    def failed_count(self) -> int:
        return self._count(FetchStatus.ERROR)

    @property
    def skipped_count(self) -> int:
        return self._count(FetchStatus.SKIPPED)

    def failure_categories(self, limit: int = 3) -> List[str]:
        return summarize_categories(
            [r.error_category or FailureCategory.OTHER for r in self.outcomes if r.fetch_status == FetchStatus.ERROR],
            limit=limit,
        )


# ------------------------------------------------------------------
# Extractor
# ------------------------------------------------------------------

class ContentExtractor:
    """
    Fetch result pages and extract readable text.

    Usage:
        extractor = ContentExtractor(SearchConfig.from_env())
        enriched = await extractor.extract_content_for_results(results, 3)
        await extractor.close_all()
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        pool: Optional[RenderingEnginePool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or SearchConfig.from_env()
        self._pool = pool or RenderingEnginePool(self._config.browser)
        self._transport = transport
        self._lightweight_failures: OrderedDict[str, int] = OrderedDict()
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract_content(self, url: str, max_content_length: Optional[int] = None) -> str:
        """
        Extract readable text from one URL.

        Raises:
            UnsupportedContentError: non-HTML target
            ExtractionError: both paths failed or the timeout elapsed
        """
        if is_non_html_url(url):
            raise UnsupportedContentError(f"Skipped non-HTML document: {url}")
        text = await self._extract_with_timeout(url)
        return truncate_content(text, max_content_length)

    async def extract_content_for_results(
        self,
        results: Sequence[SearchResult],
        target_count: int,
        max_content_length: Optional[int] = None,
    ) -> List[EnrichedResult]:
        """Extract up to ``target_count`` results, preserving rank order."""
        report = await self.extract_batch(results, target_count, max_content_length)
        return report.selected

    async def extract_batch(
        self,
        results: Sequence[SearchResult],
        target_count: int,
        max_content_length: Optional[int] = None,
    ) -> ExtractionReport:
        """
        Run extractions on a bounded worker pool.

        New URLs stop being issued once ``target_count`` extractions have
        succeeded; extractions already running finish or time out.
        """
        if target_count < 1:
            raise ValueError("target_count must be >= 1")
        if self._closed:
            raise RuntimeError("ContentExtractor is closed")

        enriched = [EnrichedResult.from_result(r) for r in results]
        queue: asyncio.Queue = asyncio.Queue()
        for idx, item in enumerate(enriched):
            if is_non_html_url(item.url):
                item.finish(FetchStatus.SKIPPED, error="Skipped non-HTML document")
            else:
                queue.put_nowait(idx)

        successes = 0

        async def worker():
            nonlocal successes
            while successes < target_count:
                try:
                    idx = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                item = enriched[idx]
                await self._extract_into(item, max_content_length)
                if item.fetch_status == FetchStatus.SUCCESS:
                    successes += 1

        n_workers = min(self._config.max_concurrent_extractions, queue.qsize())
        tasks = [asyncio.create_task(worker()) for _ in range(n_workers)]
        self._tasks.update(tasks)
        try:
            await asyncio.gather(*tasks)
        finally:
            self._tasks.difference_update(tasks)

        selected = self._select(enriched, target_count)
        report = ExtractionReport(outcomes=enriched, selected=selected, target_count=target_count)
        logger.info(
            "Extraction: %d requested; %d successful, %d failed, %d skipped; returning %d",
            target_count,
            report.success_count,
            report.failed_count,
            report.skipped_count,
            len(selected),
        )
        return report

    async def close_all(self):
        """Cancel in-flight extractions and shut the rendering pool down."""
        if self._closed:
            return
        self._closed = True
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._pool.close_all()

    # ------------------------------------------------------------------
    # Batch helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _select(enriched: List[EnrichedResult], target_count: int) -> List[EnrichedResult]:
        """Successes first, then failures, then skips; returned in rank order."""
        ranked = list(enumerate(enriched))
        picked: List[int] = []
        for status in (FetchStatus.SUCCESS, FetchStatus.ERROR, FetchStatus.SKIPPED):
            for idx, item in ranked:
                if len(picked) >= target_count:
                    break
                if item.fetch_status == status:
                    picked.append(idx)
        return [enriched[i] for i in sorted(picked)]

    async def _extract_into(self, item: EnrichedResult, max_content_length: Optional[int]):
        """Run one extraction and record its terminal status. Never raises."""
        try:
            text = await self._extract_with_timeout(item.url)
        except UnsupportedContentError as e:
            item.finish(FetchStatus.SKIPPED, error=str(e))
        except ExtractionError as e:
            logger.debug("Extraction failed for %s: %s", item.url, e)
            item.finish(FetchStatus.ERROR, error=str(e), category=e.category)
        except Exception as e:
            message = describe_error(e)
            logger.warning("Unexpected extraction error for %s: %s", item.url, message)
            item.finish(FetchStatus.ERROR, error=message, category=categorize_error(message))
        else:
            item.finish(
                FetchStatus.SUCCESS,
                content=truncate_content(text, max_content_length),
                preview=make_preview(text, self._config.preview_length),
            )

    # ------------------------------------------------------------------
    # Per-URL state machine
    # ------------------------------------------------------------------

    async def _extract_with_timeout(self, url: str) -> str:
        timeout = self._config.extraction_timeout
        try:
            return await asyncio.wait_for(self._extract(url), timeout=timeout)
        except asyncio.TimeoutError:
            raise ExtractionError(
                f"Timeout: extraction exceeded {self._config.extraction_timeout_ms}ms",
                FailureCategory.TIMEOUT,
            )

    async def _extract(self, url: str) -> str:
        trace = ExtractionTrace(url=url)
        domain = urlparse(url).netloc.lower()
        light_error: Optional[ExtractionError] = None

        if self._lightweight_failures.get(domain, 0) < self._config.browser_fallback_threshold:
            trace.stage = ExtractionStage.LIGHTWEIGHT
            try:
                text = await self._fetch_lightweight(url)
            except (ContentTooLargeError, UnsupportedContentError):
                raise
            except ExtractionError as e:
                if e.category == FailureCategory.NOT_FOUND:
                    raise
                light_error = e
            except httpx.HTTPError as e:
                light_error = ExtractionError(describe_error(e))
            else:
                self._lightweight_failures.pop(domain, None)
                trace.stage, trace.method = ExtractionStage.DONE, "http"
                return self._finalize(trace, text)

            self._record_lightweight_failure(domain)
            trace.errors.append(str(light_error))
            logger.debug("Lightweight fetch failed for %s (%s), rendering", url, light_error)
        else:
            logger.debug("%s exceeded lightweight failure threshold, rendering directly", domain)

        trace.stage = ExtractionStage.RENDER
        try:
            text = await self._fetch_rendered(url)
        except ExtractionError as e:
            render_error = e
        except PoolUnavailableError as e:
            render_error = ExtractionError(str(e), FailureCategory.OTHER)
        except Exception as e:
            render_error = ExtractionError(describe_error(e))
        else:
            trace.stage, trace.method = ExtractionStage.DONE, "playwright"
            return self._finalize(trace, text)

        trace.errors.append(str(render_error))
        trace.stage = ExtractionStage.DONE
        logger.debug("Extraction failed for %s: %s", url, " | ".join(trace.errors))
        category = render_error.category
        if category == FailureCategory.OTHER and light_error is not None:
            category = light_error.category
        message = str(render_error)
        if light_error is not None:
            message = f"{render_error} (direct fetch: {light_error})"
        raise ExtractionError(message, category)

    def _record_lightweight_failure(self, domain: str):
        failures = self._lightweight_failures
        failures[domain] = failures.get(domain, 0) + 1
        failures.move_to_end(domain)
        while len(failures) > MAX_TRACKED_DOMAINS:
            failures.popitem(last=False)

    def _finalize(self, trace: ExtractionTrace, text: str) -> str:
        logger.debug("Extracted %d characters from %s via %s", len(text), trace.url, trace.method)
        # hard ceiling on stored content
        return truncate_content(text, self._config.max_content_length)

    # ------------------------------------------------------------------
    # Lightweight path
    # ------------------------------------------------------------------

    async def _fetch_lightweight(self, url: str) -> str:
        try:
            status, content_type, html = await self._http_get(url, http2=True)
        except httpx.ProtocolError as e:
            logger.debug("Protocol negotiation failed for %s (%s), retrying over HTTP/1.1", url, e)
            status, content_type, html = await self._http_get(url, http2=False)

        if status in NOT_FOUND_STATUS_CODES:
            raise ExtractionError(f"HTTP {status} Not Found", FailureCategory.NOT_FOUND)

        blocked = detect_bot_challenge(html, status)
        if blocked:
            raise BotDetectedError(blocked)
        if status >= 400:
            raise ExtractionError(f"HTTP {status}")
        if content_type and not content_type.startswith(HTML_CONTENT_TYPES):
            raise UnsupportedContentError(f"Skipped non-HTML content type: {content_type}")

        text = clean_html_to_text(html)
        if len(text) < self._config.min_content_length:
            raise InsufficientContentError(
                f"Insufficient content: {len(text)} characters from direct fetch"
            )
        return text

    async def _http_get(self, url: str, http2: bool):
        """GET with a streamed size guard. Returns (status, content_type, text)."""
        limit = self._config.max_document_bytes
        async with httpx.AsyncClient(
            http2=http2,
            follow_redirects=True,
            timeout=self._config.default_timeout,
            transport=self._transport,
        ) as client:
            async with client.stream("GET", url, headers=browser_headers(self._config.browser.user_agent)) as resp:
                content_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
                declared = int(resp.headers.get("content-length") or 0)
                if limit and declared > limit:
                    raise ContentTooLargeError(f"Content too large: {declared} bytes (limit {limit})")

                chunks = []
                total = 0
                async for chunk in resp.aiter_bytes():
                    total += len(chunk)
                    if limit and total > limit:
                        raise ContentTooLargeError(f"Content too large: over {limit} bytes")
                    chunks.append(chunk)

                encoding = resp.encoding or "utf-8"
                html = b"".join(chunks).decode(encoding, errors="replace")
                return resp.status_code, content_type, html

    # ------------------------------------------------------------------
    # Rendered path
    # ------------------------------------------------------------------

    async def _fetch_rendered(self, url: str) -> str:
        async with self._pool.session() as ctx:
            rendered = await render_page(ctx, url, config=self._pool.config)

        if len(rendered.content) > self._config.max_document_bytes:
            raise ContentTooLargeError(f"Content too large: {len(rendered.content)} characters rendered")

        blocked = detect_bot_challenge(rendered.content, rendered.status_code)
        if blocked:
            raise BotDetectedError(blocked)
        if rendered.status_code in NOT_FOUND_STATUS_CODES:
            raise ExtractionError(f"HTTP {rendered.status_code} Not Found", FailureCategory.NOT_FOUND)
        if rendered.status_code >= 400:
            raise ExtractionError(f"HTTP {rendered.status_code} after rendering")

        text = clean_html_to_text(rendered.content)
        if not text:
            raise InsufficientContentError("No readable content after rendering")
        return text
