"""
Search configuration: orchestration, extraction and quality knobs.

Values come from environment variables (load a ``.env`` file with
python-dotenv at the entry point before calling :meth:`SearchConfig.from_env`).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Tuple

from browser_client import BrowserConfig


DEFAULT_PROVIDER_ORDER: Tuple[str, ...] = ("bing", "brave", "duckduckgo")

DEFAULT_PROVIDER_ENGINES: Dict[str, str] = {
    "bing": "chromium",
    "brave": "firefox",
    "duckduckgo": "chromium",
}


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SearchConfig:
    """Search pipeline configuration."""

    max_content_length: int = 500000
    max_document_bytes: int = 10_000_000
    default_timeout_ms: int = 6000
    extraction_timeout_ms: int = 20000
    max_concurrent_extractions: int = 4
    browser_fallback_threshold: int = 3
    min_content_length: int = 200
    preview_length: int = 500

    enable_relevance_checking: bool = True
    relevance_threshold: float = 0.3
    force_multi_engine: bool = False
    allow_degraded_results: bool = True

    shutdown_timeout: float = 10.0

    provider_order: Tuple[str, ...] = DEFAULT_PROVIDER_ORDER
    provider_engines: Dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PROVIDER_ENGINES)
    )
    browser: BrowserConfig = field(default_factory=BrowserConfig)

    def __post_init__(self):
        if not 0.0 <= self.relevance_threshold <= 1.0:
            raise ValueError("relevance_threshold must be within [0, 1]")
        if self.max_concurrent_extractions < 1:
            raise ValueError("max_concurrent_extractions must be >= 1")

    @classmethod
    def from_env(cls) -> SearchConfig:
        """Load configuration from environment variables."""
        return cls(
            max_content_length=int(os.getenv("MAX_CONTENT_LENGTH", "500000")),
            max_document_bytes=int(os.getenv("MAX_DOCUMENT_BYTES", "10000000")),
            default_timeout_ms=int(os.getenv("DEFAULT_TIMEOUT", "6000")),
            extraction_timeout_ms=int(os.getenv("EXTRACTION_TIMEOUT", "20000")),
            max_concurrent_extractions=int(os.getenv("MAX_CONCURRENT_EXTRACTIONS", "4")),
            browser_fallback_threshold=int(os.getenv("BROWSER_FALLBACK_THRESHOLD", "3")),
            min_content_length=int(os.getenv("MIN_CONTENT_LENGTH", "200")),
            enable_relevance_checking=_env_bool("ENABLE_RELEVANCE_CHECKING", "true"),
            relevance_threshold=float(os.getenv("RELEVANCE_THRESHOLD", "0.3")),
            force_multi_engine=_env_bool("FORCE_MULTI_ENGINE_SEARCH", "false"),
            allow_degraded_results=_env_bool("ALLOW_DEGRADED_RESULTS", "true"),
            shutdown_timeout=float(os.getenv("SHUTDOWN_TIMEOUT", "10")),
            browser=BrowserConfig.from_env(),
        )

    @property
    def default_timeout(self) -> float:
        return self.default_timeout_ms / 1000

    @property
    def extraction_timeout(self) -> float:
        return self.extraction_timeout_ms / 1000

    def engine_for(self, provider: str) -> str:
        """Rendering engine kind used for a provider (falls back to the first enabled kind)."""
        return self.browser.resolve_kind(self.provider_engines.get(provider))
