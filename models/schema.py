"""
Pydantic data models for queries, search results and extraction outcomes.
"""

from datetime import datetime, timezone
from typing import Optional, List
from urllib.parse import urlparse
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from .enums import FetchStatus, FailureCategory


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SearchQuery(BaseModel):
    """A single search request."""
    model_config = ConfigDict(frozen=True)

    query: str = Field(..., min_length=1, description="Query text")
    num_results: int = Field(5, ge=1, le=10, description="Requested result count")

    @field_validator('query')
    @classmethod
    def validate_query(cls, v: str) -> str:
        """Reject whitespace-only queries."""
        v = v.strip()
        if not v:
            raise ValueError("query must not be empty")
        return v


class SearchResult(BaseModel):
    """Single hit returned by a provider."""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Result title")
    url: str = Field(..., description="Absolute result URL")
    description: str = Field("", description="Snippet shown by the provider")
    timestamp: datetime = Field(default_factory=_utcnow, description="Discovery time")
    provider: str = Field(..., description="Provider tag, e.g. 'bing'")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute http(s) URL."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"URL must be absolute http(s): {v!r}")
        return v


class FailureRecord(BaseModel):
    """A categorized failure, kept for diagnostics only."""
    url: str = Field(..., description="URL (or provider endpoint) that failed")
    error: str = Field(..., description="Raw error text")
    category: FailureCategory = Field(FailureCategory.OTHER, description="Classified reason")
    provider: Optional[str] = Field(None, description="Provider tag when the failure is provider-level")


class EnrichedResult(BaseModel):
    """
    A SearchResult plus the outcome of content extraction.

    Created with status ``pending`` and moved exactly once to a terminal
    status through :meth:`finish`.
    """
    title: str
    url: str
    description: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    provider: str

    full_content: Optional[str] = Field(None, description="Extracted readable text")
    content_preview: Optional[str] = Field(None, description="Short preview of the content")
    fetch_status: FetchStatus = Field(FetchStatus.PENDING)
    error: Optional[str] = Field(None, description="Raw error message")
    error_category: Optional[FailureCategory] = Field(None)

    @classmethod
    def from_result(cls, result: SearchResult) -> 'EnrichedResult':
        return cls(**result.model_dump())

    def finish(
        self,
        status: FetchStatus,
        *,
        content: Optional[str] = None,
        preview: Optional[str] = None,
        error: Optional[str] = None,
        category: Optional[FailureCategory] = None,
    ) -> 'EnrichedResult':
        """Record the terminal extraction outcome."""
        if self.fetch_status != FetchStatus.PENDING:
            raise RuntimeError(
                f"Result {self.url} already finished with status {self.fetch_status.value}"
            )
        if status == FetchStatus.PENDING:
            raise ValueError("finish() requires a terminal status")
        self.full_content = content
        self.content_preview = preview
        self.error = error
        self.error_category = category
        self.fetch_status = status
        return self

    @property
    def is_terminal(self) -> bool:
        return self.fetch_status != FetchStatus.PENDING


class SearchResponse(BaseModel):
    """Ordered results accepted from exactly one provider."""
    results: List[SearchResult] = Field(default_factory=list)
    provider: str = Field(..., description="Provider whose list was accepted")
    score: float = Field(0.0, ge=0.0, le=1.0, description="List-level relevance score")
    degraded: bool = Field(False, description="True when no list passed the quality check")
    failures: List[FailureRecord] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.results)

    @model_validator(mode='after')
    def validate_single_provider(self) -> 'SearchResponse':
        """Results from different providers are never mixed."""
        for r in self.results:
            if r.provider != self.provider:
                raise ValueError(
                    f"Result {r.url} comes from {r.provider!r}, response is tagged {self.provider!r}"
                )
        return self
