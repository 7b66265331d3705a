"""
Models package initialization.
"""

from .enums import FetchStatus, FailureCategory, EngineKind
from .schema import (
    SearchQuery,
    SearchResult,
    FailureRecord,
    EnrichedResult,
    SearchResponse,
)

__all__ = [
    "FetchStatus",
    "FailureCategory",
    "EngineKind",
    "SearchQuery",
    "SearchResult",
    "FailureRecord",
    "EnrichedResult",
    "SearchResponse",
]
