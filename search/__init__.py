"""
Search Module: turns a text query into ranked web pages with readable
content, using public search engines and a pool of rendering engines.
"""

from .client import ProviderAdapter, ProviderResults, build_providers
from .config import SearchConfig
from .extractor import ContentExtractor, ExtractionError, ExtractionReport
from .failures import categorize_error
from .orchestrator import NoResultsError, SearchOrchestrator
from .ranking import ResultQualityScorer
from .service import WebSearchOutput, WebSearchService

__all__ = [
    "ProviderAdapter",
    "ProviderResults",
    "build_providers",
    "SearchConfig",
    "ContentExtractor",
    "ExtractionError",
    "ExtractionReport",
    "categorize_error",
    "NoResultsError",
    "SearchOrchestrator",
    "ResultQualityScorer",
    "WebSearchOutput",
    "WebSearchService",
]
