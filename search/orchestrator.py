"""
Search Orchestrator.

Drives the provider fallback chain:

  1. Query providers in priority order (bing → brave → duckduckgo)
  2. Score every non-empty list with the ResultQualityScorer
  3. Return the first accepted list, tagged with its provider
  4. Otherwise fall back to the best-scoring rejected list (degraded)

In exhaustive mode every provider is queried and the single best list wins.
Lists from different providers are never merged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from browser_client import RenderingEnginePool
from models.schema import FailureRecord, SearchQuery, SearchResponse

from .client import ProviderResults, ResultProvider, build_providers
from .config import SearchConfig
from .failures import make_failure
from .ranking import QualityVerdict, ResultQualityScorer

logger = logging.getLogger(__name__)


class NoResultsError(RuntimeError):
    """Raised when no provider produced a usable result list."""

    def __init__(self, message: str = "no provider produced results", failures: Optional[List[FailureRecord]] = None):
        super().__init__(message)
        self.failures = failures or []


@dataclass
class Candidate:
    """A provider list together with its quality verdict."""

    priority: int
    outcome: ProviderResults
    verdict: QualityVerdict

    @property
    def provider(self) -> str:
        return self.outcome.provider


class SearchOrchestrator:
    """
    Main entry point for turning a query into one provider's result list.

    Usage:
        orch = SearchOrchestrator(SearchConfig.from_env())
        response = await orch.search("python asyncio tutorial", 5)
        await orch.close_all()
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        providers: Optional[Sequence[ResultProvider]] = None,
        pool: Optional[RenderingEnginePool] = None,
        scorer: Optional[ResultQualityScorer] = None,
    ):
        self._config = config or SearchConfig.from_env()
        if providers is None:
            pool = pool or RenderingEnginePool(self._config.browser)
            providers = build_providers(self._config, pool=pool)
        self._pool = pool
        self._providers: List[ResultProvider] = list(providers)
        self._scorer = scorer or ResultQualityScorer(
            threshold=self._config.relevance_threshold,
            enabled=self._config.enable_relevance_checking,
        )
        self._closed = False

    @property
    def providers(self) -> List[ResultProvider]:
        return list(self._providers)

    async def search(self, query: str, num_results: int = 5) -> SearchResponse:
        """
        Run the provider chain for one query.

        Raises:
            pydantic.ValidationError: empty query or num_results outside 1..10
            NoResultsError: no provider produced an acceptable list
        """
        q = SearchQuery(query=query, num_results=num_results)
        if not self._providers:
            raise NoResultsError("no provider configured")

        if self._config.force_multi_engine:
            candidates, failures = await self._query_all(q)
        else:
            candidates, failures = await self._query_in_order(q)

        accepted = [c for c in candidates if c.verdict.accept]

        if self._config.force_multi_engine and candidates:
            best = self._best(candidates)
            return self._respond(best, failures, degraded=not best.verdict.accept)

        if accepted:
            return self._respond(accepted[0], failures, degraded=False)

        if candidates and self._config.allow_degraded_results:
            best = self._best(candidates)
            logger.warning(
                "No provider passed the quality check for %r; using %s (score %.2f)",
                q.query, best.provider, best.verdict.score,
            )
            return self._respond(best, failures, degraded=True)

        raise NoResultsError("no provider produced results", failures)

    async def _query_in_order(self, q: SearchQuery):
        candidates: List[Candidate] = []
        failures: List[FailureRecord] = []

        for idx, provider in enumerate(self._providers):
            outcome = await self._call(provider, q)
            if outcome.failure:
                failures.append(outcome.failure)
            if not outcome.results:
                logger.info("%s returned no results, trying next provider", provider.name)
                continue

            verdict = self._scorer.score(q.query, outcome.results)
            candidates.append(Candidate(priority=idx, outcome=outcome, verdict=verdict))
            if verdict.accept:
                logger.info(
                    "%s accepted with %d results (score %.2f)",
                    provider.name, len(outcome.results), verdict.score,
                )
                break
            logger.info(
                "%s results rejected (score %.2f < %.2f), trying next provider",
                provider.name, verdict.score, self._scorer.threshold,
            )

        return candidates, failures

    async def _query_all(self, q: SearchQuery):
        outcomes = await asyncio.gather(*(self._call(p, q) for p in self._providers))
        candidates: List[Candidate] = []
        failures: List[FailureRecord] = []
        for idx, outcome in enumerate(outcomes):
            if outcome.failure:
                failures.append(outcome.failure)
            if outcome.results:
                verdict = self._scorer.score(q.query, outcome.results)
                candidates.append(Candidate(priority=idx, outcome=outcome, verdict=verdict))
                logger.info("%s scored %.2f (%d results)", outcome.provider, verdict.score, len(outcome.results))
        return candidates, failures

    async def _call(self, provider: ResultProvider, q: SearchQuery) -> ProviderResults:
        """Call a provider, turning unexpected errors into a failure record."""
        try:
            outcome = await provider.fetch_results(q.query, q.num_results)
        except Exception as e:
            logger.warning("Provider %s raised: %s", provider.name, e)
            return ProviderResults(provider=provider.name, failure=make_failure(provider.name, e, provider.name))
        outcome.results = [r for r in outcome.results if r.provider == provider.name][: q.num_results]
        return outcome

    @staticmethod
    def _best(candidates: List[Candidate]) -> Candidate:
        # highest score; earlier priority wins ties
        return max(candidates, key=lambda c: (c.verdict.score, -c.priority))

    @staticmethod
    def _respond(best: Candidate, failures: List[FailureRecord], degraded: bool) -> SearchResponse:
        return SearchResponse(
            results=best.outcome.results,
            provider=best.provider,
            score=best.verdict.score,
            degraded=degraded,
            failures=failures,
        )

    async def close_all(self):
        """Release the rendering pool. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._pool is not None:
            await self._pool.close_all()
