"""
Result Quality Scoring: decide whether a provider's list is good enough.

Scoring per result:
  - Term overlap:  share of query terms found in title + description
  - Description:   short snippets (< MIN_DESCRIPTION_LENGTH) scaled by 0.7
  - URL sanity:    non-absolute / non-http URLs score 0

The list score is the mean of per-result scores, always within [0, 1].
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Sequence
from urllib.parse import urlparse

from models.schema import SearchResult


STOP_WORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "how",
    "in", "is", "it", "of", "on", "or", "that", "the", "this", "to", "was",
    "what", "when", "where", "which", "who", "why", "with", "vs",
}

_TOKEN_RE = re.compile(r"[\w]+", re.UNICODE)


def query_terms(query: str) -> List[str]:
    """Distinct lowercase query terms, stop words dropped."""
    tokens = [t for t in _TOKEN_RE.findall(query.lower()) if len(t) >= 2]
    terms = [t for t in tokens if t not in STOP_WORDS] or tokens
    seen: List[str] = []
    for t in terms:
        if t not in seen:
            seen.append(t)
    return seen


@dataclass(frozen=True)
class QualityVerdict:
    """Outcome of scoring one result list."""

    accept: bool
    score: float
    per_result: List[float] = field(default_factory=list)


class ResultQualityScorer:
    """
    Score a candidate result list against the query.

    Pure function of its inputs: the same (query, results) pair always
    yields the same verdict.
    """

    MIN_DESCRIPTION_LENGTH = 40
    SHORT_DESCRIPTION_FACTOR = 0.7

    def __init__(self, threshold: float = 0.3, enabled: bool = True):
        self.threshold = threshold
        self.enabled = enabled

    def score_result(self, terms: Sequence[str], result: SearchResult) -> float:
        """Relevance of a single result in [0, 1]."""
        parsed = urlparse(result.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return 0.0

        text = f"{result.title} {result.description}".lower()
        if terms:
            words = set(_TOKEN_RE.findall(text))
            matched = sum(1 for t in terms if t in words)
            score = matched / len(terms)
        else:
            score = 1.0

        if len(result.description.strip()) < self.MIN_DESCRIPTION_LENGTH:
            score *= self.SHORT_DESCRIPTION_FACTOR

        return max(0.0, min(1.0, score))

    def score(self, query: str, results: Sequence[SearchResult]) -> QualityVerdict:
        """Score a list and decide acceptance."""
        if not results:
            return QualityVerdict(accept=False, score=0.0)

        terms = query_terms(query)
        per_result = [self.score_result(terms, r) for r in results]
        total = round(sum(per_result) / len(per_result), 4)

        if not self.enabled:
            return QualityVerdict(accept=True, score=total, per_result=per_result)

        return QualityVerdict(
            accept=total >= self.threshold,
            score=total,
            per_result=per_result,
        )
