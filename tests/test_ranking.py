"""
Tests for result quality scoring.
"""

from models.schema import SearchResult
from search.ranking import ResultQualityScorer, query_terms


def _r(title, description="", url="https://example.com/page"):
    return SearchResult(title=title, url=url, description=description, provider="bing")


LONG_RELEVANT = "A hands-on python asyncio tutorial covering tasks, queues and event loops."
LONG_IRRELEVANT = "Weeknight pasta recipes with fresh tomatoes, basil and a little garlic."


class TestQueryTerms:

    def test_drops_stop_words(self):
        assert query_terms("How to use the asyncio queue") == ["use", "asyncio", "queue"]

    def test_only_stop_words_kept(self):
        assert query_terms("the who") == ["the", "who"]

    def test_deduplicates(self):
        assert query_terms("rust Rust RUST async") == ["rust", "async"]


class TestResultQualityScorer:

    def setup_method(self):
        self.scorer = ResultQualityScorer(threshold=0.3)

    def test_relevant_list_accepted(self):
        verdict = self.scorer.score("python asyncio tutorial", [
            _r("Python asyncio tutorial", LONG_RELEVANT),
            _r("Asyncio in Python", LONG_RELEVANT),
        ])
        assert verdict.accept
        assert verdict.score > 0.9

    def test_irrelevant_list_rejected(self):
        verdict = self.scorer.score("python asyncio tutorial", [
            _r("Pasta recipes", LONG_IRRELEVANT),
        ])
        assert not verdict.accept
        assert verdict.score == 0.0

    def test_short_description_penalized(self):
        terms = query_terms("python asyncio")
        full = self.scorer.score_result(terms, _r("Python asyncio", LONG_RELEVANT))
        short = self.scorer.score_result(terms, _r("Python asyncio", "short"))
        assert short < full
        assert short == 0.7

    def test_substring_overlap_does_not_count(self):
        terms = query_terms("go ai")
        score = self.scorer.score_result(terms, _r(
            "Google said", "Google said on Monday that the json export format would stay supported.",
        ))
        assert score == 0.0

    def test_whole_token_match(self):
        terms = query_terms("go ai")
        score = self.scorer.score_result(terms, _r(
            "Go and AI", "Writing AI inference services in Go with small, static binaries and goroutines.",
        ))
        assert score == 1.0

    def test_score_bounded(self):
        verdict = self.scorer.score("a b c d e", [_r("x"), _r("y", LONG_IRRELEVANT)])
        assert 0.0 <= verdict.score <= 1.0

    def test_empty_list_rejected(self):
        verdict = self.scorer.score("anything", [])
        assert not verdict.accept
        assert verdict.score == 0.0

    def test_deterministic(self):
        results = [_r("Python asyncio", LONG_RELEVANT), _r("Pasta", LONG_IRRELEVANT)]
        assert self.scorer.score("python asyncio", results) == self.scorer.score("python asyncio", results)

    def test_disabled_accepts_anything_non_empty(self):
        scorer = ResultQualityScorer(threshold=0.9, enabled=False)
        verdict = scorer.score("python asyncio", [_r("Pasta", LONG_IRRELEVANT)])
        assert verdict.accept

    def test_disabled_still_rejects_empty(self):
        scorer = ResultQualityScorer(enabled=False)
        assert not scorer.score("python", []).accept
