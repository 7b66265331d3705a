"""
Tests for search configuration loading.
"""

import pytest

from browser_client import BrowserConfig
from search.config import SearchConfig


class TestSearchConfig:

    def test_defaults(self):
        config = SearchConfig()
        assert config.max_content_length == 500000
        assert config.default_timeout == 6.0
        assert config.extraction_timeout == 20.0
        assert config.provider_order == ("bing", "brave", "duckduckgo")
        assert config.allow_degraded_results == True

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MAX_CONTENT_LENGTH", "1000")
        monkeypatch.setenv("EXTRACTION_TIMEOUT", "5000")
        monkeypatch.setenv("MAX_CONCURRENT_EXTRACTIONS", "2")
        monkeypatch.setenv("RELEVANCE_THRESHOLD", "0.5")
        monkeypatch.setenv("FORCE_MULTI_ENGINE_SEARCH", "yes")
        monkeypatch.setenv("ALLOW_DEGRADED_RESULTS", "false")
        monkeypatch.setenv("MAX_BROWSERS", "1")

        config = SearchConfig.from_env()
        assert config.max_content_length == 1000
        assert config.extraction_timeout == 5.0
        assert config.max_concurrent_extractions == 2
        assert config.relevance_threshold == 0.5
        assert config.force_multi_engine == True
        assert config.allow_degraded_results == False
        assert config.browser.max_browsers == 1

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_rejects_bad_threshold(self, threshold):
        with pytest.raises(ValueError):
            SearchConfig(relevance_threshold=threshold)

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            SearchConfig(max_concurrent_extractions=0)

    def test_engine_for_provider(self):
        config = SearchConfig(browser=BrowserConfig(engine_kinds=("chromium", "firefox")))
        assert config.engine_for("brave") == "firefox"
        assert config.engine_for("bing") == "chromium"

    def test_engine_falls_back_to_first_kind(self):
        config = SearchConfig(browser=BrowserConfig(engine_kinds=("webkit",)))
        assert config.engine_for("brave") == "webkit"
        assert config.engine_for("unknown") == "webkit"
