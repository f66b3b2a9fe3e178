"""
Tests for environment-driven settings.

Usage:
    pytest tests/test_config.py -v
"""

import pytest
from src.data.config import InsightConfig, LLMConfig, Settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        for key in ("INSIGHT_MAX_INSIGHTS", "INSIGHT_CLUSTER_SAMPLE", "LLM_MAX_CONCURRENCY"):
            monkeypatch.delenv(key, raising=False)
        settings = Settings()
        assert settings.insights.max_insights == 5
        assert settings.insights.cluster_sample_size == 80
        assert settings.llm.max_concurrency == 4

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("INSIGHT_SYNTHESIS_SAMPLE", "12")
        monkeypatch.setenv("INSIGHT_TFIDF_FALLBACK", "yes")
        cfg = InsightConfig()
        assert cfg.synthesis_sample_size == 12
        assert cfg.tfidf_fallback is True

    def test_invalid_integer(self, monkeypatch):
        monkeypatch.setenv("INSIGHT_MAX_INSIGHTS", "five")
        with pytest.raises(ValueError):
            InsightConfig()

    def test_invalid_provider(self, monkeypatch):
        monkeypatch.setenv("LLM_PROVIDER", "mistral")
        with pytest.raises(ValueError):
            LLMConfig()

    def test_refinement_thresholds_validated(self):
        with pytest.raises(ValueError):
            InsightConfig(refine_min_cluster_size=4, refine_min_subcluster_size=5)
