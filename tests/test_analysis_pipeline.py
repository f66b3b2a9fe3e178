"""
Integration tests for InsightPipeline.

End-to-end runs with no oracle (offline) and with an in-memory oracle that
answers each prompt kind. Verifies aggregates, the output contract and the
degradation paths (clustering failure, every synthesis failing).

Usage:
    pytest tests/test_analysis_pipeline.py -v
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from src.ai.llm_client import LLMClient, LLMError, LLMProvider, LLMResponse
from src.ai.review_analyzer import GENERIC_HATE, GENERIC_LOVE
from src.orchestrator.analysis_pipeline import (
    INSUFFICIENT_DATA_SUMMARY,
    InsightPipeline,
    PipelineStage,
    StageStatus,
    calculate_trend,
    top_negative_reviews,
)
from src.reviews.review_models import Review, Tier
from src.reviews.review_sentiment import tag_reviews


# ============================================================================
# TEST DATA
# ============================================================================

NOW = datetime(2025, 6, 30, tzinfo=timezone.utc)

OUTPUT_KEYS = {
    "appName", "store", "averageRating", "totalReviews", "positiveCategories",
    "negativeCategories", "topNegativeReviews", "positivePercentage",
    "negativePercentage", "trend", "summary", "themes", "insights",
    "whatUsersLove", "whatUsersHate",
}


def crash_scenario():
    """60 five-star reviews and 40 one-star crash reports."""
    return (
        [Review(text="Great app, I use it every day", rating=5) for _ in range(60)]
        + [Review(text="App crashes on startup every time", rating=1) for _ in range(40)]
    )


def login_reviews(n: int = 20):
    return [Review(text=f"Cannot login to my account, attempt {i}", rating=1) for i in range(n)]


def run(pipeline, reviews, **kwargs):
    return asyncio.run(pipeline.run(reviews, now=NOW, **kwargs))


class RoutingOracle(LLMClient):
    """Answers by prompt kind; any kind listed in `failing` raises."""

    model = "routing"

    def __init__(self, clustering=None, synthesis=None, failing=()):
        self.clustering = clustering or {"themes": []}
        self.synthesis = synthesis or {}
        self.failing = set(failing)

    async def generate(self, prompt, system=None, max_tokens=1024, temperature=None):
        return LLMResponse(content="{}", model=self.model, provider=LLMProvider.OPENAI,
                           tokens_input=0, tokens_output=0, cost_usd=0.0)

    @staticmethod
    def _kind(prompt: str) -> str:
        if "semantic themes/topics" in prompt:
            return "clustering"
        if "product manager analyzing" in prompt:
            return "synthesis"
        if "bullet-point summaries" in prompt:
            return "love_hate"
        return "categories"

    async def generate_json(self, prompt, system=None, schema=None, max_tokens=1000):
        kind = self._kind(prompt)
        if kind in self.failing:
            raise LLMError(f"{kind} unavailable")
        self.total_cost += 0.002
        if kind == "clustering":
            return self.clustering
        if kind == "synthesis":
            return dict(self.synthesis)
        if kind == "love_hate":
            return {"love": ["Fast sync", "Clean layout", "Helpful widgets"],
                    "hate": ["Login loops", "Lost sessions", "Slow support"]}
        return {"positive": ["Design", "Sync"], "negative": ["Login", "Support"]}


# ============================================================================
# AGGREGATES
# ============================================================================

class TestAggregates:

    def test_trend_keeps_last_six_months(self):
        reviews = tag_reviews(
            Review(text="ok", rating=4 if m % 2 else 1, timestamp=datetime(2025, m, 15, tzinfo=timezone.utc))
            for m in range(1, 9)
        )
        trend = calculate_trend(reviews)

        assert [t.month for t in trend] == ["2025-03", "2025-04", "2025-05", "2025-06", "2025-07", "2025-08"]
        assert trend[0].avg_rating == 4.0
        assert (trend[0].positive, trend[0].negative) == (1, 0)
        assert (trend[1].positive, trend[1].negative) == (0, 1)

    def test_trend_averages_per_month(self):
        ts = datetime(2025, 5, 1, tzinfo=timezone.utc)
        reviews = tag_reviews([Review("a", 5, ts), Review("b", 2, ts), Review("c", 3)])
        trend = calculate_trend(reviews)
        assert len(trend) == 1
        assert trend[0].avg_rating == 3.5

    def test_top_negative_reviews(self):
        reviews = tag_reviews([
            Review("Too short", 1),
            Review("Two stars, a bit disappointing overall", 2),
            Review("One star, absolutely broken after update", 1),
            Review("Three stars is not negative at all", 3),
        ] + [Review(f"Another one-star complaint {i}", 1) for i in range(5)])

        top = top_negative_reviews(reviews)

        assert len(top) == 5
        assert top[0] == "One star, absolutely broken after update"
        assert "Two stars, a bit disappointing overall" not in top
        assert "Too short" not in top


# ============================================================================
# OFFLINE SCENARIOS
# ============================================================================

class TestOfflinePipeline:

    def setup_method(self):
        self.pipeline = InsightPipeline(offline=True)

    def test_dominant_crash_insight(self):
        result = run(self.pipeline, crash_scenario(), app_name="Snap", store="google")

        assert len(result.insights) == 1
        insight = result.insights[0]
        assert insight.metrics.mentions == 40
        assert insight.metrics.share == pytest.approx(0.4)
        assert insight.metrics.negative_ratio == 1.0
        assert insight.impact is Tier.HIGH
        assert insight.confidence is Tier.HIGH
        assert insight.title == "App Crashes"
        assert result.has_actionable_insights

    def test_crash_scenario_aggregates(self):
        result = run(self.pipeline, crash_scenario(), app_name="Snap")

        assert result.average_rating == 3.4
        assert result.total_reviews == 100
        assert result.positive_percentage == 60.0
        assert result.negative_percentage == 40.0
        assert result.positive_categories == ["User Experience", "Features", "Design"]
        assert result.negative_categories == ["Performance", "Bugs", "Price"]
        assert result.what_users_love == GENERIC_LOVE
        assert result.summary.startswith("Snap averages 3.4/5 across 100 reviews")
        assert '"App Crashes"' in result.summary

    def test_no_negative_reviews(self):
        reviews = [Review(text="Love the new widgets, great work", rating=5) for _ in range(10)]
        result = run(self.pipeline, reviews)

        assert result.insights == []
        assert result.what_users_hate == GENERIC_HATE
        assert result.negative_percentage == 0.0

    def test_empty_input(self):
        result = run(self.pipeline, [])

        assert result.summary == INSUFFICIENT_DATA_SUMMARY
        assert result.average_rating == 0.0
        assert result.insights == []
        assert result.trend == []

    def test_output_contract(self):
        data = run(self.pipeline, crash_scenario(), app_name="Snap", store="apple").to_dict()

        assert set(data) == OUTPUT_KEYS
        assert data["appName"] == "Snap"
        assert data["store"] == "apple"
        insight = data["insights"][0]
        assert set(insight) == {
            "title", "why_it_matters", "metrics", "representative_quote",
            "suggested_action", "impact", "confidence",
        }
        assert insight["impact"] == "High"
        assert insight["metrics"] == {"mentions": 40, "share": 0.4, "negative_ratio": 1.0}

    def test_stage_records(self):
        record = asyncio.run(self.pipeline.execute(crash_scenario(), now=NOW))

        assert set(record.stages) == set(PipelineStage)
        assert record.stages[PipelineStage.CATEGORIES].status is StageStatus.DEGRADED
        assert record.stages[PipelineStage.CLUSTERING].metrics["strategy"] == "lexical"
        assert record.get_summary()["insights"] == 1
        assert record.get_summary()["llm_cost_usd"] == 0.0

    def test_clustering_failure_uses_category_fallback(self, monkeypatch):
        async def explode(*args, **kwargs):
            raise RuntimeError("clustering backend down")

        monkeypatch.setattr(self.pipeline.clustering, "cluster_negative_reviews", explode)
        result = run(self.pipeline, crash_scenario())

        assert [i.title for i in result.insights] == ["Address Performance issues", "Address Bugs issues"]
        assert all(i.confidence is Tier.LOW for i in result.insights)


# ============================================================================
# ORACLE SCENARIOS
# ============================================================================

class TestOraclePipeline:

    def test_duplicate_titles_from_oracle(self):
        oracle = RoutingOracle(
            clustering={"themes": [
                {"name": "Login", "review_indices": list(range(0, 10))},
                {"name": "Account", "review_indices": list(range(10, 20))},
            ]},
            synthesis={"title": "Login Issues", "suggested_action": "Rebuild session handling for all logins"},
        )
        result = run(InsightPipeline(llm_client=oracle), login_reviews(20))

        titles = [i.title for i in result.insights]
        assert titles == ["Login Issues", "Login Issues Issues"]
        assert len({i.suggested_action for i in result.insights}) == 2

    def test_oracle_categories_and_love_hate(self):
        result = run(InsightPipeline(llm_client=RoutingOracle()), login_reviews(5) + crash_scenario()[:5])

        assert result.negative_categories == ["Login", "Support"]
        assert result.what_users_love == ["Fast sync", "Clean layout", "Helpful widgets"]
        assert result.what_users_hate == ["Login loops", "Lost sessions", "Slow support"]
        assert [t.topic for t in result.themes][0] == "Login"

    def test_every_synthesis_failing_uses_category_fallback(self):
        oracle = RoutingOracle(failing={"clustering", "synthesis"})
        result = run(InsightPipeline(llm_client=oracle), login_reviews(12))

        assert [i.title for i in result.insights] == ["Address Login issues", "Address Support issues"]
        assert [i.metrics.mentions for i in result.insights] == [6, 6]

    def test_oracle_outage_never_raises(self):
        oracle = RoutingOracle(failing={"clustering", "categories", "love_hate"})
        result = run(InsightPipeline(llm_client=oracle), crash_scenario())

        assert result.negative_categories == ["Performance", "Bugs", "Price"]
        assert result.what_users_hate == GENERIC_HATE
        assert result.insights[0].metrics.mentions == 40

    def test_offline_flag_ignores_client(self):
        oracle = RoutingOracle(failing={"clustering", "synthesis", "categories", "love_hate"})
        pipeline = InsightPipeline(llm_client=oracle, offline=True)
        assert pipeline.llm_client is None

    def test_run_reports_llm_cost(self):
        oracle = RoutingOracle()
        oracle.total_cost = 1.0
        record = asyncio.run(InsightPipeline(llm_client=oracle).execute(login_reviews(3), now=NOW))

        # spend from before the run is excluded
        assert record.llm_cost == pytest.approx(oracle.total_cost - 1.0)
        assert record.llm_cost > 0
        assert record.get_summary()["llm_cost_usd"] == round(record.llm_cost, 6)
