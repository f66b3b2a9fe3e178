"""
Tests for TopicClusteringEngine.

Oracle behaviour is simulated with in-memory LLMClient subclasses:
- Usable themes -> LLM strategy, full coverage, dense ids
- Errors / empty / malformed payloads -> deterministic fallback
- k-means fallback when vector features are supplied

Usage:
    pytest tests/test_topic_clustering.py -v
"""

import asyncio

import pytest
from src.ai.llm_client import LLMClient, LLMError, LLMProvider, LLMResponse
from src.reviews.review_clustering import (
    TopicClusteringEngine,
    _usable_themes,
    assignments_from_themes,
    build_tfidf_features,
    kmeans_assign,
)
from src.reviews.review_models import ClusteringStrategy, Review
from src.reviews.review_sentiment import tag_review


# ============================================================================
# FAKE ORACLES
# ============================================================================

class StaticOracle(LLMClient):
    """Returns a fixed payload from generate_json and records prompts."""

    model = "static"

    def __init__(self, payload):
        self.payload = payload
        self.prompts = []

    async def generate(self, prompt, system=None, max_tokens=1024, temperature=None):
        return LLMResponse(content="{}", model=self.model, provider=LLMProvider.OPENAI,
                           tokens_input=0, tokens_output=0, cost_usd=0.0)

    async def generate_json(self, prompt, system=None, schema=None, max_tokens=1000):
        self.prompts.append(prompt)
        return self.payload


class FailingOracle(StaticOracle):
    def __init__(self, error=None):
        super().__init__({})
        self.error = error or LLMError("timeout")

    async def generate_json(self, prompt, system=None, schema=None, max_tokens=1000):
        raise self.error


def make_review(text: str, rating: int = 1):
    return tag_review(Review(text=text, rating=rating))


def negatives(n: int, text: str = "Login keeps failing"):
    return [make_review(f"{text} #{i}") for i in range(n)]


# ============================================================================
# PAYLOAD HANDLING
# ============================================================================

class TestOraclePayload:
    """Validation of oracle theme payloads."""

    def test_usable_themes_filters_invalid_indices(self):
        payload = {"themes": [
            {"name": "Login", "review_indices": [0, 1, 99, -1, "2", True]},
            {"name": "Empty", "review_indices": []},
            {"name": "Bad", "review_indices": "0,1"},
            "not a theme",
        ]}
        themes = _usable_themes(payload, sample_size=5)
        assert themes == [{"name": "Login", "indices": [0, 1]}]

    @pytest.mark.parametrize("payload", [None, [], {"themes": None}, {"themes": {}}, {}])
    def test_unusable_payloads(self, payload):
        assert _usable_themes(payload, 10) == []

    def test_assignments_cover_every_review(self):
        reviews = negatives(7)
        themes = [{"name": "A", "indices": [0, 1]}, {"name": "B", "indices": [2]}]
        ids = assignments_from_themes(reviews, themes, sample_size=4)

        assert ids[:3] == [0, 0, 1]
        # index 3 was sampled but unlisted; 4..6 were never sampled
        assert ids[3] == 0
        assert ids[4:] == [4 % 2, 5 % 2, 6 % 2]

    def test_unlisted_sampled_reviews_stay_in_first_cluster(self):
        reviews = negatives(4)
        themes = [{"name": "A", "indices": [0]}, {"name": "B", "indices": [1]}]
        assert assignments_from_themes(reviews, themes, sample_size=4) == [0, 1, 0, 0]

    def test_later_theme_wins_on_duplicate_index(self):
        reviews = negatives(2)
        themes = [{"name": "A", "indices": [0, 1]}, {"name": "B", "indices": [1]}]
        assert assignments_from_themes(reviews, themes, 2) == [0, 1]


# ============================================================================
# ENGINE
# ============================================================================

class TestTopicClusteringEngine:
    """Strategy chain: oracle -> k-means -> lexicon."""

    def test_oracle_themes_used(self):
        oracle = StaticOracle({"themes": [
            {"name": "Login failures", "review_indices": [0, 1, 2]},
            {"name": "Password resets", "review_indices": [3, 4]},
        ]})
        engine = TopicClusteringEngine(oracle)
        reviews = negatives(5)

        result = asyncio.run(engine.cluster(reviews, k=2))

        assert result.strategy is ClusteringStrategy.LLM
        assert result.k == 2
        assert [a.cluster_id for a in result.assignments] == [0, 0, 0, 1, 1]
        assert result.theme_names == {0: "Login failures", 1: "Password resets"}

    def test_oracle_sees_at_most_sample_size(self):
        oracle = StaticOracle({"themes": [{"name": "All", "review_indices": [0]}]})
        engine = TopicClusteringEngine(oracle, sample_size=3)

        result = asyncio.run(engine.cluster(negatives(10)))

        assert '3. "' not in oracle.prompts[0]
        assert len(result.assignments) == 10
        assert {a.cluster_id for a in result.assignments} == {0}

    def test_oracle_error_falls_back_to_lexicon(self):
        engine = TopicClusteringEngine(FailingOracle())
        result = asyncio.run(engine.cluster(negatives(6, "App crashes on launch")))

        assert result.strategy is ClusteringStrategy.LEXICAL
        assert len(result.assignments) == 6

    def test_unexpected_exception_falls_back(self):
        engine = TopicClusteringEngine(FailingOracle(RuntimeError("boom")))
        result = asyncio.run(engine.cluster(negatives(4)))
        assert result.strategy is ClusteringStrategy.LEXICAL

    def test_empty_payload_falls_back(self):
        engine = TopicClusteringEngine(StaticOracle({"themes": []}))
        result = asyncio.run(engine.cluster(negatives(4)))
        assert result.strategy is ClusteringStrategy.LEXICAL

    def test_no_oracle_uses_lexicon(self):
        result = asyncio.run(TopicClusteringEngine().cluster(negatives(4)))
        assert result.strategy is ClusteringStrategy.LEXICAL

    def test_kmeans_fallback_with_features(self):
        reviews = negatives(6)
        features = [[0.0, 0.0], [0.1, 0.0], [0.0, 0.1], [10.0, 10.0], [10.1, 10.0], [10.0, 10.1]]

        result = asyncio.run(TopicClusteringEngine().cluster(reviews, k=2, features=features))

        assert result.strategy is ClusteringStrategy.KMEANS
        ids = [a.cluster_id for a in result.assignments]
        assert ids == [0, 0, 0, 1, 1, 1]

    def test_mismatched_features_ignored(self):
        result = asyncio.run(TopicClusteringEngine().cluster(negatives(4), features=[[1.0]]))
        assert result.strategy is ClusteringStrategy.LEXICAL

    def test_empty_input(self):
        result = asyncio.run(TopicClusteringEngine(FailingOracle()).cluster([]))
        assert result.k == 0
        assert result.assignments == ()

    def test_cluster_negative_reviews_filters(self):
        reviews = [
            make_review("App crashes", 1),
            make_review("Love it", 5),
            make_review("   ", 1),
            make_review("Meh", 3),
        ]
        result = asyncio.run(TopicClusteringEngine().cluster_negative_reviews(reviews))
        assert [a.text for a in result.assignments] == ["App crashes"]


# ============================================================================
# NUMERIC HELPERS
# ============================================================================

class TestNumericFallback:

    def test_kmeans_clamps_k(self):
        assert kmeans_assign([[1.0], [2.0]], k=5) in ([0, 1], [1, 0])

    def test_kmeans_single_cluster(self):
        assert kmeans_assign([[1.0], [2.0], [3.0]], k=1) == [0, 0, 0]

    def test_kmeans_empty(self):
        assert kmeans_assign([], k=3) == []

    def test_tfidf_features_shape(self):
        features = build_tfidf_features(["login fails again", "crash on startup", "login broken"])
        assert features.shape[0] == 3

    def test_tfidf_empty_vocabulary(self):
        assert build_tfidf_features(["the", "a"]) is None
