"""
Topic Clustering Engine
=======================

Partitions negative reviews into k themes.

Strategy chain:
    1. Oracle: the LLM groups a sample of reviews into named themes
    2. k-means over caller-supplied vector features (scikit-learn)
    3. Keyword lexicon (LexicalThemeMatcher)

Oracle errors never propagate: they only downgrade to the next strategy.

Usage:
    engine = TopicClusteringEngine(llm_client)
    result = await engine.cluster(negative_reviews)
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from sklearn.cluster import KMeans
from sklearn.feature_extraction.text import TfidfVectorizer

from .review_models import (
    ClusteredReview,
    ClusteringResult,
    ClusteringStrategy,
    Sentiment,
    SentimentedReview,
)
from .review_signals import LexicalThemeMatcher, default_cluster_count
from ..ai.llm_client import LLMClient

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 80


CLUSTERING_SYSTEM = "You are a data analyst clustering user reviews into semantic themes."

CLUSTERING_PROMPT = """Analyze these {sample_size} user reviews and group them into {k} distinct semantic themes/topics.

Reviews:
{reviews_text}

Identify {k} main themes and assign each review (by index 0-{last_index}) to the most relevant theme.

Return JSON:
{{
  "themes": [
    {{
      "name": "Brief theme name (2-4 words)",
      "review_indices": [list of review indices 0-{last_index}]
    }}
  ]
}}

Each review should be assigned to exactly one theme. Make themes distinct and meaningful."""


# =============================================================================
# NUMERIC FALLBACK
# =============================================================================

def _remap_cluster_ids(raw_ids) -> List[int]:
    """Renumber labels densely in first-seen order."""
    cluster_map: Dict[int, int] = {}
    out: List[int] = []
    for cid in raw_ids:
        c = int(cid)
        if c not in cluster_map:
            cluster_map[c] = len(cluster_map)
        out.append(cluster_map[c])
    return out


def kmeans_assign(features: Sequence[Sequence[float]], k: int, random_state: int = 42) -> List[int]:
    """
    k-means over one numeric vector per review.

    k is clamped to the number of rows; ids are dense and 0-based.
    """
    data = np.asarray(features, dtype=float)
    n_items = data.shape[0]
    if n_items == 0:
        return []
    k = max(1, min(int(k), n_items))
    if k == 1:
        return [0] * n_items

    labels = KMeans(n_clusters=k, n_init=10, random_state=random_state).fit_predict(data)
    return _remap_cluster_ids(labels)


def build_tfidf_features(texts: Sequence[str]) -> Optional[np.ndarray]:
    """Dense TF-IDF vectors, or None when the vocabulary is empty."""
    try:
        vec = TfidfVectorizer(lowercase=True, stop_words="english", ngram_range=(1, 2), max_features=5000)
        matrix = vec.fit_transform(list(texts))
    except ValueError:
        return None
    return matrix.toarray()


# =============================================================================
# ORACLE PAYLOAD HANDLING
# =============================================================================

def _usable_themes(payload: Any, sample_size: int) -> List[Dict[str, Any]]:
    """Themes listing at least one in-range integer index."""
    if not isinstance(payload, dict):
        return []
    themes = payload.get("themes")
    if not isinstance(themes, list):
        return []

    usable = []
    for theme in themes:
        if not isinstance(theme, dict):
            continue
        indices = theme.get("review_indices")
        if not isinstance(indices, list):
            continue
        valid = [
            i for i in indices
            if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < sample_size
        ]
        if valid:
            usable.append({"name": str(theme.get("name") or "").strip(), "indices": valid})
    return usable


def assignments_from_themes(
    reviews: Sequence[SentimentedReview],
    themes: List[Dict[str, Any]],
    sample_size: int,
) -> List[int]:
    """
    Dense cluster-id array over the full review list.

    Sampled reviews take the oracle's assignment (later themes win on
    duplicates); sampled reviews the oracle left out stay in cluster 0.
    Reviews past the sample are assigned round-robin over the theme count,
    which guarantees coverage, not semantic relatedness.
    """
    theme_count = len(themes)
    cluster_ids = [0] * len(reviews)

    for theme_idx, theme in enumerate(themes):
        for i in theme["indices"]:
            cluster_ids[i] = theme_idx

    for i in range(sample_size, len(reviews)):
        cluster_ids[i] = i % theme_count
    return cluster_ids


class TopicClusteringEngine:
    """
    Clusters negative reviews with the oracle and falls back deterministically.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        max_tokens: int = 1000,
        lexical_matcher: Optional[LexicalThemeMatcher] = None,
    ):
        self.llm_client = llm_client
        self.sample_size = sample_size
        self.max_tokens = max_tokens
        self.lexical_matcher = lexical_matcher or LexicalThemeMatcher()

    def _format_reviews(self, sample: Sequence[SentimentedReview]) -> str:
        return "\n".join(f'{i}. "{r.text}"' for i, r in enumerate(sample))

    async def _cluster_with_llm(
        self,
        reviews: Sequence[SentimentedReview],
        k: int,
    ) -> Optional[ClusteringResult]:
        sample = list(reviews[: self.sample_size])
        prompt = CLUSTERING_PROMPT.format(
            sample_size=len(sample),
            k=k,
            reviews_text=self._format_reviews(sample),
            last_index=len(sample) - 1,
        )

        payload = await self.llm_client.generate_json(
            prompt=prompt,
            system=CLUSTERING_SYSTEM,
            max_tokens=self.max_tokens,
        )
        themes = _usable_themes(payload, len(sample))
        logger.info(f"LLM identified {len(themes)} usable themes")
        if not themes:
            return None

        cluster_ids = assignments_from_themes(reviews, themes, len(sample))
        return ClusteringResult(
            assignments=tuple(
                ClusteredReview(review=r, cluster_id=cid) for r, cid in zip(reviews, cluster_ids)
            ),
            k=len(themes),
            strategy=ClusteringStrategy.LLM,
            theme_names={i: t["name"] for i, t in enumerate(themes) if t["name"]},
        )

    def _fallback(
        self,
        reviews: Sequence[SentimentedReview],
        k: int,
        features: Optional[Sequence[Sequence[float]]],
    ) -> ClusteringResult:
        if features is not None and len(features) == len(reviews):
            try:
                cluster_ids = kmeans_assign(features, k)
            except ValueError as e:
                logger.warning(f"k-means fallback failed ({e}), using keyword clustering")
            else:
                logger.info(f"k-means clustering: {len(reviews)} reviews, k={k}")
                return ClusteringResult(
                    assignments=tuple(
                        ClusteredReview(review=r, cluster_id=cid) for r, cid in zip(reviews, cluster_ids)
                    ),
                    k=max(cluster_ids) + 1 if cluster_ids else 0,
                    strategy=ClusteringStrategy.KMEANS,
                )
        return self.lexical_matcher.assign(reviews, k)

    async def cluster(
        self,
        reviews: Sequence[SentimentedReview],
        k: Optional[int] = None,
        features: Optional[Sequence[Sequence[float]]] = None,
    ) -> ClusteringResult:
        """
        Cluster reviews into about k themes.

        Args:
            reviews: Negative reviews, in the order received.
            k: Target theme count (default scaled by volume).
            features: Optional numeric vector per review for the k-means fallback.

        Returns:
            ClusteringResult covering every input review.
        """
        if not reviews:
            return ClusteringResult(assignments=(), k=0, strategy=ClusteringStrategy.LEXICAL)

        k = k or default_cluster_count(len(reviews))
        logger.info(f"Clustering {len(reviews)} reviews, targeting k={k}")

        if self.llm_client is None:
            logger.info("No LLM configured, using fallback clustering")
            return self._fallback(reviews, k, features)

        try:
            result = await self._cluster_with_llm(reviews, k)
        except Exception as e:
            logger.error(f"LLM clustering failed: {e}")
            result = None

        if result is None:
            logger.warning("LLM returned no usable themes, using fallback clustering")
            return self._fallback(reviews, k, features)

        logger.info(f"LLM cluster sizes: {result.cluster_sizes}")
        return result

    async def cluster_negative_reviews(
        self,
        reviews: Sequence[SentimentedReview],
        use_tfidf_features: bool = False,
    ) -> ClusteringResult:
        """Cluster only the negative reviews that carry text."""
        negatives = [r for r in reviews if r.sentiment is Sentiment.NEGATIVE and r.text.strip()]
        features = build_tfidf_features([r.text for r in negatives]) if use_tfidf_features and negatives else None
        return await self.cluster(negatives, features=features)
