"""
Review Signal Lexicon (Deterministic)
=====================================

Keyword families used to group negative reviews without the oracle.
No LLM required: fast, explainable, reproducible.

Usage:
    matcher = LexicalThemeMatcher()
    result = matcher.assign(negative_reviews, k=3)
    keywords = extract_top_keywords([r.text for r in negative_reviews])
"""

import re
import logging
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

from .review_models import (
    ClusteredReview,
    ClusteringResult,
    ClusteringStrategy,
    SentimentedReview,
)

logger = logging.getLogger(__name__)


# =============================================================================
# THEME LEXICON: ordered keyword families
# =============================================================================
# Order matters: the lexical matcher only lets the first k families compete,
# and ties keep the earlier family.

THEME_LEXICON: Dict[str, List[str]] = {
    "crash": ["crash", "freeze", "bug", "broken", "error", "fail"],
    "performance": ["slow", "lag", "performance", "speed", "loading"],
    "login": ["login", "account", "password", "sign", "authentication"],
    "pricing": ["price", "cost", "expensive", "subscription", "payment", "money"],
    "features": ["feature", "missing", "need", "add", "want", "wish"],
    "ui": ["ui", "design", "interface", "layout", "confusing"],
    "support": ["customer", "support", "help", "service", "response"],
}

OTHER_THEME = "other"

# =============================================================================
# ISSUE KEYWORDS: hints for insight titles and actions
# =============================================================================

ISSUE_KEYWORDS: List[str] = [
    "crash", "freeze", "bug", "error", "broken", "fail",
    "slow", "lag", "performance", "loading",
    "login", "account", "password", "sign",
    "price", "cost", "expensive", "subscription",
    "feature", "missing", "need", "add",
    "ui", "design", "interface", "confusing",
    "support", "help", "customer", "service",
    "ads", "advertisement", "spam",
    "update", "version", "change",
    "quality", "bad", "terrible", "awful",
]


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    # Word-start match: "crash" hits "crashes", "bug" does not hit "debugging".
    return re.compile(r"\b" + re.escape(keyword))


def keyword_hits(text: str, keywords: Sequence[str]) -> int:
    """
    Number of distinct keywords present in an already lower-cased text.

    Plain substring test: "sign" hits "design", "ui" hits "quite".
    """
    return sum(1 for kw in keywords if kw in text)


def keyword_occurrences(text: str, keyword: str) -> int:
    """Word-start occurrences of keyword, used for top keywords and titles."""
    return len(_keyword_pattern(keyword).findall(text))


def best_theme(text: str, families: Sequence[Tuple[str, Sequence[str]]]) -> Optional[int]:
    """
    Index of the family with the most keyword hits in text.

    Ties keep the first maximal family; no hit at all returns None.
    """
    lowered = (text or "").lower()
    best_idx: Optional[int] = None
    best_hits = 0
    for idx, (_name, keywords) in enumerate(families):
        hits = keyword_hits(lowered, keywords)
        if hits > best_hits:
            best_hits = hits
            best_idx = idx
    return best_idx


def default_cluster_count(review_count: int) -> int:
    """Target cluster count scaled by volume."""
    if review_count < 20:
        return 2
    if review_count < 50:
        return 3
    if review_count < 100:
        return 4
    return 5


def extract_top_keywords(texts: Sequence[str], count: int = 3) -> List[str]:
    """
    Most frequent issue keywords across texts.

    Sorted by occurrence count descending; ties keep ISSUE_KEYWORDS order.
    """
    joined = " ".join(texts).lower()
    counts = []
    for keyword in ISSUE_KEYWORDS:
        n = keyword_occurrences(joined, keyword)
        if n > 0:
            counts.append((keyword, n))
    counts.sort(key=lambda kv: kv[1], reverse=True)
    return [kw for kw, _ in counts[:count]]


class LexicalThemeMatcher:
    """
    Keyword-based fallback clustering.

    Always terminates and always yields ids in [0, min(k, n)). A review with
    no keyword hit goes to its position in the input modulo k; those members
    are not claimed to be related to their bucket's theme.
    """

    def __init__(self, lexicon: Optional[Dict[str, List[str]]] = None):
        self.lexicon = lexicon or THEME_LEXICON
        self._families = list(self.lexicon.items())

    def assign(
        self,
        reviews: Sequence[SentimentedReview],
        k: Optional[int] = None,
    ) -> ClusteringResult:
        if not reviews:
            return ClusteringResult(assignments=(), k=0, strategy=ClusteringStrategy.LEXICAL)

        k = k or default_cluster_count(len(reviews))
        k = max(1, min(k, len(reviews)))
        families = self._families[:k]

        assignments: List[ClusteredReview] = []
        unmatched = 0
        for position, review in enumerate(reviews):
            theme_idx = best_theme(review.text, families)
            if theme_idx is None:
                theme_idx = position % k
                unmatched += 1
            assignments.append(ClusteredReview(review=review, cluster_id=theme_idx))

        result = ClusteringResult(
            assignments=tuple(assignments),
            k=k,
            strategy=ClusteringStrategy.LEXICAL,
            theme_names={i: name for i, (name, _kw) in enumerate(families)},
        )
        logger.info(
            f"Keyword clustering: {len(reviews)} reviews, k={k}, "
            f"{unmatched} unmatched, sizes={result.cluster_sizes}"
        )
        return result
