"""
Theme Ranking Engine
====================

Scores category-label themes (independent of clusters):

    score = 0.50 * mentions / max_mentions
          + 0.35 * negative_count / mentions
          + 0.15 * recent_count / max_recent

max_mentions and max_recent are floored at 1, so score is in [0, 1].
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from .review_models import Sentiment, SentimentedReview, ThemeData

logger = logging.getLogger(__name__)

VOLUME_WEIGHT = 0.5
NEGATIVE_WEIGHT = 0.35
RECENCY_WEIGHT = 0.15

RECENT_DAYS = 30


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def theme_score(mentions: int, negative_count: int, recent_count: int,
                max_mentions: int, max_recent: int) -> float:
    max_mentions = max(max_mentions, 1)
    max_recent = max(max_recent, 1)
    negative_ratio = negative_count / mentions if mentions > 0 else 0.0
    return (
        VOLUME_WEIGHT * (mentions / max_mentions)
        + NEGATIVE_WEIGHT * negative_ratio
        + RECENCY_WEIGHT * (recent_count / max_recent)
    )


def rank_themes(
    reviews: Sequence[SentimentedReview],
    positive_categories: Sequence[str],
    negative_categories: Sequence[str],
    now: Optional[datetime] = None,
    recent_days: int = RECENT_DAYS,
) -> List[ThemeData]:
    """
    Build and rank themes from category labels.

    A review matches a label when any whitespace token of the label occurs
    (case-insensitive substring) in its text. One review can feed several
    themes. Labels nobody mentions are omitted.

    Returns:
        Themes sorted by descending score, ties in label order.
    """
    cutoff = _as_utc(now or datetime.now(timezone.utc)) - timedelta(days=recent_days)

    labels: List[str] = []
    for label in list(positive_categories) + list(negative_categories):
        if label and label.strip() and label not in labels:
            labels.append(label)

    stats: Dict[str, Dict] = {}
    for label in labels:
        tokens = label.lower().split()
        matched = [r for r in reviews if r.text and any(tok in r.text.lower() for tok in tokens)]
        if not matched:
            continue
        stats[label] = {
            "reviews": matched,
            "negative": sum(1 for r in matched if r.sentiment is Sentiment.NEGATIVE),
            "recent": sum(1 for r in matched if r.timestamp is not None and _as_utc(r.timestamp) > cutoff),
        }

    if not stats:
        return []

    max_mentions = max(len(s["reviews"]) for s in stats.values())
    max_recent = max(max(s["recent"] for s in stats.values()), 1)

    themes = []
    for label, s in stats.items():
        mentions = len(s["reviews"])
        themes.append(ThemeData(
            topic=label,
            mentions=mentions,
            negative_ratio=s["negative"] / mentions,
            recent_trend=s["recent"] / max_recent,
            score=theme_score(mentions, s["negative"], s["recent"], max_mentions, max_recent),
            reviews=tuple(s["reviews"]),
        ))

    # list.sort is stable: equal scores keep label order
    themes.sort(key=lambda t: t.score, reverse=True)
    logger.debug(f"Ranked {len(themes)} themes: {[(t.topic, round(t.score, 3)) for t in themes]}")
    return themes
