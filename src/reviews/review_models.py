"""
Review Insight Data Models
==========================

Immutable values flowing through the insight pipeline:
    Review -> SentimentedReview -> ClusteredReview -> Cluster -> Insight

Every stage builds new instances; nothing here is mutated after creation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Any


class Sentiment(str, Enum):
    """Sentiment tag derived from the star rating."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Tier(str, Enum):
    """Ordinal tier used for impact and confidence."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @property
    def rank(self) -> int:
        return {"High": 3, "Medium": 2, "Low": 1}[self.value]


class ClusteringStrategy(str, Enum):
    """Which strategy produced a cluster assignment."""
    LLM = "llm"
    KMEANS = "kmeans"
    LEXICAL = "lexical"


@dataclass(frozen=True)
class Review:
    """A normalized app-store review."""
    text: str
    rating: int
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class SentimentedReview:
    """A review tagged with its sentiment (assigned once, never recomputed)."""
    text: str
    rating: int
    sentiment: Sentiment
    timestamp: Optional[datetime] = None

    @property
    def is_negative(self) -> bool:
        return self.sentiment is Sentiment.NEGATIVE


@dataclass(frozen=True)
class ClusteredReview:
    """A negative review with its cluster id."""
    review: SentimentedReview
    cluster_id: int

    @property
    def text(self) -> str:
        return self.review.text


@dataclass(frozen=True)
class ClusteringResult:
    """Dense per-review cluster assignment plus how it was obtained."""
    assignments: Tuple[ClusteredReview, ...]
    k: int
    strategy: ClusteringStrategy
    theme_names: Dict[int, str] = field(default_factory=dict)

    @property
    def cluster_sizes(self) -> Dict[int, int]:
        sizes: Dict[int, int] = {}
        for item in self.assignments:
            sizes[item.cluster_id] = sizes.get(item.cluster_id, 0) + 1
        return sizes


@dataclass(frozen=True)
class Cluster:
    """A group of negative reviews judged to share a topic."""
    cluster_id: int
    reviews: Tuple[SentimentedReview, ...]
    label: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.reviews)

    @property
    def texts(self) -> List[str]:
        return [r.text for r in self.reviews]


@dataclass(frozen=True)
class ThemeData:
    """Category-label based theme with its ranking score."""
    topic: str
    mentions: int
    negative_ratio: float
    recent_trend: float
    score: float
    reviews: Tuple[SentimentedReview, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "mentions": self.mentions,
            "negativeRatio": round(self.negative_ratio, 3),
            "recentTrend": round(self.recent_trend, 3),
            "score": round(self.score, 3),
        }


@dataclass(frozen=True)
class InsightMetrics:
    mentions: int
    share: float
    negative_ratio: float


@dataclass(frozen=True)
class Insight:
    """One scored, titled, actioned unit of output derived from a cluster."""
    title: str
    why_it_matters: str
    metrics: InsightMetrics
    representative_quote: str
    suggested_action: str
    impact: Tier
    confidence: Tier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "why_it_matters": self.why_it_matters,
            "metrics": {
                "mentions": self.metrics.mentions,
                "share": round(self.metrics.share, 3),
                "negative_ratio": round(self.metrics.negative_ratio, 3),
            },
            "representative_quote": self.representative_quote,
            "suggested_action": self.suggested_action,
            "impact": self.impact.value,
            "confidence": self.confidence.value,
        }


@dataclass(frozen=True)
class LoveHateSummary:
    love: List[str]
    hate: List[str]


@dataclass(frozen=True)
class TrendPoint:
    """Month bucket of the rating trend."""
    month: str              # "YYYY-MM"
    avg_rating: float
    positive: int
    negative: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month,
            "avgRating": self.avg_rating,
            "positive": self.positive,
            "negative": self.negative,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Complete pipeline output consumed by the presentation layer."""
    app_name: str
    store: str
    average_rating: float
    total_reviews: int
    positive_percentage: float
    negative_percentage: float
    positive_categories: List[str]
    negative_categories: List[str]
    top_negative_reviews: List[str]
    trend: List[TrendPoint]
    summary: str
    themes: List[ThemeData]
    insights: List[Insight]
    what_users_love: List[str]
    what_users_hate: List[str]

    @property
    def has_actionable_insights(self) -> bool:
        return any(i.impact is Tier.HIGH for i in self.insights)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "appName": self.app_name,
            "store": self.store,
            "averageRating": self.average_rating,
            "totalReviews": self.total_reviews,
            "positiveCategories": list(self.positive_categories),
            "negativeCategories": list(self.negative_categories),
            "topNegativeReviews": list(self.top_negative_reviews),
            "positivePercentage": self.positive_percentage,
            "negativePercentage": self.negative_percentage,
            "trend": [t.to_dict() for t in self.trend],
            "summary": self.summary,
            "themes": [t.to_dict() for t in self.themes],
            "insights": [i.to_dict() for i in self.insights],
            "whatUsersLove": list(self.what_users_love),
            "whatUsersHate": list(self.what_users_hate),
        }
