"""
Review Insights Engine
======================

Turns raw app-store reviews into ranked, actionable insights.

Modules:
    review_models     - Immutable values (Review, Cluster, Insight, AnalysisResult)
    review_sentiment  - Rating-based sentiment tagging
    review_signals    - Keyword lexicon and lexical theme matching
    review_clustering - Oracle / k-means / lexical clustering of negative reviews
    review_refinement - Keyword-driven splitting of mixed clusters
    review_ranking    - Category-label theme scoring
    review_insights   - Insight synthesis, uniqueness and ordering
"""

from .review_models import (
    AnalysisResult,
    Cluster,
    ClusteringResult,
    Insight,
    Review,
    Sentiment,
    SentimentedReview,
    ThemeData,
    Tier,
)
from .review_sentiment import classify_sentiment, tag_reviews
from .review_signals import LexicalThemeMatcher, THEME_LEXICON
from .review_clustering import TopicClusteringEngine
from .review_refinement import ClusterRefiner
from .review_ranking import rank_themes
from .review_insights import InsightSynthesizer
