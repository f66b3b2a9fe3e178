"""
Review Insights Pipeline Orchestrator
=====================================

Runs one analysis request end to end:
1. Sentiment tagging
2. Aggregates (average rating, percentages, month trend, top negatives)
3. Categories and love/hate bullets
4. Theme ranking over category labels
5. Negative-review clustering -> refinement -> insight synthesis
6. Summary sentence

Features:
    - Request-scoped (no state shared between runs)
    - Observable (per-stage timings, counts and strategy logged)
    - Resilient (oracle failures degrade to deterministic fallbacks, never raise)

Usage:
    from src.orchestrator.analysis_pipeline import InsightPipeline

    pipeline = InsightPipeline(offline=True)
    result = await pipeline.run(reviews, app_name="My App", store="google")
"""

import uuid
import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..ai.llm_client import LLMClient, get_llm_client
from ..ai.review_analyzer import ReviewAnalyzer
from ..data.config import Settings, get_settings
from ..reviews.review_clustering import TopicClusteringEngine
from ..reviews.review_insights import InsightSynthesizer, fallback_insights
from ..reviews.review_models import AnalysisResult, Insight, Review, Sentiment, SentimentedReview, TrendPoint
from ..reviews.review_ranking import rank_themes
from ..reviews.review_refinement import ClusterRefiner
from ..reviews.review_sentiment import sentiment_counts, tag_reviews

logger = logging.getLogger(__name__)

TREND_MONTHS = 6
TOP_NEGATIVE_COUNT = 5
INSUFFICIENT_DATA_SUMMARY = "Insufficient data to summarize reviews."


class PipelineStage(Enum):
    """Pipeline execution stages."""
    SENTIMENT = "sentiment"
    AGGREGATES = "aggregates"
    CATEGORIES = "categories"
    THEMES = "themes"
    CLUSTERING = "clustering"
    REFINEMENT = "refinement"
    SYNTHESIS = "synthesis"
    SUMMARY = "summary"


class StageStatus(Enum):
    COMPLETED = "completed"
    DEGRADED = "degraded"     # finished on a fallback path
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Result of a single pipeline stage."""
    stage: PipelineStage
    started_at: datetime
    status: StageStatus = StageStatus.COMPLETED
    completed_at: Optional[datetime] = None
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


@dataclass
class PipelineRun:
    """Everything one run produced: stage records plus the analysis."""
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    stages: Dict[PipelineStage, StageResult] = field(default_factory=dict)
    result: Optional[AnalysisResult] = None
    llm_cost: float = 0.0

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def get_summary(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "duration_seconds": self.duration_seconds,
            "stages": {
                stage.value: {
                    "status": r.status.value,
                    "duration_seconds": r.duration_seconds,
                    "metrics": r.metrics,
                }
                for stage, r in self.stages.items()
            },
            "insights": len(self.result.insights) if self.result else 0,
            "llm_cost_usd": round(self.llm_cost, 6),
        }


# =============================================================================
# AGGREGATES
# =============================================================================

def average_rating(reviews: Sequence[SentimentedReview]) -> float:
    if not reviews:
        return 0.0
    return round(sum(r.rating for r in reviews) / len(reviews), 1)


def calculate_trend(reviews: Sequence[SentimentedReview], months: int = TREND_MONTHS) -> List[TrendPoint]:
    """Monthly average rating for the most recent months that have dated reviews."""
    buckets: Dict[str, List[SentimentedReview]] = {}
    for review in reviews:
        if review.timestamp is None:
            continue
        buckets.setdefault(review.timestamp.strftime("%Y-%m"), []).append(review)

    trend = [
        TrendPoint(
            month=month,
            avg_rating=round(sum(r.rating for r in members) / len(members), 1),
            positive=sum(1 for r in members if r.sentiment is Sentiment.POSITIVE),
            negative=sum(1 for r in members if r.is_negative),
        )
        for month, members in sorted(buckets.items())
    ]
    return trend[-months:]


def top_negative_reviews(reviews: Sequence[SentimentedReview], limit: int = TOP_NEGATIVE_COUNT) -> List[str]:
    """Lowest-rated reviews (<= 2 stars) with more than 10 characters of text."""
    candidates = [r for r in reviews if r.rating <= 2 and len(r.text.strip()) > 10]
    candidates.sort(key=lambda r: r.rating)
    return [r.text for r in candidates[:limit]]


def build_summary(
    app_name: str,
    total_reviews: int,
    avg_rating: float,
    positive_percentage: float,
    negative_percentage: float,
    insights: Sequence[Insight],
) -> str:
    if total_reviews == 0:
        return INSUFFICIENT_DATA_SUMMARY

    summary = (
        f"{app_name or 'This app'} averages {avg_rating}/5 across {total_reviews} reviews, "
        f"with {positive_percentage}% positive and {negative_percentage}% negative feedback."
    )
    if insights:
        top = insights[0]
        summary += (
            f' The top issue is "{top.title}", raised in {top.metrics.mentions} '
            f"reviews ({top.impact.value} impact)."
        )
    return summary


def resolve_llm_client(settings: Settings) -> Optional[LLMClient]:
    """Oracle from settings, or None when disabled or no API key is set."""
    llm_cfg = settings.llm
    if not llm_cfg.enabled:
        return None
    try:
        return get_llm_client(
            provider=llm_cfg.provider or None,
            model=llm_cfg.model,
            timeout=llm_cfg.timeout_seconds,
        )
    except ValueError as e:
        logger.warning(f"{e}; running with deterministic fallbacks only")
        return None


# =============================================================================
# PIPELINE
# =============================================================================

class InsightPipeline:
    """
    Review analysis orchestrator.

    Args:
        llm_client: Oracle to use; resolved from settings when None.
        config: Settings (default: global settings).
        offline: Never call the oracle; every stage uses its fallback.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        config: Optional[Settings] = None,
        offline: bool = False,
    ):
        self.settings = config or get_settings()
        self.offline = offline
        self.llm_client = None if offline else (llm_client or resolve_llm_client(self.settings))

        insight_cfg = self.settings.insights
        llm_cfg = self.settings.llm

        self.analyzer = ReviewAnalyzer(self.llm_client)
        self.clustering = TopicClusteringEngine(
            self.llm_client,
            sample_size=insight_cfg.cluster_sample_size,
            max_tokens=llm_cfg.max_tokens,
        )
        self.refiner = ClusterRefiner(
            min_cluster_size=insight_cfg.refine_min_cluster_size,
            min_subcluster_size=insight_cfg.refine_min_subcluster_size,
        )
        self.synthesizer = InsightSynthesizer(
            self.llm_client,
            sample_size=insight_cfg.synthesis_sample_size,
            max_insights=insight_cfg.max_insights,
            max_concurrency=llm_cfg.max_concurrency,
        )

        logger.info(
            f"InsightPipeline initialized: oracle={getattr(self.llm_client, 'model', None) or 'none'}"
        )

    def _llm_cost(self) -> float:
        return self.llm_client.total_cost if self.llm_client is not None else 0.0

    @contextmanager
    def _stage(self, run: PipelineRun, stage: PipelineStage):
        result = StageResult(stage=stage, started_at=datetime.now(timezone.utc))
        run.stages[stage] = result
        try:
            yield result
        finally:
            result.completed_at = datetime.now(timezone.utc)
            logger.info(
                f"Stage {stage.value} {result.status.value} in {result.duration_seconds:.3f}s {result.metrics}",
                extra={"run_id": run.run_id, "stage": stage.value, "duration": result.duration_seconds},
            )

    # =========================================================================
    # MAIN ORCHESTRATION
    # =========================================================================

    async def execute(
        self,
        reviews: Sequence[Review],
        app_name: str = "",
        store: str = "",
        now: Optional[datetime] = None,
    ) -> PipelineRun:
        """Run every stage and return the run record with its AnalysisResult."""
        run = PipelineRun(run_id=str(uuid.uuid4()), started_at=datetime.now(timezone.utc))
        cost_before = self._llm_cost()
        logger.info(
            f"=== Starting analysis of {len(reviews)} reviews for {app_name or 'unnamed app'} ===",
            extra={"run_id": run.run_id},
        )

        with self._stage(run, PipelineStage.SENTIMENT) as stage:
            tagged = tag_reviews(reviews)
            counts = sentiment_counts(tagged)
            stage.metrics = dict(counts)

        total = len(tagged)
        with self._stage(run, PipelineStage.AGGREGATES) as stage:
            avg = average_rating(tagged)
            positive_pct = round(counts["positive"] / total * 100, 1) if total else 0.0
            negative_pct = round(counts["negative"] / total * 100, 1) if total else 0.0
            trend = calculate_trend(tagged)
            top_negatives = top_negative_reviews(tagged)
            stage.metrics = {"average_rating": avg, "trend_months": len(trend)}

        with self._stage(run, PipelineStage.CATEGORIES) as stage:
            (positive_categories, negative_categories), love_hate = await asyncio.gather(
                self.analyzer.categorize_reviews(tagged),
                self.analyzer.summarize_love_hate(tagged),
            )
            if self.llm_client is None:
                stage.status = StageStatus.DEGRADED
            stage.metrics = {"positive": len(positive_categories), "negative": len(negative_categories)}

        with self._stage(run, PipelineStage.THEMES) as stage:
            themes = rank_themes(
                tagged,
                positive_categories,
                negative_categories,
                now=now,
                recent_days=self.settings.insights.recent_days,
            )
            stage.metrics = {"themes": len(themes)}

        insights = await self._discover_insights(run, tagged, negative_categories)

        with self._stage(run, PipelineStage.SUMMARY):
            summary = build_summary(app_name, total, avg, positive_pct, negative_pct, insights)

        run.result = AnalysisResult(
            app_name=app_name,
            store=store,
            average_rating=avg,
            total_reviews=total,
            positive_percentage=positive_pct,
            negative_percentage=negative_pct,
            positive_categories=positive_categories,
            negative_categories=negative_categories,
            top_negative_reviews=top_negatives,
            trend=trend,
            summary=summary,
            themes=themes,
            insights=insights,
            what_users_love=love_hate.love,
            what_users_hate=love_hate.hate,
        )
        run.llm_cost = self._llm_cost() - cost_before
        run.completed_at = datetime.now(timezone.utc)

        logger.info(
            f"=== Analysis complete: {len(insights)} insights in {run.duration_seconds:.2f}s "
            f"(LLM cost ${run.llm_cost:.4f}) ===",
            extra={"run_id": run.run_id, "duration": run.duration_seconds},
        )
        return run

    async def run(
        self,
        reviews: Sequence[Review],
        app_name: str = "",
        store: str = "",
        now: Optional[datetime] = None,
    ) -> AnalysisResult:
        """Analyze reviews and return the output record."""
        return (await self.execute(reviews, app_name=app_name, store=store, now=now)).result

    async def _discover_insights(
        self,
        run: PipelineRun,
        tagged: Sequence[SentimentedReview],
        negative_categories: List[str],
    ) -> List[Insight]:
        negatives = [r for r in tagged if r.is_negative and r.text.strip()]
        negative_texts = [r.text for r in negatives]
        max_insights = self.settings.insights.max_insights

        with self._stage(run, PipelineStage.CLUSTERING) as stage:
            if not negatives:
                stage.status = StageStatus.SKIPPED
                clustering = None
            else:
                try:
                    clustering = await self.clustering.cluster_negative_reviews(
                        negatives,
                        use_tfidf_features=self.settings.insights.tfidf_fallback,
                    )
                except Exception as e:
                    logger.error(f"Clustering failed: {e}", extra={"run_id": run.run_id})
                    stage.status = StageStatus.DEGRADED
                    return fallback_insights(negative_texts, negative_categories, max_insights)
                stage.metrics = {"k": clustering.k, "strategy": clustering.strategy.value}
                logger.info(
                    f"Clustered {len(negatives)} negative reviews into {clustering.k} groups",
                    extra={"run_id": run.run_id, "strategy": clustering.strategy.value},
                )

        if clustering is None:
            return []

        with self._stage(run, PipelineStage.REFINEMENT) as stage:
            clusters = self.refiner.refine(clustering.assignments, clustering.theme_names)
            stage.metrics = {"clusters": len(clusters)}

        with self._stage(run, PipelineStage.SYNTHESIS) as stage:
            insights = await self.synthesizer.synthesize(clusters, len(tagged))
            if clusters and not insights:
                logger.warning(
                    "Every cluster synthesis failed, using category fallback insights",
                    extra={"run_id": run.run_id},
                )
                stage.status = StageStatus.DEGRADED
                insights = fallback_insights(negative_texts, negative_categories, max_insights)
            stage.metrics = {"insights": len(insights)}

        return insights


def run_sync(
    reviews: Sequence[Review],
    app_name: str = "",
    store: str = "",
    offline: bool = False,
    llm_client: Optional[LLMClient] = None,
) -> AnalysisResult:
    """Blocking helper for scripts and the CLI."""
    pipeline = InsightPipeline(llm_client=llm_client, offline=offline)
    return asyncio.run(pipeline.run(reviews, app_name=app_name, store=store))
