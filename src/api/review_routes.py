"""
Review Insights API Routes
==========================

POST /api/reviews/analyze - run the insight pipeline on posted reviews.

Reviews must already be fetched; this service does not scrape app stores.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from .models import AnalyzeRequest, AnalysisResponse
from ..ai.llm_client import LLMClient
from ..data.config import get_settings
from ..data.review_loader import normalize_reviews
from ..orchestrator.analysis_pipeline import InsightPipeline, resolve_llm_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


def get_oracle() -> Optional[LLMClient]:
    """Oracle for one request (None = deterministic fallbacks)."""
    return resolve_llm_client(get_settings())


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze_reviews(
    request: AnalyzeRequest,
    oracle: Optional[LLMClient] = Depends(get_oracle),
):
    """
    Analyze a batch of reviews.

    Returns aggregates, categories, ranked themes, up to five actionable
    insights and love/hate bullets.
    """
    reviews = normalize_reviews(r.model_dump() for r in request.reviews)
    if not reviews:
        raise HTTPException(status_code=400, detail="No usable reviews (each review needs a rating)")

    offline = request.offline or oracle is None
    pipeline = InsightPipeline(llm_client=oracle, offline=offline)

    try:
        result = await pipeline.run(reviews, app_name=request.app_name, store=request.store)
    except Exception as e:
        logger.exception(f"Analysis failed for {request.app_name or 'unnamed app'}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(
        f"Analyzed {result.total_reviews} reviews for {request.app_name or 'unnamed app'}: "
        f"{len(result.insights)} insights"
    )
    return result.to_dict()
