"""
Review Insights API Models
==========================

Pydantic models for API request/response serialization.
Response field names match AnalysisResult.to_dict().
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Union
from enum import Enum


class TierEnum(str, Enum):
    """Impact / confidence tier."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


# ============================================================================
# REQUEST
# ============================================================================

class ReviewInput(BaseModel):
    """One already-normalised review."""
    text: str = ""
    rating: Optional[float] = None
    # ISO-8601 string or epoch seconds/milliseconds
    timestamp: Optional[Union[float, str]] = None


class AnalyzeRequest(BaseModel):
    """Analysis request body."""
    app_name: str = Field("", alias="appName")
    store: str = ""
    reviews: List[ReviewInput] = Field(default_factory=list)
    offline: bool = False

    class Config:
        populate_by_name = True


# ============================================================================
# RESPONSE
# ============================================================================

class InsightMetricsModel(BaseModel):
    mentions: int
    share: float
    negative_ratio: float


class InsightModel(BaseModel):
    """Actionable insight derived from a cluster of negative reviews."""
    title: str
    why_it_matters: str
    metrics: InsightMetricsModel
    representative_quote: str
    suggested_action: str
    impact: TierEnum
    confidence: TierEnum


class ThemeModel(BaseModel):
    topic: str
    mentions: int
    negativeRatio: float
    recentTrend: float
    score: float


class TrendPointModel(BaseModel):
    month: str
    avgRating: float
    positive: int
    negative: int


class AnalysisResponse(BaseModel):
    """Full analysis output."""
    appName: str
    store: str
    averageRating: float
    totalReviews: int
    positiveCategories: List[str]
    negativeCategories: List[str]
    topNegativeReviews: List[str]
    positivePercentage: float
    negativePercentage: float
    trend: List[TrendPointModel]
    summary: str
    themes: List[ThemeModel]
    insights: List[InsightModel]
    whatUsersLove: List[str]
    whatUsersHate: List[str]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    llm: str
