"""
Review Insights Orchestrator Module
===================================

Orchestration layer for the analysis pipeline.

Components:
    - InsightPipeline: Runs one analysis request end to end
    - CLI: Command-line interface

Usage:
    from src.orchestrator import InsightPipeline

    result = await InsightPipeline(offline=True).run(reviews, app_name="My App")
"""

from .analysis_pipeline import (
    InsightPipeline,
    PipelineRun,
    PipelineStage,
    StageResult,
    StageStatus,
)

__all__ = [
    "InsightPipeline",
    "PipelineRun",
    "PipelineStage",
    "StageResult",
    "StageStatus",
]
