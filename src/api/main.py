"""
Review Insights FastAPI Application
===================================

REST API for app-review actionable insights.

Endpoints:
    GET  /api/health           - Health check
    POST /api/reviews/analyze  - Analyze a batch of reviews

Usage:
    uvicorn src.api.main:app --reload --port 8000

    Or with CLI:
    python -m src.api.main
"""

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from .models import HealthResponse
from .review_routes import router as review_router
from ..data.config import get_settings
from ..orchestrator.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    log_cfg = get_settings().logging
    setup_logging(
        level=log_cfg.level,
        json_output=log_cfg.json_logs,
        log_file=log_cfg.log_file,
        fmt=log_cfg.format,
    )
    logger.info("Starting Review Insights API...")

    yield

    logger.info("Shutting down Review Insights API...")


app = FastAPI(
    title="Review Insights API",
    description="Actionable insights from app-store reviews",
    version=get_settings().app_version,
    lifespan=lifespan,
)

# In production, set CORS_ORIGINS env var (comma-separated)
_default_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
_extra_origins = os.getenv("CORS_ORIGINS", "")
if _extra_origins:
    _default_origins.extend([o.strip() for o in _extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=_default_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(review_router)


# ============================================================================
# HEALTH ENDPOINT
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Reports whether an LLM provider key is configured; the service stays
    healthy without one (deterministic fallbacks).
    """
    settings = get_settings()
    has_key = bool(os.getenv("OPENAI_API_KEY") or os.getenv("ANTHROPIC_API_KEY"))
    if not settings.llm.enabled:
        llm_status = "disabled"
    else:
        llm_status = "configured" if has_key else "not_configured"

    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        llm=llm_status,
    )


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_level="info",
    )
