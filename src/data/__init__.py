"""
Review Insights Data Module
===========================

Configuration and review-source normalization.

This module provides:
    - Settings: Environment-driven configuration (python-dotenv)
    - load_reviews / normalize_reviews: JSON/CSV and raw-record loading

Quick Start:
    from src.data import load_reviews

    reviews = load_reviews("exports/reviews.json")

Configuration:
    Set environment variables or create a .env file.
    See .env.example for all available options.
"""

from .config import settings, get_settings, Settings
from .review_loader import load_reviews, normalize_review, normalize_reviews

__all__ = [
    # Configuration
    "settings",
    "get_settings",
    "Settings",
    # Review source
    "load_reviews",
    "normalize_review",
    "normalize_reviews",
]
