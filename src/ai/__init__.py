"""
Review Insights AI Module
=========================

Text-generation oracle access:
- LLM clients (OpenAI, Anthropic) with JSON output
- Category and love/hate extraction from reviews
"""

from .llm_client import LLMClient, LLMError, get_llm_client
from .review_analyzer import ReviewAnalyzer

__all__ = [
    "LLMClient",
    "LLMError",
    "get_llm_client",
    "ReviewAnalyzer",
]
