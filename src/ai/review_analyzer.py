"""
Review Analyzer
===============

Oracle-backed text summaries of a review set:
- Praise / complaint categories (3-5 short labels per side)
- "What users love" / "What users hate" bullets (3 per side)

Every method has a fixed fallback; oracle failures are logged and never
propagated.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple

from .llm_client import LLMClient
from ..reviews.review_models import LoveHateSummary, Sentiment, SentimentedReview

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10

CATEGORY_SAMPLE = 50
CATEGORY_PROMPT_SAMPLE = 30
SUMMARY_SAMPLE = 200
SUMMARY_PROMPT_SAMPLE = 100

DEFAULT_POSITIVE_CATEGORIES = ["User Experience", "Features", "Design"]
DEFAULT_NEGATIVE_CATEGORIES = ["Performance", "Bugs", "Price"]

GENERIC_LOVE = ["Great user experience", "Intuitive design", "Reliable performance"]
GENERIC_HATE = ["Occasional bugs", "Price concerns", "Feature requests"]


CATEGORY_PROMPT = """Analyze these app reviews and extract the main categories/topics being discussed.

Positive reviews:
{positive_text}

Negative reviews:
{negative_text}

Return a JSON object with:
- "positive": Top 3-5 categories that users praise (e.g., "UI Design", "Performance", "Features")
- "negative": Top 3-5 categories that users criticize (e.g., "Bugs", "Ads", "Price")

Keep category names short (1-3 words). Focus on the most commonly mentioned topics.

Format:
{{
  "positive": ["Category 1", "Category 2", "Category 3"],
  "negative": ["Category 1", "Category 2", "Category 3"]
}}"""


SUMMARY_SYSTEM = "You are a product analyst summarizing user feedback."

SUMMARY_PROMPT = """Analyze the following user feedback and create concise bullet-point summaries.

Positive reviews ({positive_count} samples):
{positive_text}

Negative reviews ({negative_count} samples):
{negative_text}

Create exactly 3 bullet points for "What users love" and 3 for "What users hate".
Each bullet should be:
- Concise (10-15 words max)
- Specific and data-backed

Return as JSON:
{{
  "love": ["bullet 1", "bullet 2", "bullet 3"],
  "hate": ["bullet 1", "bullet 2", "bullet 3"]
}}"""


def _texts(reviews: Sequence[SentimentedReview], sentiment: Sentiment, limit: int) -> List[str]:
    """Texts longer than MIN_TEXT_LENGTH for one sentiment, in input order."""
    return [
        r.text for r in reviews
        if r.sentiment is sentiment and len(r.text.strip()) > MIN_TEXT_LENGTH
    ][:limit]


def _string_list(value: Any, max_items: int) -> List[str]:
    if not isinstance(value, list):
        return []
    items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return items[:max_items]


class ReviewAnalyzer:
    """
    Extracts categories and love/hate bullets.

    With no oracle configured, every method returns its fallback directly.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, max_tokens: int = 500):
        self.llm_client = llm_client
        self.max_tokens = max_tokens

    async def categorize_reviews(self, reviews: Sequence[SentimentedReview]) -> Tuple[List[str], List[str]]:
        """
        Praise and complaint categories.

        Returns:
            (positive_categories, negative_categories)
        """
        if self.llm_client is None:
            return list(DEFAULT_POSITIVE_CATEGORIES), list(DEFAULT_NEGATIVE_CATEGORIES)

        positive = _texts(reviews, Sentiment.POSITIVE, CATEGORY_SAMPLE)
        negative = _texts(reviews, Sentiment.NEGATIVE, CATEGORY_SAMPLE)

        prompt = CATEGORY_PROMPT.format(
            positive_text="\n".join(positive[:CATEGORY_PROMPT_SAMPLE]),
            negative_text="\n".join(negative[:CATEGORY_PROMPT_SAMPLE]),
        )

        try:
            result = await self.llm_client.generate_json(prompt=prompt, max_tokens=self.max_tokens)
        except Exception as e:
            logger.error(f"Category extraction failed: {e}")
            return list(DEFAULT_POSITIVE_CATEGORIES), list(DEFAULT_NEGATIVE_CATEGORIES)

        positive_categories = _string_list(result.get("positive"), 5) or list(DEFAULT_POSITIVE_CATEGORIES)
        negative_categories = _string_list(result.get("negative"), 5) or list(DEFAULT_NEGATIVE_CATEGORIES)

        logger.info(f"Categories: +{positive_categories} -{negative_categories}")
        return positive_categories, negative_categories

    async def summarize_love_hate(self, reviews: Sequence[SentimentedReview]) -> LoveHateSummary:
        """Three love and three hate bullets."""
        positive = _texts(reviews, Sentiment.POSITIVE, SUMMARY_SAMPLE)
        negative = _texts(reviews, Sentiment.NEGATIVE, SUMMARY_SAMPLE)

        if self.llm_client is None or (not positive and not negative):
            return LoveHateSummary(love=list(GENERIC_LOVE), hate=list(GENERIC_HATE))

        prompt = SUMMARY_PROMPT.format(
            positive_count=len(positive),
            positive_text="\n---\n".join(positive[:SUMMARY_PROMPT_SAMPLE]),
            negative_count=len(negative),
            negative_text="\n---\n".join(negative[:SUMMARY_PROMPT_SAMPLE]),
        )

        try:
            result = await self.llm_client.generate_json(
                prompt=prompt,
                system=SUMMARY_SYSTEM,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(f"Love/hate summary failed: {e}")
            return LoveHateSummary(love=list(GENERIC_LOVE), hate=list(GENERIC_HATE))

        # A side with no sample never takes oracle bullets
        love = _string_list(result.get("love"), 3) if positive else []
        hate = _string_list(result.get("hate"), 3) if negative else []

        return LoveHateSummary(
            love=love or list(GENERIC_LOVE),
            hate=hate or list(GENERIC_HATE),
        )
