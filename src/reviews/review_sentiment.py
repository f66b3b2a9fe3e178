"""
Rating-based sentiment classification.

    rating >= 4 -> positive
    rating <= 2 -> negative
    otherwise   -> neutral

Out-of-range ratings follow the same thresholds.
"""

from typing import Dict, Iterable, Tuple

from .review_models import Review, Sentiment, SentimentedReview

POSITIVE_MIN_RATING = 4
NEGATIVE_MAX_RATING = 2


def classify_sentiment(rating: float) -> Sentiment:
    if rating >= POSITIVE_MIN_RATING:
        return Sentiment.POSITIVE
    if rating <= NEGATIVE_MAX_RATING:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


def tag_review(review: Review) -> SentimentedReview:
    return SentimentedReview(
        text=review.text,
        rating=review.rating,
        sentiment=classify_sentiment(review.rating),
        timestamp=review.timestamp,
    )


def tag_reviews(reviews: Iterable[Review]) -> Tuple[SentimentedReview, ...]:
    """Tag every review, preserving order."""
    return tuple(tag_review(r) for r in reviews)


def sentiment_counts(reviews: Iterable[SentimentedReview]) -> Dict[str, int]:
    counts = {s.value: 0 for s in Sentiment}
    for r in reviews:
        counts[r.sentiment.value] += 1
    return counts
