"""
Review Source Normalization
===========================

Turns raw store records (scraper output, exported JSON/CSV) into Review values.

Accepted field aliases:
    text:      "text", "comment", "body"
    rating:    "rating", "score"
    timestamp: "timestamp", "date"  (datetime, ISO-8601 string, epoch s or ms)

Records without a usable rating are dropped; missing text becomes "".
"""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..reviews.review_models import Review

logger = logging.getLogger(__name__)

TEXT_KEYS = ("text", "comment", "body")
RATING_KEYS = ("rating", "score")
TIMESTAMP_KEYS = ("timestamp", "date")

# Epoch values above this are milliseconds
EPOCH_MS_THRESHOLD = 10 ** 11


def _first(raw: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_rating(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Timezone-aware UTC datetime, or None when the value cannot be read."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()
    if not text:
        return None
    if text.lstrip("-").isdigit():
        return parse_timestamp(int(text))

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        # English store format: "March 17, 2018"
        try:
            parsed = datetime.strptime(text, "%B %d, %Y")
        except ValueError:
            logger.debug(f"Unparseable review date '{text}'")
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def normalize_review(raw: Dict[str, Any]) -> Optional[Review]:
    """One raw record to a Review, or None when it has no usable rating."""
    rating = parse_rating(_first(raw, RATING_KEYS))
    if rating is None:
        return None

    text = _first(raw, TEXT_KEYS)
    return Review(
        text=str(text).strip() if text is not None else "",
        rating=rating,
        timestamp=parse_timestamp(_first(raw, TIMESTAMP_KEYS)),
    )


def normalize_reviews(records: Iterable[Dict[str, Any]]) -> List[Review]:
    reviews = []
    dropped = 0
    for raw in records:
        review = normalize_review(raw) if isinstance(raw, dict) else None
        if review is None:
            dropped += 1
            continue
        reviews.append(review)

    if dropped:
        logger.warning(f"Dropped {dropped} review records without a usable rating")
    return reviews


def load_reviews(path: Union[str, Path]) -> List[Review]:
    """
    Load reviews from a JSON or CSV file.

    JSON may be a list of records or an object with a "reviews" list.

    Raises:
        ValueError: If the file format or JSON layout is not supported
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".csv":
        with path.open(newline="", encoding="utf-8") as f:
            records = list(csv.DictReader(f))
    elif suffix == ".json":
        with path.open(encoding="utf-8") as f:
            payload = json.load(f)
        if isinstance(payload, dict):
            payload = payload.get("reviews")
        if not isinstance(payload, list):
            raise ValueError(f"{path}: expected a list of reviews or {{\"reviews\": [...]}}")
        records = payload
    else:
        raise ValueError(f"Unsupported review file type: {suffix or path.name}")

    reviews = normalize_reviews(records)
    logger.info(f"Loaded {len(reviews)} reviews from {path}")
    return reviews
