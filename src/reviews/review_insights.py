"""
Insight Synthesizer
===================

Turns refined clusters into actionable insights:

    metrics (mentions, share, negative_ratio) -> impact / confidence tiers
    oracle text (title, why_it_matters, action) with deterministic fallbacks
    representative quote (verified oracle quote or Jaccard best match)

then enforces unique titles and actions, orders by impact -> confidence ->
mentions, and bounds the result set.

Usage:
    synthesizer = InsightSynthesizer(llm_client)
    insights = await synthesizer.synthesize(clusters, total_reviews)
"""

import re
import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Set

from .review_models import Cluster, Insight, InsightMetrics, Tier
from .review_signals import extract_top_keywords, keyword_occurrences
from ..ai.llm_client import LLMClient

logger = logging.getLogger(__name__)

MAX_INSIGHTS = 5
SAMPLE_SIZE = 20

GENERIC_TITLE = "User Feedback Theme"
DEFAULT_TITLE = "User Experience Issues"

# Keyword -> display label for derived titles
TITLE_LABELS: Dict[str, str] = {
    "crash": "App Crashes",
    "freeze": "App Freezing",
    "bug": "Bug Reports",
    "error": "Error Messages",
    "slow": "Slow Performance",
    "lag": "Performance Lag",
    "login": "Login Issues",
    "price": "Pricing Concerns",
    "feature": "Missing Features",
    "ui": "UI Problems",
    "support": "Support Issues",
    "ads": "Ad Complaints",
    "update": "Update Problems",
    "quality": "Quality Issues",
}

FALLBACK_QUOTE = "Users have reported issues with this aspect"


SYNTHESIS_SYSTEM = (
    "You are a product manager creating actionable insights from user feedback. "
    "Be specific and concrete."
)

SYNTHESIS_PROMPT = """You are a product manager analyzing app reviews.

{keyword_context}
{theme_context}
Here are {mentions} user reviews that discuss a similar theme (showing {shown}):

{reviews_text}

Analyze these reviews and provide:
1. A concise, descriptive title (2-4 words) that captures the specific issue or theme
2. A 1-2 sentence explanation of why this matters to the product
3. One SHORT, SPECIFIC, actionable improvement suggestion (max 15 words)
4. The single review above that best represents the theme, copied verbatim

Requirements:
- Title should be specific (e.g., "Login Crashes", "Slow Search Results", "Missing Filters")
- Avoid generic titles like "Performance Issues" or "User Experience Problems"
- Suggested action must be concrete (e.g., "Fix login crash in version 5.3 for Android 13 users")
- Focus on what users are actually saying, not assumptions

Return JSON in this exact format:
{{
  "title": "Brief Descriptive Title",
  "why_it_matters": "Why this issue matters",
  "suggested_action": "Specific action to take (max 15 words)",
  "representative_quote": "Verbatim review text"
}}

Example bad suggested_action: "Investigate and address user concerns about login\""""


# =============================================================================
# TIERS
# =============================================================================

def impact_tier(share: float, negative_ratio: float) -> Tier:
    """High is checked first, then Medium."""
    if share >= 0.15 and negative_ratio >= 0.7:
        return Tier.HIGH
    if share >= 0.08 or negative_ratio >= 0.75:
        return Tier.MEDIUM
    return Tier.LOW


def confidence_tier(mentions: int) -> Tier:
    if mentions >= 30:
        return Tier.HIGH
    if mentions >= 15:
        return Tier.MEDIUM
    return Tier.LOW


# =============================================================================
# DETERMINISTIC TEXT FALLBACKS
# =============================================================================

def derive_title(texts: Sequence[str]) -> str:
    """Title from the two most frequent issue keywords, e.g. "App Crashes & Login"."""
    keywords = extract_top_keywords(texts, 2)
    if not keywords:
        return DEFAULT_TITLE

    first = TITLE_LABELS.get(keywords[0], keywords[0].capitalize())
    if len(keywords) == 1:
        return first
    return f"{first} & {keywords[1].capitalize()}"


def is_generic_action(action: str) -> bool:
    lowered = action.lower()
    return (
        len(action) < 10
        or "investigate" in lowered
        or "address user concerns" in lowered
        or ("improve" in lowered and len(action) < 25)
    )


def _title_has(title: str, *keywords: str) -> bool:
    return any(keyword_occurrences(title, kw) for kw in keywords)


def derive_action(title: str, keywords: Sequence[str]) -> str:
    """Specific action mapped from title keywords."""
    t = title.lower()

    if _title_has(t, "crash", "freeze", "bug"):
        return "Fix crash/freeze bugs affecting users in latest version"
    if _title_has(t, "slow", "performance", "lag"):
        return "Optimize performance and reduce loading times for better UX"
    if _title_has(t, "login", "account", "password"):
        return "Improve login flow and fix authentication issues"
    if _title_has(t, "ad") and _title_has(t, "complaint", "spam"):
        return "Reduce ad frequency and improve ad placement for free users"
    if _title_has(t, "price", "pricing", "cost", "subscription"):
        return "Review pricing structure and communicate value more clearly"
    if _title_has(t, "feature", "missing"):
        return "Prioritize adding most-requested features from user feedback"
    if _title_has(t, "ui", "design", "interface"):
        return "Simplify UI/UX and improve navigation based on user feedback"
    if _title_has(t, "support", "help", "customer"):
        return "Improve customer support response time and quality"
    if _title_has(t, "update") and "change" in keywords:
        return "Restore user-friendly features removed in recent updates"

    if keywords:
        return f"Address {keywords[0]}-related issues mentioned by users"
    return f"Fix reported issues with {t}"


# =============================================================================
# REPRESENTATIVE QUOTE
# =============================================================================

_TOKEN_SPLIT = re.compile(r"\W+")


def text_tokens(text: str) -> Set[str]:
    return {t for t in _TOKEN_SPLIT.split(text.lower()) if len(t) > 2}


def text_similarity(text1: str, text2: str) -> float:
    """Jaccard index over lowercase tokens longer than 2 characters."""
    tokens1 = text_tokens(text1)
    tokens2 = text_tokens(text2)
    if not tokens1 or not tokens2:
        return 0.0
    return len(tokens1 & tokens2) / len(tokens1 | tokens2)


def select_representative_quote(reviews: Sequence[str], summary: str) -> str:
    """Review most similar to the summary; ties keep the first."""
    if not reviews:
        return ""
    if len(reviews) == 1:
        return reviews[0]

    best_quote = reviews[0]
    best_score = 0.0
    for review in reviews:
        score = text_similarity(review, summary)
        if score > best_score:
            best_score = score
            best_quote = review
    return best_quote


def match_oracle_quote(quote: Any, sample: Sequence[str], min_length: int = 10) -> Optional[str]:
    """
    Sample review backing an oracle quote.

    The quote (stripped of surrounding quotes and trailing ellipsis) must
    occur verbatim inside a sample review or be a prefix of one. Returns the
    full review text, or None when the quote cannot be verified.
    """
    if not isinstance(quote, str):
        return None
    needle = quote.strip().strip('"“”').strip()
    for suffix in ("...", "…"):
        if needle.endswith(suffix):
            needle = needle[: -len(suffix)].rstrip()
    if len(needle) < min_length:
        return None

    for text in sample:
        if text.startswith(needle) or needle in text:
            return text
    return None


# =============================================================================
# POST-PROCESSING
# =============================================================================

@dataclass
class _UniquenessLedger:
    """Titles and actions already used in one result set."""
    seen_titles: Set[str] = field(default_factory=set)
    seen_actions: Set[str] = field(default_factory=set)

    def unique_title(self, title: str) -> str:
        candidate = title
        attempt = 0
        while candidate in self.seen_titles:
            attempt += 1
            rotation = [
                f"{title} Issues",
                f"{title} Problems",
                f"Related to {title}",
                f"{title} (Part {attempt + 1})",
            ]
            candidate = rotation[(attempt - 1) % len(rotation)]
        self.seen_titles.add(candidate)
        return candidate

    def unique_action(self, action: str, title: str) -> str:
        candidate = action
        attempt = 0
        while candidate in self.seen_actions:
            attempt += 1
            rotation = [
                f"{action} (focus: {title})",
                f"{action} (priority {attempt + 1})",
            ]
            candidate = rotation[(attempt - 1) % len(rotation)]
        self.seen_actions.add(candidate)
        return candidate


def sort_insights(insights: Sequence[Insight]) -> List[Insight]:
    """Stable sort: impact, then confidence, then mentions (all descending)."""
    return sorted(
        insights,
        key=lambda i: (-i.impact.rank, -i.confidence.rank, -i.metrics.mentions),
    )


def finalize_insights(insights: Sequence[Insight], max_insights: int = MAX_INSIGHTS) -> List[Insight]:
    """
    Order, bound and de-duplicate a result set.

    Titles are made unique first (in ranking order), then actions.
    """
    ranked = sort_insights(insights)[:max_insights]

    ledger = _UniquenessLedger()
    titled = [replace(i, title=ledger.unique_title(i.title)) for i in ranked]
    return [
        replace(i, suggested_action=ledger.unique_action(i.suggested_action, i.title))
        for i in titled
    ]


def fallback_insights(
    negative_texts: Sequence[str],
    negative_categories: Sequence[str],
    max_insights: int = MAX_INSIGHTS,
) -> List[Insight]:
    """
    Insights from category labels with conservative placeholder metrics.

    Used when clustering itself failed upstream.
    """
    categories = [c for c in negative_categories if c and c.strip()]
    if not categories:
        return []

    mentions = len(negative_texts) // len(categories)
    insights = []
    for index, category in enumerate(categories[:2]):
        insights.append(Insight(
            title=f"Address {category} issues",
            why_it_matters=f"{category} is a major pain point mentioned in user reviews",
            metrics=InsightMetrics(mentions=mentions, share=0.1, negative_ratio=0.8),
            representative_quote=negative_texts[index] if index < len(negative_texts) else FALLBACK_QUOTE,
            suggested_action=f"Investigate and improve {category.lower()}",
            impact=Tier.MEDIUM,
            confidence=Tier.LOW,
        ))

    logger.info(f"Generated {len(insights)} fallback insights from categories")
    return finalize_insights(insights, max_insights)


# =============================================================================
# SYNTHESIZER
# =============================================================================

class InsightSynthesizer:
    """
    Builds one insight per cluster.

    With no oracle configured every text field comes from the deterministic
    fallbacks. With an oracle configured, a failed call skips that cluster
    only; the others are unaffected.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        sample_size: int = SAMPLE_SIZE,
        max_insights: int = MAX_INSIGHTS,
        max_concurrency: int = 4,
        max_tokens: int = 300,
    ):
        self.llm_client = llm_client
        self.sample_size = sample_size
        self.max_insights = max_insights
        self.max_concurrency = max_concurrency
        self.max_tokens = max_tokens

    def _build_prompt(self, cluster: Cluster, sample: List[str], keywords: List[str]) -> str:
        keyword_context = f'Top keywords: "{", ".join(keywords)}"' if keywords else ""
        theme_context = f"Suggested theme: {cluster.label}\n" if cluster.label else ""
        return SYNTHESIS_PROMPT.format(
            keyword_context=keyword_context,
            theme_context=theme_context,
            mentions=cluster.size,
            shown=len(sample),
            reviews_text="\n".join(f'{i}. "{text}"' for i, text in enumerate(sample, 1)),
        )

    async def _ask_oracle(self, cluster: Cluster, sample: List[str], keywords: List[str]) -> Dict[str, Any]:
        if self.llm_client is None:
            return {}
        payload = await self.llm_client.generate_json(
            prompt=self._build_prompt(cluster, sample, keywords),
            system=SYNTHESIS_SYSTEM,
            max_tokens=self.max_tokens,
        )
        return payload if isinstance(payload, dict) else {}

    async def synthesize_cluster(self, cluster: Cluster, total_reviews: int) -> Optional[Insight]:
        """One insight for a cluster, or None when the cluster is empty or the oracle failed."""
        if cluster.size == 0:
            return None

        mentions = cluster.size
        share = mentions / total_reviews if total_reviews > 0 else 0.0
        negative_ratio = sum(1 for r in cluster.reviews if r.is_negative) / mentions

        sample = cluster.texts[: self.sample_size]
        keywords = extract_top_keywords(sample, 3)

        try:
            result = await self._ask_oracle(cluster, sample, keywords)
        except Exception as e:
            logger.error(
                f"Insight generation failed for cluster {cluster.cluster_id}: {e}",
                extra={"cluster_id": cluster.cluster_id},
            )
            return None

        title = result.get("title")
        title = title.strip() if isinstance(title, str) else ""
        if not title or title == GENERIC_TITLE or len(title) < 3:
            title = derive_title(sample)

        action = result.get("suggested_action")
        action = action.strip() if isinstance(action, str) else ""
        if is_generic_action(action):
            action = derive_action(title, extract_top_keywords(sample, 2))

        why = result.get("why_it_matters")
        why = why.strip() if isinstance(why, str) else ""

        quote = match_oracle_quote(result.get("representative_quote"), sample)
        if quote is None:
            quote = select_representative_quote(sample, f"{title}. {why}")

        logger.debug(
            f"Cluster {cluster.cluster_id}: '{title}' from {mentions} reviews",
            extra={"cluster_id": cluster.cluster_id},
        )

        return Insight(
            title=title,
            why_it_matters=why or f"This issue affects {mentions} reviews ({share * 100:.1f}% of total)",
            metrics=InsightMetrics(mentions=mentions, share=share, negative_ratio=negative_ratio),
            representative_quote=quote,
            suggested_action=action,
            impact=impact_tier(share, negative_ratio),
            confidence=confidence_tier(mentions),
        )

    async def synthesize(self, clusters: Sequence[Cluster], total_reviews: int) -> List[Insight]:
        """
        Synthesize all clusters concurrently, then finalize.

        Returns:
            At most max_insights insights with unique titles and actions.
        """
        if not clusters:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def synthesize_with_limit(cluster: Cluster) -> Optional[Insight]:
            async with semaphore:
                return await self.synthesize_cluster(cluster, total_reviews)

        logger.info(f"Generating insights for {len(clusters)} clusters")
        results = await asyncio.gather(*(synthesize_with_limit(c) for c in clusters))
        insights = [i for i in results if i is not None]

        skipped = len(clusters) - len(insights)
        if skipped:
            logger.warning(f"{skipped} of {len(clusters)} clusters produced no insight")

        final = finalize_insights(insights, self.max_insights)
        logger.info(f"Generated {len(final)} insights with unique titles")
        return final
