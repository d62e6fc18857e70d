from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from typing import Any

from core.models import ClassificationResult, FeedbackItem
from pipeline.clusterer import FeedbackCluster, cluster_feedback

Classified = tuple[FeedbackItem, ClassificationResult]

URGENT_PRIORITIES = ("urgent", "high")


def _tally(values) -> dict[str, int]:
    return dict(Counter(values))


def compute_stats(classified: Sequence[Classified]) -> dict[str, Any]:
    return {
        "total_found": len(classified),
        "by_category": _tally(c.category for _, c in classified),
        "by_priority": _tally(c.priority for _, c in classified),
        "by_sentiment": _tally(c.sentiment for _, c in classified),
        "by_source": _tally(item.source for item, _ in classified),
    }


def sentiment_score(positive: int, negative: int, total: int) -> int:
    """0 (all negative) to 100 (all positive); 0 when nothing was found."""
    if total <= 0:
        return 0
    score = round(((positive - negative) / total + 1) * 50)
    return max(0, min(100, score))


def compute_insights(
    classified: Sequence[Classified],
    stats: dict[str, Any],
    clusters: Sequence[FeedbackCluster] | None = None,
) -> dict[str, Any]:
    """Top issues are the themes of the leading urgent or high priority clusters."""
    total = stats["total_found"]
    by_sentiment = stats["by_sentiment"]
    by_category = stats["by_category"]

    urgent = [c for _, c in classified if c.priority in URGENT_PRIORITIES]
    if clusters is None:
        clusters = cluster_feedback(classified)
    top_issues = [c.theme for c in clusters if c.priority in URGENT_PRIORITIES][:3]

    score = sentiment_score(by_sentiment.get("positive", 0), by_sentiment.get("negative", 0), total)

    recommendations: list[str] = []
    if total == 0:
        recommendations.append("No feedback found. Try different search terms or check back later.")
    else:
        if urgent:
            recommendations.append(f"Address {len(urgent)} urgent/high priority items immediately")
        if by_category.get("bug", 0) > 0:
            recommendations.append(f"{by_category['bug']} bug reports need triage")
        if by_category.get("feature_request", 0) > 2:
            recommendations.append(
                f"{by_category['feature_request']} feature requests - consider adding to roadmap discussion"
            )
        if score < 40:
            recommendations.append("Overall sentiment is negative - prioritize addressing customer concerns")
        if not recommendations:
            recommendations.append("Feedback looks manageable. Review items and create tickets as needed.")

    return {
        "top_issues": top_issues,
        "urgent_items": len(urgent),
        "sentiment_score": score,
        "recommendations": recommendations,
    }
