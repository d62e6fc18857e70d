from __future__ import annotations

from collections.abc import Mapping, Sequence

from core.models import ClassificationResult, DraftedTicket, FeedbackItem

PRIORITY_RANK = {"urgent": 4, "high": 3, "medium": 2, "low": 1}
UNCLASSIFIED_RANK = 0


def priority_rank(priority: str | None) -> int:
    return PRIORITY_RANK.get(priority or "", UNCLASSIFIED_RANK)


def _sort_key(item: FeedbackItem, priority: str | None) -> tuple[int, int, float]:
    return (
        -priority_rank(priority),
        -item.engagement_score,
        -item.created_at.timestamp(),
    )


def rank_items(
    items: Sequence[FeedbackItem],
    classifications: Mapping[str, ClassificationResult] | None = None,
) -> list[FeedbackItem]:
    """Most actionable first: priority, then engagement, then recency.

    ``classifications`` maps item id to its classification; unclassified
    items rank below ``low``. The sort is stable, so fully tied items keep
    their input order.
    """
    lookup = classifications or {}

    def key(item: FeedbackItem) -> tuple[int, int, float]:
        result = lookup.get(item.id)
        return _sort_key(item, result.priority if result else None)

    return sorted(items, key=key)


def rank_tickets(tickets: Sequence[DraftedTicket]) -> list[DraftedTicket]:
    return sorted(tickets, key=lambda t: _sort_key(t.feedback_item, t.classification.priority))
