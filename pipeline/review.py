"""Human review of drafted tickets.

A ticket starts ``pending``. Reviewers may edit it (``edited``), approve it
or reject it. An approved ticket may have exactly one created tracker
ticket attached. Rejected tickets and approved tickets with a created
ticket accept no further actions.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from core.exceptions import ReviewError
from core.models import PRIORITIES, CreatedTicket, DraftedTicket, EditedDraft

OPEN_STATUSES = ("pending", "edited")
TICKET_PLATFORMS = ("linear", "jira", "github", "notion")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_open(ticket: DraftedTicket, action: str) -> None:
    if ticket.status not in OPEN_STATUSES:
        raise ReviewError(f"Cannot {action} ticket {ticket.id} in status '{ticket.status}'")


def _stamp(ticket: DraftedTicket, reviewer: str | None) -> None:
    now = _now()
    ticket.reviewed_at = now
    ticket.updated_at = now
    if reviewer:
        ticket.reviewed_by = reviewer


def is_terminal(ticket: DraftedTicket) -> bool:
    return ticket.status == "rejected" or (ticket.status == "approved" and ticket.created_ticket is not None)


def approve(ticket: DraftedTicket, reviewer: str | None = None) -> DraftedTicket:
    _require_open(ticket, "approve")
    ticket.status = "approved"
    _stamp(ticket, reviewer)
    return ticket


def reject(ticket: DraftedTicket, reason: str | None = None, reviewer: str | None = None) -> DraftedTicket:
    _require_open(ticket, "reject")
    ticket.status = "rejected"
    ticket.rejection_reason = reason
    _stamp(ticket, reviewer)
    return ticket


def edit(
    ticket: DraftedTicket,
    *,
    title: str,
    description: str,
    priority: str,
    labels: list[str],
    reviewer: str | None = None,
) -> DraftedTicket:
    _require_open(ticket, "edit")
    if priority not in PRIORITIES:
        raise ReviewError(f"Unknown priority: {priority}")
    if not title.strip():
        raise ReviewError("Edited title must not be empty")
    ticket.edited_draft = EditedDraft(title=title, description=description, priority=priority, labels=list(labels))
    ticket.status = "edited"
    _stamp(ticket, reviewer)
    return ticket


def attach_created_ticket(ticket: DraftedTicket, platform: str, ticket_id: str, ticket_url: str) -> DraftedTicket:
    if ticket.status != "approved":
        raise ReviewError(f"Ticket {ticket.id} must be approved before a tracker ticket is attached")
    if ticket.created_ticket is not None:
        raise ReviewError(f"Ticket {ticket.id} already has a created ticket")
    if platform not in TICKET_PLATFORMS:
        raise ReviewError(f"Unknown ticket platform: {platform}")
    ticket.created_ticket = CreatedTicket(platform=platform, ticket_id=ticket_id, ticket_url=ticket_url)
    ticket.updated_at = _now()
    return ticket


@dataclass
class ReviewFilters:
    status: str = "all"
    category: str = "all"
    priority: str = "all"
    source: str = "all"
    search: str | None = None
    start: datetime | None = None
    end: datetime | None = None


def _matches(ticket: DraftedTicket, filters: ReviewFilters) -> bool:
    item = ticket.feedback_item
    if filters.status != "all" and ticket.status != filters.status:
        return False
    if filters.category != "all" and ticket.classification.category != filters.category:
        return False
    if filters.priority != "all" and ticket.classification.priority != filters.priority:
        return False
    if filters.source != "all" and item.source != filters.source:
        return False
    if filters.start and ticket.created_at < filters.start:
        return False
    if filters.end and ticket.created_at > filters.end:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = " ".join(
            filter(None, [ticket.draft.title, ticket.draft.description, item.title, item.content])
        ).lower()
        if needle not in haystack:
            return False
    return True


def filter_tickets(tickets: Iterable[DraftedTicket], filters: ReviewFilters) -> list[DraftedTicket]:
    return [t for t in tickets if _matches(t, filters)]


def compute_queue_stats(tickets: Sequence[DraftedTicket]) -> dict[str, Any]:
    statuses = Counter(t.status for t in tickets)
    return {
        "total": len(tickets),
        "pending": statuses.get("pending", 0) + statuses.get("edited", 0),
        "approved": statuses.get("approved", 0),
        "rejected": statuses.get("rejected", 0),
        "by_category": dict(Counter(t.classification.category for t in tickets)),
        "by_priority": dict(Counter(t.classification.priority for t in tickets)),
        "by_source": dict(Counter(t.feedback_item.source for t in tickets)),
    }
