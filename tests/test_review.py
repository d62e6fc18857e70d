from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import BASE_TIME, make_classification, make_item
from core.exceptions import ReviewError
from core.models import TicketDraft
from pipeline.drafter import create_drafted_ticket
from pipeline.review import (
    ReviewFilters,
    approve,
    attach_created_ticket,
    compute_queue_stats,
    edit,
    filter_tickets,
    is_terminal,
    reject,
)


def _ticket(source_id: str = "1", priority: str = "medium", category: str = "bug", **item_overrides):
    item = make_item(source_id, **item_overrides)
    draft = TicketDraft(
        title=f"Fix: issue {source_id}",
        description="details",
        suggested_labels=["bug"],
        suggested_priority=priority,
    )
    return create_drafted_ticket(item, make_classification(priority, category), draft)


def test_new_ticket_is_pending():
    ticket = _ticket()

    assert ticket.status == "pending"
    assert ticket.id.startswith("draft_")
    assert not is_terminal(ticket)


def test_edit_then_approve():
    ticket = _ticket()

    edit(ticket, title="Fix: export", description="new", priority="high", labels=["bug", "billing"], reviewer="pm")
    assert ticket.status == "edited"
    assert ticket.edited_draft.priority == "high"
    assert ticket.reviewed_by == "pm"

    approve(ticket)
    assert ticket.status == "approved"
    assert ticket.reviewed_at is not None


def test_edit_rejects_unknown_priority():
    with pytest.raises(ReviewError):
        edit(_ticket(), title="t", description="d", priority="critical", labels=[])


def test_edit_rejects_blank_title():
    with pytest.raises(ReviewError):
        edit(_ticket(), title="  ", description="d", priority="low", labels=[])


def test_rejected_ticket_is_terminal():
    ticket = reject(_ticket(), reason="not actionable")

    assert ticket.rejection_reason == "not actionable"
    assert is_terminal(ticket)
    with pytest.raises(ReviewError):
        approve(ticket)
    with pytest.raises(ReviewError):
        edit(ticket, title="t", description="d", priority="low", labels=[])


def test_created_ticket_requires_approval_and_is_attached_once():
    ticket = _ticket()
    with pytest.raises(ReviewError):
        attach_created_ticket(ticket, "linear", "LIN-1", "https://linear.app/x/LIN-1")

    approve(ticket)
    attach_created_ticket(ticket, "linear", "LIN-1", "https://linear.app/x/LIN-1")

    assert ticket.created_ticket.ticket_id == "LIN-1"
    assert is_terminal(ticket)
    with pytest.raises(ReviewError):
        attach_created_ticket(ticket, "jira", "J-2", "https://jira.example/J-2")


def test_attach_rejects_unknown_platform():
    ticket = approve(_ticket())

    with pytest.raises(ReviewError):
        attach_created_ticket(ticket, "trello", "1", "https://trello.com/1")


def test_filter_tickets():
    tickets = [
        _ticket("1", "high", "bug"),
        _ticket("2", "low", "praise", source="twitter", content="Love the new editor"),
        _ticket("3", "high", "feature_request"),
    ]
    approve(tickets[2])

    assert filter_tickets(tickets, ReviewFilters(priority="high")) == [tickets[0], tickets[2]]
    assert filter_tickets(tickets, ReviewFilters(status="approved")) == [tickets[2]]
    assert filter_tickets(tickets, ReviewFilters(source="twitter")) == [tickets[1]]
    assert filter_tickets(tickets, ReviewFilters(search="EDITOR")) == [tickets[1]]
    assert filter_tickets(tickets, ReviewFilters(end=BASE_TIME - timedelta(days=1))) == []


def test_compute_queue_stats_counts_edited_as_pending():
    tickets = [_ticket("1"), _ticket("2"), _ticket("3")]
    edit(tickets[0], title="t", description="d", priority="low", labels=[])
    reject(tickets[1])

    stats = compute_queue_stats(tickets)

    assert stats["total"] == 3
    assert stats["pending"] == 2
    assert stats["rejected"] == 1
    assert stats["approved"] == 0
    assert stats["by_source"] == {"reddit": 3}
