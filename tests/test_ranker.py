from __future__ import annotations

from conftest import make_classification, make_item
from core.models import TicketDraft
from pipeline.drafter import create_drafted_ticket
from pipeline.ranker import priority_rank, rank_items, rank_tickets


def test_priority_rank_order():
    assert priority_rank("urgent") > priority_rank("high") > priority_rank("medium") > priority_rank("low")
    assert priority_rank(None) < priority_rank("low")
    assert priority_rank("bogus") == priority_rank(None)


def test_unclassified_items_rank_by_engagement_then_recency():
    quiet = make_item("1", engagement=5, created_offset=60)
    loud = make_item("2", engagement=80)
    newer = make_item("3", engagement=5, created_offset=120)

    assert rank_items([quiet, loud, newer]) == [loud, newer, quiet]


def test_priority_outranks_engagement():
    viral = make_item("1", engagement=99)
    urgent = make_item("2", engagement=1)
    classifications = {
        viral.id: make_classification("low"),
        urgent.id: make_classification("urgent"),
    }

    assert rank_items([viral, urgent], classifications) == [urgent, viral]


def test_classified_items_precede_unclassified():
    unclassified = make_item("1", engagement=100)
    low = make_item("2", engagement=0)

    assert rank_items([unclassified, low], {low.id: make_classification("low")}) == [low, unclassified]


def test_sort_is_stable_for_full_ties():
    items = [make_item(str(n)) for n in range(5)]

    assert rank_items(items) == items
    assert rank_items(list(reversed(items))) == list(reversed(items))


def test_rank_tickets_uses_classification_priority():
    draft = TicketDraft(title="t", description="d", suggested_labels=[], suggested_priority="low")
    medium = create_drafted_ticket(make_item("1", engagement=90), make_classification("medium"), draft)
    high = create_drafted_ticket(make_item("2", engagement=10), make_classification("high"), draft)

    assert rank_tickets([medium, high]) == [high, medium]
