"""Group classified feedback into themed clusters so one theme becomes one ticket.

Items are split by category first. Inside a category, an item seeds a theme
and pulls in every unassigned item sharing at least ``MIN_SHARED_KEYWORDS``
keywords with it; the theme is named after the first keywords of the group.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from core.models import SENTIMENTS, ClassificationResult, FeedbackItem, TicketDraft
from pipeline.classifier import extract_keywords
from pipeline.drafter import SOURCE_LABELS, TITLE_PREFIXES, truncate
from pipeline.ranker import priority_rank

Classified = tuple[FeedbackItem, ClassificationResult]

MIN_SHARED_KEYWORDS = 2
KEYWORD_LIMIT = 10
THEME_WORDS = 3
QUOTE_LIMIT = 5


@dataclass
class FeedbackCluster:
    id: str
    theme: str
    category: str
    priority: str
    sentiment: str
    summary: str
    items: list[Classified] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    suggested_ticket: TicketDraft | None = None

    @property
    def mention_count(self) -> int:
        return len(self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "theme": self.theme,
            "summary": self.summary,
            "category": self.category,
            "priority": self.priority,
            "sentiment": self.sentiment,
            "mention_count": self.mention_count,
            "sources": list(self.sources),
            "items": [
                {"item": item.to_dict(), "classification": result.to_dict()}
                for item, result in self.items
            ],
            "suggested_ticket": self.suggested_ticket.to_dict() if self.suggested_ticket else None,
        }


def _keywords(item: FeedbackItem) -> list[str]:
    return extract_keywords(f"{item.content} {item.title or ''}", limit=KEYWORD_LIMIT)


def group_by_theme(classified: Sequence[Classified]) -> dict[str, list[Classified]]:
    """Theme name -> members, in order of first appearance."""
    keywords = [_keywords(item) for item, _ in classified]
    themes: dict[str, list[Classified]] = {}
    assigned: set[int] = set()

    for i, current in enumerate(keywords):
        if i in assigned:
            continue
        similar = [
            j
            for j, other in enumerate(keywords)
            if j != i and j not in assigned and len(set(current) & set(other)) >= MIN_SHARED_KEYWORDS
        ]

        merged = list(current)
        for j in similar:
            merged += [k for k in keywords[j] if k not in merged]
        theme = " + ".join(merged[:THEME_WORDS]) or "General"

        members = themes.setdefault(theme, [])
        for j in (i, *similar):
            members.append(classified[j])
            assigned.add(j)

    return themes


def _overall_priority(members: Sequence[Classified]) -> str:
    return max((c.priority for _, c in members), key=priority_rank, default="low")


def _overall_sentiment(members: Sequence[Classified]) -> str:
    counts = {s: 0 for s in SENTIMENTS}
    for _, c in members:
        counts[c.sentiment] = counts.get(c.sentiment, 0) + 1
    return max(counts, key=counts.__getitem__)


def _summary(theme: str, members: Sequence[Classified]) -> str:
    if len(members) == 1:
        return members[0][0].content[:200]
    concerns = "; ".join(item.content[:50] for item, _ in members[:3])
    return f"{len(members)} users mentioned issues related to {theme}. Common concerns include: {concerns}..."


def cluster_ticket(theme: str, members: Sequence[Classified], category: str, priority: str) -> TicketDraft:
    count = len(members)
    prefix = TITLE_PREFIXES.get(category, "Review:")
    sources = list(dict.fromkeys(SOURCE_LABELS.get(item.source, item.source) for item, _ in members))
    negative = sum(1 for _, c in members if c.sentiment == "negative")

    lines = [
        "## Summary",
        f"{count} customer{'s' if count > 1 else ''} reported issues related to **{theme}**.",
        "",
        "## Customer Quotes",
    ]
    for n, (item, _) in enumerate(members[:QUOTE_LIMIT], start=1):
        lines.append(f'{n}. "{truncate(item.content, 150)}" - {SOURCE_LABELS.get(item.source, item.source)}')
    if count > QUOTE_LIMIT:
        lines += ["", f"... and {count - QUOTE_LIMIT} more"]
    lines += [
        "",
        "## Sources",
        ", ".join(sources),
        "",
        "## Analysis",
        f"- **Category:** {category}",
        f"- **Priority:** {priority}",
        f"- **Sentiment:** {'Mostly negative' if negative > count / 2 else 'Mixed'}",
        f"- **Total mentions:** {count}",
    ]

    return TicketDraft(
        title=f"{prefix} {theme.title()} ({count} mentions)",
        description="\n".join(lines),
        suggested_labels=[category.replace("_", "-"), priority, f"mentions-{count}"],
        suggested_priority=priority,
    )


def build_cluster(theme: str, members: list[Classified], category: str) -> FeedbackCluster:
    priority = _overall_priority(members)
    return FeedbackCluster(
        id=f"cluster_{uuid.uuid4().hex[:12]}",
        theme=theme,
        category=category,
        priority=priority,
        sentiment=_overall_sentiment(members),
        summary=_summary(theme, members),
        items=members,
        sources=list(dict.fromkeys(item.source for item, _ in members)),
        suggested_ticket=cluster_ticket(theme, members, category, priority),
    )


def cluster_feedback(classified: Sequence[Classified]) -> list[FeedbackCluster]:
    """Clusters ordered by priority, then by mention count (both descending)."""
    by_category: dict[str, list[Classified]] = {}
    for item, result in classified:
        by_category.setdefault(result.category, []).append((item, result))

    clusters = [
        build_cluster(theme, members, category)
        for category, in_category in by_category.items()
        for theme, members in group_by_theme(in_category).items()
    ]
    return sorted(clusters, key=lambda c: (-priority_rank(c.priority), -c.mention_count))
