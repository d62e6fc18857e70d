from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Literal

Source = Literal["reddit", "twitter", "slack", "support", "call", "file"]
Category = Literal["bug", "feature_request", "praise", "question", "complaint", "other"]
Priority = Literal["low", "medium", "high", "urgent"]
Sentiment = Literal["positive", "negative", "neutral"]
CustomerSegment = Literal["enterprise", "mid-market", "smb", "unknown"]
ReviewStatus = Literal["pending", "approved", "rejected", "edited"]
TicketPlatform = Literal["linear", "jira", "github", "notion"]

SOURCES: tuple[str, ...] = ("reddit", "twitter", "slack", "support", "call", "file")
CATEGORIES: tuple[str, ...] = ("bug", "feature_request", "praise", "question", "complaint", "other")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")
SENTIMENTS: tuple[str, ...] = ("positive", "negative", "neutral")
SEGMENTS: tuple[str, ...] = ("enterprise", "mid-market", "smb", "unknown")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class FeedbackItem:
    """A single piece of customer feedback normalised from any source."""

    id: str
    source: str
    source_id: str
    source_url: str
    content: str
    author: str
    created_at: datetime
    fetched_at: datetime
    engagement_score: int = 0
    title: str | None = None
    author_handle: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "source_id": self.source_id,
            "source_url": self.source_url,
            "title": self.title,
            "content": self.content,
            "author": self.author,
            "author_handle": self.author_handle,
            "created_at": _iso(self.created_at),
            "fetched_at": _iso(self.fetched_at),
            "engagement_score": self.engagement_score,
            "metadata": dict(self.metadata),
        }


@dataclass
class ClassificationResult:
    category: str
    priority: str
    sentiment: str
    confidence: int
    customer_segment: str = "unknown"
    priority_reasons: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    duplicate_of: str | None = None
    duplicate_confidence: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TicketDraft:
    title: str
    description: str
    suggested_labels: list[str]
    suggested_priority: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EditedDraft:
    title: str
    description: str
    priority: str
    labels: list[str]


@dataclass
class CreatedTicket:
    platform: str
    ticket_id: str
    ticket_url: str


@dataclass
class DraftedTicket:
    """A ticket drafted from one classified feedback item, awaiting review."""

    id: str
    feedback_item: FeedbackItem
    classification: ClassificationResult
    draft: TicketDraft
    created_at: datetime
    updated_at: datetime
    status: str = "pending"
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    edited_draft: EditedDraft | None = None
    rejection_reason: str | None = None
    created_ticket: CreatedTicket | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "feedback_item": self.feedback_item.to_dict(),
            "classification": self.classification.to_dict(),
            "draft": self.draft.to_dict(),
            "status": self.status,
            "reviewed_at": _iso(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
            "edited_draft": asdict(self.edited_draft) if self.edited_draft else None,
            "rejection_reason": self.rejection_reason,
            "created_ticket": asdict(self.created_ticket) if self.created_ticket else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class SourceSearchResult:
    """Raw records returned by one source adapter call."""

    source: str
    items: list[dict[str, Any]]
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedFeedback:
    id: str
    content: str
    source: str
    author: str | None = None
    date: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParseResult:
    """Outcome of parsing one uploaded file."""

    success: bool
    items: list[ParsedFeedback]
    file_name: str
    file_type: str
    total_rows: int
    error: str | None = None
