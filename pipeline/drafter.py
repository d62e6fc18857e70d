from __future__ import annotations

import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from config.settings import settings
from core.exceptions import DraftError
from core.models import PRIORITIES, ClassificationResult, DraftedTicket, FeedbackItem, TicketDraft
from pipeline.classifier import describe_item

log = logging.getLogger(__name__)

TITLE_PREFIXES = {
    "bug": "Fix:",
    "feature_request": "Add:",
    "complaint": "Address:",
    "question": "Document:",
    "praise": "Note:",
    "other": "Review:",
}

SOURCE_LABELS = {
    "reddit": "Reddit",
    "twitter": "X/Twitter",
    "slack": "Slack",
    "support": "Support",
    "call": "Call",
    "file": "File upload",
}

_SENTENCE_END = re.compile(r"[.!?]")


def truncate(text: str, length: int) -> str:
    if len(text) <= length:
        return text
    return text[: length - 3].rstrip() + "..."


def _format_category(category: str) -> str:
    return category.replace("_", " ").title()


def default_title(item: FeedbackItem, classification: ClassificationResult) -> str:
    prefix = TITLE_PREFIXES.get(classification.category, "Review:")
    basis = item.title or _SENTENCE_END.split(item.content, 1)[0].strip() or item.content
    return f"{prefix} {truncate(basis, 70)}"


def default_description(item: FeedbackItem, classification: ClassificationResult) -> str:
    source = SOURCE_LABELS.get(item.source, item.source)
    subreddit = f" r/{item.metadata['subreddit']}" if item.metadata.get("subreddit") else ""
    category = _format_category(classification.category)

    lines = [
        "## Context",
        f"Feedback received from {source}{subreddit} by {item.author_handle or item.author}.",
        f"Classified as **{category}** with **{classification.priority}** priority.",
        "",
        "## User Quote",
        f'> "{truncate(item.content, 500)}"',
        "",
        "## Classification Details",
        f"- **Category:** {category}",
        f"- **Sentiment:** {classification.sentiment}",
        f"- **Confidence:** {classification.confidence}%",
        f"- **Customer Segment:** {classification.customer_segment}",
    ]
    if classification.priority_reasons:
        lines.append(f"- **Priority Reasons:** {', '.join(classification.priority_reasons)}")
    lines += [
        "",
        "## Keywords",
        " ".join(f"`{k}`" for k in classification.keywords),
    ]
    if item.source_url:
        lines += ["", "## Source", f"[View original]({item.source_url})"]
    return "\n".join(lines)


def default_labels(classification: ClassificationResult) -> list[str]:
    labels = [classification.category.replace("_", "-")]
    if classification.priority in ("urgent", "high"):
        labels.append(classification.priority)
    if classification.customer_segment == "enterprise":
        labels.append("enterprise")
    labels.extend(k for k in classification.keywords[:2] if len(k) <= 20)
    return labels


class Drafter(ABC):
    @abstractmethod
    async def draft(self, item: FeedbackItem, classification: ClassificationResult) -> TicketDraft:
        ...


class HeuristicDrafter(Drafter):
    async def draft(self, item: FeedbackItem, classification: ClassificationResult) -> TicketDraft:
        return TicketDraft(
            title=default_title(item, classification),
            description=default_description(item, classification),
            suggested_labels=default_labels(classification),
            suggested_priority=classification.priority,
        )


_SYSTEM_PROMPT = (
    "Draft an issue-tracker ticket from the classified customer feedback. "
    "Respond with a JSON object with keys title (max 80 chars), description "
    "(markdown), suggestedLabels (list of strings), suggestedPriority "
    "(low|medium|high|urgent)."
)


class OpenAIDrafter(Drafter):
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        company_context: str | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self._model = model or settings.OPENAI_MODEL
        self._context = company_context

    def _prompt(self, item: FeedbackItem, classification: ClassificationResult) -> str:
        return (
            f"{describe_item(item)}\nURL: {item.source_url}\n\n"
            f"Category: {classification.category}\n"
            f"Priority: {classification.priority}\n"
            f"Sentiment: {classification.sentiment}\n"
            f"Customer Segment: {classification.customer_segment}\n"
            f"Keywords: {', '.join(classification.keywords)}"
        )

    async def draft(self, item: FeedbackItem, classification: ClassificationResult) -> TicketDraft:
        system = _SYSTEM_PROMPT
        if self._context:
            system = f"Product context:\n{self._context}\n\n{system}"
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": self._prompt(item, classification)},
                ],
                temperature=0.5,
                max_tokens=1000,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            raise DraftError(f"draft request failed for {item.id}: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        try:
            payload: Any = json.loads(content or "")
        except json.JSONDecodeError as exc:
            raise DraftError(f"unparseable draft for {item.id}") from exc
        if not isinstance(payload, dict):
            raise DraftError(f"draft for {item.id} is not an object")

        labels = payload.get("suggestedLabels")
        priority = payload.get("suggestedPriority")
        return TicketDraft(
            title=str(payload.get("title") or default_title(item, classification)),
            description=str(payload.get("description") or default_description(item, classification)),
            suggested_labels=(
                [str(x) for x in labels] if isinstance(labels, list) else default_labels(classification)
            ),
            suggested_priority=priority if priority in PRIORITIES else classification.priority,
        )


def get_drafter(company_context: str | None = None) -> Drafter:
    if settings.OPENAI_API_KEY:
        return OpenAIDrafter(company_context=company_context)
    log.debug("OPENAI_API_KEY not set, using heuristic drafter")
    return HeuristicDrafter()


def create_drafted_ticket(
    item: FeedbackItem,
    classification: ClassificationResult,
    draft: TicketDraft,
) -> DraftedTicket:
    now = datetime.now(timezone.utc)
    return DraftedTicket(
        id=f"draft_{uuid.uuid4().hex[:12]}",
        feedback_item=item,
        classification=classification,
        draft=draft,
        created_at=now,
        updated_at=now,
    )
