"""Feedback classification.

The classifier is a collaborator with one contract: ``classify(item)``
returns a ``ClassificationResult`` or raises ``ClassificationError``.
``OpenAIClassifier`` asks a chat model; ``HeuristicClassifier`` applies
keyword rules and is used when no API key is configured.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from collections import Counter
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from config.settings import settings
from core.exceptions import ClassificationError
from core.models import (
    CATEGORIES,
    PRIORITIES,
    SEGMENTS,
    SENTIMENTS,
    ClassificationResult,
    FeedbackItem,
)

log = logging.getLogger(__name__)

_STOP_WORDS = frozenset(
    "the a an and or but in on at to for of is it this that with from by as "
    "are was were be been being has have had do does did will would can could "
    "may might must shall should need dare not no nor so if then than too also "
    "just about up its my your his her our their what which who whom how when "
    "where why all each every both few more most other some such only own same "
    "into over after before under between through during above below out off "
    "again further once here there these those because until while very "
    "am i me we they them he she you".split()
)

_WORD_RE = re.compile(r"[a-z0-9_]+")

_BUG_TERMS = ("bug", "broken", "error", "crash", "not working")
_FEATURE_TERMS = ("feature", "would be great", "please add", "wish", "need")
_PRAISE_TERMS = ("love", "amazing", "great", "awesome")
_QUESTION_TERMS = ("how do", "how to", "?")
_COMPLAINT_TERMS = ("terrible", "worst", "hate", "disappointed")

_POSITIVE_WORDS = ("love", "great", "amazing", "awesome", "excellent", "best")
_NEGATIVE_WORDS = ("hate", "terrible", "worst", "broken", "frustrated", "disappointed")

HEURISTIC_CONFIDENCE = 60
HIGH_ENGAGEMENT = 70


def extract_keywords(text: str, limit: int = 5) -> list[str]:
    """Most frequent meaningful words, ties broken by first appearance."""
    words = [w for w in _WORD_RE.findall(text.lower()) if len(w) > 3 and w not in _STOP_WORDS]
    return [word for word, _ in Counter(words).most_common(limit)]


def _contains_any(text: str, terms: tuple[str, ...]) -> bool:
    return any(term in text for term in terms)


class Classifier(ABC):
    @abstractmethod
    async def classify(self, item: FeedbackItem) -> ClassificationResult:
        ...


class HeuristicClassifier(Classifier):
    """Keyword-rule classifier with fixed, lower confidence."""

    async def classify(self, item: FeedbackItem) -> ClassificationResult:
        return self.classify_sync(item)

    def classify_sync(self, item: FeedbackItem) -> ClassificationResult:
        text = f"{item.content} {item.title or ''}".lower()

        if _contains_any(text, _BUG_TERMS):
            category = "bug"
        elif _contains_any(text, _FEATURE_TERMS):
            category = "feature_request"
        elif _contains_any(text, _PRAISE_TERMS):
            category = "praise"
        elif _contains_any(text, _QUESTION_TERMS):
            category = "question"
        elif _contains_any(text, _COMPLAINT_TERMS):
            category = "complaint"
        else:
            category = "other"

        if _contains_any(text, _POSITIVE_WORDS):
            sentiment = "positive"
        elif _contains_any(text, _NEGATIVE_WORDS):
            sentiment = "negative"
        else:
            sentiment = "neutral"

        priority = "medium"
        reasons: list[str] = []
        if _contains_any(text, ("enterprise", "team of", "company")):
            priority = "high"
            reasons.append("Enterprise mention")
        if _contains_any(text, ("blocking", "blocker")):
            priority = "urgent"
            reasons.append("Blocker mentioned")
        if item.engagement_score > HIGH_ENGAGEMENT:
            if priority == "medium":
                priority = "high"
            reasons.append("High engagement")

        if _contains_any(text, ("enterprise", "sso", "500", "1000")):
            segment = "enterprise"
        elif _contains_any(text, ("team", "company")):
            segment = "mid-market"
        elif _contains_any(text, ("personal", "solo")):
            segment = "smb"
        else:
            segment = "unknown"

        return ClassificationResult(
            category=category,
            priority=priority,
            sentiment=sentiment,
            confidence=HEURISTIC_CONFIDENCE,
            customer_segment=segment,
            priority_reasons=reasons,
            keywords=extract_keywords(text),
        )


_SYSTEM_PROMPT = (
    "Classify the customer feedback. Respond with a JSON object with keys "
    "category (bug|feature_request|praise|question|complaint|other), "
    "confidence (0-100), priority (low|medium|high|urgent), priorityReasons "
    "(list of strings), sentiment (positive|negative|neutral), keywords "
    "(list of strings), customerSegment (enterprise|mid-market|smb|unknown)."
)


def _pick(value: Any, allowed: tuple[str, ...], default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


def parse_classification(payload: dict[str, Any]) -> ClassificationResult:
    """Coerce a model's JSON answer into a ClassificationResult."""
    try:
        confidence = int(payload.get("confidence") or 50)
    except (TypeError, ValueError):
        confidence = 50
    return ClassificationResult(
        category=_pick(payload.get("category"), CATEGORIES, "other"),
        priority=_pick(payload.get("priority"), PRIORITIES, "medium"),
        sentiment=_pick(payload.get("sentiment"), SENTIMENTS, "neutral"),
        confidence=max(0, min(100, confidence)),
        customer_segment=_pick(payload.get("customerSegment"), SEGMENTS, "unknown"),
        priority_reasons=_str_list(payload.get("priorityReasons")),
        keywords=_str_list(payload.get("keywords")),
    )


def describe_item(item: FeedbackItem) -> str:
    lines = [f"Source: {item.source}"]
    if item.metadata.get("subreddit"):
        lines.append(f"Subreddit: r/{item.metadata['subreddit']}")
    lines.append(f"Author: {item.author_handle or item.author}")
    lines.append(f"Engagement Score: {item.engagement_score}/100")
    lines.append("")
    if item.title:
        lines.append(f"Title: {item.title}")
    lines.append(f"Content: {item.content}")
    return "\n".join(lines)


class OpenAIClassifier(Classifier):
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        company_context: str | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self._model = model or settings.OPENAI_MODEL
        self._context = company_context

    async def classify(self, item: FeedbackItem) -> ClassificationResult:
        system = _SYSTEM_PROMPT
        if self._context:
            system = f"Product context:\n{self._context}\n\n{system}"
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": describe_item(item)},
                ],
                temperature=0.3,
                max_tokens=500,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            raise ClassificationError(f"classification request failed for {item.id}: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ClassificationError(f"empty classification for {item.id}")
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ClassificationError(f"unparseable classification for {item.id}") from exc
        if not isinstance(payload, dict):
            raise ClassificationError(f"classification for {item.id} is not an object")

        return parse_classification(payload)


def get_classifier(company_context: str | None = None) -> Classifier:
    if settings.OPENAI_API_KEY:
        return OpenAIClassifier(company_context=company_context)
    log.debug("OPENAI_API_KEY not set, using heuristic classifier")
    return HeuristicClassifier()
