from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from config.settings import settings
from core.exceptions import ClassificationError, SourceError
from core.models import ClassificationResult, FeedbackItem, SourceSearchResult
from pipeline.classifier import Classifier, HeuristicClassifier
from pipeline.drafter import HeuristicDrafter
from sources.base import BaseSource

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_item(
    source_id: str = "1",
    content: str = "The export button is broken on the billing page",
    *,
    source: str = "reddit",
    engagement: int = 10,
    created_offset: int = 0,
    fetched_offset: int = 0,
    **overrides: Any,
) -> FeedbackItem:
    """FeedbackItem with fixed timestamps; offsets are minutes after BASE_TIME."""
    fields: dict[str, Any] = dict(
        id=f"fb_{source}_{source_id}",
        source=source,
        source_id=source_id,
        source_url=f"https://example.com/{source_id}",
        content=content,
        author="alice",
        created_at=BASE_TIME + timedelta(minutes=created_offset),
        fetched_at=BASE_TIME + timedelta(minutes=fetched_offset),
        engagement_score=engagement,
    )
    fields.update(overrides)
    return FeedbackItem(**fields)


def make_classification(priority: str = "medium", category: str = "bug", **overrides: Any) -> ClassificationResult:
    fields: dict[str, Any] = dict(
        category=category,
        priority=priority,
        sentiment="negative",
        confidence=80,
        keywords=["export", "billing"],
    )
    fields.update(overrides)
    return ClassificationResult(**fields)


def reddit_post(post_id: str, text: str, *, score: int = 10, comments: int = 2, subreddit: str = "SaaS") -> dict:
    return {
        "id": post_id,
        "title": text[:40],
        "selftext": text,
        "author": "bob",
        "subreddit": subreddit,
        "score": score,
        "num_comments": comments,
        "created_utc": 1714564800,
        "permalink": f"https://www.reddit.com/r/{subreddit}/comments/{post_id}/",
    }


class FakeSource(BaseSource):
    """Returns canned records per subreddit (or query) and records each call."""

    def __init__(
        self,
        name: str = "reddit",
        results: dict[str | None, list[dict]] | None = None,
        fail_on: set[str | None] | None = None,
    ) -> None:
        self.source_name = name
        self._results = results or {}
        self._fail_on = fail_on or set()
        self.calls: list[dict[str, Any]] = []

    async def search(self, query, *, subreddit=None, limit=25, time="week") -> SourceSearchResult:
        self.calls.append({"query": query, "subreddit": subreddit, "limit": limit})
        key = subreddit if self.source_name == "reddit" else query
        if key in self._fail_on:
            raise SourceError(self.source_name, f"simulated outage for {key}")
        return SourceSearchResult(source=self.source_name, items=list(self._results.get(key, [])))


class FlakyClassifier(Classifier):
    """Heuristic classifier that fails for the given item ids."""

    def __init__(self, fail_ids: set[str]) -> None:
        self._fail_ids = fail_ids
        self._inner = HeuristicClassifier()

    async def classify(self, item: FeedbackItem) -> ClassificationResult:
        if item.id in self._fail_ids:
            raise ClassificationError(f"model unavailable for {item.id}")
        return await self._inner.classify(item)


@pytest.fixture(autouse=True)
def _offline_settings(monkeypatch):
    """Keep tests away from real model calls and rate-limit sleeps."""
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    monkeypatch.setattr(settings, "SCRAPE_REQUEST_DELAY", 0.0)


@pytest.fixture
def heuristic_classifier() -> HeuristicClassifier:
    return HeuristicClassifier()


@pytest.fixture
def heuristic_drafter() -> HeuristicDrafter:
    return HeuristicDrafter()


@pytest.fixture
def collected_events() -> list[dict]:
    return []


@pytest.fixture
def emit(collected_events):
    async def _emit(event: dict) -> None:
        collected_events.append(event)

    return _emit
