"""Ingest, deduplicate, classify and draft feedback with incremental progress events.

One run is a single task: phases run sequentially, and inside the ingest
phase every (query, subreddit) fetch is awaited before the next one starts.
A failing fetch, classification or draft is reported and skipped; only a
bad request or an unexpected exception ends the run in the ``error`` state.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from config.settings import settings, split_csv
from core.exceptions import PipelineConfigError
from core.models import ClassificationResult, DraftedTicket, FeedbackItem
from pipeline import events
from pipeline.classifier import Classifier
from pipeline.clusterer import cluster_feedback
from pipeline.dedup import deduplicate
from pipeline.drafter import Drafter, create_drafted_ticket
from pipeline.events import Emit, Event, EventChannel, make_event
from pipeline.insights import compute_insights, compute_stats
from pipeline.normalizer import normalize_parsed_file, normalize_reddit_posts, normalize_tweets
from pipeline.ranker import rank_items, rank_tickets
from sources.base import BaseSource
from sources.files import parse_file

log = logging.getLogger(__name__)

PipelineMode = Literal["ingest", "analyze", "process"]
FETCHED_SOURCES = ("reddit", "twitter")
INGESTABLE_SOURCES = (*FETCHED_SOURCES, "file")

# strong references to background runs until they finish
_running: set[asyncio.Task] = set()


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    INGESTING = "ingesting"
    DEDUPLICATING = "deduplicating"
    CLASSIFYING = "classifying"
    DRAFTING = "drafting"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class FileUpload:
    file_name: str
    content: str
    mime_type: str | None = None


@dataclass
class PipelineRequest:
    sources: list[str] = field(default_factory=lambda: ["reddit"])
    queries: list[str] = field(default_factory=list)
    product_name: str | None = None
    search_terms: list[str] = field(default_factory=list)
    competitors: list[str] = field(default_factory=list)
    subreddits: list[str] = field(default_factory=list)
    files: list[FileUpload] = field(default_factory=list)
    limit: int | None = None


@dataclass
class PipelineOutcome:
    state: PipelineState = PipelineState.IDLE
    items: list[FeedbackItem] = field(default_factory=list)
    classified: list[tuple[FeedbackItem, ClassificationResult]] = field(default_factory=list)
    drafts: list[DraftedTicket] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fetched: int = 0
    removed: int = 0
    classification_failures: int = 0
    draft_failures: int = 0
    error: str | None = None
    duration_seconds: float = 0.0

    def stats(self) -> dict[str, Any]:
        by_source: dict[str, int] = {}
        for item in self.items:
            by_source[item.source] = by_source.get(item.source, 0) + 1
        by_category: dict[str, int] = {}
        by_priority: dict[str, int] = {}
        for _, result in self.classified:
            by_category[result.category] = by_category.get(result.category, 0) + 1
            by_priority[result.priority] = by_priority.get(result.priority, 0) + 1
        return {
            "total": len(self.drafts) if self.drafts else len(self.items),
            "fetched": self.fetched,
            "removed": self.removed,
            "by_source": by_source,
            "by_category": by_category,
            "by_priority": by_priority,
            "warnings": len(self.warnings),
            "classification_failures": self.classification_failures,
            "draft_failures": self.draft_failures,
        }


def summarize_batch(outcome: PipelineOutcome) -> dict[str, Any]:
    clusters = cluster_feedback(outcome.classified)
    stats = compute_stats(outcome.classified)
    insights = compute_insights(outcome.classified, stats, clusters)
    stats.update(
        total_clusters=len(clusters),
        removed=outcome.removed,
        warnings=len(outcome.warnings),
        classification_failures=outcome.classification_failures,
    )
    return {
        "success": outcome.state is PipelineState.COMPLETE,
        "raw_items": [
            {"item": item.to_dict(), "classification": result.to_dict()}
            for item, result in outcome.classified
        ],
        "clusters": [cluster.to_dict() for cluster in clusters],
        "stats": stats,
        "insights": insights,
        "warnings": outcome.warnings,
        "error": outcome.error,
    }


async def _log_event(event: Event) -> None:
    log.debug("pipeline event: %s", event)


class PipelineOrchestrator:
    def __init__(
        self,
        sources: dict[str, BaseSource],
        classifier: Classifier,
        drafter: Drafter,
        *,
        max_queries: int | None = None,
        max_subreddits: int | None = None,
        queue_size: int | None = None,
    ) -> None:
        self._sources = sources
        self._classifier = classifier
        self._drafter = drafter
        self._max_queries = max_queries or settings.PIPELINE_MAX_QUERIES
        self._max_subreddits = max_subreddits or settings.PIPELINE_MAX_SUBREDDITS
        self._queue_size = queue_size or settings.STREAM_QUEUE_SIZE

    # ── request handling ─────────────────────────────────────────────

    def build_queries(self, request: PipelineRequest) -> list[str]:
        queries: list[str] = []
        name = (request.product_name or "").strip()
        if name:
            queries += [name, f"{name} feedback", f"{name} review"]
        queries += request.search_terms
        if name:
            queries += [f"{name} vs {c}" for c in request.competitors]
        queries += request.queries
        queries = list(dict.fromkeys(q.strip() for q in queries if q and q.strip()))
        if not queries:
            queries = split_csv(settings.PIPELINE_DEFAULT_QUERIES)
        return queries[: self._max_queries]

    def build_subreddits(self, request: PipelineRequest) -> list[str]:
        subreddits = request.subreddits or split_csv(settings.REDDIT_DEFAULT_SUBREDDITS)
        return subreddits[: self._max_subreddits]

    def validate(self, request: PipelineRequest) -> None:
        for name in request.sources:
            if name not in INGESTABLE_SOURCES:
                raise PipelineConfigError(f"Unknown source: {name}")
            if name in FETCHED_SOURCES and name not in self._sources:
                raise PipelineConfigError(f"Source not configured: {name}")
        if "file" in request.sources and not request.files:
            raise PipelineConfigError("File source selected but no files were uploaded")
        if request.files and "file" not in request.sources:
            raise PipelineConfigError("Files were uploaded but the file source is not selected")
        for upload in request.files:
            if not upload.content.strip():
                raise PipelineConfigError(f"No content in uploaded file: {upload.file_name}")
        if request.limit is not None and request.limit < 1:
            raise PipelineConfigError("limit must be at least 1")

    # ── entry points ─────────────────────────────────────────────────

    async def run(
        self,
        request: PipelineRequest,
        emit: Emit | None = None,
        *,
        mode: PipelineMode = "process",
        known: Iterable[FeedbackItem] | None = None,
    ) -> PipelineOutcome:
        outcome = PipelineOutcome()
        send = emit or _log_event
        started = time.monotonic()

        try:
            self.validate(request)
        except PipelineConfigError as exc:
            log.warning("Rejected pipeline request: %s", exc)
            outcome.state = PipelineState.ERROR
            outcome.error = str(exc)
            await send(make_event(events.ERROR, error=str(exc)))
            return outcome

        try:
            await self._execute(request, send, mode, known, outcome)
        except Exception as exc:
            log.exception("Pipeline failed while %s", outcome.state.value)
            failed_in = outcome.state.value
            outcome.state = PipelineState.ERROR
            outcome.error = str(exc) or exc.__class__.__name__
            await send(make_event(events.ERROR, error=outcome.error, phase=failed_in))
        finally:
            outcome.duration_seconds = time.monotonic() - started

        log.info(
            "Pipeline %s: %s | %d fetched, %d kept, %d drafts | %d warnings | %.1fs",
            mode,
            outcome.state.value,
            outcome.fetched,
            len(outcome.items),
            len(outcome.drafts),
            len(outcome.warnings),
            outcome.duration_seconds,
        )
        return outcome

    def stream(
        self,
        request: PipelineRequest,
        mode: PipelineMode = "process",
        known: Iterable[FeedbackItem] | None = None,
        on_complete: Callable[[PipelineOutcome], None] | None = None,
    ) -> EventChannel:
        """Start a run in the background and return the channel it reports to.

        ``on_complete`` receives the outcome before the channel is closed.
        """
        channel = EventChannel(maxsize=self._queue_size)

        async def produce() -> None:
            try:
                outcome = await self.run(request, channel.send, mode=mode, known=known)
                if on_complete is not None:
                    on_complete(outcome)
            finally:
                channel.close()

        task = asyncio.create_task(produce())
        _running.add(task)
        task.add_done_callback(_running.discard)
        return channel

    async def run_batch(
        self,
        request: PipelineRequest,
        known: Iterable[FeedbackItem] | None = None,
    ) -> dict[str, Any]:
        """Ingest and classify without streaming; raises PipelineConfigError on a bad request."""
        self.validate(request)
        outcome = await self.run(request, mode="analyze", known=known)
        return summarize_batch(outcome)

    # ── phases ───────────────────────────────────────────────────────

    async def _execute(
        self,
        request: PipelineRequest,
        emit: Emit,
        mode: PipelineMode,
        known: Iterable[FeedbackItem] | None,
        outcome: PipelineOutcome,
    ) -> None:
        limit = request.limit or settings.PIPELINE_MAX_ITEMS

        outcome.state = PipelineState.INGESTING
        await emit(make_event(events.PHASE, phase="ingest", status="starting"))
        fetched = await self._ingest(request, emit, outcome, limit)
        outcome.fetched = len(fetched)

        outcome.state = PipelineState.DEDUPLICATING
        await emit(make_event(events.STATUS, status="deduplicating"))
        unique = deduplicate(fetched, known=known)
        outcome.removed = len(fetched) - len(unique)
        outcome.items = rank_items(unique)[:limit]
        await emit(
            make_event(
                events.PHASE,
                phase="ingest",
                status="complete",
                count=len(outcome.items),
                removed=outcome.removed,
            )
        )

        if not outcome.items:
            await self._complete(emit, outcome, message="No feedback items found")
            return
        if mode == "ingest":
            await self._complete(emit, outcome)
            return

        outcome.state = PipelineState.CLASSIFYING
        await self._classify(emit, outcome)
        if mode == "analyze" or not outcome.classified:
            await self._complete(emit, outcome)
            return

        outcome.state = PipelineState.DRAFTING
        await self._draft(emit, outcome)
        await self._complete(emit, outcome)

    async def _ingest(
        self,
        request: PipelineRequest,
        emit: Emit,
        outcome: PipelineOutcome,
        limit: int,
    ) -> list[FeedbackItem]:
        collected: list[FeedbackItem] = []
        queries = self.build_queries(request)

        for upload in request.files:
            parsed = parse_file(upload.content, upload.file_name, upload.mime_type)
            if not parsed.success:
                await self._warn(emit, outcome, f"{upload.file_name}: {parsed.error}", source="file")
                continue
            items = normalize_parsed_file(parsed)
            collected.extend(items)
            await emit(make_event(events.PROGRESS, source="file", file_name=upload.file_name, found=len(items)))

        if "reddit" in request.sources:
            adapter = self._sources["reddit"]
            subreddits = self.build_subreddits(request)
            per_call = max(1, math.ceil(limit / max(len(subreddits), 1)))
            await emit(make_event(events.STATUS, source="reddit", status="starting"))
            for query in queries:
                for subreddit in subreddits:
                    await emit(
                        make_event(
                            events.STATUS,
                            source="reddit",
                            status="searching",
                            query=query,
                            detail=f"r/{subreddit}",
                        )
                    )
                    try:
                        result = await adapter.search(
                            query,
                            subreddit=subreddit,
                            limit=per_call,
                            time=settings.REDDIT_SEARCH_TIME,
                        )
                    except Exception as exc:
                        await self._warn(
                            emit,
                            outcome,
                            f"r/{subreddit} '{query}': {exc}",
                            source="reddit",
                            query=query,
                            subreddit=subreddit,
                        )
                        continue
                    items = normalize_reddit_posts(result.items)
                    collected.extend(items)
                    await emit(
                        make_event(
                            events.PROGRESS,
                            source="reddit",
                            query=query,
                            subreddit=subreddit,
                            found=len(items),
                        )
                    )

        if "twitter" in request.sources:
            adapter = self._sources["twitter"]
            await emit(make_event(events.STATUS, source="twitter", status="starting"))
            for query in queries:
                await emit(make_event(events.STATUS, source="twitter", status="searching", query=query))
                try:
                    result = await adapter.search(query, limit=limit)
                except Exception as exc:
                    await self._warn(emit, outcome, f"twitter '{query}': {exc}", source="twitter", query=query)
                    continue
                items = normalize_tweets(result.items)
                collected.extend(items)
                await emit(make_event(events.PROGRESS, source="twitter", query=query, found=len(items)))

        return collected

    async def _classify(self, emit: Emit, outcome: PipelineOutcome) -> None:
        total = len(outcome.items)
        await emit(make_event(events.PHASE, phase="classify", status="starting", total=total))

        for index, item in enumerate(outcome.items, start=1):
            await emit(make_event(events.STATUS, message=f"Classifying {index}/{total}..."))
            try:
                result = await self._classifier.classify(item)
            except Exception as exc:
                outcome.classification_failures += 1
                await self._warn(emit, outcome, f"classification failed for {item.id}: {exc}", phase="classify", item_id=item.id)
                continue
            outcome.classified.append((item, result))
            await emit(
                make_event(
                    events.CLASSIFIED,
                    index=index,
                    total=total,
                    item_id=item.id,
                    category=result.category,
                    priority=result.priority,
                )
            )

        lookup = {item.id: result for item, result in outcome.classified}
        ranked = rank_items([item for item, _ in outcome.classified], lookup)
        outcome.classified = [(item, lookup[item.id]) for item in ranked]
        await emit(
            make_event(
                events.PHASE,
                phase="classify",
                status="complete",
                count=len(outcome.classified),
                failed=outcome.classification_failures,
            )
        )

    async def _draft(self, emit: Emit, outcome: PipelineOutcome) -> None:
        total = len(outcome.classified)
        await emit(make_event(events.PHASE, phase="draft", status="starting", total=total))

        drafts: list[DraftedTicket] = []
        for index, (item, result) in enumerate(outcome.classified, start=1):
            await emit(make_event(events.STATUS, message=f"Drafting ticket {index}/{total}..."))
            try:
                draft = await self._drafter.draft(item, result)
            except Exception as exc:
                outcome.draft_failures += 1
                await self._warn(emit, outcome, f"drafting failed for {item.id}: {exc}", phase="draft", item_id=item.id)
                continue
            drafts.append(create_drafted_ticket(item, result, draft))
            await emit(make_event(events.DRAFTED, index=index, total=total, item_id=item.id, title=draft.title))

        outcome.drafts = rank_tickets(drafts)
        await emit(
            make_event(
                events.PHASE,
                phase="draft",
                status="complete",
                count=len(outcome.drafts),
                failed=outcome.draft_failures,
            )
        )

    async def _warn(self, emit: Emit, outcome: PipelineOutcome, message: str, **scope: Any) -> None:
        log.warning("Pipeline warning: %s", message)
        outcome.warnings.append(message)
        await emit(make_event(events.WARNING, message=message, **scope))

    async def _complete(self, emit: Emit, outcome: PipelineOutcome, message: str | None = None) -> None:
        outcome.state = PipelineState.COMPLETE
        event = make_event(
            events.COMPLETE,
            items=[item.to_dict() for item in outcome.items],
            drafts=[ticket.to_dict() for ticket in outcome.drafts],
            stats=outcome.stats(),
        )
        if message:
            event["message"] = message
        await emit(event)
