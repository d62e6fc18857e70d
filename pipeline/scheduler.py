from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config.settings import settings, split_csv
from core.exceptions import PipelineConfigError
from core.models import FeedbackItem
from pipeline.orchestrator import (
    PipelineOrchestrator,
    PipelineRequest,
    PipelineState,
    summarize_batch,
)

log = logging.getLogger(__name__)


class MonitorScheduler:
    """Runs the analyze pipeline periodically for the configured queries."""

    def __init__(self, orchestrator: PipelineOrchestrator, broadcast_fn=None) -> None:
        self._orchestrator = orchestrator
        self._broadcast = broadcast_fn
        self._scheduler = AsyncIOScheduler()
        # most recent items only; older ones age out of the known filter
        self._known: deque[FeedbackItem] = deque(maxlen=settings.MONITOR_KNOWN_ITEMS)
        self.last_result: dict[str, Any] | None = None
        self.last_run_at: datetime | None = None

    def build_request(self) -> PipelineRequest:
        queries = split_csv(settings.MONITOR_QUERIES)
        if not queries:
            raise PipelineConfigError("No monitor queries configured (MONITOR_QUERIES)")
        return PipelineRequest(
            sources=split_csv(settings.MONITOR_SOURCES),
            queries=queries,
            subreddits=split_csv(settings.MONITOR_SUBREDDITS),
            limit=settings.MONITOR_MAX_ITEMS,
        )

    def start(self) -> None:
        self._scheduler.add_job(
            self._scheduled_run,
            "interval",
            minutes=settings.MONITOR_INTERVAL_MINUTES,
            id="monitor",
            replace_existing=True,
        )
        self._scheduler.start()
        log.info("Monitor scheduler started, every %d minutes", settings.MONITOR_INTERVAL_MINUTES)

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def get_status(self) -> dict:
        jobs = []
        for job in self._scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run": job.next_run_time.isoformat()
                    if job.next_run_time
                    else None,
                }
            )
        return {
            "running": self._scheduler.running,
            "jobs": jobs,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "known_items": len(self._known),
        }

    async def run_now(self) -> dict[str, Any]:
        """Run once; raises PipelineConfigError when nothing is configured."""
        request = self.build_request()
        self._orchestrator.validate(request)
        self.last_run_at = datetime.now(timezone.utc)
        log.info("Starting monitor run: %s", request.queries)

        outcome = await self._orchestrator.run(request, mode="analyze", known=self._known)
        result = summarize_batch(outcome)

        if outcome.state is PipelineState.COMPLETE:
            # later runs only report feedback not seen before
            self._known.extend(outcome.items)
        self.last_result = result

        if self._broadcast:
            await self._broadcast(
                {
                    "event": "monitor_complete",
                    "success": result["success"],
                    "items": len(result["raw_items"]),
                    "warnings": len(outcome.warnings),
                    "urgent_items": result["insights"]["urgent_items"],
                }
            )
        return result

    async def _scheduled_run(self) -> None:
        try:
            await self.run_now()
        except PipelineConfigError as exc:
            log.warning("Skipping monitor run: %s", exc)
