"""Streaming and batch pipeline endpoints."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from api.schemas import PipelineBody
from core.exceptions import PipelineConfigError
from pipeline.classifier import get_classifier
from pipeline.drafter import get_drafter
from pipeline.events import DONE_SENTINEL, EventChannel
from pipeline.orchestrator import PipelineOrchestrator

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/pipeline", tags=["pipeline"])


def build_orchestrator(request: Request, company_context: str | None = None) -> PipelineOrchestrator:
    factory = getattr(request.app.state, "orchestrator_factory", None)
    if factory is not None:
        return factory(company_context)
    return PipelineOrchestrator(
        request.app.state.sources,
        get_classifier(company_context),
        get_drafter(company_context),
    )


async def event_stream(channel: EventChannel) -> AsyncIterator[dict]:
    """Frame channel events as SSE ``data:`` messages ending with the sentinel."""
    try:
        async for event in channel:
            yield {"data": json.dumps(event, default=str)}
        yield {"data": DONE_SENTINEL}
    finally:
        # client went away or stream finished; let the run drain without a reader
        channel.detach()


@router.post("/ingest")
async def ingest(body: PipelineBody, request: Request):
    orchestrator = build_orchestrator(request, body.company_context)
    channel = orchestrator.stream(body.to_request(), mode="ingest")
    return EventSourceResponse(event_stream(channel))


@router.post("/process")
async def process(body: PipelineBody, request: Request):
    orchestrator = build_orchestrator(request, body.company_context)
    tickets = request.app.state.tickets
    channel = orchestrator.stream(
        body.to_request(),
        mode="process",
        on_complete=lambda outcome: tickets.add_many(outcome.drafts),
    )
    return EventSourceResponse(event_stream(channel))


@router.post("/magic")
async def magic(body: PipelineBody, request: Request):
    if not (body.product_name or "").strip():
        raise HTTPException(400, "product_name is required")

    orchestrator = build_orchestrator(request, body.company_context)
    try:
        return await orchestrator.run_batch(body.to_request())
    except PipelineConfigError as exc:
        raise HTTPException(400, str(exc)) from exc
