from __future__ import annotations

import asyncio
import json
import logging

from fastapi import FastAPI, Request
from sse_starlette.sse import EventSourceResponse

from api.routers import monitor, pipeline, slack, sources, tickets
from config.settings import settings
from core.event_cache import BoundedEventCache
from core.ticket_store import TicketStore
from sources.base import BaseSource
from sources.reddit import RedditSource
from sources.twitter import TwitterSource

log = logging.getLogger(__name__)


class Broadcaster:
    """Simple in-memory SSE broadcaster."""

    def __init__(self) -> None:
        self._listeners: list[asyncio.Queue] = []

    async def broadcast(self, data: dict) -> None:
        for q in list(self._listeners):
            try:
                q.put_nowait(data)
            except asyncio.QueueFull:
                log.debug("Dropping broadcast for a slow listener")

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=50)
        self._listeners.append(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        if q in self._listeners:
            self._listeners.remove(q)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


def default_sources() -> dict[str, BaseSource]:
    return {"reddit": RedditSource(), "twitter": TwitterSource()}


def create_app(source_adapters: dict[str, BaseSource] | None = None) -> FastAPI:
    app = FastAPI(title="Feedback Pipeline", version="0.1.0")
    broadcaster = Broadcaster()
    app.state.broadcaster = broadcaster
    app.state.sources = default_sources() if source_adapters is None else source_adapters
    app.state.slack_events = BoundedEventCache(settings.SLACK_EVENT_CACHE_SIZE)
    app.state.tickets = TicketStore(settings.TICKET_STORE_SIZE)

    app.include_router(pipeline.router)
    app.include_router(sources.router)
    app.include_router(monitor.router)
    app.include_router(slack.router)
    app.include_router(tickets.router)

    # SSE endpoint
    @app.get("/api/events")
    async def sse_events(request: Request):
        q = broadcaster.subscribe()

        async def event_generator():
            try:
                while True:
                    if await request.is_disconnected():
                        break
                    try:
                        data = await asyncio.wait_for(q.get(), timeout=30.0)
                        yield {"event": "message", "data": json.dumps(data, default=str)}
                    except asyncio.TimeoutError:
                        yield {"event": "ping", "data": ""}
            finally:
                broadcaster.unsubscribe(q)

        return EventSourceResponse(event_generator())

    # Health check
    @app.get("/health")
    async def health():
        return {"status": "ok", "sources": sorted(app.state.sources)}

    return app
