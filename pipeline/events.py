"""Typed progress events and the channel that carries them to a consumer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

log = logging.getLogger(__name__)

STATUS = "status"
PROGRESS = "progress"
PHASE = "phase"
CLASSIFIED = "classified"
DRAFTED = "drafted"
WARNING = "warning"
ERROR = "error"
COMPLETE = "complete"

EVENT_TYPES = frozenset({STATUS, PROGRESS, PHASE, CLASSIFIED, DRAFTED, WARNING, ERROR, COMPLETE})

DONE_SENTINEL = "[DONE]"

Event = dict[str, Any]
Emit = Callable[[Event], Awaitable[None]]


def make_event(event_type: str, **fields: Any) -> Event:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type: {event_type}")
    return {"type": event_type, **fields}


_CLOSED = object()


class EventChannel:
    """Bounded single-producer, single-consumer event queue.

    The producer awaits ``send`` (blocking while the queue is full) and
    calls ``close`` when done. The consumer iterates with ``async for``.
    If the consumer goes away it calls ``detach``; later sends are dropped
    so the producer can still run to completion.
    """

    def __init__(self, maxsize: int = 100) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._detached = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    async def send(self, event: Event) -> None:
        if self._closed:
            raise RuntimeError("send on closed channel")
        if self._detached:
            self.dropped += 1
            return
        await self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._detached:
            return
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # consumer is still draining; it will see the flag once the queue empties
            pass

    def detach(self) -> None:
        if self._detached:
            return
        self._detached = True
        # unblock a producer waiting on a full queue
        while not self._queue.empty():
            self._queue.get_nowait()
        if self.dropped:
            log.debug("Event channel detached, %d events dropped", self.dropped)

    async def __aiter__(self) -> AsyncIterator[Event]:
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
