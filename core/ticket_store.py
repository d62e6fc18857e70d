"""In-memory review queue of drafted tickets."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from cachetools import LRUCache  # type: ignore[import-untyped]

from core.models import DraftedTicket

log = logging.getLogger(__name__)


class TicketStore:
    """Drafted tickets keyed by id, capped at ``maxsize``.

    When full, the least recently stored or looked-up ticket is evicted.
    """

    def __init__(self, maxsize: int = 1000) -> None:
        self._tickets: LRUCache[str, DraftedTicket] = LRUCache(maxsize=maxsize)
        self._lock = threading.Lock()

    def add_many(self, tickets: Iterable[DraftedTicket]) -> int:
        added = 0
        with self._lock:
            for ticket in tickets:
                self._tickets[ticket.id] = ticket
                added += 1
        if added:
            log.info("Queued %d drafted tickets for review (%d held)", added, len(self._tickets))
        return added

    def get(self, ticket_id: str) -> DraftedTicket | None:
        with self._lock:
            return self._tickets.get(ticket_id)

    def all(self) -> list[DraftedTicket]:
        """Tickets oldest first by creation time."""
        with self._lock:
            tickets = list(self._tickets.values())
        return sorted(tickets, key=lambda t: t.created_at)

    def __len__(self) -> int:
        return len(self._tickets)
