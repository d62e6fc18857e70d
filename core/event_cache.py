"""Bounded record of already-processed webhook event ids."""

from __future__ import annotations

import logging
import threading

from cachetools import LRUCache  # type: ignore[import-untyped]

log = logging.getLogger(__name__)


class BoundedEventCache:
    """LRU-capped set keyed by event id.

    Once ``maxsize`` ids are held, the least recently seen id is evicted.
    """

    def __init__(self, maxsize: int = 1000) -> None:
        self._ids: LRUCache[str, bool] = LRUCache(maxsize=maxsize)
        self._lock = threading.Lock()

    def seen(self, event_id: str) -> bool:
        """Mark ``event_id`` as processed; return True if it was already known."""
        with self._lock:
            if event_id in self._ids:
                # refresh recency
                self._ids[event_id] = True
                return True
            self._ids[event_id] = True
            return False

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def maxsize(self) -> int:
        return int(self._ids.maxsize)

    def clear(self) -> None:
        with self._lock:
            self._ids.clear()
        log.debug("Event cache cleared")
