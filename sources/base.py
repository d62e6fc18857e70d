from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from core.models import SourceSearchResult


class BaseSource(ABC):
    source_name: str

    @abstractmethod
    async def search(
        self,
        query: str,
        *,
        subreddit: str | None = None,
        limit: int = 25,
        time: str = "week",
    ) -> SourceSearchResult:
        """Run one search against the platform and return its raw records."""
        ...


class RateLimiter:
    """Simple token-bucket style rate limiter."""

    def __init__(self, delay_seconds: float = 2.0) -> None:
        self._delay = delay_seconds
        self._lock = asyncio.Lock()
        self._last_request: float = 0.0

    async def wait(self) -> None:
        if self._delay <= 0:
            return
        async with self._lock:
            now = asyncio.get_running_loop().time()
            elapsed = now - self._last_request
            if elapsed < self._delay:
                await asyncio.sleep(self._delay - elapsed)
            self._last_request = asyncio.get_running_loop().time()
