"""Reddit search adapter using httpx (public JSON API)."""

from __future__ import annotations

import logging

import httpx

from config.settings import settings
from core.exceptions import SourceError
from core.models import SourceSearchResult
from sources.base import BaseSource, RateLimiter

log = logging.getLogger(__name__)

REDDIT_BASE_URL = "https://www.reddit.com"


class RedditSource(BaseSource):
    source_name = "reddit"

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        delay_seconds: float | None = None,
    ) -> None:
        self._transport = transport
        self._limiter = RateLimiter(
            settings.SCRAPE_REQUEST_DELAY if delay_seconds is None else delay_seconds
        )

    async def search(
        self,
        query: str,
        *,
        subreddit: str | None = None,
        limit: int = 25,
        time: str = "week",
    ) -> SourceSearchResult:
        path = f"/r/{subreddit}/search.json" if subreddit else "/search.json"
        params = {
            "q": query,
            "sort": settings.REDDIT_SORT,
            "t": time,
            "limit": str(limit),
            "restrict_sr": "1" if subreddit else "0",
            "raw_json": "1",
        }

        await self._limiter.wait()
        async with httpx.AsyncClient(
            base_url=REDDIT_BASE_URL,
            headers={"User-Agent": settings.REDDIT_USER_AGENT},
            follow_redirects=True,
            timeout=settings.HTTP_TIMEOUT,
            transport=self._transport,
        ) as client:
            try:
                resp = await client.get(path, params=params)
            except httpx.HTTPError as exc:
                raise SourceError("reddit", f"request failed: {exc}") from exc

        if resp.status_code != 200:
            raise SourceError("reddit", f"Reddit API error: {resp.status_code}")

        try:
            data = resp.json().get("data", {})
        except ValueError as exc:
            raise SourceError("reddit", "invalid JSON in response") from exc

        posts: list[dict] = []
        for child in data.get("children", []):
            post = child.get("data") or {}
            if not post:
                continue
            permalink = post.get("permalink", "")
            posts.append(
                {
                    "id": post.get("id"),
                    "title": post.get("title", ""),
                    "selftext": post.get("selftext", ""),
                    "author": post.get("author", "[deleted]"),
                    "subreddit": post.get("subreddit", subreddit or ""),
                    "score": post.get("score", 0),
                    "num_comments": post.get("num_comments", 0),
                    "created_utc": post.get("created_utc"),
                    "permalink": f"{REDDIT_BASE_URL}{permalink}" if permalink else "",
                    "url": post.get("url", ""),
                    "is_self": post.get("is_self", False),
                }
            )

        log.info(
            "reddit '%s'%s: %d posts",
            query,
            f" in r/{subreddit}" if subreddit else "",
            len(posts),
        )
        return SourceSearchResult(
            source="reddit",
            items=posts,
            meta={"after": data.get("after"), "count": len(posts)},
        )
