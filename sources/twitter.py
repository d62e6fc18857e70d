from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from urllib.parse import quote_plus

import httpx
from scrapling import Fetcher

from config.settings import settings, split_csv
from core.exceptions import SourceError
from core.models import SourceSearchResult
from sources.base import BaseSource, RateLimiter

log = logging.getLogger(__name__)

TWITTER_SEARCH_URL = "https://api.twitter.com/2/tweets/search/recent"

# Nitter lists tweet stats in this order
_NITTER_STAT_KEYS = ("reply_count", "retweet_count", "quote_count", "like_count")


class TwitterSource(BaseSource):
    """Searches recent tweets.

    Uses the v2 search API when a bearer token is configured. Without one,
    falls back to public Nitter instances, rotating through the configured
    list until one answers.
    """

    source_name = "twitter"

    def __init__(
        self,
        *,
        bearer_token: str | None = None,
        nitter_instances: list[str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        delay_seconds: float | None = None,
    ) -> None:
        self._token = settings.TWITTER_BEARER_TOKEN if bearer_token is None else bearer_token
        self._instances = (
            split_csv(settings.TWITTER_NITTER_INSTANCES)
            if nitter_instances is None
            else nitter_instances
        )
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
        await self._limiter.wait()
        if self._token:
            return await self._search_api(query, limit)
        if self._instances:
            tweets = await asyncio.to_thread(self._fetch_nitter, query)
            return SourceSearchResult(
                source="twitter",
                items=tweets[:limit],
                meta={"result_count": min(len(tweets), limit), "via": "nitter"},
            )

        log.warning("TWITTER_BEARER_TOKEN not set and no Nitter instances, returning empty results")
        return SourceSearchResult(source="twitter", items=[], meta={"result_count": 0})

    async def _search_api(self, query: str, limit: int) -> SourceSearchResult:
        params = {
            "query": f"{query} -is:retweet lang:en",
            "max_results": str(min(max(limit, 10), 100)),
            "tweet.fields": "author_id,created_at,public_metrics,entities",
            "expansions": "author_id",
            "user.fields": "username,name",
        }
        async with httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self._token}"},
            timeout=settings.HTTP_TIMEOUT,
            transport=self._transport,
        ) as client:
            try:
                resp = await client.get(TWITTER_SEARCH_URL, params=params)
            except httpx.HTTPError as exc:
                raise SourceError("twitter", f"request failed: {exc}") from exc

        if resp.status_code != 200:
            log.error("Twitter API error: %d %s", resp.status_code, resp.text[:200])
            raise SourceError("twitter", f"Twitter API error: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise SourceError("twitter", "invalid JSON in response") from exc

        users = {u["id"]: u for u in data.get("includes", {}).get("users", []) if "id" in u}
        tweets: list[dict] = []
        for tweet in data.get("data") or []:
            user = users.get(tweet.get("author_id"), {})
            tweets.append(
                {
                    **tweet,
                    "author_username": user.get("username"),
                    "author_name": user.get("name"),
                }
            )

        log.info("twitter '%s': %d tweets", query, len(tweets))
        return SourceSearchResult(source="twitter", items=tweets, meta=data.get("meta", {}))

    def _fetch_nitter(self, query: str) -> list[dict]:
        """Try each Nitter instance until one works."""
        last_error: Exception | None = None
        for instance in self._instances:
            try:
                return self._scrape_nitter(instance, query)
            except Exception as e:
                last_error = e
                log.debug("Nitter instance %s failed for '%s': %s", instance, query, e)
                continue
        raise SourceError("twitter", f"All Nitter instances failed for '{query}': {last_error}")

    def _scrape_nitter(self, instance: str, query: str) -> list[dict]:
        url = f"{instance.rstrip('/')}/search?f=tweets&q={quote_plus(query)}"
        fetcher = Fetcher()
        page = fetcher.get(url, stealthy_headers=True, follow_redirects=True)

        if page.status != 200:
            raise ConnectionError(f"HTTP {page.status} from {instance}")

        tweets: list[dict] = []
        for tweet_el in page.css(".timeline-item"):
            username_el = tweet_el.css(".username")
            username = username_el[0].text.strip().lstrip("@") if username_el else ""

            content_el = tweet_el.css(".tweet-content")
            content = content_el[0].text.strip() if content_el else ""
            if not content:
                continue

            link_el = tweet_el.css(".tweet-link")
            tweet_path = link_el[0].attrib.get("href", "") if link_el else ""
            status_id = tweet_path.rsplit("/", 1)[-1].split("#")[0] if "/status/" in tweet_path else ""
            tweet_id = status_id or hashlib.md5(
                (tweet_path or f"{username}:{content[:80]}").encode()
            ).hexdigest()[:16]

            counts: list[int] = []
            for stat in tweet_el.css(".tweet-stat .icon-container"):
                txt = stat.text.strip().replace(",", "")
                counts.append(int(txt) if txt.isdigit() else 0)
            metrics = {key: counts[i] if i < len(counts) else 0 for i, key in enumerate(_NITTER_STAT_KEYS)}

            tweets.append(
                {
                    "id": tweet_id,
                    "text": content,
                    "author_username": username or None,
                    "author_name": username or None,
                    "created_at": datetime.now(timezone.utc).isoformat(),
                    "public_metrics": metrics,
                }
            )

        log.info("nitter %s '%s': %d tweets", instance, query, len(tweets))
        return tweets
