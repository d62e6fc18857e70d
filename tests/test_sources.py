"""Source adapters against mocked HTTP transports."""

from __future__ import annotations

import httpx
import pytest

from core.exceptions import SourceError
from sources.reddit import RedditSource
from sources.twitter import TwitterSource


def _reddit_listing(*posts: dict) -> dict:
    return {"data": {"after": "t3_next", "children": [{"kind": "t3", "data": p} for p in posts]}}


async def test_reddit_search_builds_subreddit_request():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=_reddit_listing(
                {"id": "a1", "title": "Export broken", "selftext": "", "author": "bob", "score": 5,
                 "num_comments": 1, "created_utc": 1714564800, "permalink": "/r/SaaS/comments/a1/"},
            ),
        )

    source = RedditSource(transport=httpx.MockTransport(handler), delay_seconds=0)
    result = await source.search("acme", subreddit="SaaS", limit=5, time="month")

    request = seen[0]
    assert request.url.path == "/r/SaaS/search.json"
    assert request.url.params["q"] == "acme"
    assert request.url.params["t"] == "month"
    assert request.url.params["limit"] == "5"
    assert request.url.params["restrict_sr"] == "1"
    assert "User-Agent" in request.headers

    assert result.source == "reddit"
    assert result.meta == {"after": "t3_next", "count": 1}
    assert result.items[0]["permalink"] == "https://www.reddit.com/r/SaaS/comments/a1/"


async def test_reddit_search_without_subreddit_is_sitewide():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_reddit_listing())

    await RedditSource(transport=httpx.MockTransport(handler), delay_seconds=0).search("acme")

    assert seen[0].url.path == "/search.json"
    assert seen[0].url.params["restrict_sr"] == "0"


@pytest.mark.parametrize(
    "response",
    [httpx.Response(429, text="slow down"), httpx.Response(200, text="<html>not json</html>")],
)
async def test_reddit_bad_responses_raise_source_error(response):
    source = RedditSource(transport=httpx.MockTransport(lambda request: response), delay_seconds=0)

    with pytest.raises(SourceError) as exc_info:
        await source.search("acme", subreddit="SaaS")

    assert exc_info.value.source == "reddit"


async def test_reddit_transport_error_raises_source_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    source = RedditSource(transport=httpx.MockTransport(handler), delay_seconds=0)

    with pytest.raises(SourceError):
        await source.search("acme")


async def test_twitter_api_search_merges_authors():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "data": [{"id": "1", "text": "Export is broken", "author_id": "u1", "public_metrics": {"like_count": 3}}],
                "includes": {"users": [{"id": "u1", "username": "carol", "name": "Carol"}]},
                "meta": {"result_count": 1},
            },
        )

    source = TwitterSource(bearer_token="token", transport=httpx.MockTransport(handler), delay_seconds=0)
    result = await source.search("acme", limit=5)

    request = seen[0]
    assert request.headers["Authorization"] == "Bearer token"
    assert request.url.params["query"] == "acme -is:retweet lang:en"
    assert request.url.params["max_results"] == "10"
    assert result.items[0]["author_username"] == "carol"
    assert result.items[0]["author_name"] == "Carol"
    assert result.meta == {"result_count": 1}


async def test_twitter_api_error_raises_source_error():
    source = TwitterSource(
        bearer_token="token",
        transport=httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized")),
        delay_seconds=0,
    )

    with pytest.raises(SourceError):
        await source.search("acme")


async def test_twitter_without_credentials_returns_empty():
    source = TwitterSource(bearer_token="", nitter_instances=[], delay_seconds=0)

    result = await source.search("acme")

    assert result.items == []
