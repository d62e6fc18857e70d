"""Map source-specific raw records onto the common FeedbackItem schema."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from core.models import FeedbackItem, ParsedFeedback, ParseResult

log = logging.getLogger(__name__)

# Reddit: 500 upvotes / 100 comments count as high engagement
REDDIT_SCORE_CEILING = 500
REDDIT_COMMENT_CEILING = 100
REDDIT_SCORE_WEIGHT = 60
REDDIT_COMMENT_WEIGHT = 40

# Twitter: weighted reactions, 1000 counts as very high engagement
TWEET_WEIGHTS = {
    "like_count": 1.0,
    "retweet_count": 2.0,
    "reply_count": 1.5,
    "quote_count": 2.5,
}
TWEET_ENGAGEMENT_CEILING = 1000

_MALFORMED = (KeyError, TypeError, ValueError, AttributeError, OverflowError)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp_score(value: float) -> int:
    return max(0, min(100, _round_half_up(value)))


def make_feedback_id(source: str, source_id: str) -> str:
    return f"fb_{source}_{source_id}"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _count(value: Any) -> int:
    return max(0, int(value or 0))


# ── engagement ───────────────────────────────────────────────────────


def reddit_engagement(score: int, num_comments: int) -> int:
    score_ratio = min(max(score, 0) / REDDIT_SCORE_CEILING, 1)
    comment_ratio = min(max(num_comments, 0) / REDDIT_COMMENT_CEILING, 1)
    return _clamp_score(score_ratio * REDDIT_SCORE_WEIGHT + comment_ratio * REDDIT_COMMENT_WEIGHT)


def tweet_engagement(public_metrics: dict[str, Any] | None) -> int:
    if not public_metrics:
        return 0
    weighted = sum(_count(public_metrics.get(k)) * w for k, w in TWEET_WEIGHTS.items())
    return min(_round_half_up(weighted / TWEET_ENGAGEMENT_CEILING * 100), 100)


# ── single records ───────────────────────────────────────────────────


def normalize_reddit_post(post: dict[str, Any], fetched_at: datetime | None = None) -> FeedbackItem | None:
    """Return None for posts with neither body nor title."""
    source_id = str(post["id"])
    if not source_id or source_id == "None":
        raise ValueError("reddit post without id")

    title = (post.get("title") or "").strip()
    content = (post.get("selftext") or "").strip() or title
    if not content:
        return None

    author = post.get("author") or "[deleted]"
    created = post.get("created_utc")
    num_comments = _count(post.get("num_comments"))
    return FeedbackItem(
        id=make_feedback_id("reddit", source_id),
        source="reddit",
        source_id=source_id,
        source_url=post.get("permalink") or "",
        title=title or None,
        content=content,
        author=author,
        author_handle=f"u/{author}",
        created_at=_parse_timestamp(created) if created is not None else _now(),
        fetched_at=fetched_at or _now(),
        engagement_score=reddit_engagement(int(post.get("score") or 0), num_comments),
        metadata={
            "subreddit": post.get("subreddit"),
            "reply_count": num_comments,
        },
    )


def normalize_tweet(tweet: dict[str, Any], fetched_at: datetime | None = None) -> FeedbackItem | None:
    source_id = str(tweet["id"])
    if not source_id or source_id == "None":
        raise ValueError("tweet without id")
    content = (tweet.get("text") or "").strip()
    if not content:
        return None

    username = tweet.get("author_username")
    metrics = tweet.get("public_metrics") or {}
    entities = tweet.get("entities") or {}
    created = tweet.get("created_at")
    return FeedbackItem(
        id=make_feedback_id("twitter", source_id),
        source="twitter",
        source_id=source_id,
        source_url=f"https://twitter.com/{username or 'i'}/status/{source_id}",
        content=content,
        author=tweet.get("author_name") or username or "Unknown",
        author_handle=f"@{username}" if username else None,
        created_at=_parse_timestamp(created) if created else _now(),
        fetched_at=fetched_at or _now(),
        engagement_score=tweet_engagement(metrics),
        metadata={
            "hashtags": [h["tag"] for h in entities.get("hashtags", [])],
            "mentions": [m["username"] for m in entities.get("mentions", [])],
            "reply_count": metrics.get("reply_count"),
            "retweet_count": metrics.get("retweet_count"),
            "like_count": metrics.get("like_count"),
            "is_retweet": False,  # retweets are excluded at search time
            "is_reply": content.startswith("@"),
        },
    )


def normalize_parsed_feedback(
    parsed: ParsedFeedback, file_name: str, fetched_at: datetime | None = None
) -> FeedbackItem | None:
    content = parsed.content.strip()
    if not content:
        return None

    fetched = fetched_at or _now()
    source_id = f"{file_name}:{parsed.id}"
    return FeedbackItem(
        id=make_feedback_id("file", source_id),
        source="file",
        source_id=source_id,
        source_url="",
        content=content,
        author=parsed.author or "Unknown",
        created_at=_parse_timestamp(parsed.date) if parsed.date else fetched,
        fetched_at=fetched,
        engagement_score=0,
        metadata={"file_name": file_name, "original_source": parsed.source},
    )


def normalize_slack_message(event: dict[str, Any], fetched_at: datetime | None = None) -> FeedbackItem | None:
    content = (event.get("text") or "").strip()
    if not content:
        return None

    channel = event.get("channel") or ""
    ts = str(event["ts"])
    user = event.get("user") or "unknown"
    return FeedbackItem(
        id=make_feedback_id("slack", f"{channel}:{ts}"),
        source="slack",
        source_id=f"{channel}:{ts}",
        source_url="",
        content=content,
        author=user,
        author_handle=f"<@{user}>",
        created_at=_parse_timestamp(float(ts)),
        fetched_at=fetched_at or _now(),
        engagement_score=0,
        metadata={"channel": channel},
    )


# ── batches ──────────────────────────────────────────────────────────


def normalize_reddit_posts(posts: Iterable[dict[str, Any]], fetched_at: datetime | None = None) -> list[FeedbackItem]:
    items: list[FeedbackItem] = []
    for post in posts:
        try:
            item = normalize_reddit_post(post, fetched_at)
        except _MALFORMED as exc:
            log.warning("Skipping malformed reddit post: %s", exc)
            continue
        if item is None:
            log.debug("Skipping reddit post %s without content", post.get("id"))
            continue
        items.append(item)
    return items


def normalize_tweets(tweets: Iterable[dict[str, Any]], fetched_at: datetime | None = None) -> list[FeedbackItem]:
    items: list[FeedbackItem] = []
    for tweet in tweets:
        try:
            item = normalize_tweet(tweet, fetched_at)
        except _MALFORMED as exc:
            log.warning("Skipping malformed tweet: %s", exc)
            continue
        if item is None:
            log.debug("Skipping empty tweet %s", tweet.get("id"))
            continue
        items.append(item)
    return items


def normalize_parsed_file(result: ParseResult, fetched_at: datetime | None = None) -> list[FeedbackItem]:
    items: list[FeedbackItem] = []
    for parsed in result.items:
        try:
            item = normalize_parsed_feedback(parsed, result.file_name, fetched_at)
        except _MALFORMED as exc:
            log.warning("Skipping malformed row %s in %s: %s", parsed.id, result.file_name, exc)
            continue
        if item is not None:
            items.append(item)
    return items
