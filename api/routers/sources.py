from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request

from api.schemas import SourceSearchBody, UploadBody
from core.exceptions import SourceError
from pipeline.normalizer import normalize_parsed_file, normalize_reddit_posts, normalize_tweets
from sources.files import parse_file

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sources", tags=["sources"])


def _adapter(request: Request, name: str):
    adapter = request.app.state.sources.get(name)
    if adapter is None:
        raise HTTPException(503, f"Source not configured: {name}")
    return adapter


@router.post("/reddit/search")
async def reddit_search(body: SourceSearchBody, request: Request):
    adapter = _adapter(request, "reddit")
    try:
        result = await adapter.search(body.query, subreddit=body.subreddit, limit=body.limit, time=body.time)
    except SourceError as exc:
        log.warning("Reddit search failed: %s", exc)
        raise HTTPException(502, str(exc)) from exc

    items = normalize_reddit_posts(result.items)
    return {"items": [i.to_dict() for i in items], "meta": result.meta}


@router.post("/twitter/search")
async def twitter_search(body: SourceSearchBody, request: Request):
    adapter = _adapter(request, "twitter")
    try:
        result = await adapter.search(body.query, limit=body.limit)
    except SourceError as exc:
        log.warning("Twitter search failed: %s", exc)
        raise HTTPException(502, str(exc)) from exc

    items = normalize_tweets(result.items)
    return {"items": [i.to_dict() for i in items], "meta": result.meta}


@router.post("/upload")
async def upload(body: UploadBody):
    if not body.content.strip():
        raise HTTPException(400, "No content provided")

    parsed = parse_file(body.content, body.file_name, body.mime_type)
    if not parsed.success:
        raise HTTPException(400, parsed.error or "Failed to parse file")

    items = normalize_parsed_file(parsed)
    return {
        "items": [i.to_dict() for i in items],
        "file_name": parsed.file_name,
        "file_type": parsed.file_type,
        "total_rows": parsed.total_rows,
    }
