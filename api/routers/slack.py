"""Slack Events API webhook.

Slack retries deliveries it thinks failed, so each ``event_id`` is only
processed once.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from config.settings import settings, split_csv
from core.exceptions import ClassificationError
from pipeline.classifier import get_classifier
from pipeline.normalizer import normalize_slack_message

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/integrations/slack", tags=["slack"])

MIN_MESSAGE_LENGTH = 10


def skip_reason(event: dict[str, Any]) -> str | None:
    if event.get("type") != "message":
        return "not a message"
    if event.get("subtype") or event.get("bot_id"):
        return "bot or system message"
    if event.get("thread_ts") and event.get("thread_ts") != event.get("ts"):
        return "thread reply"
    if len((event.get("text") or "").strip()) < MIN_MESSAGE_LENGTH:
        return "too short"
    channels = split_csv(settings.SLACK_FEEDBACK_CHANNELS)
    if channels and event.get("channel") not in channels:
        return "not a feedback channel"
    return None


@router.post("/webhook")
async def slack_webhook(payload: dict[str, Any], request: Request):
    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge")}

    token = settings.SLACK_VERIFICATION_TOKEN
    if token and payload.get("token") != token:
        raise HTTPException(401, "Invalid verification token")

    if payload.get("type") != "event_callback":
        return {"ok": True, "skipped": "unsupported payload"}

    event_id = payload.get("event_id")
    if event_id and request.app.state.slack_events.seen(event_id):
        log.debug("Duplicate Slack event %s", event_id)
        return {"ok": True, "duplicate": True}

    event = payload.get("event") or {}
    reason = skip_reason(event)
    if reason:
        return {"ok": True, "skipped": reason}

    try:
        item = normalize_slack_message(event)
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        log.warning("Skipping malformed Slack event %s: %s", event_id, exc)
        return {"ok": True, "skipped": "malformed"}
    if item is None:
        return {"ok": True, "skipped": "empty"}

    classification = None
    try:
        classification = await get_classifier().classify(item)
    except ClassificationError as exc:
        log.warning("Slack message %s left unclassified: %s", item.id, exc)

    await request.app.state.broadcaster.broadcast(
        {
            "event": "slack_feedback",
            "item": item.to_dict(),
            "classification": classification.to_dict() if classification else None,
        }
    )
    log.info("Accepted Slack feedback %s", item.id)
    return {"ok": True, "item_id": item.id}
