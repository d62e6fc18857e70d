"""Collapse duplicate feedback items drawn from overlapping queries and sources.

Two items are duplicates when they share ``(source, source_id)`` or when
their normalised content is near-identical. Near-identity is the highest of:

* exact equality of the normalised text (1.0),
* containment of the shorter text in the longer one, scored by length ratio,
* Jaccard similarity of word 3-shingles (word sets for very short texts).

Pairs scoring below the threshold are kept apart: a missed duplicate is
cheaper than silently dropping real feedback.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from config.settings import settings
from core.models import FeedbackItem

SHINGLE_SIZE = 3

_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")


def normalize_content(text: str) -> str:
    text = _PUNCT_RE.sub("", text.casefold())
    return _SPACE_RE.sub(" ", text).strip()


def _shingles(words: list[str]) -> set[tuple[str, ...]]:
    if len(words) < SHINGLE_SIZE:
        return {(w,) for w in words}
    return {tuple(words[i : i + SHINGLE_SIZE]) for i in range(len(words) - SHINGLE_SIZE + 1)}


def _similarity_normalized(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    best = 0.0
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if shorter in longer:
        best = len(shorter) / len(longer)

    sa, sb = _shingles(a.split(" ")), _shingles(b.split(" "))
    union = sa | sb
    if union:
        best = max(best, len(sa & sb) / len(union))
    return best


def content_similarity(a: str, b: str) -> float:
    return _similarity_normalized(normalize_content(a), normalize_content(b))


def _same_record(a: FeedbackItem, b: FeedbackItem) -> bool:
    return a.source == b.source and a.source_id == b.source_id


def is_duplicate(a: FeedbackItem, b: FeedbackItem, threshold: float | None = None) -> bool:
    limit = settings.DEDUP_SIMILARITY_THRESHOLD if threshold is None else threshold
    return _same_record(a, b) or content_similarity(a.content, b.content) >= limit


def _preference(item: FeedbackItem, position: int) -> tuple:
    return (-item.engagement_score, item.fetched_at, position)


def deduplicate(
    items: Sequence[FeedbackItem],
    known: Iterable[FeedbackItem] | None = None,
    threshold: float | None = None,
) -> list[FeedbackItem]:
    """Return at most one representative per duplicate group.

    Items duplicating any ``known`` item (e.g. previously stored feedback)
    are dropped first. Records sharing ``(source, source_id)`` collapse to
    one. The rest are visited in preference order (highest engagement
    score, then earliest ``fetched_at``, then earliest input position); an
    item is kept unless it is near-identical to an item already kept. Each
    dropped item therefore duplicates its representative directly, and no
    two survivors are duplicates of each other. Output keeps input order.
    """
    limit = settings.DEDUP_SIMILARITY_THRESHOLD if threshold is None else threshold

    known_items = list(known or [])
    if known_items:
        known_keys = {(k.source, k.source_id) for k in known_items}
        known_texts = [normalize_content(k.content) for k in known_items]
        items = [
            item
            for item in items
            if (item.source, item.source_id) not in known_keys
            and not any(
                _similarity_normalized(normalize_content(item.content), text) >= limit
                for text in known_texts
            )
        ]

    order = sorted(range(len(items)), key=lambda i: _preference(items[i], i))
    texts = [normalize_content(item.content) for item in items]

    seen_keys: set[tuple[str, str]] = set()
    kept: list[int] = []
    for i in order:
        key = (items[i].source, items[i].source_id)
        if key in seen_keys:
            continue
        seen_keys.add(key)
        if any(_similarity_normalized(texts[i], texts[k]) >= limit for k in kept):
            continue
        kept.append(i)

    return [items[i] for i in sorted(kept)]
