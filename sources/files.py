"""Parsers for uploaded feedback files (CSV, JSON, plain text)."""

from __future__ import annotations

import csv
import io
import json
import logging
from typing import Any

from core.models import ParsedFeedback, ParseResult

log = logging.getLogger(__name__)

CONTENT_FIELDS = ("feedback", "comment", "text", "content", "message", "description", "review", "body")
AUTHOR_FIELDS = ("author", "user", "name", "customer", "email", "username")
DATE_FIELDS = ("date", "created", "timestamp", "time", "created_at", "submitted")
SOURCE_FIELDS = ("source", "channel", "platform", "origin")


def _find_column(headers: list[str], candidates: tuple[str, ...]) -> int:
    for i, header in enumerate(headers):
        if header in candidates:
            return i
    return -1


def _cell(row: list[str], index: int) -> str | None:
    if index == -1 or index >= len(row):
        return None
    value = row[index].strip()
    return value or None


def parse_csv(content: str, file_name: str) -> ParseResult:
    rows = [row for row in csv.reader(io.StringIO(content.strip())) if any(c.strip() for c in row)]
    if len(rows) < 2:
        return ParseResult(
            success=False,
            items=[],
            file_name=file_name,
            file_type="csv",
            total_rows=0,
            error="CSV must have header and data rows",
        )

    headers = [h.strip().lower().strip("'\"") for h in rows[0]]
    content_col = _find_column(headers, CONTENT_FIELDS)
    author_col = _find_column(headers, AUTHOR_FIELDS)
    date_col = _find_column(headers, DATE_FIELDS)
    source_col = _find_column(headers, SOURCE_FIELDS)

    items: list[ParsedFeedback] = []
    for i, row in enumerate(rows[1:], start=1):
        if content_col == -1:
            # no recognised content column: keep the whole row
            text = " ".join(c.strip() for c in row if c.strip())
        else:
            text = _cell(row, content_col) or ""
        if not text:
            continue
        items.append(
            ParsedFeedback(
                id=f"csv-{i}",
                content=text,
                source=_cell(row, source_col) or f"file:{file_name}",
                author=_cell(row, author_col),
                date=_cell(row, date_col),
            )
        )

    return ParseResult(success=True, items=items, file_name=file_name, file_type="csv", total_rows=len(items))


def _json_item(record: Any, index: int, file_name: str) -> ParsedFeedback | None:
    if not isinstance(record, dict):
        return None
    field = next((f for f in CONTENT_FIELDS if record.get(f)), None)
    if field is None or not isinstance(record[field], str):
        return None
    return ParsedFeedback(
        id=str(record.get("id") or f"json-{index}"),
        content=record[field],
        source=record.get("source") or record.get("channel") or f"file:{file_name}",
        author=record.get("author") or record.get("user") or record.get("name"),
        date=record.get("date") or record.get("created") or record.get("timestamp"),
        metadata=record,
    )


def parse_json(content: str, file_name: str) -> ParseResult:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        return ParseResult(
            success=False,
            items=[],
            file_name=file_name,
            file_type="json",
            total_rows=0,
            error=f"Invalid JSON: {exc.msg}",
        )

    records = data if isinstance(data, list) else [data]
    items = [
        parsed
        for i, record in enumerate(records)
        if (parsed := _json_item(record, i, file_name)) is not None
    ]
    return ParseResult(success=True, items=items, file_name=file_name, file_type="json", total_rows=len(items))


def parse_txt(content: str, file_name: str) -> ParseResult:
    separator = "\n\n" if "\n\n" in content else "\n"
    blocks = [block.strip() for block in content.split(separator) if block.strip()]
    items = [
        ParsedFeedback(id=f"txt-{i}", content=block, source=f"file:{file_name}")
        for i, block in enumerate(blocks)
    ]
    return ParseResult(success=True, items=items, file_name=file_name, file_type="txt", total_rows=len(items))


def parse_file(content: str, file_name: str, mime_type: str | None = None) -> ParseResult:
    """Parse an uploaded file, picking the format by extension, MIME type, then content."""
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    mime = mime_type or ""

    if ext == "csv" or "csv" in mime:
        return parse_csv(content, file_name)
    if ext == "json" or "json" in mime:
        return parse_json(content, file_name)
    if ext == "txt" or "text/plain" in mime:
        return parse_txt(content, file_name)

    trimmed = content.strip()
    if trimmed.startswith(("[", "{")):
        return parse_json(content, file_name)
    if "," in trimmed.split("\n", 1)[0]:
        return parse_csv(content, file_name)

    log.debug("No format detected for %s, parsing as plain text", file_name)
    return parse_txt(content, file_name)
