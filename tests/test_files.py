from __future__ import annotations

import json

from sources.files import parse_csv, parse_file, parse_json, parse_txt


def test_parse_csv_detects_columns():
    content = 'Date,Customer,Comment\n2024-04-01,dan,"Export fails, every time"\n2024-04-02,erin,\n2024-04-03,fay,Love it\n'

    result = parse_csv(content, "survey.csv")

    assert result.success
    assert result.total_rows == 2
    first = result.items[0]
    assert first.content == "Export fails, every time"
    assert first.author == "dan"
    assert first.date == "2024-04-01"
    assert first.source == "file:survey.csv"


def test_parse_csv_without_content_column_keeps_row_text():
    result = parse_csv("a,b\nfoo,bar\n", "x.csv")

    assert result.items[0].content == "foo bar"


def test_parse_csv_requires_data_rows():
    result = parse_csv("feedback\n", "empty.csv")

    assert not result.success
    assert result.error == "CSV must have header and data rows"


def test_parse_json_array_and_object():
    records = [{"id": 7, "text": "Slow search", "user": "gil"}, {"rating": 5}, {"feedback": "Great support"}]

    array = parse_json(json.dumps(records), "export.json")
    single = parse_json(json.dumps({"message": "Need SSO"}), "one.json")

    assert [i.content for i in array.items] == ["Slow search", "Great support"]
    assert array.items[0].id == "7"
    assert array.items[0].author == "gil"
    assert [i.content for i in single.items] == ["Need SSO"]


def test_parse_json_invalid():
    result = parse_json("{not json", "bad.json")

    assert not result.success
    assert result.error.startswith("Invalid JSON")


def test_parse_txt_splits_paragraphs_or_lines():
    assert len(parse_txt("first idea\nstill first\n\nsecond idea", "n.txt").items) == 2
    assert len(parse_txt("one\ntwo\nthree", "n.txt").items) == 3


def test_parse_file_detects_format():
    assert parse_file("feedback\nhello", "a.csv").file_type == "csv"
    assert parse_file('[{"text": "hi"}]', "upload").file_type == "json"
    assert parse_file("text,author\nhi,dan", "upload", "application/octet-stream").file_type == "csv"
    assert parse_file("plain notes", "notes").file_type == "txt"
