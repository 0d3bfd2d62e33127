from __future__ import annotations

import json

import pytest

from meetingsense.analysis.result_parser import parse_result

REPORT = """# 1. Executive Summary
The team agreed to ship the beta on Friday.
Marketing owns the announcement.

# 2. Action Items
- Alice: draft release notes

# 9. Metadata
```json
{"title": "Beta launch sync", "duration_minutes": "45 min", "participants": 4}
```
"""


def test_extracts_summary_title_and_duration() -> None:
    result = parse_result(REPORT)

    assert result.raw_markdown == REPORT
    assert result.executive_summary == (
        "The team agreed to ship the beta on Friday.\nMarketing owns the announcement."
    )
    assert result.title == "Beta launch sync"
    assert result.duration_minutes == 45
    assert '"participants": 4' in result.metadata_json


def test_missing_sections_use_defaults() -> None:
    result = parse_result("Gemini returned something unexpected.")

    assert result.executive_summary == ""
    assert result.metadata_json == "{}"
    assert result.title is None
    assert result.duration_minutes is None


def test_malformed_metadata_is_kept_verbatim() -> None:
    result = parse_result("```json\n{not json\n```")

    assert result.metadata_json == "{not json"
    assert result.title is None


@pytest.mark.parametrize(
    ("title", "expected"),
    [("Untitled Meeting", None), ("   ", None), (42, None), ("  Roadmap  ", "Roadmap")],
)
def test_placeholder_titles_are_ignored(title, expected) -> None:
    markdown = f"```json\n{json.dumps({'title': title})}\n```"

    assert parse_result(markdown).title == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(30, 30), (12.7, 12), ("90", 90), ("about an hour", None), (0, None), (True, None), (None, None)],
)
def test_duration_parsing(value, expected) -> None:
    markdown = f"```json\n{json.dumps({'duration_minutes': value})}\n```"

    assert parse_result(markdown).duration_minutes == expected
