"""Derive persisted fields from the model's markdown output."""

from __future__ import annotations

import json
import re
from typing import Any

from .analysis_models import AnalysisResult

DEFAULT_TITLE = "Untitled Meeting"

_EXECUTIVE_SUMMARY = re.compile(r"# 1\. Executive Summary[\s\S]*?\n([\s\S]*?)(?=\n# 2)")
_METADATA_BLOCK = re.compile(r"```json\s*([\s\S]*?)```")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_result(raw_markdown: str) -> AnalysisResult:
    summary_match = _EXECUTIVE_SUMMARY.search(raw_markdown)
    executive_summary = summary_match.group(1).strip() if summary_match else ""

    metadata_match = _METADATA_BLOCK.search(raw_markdown)
    metadata_json = metadata_match.group(1).strip() if metadata_match else "{}"

    title: str | None = None
    duration: int | None = None
    try:
        metadata = json.loads(metadata_json)
    except ValueError:
        metadata = None
    if isinstance(metadata, dict):
        candidate = metadata.get("title")
        if isinstance(candidate, str) and candidate.strip() and candidate != DEFAULT_TITLE:
            title = candidate.strip()
        duration = _parse_minutes(metadata.get("duration_minutes"))

    return AnalysisResult(
        raw_markdown=raw_markdown,
        executive_summary=executive_summary,
        metadata_json=metadata_json,
        title=title,
        duration_minutes=duration,
    )


def _parse_minutes(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) or None
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1)) or None
