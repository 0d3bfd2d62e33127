"""Client for the analysis progress stream."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

import httpx

from .analysis_errors import AnalysisStreamError

logger = logging.getLogger(__name__)

STREAM_TIMEOUT_SECONDS = 10 * 60

ProgressCallback = Callable[[str, str | None], None]


async def analyze_with_server(
    http: httpx.AsyncClient,
    meeting_id: str,
    model: str | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    timeout_seconds: float = STREAM_TIMEOUT_SECONDS,
) -> str:
    """Start analysis for ``meeting_id`` and return the result markdown.

    Raises :class:`AnalysisStreamError` when the server rejects the request,
    reports a failed job, or closes the stream without a terminal event.
    ``timeout_seconds`` bounds the whole exchange, streaming included.
    """

    try:
        return await asyncio.wait_for(
            _consume(http, meeting_id, model, on_progress),
            timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        raise AnalysisStreamError(
            f"Analysis timed out after {timeout_seconds / 60:.0f} minutes"
        ) from exc


async def _consume(
    http: httpx.AsyncClient,
    meeting_id: str,
    model: str | None,
    on_progress: ProgressCallback | None,
) -> str:
    body = {"model": model} if model else {}
    async with http.stream(
        "POST",
        f"/api/meetings/{meeting_id}/analyze",
        json=body,
        timeout=httpx.Timeout(STREAM_TIMEOUT_SECONDS, connect=30.0),
    ) as response:
        if response.status_code >= 400:
            await response.aread()
            raise AnalysisStreamError(_error_message(response))

        async for line in response.aiter_lines():
            event = parse_event_line(line)
            if event is None:
                continue
            if event.get("done"):
                if event.get("error"):
                    raise AnalysisStreamError(str(event["error"]))
                if event.get("result"):
                    return str(event["result"])
                raise AnalysisStreamError("Analysis stream ended without a result.")
            if on_progress is not None:
                on_progress(str(event.get("stage") or ""), event.get("detail"))

    raise AnalysisStreamError("Analysis stream ended unexpectedly without a result.")


def parse_event_line(line: str) -> dict[str, Any] | None:
    """Decode one ``data:`` line; comments, blanks and bad JSON yield ``None``."""
    if not line.startswith("data:"):
        return None
    try:
        event = json.loads(line[len("data:"):].strip())
    except ValueError:
        logger.debug("analysis.stream.malformed_line", extra={"line": line[:200]})
        return None
    return event if isinstance(event, dict) else None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(data, dict):
        if data.get("error"):
            return str(data["error"])
        detail = data.get("detail")
        if isinstance(detail, dict):
            return str(detail.get("message") or detail.get("failure_reason") or detail)
        if detail:
            return str(detail)
    return f"HTTP {response.status_code}"
