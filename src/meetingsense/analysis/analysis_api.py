"""HTTP routes for meeting analysis."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .analysis_errors import MissingCredentialError
from .analysis_service import AnalysisService
from .progress import ProgressChannel, QueueTransport

router = APIRouter(prefix="/api/meetings", tags=["analysis"])
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class AnalyzeRequest(BaseModel):
    model: str | None = None


def get_analysis_service(request: Request) -> AnalysisService:
    """Fetch analysis service from application state."""
    try:
        return request.app.state.analysis_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover - defensive path
        raise RuntimeError("AnalysisService is not configured") from exc


def _task_registry(request: Request) -> set[asyncio.Task]:
    tasks = getattr(request.app.state, "analysis_tasks", None)
    if tasks is None:
        tasks = set()
        request.app.state.analysis_tasks = tasks
    return tasks


@router.post("/{meeting_id}/analyze")
async def analyze_meeting(
    meeting_id: str,
    request: Request,
    payload: AnalyzeRequest | None = Body(default=None),
    service: AnalysisService = Depends(get_analysis_service),
) -> StreamingResponse:
    """Start analysis in the background and stream its progress as SSE."""
    try:
        job = service.prepare_job(meeting_id, payload.model if payload else None)
    except KeyError as exc:
        logger.info("analysis.request.meeting_not_found", extra={"meeting_id": meeting_id})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"status": "error", "failure_reason": "meeting_not_found"},
        ) from exc
    except MissingCredentialError as exc:
        logger.warning("analysis.request.api_key_missing", extra={"meeting_id": meeting_id})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "status": "error",
                "failure_reason": "api_key_missing",
                "message": str(exc),
            },
        ) from exc

    transport = QueueTransport()
    channel = ProgressChannel(transport, job_id=job.job_id)

    # The job outlives the HTTP response if the client disconnects.
    tasks = _task_registry(request)
    task = asyncio.create_task(service.run(job, channel), name=f"analysis-{job.job_id}")
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    logger.info(
        "analysis.request.accepted",
        extra={"meeting_id": meeting_id, "model": job.model},
    )

    return StreamingResponse(
        transport.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
