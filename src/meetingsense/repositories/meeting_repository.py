"""Persistence for meetings, their stored inputs and analysis results."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy.orm import Session

from ..analysis.analysis_models import AnalysisResult, AudioInput, JobStatus, StoredRecording
from ..db.db_models import MeetingInputModel, MeetingModel, MeetingResultModel

DEFAULT_AUDIO_MIME = "audio/webm"


@dataclass(slots=True)
class MeetingRecord:
    """Lightweight view of a meeting row."""

    meeting_id: str
    title: str
    status: str
    error_message: str | None
    duration_minutes: int | None


@dataclass(slots=True)
class MeetingResultRecord:
    meeting_id: str
    raw_markdown: str
    executive_summary: str
    metadata_json: str


@dataclass(slots=True)
class InputSpec:
    """Stored input attached to a new meeting."""

    input_type: str
    file_path: str | None = None
    mime_type: str | None = None
    text_content: str | None = None


class MeetingRepository:
    """Recording Store and Job Store backed by the meetings tables."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def create_meeting(
        self,
        *,
        title: str = "Untitled Meeting",
        inputs: Iterable[InputSpec] = (),
        meeting_id: str | None = None,
    ) -> str:
        meeting_id = meeting_id or str(uuid.uuid4())
        with self._session_factory() as session:
            meeting = MeetingModel(id=meeting_id, title=title, status=JobStatus.PENDING.value)
            for spec in inputs:
                path = Path(spec.file_path) if spec.file_path else None
                meeting.inputs.append(
                    MeetingInputModel(
                        input_type=spec.input_type,
                        file_path=spec.file_path,
                        file_name=path.name if path else None,
                        file_size=path.stat().st_size if path and path.exists() else None,
                        mime_type=spec.mime_type,
                        text_content=spec.text_content,
                    )
                )
            session.add(meeting)
            session.commit()
        return meeting_id

    def get_meeting(self, meeting_id: str) -> MeetingRecord | None:
        with self._session_factory() as session:
            model = session.get(MeetingModel, meeting_id)
            if model is None:
                return None
            return _to_record(model)

    def get_result(self, meeting_id: str) -> MeetingResultRecord | None:
        with self._session_factory() as session:
            model = session.get(MeetingResultModel, meeting_id)
            if model is None:
                return None
            return MeetingResultRecord(
                meeting_id=model.meeting_id,
                raw_markdown=model.raw_markdown,
                executive_summary=model.executive_summary,
                metadata_json=model.metadata_json,
            )

    def load_recording(self, meeting_id: str) -> StoredRecording:
        """Return the first audio/video input, all images and the first text input."""
        with self._session_factory() as session:
            model = session.get(MeetingModel, meeting_id)
            if model is None:
                raise KeyError(f"Meeting '{meeting_id}' not found")

            audio: AudioInput | None = None
            images: list[Path] = []
            context_text: str | None = None
            for item in model.inputs:
                if item.input_type in ("audio", "video") and audio is None and item.file_path:
                    audio = AudioInput(Path(item.file_path), item.mime_type or DEFAULT_AUDIO_MIME)
                elif item.input_type == "image" and item.file_path:
                    images.append(Path(item.file_path))
                elif item.input_type == "text" and context_text is None:
                    context_text = item.text_content or ""

            return StoredRecording(
                meeting_id=model.id,
                title=model.title,
                audio=audio,
                image_paths=tuple(images),
                context_text=context_text or "",
            )

    def set_status(
        self, meeting_id: str, status: JobStatus, error_message: str | None = None
    ) -> None:
        with self._session_factory() as session:
            model = session.get(MeetingModel, meeting_id)
            if model is None:
                raise KeyError(f"Meeting '{meeting_id}' not found")
            model.status = status.value
            model.error_message = error_message
            model.updated_at = datetime.utcnow()
            session.commit()

    def save_result(self, meeting_id: str, result: AnalysisResult) -> None:
        """Store the result and mark the meeting completed in one transaction."""
        with self._session_factory() as session:
            model = session.get(MeetingModel, meeting_id)
            if model is None:
                raise KeyError(f"Meeting '{meeting_id}' not found")
            existing = session.get(MeetingResultModel, meeting_id)
            if existing is not None:
                session.delete(existing)
                session.flush()
            session.add(
                MeetingResultModel(
                    meeting_id=meeting_id,
                    raw_markdown=result.raw_markdown,
                    executive_summary=result.executive_summary,
                    metadata_json=result.metadata_json,
                )
            )
            if result.title:
                model.title = result.title
            model.duration_minutes = result.duration_minutes
            model.status = JobStatus.COMPLETED.value
            model.error_message = None
            model.updated_at = datetime.utcnow()
            session.commit()


def _to_record(model: MeetingModel) -> MeetingRecord:
    return MeetingRecord(
        meeting_id=model.id,
        title=model.title,
        status=model.status,
        error_message=model.error_message,
        duration_minutes=model.duration_minutes,
    )
