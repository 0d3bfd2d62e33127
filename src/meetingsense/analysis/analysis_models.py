"""Data structures for the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class JobStatus(StrEnum):
    """Lifecycle statuses persisted on the meeting record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class FileState(StrEnum):
    """Processing states reported by the provider file store."""

    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"

    @classmethod
    def from_wire(cls, value: str | None) -> "FileState":
        # STATE_UNSPECIFIED and missing values mean the provider has not decided yet
        try:
            return cls((value or "").upper())
        except ValueError:
            return cls.PROCESSING


@dataclass(slots=True, frozen=True)
class AudioInput:
    """Reference to the stored audio/video recording."""

    path: Path
    mime_type: str = "audio/webm"


@dataclass(slots=True, frozen=True)
class StoredRecording:
    """Everything the Recording Store knows about one meeting."""

    meeting_id: str
    title: str = "Untitled Meeting"
    audio: AudioInput | None = None
    image_paths: tuple[Path, ...] = ()
    context_text: str = ""


@dataclass(slots=True, frozen=True)
class ProviderSettings:
    """Credential and model resolved for a single job."""

    api_key: str
    model: str


@dataclass(slots=True)
class AnalysisJob:
    """Aggregated data needed across one analysis run."""

    job_id: str
    recording: StoredRecording
    settings: ProviderSettings
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def model(self) -> str:
        return self.settings.model


@dataclass(slots=True, frozen=True)
class RemoteFile:
    """Provider file handle as returned by upload and status calls."""

    name: str
    uri: str
    mime_type: str
    state: FileState


@dataclass(slots=True, frozen=True)
class StagedFile:
    """A large payload staged in the provider file store."""

    provider_file_ref: str
    mime_type: str
    state: FileState = FileState.ACTIVE


@dataclass(slots=True, frozen=True)
class TextPart:
    text: str


@dataclass(slots=True, frozen=True)
class InlineBinaryPart:
    data: bytes
    mime_type: str


@dataclass(slots=True, frozen=True)
class StagedFilePart:
    provider_file_ref: str
    mime_type: str


RequestPart = TextPart | InlineBinaryPart | StagedFilePart


@dataclass(slots=True, frozen=True)
class FallbackStrategy:
    """One entry of the payload reduction ladder."""

    label: str
    image_paths: tuple[Path, ...]


@dataclass(slots=True, frozen=True)
class AnalysisResult:
    """Model output plus the values derived from it for persistence."""

    raw_markdown: str
    executive_summary: str
    metadata_json: str
    title: str | None = None
    duration_minutes: int | None = None


@dataclass(slots=True, frozen=True)
class AnalysisLimits:
    """Size, sampling and timing tunables of the analysis engine."""

    inline_limit_bytes: int = 15 * 1024 * 1024
    inline_fallback_limit_bytes: int = 20 * 1024 * 1024
    max_images: int = 40
    max_image_bytes: int = 1536 * 1024
    max_context_chars: int = 100_000
    poll_interval_seconds: float = 3.0
    max_poll_attempts: int = 120
    retry_attempts: int = 3
    retry_base_seconds: float = 3.0
