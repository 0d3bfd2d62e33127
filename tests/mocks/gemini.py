"""Deterministic Gemini fakes for unit and integration tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from meetingsense.analysis.analysis_errors import ProviderError
from meetingsense.analysis.analysis_models import FileState, RemoteFile, RequestPart
from meetingsense.providers.providers_base import ModelProvider

GenerateStep = str | BaseException | Callable[[Sequence[RequestPart]], str]


def remote_file(state: FileState | str, *, name: str = "files/abc123") -> RemoteFile:
    return RemoteFile(
        name=name,
        uri=f"https://generativelanguage.googleapis.com/v1beta/{name}",
        mime_type="audio/webm",
        state=FileState(state),
    )


def provider_error(status_code: int, status: str, message: str) -> ProviderError:
    return ProviderError(f"[{status_code} {status}] {message}", status_code=status_code)


@dataclass
class ScriptedProvider(ModelProvider):
    """Replays queued responses; every call is recorded."""

    generate_steps: list[GenerateStep] = field(default_factory=list)
    upload_steps: list[RemoteFile | BaseException] = field(default_factory=list)
    poll_steps: list[RemoteFile | BaseException] = field(default_factory=list)
    models: list[str] = field(default_factory=lambda: ["gemini-2.5-flash"])
    generate_calls: list[tuple[str, list[RequestPart]]] = field(default_factory=list)
    upload_calls: list[tuple[Path, str, str]] = field(default_factory=list)
    poll_calls: list[str] = field(default_factory=list)

    async def generate_content(self, model: str, parts: Sequence[RequestPart]) -> str:
        self.generate_calls.append((model, list(parts)))
        if not self.generate_steps:
            raise AssertionError("no generate_content response queued")
        step = self.generate_steps.pop(0) if len(self.generate_steps) > 1 else self.generate_steps[0]
        if isinstance(step, BaseException):
            raise step
        if callable(step):
            return step(parts)
        return step

    async def upload_file(self, path: Path, mime_type: str, display_name: str) -> RemoteFile:
        self.upload_calls.append((path, mime_type, display_name))
        if not self.upload_steps:
            raise AssertionError("no upload_file response queued")
        step = self.upload_steps.pop(0) if len(self.upload_steps) > 1 else self.upload_steps[0]
        if isinstance(step, BaseException):
            raise step
        return step

    async def get_file(self, name: str) -> RemoteFile:
        self.poll_calls.append(name)
        if not self.poll_steps:
            raise AssertionError("no get_file response queued")
        step = self.poll_steps.pop(0) if len(self.poll_steps) > 1 else self.poll_steps[0]
        if isinstance(step, BaseException):
            raise step
        return step

    async def list_models(self) -> list[str]:
        return list(self.models)


@dataclass
class RecordingSink:
    events: list[tuple[str, str | None, int | None]] = field(default_factory=list)

    def emit(self, stage: str, detail: str | None = None, percent: int | None = None) -> None:
        self.events.append((stage, detail, percent))

    @property
    def stages(self) -> list[str]:
        return [stage for stage, _, _ in self.events]


@dataclass
class FakeSleep:
    """Records requested waits instead of sleeping."""

    waits: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


class RecordingTransport:
    """Progress transport that keeps frames in memory and can simulate failures."""

    def __init__(self, *, fail_writes: bool = False) -> None:
        self.frames: list[str] = []
        self.write_attempts = 0
        self.fail_writes = fail_writes
        self.end_calls = 0
        self.fail_end = False
        self._closed = False
        self._listeners: list[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> None:
        self.write_attempts += 1
        if self.fail_writes:
            raise BrokenPipeError("peer reset the connection")
        self.frames.append(frame)

    def end(self) -> None:
        self.end_calls += 1
        if self.fail_end:
            raise BrokenPipeError("already closed")

    def on_close(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def disconnect(self) -> None:
        self._closed = True
        for callback in self._listeners:
            callback()
