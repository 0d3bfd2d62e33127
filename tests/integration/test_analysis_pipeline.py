"""End-to-end analysis runs against the real service with a scripted Gemini."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import pytest

from meetingsense.analysis.analysis_models import (
    AnalysisLimits,
    FileState,
    InlineBinaryPart,
    JobStatus,
    RequestPart,
    StagedFilePart,
    TextPart,
)
from meetingsense.analysis.analysis_service import AnalysisService
from meetingsense.analysis.fallback import AUDIO_ONLY, REDUCED
from meetingsense.analysis.progress import ProgressChannel
from meetingsense.repositories.meeting_repository import InputSpec, MeetingRepository
from meetingsense.settings.settings_service import SettingsService
from tests.mocks.gemini import (
    FakeSleep,
    RecordingTransport,
    ScriptedProvider,
    provider_error,
    remote_file,
)

pytestmark = pytest.mark.integration

# Byte sizes are scaled down; the limits below keep the same ratios as production.
LIMITS = AnalysisLimits(
    inline_limit_bytes=15 * 1024,
    inline_fallback_limit_bytes=20 * 1024,
    max_image_bytes=2048,
)

DOCUMENT = (
    "# 1. Executive Summary\nQ3 roadmap approved.\n\n# 2. Decisions\n- approve\n\n"
    '```json\n{"title": "Q3 roadmap", "duration_minutes": 52}\n```'
)


@pytest.fixture(autouse=True)
def _api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "integration-key")


def _images(parts: Sequence[RequestPart]) -> list[InlineBinaryPart]:
    return [p for p in parts if isinstance(p, InlineBinaryPart) and p.mime_type.startswith("image/")]


def _events(transport: RecordingTransport) -> list[dict]:
    return [json.loads(f[len("data: "):]) for f in transport.frames if f.startswith("data: ")]


def _store_meeting(
    repo: MeetingRepository,
    root: Path,
    *,
    audio_bytes: int,
    image_count: int,
    context: str = "",
) -> str:
    audio = root / "recording.webm"
    audio.write_bytes(b"\x1a" * audio_bytes)
    inputs = [InputSpec("audio", file_path=str(audio), mime_type="audio/webm")]
    for i in range(image_count):
        shot = root / f"shot-{i:03d}.jpg"
        shot.write_bytes(i.to_bytes(2, "big") * 8)
        inputs.append(InputSpec("image", file_path=str(shot), mime_type="image/jpeg"))
    if context:
        inputs.append(InputSpec("text", text_content=context))
    return repo.create_meeting(title="Untitled Meeting", inputs=inputs)


async def _run(
    meeting_repo: MeetingRepository,
    settings_repo,
    provider: ScriptedProvider,
    meeting_id: str,
) -> tuple[RecordingTransport, FakeSleep]:
    sleep = FakeSleep()
    service = AnalysisService(
        meetings=meeting_repo,
        settings=SettingsService(settings_repo),
        provider_factory=lambda _: provider,
        limits=LIMITS,
        sleep=sleep,
    )
    transport = RecordingTransport()
    await service.run(service.prepare_job(meeting_id), ProgressChannel(transport, job_id=meeting_id))
    return transport, sleep


@pytest.mark.asyncio
async def test_small_recording_is_sent_inline_in_one_call(
    meeting_repo, settings_repo, tmp_path: Path
) -> None:
    context = "SPEAKER ACTIVITY TIMELINE\n" + "x" * 2048
    meeting_id = _store_meeting(
        meeting_repo, tmp_path, audio_bytes=10 * 1024, image_count=5, context=context
    )
    provider = ScriptedProvider(generate_steps=[DOCUMENT])

    transport, sleep = await _run(meeting_repo, settings_repo, provider, meeting_id)

    assert len(provider.generate_calls) == 1
    assert provider.upload_calls == []
    _, parts = provider.generate_calls[0]
    assert parts[0] == InlineBinaryPart(b"\x1a" * 10 * 1024, "audio/webm")
    assert len(_images(parts)) == 5
    assert isinstance(parts[-1], TextPart) and context in parts[-1].text
    assert _events(transport)[-1] == {
        "stage": "Done",
        "detail": f"{len(DOCUMENT)} chars",
        "percent": 100,
        "done": True,
        "result": DOCUMENT,
    }
    assert sleep.waits == []
    meeting = meeting_repo.get_meeting(meeting_id)
    assert (meeting.status, meeting.title, meeting.duration_minutes) == (
        JobStatus.COMPLETED,
        "Q3 roadmap",
        52,
    )


@pytest.mark.asyncio
async def test_large_recording_is_staged_and_referenced(
    meeting_repo, settings_repo, tmp_path: Path
) -> None:
    meeting_id = _store_meeting(meeting_repo, tmp_path, audio_bytes=50 * 1024, image_count=0)
    provider = ScriptedProvider(
        generate_steps=[DOCUMENT],
        upload_steps=[remote_file(FileState.PROCESSING)],
        poll_steps=[
            remote_file(FileState.PROCESSING),
            remote_file(FileState.PROCESSING),
            remote_file(FileState.ACTIVE),
        ],
    )

    transport, sleep = await _run(meeting_repo, settings_repo, provider, meeting_id)

    assert len(provider.upload_calls) == 1
    assert len(provider.poll_calls) == 3
    assert sleep.waits == [3.0, 3.0, 3.0]
    _, parts = provider.generate_calls[0]
    assert isinstance(parts[0], StagedFilePart)
    assert parts[0].provider_file_ref.endswith("files/abc123")
    assert not any(isinstance(p, InlineBinaryPart) for p in parts)
    assert _events(transport)[-1]["result"] == DOCUMENT
    assert meeting_repo.get_meeting(meeting_id).status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_context_overflow_falls_back_to_half_the_images(
    meeting_repo, settings_repo, tmp_path: Path
) -> None:
    meeting_id = _store_meeting(meeting_repo, tmp_path, audio_bytes=1024, image_count=40)
    half_document = DOCUMENT.replace("Q3 roadmap approved.", "Approved with 20 screenshots.")

    def respond(parts: Sequence[RequestPart]) -> str:
        if len(_images(parts)) == 40:
            raise RuntimeError("The input token count (1204332) exceeds the maximum number of tokens allowed")
        return half_document

    provider = ScriptedProvider(generate_steps=[respond])

    transport, sleep = await _run(meeting_repo, settings_repo, provider, meeting_id)

    image_counts = [len(_images(parts)) for _, parts in provider.generate_calls]
    assert image_counts == [40, 20]
    half = _images(provider.generate_calls[-1][1])
    full = _images(provider.generate_calls[0][1])
    assert [p.data for p in half] == [p.data for p in full[::2]]
    assert sleep.waits == []

    events = _events(transport)
    assert {"stage": "Fallback strategy", "detail": f"Retrying with: {REDUCED}"} in events
    assert events[-1]["result"] == half_document
    assert meeting_repo.get_result(meeting_id).raw_markdown == half_document


@pytest.mark.asyncio
async def test_fallback_halves_the_capped_image_set(
    meeting_repo, settings_repo, tmp_path: Path
) -> None:
    meeting_id = _store_meeting(meeting_repo, tmp_path, audio_bytes=1024, image_count=100)
    provider = ScriptedProvider(
        generate_steps=[RuntimeError("The input token count (2411870) exceeds the maximum number of tokens allowed")]
    )

    transport, sleep = await _run(meeting_repo, settings_repo, provider, meeting_id)

    image_counts = [len(_images(parts)) for _, parts in provider.generate_calls]
    assert image_counts == [40, 20, 0]
    full = _images(provider.generate_calls[0][1])
    half = _images(provider.generate_calls[1][1])
    assert [p.data for p in half] == [p.data for p in full[::2]]
    assert sleep.waits == []

    events = _events(transport)
    fallbacks = [event["detail"] for event in events if event.get("stage") == "Fallback strategy"]
    assert fallbacks == [f"Retrying with: {REDUCED}", f"Retrying with: {AUDIO_ONLY}"]
    assert [event["stage"] for event in events].count("Gemini call failed") == 3
    assert events[-1]["stage"] == "Error"
    assert meeting_repo.get_meeting(meeting_id).status == JobStatus.ERROR


@pytest.mark.asyncio
async def test_leaked_key_fails_without_retry_or_fallback(
    meeting_repo, settings_repo, tmp_path: Path
) -> None:
    meeting_id = _store_meeting(meeting_repo, tmp_path, audio_bytes=1024, image_count=10)
    provider = ScriptedProvider(
        generate_steps=[
            provider_error(403, "PERMISSION_DENIED", "Your API key was reported as leaked. Please use another API key.")
        ]
    )

    transport, sleep = await _run(meeting_repo, settings_repo, provider, meeting_id)

    assert len(provider.generate_calls) == 1
    assert sleep.waits == []
    events = _events(transport)
    stages = [event["stage"] for event in events]
    assert "Fallback strategy" not in stages
    assert "Retrying Gemini call" not in stages
    assert events[-1]["stage"] == "Error"
    assert events[-1]["error"].startswith("Gemini rejected the API key because it was reported as leaked.")

    meeting = meeting_repo.get_meeting(meeting_id)
    assert meeting.status == JobStatus.ERROR
    assert meeting.error_message == events[-1]["error"]
    assert meeting_repo.get_result(meeting_id) is None
