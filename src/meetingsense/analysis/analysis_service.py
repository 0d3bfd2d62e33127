"""Analysis job orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from ..providers.providers_base import ModelProvider
from ..repositories.meeting_repository import MeetingRepository
from ..settings.settings_service import SettingsService
from .analysis_errors import ErrorClassification, Ok, Outcome
from .analysis_models import (
    AnalysisJob,
    AnalysisLimits,
    FallbackStrategy,
    JobStatus,
    ProviderSettings,
    RequestPart,
)
from .classifier import classify
from .fallback import build_strategies, run_with_fallback
from .payload import PayloadAssembler
from .progress import (
    ChannelProgressSink,
    DoneEvent,
    KeepaliveTimer,
    ProgressChannel,
    ProgressSink,
    StageEvent,
)
from .result_parser import parse_result
from .retry import RetryAttempt, Sleep, run_with_retry
from .stager import RemoteFileStager

logger = structlog.get_logger(__name__)

CANCELLED_MESSAGE = "Analysis was cancelled"


@dataclass(slots=True)
class AnalysisService:
    """Drive one meeting through ``processing`` to ``completed`` or ``error``.

    The terminal status is always persisted before the terminal progress
    event is pushed, and pushing never raises, so a client that disconnects
    at the last moment cannot turn a completed meeting into a failed one.
    """

    meetings: MeetingRepository
    settings: SettingsService
    provider_factory: Callable[[ProviderSettings], ModelProvider]
    limits: AnalysisLimits = field(default_factory=AnalysisLimits)
    keepalive_interval: float = 10.0
    sleep: Sleep = asyncio.sleep

    def prepare_job(self, meeting_id: str, model: str | None = None) -> AnalysisJob:
        """Validate the meeting and freeze credential + model for the job.

        Raises ``KeyError`` for unknown meetings and ``MissingCredentialError``
        when no API key is configured.
        """
        if self.meetings.get_meeting(meeting_id) is None:
            raise KeyError(f"Meeting '{meeting_id}' not found")
        provider_settings = self.settings.resolve(model)
        recording = self.meetings.load_recording(meeting_id)
        job = AnalysisJob(job_id=meeting_id, recording=recording, settings=provider_settings)
        job.metadata["has_audio"] = str(recording.audio is not None)
        job.metadata["image_count"] = str(len(recording.image_paths))
        return job

    async def run(self, job: AnalysisJob, channel: ProgressChannel) -> DoneEvent:
        log = logger.bind(job_id=job.job_id, model=job.model)
        sink = ChannelProgressSink(channel, job.job_id)
        keepalive = KeepaliveTimer(channel.keepalive, self.keepalive_interval)
        failure: ErrorClassification | None = None
        raw_markdown = ""
        try:
            try:
                self.meetings.set_status(job.job_id, JobStatus.PROCESSING)
                log.info("analysis.job.started", **job.metadata)
                channel.send(StageEvent("Starting", f"Model: {job.model}", 5))
                keepalive.start()

                outcome = await self._analyze(job, sink)
                if isinstance(outcome, Ok):
                    raw_markdown = outcome.value
                    result = parse_result(raw_markdown)
                    self.meetings.save_result(job.job_id, result)
                    log.info("analysis.job.completed", chars=len(raw_markdown), title=result.title)
                else:
                    failure = outcome.classification
            except asyncio.CancelledError:
                log.warning("analysis.job.cancelled")
                self._record_failure(job, CANCELLED_MESSAGE)
                channel.send(DoneEvent(error=CANCELLED_MESSAGE))
                raise
            except Exception as exc:
                log.exception("analysis.job.unexpected_error", error=str(exc))
                failure = classify(exc)

            if failure is not None:
                log.warning(
                    "analysis.job.failed",
                    kind=failure.kind.value,
                    retryable=failure.retryable,
                    message=failure.user_message,
                )
                self._record_failure(job, failure.user_message)
                event = DoneEvent(error=failure.user_message)
            else:
                event = DoneEvent(result=raw_markdown)
            channel.send(event)
            return event
        finally:
            keepalive.cancel()
            channel.final_end()

    async def _analyze(self, job: AnalysisJob, sink: ProgressSink) -> Outcome[str]:
        provider = self.provider_factory(job.settings)
        stager = RemoteFileStager(provider, self.limits, sleep=self.sleep)
        assembler = PayloadAssembler(stager, self.limits)

        audio = await assembler.prepare_audio(job.recording.audio, sink)
        if not isinstance(audio, Ok):
            return audio
        audio_part: RequestPart | None = audio.value
        attempts = self.limits.retry_attempts

        async def run_once(strategy: FallbackStrategy) -> Outcome[str]:
            parts = await assembler.assemble(
                audio_part, strategy.image_paths, job.recording.context_text, sink
            )
            sink.emit("Sending to Gemini", f"{len(parts)} parts, model: {job.model}")

            async def call(attempt: int) -> str:
                if attempt > 1:
                    sink.emit("Retrying Gemini call", f"Attempt {attempt}/{attempts}")
                else:
                    sink.emit(
                        "Analyzing",
                        "Waiting for Gemini response (may take several minutes for long meetings)...",
                    )
                return await provider.generate_content(job.model, parts)

            def report(retry: RetryAttempt) -> None:
                if retry.final:
                    sink.emit(
                        "Gemini call failed",
                        f"Attempt {retry.attempt_number}/{retry.max_attempts}: {retry.last_error.user_message}",
                    )
                    return
                sink.emit(
                    "Retrying Gemini call",
                    f"{retry.last_error.user_message} Retrying in {retry.next_wait:.0f} seconds...",
                )

            return await run_with_retry(
                call,
                max_attempts=attempts,
                base_wait=self.limits.retry_base_seconds,
                on_attempt_failed=report,
                sleep=self.sleep,
                label="generateContent",
            )

        strategies = build_strategies(assembler.select_images(job.recording.image_paths))
        return await run_with_fallback(strategies, run_once, sink)

    def _record_failure(self, job: AnalysisJob, message: str) -> None:
        try:
            self.meetings.set_status(job.job_id, JobStatus.ERROR, message)
        except Exception as exc:
            logger.error("analysis.job.persist_failed", job_id=job.job_id, error=str(exc))
