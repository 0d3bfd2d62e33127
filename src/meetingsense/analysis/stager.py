"""Upload large payloads to the provider file store and wait until they are usable."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from ..providers.providers_base import ModelProvider
from .analysis_errors import Ok, Outcome, ProviderError
from .analysis_models import AnalysisLimits, FileState, StagedFile
from .progress import ProgressSink
from .retry import RetryAttempt, Sleep, run_with_retry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RemoteFileStager:
    """Drive the upload + poll protocol under the retry policy."""

    provider: ModelProvider
    limits: AnalysisLimits = field(default_factory=AnalysisLimits)
    sleep: Sleep = asyncio.sleep
    log: logging.Logger = field(default_factory=lambda: logger)

    async def stage(self, path: Path, mime_type: str, sink: ProgressSink) -> Outcome[StagedFile]:
        size_mb = path.stat().st_size / 1024 / 1024
        attempts = self.limits.retry_attempts

        async def attempt_upload(attempt: int) -> StagedFile:
            if attempt > 1:
                sink.emit("Uploading audio", f"Retry attempt {attempt}/{attempts}...")
            else:
                sink.emit("Uploading audio", f"Uploading {size_mb:.1f} MB to Gemini File API...")
            return await self._upload_and_wait(path, mime_type, sink)

        def report(retry: RetryAttempt) -> None:
            if retry.final:
                sink.emit(
                    "Uploading audio",
                    f"Upload failed after {retry.attempt_number} attempt(s): "
                    f"{retry.last_error.user_message}",
                )
                return
            sink.emit(
                "Uploading audio",
                f"Upload attempt {retry.attempt_number}/{retry.max_attempts} failed, "
                f"retrying in {retry.next_wait:.0f}s",
            )

        outcome = await run_with_retry(
            attempt_upload,
            max_attempts=attempts,
            base_wait=self.limits.retry_base_seconds,
            on_attempt_failed=report,
            sleep=self.sleep,
            label="audio upload",
        )
        if isinstance(outcome, Ok):
            self.log.info(
                "analysis.stager.ready",
                extra={"file_ref": outcome.value.provider_file_ref, "size_mb": round(size_mb, 1)},
            )
        return outcome

    async def _upload_and_wait(
        self, path: Path, mime_type: str, sink: ProgressSink
    ) -> StagedFile:
        remote = await self.provider.upload_file(path, mime_type, path.name)
        polls = 0
        while remote.state is FileState.PROCESSING and polls < self.limits.max_poll_attempts:
            await self.sleep(self.limits.poll_interval_seconds)
            remote = await self.provider.get_file(remote.name)
            polls += 1
            elapsed = polls * self.limits.poll_interval_seconds
            self.log.debug(
                "analysis.stager.poll",
                extra={"file_name": remote.name, "poll": polls, "state": remote.state.value},
            )
            sink.emit("Uploading audio", f"Gemini is processing the file... ({elapsed:.0f}s elapsed)")

        if remote.state is not FileState.ACTIVE:
            raise ProviderError(
                f"File upload stalled: state={remote.state.value} after {polls} polls"
            )

        sink.emit("Audio ready", f"File API: {remote.uri}")
        return StagedFile(
            provider_file_ref=remote.uri,
            mime_type=remote.mime_type or mime_type,
            state=FileState.ACTIVE,
        )
