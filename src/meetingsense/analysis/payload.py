"""Build the ordered multi-part model request for one analysis attempt."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TypeVar

from .analysis_errors import Ok, Outcome, TerminalFailure
from .analysis_models import (
    AnalysisLimits,
    AudioInput,
    InlineBinaryPart,
    RequestPart,
    StagedFilePart,
    TextPart,
)
from .progress import ProgressSink
from .prompts import SYSTEM_PROMPT
from .stager import RemoteFileStager

logger = logging.getLogger(__name__)

T = TypeVar("T")

TIMELINE_MARKER = "SPEAKER ACTIVITY TIMELINE"
TIMELINE_END_MARKER = "\n\nSCREENSHOT EVIDENCE"
TIMELINE_HEADER_LINES = 3
TIMELINE_KEEP_ENTRIES = 100
TRUNCATION_NOTICE = "\n\n[... metadata truncated due to length ...]"


def sample_evenly(items: Sequence[T], count: int) -> list[T]:
    """Pick ``count`` items spread across the whole sequence."""

    if len(items) <= count:
        return list(items)
    if count <= 0:
        return []
    step = len(items) / count
    return [items[int(i * step)] for i in range(count)]


def trim_context(text: str, max_chars: int) -> str:
    """Shrink ``text`` to ``max_chars``.

    The speaker timeline is usually what overflows the cap, so when it holds
    more than 200 entries only the first and last 100 are kept. If that is
    still too long the text is cut hard.
    """

    if len(text) <= max_chars:
        return text

    start = text.find(TIMELINE_MARKER)
    end = text.find(TIMELINE_END_MARKER)
    if start > -1 and end > -1 and end > start:
        lines = text[start:end].split("\n")
        header = lines[:TIMELINE_HEADER_LINES]
        entries = [line for line in lines[TIMELINE_HEADER_LINES:] if line.startswith("- [")]
        keep = TIMELINE_KEEP_ENTRIES
        if len(entries) > 2 * keep:
            trimmed = [
                *entries[:keep],
                f"- [... {len(entries) - 2 * keep} entries trimmed for brevity ...]",
                *entries[-keep:],
            ]
            result = text[:start] + "\n".join([*header, *trimmed]) + text[end:]
            if len(result) <= max_chars:
                return result

    return text[:max_chars] + TRUNCATION_NOTICE


def build_prompt(
    context_text: str,
    *,
    has_audio: bool,
    image_count: int,
    max_chars: int,
    sink: ProgressSink,
) -> str:
    prompt = SYSTEM_PROMPT + "\n\n"
    meta = context_text.strip()
    if meta:
        if len(meta) > max_chars:
            sink.emit("Trimming metadata", f"{len(meta) / 1024:.0f} KB -> {max_chars / 1024:.0f} KB")
            meta = trim_context(meta, max_chars)
        prompt += f"Meeting Context / Transcript:\n\n{meta}\n\n"
    if has_audio:
        prompt += "Please analyze the provided audio/video recording above.\n"
    if image_count > 0:
        prompt += (
            f"{image_count} screenshot/participant image(s) have been provided "
            "for speaker identification.\n"
        )
    prompt += "\nPlease provide the full meeting analysis in the exact format specified."
    return prompt


def guess_image_mime(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    if mime and mime.startswith("image/"):
        return mime
    return "image/jpeg"


@dataclass(slots=True)
class PayloadAssembler:
    """Turn a stored recording into ``RequestPart`` sequences."""

    stager: RemoteFileStager
    limits: AnalysisLimits = field(default_factory=AnalysisLimits)
    log: logging.Logger = field(default_factory=lambda: logger)

    async def prepare_audio(
        self, audio: AudioInput | None, sink: ProgressSink
    ) -> Outcome[RequestPart | None]:
        """Return the audio part: inline below the limit, staged above it."""

        if audio is None or not audio.path.exists():
            return Ok(None)

        size = audio.path.stat().st_size
        size_mb = size / 1024 / 1024
        sink.emit("Preparing audio", f"{size_mb:.1f} MB")

        if size <= self.limits.inline_limit_bytes:
            sink.emit(
                "Encoding audio",
                f"Inline base64 (< {self.limits.inline_limit_bytes // (1024 * 1024)} MB)",
            )
            data = await asyncio.to_thread(audio.path.read_bytes)
            return Ok(InlineBinaryPart(data, audio.mime_type))

        outcome = await self.stager.stage(audio.path, audio.mime_type, sink)
        if isinstance(outcome, Ok):
            staged = outcome.value
            return Ok(StagedFilePart(staged.provider_file_ref, staged.mime_type))

        classification = outcome.classification
        if size <= self.limits.inline_fallback_limit_bytes:
            self.log.warning(
                "analysis.payload.audio_inline_fallback",
                extra={"size_mb": round(size_mb, 1), "kind": classification.kind.value},
            )
            sink.emit("Audio fallback", "File API failed, using inline base64")
            data = await asyncio.to_thread(audio.path.read_bytes)
            return Ok(InlineBinaryPart(data, audio.mime_type))

        message = (
            f"Audio upload failed and the file ({size_mb:.1f} MB) is too large for inline. "
            f"Details: {classification.user_message}"
        )
        return TerminalFailure(replace(classification, retryable=False, user_message=message))

    def select_images(self, image_paths: Sequence[Path]) -> tuple[Path, ...]:
        """Existing images, evenly sampled down to ``max_images``.

        This is the image set of the full-payload attempt; smaller fallback
        sets are drawn from it.
        """
        existing = [path for path in image_paths if path.exists()]
        return tuple(sample_evenly(existing, self.limits.max_images))

    async def load_images(
        self, image_paths: Sequence[Path], sink: ProgressSink
    ) -> list[InlineBinaryPart]:
        sampled = self.select_images(image_paths)
        sink.emit("Processing images", f"{len(sampled)} image(s)")

        parts: list[InlineBinaryPart] = []
        for path in sampled:
            try:
                size = path.stat().st_size
                if size > self.limits.max_image_bytes:
                    self.log.warning(
                        "analysis.payload.image_skipped %s (%.0f KB)",
                        path.name,
                        size / 1024,
                        extra={"reason": "oversized"},
                    )
                    continue
                data = await asyncio.to_thread(path.read_bytes)
                parts.append(InlineBinaryPart(data, guess_image_mime(path)))
            except OSError as exc:
                self.log.warning(
                    "analysis.payload.image_unreadable %s: %s",
                    path,
                    exc,
                    extra={"reason": "unreadable"},
                )
        return parts

    async def assemble(
        self,
        audio_part: RequestPart | None,
        image_paths: Sequence[Path],
        context_text: str,
        sink: ProgressSink,
    ) -> list[RequestPart]:
        """Audio first, then images in timeline order, then exactly one text part."""

        images = await self.load_images(image_paths, sink)
        prompt = build_prompt(
            context_text,
            has_audio=audio_part is not None,
            image_count=len(images),
            max_chars=self.limits.max_context_chars,
            sink=sink,
        )
        parts: list[RequestPart] = []
        if audio_part is not None:
            parts.append(audio_part)
        parts.extend(images)
        parts.append(TextPart(prompt))
        return parts
