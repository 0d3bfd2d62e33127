"""Progressive payload reduction when the provider reports capacity problems."""

from __future__ import annotations

import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path
from typing import TypeVar

from .analysis_errors import Ok, Outcome
from .analysis_models import FallbackStrategy
from .classifier import NON_RECOVERABLE_KINDS, is_capacity_shaped
from .payload import sample_evenly
from .progress import ProgressSink

logger = logging.getLogger(__name__)

T = TypeVar("T")

FULL = "Full"
REDUCED = "Reduced images (50%)"
AUDIO_ONLY = "Audio only"


def build_strategies(image_paths: Sequence[Path]) -> list[FallbackStrategy]:
    """Full, half and no images, all drawn from the already capped ``image_paths``."""

    images = tuple(image_paths)
    half = tuple(sample_evenly(images, math.ceil(len(images) / 2)))
    return [
        FallbackStrategy(FULL, images),
        FallbackStrategy(REDUCED, half),
        FallbackStrategy(AUDIO_ONLY, ()),
    ]


async def run_with_fallback(
    strategies: Sequence[FallbackStrategy],
    run_once: Callable[[FallbackStrategy], Awaitable[Outcome[T]]],
    sink: ProgressSink,
) -> Outcome[T]:
    """Try ``strategies`` in order until one succeeds.

    Moves to the next strategy only after a capacity-shaped failure. Any other
    failure is returned as is. A strategy whose image subset is not smaller
    than the previously attempted one is skipped.
    """

    if not strategies:
        raise ValueError("at least one fallback strategy is required")

    outcome: Outcome[T] | None = None
    previous: FallbackStrategy | None = None
    for strategy in strategies:
        if previous is not None:
            if len(strategy.image_paths) >= len(previous.image_paths):
                logger.debug("analysis.fallback.skipped", extra={"strategy": strategy.label})
                continue
            sink.emit("Fallback strategy", f"Retrying with: {strategy.label}")

        previous = strategy
        outcome = await run_once(strategy)
        if isinstance(outcome, Ok):
            return outcome

        classification = outcome.classification
        if classification.kind in NON_RECOVERABLE_KINDS:
            return outcome
        if not is_capacity_shaped(classification):
            logger.info(
                "analysis.fallback.stop",
                extra={"strategy": strategy.label, "kind": classification.kind.value},
            )
            return outcome
        logger.warning(
            "analysis.fallback.capacity %s: %s",
            strategy.label,
            classification.detail,
            extra={"strategy": strategy.label, "kind": classification.kind.value},
        )

    if outcome is None:
        raise RuntimeError("no fallback strategy was attempted")
    return outcome
