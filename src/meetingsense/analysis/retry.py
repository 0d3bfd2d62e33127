"""Classification-driven retry policy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .analysis_errors import (
    ErrorClassification,
    ErrorKind,
    Ok,
    Outcome,
    RetryableFailure,
    TerminalFailure,
    UserFacingError,
)
from .classifier import classify

T = TypeVar("T")

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class RetryAttempt:
    """Snapshot reported after every failed attempt.

    ``final`` marks the last report of a run; no retry follows it and
    ``next_wait`` is zero.
    """

    attempt_number: int
    max_attempts: int
    last_error: ErrorClassification
    next_wait: float
    final: bool = False


OnAttemptFailed = Callable[[RetryAttempt], None]

# Resending the same payload cannot succeed; the fallback ladder shrinks it instead.
_HAND_OFF_KINDS = frozenset({ErrorKind.CONTEXT_OVERFLOW})


def backoff_delay(classification: ErrorClassification, attempt: int, base_wait: float) -> float:
    """Fixed wait from the classification, otherwise exponential backoff."""

    if classification.wait_hint is not None:
        return classification.wait_hint
    return base_wait * 2 ** (attempt - 1)


async def run_with_retry(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    base_wait: float,
    on_attempt_failed: OnAttemptFailed | None = None,
    sleep: Sleep = asyncio.sleep,
    label: str = "operation",
) -> Outcome[T]:
    """Run ``operation`` until it succeeds or a failure outcome is reached.

    ``operation`` receives the 1-based attempt number.  Exceptions raised by it
    are classified; non-retryable ones end the loop immediately as a
    :class:`TerminalFailure`, retryable ones are retried while attempts remain
    and become a :class:`RetryableFailure` once they run out.  Context
    overflow is returned as a :class:`RetryableFailure` without retrying.
    Every failed attempt is reported to ``on_attempt_failed``.
    """

    max_attempts = max(1, max_attempts)
    attempt = 0
    while True:
        attempt += 1
        try:
            value = await operation(attempt)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last = classify(exc)
        else:
            return Ok(value)

        if not last.retryable:
            logger.warning(
                "analysis.retry.abort",
                extra={"label": label, "attempt": attempt, "kind": last.kind.value},
            )
            _report(on_attempt_failed, RetryAttempt(attempt, max_attempts, last, 0.0, final=True))
            return TerminalFailure(last)
        if last.kind in _HAND_OFF_KINDS or attempt >= max_attempts:
            logger.error(
                "analysis.retry.exhausted",
                extra={"label": label, "attempts": attempt, "kind": last.kind.value},
            )
            _report(on_attempt_failed, RetryAttempt(attempt, max_attempts, last, 0.0, final=True))
            return RetryableFailure(last)

        wait = backoff_delay(last, attempt, base_wait)
        logger.warning(
            "analysis.retry.scheduled %s attempt %s/%s failed: %s",
            label,
            attempt,
            max_attempts,
            last.detail,
            extra={"label": label, "kind": last.kind.value, "wait_seconds": wait},
        )
        _report(on_attempt_failed, RetryAttempt(attempt, max_attempts, last, wait))
        await sleep(wait)


def _report(callback: OnAttemptFailed | None, attempt: RetryAttempt) -> None:
    if callback is not None:
        callback(attempt)


async def with_retry(
    operation: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int,
    base_wait: float,
    on_attempt_failed: OnAttemptFailed | None = None,
    sleep: Sleep = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Raising form of :func:`run_with_retry`.

    Raises :class:`UserFacingError` carrying the final classification.
    """

    outcome = await run_with_retry(
        operation,
        max_attempts=max_attempts,
        base_wait=base_wait,
        on_attempt_failed=on_attempt_failed,
        sleep=sleep,
        label=label,
    )
    if isinstance(outcome, Ok):
        return outcome.value
    raise UserFacingError(outcome.classification)
