"""Domain-specific errors and failure outcomes for the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    """Failure taxonomy of the model provider."""

    QUOTA_EXHAUSTED = "quota_exhausted"
    RATE_LIMITED = "rate_limited"
    KEY_LEAKED = "key_leaked"
    AUTH_ERROR = "auth_error"
    BILLING_REQUIRED = "billing_required"
    INVALID_REQUEST = "invalid_request"
    FILE_EXPIRED = "file_expired"
    SERVER_ERROR = "server_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    CONTEXT_OVERFLOW = "context_overflow"
    UNKNOWN = "unknown"


@dataclass(slots=True, frozen=True)
class ErrorClassification:
    """Structured view of a raw provider error."""

    kind: ErrorKind
    retryable: bool
    wait_hint: float | None
    user_message: str
    detail: str = ""


class AnalysisError(Exception):
    """Base class for analysis-related errors."""


class ProviderError(AnalysisError):
    """Raised by provider clients for any remote or transport failure."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class UserFacingError(AnalysisError):
    """Raised when a failure has been classified and must reach the user."""

    def __init__(self, classification: ErrorClassification) -> None:
        super().__init__(classification.user_message)
        self.classification = classification

    @property
    def kind(self) -> ErrorKind:
        return self.classification.kind


class MissingCredentialError(AnalysisError):
    """Raised when no provider API key is configured."""


class AnalysisStreamError(AnalysisError):
    """Raised by the stream client when the analysis cannot deliver a result."""


@dataclass(slots=True, frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(slots=True, frozen=True)
class RetryableFailure:
    """Transient failure that survived every retry attempt."""

    classification: ErrorClassification


@dataclass(slots=True, frozen=True)
class TerminalFailure:
    """Failure that no retry can fix."""

    classification: ErrorClassification


Failure = RetryableFailure | TerminalFailure
Outcome = Ok[T] | RetryableFailure | TerminalFailure
