"""Map raw provider errors onto the failure taxonomy.

Gemini SDKs and the REST API do not agree on where the HTTP status lives:
sometimes it is an attribute, sometimes only a bracketed token inside the
message (``"[429 RESOURCE_EXHAUSTED] Quota exceeded..."``).  ``classify``
looks at the explicit status first, then at the bracketed token, and finally
at free-text hints.  The decision table below is evaluated top to bottom and
the first matching row wins; ``tests/unit/analysis/test_classifier.py`` keeps
one fixture per row so that provider wording changes show up as test failures.
"""

from __future__ import annotations

import re

from .analysis_errors import ErrorClassification, ErrorKind

RATE_LIMIT_WAIT_SECONDS = 30.0
SERVICE_UNAVAILABLE_WAIT_SECONDS = 5.0

_BRACKETED_STATUS = re.compile(r"\[\s*(\d{3})\b[^\]]*\]")
_LEADING_STATUS = re.compile(r"^\s*(\d{3})\s+[A-Z_]{4,}")
_BARE_STATUS = re.compile(r"(?<![\w.])(400|403|404|429|500|503|504)(?![\w.])")
_STATUS_NAMES = {
    "RESOURCE_EXHAUSTED": 429,
    "PERMISSION_DENIED": 403,
    "INVALID_ARGUMENT": 400,
    "FAILED_PRECONDITION": 400,
    "NOT_FOUND": 404,
    "INTERNAL": 500,
    "UNAVAILABLE": 503,
    "DEADLINE_EXCEEDED": 504,
}
_STATUS_NAME = re.compile(r"\b(" + "|".join(_STATUS_NAMES) + r")\b")

_QUOTA_HINTS = ("quota", "daily", "exhausted")
_LEAK_HINTS = ("leaked", "reported")
_BILLING_HINTS = (
    "billing",
    "region",
    "location is not supported",
    "failed_precondition",
    "precondition",
)
_CAPACITY_HINTS = (
    "token",
    "context length",
    "context window",
    "too large",
    "exceeds",
)

NON_RECOVERABLE_KINDS = frozenset(
    {
        ErrorKind.QUOTA_EXHAUSTED,
        ErrorKind.AUTH_ERROR,
        ErrorKind.KEY_LEAKED,
        ErrorKind.BILLING_REQUIRED,
        ErrorKind.DEADLINE_EXCEEDED,
        ErrorKind.FILE_EXPIRED,
        ErrorKind.INVALID_REQUEST,
    }
)

MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.QUOTA_EXHAUSTED: (
        "Gemini quota exhausted: the daily request or token quota for this API key "
        "has been used up. Retrying now would only waste quota. Wait until the quota "
        "resets (usually midnight Pacific time) or switch to a key on a paid plan."
    ),
    ErrorKind.RATE_LIMITED: (
        "Gemini rate limit reached: too many requests or tokens per minute. "
        "The request will be retried automatically after a pause."
    ),
    ErrorKind.KEY_LEAKED: (
        "Gemini rejected the API key because it was reported as leaked. "
        "The key has been disabled by Google. Create a new key in Google AI Studio "
        "and save it in Settings."
    ),
    ErrorKind.AUTH_ERROR: (
        "Gemini refused the API key (permission denied). The key is invalid, "
        "restricted, or lacks access to this model. Check the key in Settings "
        "or generate a new one in Google AI Studio."
    ),
    ErrorKind.BILLING_REQUIRED: (
        "Gemini cannot serve this request for the current project: billing is not "
        "enabled or the API is not available in your region. Enable billing for the "
        "Google Cloud project behind this key, or use a key from a supported region."
    ),
    ErrorKind.INVALID_REQUEST: (
        "Gemini rejected the request as invalid. Retrying will not help. Check that "
        "the selected model supports audio and images, and that the recording is in "
        "a supported format."
    ),
    ErrorKind.FILE_EXPIRED: (
        "The uploaded recording is no longer available on Gemini (uploaded files "
        "expire after 48 hours). Start the analysis again to upload it anew."
    ),
    ErrorKind.SERVER_ERROR: (
        "Gemini had an internal error, often caused by an input that is too large. "
        "The request will be retried, with fewer screenshots if needed."
    ),
    ErrorKind.SERVICE_UNAVAILABLE: (
        "Gemini is temporarily overloaded or unavailable. The request will be "
        "retried shortly."
    ),
    ErrorKind.DEADLINE_EXCEEDED: (
        "Gemini did not finish processing before its deadline. Retrying the same "
        "request will not succeed. Try a shorter recording or a faster model such "
        "as gemini-2.5-flash."
    ),
    ErrorKind.CONTEXT_OVERFLOW: (
        "The recording and screenshots exceed the model's context window. "
        "The analysis will be retried with fewer screenshots."
    ),
    ErrorKind.UNKNOWN: "Gemini request failed unexpectedly.",
}


def extract_status_code(error: BaseException) -> int | None:
    """Return the HTTP status carried by ``error`` or embedded in its message."""

    for attr in ("status_code", "code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    message = _message_of(error)
    for pattern in (_BRACKETED_STATUS, _LEADING_STATUS, _BARE_STATUS):
        match = pattern.search(message)
        if match:
            return int(match.group(1))
    named = _STATUS_NAME.search(message)
    if named:
        return _STATUS_NAMES[named.group(1)]
    return None


def classify(error: BaseException) -> ErrorClassification:
    """Classify ``error``. Never raises."""

    try:
        return _classify(extract_status_code(error), _message_of(error))
    except Exception:  # pragma: no cover - classification must not fail
        return ErrorClassification(
            kind=ErrorKind.UNKNOWN,
            retryable=True,
            wait_hint=None,
            user_message=MESSAGES[ErrorKind.UNKNOWN],
        )


def is_capacity_shaped(classification: ErrorClassification) -> bool:
    """True when a smaller payload could plausibly succeed."""

    if classification.kind in (ErrorKind.CONTEXT_OVERFLOW, ErrorKind.SERVER_ERROR):
        return True
    return _mentions(classification.detail.lower(), _CAPACITY_HINTS)


def _classify(status: int | None, message: str) -> ErrorClassification:
    lowered = message.lower()

    if status == 429:
        # RESOURCE_EXHAUSTED is the status name of every 429, not a quota signal
        if _mentions(lowered.replace("resource_exhausted", ""), _QUOTA_HINTS):
            return _build(ErrorKind.QUOTA_EXHAUSTED, message)
        return _build(ErrorKind.RATE_LIMITED, message, wait=RATE_LIMIT_WAIT_SECONDS)
    if status == 403:
        if _mentions(lowered, _LEAK_HINTS):
            return _build(ErrorKind.KEY_LEAKED, message)
        return _build(ErrorKind.AUTH_ERROR, message)
    if status == 400:
        if _mentions(lowered, _BILLING_HINTS):
            return _build(ErrorKind.BILLING_REQUIRED, message)
        return _build(ErrorKind.INVALID_REQUEST, message)
    if status == 404:
        return _build(ErrorKind.FILE_EXPIRED, message)
    if status == 500:
        return _build(ErrorKind.SERVER_ERROR, message)
    if status == 503:
        return _build(
            ErrorKind.SERVICE_UNAVAILABLE, message, wait=SERVICE_UNAVAILABLE_WAIT_SECONDS
        )
    if status == 504:
        return _build(ErrorKind.DEADLINE_EXCEEDED, message)
    if _mentions(lowered, _CAPACITY_HINTS):
        return _build(ErrorKind.CONTEXT_OVERFLOW, message)
    return _build(ErrorKind.UNKNOWN, message)


_RETRYABLE = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVER_ERROR,
        ErrorKind.SERVICE_UNAVAILABLE,
        ErrorKind.CONTEXT_OVERFLOW,
        ErrorKind.UNKNOWN,
    }
)


def _build(kind: ErrorKind, raw_message: str, *, wait: float | None = None) -> ErrorClassification:
    base = MESSAGES[kind]
    detail = raw_message.strip()
    user_message = f"{base} Details: {detail}" if detail else base
    return ErrorClassification(
        kind=kind,
        retryable=kind in _RETRYABLE,
        wait_hint=wait,
        user_message=user_message,
        detail=detail,
    )


def _mentions(text: str, hints: tuple[str, ...]) -> bool:
    return any(hint in text for hint in hints)


def _message_of(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or error.__class__.__name__
