"""Deterministic failure classification for the retry policy.

Failures are matched case-insensitively against fixed vocabularies. The
transient vocabulary is checked first, and anything unmatched is treated as
transient so that unknown failures get retried.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorType(str, Enum):
    """Whether a failure is worth retrying."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


_TRANSIENT_PATTERNS: tuple[str, ...] = (
    "timeout",
    "timed out",
    "connection refused",
    "connection reset",
    "network unreachable",
    "service unavailable",
    "temporarily unavailable",
    "too many requests",
    "rate limit",
    "temporary",
    "try again",
)
_TRANSIENT_HTTP_CODES: tuple[str, ...] = ("408", "429", "500", "502", "503", "504")
_PERMANENT_PATTERNS: tuple[str, ...] = (
    "not found",
    "404",
    "400",
    "401",
    "403",
    "invalid",
    "malformed",
    "unsupported",
    "cannot",
    "failed to parse",
)

_MAX_RETRIES: dict[ErrorType, int] = {
    ErrorType.TRANSIENT: 3,
    ErrorType.PERMANENT: 0,
}


@dataclass(slots=True)
class ErrorClassification:
    """Classification result with the rule that produced it."""

    error_type: ErrorType
    matched_rule: str
    matched_pattern: str | None

    @property
    def max_retries(self) -> int:
        return get_max_retries(self.error_type)


def classify_failure(message: str | None) -> ErrorClassification:
    """Classify a failure message and report which rule matched."""

    if not message:
        return ErrorClassification(ErrorType.PERMANENT, "empty_message", None)

    haystack = message.lower()

    pattern = _first_match(haystack, _TRANSIENT_PATTERNS)
    if pattern is not None:
        return ErrorClassification(ErrorType.TRANSIENT, "transient_keyword", pattern)

    pattern = _first_match(haystack, _TRANSIENT_HTTP_CODES)
    if pattern is not None:
        return ErrorClassification(ErrorType.TRANSIENT, "transient_http_code", pattern)

    pattern = _first_match(haystack, _PERMANENT_PATTERNS)
    if pattern is not None:
        return ErrorClassification(ErrorType.PERMANENT, "permanent_keyword", pattern)

    return ErrorClassification(ErrorType.TRANSIENT, "fallback_transient", None)


def classify_error(message: str | None) -> ErrorType:
    """Classify a failure message as transient or permanent."""
    return classify_failure(message).error_type


def get_max_retries(error_type: ErrorType) -> int:
    """Retry budget for an error class."""
    return _MAX_RETRIES[error_type]


def describe_error(message: str | None) -> str:
    """First line of a failure message."""
    if message is None:
        return "Unknown error"
    return message.split("\n", 1)[0]


def is_recoverable(message: str | None) -> bool:
    return classify_error(message) == ErrorType.TRANSIENT


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
