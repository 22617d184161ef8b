from __future__ import annotations

"""Transient/permanent error classification.

``classify_error`` is the default ``should_retry`` source used by
``ToolRuntime``. Exceptions from the agent core hierarchy are classified by
type; anything else is classified by message pattern, checked in this order:

1. rate limit (retryable)
2. authentication (not retryable)
3. timeout (retryable)
4. not found (not retryable)
5. validation (not retryable)
6. transient network / HTTP 5xx (retryable)

Everything else is ``unknown`` and is not retried.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from ..errors import (
    OperationTimeoutError,
    PermanentExecutionError,
    ToolArgumentValidationError,
    TransientExecutionError,
)


class ErrorType(str, Enum):
    transient = "transient"
    permanent = "permanent"
    rate_limit = "rate_limit"
    auth = "auth"
    timeout = "timeout"
    network = "network"
    not_found = "not_found"
    validation = "validation"
    unknown = "unknown"


RETRYABLE_TYPES = frozenset({ErrorType.transient, ErrorType.rate_limit, ErrorType.timeout, ErrorType.network})


@dataclass(frozen=True)
class ClassifiedError:
    """
    Classification of a single error.

    Attributes:
        type: The detected error category.
        is_retryable: Whether another attempt may succeed.
        error: The classified exception.
        context: Optional hints for the caller (e.g. ``needs_backoff``).
    """

    type: ErrorType
    is_retryable: bool
    error: BaseException
    context: Dict[str, Any] = field(default_factory=dict)


def _compile(patterns: Iterable[str], flags: int = re.IGNORECASE) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


_RATE_LIMIT_PATTERNS = _compile(
    (r"rate limit", r"too many requests", r"quota exceeded", r"throttl")
) + (re.compile(r"\b429\b"),)

_AUTH_PATTERNS = _compile(
    (
        r"unauthorized",
        r"unauthenticated",
        r"invalid.*api.*key",
        r"invalid.*token",
        r"authentication failed",
        r"forbidden",
        r"permission denied",
    )
) + (re.compile(r"\b401\b"), re.compile(r"\b403\b"))

_TIMEOUT_PATTERNS = _compile((r"timeout", r"timed out", r"ETIMEDOUT", r"deadline exceeded"))

_NOT_FOUND_PATTERNS = _compile((r"not found", r"ENOENT", r"does not exist", r"no such file")) + (
    re.compile(r"\b404\b"),
)

_VALIDATION_PATTERNS = _compile(
    (
        r"validation",
        r"invalid.*input",
        r"invalid.*parameter",
        r"invalid.*argument",
        r"bad request",
    )
) + (re.compile(r"\b400\b"),)

_TRANSIENT_PATTERNS = _compile(
    (
        r"ECONNREFUSED",
        r"ECONNRESET",
        r"EAI_AGAIN",
        r"socket hang up",
        r"connection reset",
        r"connection refused",
        r"broken pipe",
        r"502 bad gateway",
        r"503 service unavailable",
        r"504 gateway timeout",
        r"overloaded",
        r"capacity",
        r"temporarily unavailable",
        r"internal server error",
        r"service unavailable",
        r"EADDRINUSE",
    )
)


def _matches(message: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(p.search(message) for p in patterns)


def _by_type(error: BaseException) -> Optional[ClassifiedError]:
    if isinstance(error, ToolArgumentValidationError):
        return ClassifiedError(ErrorType.validation, False, error, {"requires_input_change": True})
    if isinstance(error, PermanentExecutionError):
        return ClassifiedError(ErrorType.permanent, False, error)
    if isinstance(error, (OperationTimeoutError, TimeoutError)):
        return ClassifiedError(ErrorType.timeout, True, error)
    if isinstance(error, TransientExecutionError):
        return ClassifiedError(ErrorType.transient, True, error)
    if isinstance(error, ConnectionError):
        return ClassifiedError(ErrorType.network, True, error)
    return None


def classify_error(error: BaseException) -> ClassifiedError:
    """Classify ``error`` by exception type, then by message pattern."""
    typed = _by_type(error)
    if typed is not None:
        return typed

    message = str(error)
    if _matches(message, _RATE_LIMIT_PATTERNS):
        return ClassifiedError(ErrorType.rate_limit, True, error, {"needs_backoff": True})
    if _matches(message, _AUTH_PATTERNS):
        return ClassifiedError(ErrorType.auth, False, error, {"requires_auth": True})
    if _matches(message, _TIMEOUT_PATTERNS):
        return ClassifiedError(ErrorType.timeout, True, error)
    if _matches(message, _NOT_FOUND_PATTERNS):
        return ClassifiedError(ErrorType.not_found, False, error)
    if _matches(message, _VALIDATION_PATTERNS):
        return ClassifiedError(ErrorType.validation, False, error, {"requires_input_change": True})
    if _matches(message, _TRANSIENT_PATTERNS):
        return ClassifiedError(ErrorType.transient, True, error)
    return ClassifiedError(ErrorType.unknown, False, error, {"needs_investigation": True})


def is_retryable_error(error: BaseException) -> bool:
    """Shortcut used as the default retry predicate."""
    return classify_error(error).is_retryable


def recommended_retry_delay_ms(error: BaseException) -> int:
    """Suggest a minimum pause before retrying ``error``; 0 for permanent errors."""
    kind = classify_error(error).type
    if kind == ErrorType.rate_limit:
        return 5000
    if kind == ErrorType.timeout:
        return 2000
    if kind in (ErrorType.network, ErrorType.transient):
        return 1000
    return 0


class ErrorStatsTracker:
    """Count classified errors by type."""

    def __init__(self) -> None:
        self._counts: Counter[ErrorType] = Counter()
        self._total = 0

    def record_error(self, error: BaseException) -> ClassifiedError:
        classified = classify_error(error)
        self._counts[classified.type] += 1
        self._total += 1
        return classified

    def get_statistics(self) -> Dict[str, int]:
        stats: Dict[str, int] = {"total": self._total}
        for kind, count in self._counts.items():
            stats[kind.value] = count
        return stats

    def retryable_percentage(self) -> float:
        if self._total == 0:
            return 0.0
        retryable = sum(count for kind, count in self._counts.items() if kind in RETRYABLE_TYPES)
        return retryable / self._total * 100

    def reset(self) -> None:
        self._counts.clear()
        self._total = 0
