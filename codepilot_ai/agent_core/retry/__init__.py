"""Retry utilities for tool and provider calls.

- ``with_retry`` executes an async operation with exponential backoff, jitter
  and a per-attempt timeout, returning a ``RetryResult``.
- Presets: ``DEFAULT_RETRY_CONFIG``, ``FAST_RETRY_CONFIG`` (local tools),
  ``BASH_RETRY_CONFIG`` (shell commands) and ``PROVIDER_RETRY_CONFIG``.
- ``CircuitBreaker`` suppresses calls to an operation that keeps failing.
- ``classify_error`` decides whether an exception is worth retrying.
"""

from .classification import (
    ClassifiedError,
    ErrorStatsTracker,
    ErrorType,
    classify_error,
    is_retryable_error,
    recommended_retry_delay_ms,
)
from .strategy import (
    BASH_RETRY_CONFIG,
    DEFAULT_RETRY_CONFIG,
    FAST_RETRY_CONFIG,
    PROVIDER_RETRY_CONFIG,
    CircuitBreaker,
    CircuitState,
    RetryConfig,
    RetryMetrics,
    RetryMetricsTracker,
    RetryResult,
    calculate_delay,
    with_retry,
)

__all__ = [
    "BASH_RETRY_CONFIG",
    "DEFAULT_RETRY_CONFIG",
    "FAST_RETRY_CONFIG",
    "PROVIDER_RETRY_CONFIG",
    "CircuitBreaker",
    "CircuitState",
    "ClassifiedError",
    "ErrorStatsTracker",
    "ErrorType",
    "RetryConfig",
    "RetryMetrics",
    "RetryMetricsTracker",
    "RetryResult",
    "calculate_delay",
    "classify_error",
    "is_retryable_error",
    "recommended_retry_delay_ms",
    "with_retry",
]
