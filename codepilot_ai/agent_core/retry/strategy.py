from __future__ import annotations

"""Retry with exponential backoff, and a circuit breaker.

``with_retry`` runs an async operation up to ``RetryConfig.max_attempts``
times. Each attempt may race a per-attempt timeout; failed attempts are retried
only while the caller-supplied ``should_retry`` predicate accepts the error.
The function reports its outcome as a ``RetryResult`` and never raises for
operation failures (task cancellation still propagates).

Backoff
-------

After the N-th failed attempt the executor sleeps for::

    min(max_delay_ms, initial_delay_ms * backoff_multiplier ** (N - 1))

adjusted by a symmetric random jitter of ``± delay * jitter_factor`` and
floored at zero. The first retry therefore waits roughly ``initial_delay_ms``.

``CircuitBreaker`` is independent of ``RetryConfig``. It opens after
``threshold`` consecutive failures and lets a single trial call through once
``reset_time_ms`` has elapsed since the last failure. State only changes
inside ``execute``; there is no background timer.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, Set, TypeVar

from pydantic import ConfigDict, Field

from ..errors import CircuitOpenError, OperationTimeoutError
from ..schemas.base import BaseSchema

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
ShouldRetry = Callable[[BaseException], bool]
OnRetry = Callable[[int, BaseException, float], None]


class RetryConfig(BaseSchema):
    """
    Backoff and timeout settings for ``with_retry``.

    Attributes:
        max_attempts: Maximum number of attempts, including the first one.
        initial_delay_ms: Delay after the first failed attempt.
        max_delay_ms: Upper bound for any single delay (before jitter).
        backoff_multiplier: Growth factor between consecutive delays.
        jitter_factor: Fraction of the delay used as symmetric random jitter (0-1).
        timeout_ms: Per-attempt timeout. ``None`` disables the timeout.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    initial_delay_ms: float = Field(default=1000, ge=0)
    max_delay_ms: float = Field(default=30_000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    jitter_factor: float = Field(default=0.3, ge=0.0, le=1.0)
    timeout_ms: Optional[float] = Field(default=120_000, gt=0)


DEFAULT_RETRY_CONFIG = RetryConfig()

# File reads, searches and other quick local tools.
FAST_RETRY_CONFIG = RetryConfig(
    max_attempts=2,
    initial_delay_ms=100,
    max_delay_ms=1000,
    backoff_multiplier=2,
    jitter_factor=0.2,
    timeout_ms=10_000,
)

# Shell commands: same attempts as FAST, but room for builds and test suites.
BASH_RETRY_CONFIG = RetryConfig(
    max_attempts=2,
    initial_delay_ms=100,
    max_delay_ms=1000,
    backoff_multiplier=2,
    jitter_factor=0.2,
    timeout_ms=10 * 60 * 1000,
)

# LLM provider calls.
PROVIDER_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    initial_delay_ms=2000,
    max_delay_ms=60_000,
    backoff_multiplier=3,
    jitter_factor=0.3,
    timeout_ms=180_000,
)


@dataclass
class RetryResult(Generic[T]):
    """Outcome of ``with_retry``."""

    success: bool
    attempts: int
    total_duration_ms: float
    result: Optional[T] = None
    error: Optional[BaseException] = None


def calculate_delay(attempt: int, config: RetryConfig, rng: Callable[[], float] = random.random) -> float:
    """Return the delay in ms to wait after failed attempt number ``attempt``."""
    exponential = config.initial_delay_ms * (config.backoff_multiplier ** (attempt - 1))
    capped = min(exponential, config.max_delay_ms)
    jitter = capped * config.jitter_factor * (rng() - 0.5) * 2
    return max(0.0, capped + jitter)


# Strong references to timed-out attempts until they finish.
_abandoned_attempts: Set["asyncio.Future[Any]"] = set()


def _retrieve_abandoned_outcome(task: "asyncio.Future[Any]") -> None:
    _abandoned_attempts.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Abandoned attempt finished with error: {error}")


async def _run_attempt(operation: Operation[T], timeout_ms: Optional[float]) -> T:
    if not timeout_ms:
        return await operation()

    task = asyncio.ensure_future(operation())
    try:
        done, _pending = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise
    if not done:
        # Abandoned, not cancelled: the handler keeps running in the background.
        _abandoned_attempts.add(task)
        task.add_done_callback(_retrieve_abandoned_outcome)
        raise OperationTimeoutError(timeout_ms)
    return task.result()


async def with_retry(
    operation: Operation[T],
    should_retry: ShouldRetry,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    on_retry: Optional[OnRetry] = None,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
) -> RetryResult[T]:
    """
    Execute ``operation`` with retries and exponential backoff.

    Args:
        operation: Zero-argument callable returning an awaitable.
        should_retry: Predicate deciding whether an error is worth another attempt.
        config: Retry configuration.
        on_retry: Optional callback ``(attempt, error, delay_ms)`` invoked before each backoff sleep.
        sleep: Awaitable sleep in seconds, injectable for tests.
        rng: Source of uniform randomness in ``[0, 1)`` for jitter.

    Returns:
        A ``RetryResult`` with either ``result`` or ``error`` populated.
    """
    start = time.monotonic()
    last_error: Optional[BaseException] = None

    for attempt in range(1, config.max_attempts + 1):
        try:
            result = await _run_attempt(operation, config.timeout_ms)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            last_error = exc
            if attempt >= config.max_attempts or not should_retry(exc):
                return RetryResult(
                    success=False,
                    error=exc,
                    attempts=attempt,
                    total_duration_ms=(time.monotonic() - start) * 1000,
                )

            delay_ms = calculate_delay(attempt, config, rng)
            logger.debug(f"Attempt {attempt}/{config.max_attempts} failed ({exc}); retrying in {delay_ms:.0f}ms")
            if on_retry is not None:
                on_retry(attempt, exc, delay_ms)
            await sleep(delay_ms / 1000)
            continue

        return RetryResult(
            success=True,
            result=result,
            attempts=attempt,
            total_duration_ms=(time.monotonic() - start) * 1000,
        )

    return RetryResult(
        success=False,
        error=last_error or RuntimeError("Unknown error"),
        attempts=config.max_attempts,
        total_duration_ms=(time.monotonic() - start) * 1000,
    )


@dataclass
class RetryMetrics:
    total_attempts: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    average_retries: float = 0.0
    total_duration_ms: float = 0.0


@dataclass
class RetryMetricsTracker:
    """Aggregate ``RetryResult`` outcomes for observability."""

    _metrics: RetryMetrics = field(default_factory=RetryMetrics)
    _retry_count_sum: int = 0
    _operation_count: int = 0

    def record_attempt(self, result: RetryResult) -> None:
        self._operation_count += 1
        self._metrics.total_attempts += result.attempts
        self._metrics.total_duration_ms += result.total_duration_ms
        if result.success:
            self._metrics.successful_operations += 1
        else:
            self._metrics.failed_operations += 1
        # The initial attempt is not a retry.
        self._retry_count_sum += result.attempts - 1
        self._metrics.average_retries = self._retry_count_sum / self._operation_count

    def get_metrics(self) -> RetryMetrics:
        return RetryMetrics(**vars(self._metrics))

    def reset(self) -> None:
        self._metrics = RetryMetrics()
        self._retry_count_sum = 0
        self._operation_count = 0


class CircuitState(str, Enum):
    closed = "closed"
    open = "open"
    half_open = "half-open"


class CircuitBreaker:
    """
    Three-state guard suppressing calls to a persistently failing operation.

    closed -> open once consecutive failures reach ``threshold``;
    open -> half-open on the first call made more than ``reset_time_ms`` after
    the last failure; half-open -> closed on success, or back to open on failure.
    """

    def __init__(
        self,
        threshold: int = 5,
        reset_time_ms: float = 60_000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            threshold: Consecutive failures that open the circuit.
            reset_time_ms: Cool-down after the last failure before a trial call is allowed.
            clock: Monotonic clock in seconds, injectable for tests.
        """
        self._threshold = threshold
        self._reset_time_ms = reset_time_ms
        self._clock = clock
        self._failures = 0
        self._last_failure_time = 0.0
        self._state = CircuitState.closed

    async def execute(self, operation: Operation[T]) -> T:
        """
        Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open and still cooling down.
            Exception: Whatever ``operation`` raises; the failure is recorded first.
        """
        if self._state == CircuitState.open:
            elapsed_ms = (self._clock() - self._last_failure_time) * 1000
            if elapsed_ms > self._reset_time_ms:
                logger.info("Circuit breaker half-open; allowing a trial call")
                self._state = CircuitState.half_open
            else:
                raise CircuitOpenError()

        try:
            result = await operation()
        except Exception:
            self._record_failure()
            raise

        self._reset()
        return result

    def _record_failure(self) -> None:
        self._failures += 1
        self._last_failure_time = self._clock()
        if self._state == CircuitState.half_open or self._failures >= self._threshold:
            if self._state != CircuitState.open:
                logger.warning(f"Circuit breaker opened after {self._failures} failures")
            self._state = CircuitState.open

    def _reset(self) -> None:
        if self._state == CircuitState.half_open:
            logger.info("Circuit breaker closed after successful trial call")
        self._failures = 0
        self._state = CircuitState.closed

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failures
