"""
Retry Module - backoff calculation and the retry controller.

Provides the exponential backoff calculator with jitter, the retry-after
override for rate-limited responses, and ``RetryContext``, which drives an
async operation through attempting/waiting until it succeeds or fails with
an error that cannot be retried.
"""

import asyncio
import functools
import logging
import random
import time
from dataclasses import dataclass, field, fields, replace
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Mapping,
    Optional,
    TypeVar,
    Union,
)

from .exceptions import AllscreenshotsError, get_retry_after, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryConfig:
    """
    Configuration for retry behavior. Delays are in milliseconds.

    Attributes:
        max_retries: Maximum number of retry attempts (0 = no retries)
        initial_delay_ms: Delay before the first retry
        max_delay_ms: Ceiling for the exponential delay
        backoff_multiplier: Growth factor between consecutive retries
        jitter_factor: Fraction of the delay randomized in both directions (0.0-1.0)
    """
    max_retries: int = 3
    initial_delay_ms: float = 1000.0
    max_delay_ms: float = 30000.0
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.1

    def __post_init__(self):
        """Validate configuration values."""
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be >= 0")
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be > 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    @classmethod
    def from_overrides(
        cls,
        overrides: Union["RetryConfig", Mapping[str, Any], None] = None,
        base: Optional["RetryConfig"] = None,
    ) -> "RetryConfig":
        """Merge a partial mapping of overrides onto ``base`` (defaults if omitted)."""
        if isinstance(overrides, RetryConfig):
            return overrides
        base = base or cls()
        if not overrides:
            return base
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown retry settings: {', '.join(sorted(unknown))}")
        return replace(base, **dict(overrides))

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def worst_case_duration_ms(self, timeout_ms: float) -> float:
        """Upper bound on wall-clock time for one logical call, all retries included."""
        longest_wait = self.max_delay_ms * (1 + self.jitter_factor)
        return self.max_attempts * (timeout_ms + longest_wait)


DEFAULT_RETRY_CONFIG = RetryConfig()


def _apply_jitter(delay: float, config: RetryConfig) -> float:
    """Apply jitter to delay and clamp to the allowed window."""
    if config.jitter_factor > 0:
        jitter_range = delay * config.jitter_factor
        delay += random.uniform(-jitter_range, jitter_range)
    return max(0.0, min(delay, config.max_delay_ms * (1 + config.jitter_factor)))


def calculate_delay(attempt: int, config: RetryConfig = DEFAULT_RETRY_CONFIG) -> float:
    """Exponential delay in ms for a zero-based retry index, capped then jittered."""
    delay = config.initial_delay_ms * (config.backoff_multiplier ** attempt)
    return _apply_jitter(min(delay, config.max_delay_ms), config)


def retry_delay_for(
    error: BaseException,
    attempt: int,
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
) -> float:
    """Delay in ms before the next attempt, honouring a server retry-after hint."""
    retry_after = get_retry_after(error)
    if retry_after is not None:
        return retry_after * 1000.0
    return calculate_delay(attempt, config)


def should_retry(error: BaseException, config: RetryConfig, attempt: int) -> bool:
    """Determine if a failure at zero-based ``attempt`` should trigger a retry."""
    if attempt >= config.max_retries:
        return False
    return is_retryable(error)


@dataclass
class RetryStatistics:
    """Statistics tracking for retry operations."""

    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    total_attempts: int = 0
    total_retries: int = 0
    total_delay_ms: float = 0.0
    errors_by_kind: Dict[str, int] = field(default_factory=dict)
    last_error: Optional[BaseException] = None
    last_success_time: Optional[float] = None
    last_failure_time: Optional[float] = None

    def record_operation(self, success: bool, attempts: int, delay_ms: float):
        """Record the outcome of one logical operation."""
        self.total_operations += 1
        self.total_attempts += attempts
        self.total_retries += attempts - 1
        self.total_delay_ms += delay_ms

        if success:
            self.successful_operations += 1
            self.last_success_time = time.time()
        else:
            self.failed_operations += 1
            self.last_failure_time = time.time()

    def record_error(self, error: BaseException):
        """Record an error occurrence."""
        if isinstance(error, AllscreenshotsError):
            key = error.kind.value
        else:
            key = type(error).__name__
        self.errors_by_kind[key] = self.errors_by_kind.get(key, 0) + 1
        self.last_error = error

    @property
    def success_rate(self) -> float:
        """Success rate as percentage."""
        if self.total_operations == 0:
            return 0.0
        return (self.successful_operations / self.total_operations) * 100

    @property
    def average_retries(self) -> float:
        if self.total_operations == 0:
            return 0.0
        return self.total_retries / self.total_operations

    def reset(self):
        """Reset all statistics."""
        self.total_operations = 0
        self.successful_operations = 0
        self.failed_operations = 0
        self.total_attempts = 0
        self.total_retries = 0
        self.total_delay_ms = 0.0
        self.errors_by_kind.clear()
        self.last_error = None
        self.last_success_time = None
        self.last_failure_time = None


class RetryContext(Generic[T]):
    """
    Drives an async operation through retries.

    The operation is invoked until it succeeds, raises an error that is not
    retryable, or ``max_retries`` retries have been spent. The most recent
    error is re-raised unchanged.

    Usage:
        ctx = RetryContext(config)
        result = await ctx.execute(fetch, "/v1/usage")
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
        statistics: Optional[RetryStatistics] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.config = config or DEFAULT_RETRY_CONFIG
        self.on_retry = on_retry
        self.statistics = statistics or RetryStatistics()
        self._sleep = sleep or asyncio.sleep

        self._attempts = 0
        self._last_error: Optional[BaseException] = None
        self._total_delay_ms = 0.0

    async def execute(
        self,
        func: Callable[..., Awaitable[T]],
        *args,
        **kwargs,
    ) -> T:
        """Execute an async function with retry logic."""
        self._attempts = 0
        self._total_delay_ms = 0.0
        self._last_error = None
        retry_index = 0

        while True:
            self._attempts += 1
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                self._last_error = e
                self.statistics.record_error(e)

                if not should_retry(e, self.config, retry_index):
                    self._handle_failure()
                    raise

                delay_ms = self._wait_before_retry(e, retry_index)
                await self._sleep(delay_ms / 1000.0)
                retry_index += 1
                continue

            self._handle_success()
            return result

    def _wait_before_retry(self, error: BaseException, retry_index: int) -> float:
        """Calculate and log delay before retry."""
        delay_ms = retry_delay_for(error, retry_index, self.config)
        self._total_delay_ms += delay_ms

        logger.warning(
            "Retry %d/%d after %.0fms delay. Error: %r",
            retry_index + 1,
            self.config.max_retries,
            delay_ms,
            error,
        )

        if self.on_retry:
            self.on_retry(retry_index + 1, error, delay_ms)

        return delay_ms

    def _handle_success(self):
        self.statistics.record_operation(True, self._attempts, self._total_delay_ms)

        if self._attempts > 1:
            logger.info(
                "Operation succeeded after %d attempts (%.0fms total delay)",
                self._attempts,
                self._total_delay_ms,
            )

    def _handle_failure(self):
        self.statistics.record_operation(False, self._attempts, self._total_delay_ms)

        exhausted = self._attempts > 1 or is_retryable(self._last_error)
        level = logging.ERROR if exhausted else logging.DEBUG
        logger.log(
            level,
            "Operation failed after %d attempts (%.0fms total delay). Last error: %r",
            self._attempts,
            self._total_delay_ms,
            self._last_error,
        )

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    @property
    def total_delay_ms(self) -> float:
        return self._total_delay_ms


def with_retry(
    func: Callable[..., Awaitable[T]],
    config: Optional[RetryConfig] = None,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> Callable[..., Awaitable[T]]:
    """
    Wrap an async function with retry logic.

    Example:
        fetch_quota = with_retry(client.get_quota_status, config=RetryConfig(max_retries=5))
        quota = await fetch_quota()
    """
    config = config or DEFAULT_RETRY_CONFIG

    @functools.wraps(func)
    async def wrapped(*args, **kwargs) -> T:
        ctx: RetryContext[T] = RetryContext(config=config, on_retry=on_retry)
        return await ctx.execute(func, *args, **kwargs)

    return wrapped


def async_retry(
    max_retries: int = 3,
    initial_delay_ms: float = 1000.0,
    max_delay_ms: float = 30000.0,
    backoff_multiplier: float = 2.0,
    jitter_factor: float = 0.1,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> Callable[[F], F]:
    """
    Retry decorator for asynchronous functions.

    Example:
        @async_retry(max_retries=5, initial_delay_ms=500)
        async def capture():
            return await client.screenshot(request)
    """
    config = RetryConfig(
        max_retries=max_retries,
        initial_delay_ms=initial_delay_ms,
        max_delay_ms=max_delay_ms,
        backoff_multiplier=backoff_multiplier,
        jitter_factor=jitter_factor,
    )

    def decorator(func: F) -> F:
        return with_retry(func, config=config, on_retry=on_retry)  # type: ignore[return-value]

    return decorator


__all__ = [
    "RetryConfig",
    "DEFAULT_RETRY_CONFIG",
    "RetryStatistics",
    "RetryContext",
    "calculate_delay",
    "retry_delay_for",
    "should_retry",
    "with_retry",
    "async_retry",
]
