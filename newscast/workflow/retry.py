"""Bounded retry with exponential backoff for pipeline operations.

Runs an async operation up to ``max_attempts`` times, sleeping
``min(initial_delay * backoff_factor ** (attempt - 1), max_delay)`` seconds
between attempts. Whether a failure is worth another attempt is decided
solely by the policy's ``should_retry`` predicate.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from newscast.errors import TransientError

logger = logging.getLogger(__name__)

_TRANSIENT_EXCEPTIONS = (
    TransientError,
    ConnectionResetError,
    TimeoutError,
    asyncio.TimeoutError,
    socket.gaierror,
    aiohttp.ClientConnectionError,
)


def _http_status(error: BaseException) -> Optional[int]:
    """Extract an HTTP status code from an error, if it carries one."""
    for attr in ("status", "status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def default_should_retry(error: BaseException) -> bool:
    """Classify an error as retryable.

    Network resets, timeouts, DNS failures and HTTP 5xx responses are
    retryable. Everything else is not.

    Args:
        error: The exception raised by the failed attempt.

    Returns:
        True if the operation should be attempted again.
    """
    if isinstance(error, _TRANSIENT_EXCEPTIONS):
        return True

    status = _http_status(error)
    return status is not None and 500 <= status <= 599


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings for a single operation.

    Attributes:
        max_attempts: Total number of attempts, including the first (>= 1).
        initial_delay: Delay in seconds before the second attempt.
        max_delay: Upper bound on any single delay, in seconds.
        backoff_factor: Multiplier applied to the delay after each attempt.
        should_retry: Predicate deciding whether a failure is retryable.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    should_retry: Callable[[BaseException], bool] = default_should_retry

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds to wait after the given failed attempt (1-based)."""
        return min(
            self.initial_delay * self.backoff_factor ** (attempt - 1),
            self.max_delay,
        )

    @classmethod
    def from_config(cls, pipeline_config) -> "RetryPolicy":
        """Build the per-workflow default policy from a PipelineConfig."""
        return cls(
            max_attempts=pipeline_config.step_max_attempts,
            initial_delay=pipeline_config.step_initial_delay,
            max_delay=pipeline_config.step_max_delay,
            backoff_factor=pipeline_config.step_backoff_factor,
        )


class RetryExecutor:
    """Runs async operations under a RetryPolicy.

    Backoff, stop and retry conditions are delegated to tenacity. The
    inter-attempt delay is a non-blocking sleep, so only the calling task
    is suspended. The sleep function is injectable for tests.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        policy: RetryPolicy,
        operation_name: str = "operation",
    ) -> Any:
        """Run an operation, retrying failures the policy considers retryable.

        Args:
            operation: Zero-argument callable returning an awaitable.
            policy: Retry policy to apply.
            operation_name: Human-readable name used in log records.

        Returns:
            The result of the first successful attempt.

        Raises:
            Exception: The error of the last attempt, re-raised unchanged when
                it is not retryable or attempts are exhausted.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.initial_delay,
                exp_base=policy.backoff_factor,
                max=policy.max_delay,
            ),
            retry=retry_if_exception(policy.should_retry),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                try:
                    result = await operation()
                except Exception as e:
                    number = attempt.retry_state.attempt_number
                    will_retry = policy.should_retry(e) and number < policy.max_attempts
                    logger.warning(
                        f"{operation_name} failed (attempt {number}/{policy.max_attempts}): "
                        f"{type(e).__name__}: {e} - "
                        f"{'retrying' if will_retry else 'giving up'}"
                    )
                    raise

        if attempt.retry_state.attempt_number > 1:
            logger.info(
                f"{operation_name} succeeded after {attempt.retry_state.attempt_number} attempts"
            )
        return result
