"""Bounded-duration retry for remote calls.

Only throttling errors are retried. Attempts are strictly sequential and a
new attempt never starts once the budget has elapsed, so total wall-clock
time stays below ``max_duration`` plus the duration of one attempt.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from .config import DEFAULT_RETRY_BACKOFF_BASE_SECONDS, DEFAULT_RETRY_BACKOFF_MAX_SECONDS
from .errors import HookOperatorError, OperationTimeoutError, is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Jitter added on top of the exponential delay, as a fraction of the delay
RETRY_JITTER_FRACTION = 0.2


class RetryExecutor:
    """Runs an operation until success, a fatal error, or budget exhaustion.

    Args:
        backoff_base_seconds: Delay after the first failed attempt.
        backoff_max_seconds: Ceiling for the exponential delay.
        is_retryable: Error classifier (defaults to throttling detection).
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.
    """

    def __init__(
        self,
        *,
        backoff_base_seconds: float = DEFAULT_RETRY_BACKOFF_BASE_SECONDS,
        backoff_max_seconds: float = DEFAULT_RETRY_BACKOFF_MAX_SECONDS,
        is_retryable: Callable[[BaseException], bool] = is_transient,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._backoff_base = backoff_base_seconds
        self._backoff_max = backoff_max_seconds
        self._is_retryable = is_retryable
        self._clock = clock
        self._sleep = sleep

    def backoff_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        backoff = min(self._backoff_base * (2 ** (attempt - 1)), self._backoff_max)
        return backoff + random.uniform(0, backoff * RETRY_JITTER_FRACTION)

    def execute(
        self,
        operation: Callable[[], T],
        max_duration: float,
        *,
        operation_name: str = "operation",
        identity: str | None = None,
    ) -> T:
        """Invoke ``operation`` with retry on transient errors.

        At least one attempt is always made.

        Args:
            operation: Zero-argument callable performing the remote call.
            max_duration: Retry budget in seconds.
            operation_name: Name used in logs and errors.
            identity: Resource identity, if known, for error context.

        Returns:
            The operation's return value.

        Raises:
            OperationTimeoutError: Budget exhausted while the error stayed transient.
            Exception: The first non-retryable error, unchanged.
        """
        deadline = self._clock() + max_duration
        attempt = 0

        while True:
            attempt += 1
            try:
                return operation()
            except HookOperatorError:
                raise
            except Exception as e:
                if not self._is_retryable(e):
                    logger.debug(
                        "Non-retryable error, giving up",
                        extra={"operation": operation_name, "attempt": attempt},
                    )
                    raise
                last_error = e

            remaining = deadline - self._clock()
            if remaining <= 0:
                break

            wait_time = min(self.backoff_for(attempt), remaining)
            logger.warning(
                "Transient error, retrying",
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "wait_seconds": round(wait_time, 3),
                    "remaining_seconds": round(remaining, 3),
                    "error": str(last_error),
                },
            )
            self._sleep(wait_time)

            if self._clock() >= deadline:
                break

        logger.error(
            "Retry budget exhausted",
            extra={
                "operation": operation_name,
                "attempts": attempt,
                "max_duration_seconds": max_duration,
            },
        )
        raise OperationTimeoutError(
            f"gave up after {attempt} attempts in {max_duration}s",
            operation=operation_name,
            identity=identity,
            timeout_seconds=max_duration,
            last_error=last_error,
        ) from last_error
