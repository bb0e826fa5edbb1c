"""Retry policy for record store writes.

Store calls report failure through a result flag; callers raise
PersistenceError on a failed result so that the policy below can retry
it with exponential backoff.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, TypeVar, Any

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for write retry behavior."""

    max_retries: int = 2
    base_delay_ms: float = 250
    max_delay_ms: float = 5000
    backoff_factor: float = 2.0
    retryable_errors: tuple[type[Exception], ...] = (Exception,)

    def delay_for_attempt(self, attempt: int) -> float:
        """Calculate delay in seconds for a given attempt number."""
        delay_ms = self.base_delay_ms * (self.backoff_factor ** attempt)
        delay_ms = min(delay_ms, self.max_delay_ms)
        return delay_ms / 1000

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        return isinstance(error, self.retryable_errors)


# Preset policies
NO_RETRY = RetryPolicy(max_retries=0)
STORE_RETRY = RetryPolicy(max_retries=2, base_delay_ms=250, backoff_factor=2.0)


@dataclass
class RetryResult:
    """Result of a retried call."""
    success: bool
    value: Any = None
    error: Exception | None = None
    attempts: int = 0
    total_delay_ms: float = 0


def execute_with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy | None = None,
    sleep_fn: Callable[[float], None] | None = None,
) -> RetryResult:
    """Call ``fn`` until it succeeds or the policy gives up.

    Args:
        fn: The function to execute.
        policy: Retry policy (defaults to STORE_RETRY).
        sleep_fn: Optional custom sleep function (for testing).
    """
    if policy is None:
        policy = STORE_RETRY
    if sleep_fn is None:
        sleep_fn = time.sleep

    total_delay = 0.0
    last_error: Exception | None = None
    attempts = 0

    for attempt in range(policy.max_retries + 1):
        attempts = attempt + 1
        try:
            return RetryResult(
                success=True,
                value=fn(),
                attempts=attempts,
                total_delay_ms=total_delay,
            )
        except Exception as e:
            last_error = e
            if not policy.should_retry(e, attempt):
                break
            delay = policy.delay_for_attempt(attempt)
            total_delay += delay * 1000
            sleep_fn(delay)

    return RetryResult(
        success=False,
        error=last_error,
        attempts=attempts,
        total_delay_ms=total_delay,
    )
