"""
Retry utilities with tenacity.

Runs a fallible operation, retrying classified transient failures with
exponential backoff. Backoff sleeps wait on the request's CancelToken so
cancellation pre-empts any remaining retries.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import partial, wraps
from typing import Any, Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from centralfetch.core.errors import is_transient

from .cancellation import CancelToken, check, sleep_with

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 0.5  # seconds
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_BACKOFF_CEILING = 10.0  # seconds


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior.

    ``max_retries`` counts retries after the first attempt, so an operation
    runs at most ``max_retries + 1`` times.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
    backoff_ceiling: float = DEFAULT_BACKOFF_CEILING

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_backoff < 0 or self.backoff_ceiling < 0:
            raise ValueError("backoff durations must be >= 0")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff_for(self, retry_number: int) -> float:
        """Seconds slept before retry ``retry_number`` (1-based)."""
        if retry_number < 1:
            return 0.0
        try:
            delay = self.initial_backoff * self.backoff_factor ** (retry_number - 1)
        except OverflowError:
            return self.backoff_ceiling
        return min(delay, self.backoff_ceiling)

    def wait_strategy(self) -> wait_exponential:
        # tenacity computes multiplier * exp_base ** (attempt_number - 1),
        # which for the sleep after attempt n is initial * factor ** (n - 1).
        return wait_exponential(
            multiplier=self.initial_backoff,
            exp_base=self.backoff_factor,
            min=0,
            max=self.backoff_ceiling,
        )


class RetryExecutor:
    """Run operations under a RetryPolicy.

    Only errors for which ``is_transient`` holds are retried; anything else
    propagates from the attempt that raised it. When the budget runs out the
    last transient error is re-raised unchanged.
    """

    def __init__(self, policy: RetryPolicy | None = None):
        self.policy = policy or RetryPolicy()
        self._local = threading.local()

    @property
    def attempts(self) -> int:
        """Attempts made by the most recent run on the calling thread."""
        return getattr(self._local, "attempts", 0)

    def _retrying(self, token: CancelToken | None) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self.policy.wait_strategy(),
            retry=retry_if_exception(is_transient),
            sleep=partial(sleep_with, token),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def run(self, operation: Callable[[], T], token: CancelToken | None = None) -> T:
        """Execute ``operation`` with retries.

        Args:
            operation: Zero-argument callable raising FetchError on failure
            token: Cancellation token observed before each attempt and
                during every backoff sleep

        Returns:
            The operation's result

        Raises:
            FetchCancelled: If the token fires before or between attempts
            FetchError: The first permanent error, or the last transient one
        """
        self._local.attempts = 0

        for attempt in self._retrying(token):
            with attempt:
                check(token)
                self._local.attempts = attempt.retry_state.attempt_number
                return operation()

        # Unreachable: reraise=True either returns or raises
        raise AssertionError("retry loop exited without a result")


def with_retry(
    func: Callable[..., T] | None = None,
    *,
    policy: RetryPolicy | None = None,
) -> Callable[..., T]:
    """Decorator to add retry logic to a function.

    Can be used with or without arguments:

        @with_retry
        def fetch_page(): ...

        @with_retry(policy=RetryPolicy(max_retries=5))
        def fetch_page(token=None): ...

    A ``token`` keyword argument, when passed, is forwarded to the function
    and also used to cancel backoff sleeps.
    """
    executor = RetryExecutor(policy)

    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            token = kwargs.get("token")
            return executor.run(lambda: fn(*args, **kwargs), token=token)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
