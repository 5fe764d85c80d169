"""Cooperative cancellation shared by the transport, retries and throttling.

A :class:`CancelToken` travels with one logical request. Every suspension
point (backoff sleep, rate-limit wait, network call) consults it, and the
sleeps are ``Event.wait`` based so firing the token wakes them at once.
"""

from __future__ import annotations

import threading
import time

from centralfetch.core.errors import FetchCancelled


class CancelToken:
    """Thread-safe cancellation token with an optional deadline.

    Examples:
        >>> token = CancelToken.with_timeout(5.0)
        >>> token.sleep(0.1)  # returns early if cancelled
        >>> # From another thread
        >>> token.cancel()
    """

    def __init__(self, deadline: float | None = None) -> None:
        """Initialize a new token.

        Args:
            deadline: Absolute ``time.monotonic()`` instant after which the
                token counts as cancelled
        """
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancelToken":
        """Create a token that expires ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
            self._event.set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def is_cancelled(self) -> bool:
        """True once cancel() was called or the deadline passed."""
        return self._event.is_set() or self.expired

    @property
    def reason(self) -> str | None:
        if self._event.is_set():
            return self._reason
        if self.expired:
            return "deadline exceeded"
        return None

    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None when there is none."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """Raise FetchCancelled if the token has fired."""
        if self.is_cancelled():
            raise FetchCancelled(f"Request cancelled: {self.reason}")

    def sleep(self, seconds: float) -> None:
        """Sleep up to ``seconds``, waking early and raising if cancelled.

        A deadline that falls inside the sleep cuts it short and raises.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return

        timeout = seconds
        remaining = self.remaining()
        if remaining is not None and remaining < timeout:
            self._event.wait(remaining)
            raise FetchCancelled(f"Request cancelled: {self.reason or 'deadline exceeded'}")

        if self._event.wait(timeout):
            raise FetchCancelled(f"Request cancelled: {self.reason}")


def sleep_with(token: CancelToken | None, seconds: float) -> None:
    """Sleep on ``token`` when given, otherwise a plain blocking sleep."""
    if token is None:
        if seconds > 0:
            time.sleep(seconds)
        return
    token.sleep(seconds)


def check(token: CancelToken | None) -> None:
    """Raise FetchCancelled if ``token`` has fired."""
    if token is not None:
        token.raise_if_cancelled()
