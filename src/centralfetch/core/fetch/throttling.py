"""
Rate limiting and throttling utilities.

Provides per-destination request spacing with a configured
requests-per-second budget for each operation class.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from typing import Any, Callable
from urllib.parse import urlparse

from centralfetch.core.config.models import OperationClass, RateLimitConfig
from centralfetch.core.errors import FetchCancelled

from .cancellation import CancelToken, sleep_with

logger = logging.getLogger(__name__)

# Fallback rates when a class is configured with a non-positive budget
FALLBACK_RPS = {
    OperationClass.SEARCH.value: 1.0,
    OperationClass.DOWNLOAD.value: 1.0,
    OperationClass.DEFAULT.value: 5.0,
}


def destination_for(url: str) -> str:
    """Extract the destination (host[:port]) from a URL."""
    return urlparse(url).netloc.lower()


def _class_key(operation: OperationClass | str) -> str:
    if isinstance(operation, OperationClass):
        return operation.value
    return str(operation) or OperationClass.DEFAULT.value


class RateLimiter:
    """Per-destination minimum-interval gate.

    Features:
    - Interval of ``1000 / rps`` ms per operation class
    - One shared last-request time per destination, or per
      (destination, class) with ``per_class_spacing``
    - Slot reservation under the lock, sleeping outside it, so concurrent
      callers queue up at the configured spacing
    - Optional request/wait statistics
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            config: Rates and statistics switches
            clock: Monotonic clock in seconds (overridable for tests)
        """
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._lock = threading.Lock()

        # Spacing state
        self._last_request: dict[str | tuple[str, str], float] = {}

        # Statistics
        self._total_requests: dict[str, int] = defaultdict(int)
        self._request_counts: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._wait_ms: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def requests_per_second(self, operation: OperationClass | str) -> float:
        """Configured rate for an operation class, with fallbacks for <= 0."""
        key = _class_key(operation)
        rps = self.config.rate_for(key)
        if rps <= 0:
            rps = FALLBACK_RPS.get(key, FALLBACK_RPS[OperationClass.DEFAULT.value])
        return rps

    def min_interval_ms(self, operation: OperationClass | str) -> float:
        return 1000.0 / self.requests_per_second(operation)

    def _state_key(self, destination: str, operation: str) -> str | tuple[str, str]:
        if self.config.per_class_spacing:
            return (destination, operation)
        return destination

    def _reserve(self, key: str | tuple[str, str], operation: str) -> tuple[float | None, float, float]:
        """Reserve the next slot.

        Returns:
            (previous last-request time, reserved slot, seconds to wait)
        """
        interval = self.min_interval_ms(operation) / 1000.0

        with self._lock:
            now = self._clock()
            last = self._last_request.get(key)
            wait = 0.0
            if last is not None:
                elapsed = now - last
                if elapsed < interval:
                    wait = interval - elapsed
            self._last_request[key] = now + wait
        return last, now + wait, wait

    def _release(self, key: str | tuple[str, str], previous: float | None, slot: float) -> None:
        """Hand back an unused slot unless a later caller already queued behind it."""
        with self._lock:
            if self._last_request.get(key) != slot:
                return
            if previous is None:
                del self._last_request[key]
            else:
                self._last_request[key] = previous

    def _record(self, destination: str, operation: str, waited_ms: int) -> None:
        if not self.config.enable_stats:
            return
        with self._lock:
            self._total_requests[destination] += 1
            self._request_counts[destination][operation] += 1
            self._wait_ms[destination][operation] += waited_ms

    def acquire(
        self,
        destination: str,
        operation: OperationClass | str = OperationClass.DEFAULT,
        token: CancelToken | None = None,
    ) -> int:
        """Block until a request to ``destination`` may be sent.

        Args:
            destination: Host the request goes to
            operation: Operation class selecting the rate
            token: Cancellation token; interrupts the wait

        Returns:
            Milliseconds actually waited (0 if no wait was needed)

        Raises:
            FetchCancelled: If the token fires while waiting
        """
        operation_key = _class_key(operation)
        key = self._state_key(destination, operation_key)
        previous, slot, wait = self._reserve(key, operation_key)

        waited_ms = 0
        if wait > 0:
            started = self._clock()
            try:
                sleep_with(token, wait)
            except FetchCancelled:
                self._release(key, previous, slot)
                raise
            waited_ms = max(0, int(round((self._clock() - started) * 1000)))
            logger.debug(
                "Throttled %s request to %s for %d ms",
                operation_key,
                destination,
                waited_ms,
                extra={"destination": destination, "operation": operation_key, "waited_ms": waited_ms},
            )

        self._record(destination, operation_key, waited_ms)
        return waited_ms

    def acquire_url(
        self,
        url: str,
        operation: OperationClass | str = OperationClass.DEFAULT,
        token: CancelToken | None = None,
    ) -> int:
        """Acquire for the destination of ``url``."""
        return self.acquire(destination_for(url), operation, token)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Get rate limiter statistics.

        Returns:
            ``{"stats_enabled": False}`` when disabled, otherwise per
            destination totals and per-class count/total/average wait
        """
        if not self.config.enable_stats:
            return {"stats_enabled": False}

        with self._lock:
            hosts: dict[str, Any] = {}
            for destination, total in self._total_requests.items():
                operations: dict[str, dict[str, int]] = {}
                for op, count in self._request_counts[destination].items():
                    wait_ms = self._wait_ms[destination].get(op, 0)
                    operations[op] = {
                        "count": count,
                        "total_wait_ms": wait_ms,
                        "avg_wait_ms": wait_ms // count if count else 0,
                    }
                hosts[destination] = {"total_requests": total, "operations": operations}

        return {"stats_enabled": True, "hosts": hosts}

    def total_requests(self, destination: str) -> int:
        if not self.config.enable_stats:
            return 0
        with self._lock:
            return self._total_requests.get(destination, 0)

    def request_count(self, destination: str, operation: OperationClass | str) -> int:
        if not self.config.enable_stats:
            return 0
        with self._lock:
            counts = self._request_counts.get(destination)
            return counts.get(_class_key(operation), 0) if counts else 0

    def reset_stats(self) -> None:
        """Clear statistics; spacing state is kept."""
        with self._lock:
            self._total_requests.clear()
            self._request_counts.clear()
            self._wait_ms.clear()

    def reset(self) -> None:
        """Forget all spacing state and statistics."""
        with self._lock:
            self._last_request.clear()
        self.reset_stats()
