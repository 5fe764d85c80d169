"""
Batch fan-out / fan-in.

Runs one task per key on a thread pool and collects every outcome on the
calling thread. A failing task never aborts its siblings; its error is
recorded against its key.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, Hashable, Mapping, TypeVar

from centralfetch.core.errors import FetchError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


@dataclass
class BatchOutcome(Generic[T]):
    """Result of one batch task: exactly one of ``value`` or ``error``."""

    value: T | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the recorded error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


@dataclass
class BatchStats:
    """Counts for a finished batch."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"total": self.total, "succeeded": self.succeeded, "failed": self.failed}


def summarize(outcomes: Mapping[Any, BatchOutcome[Any]]) -> BatchStats:
    stats = BatchStats(total=len(outcomes))
    for outcome in outcomes.values():
        if outcome.ok:
            stats.succeeded += 1
        else:
            stats.failed += 1
    return stats


def run_batch(
    tasks: Mapping[K, Callable[[], T]],
    max_workers: int = 8,
) -> dict[K, BatchOutcome[T]]:
    """Run every task concurrently and gather outcomes by key.

    Args:
        tasks: Key -> zero-argument callable
        max_workers: Upper bound on worker threads

    Returns:
        Key -> BatchOutcome, in the iteration order of ``tasks``

    Only FetchError is captured per key; anything else is a bug and
    propagates to the caller.
    """
    if not tasks:
        return {}

    outcomes: dict[K, BatchOutcome[T]] = {}
    workers = max(1, min(max_workers, len(tasks)))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="centralfetch") as executor:
        futures: dict[Future[T], K] = {executor.submit(task): key for key, task in tasks.items()}

        for future in as_completed(futures):
            key = futures[future]
            try:
                outcomes[key] = BatchOutcome(value=future.result())
            except FetchError as e:
                logger.warning("Batch task %r failed: %s", key, e)
                outcomes[key] = BatchOutcome(error=e)

    stats = summarize(outcomes)
    logger.debug("Batch finished: %s", stats.to_dict())

    return {key: outcomes[key] for key in tasks}
