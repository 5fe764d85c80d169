"""
In-memory response cache.

Stores raw response bytes under request keys for a bounded freshness
window. Expired entries are never purged eagerly: they read as absent and
are replaced by the next write for the same key.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator


@dataclass(frozen=True)
class CacheEntry:
    data: bytes
    expires_at: float  # clock() instant

    def fresh(self, now: float) -> bool:
        return now < self.expires_at


class _ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ResponseCache:
    """Thread-safe TTL cache of byte payloads.

    Usage:
        cache = ResponseCache()
        cache.put(url, body, ttl=300)
        data, found = cache.get(url)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize an empty cache.

        Args:
            clock: Monotonic clock in seconds (overridable for tests)
        """
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = _ReadWriteLock()

    def get(self, key: str) -> tuple[bytes | None, bool]:
        """Look up ``key``.

        Returns:
            ``(data, True)`` for a fresh entry, ``(None, False)`` otherwise
        """
        with self._lock.read():
            entry = self._entries.get(key)
        if entry is None or not entry.fresh(self._clock()):
            return None, False
        return entry.data, True

    def put(self, key: str, data: bytes, ttl: float) -> None:
        """Store ``data`` for ``ttl`` seconds; ``ttl <= 0`` stores nothing."""
        if ttl <= 0:
            return
        entry = CacheEntry(data=bytes(data), expires_at=self._clock() + ttl)
        with self._lock.write():
            self._entries[key] = entry

    def clear(self) -> None:
        """Discard every entry."""
        with self._lock.write():
            self._entries = {}

    def __contains__(self, key: str) -> bool:
        return self.get(key)[1]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)


_default_cache: ResponseCache | None = None
_default_lock = threading.Lock()


def default_cache() -> ResponseCache:
    """Process-wide cache for clients that opt into sharing."""
    global _default_cache
    with _default_lock:
        if _default_cache is None:
            _default_cache = ResponseCache()
        return _default_cache
