from __future__ import annotations

import threading

from centralfetch.core.fetch.caching import ResponseCache, default_cache


class Clock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_get_returns_fresh_entry():
    cache = ResponseCache(clock=Clock())
    cache.put("k", b"payload", ttl=10)
    assert cache.get("k") == (b"payload", True)
    assert "k" in cache


def test_entry_expires_at_ttl_boundary():
    clock = Clock()
    cache = ResponseCache(clock=clock)
    cache.put("k", b"payload", ttl=10)

    clock.now += 9.999
    assert cache.get("k")[1]

    clock.now += 0.001
    assert cache.get("k") == (None, False)
    # Expired entries stay stored until overwritten or cleared
    assert len(cache) == 1


def test_non_positive_ttl_stores_nothing():
    cache = ResponseCache(clock=Clock())
    cache.put("a", b"x", ttl=0)
    cache.put("b", b"x", ttl=-5)
    assert len(cache) == 0
    assert cache.get("a") == (None, False)


def test_put_overwrites_and_refreshes_expiry():
    clock = Clock()
    cache = ResponseCache(clock=clock)
    cache.put("k", b"old", ttl=5)
    clock.now += 4
    cache.put("k", b"new", ttl=5)
    clock.now += 4
    assert cache.get("k") == (b"new", True)


def test_missing_key():
    assert ResponseCache().get("nope") == (None, False)


def test_clear_discards_everything():
    cache = ResponseCache()
    for i in range(5):
        cache.put(f"k{i}", b"x", ttl=60)
    cache.clear()
    assert len(cache) == 0
    assert cache.get("k0") == (None, False)


def test_concurrent_readers_and_writers():
    cache = ResponseCache()
    errors: list[BaseException] = []

    def writer(n: int) -> None:
        try:
            for i in range(200):
                cache.put(f"w{n}-{i}", b"v", ttl=60)
        except BaseException as e:  # pragma: no cover
            errors.append(e)

    def reader() -> None:
        try:
            for i in range(200):
                cache.get(f"w0-{i}")
        except BaseException as e:  # pragma: no cover
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    threads += [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(cache) == 800


def test_default_cache_is_shared():
    assert default_cache() is default_cache()
