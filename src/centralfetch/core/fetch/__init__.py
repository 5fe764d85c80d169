"""Fetch utilities - cancellation, throttling, retries, caching."""

from .caching import CacheEntry, ResponseCache, default_cache
from .cancellation import CancelToken
from .retries import RetryExecutor, RetryPolicy, with_retry
from .throttling import RateLimiter, destination_for

__all__ = [
    "CacheEntry",
    "CancelToken",
    "RateLimiter",
    "ResponseCache",
    "RetryExecutor",
    "RetryPolicy",
    "default_cache",
    "destination_for",
    "with_retry",
]
