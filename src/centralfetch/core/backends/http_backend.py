"""
HTTP Backend implementation using httpx.

Provides blocking HTTP fetching with:
- Per-destination rate limiting before every attempt
- Automatic retry with exponential backoff for transient failures
- Status classification into the FetchError taxonomy
- Response caching support
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait

import httpx

from centralfetch.core.config.models import AppConfig
from centralfetch.core.errors import (
    ErrorKind,
    FetchCancelled,
    PermanentError,
    TransientError,
    classify_status,
)
from centralfetch.core.fetch.caching import ResponseCache
from centralfetch.core.fetch.cancellation import CancelToken, check
from centralfetch.core.fetch.retries import RetryExecutor
from centralfetch.core.fetch.throttling import RateLimiter

from .base import Backend, FetchResult, RequestSpec

logger = logging.getLogger(__name__)

MAX_CONNECTIONS = 20

# How often a request waiting on a worker thread re-checks its token
CANCEL_POLL_SECONDS = 0.05

# Malformed requests; retrying sends the same bad request again
INVALID_REQUEST_ERRORS = (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.LocalProtocolError)


def _discard_response(future: Future) -> None:
    if not future.cancelled() and future.exception() is None:
        future.result().close()


class HttpTransport(Backend):
    """HTTP backend using a shared httpx.Client.

    Features:
    - Persistent connection pooling
    - Automatic redirect following
    - Timeout clamped to the cancellation token's remaining deadline
    - Requests carrying a token run on a worker thread so that cancelling
      the token returns control without waiting for the response
    - Successful bodies stored in the cache when caching is enabled
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        cache: ResponseCache | None = None,
        rate_limiter: RateLimiter | None = None,
        retry: RetryExecutor | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize HTTP transport.

        Args:
            config: Application configuration (defaults when omitted)
            cache: Response cache (a private one when omitted)
            rate_limiter: Shared limiter (built from config when omitted)
            retry: Retry executor (built from config when omitted)
            http_client: Pre-built httpx client; the caller keeps ownership
        """
        self.config = config or AppConfig()
        self.timeout = self.config.http.timeout_seconds
        self.user_agent = self.config.endpoints.user_agent

        self.cache = cache if cache is not None else ResponseCache()
        self.cache_enabled = self.config.cache.enabled
        self.cache_ttl = float(self.config.cache.ttl_seconds)

        self.rate_limiter = rate_limiter or RateLimiter(self.config.rate_limit)
        self.retry = retry or RetryExecutor(self.config.retry_policy())

        self.default_headers = {"User-Agent": self.user_agent}

        self._client = http_client
        self._owns_client = http_client is None

        self._pool: ThreadPoolExecutor | None = None
        self._pool_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "http"

    def _ensure_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                headers=self.default_headers,
                limits=httpx.Limits(
                    max_connections=MAX_CONNECTIONS,
                    max_keepalive_connections=10,
                ),
            )
            self._owns_client = True
        return self._client

    def _request_timeout(self, token: CancelToken | None) -> float:
        remaining = token.remaining() if token is not None else None
        if remaining is None:
            return self.timeout
        if remaining <= 0:
            raise FetchCancelled("Request cancelled: deadline exceeded")
        return min(self.timeout, remaining)

    def _ensure_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=MAX_CONNECTIONS,
                    thread_name_prefix="centralfetch-http",
                )
            return self._pool

    def _get(
        self,
        client: httpx.Client,
        url: str,
        headers: dict[str, str],
        timeout: float,
        token: CancelToken | None,
    ) -> httpx.Response:
        """GET that returns as soon as ``token`` fires.

        An abandoned request finishes on its worker thread and its response
        is closed there.
        """
        if token is None:
            return client.get(url, headers=headers, timeout=timeout)

        future = self._ensure_pool().submit(client.get, url, headers=headers, timeout=timeout)
        while True:
            done, _ = wait([future], timeout=CANCEL_POLL_SECONDS)
            if done:
                return future.result()
            if token.is_cancelled():
                future.cancel()
                future.add_done_callback(_discard_response)
                logger.debug("Abandoned in-flight request to %s", url, extra={"url": url})
                raise FetchCancelled(f"Request cancelled: {token.reason}", url=url)

    def _send(self, request: RequestSpec, token: CancelToken | None) -> FetchResult:
        """Issue one GET and classify the outcome."""
        check(token)
        client = self._ensure_client()
        headers = {**self.default_headers, **request.headers}
        timeout = self._request_timeout(token)

        started = time.perf_counter()
        try:
            response = self._get(client, request.url, headers, timeout, token)
        except INVALID_REQUEST_ERRORS as e:
            raise PermanentError(
                f"Invalid request: {e}",
                kind=ErrorKind.BAD_REQUEST,
                url=request.url,
                cause=e,
            ) from e
        except httpx.TimeoutException as e:
            if token is not None and token.is_cancelled():
                raise FetchCancelled(f"Request cancelled: {token.reason}", url=request.url, cause=e) from e
            raise TransientError(
                f"Timeout: {e}",
                kind=ErrorKind.CONNECTION,
                url=request.url,
                cause=e,
            ) from e
        except httpx.TransportError as e:
            raise TransientError(
                f"Transport error: {e}",
                kind=ErrorKind.CONNECTION,
                url=request.url,
                cause=e,
            ) from e
        except httpx.RequestError as e:
            raise PermanentError(f"Request failed: {e}", url=request.url, cause=e) from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        check(token)

        if response.status_code >= 400:
            response_headers = {k.lower(): v for k, v in response.headers.items()}
            raise classify_status(
                response.status_code,
                response.content,
                url=request.url,
                headers=response_headers,
            )

        return FetchResult(
            url=request.url,
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    def fetch(self, request: RequestSpec, token: CancelToken | None = None) -> FetchResult:
        """Fetch a URL through cache, rate limiter and retries.

        Args:
            request: Request specification
            token: Cancellation token for this logical request

        Returns:
            FetchResult with response data

        Raises:
            FetchError: Classified failure after retries are exhausted
        """
        check(token)
        cache_key = request.cache_key or request.url

        if self.cache_enabled:
            data, found = self.cache.get(cache_key)
            if found:
                logger.debug("Cache hit for %s", request.url, extra={"url": request.url})
                return FetchResult(
                    url=request.url,
                    status_code=200,
                    content=data or b"",
                    from_cache=True,
                    attempts=0,
                )

        waited_ms = 0

        def attempt() -> FetchResult:
            nonlocal waited_ms
            waited_ms += self.rate_limiter.acquire_url(request.url, request.operation, token)
            return self._send(request, token)

        result = self.retry.run(attempt, token=token)
        result.attempts = self.retry.attempts
        result.waited_ms = waited_ms

        logger.debug(
            "Fetched %s (%d bytes, %d attempts, %.0f ms)",
            request.url,
            result.content_length,
            result.attempts,
            result.elapsed_ms,
            extra={"url": request.url, "operation": request.operation, "attempt": result.attempts},
        )

        if self.cache_enabled:
            self.cache.put(cache_key, result.content, self.cache_ttl)

        return result

    def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.shutdown(wait=False, cancel_futures=True)
                self._pool = None
        if self._owns_client and self._client is not None and not self._client.is_closed:
            self._client.close()
        self._client = None
