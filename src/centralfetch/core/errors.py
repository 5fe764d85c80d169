"""
Error taxonomy for centralfetch.

Every fetch failure surfaces as one FetchError subclass carrying an
ErrorKind, an optional detail string and, for HTTP-sourced errors, the
original status code. Raw transport exceptions are kept as ``cause``.
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any

import orjson


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    # Transient
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    BAD_GATEWAY = "bad_gateway"
    GATEWAY_TIMEOUT = "gateway_timeout"
    SERVER_ERROR = "server_error"
    CONNECTION = "connection"

    # Permanent
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    API_ERROR = "api_error"
    HTTP_ERROR = "http_error"
    CHECKSUM_MISMATCH = "checksum_mismatch"

    # Decode / cancellation
    DECODE = "decode"
    CANCELLED = "cancelled"

    @property
    def transient(self) -> bool:
        return self in TRANSIENT_KINDS


TRANSIENT_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVICE_UNAVAILABLE,
        ErrorKind.BAD_GATEWAY,
        ErrorKind.GATEWAY_TIMEOUT,
        ErrorKind.SERVER_ERROR,
        ErrorKind.CONNECTION,
    }
)

# Status codes that should trigger retry
RETRY_STATUS_KINDS: dict[int, ErrorKind] = {
    429: ErrorKind.RATE_LIMITED,
    500: ErrorKind.SERVER_ERROR,
    502: ErrorKind.BAD_GATEWAY,
    503: ErrorKind.SERVICE_UNAVAILABLE,
    504: ErrorKind.GATEWAY_TIMEOUT,
}

PERMANENT_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
}


class FetchError(Exception):
    """Base exception for every classified fetch failure."""

    kind: ErrorKind = ErrorKind.HTTP_ERROR

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        url: str | None = None,
        status_code: int | None = None,
        detail: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.url = url
        self.status_code = status_code
        self.detail = detail
        self.cause = cause

    @property
    def transient(self) -> bool:
        """Whether retrying after a delay may succeed."""
        return self.kind.transient

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"[{self.status_code}] {message}"
        if self.url:
            message = f"{message} (url: {self.url})"
        return message


class TransientError(FetchError):
    """Failure likely to succeed if retried after a delay."""

    kind = ErrorKind.SERVER_ERROR


class RateLimitError(TransientError):
    """Rate limit hit (429)."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        retry_after: float | None = None,
        detail: str | None = None,
    ):
        super().__init__(message, url=url, status_code=429, detail=detail)
        self.retry_after = retry_after


class PermanentError(FetchError):
    """Failure that will not go away by retrying."""

    kind = ErrorKind.HTTP_ERROR


class ChecksumMismatchError(PermanentError):
    """Downloaded bytes do not match the published checksum."""

    kind = ErrorKind.CHECKSUM_MISMATCH

    def __init__(self, message: str, *, url: str | None = None, expected: str, actual: str):
        super().__init__(message, url=url, detail=f"expected={expected} actual={actual}")
        self.expected = expected
        self.actual = actual


class DecodeError(FetchError):
    """Response body could not be decoded (malformed JSON or schema mismatch)."""

    kind = ErrorKind.DECODE


class FetchCancelled(FetchError):
    """Caller cancelled the request or its deadline passed."""

    kind = ErrorKind.CANCELLED


class PartialResultError(FetchError):
    """A drain failed after collecting some items.

    ``items`` holds everything collected before the failure and ``error``
    the first error raised.
    """

    def __init__(self, items: list[Any], error: FetchError):
        super().__init__(
            f"Stopped after {len(items)} items: {error}",
            kind=error.kind,
            url=error.url,
            status_code=error.status_code,
            detail=error.detail,
            cause=error,
        )
        self.items = items
        self.error = error


# =============================================================================
# Classification
# =============================================================================


def _error_message_from_body(body: bytes) -> str | None:
    """Extract ``message`` or ``error`` from a JSON error body."""
    if not body:
        return None
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    for key in ("message", "error"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
        # Solr nests errors as {"error": {"msg": ..., "code": ...}}
        if isinstance(value, dict):
            msg = value.get("msg") or value.get("message")
            if isinstance(msg, str) and msg:
                return msg
    return None


def _reason(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "HTTP error"


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def classify_status(
    status_code: int,
    body: bytes = b"",
    *,
    url: str | None = None,
    headers: dict[str, str] | None = None,
) -> FetchError:
    """Map an HTTP error status (>= 400) to a classified FetchError."""
    server_message = _error_message_from_body(body)
    message = server_message or _reason(status_code)
    detail = None
    if server_message is None and body:
        detail = body[:500].decode("utf-8", errors="replace")

    if status_code == 429:
        retry_after = _parse_retry_after((headers or {}).get("retry-after"))
        return RateLimitError(
            f"Rate limited: {message}",
            url=url,
            retry_after=retry_after,
            detail=detail,
        )

    kind = RETRY_STATUS_KINDS.get(status_code)
    if kind is not None:
        return TransientError(
            f"Server error: {message}",
            kind=kind,
            url=url,
            status_code=status_code,
            detail=detail,
        )

    kind = PERMANENT_STATUS_KINDS.get(status_code)
    if kind is None:
        kind = ErrorKind.API_ERROR if server_message else ErrorKind.HTTP_ERROR
    return PermanentError(
        message,
        kind=kind,
        url=url,
        status_code=status_code,
        detail=detail,
    )


def is_transient(error: BaseException) -> bool:
    """Retry predicate: only classified transient fetch errors qualify."""
    return isinstance(error, FetchError) and error.transient
