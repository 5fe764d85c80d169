from __future__ import annotations

import pytest

from centralfetch.core.errors import (
    ChecksumMismatchError,
    DecodeError,
    ErrorKind,
    FetchCancelled,
    FetchError,
    PartialResultError,
    PermanentError,
    RateLimitError,
    TransientError,
    classify_status,
    is_transient,
)


@pytest.mark.parametrize(
    "status, kind",
    [
        (500, ErrorKind.SERVER_ERROR),
        (502, ErrorKind.BAD_GATEWAY),
        (503, ErrorKind.SERVICE_UNAVAILABLE),
        (504, ErrorKind.GATEWAY_TIMEOUT),
    ],
)
def test_server_errors_are_transient(status, kind):
    err = classify_status(status, b"", url="https://x.test/a")
    assert isinstance(err, TransientError)
    assert err.kind is kind
    assert err.status_code == status
    assert err.transient
    assert is_transient(err)


@pytest.mark.parametrize(
    "status, kind",
    [
        (400, ErrorKind.BAD_REQUEST),
        (401, ErrorKind.UNAUTHORIZED),
        (403, ErrorKind.FORBIDDEN),
        (404, ErrorKind.NOT_FOUND),
        (418, ErrorKind.HTTP_ERROR),
        (501, ErrorKind.HTTP_ERROR),
    ],
)
def test_client_errors_are_permanent(status, kind):
    err = classify_status(status, b"")
    assert isinstance(err, PermanentError)
    assert err.kind is kind
    assert not is_transient(err)


def test_429_is_rate_limit_with_retry_after():
    err = classify_status(429, b"", headers={"retry-after": "7"})
    assert isinstance(err, RateLimitError)
    assert err.kind is ErrorKind.RATE_LIMITED
    assert err.status_code == 429
    assert err.retry_after == 7.0
    assert err.transient


def test_retry_after_garbage_is_ignored():
    err = classify_status(429, b"", headers={"retry-after": "Wed, 21 Oct 2015 07:28:00 GMT"})
    assert isinstance(err, RateLimitError)
    assert err.retry_after is None


def test_message_prefers_server_json_fields():
    err = classify_status(422, b'{"message": "bad coordinates"}')
    assert "bad coordinates" in str(err)
    assert err.kind is ErrorKind.API_ERROR
    assert err.detail is None

    err = classify_status(400, b'{"error": "undefined field xyz"}')
    assert "undefined field xyz" in str(err)
    assert err.kind is ErrorKind.BAD_REQUEST


def test_solr_nested_error_message():
    err = classify_status(400, b'{"error": {"msg": "org.apache.solr.search.SyntaxError", "code": 400}}')
    assert "SyntaxError" in str(err)


def test_plain_body_becomes_detail():
    err = classify_status(404, b"<html>Not here</html>", url="https://repo.test/x.jar")
    assert "Not Found" in str(err)
    assert err.detail == "<html>Not here</html>"
    assert "https://repo.test/x.jar" in str(err)


def test_other_failures_are_not_transient():
    assert not is_transient(DecodeError("bad json"))
    assert not is_transient(FetchCancelled("stop"))
    assert not is_transient(ChecksumMismatchError("x", expected="a", actual="b"))
    assert not is_transient(ValueError("not a fetch error"))
    assert is_transient(TransientError("reset", kind=ErrorKind.CONNECTION))


def test_partial_result_error_carries_items_and_first_error():
    first = TransientError("boom", kind=ErrorKind.SERVICE_UNAVAILABLE, status_code=503)
    err = PartialResultError([1, 2], first)
    assert isinstance(err, FetchError)
    assert err.items == [1, 2]
    assert err.error is first
    assert err.kind is ErrorKind.SERVICE_UNAVAILABLE
    assert "2 items" in str(err)
