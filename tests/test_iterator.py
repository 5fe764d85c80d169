from __future__ import annotations

import logging

import pytest
from httpx import Response

from centralfetch.core.errors import (
    ErrorKind,
    FetchCancelled,
    PartialResultError,
    PermanentError,
    TransientError,
)
from centralfetch.core.fetch.cancellation import CancelToken
from centralfetch.core.search import (
    Artifact,
    FetchRequest,
    IteratorExhausted,
    IteratorState,
    Page,
    PagedIterator,
    Query,
)
from conftest import SEARCH_HOST, artifact_doc, solr_payload


class FakeSearch:
    """In-memory page source over ``total`` integer items."""

    def __init__(self, total: int, fail_at: set[int] | None = None, short_at: set[int] | None = None):
        self.total = total
        self.fail_at = fail_at or set()
        self.short_at = short_at or set()
        self.starts: list[int] = []
        self.tokens: list[CancelToken | None] = []

    def __call__(self, request: FetchRequest, token: CancelToken | None) -> Page[int]:
        self.starts.append(request.start)
        self.tokens.append(token)
        if request.start in self.fail_at:
            raise TransientError("overloaded", kind=ErrorKind.SERVICE_UNAVAILABLE, status_code=503)
        if request.start in self.short_at:
            items: list[int] = []
        else:
            items = list(range(request.start, min(request.start + request.rows, self.total)))
        return Page(items=items, total=self.total, start=request.start)


def request(rows: int = 10, start: int = 0) -> FetchRequest:
    return FetchRequest(query=Query.of(group_id="org.example"), rows=rows, start=start)


@pytest.mark.parametrize(
    "total, rows, pages",
    [(0, 10, 1), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 10, 3), (200, 200, 1), (401, 200, 3)],
)
def test_drain_yields_every_item_once(total, rows, pages):
    source = FakeSearch(total)
    it = PagedIterator(source, request(rows))

    assert it.to_list() == list(range(total))
    assert len(source.starts) == pages
    assert it.state is IteratorState.EXHAUSTED
    assert it.yielded == total
    assert it.total == total


def test_offsets_are_strictly_increasing():
    source = FakeSearch(35)
    list(PagedIterator(source, request(10)))
    assert source.starts == [0, 10, 20, 30]


def test_starts_at_request_offset():
    source = FakeSearch(25)
    it = PagedIterator(source, request(10, start=20))

    assert it.to_list() == [20, 21, 22, 23, 24]
    assert source.starts == [20]
    assert it.expected == 5


def test_has_next_is_idempotent():
    source = FakeSearch(15)
    it = PagedIterator(source, request(10))

    for _ in range(5):
        assert it.has_next()
    assert source.starts == [0]
    assert it.offset == 10

    for _ in range(10):
        it.next()
    for _ in range(3):
        assert it.has_next()
    assert source.starts == [0, 10]


def test_next_after_exhaustion_raises():
    it = PagedIterator(FakeSearch(2), request(10))
    it.next()
    it.next()

    assert not it.has_next()
    with pytest.raises(IteratorExhausted):
        it.next()
    with pytest.raises(StopIteration):
        next(it)


def test_first_page_failure_is_latched():
    source = FakeSearch(30, fail_at={0})
    it = PagedIterator(source, request(10))

    with pytest.raises(TransientError) as first:
        it.has_next()
    with pytest.raises(TransientError) as second:
        it.next()
    with pytest.raises(TransientError):
        it.to_list()

    assert first.value is second.value
    assert it.state is IteratorState.FAILED
    assert it.error is first.value
    assert source.starts == [0]


def test_mid_stream_failure_yields_partial_result():
    source = FakeSearch(30, fail_at={20})
    it = PagedIterator(source, request(10))

    with pytest.raises(PartialResultError) as excinfo:
        it.to_list()

    assert excinfo.value.items == list(range(20))
    assert isinstance(excinfo.value.error, TransientError)
    assert excinfo.value.__cause__ is excinfo.value.error
    assert source.starts == [0, 10, 20]

    # Latched: no further fetches
    with pytest.raises(TransientError):
        it.has_next()
    assert source.starts == [0, 10, 20]


def test_empty_page_before_total_stops_with_warning(caplog):
    source = FakeSearch(30, short_at={10})
    it = PagedIterator(source, request(10))

    with caplog.at_level(logging.WARNING, logger="centralfetch.core.search.iterator"):
        items = it.to_list()

    assert items == list(range(10))
    assert it.state is IteratorState.EXHAUSTED
    assert "empty page" in caplog.text
    assert not it.has_next()
    assert source.starts == [0, 10]


def test_page_larger_than_remaining_is_capped():
    def overshooting(req: FetchRequest, token: CancelToken | None) -> Page[int]:
        return Page(items=list(range(req.start, req.start + req.rows)), total=5, start=req.start)

    assert PagedIterator(overshooting, request(10)).to_list() == [0, 1, 2, 3, 4]


def test_default_token_is_forwarded():
    source = FakeSearch(3)
    token = CancelToken()
    list(PagedIterator(source, request(10), token=token))
    assert source.tokens == [token]


def test_cancellation_latches_too():
    token = CancelToken()

    def cancelled(req: FetchRequest, tok: CancelToken | None) -> Page[int]:
        raise FetchCancelled("stop")

    it = PagedIterator(cancelled, request(), token)
    with pytest.raises(FetchCancelled):
        it.to_list()
    assert it.state is IteratorState.FAILED


# =============================================================================
# Through the real client
# =============================================================================


def test_five_hits_one_row_per_page(mock_api, client):
    docs = [artifact_doc(i) for i in range(5)]

    def solr(req):
        start = int(req.url.params["start"])
        assert req.url.params["rows"] == "1"
        return Response(200, json=solr_payload(docs[start : start + 1], num_found=5, start=start))

    route = mock_api.get(host=SEARCH_HOST, path="/solrsearch/select").mock(side_effect=solr)

    it = client.iterate(request(rows=1), doc_type=Artifact)
    items = it.to_list()

    assert [doc.artifact_id for doc in items] == ["lib0", "lib1", "lib2", "lib3", "lib4"]
    assert [int(call.request.url.params["start"]) for call in route.calls] == [0, 1, 2, 3, 4]
    assert route.call_count == 5


def test_iteration_survives_transient_failures(mock_api, client):
    docs = [artifact_doc(i) for i in range(4)]
    seen = {"n": 0}

    def solr(req):
        seen["n"] += 1
        start = int(req.url.params["start"])
        if start == 2 and seen["n"] == 2:
            return Response(503)
        return Response(200, json=solr_payload(docs[start : start + 2], num_found=4, start=start))

    mock_api.get(host=SEARCH_HOST, path="/solrsearch/select").mock(side_effect=solr)

    assert len(client.iterate(request(rows=2)).to_list()) == 4
    assert seen["n"] == 3


def test_permanent_error_mid_iteration(mock_api, client):
    def solr(req):
        start = int(req.url.params["start"])
        if start >= 2:
            return Response(400, json={"error": {"msg": "too deep"}})
        return Response(200, json=solr_payload([artifact_doc(0), artifact_doc(1)], num_found=6))

    mock_api.get(host=SEARCH_HOST, path="/solrsearch/select").mock(side_effect=solr)

    with pytest.raises(PartialResultError) as excinfo:
        client.iterate(request(rows=2)).to_list()

    assert len(excinfo.value.items) == 2
    assert isinstance(excinfo.value.error, PermanentError)
    assert "too deep" in str(excinfo.value.error)
