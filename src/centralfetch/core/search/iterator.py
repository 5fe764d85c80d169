"""
Lazy paginated iteration over search results.

The iterator buffers one page at a time and only fetches the next page
once the buffer is drained. Any fetch failure is latched: from then on
every call re-raises the same error without touching the network.
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Callable, Generic, Iterator, TypeVar

from centralfetch.core.errors import FetchError, PartialResultError
from centralfetch.core.fetch.cancellation import CancelToken

from .models import Page
from .query import FetchRequest

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[FetchRequest, "CancelToken | None"], Page[T]]


class IteratorState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BUFFERING = "buffering"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class IteratorExhausted(StopIteration):
    """Raised by ``next()`` when no items remain."""


class PagedIterator(Generic[T]):
    """Cursor over a search, fetching pages on demand.

    Single consumer; not thread-safe.

    Usage:
        it = client.iterate(FetchRequest(query=Query.of(group_id="org.slf4j")))
        while it.has_next():
            doc = it.next()

        # or simply
        for doc in client.iterate(request):
            ...
    """

    def __init__(
        self,
        fetch_page: PageFetcher[T],
        request: FetchRequest,
        token: CancelToken | None = None,
    ):
        """Initialize the iterator.

        Args:
            fetch_page: Callable returning one Page for a request
            request: First request; its ``start`` is the initial offset
            token: Default cancellation token for calls that pass none
        """
        self._fetch_page = fetch_page
        self._request = request
        self._token = token

        self._state = IteratorState.UNINITIALIZED
        self._buffer: deque[T] = deque()
        self._initial_start = request.start
        self._offset = request.start
        self._total: int | None = None
        self._yielded = 0
        self._error: BaseException | None = None
        self.pages_fetched = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> IteratorState:
        return self._state

    @property
    def total(self) -> int | None:
        """Total hits reported by the first page (None before it)."""
        return self._total

    @property
    def yielded(self) -> int:
        return self._yielded

    @property
    def offset(self) -> int:
        """Start offset of the next page to fetch."""
        return self._offset

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def expected(self) -> int | None:
        """Items this iterator may yield in total (None before discovery)."""
        if self._total is None:
            return None
        return max(0, self._total - self._initial_start)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _fetch_next(self, token: CancelToken | None) -> None:
        request = self._request.with_start(self._offset)
        try:
            page = self._fetch_page(request, token)
        except Exception as e:
            self._state = IteratorState.FAILED
            self._error = e
            raise

        self.pages_fetched += 1
        if self._total is None:
            self._total = page.total

        logger.debug(
            "Fetched page at offset %d (%d items, %d total)",
            self._offset,
            len(page.items),
            self._total,
            extra={"offset": self._offset},
        )

        if not page.items:
            if self._yielded < (self.expected or 0):
                logger.warning(
                    "Search returned an empty page at offset %d after %d of %d items; stopping",
                    self._offset,
                    self._yielded,
                    self.expected,
                    extra={"offset": self._offset},
                )
            self._state = IteratorState.EXHAUSTED
            return

        self._offset += len(page.items)

        # Never yield past total - initial_start even if a page overshoots
        room = (self.expected or 0) - self._yielded - len(self._buffer)
        self._buffer.extend(page.items[: max(0, room)])
        self._state = IteratorState.BUFFERING if self._buffer else IteratorState.EXHAUSTED

    def has_next(self, token: CancelToken | None = None) -> bool:
        """Whether another item is available, fetching a page if needed.

        Repeated calls without ``next()`` never advance the offset.

        Raises:
            FetchError: The latched error once any page fetch has failed
        """
        if self._state is IteratorState.FAILED:
            assert self._error is not None
            raise self._error
        if self._buffer:
            return True
        if self._state is IteratorState.EXHAUSTED:
            return False

        if self._state is IteratorState.UNINITIALIZED or self._yielded < (self.expected or 0):
            self._fetch_next(token or self._token)
            if self._buffer:
                return True

        self._state = IteratorState.EXHAUSTED
        return False

    def next(self, token: CancelToken | None = None) -> T:
        """Return the next item.

        Raises:
            IteratorExhausted: When no items remain
            FetchError: The latched error once any page fetch has failed
        """
        if not self.has_next(token):
            raise IteratorExhausted()
        self._yielded += 1
        return self._buffer.popleft()

    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        return self.next()

    def to_list(self, token: CancelToken | None = None) -> list[T]:
        """Drain every remaining item into a list.

        Loads the whole result set into memory.

        Raises:
            PartialResultError: A fetch failed after some items were collected
            FetchError: A fetch failed before anything was collected
        """
        items: list[T] = []
        try:
            while self.has_next(token):
                items.append(self.next(token))
        except FetchError as e:
            if items:
                raise PartialResultError(items, e) from e
            raise
        return items
