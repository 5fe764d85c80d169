"""Search query model, response decoding and pagination."""

from .iterator import IteratorExhausted, IteratorState, PagedIterator
from .models import Artifact, Page, SearchResponse, Version, decode_page
from .query import SEARCH_ROWS_MAX, FetchRequest, Query

__all__ = [
    "Artifact",
    "FetchRequest",
    "IteratorExhausted",
    "IteratorState",
    "Page",
    "PagedIterator",
    "Query",
    "SEARCH_ROWS_MAX",
    "SearchResponse",
    "Version",
    "decode_page",
]
