"""
centralfetch - Resilient client for the Maven Central search and repository APIs.

Enumerates large Solr result sets lazily, downloads repository files, and
absorbs rate limiting and server overload with throttling, retries and a
response cache.
"""

__version__ = "0.1.0"
__app_name__ = "centralfetch"

from centralfetch.core.client import CentralClient  # noqa: E402
from centralfetch.core.search import FetchRequest, Page, PagedIterator, Query  # noqa: E402

__all__ = [
    "CentralClient",
    "FetchRequest",
    "Page",
    "PagedIterator",
    "Query",
    "__version__",
]
