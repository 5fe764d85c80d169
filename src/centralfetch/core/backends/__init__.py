"""Transport backends."""

from .base import Backend, FetchResult, RequestSpec
from .http_backend import HttpTransport

__all__ = [
    "Backend",
    "FetchResult",
    "HttpTransport",
    "RequestSpec",
]
