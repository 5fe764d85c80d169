"""
Backend base classes and data structures.

Defines the interface contract for transports.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from centralfetch.core.fetch.cancellation import CancelToken


# =============================================================================
# Request / Result
# =============================================================================


@dataclass
class RequestSpec:
    """Specification for a single GET request."""

    url: str
    operation: str = "default"
    headers: dict[str, str] = field(default_factory=dict)
    cache_key: str | None = None

    # Metadata for logging/debugging
    description: str | None = None


@dataclass
class FetchResult:
    """Raw result of a successful fetch."""

    url: str
    status_code: int
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)

    # Timing
    elapsed_ms: float = 0.0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Metadata
    from_cache: bool = False
    attempts: int = 1
    waited_ms: int = 0

    @property
    def ok(self) -> bool:
        """Check if request was successful (2xx status)."""
        return 200 <= self.status_code < 300

    @property
    def content_length(self) -> int:
        """Get content length in bytes."""
        return len(self.content)


class Backend(ABC):
    """Abstract base class for transports.

    A backend turns a RequestSpec into raw bytes or raises a FetchError.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""

    @abstractmethod
    def fetch(self, request: RequestSpec, token: CancelToken | None = None) -> FetchResult:
        """Fetch a URL and return the response.

        Args:
            request: Request specification
            token: Cancellation token for this logical request

        Returns:
            FetchResult with response data

        Raises:
            FetchError: On any classified failure
        """

    def close(self) -> None:
        """Clean up backend resources."""

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


