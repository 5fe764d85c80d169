"""
Pydantic configuration models for centralfetch.

These models provide type-safe configuration with validation for:
- Endpoint base URLs
- HTTP timeout and retry policy
- Response cache
- Per-operation-class rate limits
- Batch fan-out and logging
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, field_validator

from centralfetch import __version__

if TYPE_CHECKING:
    from centralfetch.core.fetch.retries import RetryPolicy


DEFAULT_SEARCH_BASE_URL = "https://search.maven.org"
DEFAULT_FILE_BASE_URL = "https://repo1.maven.org/maven2"
DEFAULT_USER_AGENT = f"centralfetch/{__version__}"


# =============================================================================
# Enums
# =============================================================================


class OperationClass(str, Enum):
    """Request categories with their own rate budget."""

    SEARCH = "search"
    DOWNLOAD = "download"
    DEFAULT = "default"


# =============================================================================
# Endpoint Configuration
# =============================================================================


class EndpointConfig(BaseModel):
    """Remote service locations."""

    search_base_url: str = Field(
        default=DEFAULT_SEARCH_BASE_URL,
        description="Base URL of the Solr search API",
    )
    file_base_url: str = Field(
        default=DEFAULT_FILE_BASE_URL,
        description="Base URL of the static repository file tree",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent with every request",
    )

    @field_validator("search_base_url", "file_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs so paths can be appended with a single slash."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("base URL must start with http:// or https://")
        return v.rstrip("/")


# =============================================================================
# HTTP / Retry Configuration
# =============================================================================


class HttpConfig(BaseModel):
    """Timeout and retry settings for outbound requests."""

    timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=600.0,
        description="Request timeout in seconds",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Retries after the first attempt for transient failures",
    )
    retry_backoff_ms: int = Field(
        default=500,
        ge=0,
        description="Sleep before the first retry in milliseconds",
    )
    backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier for retries",
    )
    max_backoff_ms: int = Field(
        default=10_000,
        ge=0,
        description="Upper bound for a single backoff sleep in milliseconds",
    )

    @field_validator("max_backoff_ms")
    @classmethod
    def max_backoff_gte_initial(cls, v: int, info: Any) -> int:
        """Ensure the ceiling is at least the initial backoff."""
        initial = info.data.get("retry_backoff_ms", 0)
        if v < initial:
            raise ValueError("max_backoff_ms must be >= retry_backoff_ms")
        return v


# =============================================================================
# Cache Configuration
# =============================================================================


class CacheConfig(BaseModel):
    """In-memory response cache settings."""

    enabled: bool = Field(
        default=False,
        description="Serve repeated identical requests from memory",
    )
    ttl_seconds: int = Field(
        default=300,
        description="Freshness window for cached responses (<= 0 disables storing)",
    )


# =============================================================================
# Rate Limit Configuration
# =============================================================================


class RateLimitConfig(BaseModel):
    """Proactive per-destination request spacing."""

    search_rps: float = Field(default=2.0, description="Search requests per second")
    download_rps: float = Field(default=1.0, description="Download requests per second")
    default_rps: float = Field(default=5.0, description="Requests per second for other calls")
    enable_stats: bool = Field(
        default=True,
        description="Track request counts and wait times per destination",
    )
    per_class_spacing: bool = Field(
        default=False,
        description=(
            "Track the last request time per (destination, operation class) "
            "instead of one shared timestamp per destination"
        ),
    )

    def rate_for(self, operation: OperationClass | str) -> float:
        """Return the configured requests-per-second for an operation class."""
        key = operation.value if isinstance(operation, OperationClass) else str(operation)
        if key == OperationClass.SEARCH.value:
            return self.search_rps
        if key == OperationClass.DOWNLOAD.value:
            return self.download_rps
        return self.default_rps


# =============================================================================
# Batch / Logging Configuration
# =============================================================================


class BatchConfig(BaseModel):
    """Fan-out settings for batch search and download."""

    max_workers: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Threads used by batch operations",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    json_format: bool = Field(default=True, description="Use JSON format for file logs")
    rich_console: bool = Field(default=True, description="Use Rich console output")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Ensure level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of: {valid}")
        return v.upper()


# =============================================================================
# Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Global application configuration (app.yaml)."""

    endpoints: EndpointConfig = Field(default_factory=EndpointConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def retry_policy(self) -> "RetryPolicy":
        """Build the retry policy described by the ``http`` section."""
        from centralfetch.core.fetch.retries import RetryPolicy

        return RetryPolicy(
            max_retries=self.http.max_retries,
            initial_backoff=self.http.retry_backoff_ms / 1000.0,
            backoff_factor=self.http.backoff_factor,
            backoff_ceiling=self.http.max_backoff_ms / 1000.0,
        )
