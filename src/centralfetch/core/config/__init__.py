"""Configuration loading and validation."""

from .models import (
    # Enums
    OperationClass,
    # Config models
    AppConfig,
    BatchConfig,
    CacheConfig,
    EndpointConfig,
    HttpConfig,
    LoggingConfig,
    RateLimitConfig,
)
from .loader import ConfigError, load_app_config, validate_config_file

__all__ = [
    # Enums
    "OperationClass",
    # Config models
    "AppConfig",
    "BatchConfig",
    "CacheConfig",
    "EndpointConfig",
    "HttpConfig",
    "LoggingConfig",
    "RateLimitConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "validate_config_file",
]
