"""CLI command modules."""

from . import config, download, search

__all__ = [
    "config",
    "download",
    "search",
]
