"""
Logging setup for centralfetch.

Console records go through Rich on stderr, tagged with the destination
host when a record carries one. File records are JSON lines carrying the
request context (destination, operation, url, attempt, offset, wait).
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson
from rich.console import Console
from rich.markup import escape

from centralfetch.core.config.models import LoggingConfig

ROOT_LOGGER_NAME = "centralfetch"

CONTEXT_FIELDS = ("destination", "operation", "url", "attempt", "offset", "waited_ms")

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Request context attached to ``record`` through ``extra``."""
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's creation time."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **record_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json_dumps(entry)


class ConsoleHandler(logging.Handler):
    """Writes records to a Rich console, colored by level."""

    STYLES = {
        logging.DEBUG: "dim",
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "bold red",
    }

    def __init__(self, console: Console | None = None, level: int = logging.NOTSET):
        super().__init__(level)
        self.console = console or Console(stderr=True)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = escape(self.format(record))
            style = self.STYLES.get(record.levelno)
            if style:
                text = f"[{style}]{text}[/{style}]"
            destination = getattr(record, "destination", None)
            if destination:
                text = f"[cyan]{escape(str(destination))}[/cyan] {text}"
            self.console.print(text, highlight=False)
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def setup_logging(
    settings: LoggingConfig | None = None,
    *,
    level: str | None = None,
) -> logging.Logger:
    """Install console and optional file handlers on the package logger.

    Args:
        settings: The ``logging`` section of the app config
        level: Overrides ``settings.level`` (from ``--log-level``)

    Returns:
        The ``centralfetch`` logger
    """
    settings = settings or LoggingConfig()
    level_no = logging.getLevelName((level or settings.level).upper())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level_no)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if settings.rich_console:
        console: logging.Handler = ConsoleHandler()
        console.setFormatter(logging.Formatter("%(message)s"))
    else:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(logging.Formatter(PLAIN_FORMAT))
    console.setLevel(level_no)
    logger.addHandler(console)

    if settings.file:
        path = Path(settings.file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            JSONFormatter() if settings.json_format else logging.Formatter(PLAIN_FORMAT)
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the package root, e.g. ``get_logger("cli")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME)


class ContextualLogger(logging.LoggerAdapter):
    """Adapter that stamps fixed request context on every record.

    Per-call ``extra`` values win over the bound ones; ``None`` values are
    left off the record.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        merged = {k: v for k, v in (self.extra or {}).items() if v is not None}
        merged.update(kwargs.get("extra") or {})
        kwargs["extra"] = merged
        return msg, kwargs


def get_contextual_logger(name: str | None = None, **context: Any) -> ContextualLogger:
    """Logger bound to request context such as ``destination`` and ``operation``."""
    return ContextualLogger(get_logger(name), context)
