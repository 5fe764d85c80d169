from __future__ import annotations

import logging

import orjson

from centralfetch.core.config import LoggingConfig
from centralfetch.core.logging import (
    JSONFormatter,
    get_contextual_logger,
    get_logger,
    setup_logging,
)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="centralfetch.core.fetch.throttling",
        level=logging.DEBUG,
        pathname=__file__,
        lineno=1,
        msg="Throttled %s request",
        args=("search",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context_fields():
    line = JSONFormatter().format(make_record(destination="search.test", waited_ms=500, unrelated="x"))
    data = orjson.loads(line)

    assert data["message"] == "Throttled search request"
    assert data["level"] == "DEBUG"
    assert data["destination"] == "search.test"
    assert data["waited_ms"] == 500
    assert "unrelated" not in data
    assert data["timestamp"].endswith("Z")


def test_setup_logging_writes_json_file(tmp_path):
    log_file = tmp_path / "logs" / "centralfetch.log"
    settings = LoggingConfig(level="WARNING", file=str(log_file), rich_console=False)
    root = setup_logging(settings, level="debug")
    try:
        assert root.level == logging.DEBUG
        get_logger("tests").info("hello", extra={"operation": "download"})
        for handler in root.handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        data = orjson.loads(lines[-1])
        assert data["logger"] == "centralfetch.tests"
        assert data["operation"] == "download"
    finally:
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)


def test_contextual_logger_tags_records(caplog):
    log = get_contextual_logger("tests.ctx", destination="repo.test", operation="download", url=None)

    with caplog.at_level(logging.INFO, logger="centralfetch.tests.ctx"):
        log.info("first")
        log.info("second", extra={"operation": "search"})

    first, second = caplog.records[-2:]
    assert first.destination == "repo.test"
    assert first.operation == "download"
    assert not hasattr(first, "url")
    assert second.destination == "repo.test"
    assert second.operation == "search"
