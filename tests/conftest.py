"""Shared fixtures: a fast config, Solr payload builders and a mocked API."""

from __future__ import annotations

import types
from typing import Any, Iterator

import pytest
import respx

from centralfetch.core.client import CentralClient
from centralfetch.core.config import AppConfig

SEARCH_BASE = "https://search.test"
REPO_BASE = "https://repo.test/maven2"
SEARCH_HOST = "search.test"
REPO_HOST = "repo.test"


def solr_payload(
    docs: list[dict[str, Any]],
    num_found: int | None = None,
    start: int = 0,
    *,
    status: int = 0,
    facet_fields: dict[str, list[Any]] | None = None,
    highlighting: dict[str, dict[str, list[str]]] | None = None,
) -> dict[str, Any]:
    """Build a select response envelope."""
    payload: dict[str, Any] = {
        "responseHeader": {"status": status, "QTime": 3},
        "response": {
            "numFound": len(docs) if num_found is None else num_found,
            "start": start,
            "docs": docs,
        },
    }
    if facet_fields is not None:
        payload["facet_counts"] = {"facet_fields": facet_fields}
    if highlighting is not None:
        payload["highlighting"] = highlighting
    return payload


def artifact_doc(n: int, group: str = "org.example") -> dict[str, Any]:
    return {
        "id": f"{group}:lib{n}",
        "g": group,
        "a": f"lib{n}",
        "latestVersion": f"1.{n}.0",
        "repositoryId": "central",
        "p": "jar",
        "timestamp": 1_700_000_000_000 + n,
        "versionCount": n + 1,
        "text": [group, f"lib{n}"],
        "ec": [".jar", ".pom"],
    }


def make_config(**overrides: Any) -> AppConfig:
    """Config pointing at the test hosts with no backoff and no throttling."""
    data: dict[str, Any] = {
        "endpoints": {"search_base_url": SEARCH_BASE, "file_base_url": REPO_BASE},
        "http": {
            "timeout_seconds": 5,
            "max_retries": 3,
            "retry_backoff_ms": 0,
            "max_backoff_ms": 0,
        },
        "rate_limit": {"search_rps": 1_000_000, "download_rps": 1_000_000, "default_rps": 1_000_000},
    }
    for section, values in overrides.items():
        data.setdefault(section, {}).update(values)
    return AppConfig.model_validate(data)


@pytest.fixture
def fast_config() -> AppConfig:
    return make_config()


@pytest.fixture
def client(fast_config: AppConfig) -> Iterator[CentralClient]:
    with CentralClient(fast_config) as c:
        yield c


@pytest.fixture
def mock_api() -> Iterator[respx.MockRouter]:
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> types.SimpleNamespace:
    """Frozen monotonic clock whose ``time.sleep`` advances it.

    Exposes ``now()``, ``advance(dt)`` and ``sleeps`` (list of requested
    sleep durations).
    """
    t = {"now": 1_000.0}
    sleeps: list[float] = []

    def now() -> float:
        return t["now"]

    def sleep(dt: float) -> None:
        dt = float(dt)
        sleeps.append(dt)
        if dt > 0:
            t["now"] += dt

    monkeypatch.setattr("time.sleep", sleep)

    return types.SimpleNamespace(
        now=now,
        advance=lambda dt: t.__setitem__("now", t["now"] + float(dt)),
        sleeps=sleeps,
    )
