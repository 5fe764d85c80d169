from __future__ import annotations

import threading

import pytest

from centralfetch.core.errors import ErrorKind, PermanentError
from centralfetch.core.orchestrator import BatchOutcome, run_batch, summarize


def test_empty_batch():
    assert run_batch({}) == {}


def test_outcomes_keep_task_order_and_isolate_failures():
    def fail():
        raise PermanentError("nope", kind=ErrorKind.NOT_FOUND)

    outcomes = run_batch({"b": lambda: 2, "a": lambda: 1, "c": fail}, max_workers=3)

    assert list(outcomes) == ["b", "a", "c"]
    assert outcomes["a"].value == 1
    assert outcomes["c"].error.kind is ErrorKind.NOT_FOUND
    assert summarize(outcomes).to_dict() == {"total": 3, "succeeded": 2, "failed": 1}


def test_tasks_run_concurrently():
    barrier = threading.Barrier(3, timeout=5)

    def task():
        barrier.wait()
        return threading.current_thread().name

    outcomes = run_batch({i: task for i in range(3)}, max_workers=3)

    assert all(o.ok for o in outcomes.values())
    assert len({o.value for o in outcomes.values()}) == 3


def test_programming_errors_propagate():
    def broken():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        run_batch({"x": broken})


def test_unwrap():
    assert BatchOutcome(value=5).unwrap() == 5
    with pytest.raises(PermanentError):
        BatchOutcome(error=PermanentError("x")).unwrap()
