"""Orchestrator - batch fan-out and fan-in."""

from .batch import BatchOutcome, BatchStats, run_batch, summarize

__all__ = [
    "BatchOutcome",
    "BatchStats",
    "run_batch",
    "summarize",
]
