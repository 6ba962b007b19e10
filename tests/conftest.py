"""Shared test fixtures for all test modules."""

import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from metricqueue import InMemoryPersister, MetricQueue


@pytest.fixture
def now() -> int:
    """A fixed epoch second one minute in the past."""
    return int(time.time()) - 60


@pytest.fixture
def clock(now: int) -> Callable[[], float]:
    """Clock returning the fixed ``now``."""
    return lambda: float(now)


@pytest.fixture
def persister() -> InMemoryPersister:
    """Fixture providing a persister that accepts every payload."""
    return InMemoryPersister()


@pytest.fixture
def make_queue(
    clock: Callable[[], float], persister: InMemoryPersister
) -> Callable[..., MetricQueue]:
    """Factory fixture for queues sharing the frozen clock and persister.

    Usage:
        def test_something(make_queue):
            queue = make_queue(source="web-1")
    """

    def _make(**options: Any) -> MetricQueue:
        options.setdefault("persister", persister)
        options.setdefault("clock", clock)
        return MetricQueue(**options)

    return _make


@pytest.fixture
def queue(make_queue: Callable[..., MetricQueue]) -> MetricQueue:
    """Fixture providing an unbound queue with no defaults."""
    return make_queue()


@pytest.fixture
def spool_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for spool persister tests."""
    return str(tmp_path / "spool.db")
