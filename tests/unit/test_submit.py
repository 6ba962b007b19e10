"""Tests for MetricQueue.submit(), autosubmit and time()."""

import logging
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import pytest

from metricqueue import (
    Aggregator,
    InMemoryPersister,
    MetricQueue,
    MetricQueueError,
    PersistError,
)

QueueFactory = Callable[..., MetricQueue]


class RejectingPersister:
    """Persister whose collector rejects every payload."""

    def __init__(self) -> None:
        self.attempts = 0

    def persist(
        self, client: Any, payload: Mapping[str, Any], *, per_request: int
    ) -> bool:
        self.attempts += 1
        raise PersistError("payload rejected")


class TestSubmit:
    """Tests for MetricQueue.submit()."""

    @pytest.mark.core
    def test_flushes_queue_and_returns_true(
        self, queue: MetricQueue, persister: InMemoryPersister
    ) -> None:
        queue.add(steps=2042, distance=1234)
        expected = queue.queued()

        assert queue.submit() is True
        assert queue.queued() == {}
        assert persister.persisted == [expected]

    @pytest.mark.core
    def test_passes_client_and_per_request(self, persister: InMemoryPersister) -> None:
        client = object()
        queue = MetricQueue(client, persister, per_request=100)
        queue.add(foo=1)
        queue.submit()
        call = persister.calls[0]
        assert call.client is client
        assert call.per_request == 100

    @pytest.mark.core
    def test_failure_preserves_queue_and_returns_false(
        self, queue: MetricQueue, persister: InMemoryPersister
    ) -> None:
        queue.add(steps=2042, distance=1234)
        before = queue.queued()
        persister.return_value(False)

        assert queue.submit() is False
        assert queue.queued() == before
        assert queue.last_submit_time is None

    @pytest.mark.core
    def test_failure_is_logged(
        self,
        queue: MetricQueue,
        persister: InMemoryPersister,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        queue.add(foo=1)
        persister.return_value(False)
        with caplog.at_level(logging.WARNING, logger="metricqueue.core.queue"):
            queue.submit()
        assert "keeping them queued" in caplog.text

    @pytest.mark.core
    def test_retry_after_failure_delivers_everything(
        self, queue: MetricQueue, persister: InMemoryPersister
    ) -> None:
        queue.add(foo=1)
        persister.return_value(False)
        queue.submit()
        queue.add(bar=2)
        persister.return_value(True)

        assert queue.submit() is True
        assert [g["name"] for g in persister.persisted[0]["gauges"]] == ["foo", "bar"]

    @pytest.mark.core
    def test_empty_queue_returns_true_without_persisting(
        self, queue: MetricQueue, persister: InMemoryPersister
    ) -> None:
        queue.merge(Aggregator())
        persister.return_value(False)

        assert queue.submit() is True
        assert persister.calls == []
        assert queue.last_submit_time is None

    @pytest.mark.core
    def test_without_persister_raises(self) -> None:
        queue = MetricQueue().add(foo=1)
        with pytest.raises(MetricQueueError, match="no persister"):
            queue.submit()

    @pytest.mark.core
    def test_rejected_payload_propagates_and_keeps_queue(
        self, make_queue: QueueFactory
    ) -> None:
        queue = make_queue(persister=RejectingPersister()).add(foo=1)
        with pytest.raises(PersistError):
            queue.submit()
        assert queue.size() == 1

    @pytest.mark.core
    def test_rejected_payload_clears_queue_when_asked(
        self, make_queue: QueueFactory
    ) -> None:
        queue = make_queue(persister=RejectingPersister(), clear_failures=True)
        queue.add(foo=1)
        with pytest.raises(PersistError):
            queue.submit()
        assert queue.is_empty()


class TestLastSubmitTime:
    """Tests for MetricQueue.last_submit_time."""

    @pytest.mark.core
    def test_defaults_to_none(self, queue: MetricQueue) -> None:
        assert queue.last_submit_time is None

    @pytest.mark.core
    def test_stores_last_submission_time(self, queue: MetricQueue, now: int) -> None:
        queue.add(foo=123)
        queue.submit()
        assert queue.last_submit_time == datetime.fromtimestamp(now, tz=UTC)

    @pytest.mark.core
    def test_uses_wall_clock_by_default(self, persister: InMemoryPersister) -> None:
        prior = datetime.now(tz=UTC).replace(microsecond=0)
        queue = MetricQueue(persister=persister).add(foo=123)
        queue.submit()
        assert queue.last_submit_time is not None
        assert queue.last_submit_time >= prior


class TestAutosubmit:
    """Tests for autosubmit_count and autosubmit_interval."""

    @pytest.mark.core
    def test_submits_when_count_reached(
        self, make_queue: QueueFactory, persister: InMemoryPersister
    ) -> None:
        queue = make_queue(autosubmit_count=3)
        queue.add(a=1, b=2)
        assert persister.calls == []

        queue.add(c=3)

        assert len(persister.persisted) == 1
        assert queue.is_empty()

    @pytest.mark.core
    def test_merge_triggers_count_check(
        self, make_queue: QueueFactory, persister: InMemoryPersister
    ) -> None:
        queue = make_queue(autosubmit_count=2).add(a=1)
        queue.merge(make_queue().add(b=2))
        assert len(persister.persisted) == 1

    @pytest.mark.core
    def test_submits_when_interval_elapsed(self, persister: InMemoryPersister) -> None:
        current = [1702300000.0]
        queue = MetricQueue(
            persister=persister, autosubmit_interval=60, clock=lambda: current[0]
        )
        queue.add(a=1)
        assert persister.calls == []

        current[0] += 60
        queue.add(b=2)

        assert len(persister.persisted) == 1
        assert queue.is_empty()

    @pytest.mark.core
    def test_interval_restarts_after_submit(self, persister: InMemoryPersister) -> None:
        current = [1702300000.0]
        queue = MetricQueue(
            persister=persister, autosubmit_interval=60, clock=lambda: current[0]
        )
        current[0] += 60
        queue.add(a=1)
        current[0] += 30
        queue.add(b=2)

        assert len(persister.persisted) == 1
        assert queue.size() == 1


class TestTime:
    """Tests for the MetricQueue.time() context manager."""

    @pytest.mark.core
    def test_queues_metric_with_timed_value(
        self, queue: MetricQueue, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        ticks = iter([10.0, 10.1])
        monkeypatch.setattr(time, "perf_counter", lambda: next(ticks))

        with queue.time("sleeping") as timing:
            pass

        queued = queue.queued()["gauges"][0]
        assert queued["name"] == "sleeping"
        assert queued["value"] == pytest.approx(100.0)
        assert timing.elapsed_ms == pytest.approx(100.0)

    @pytest.mark.core
    def test_queues_metric_with_options(self, queue: MetricQueue) -> None:
        with queue.time("sleep_two", source="app1", period=2):
            time.sleep(0.05)

        queued = queue.queued()["gauges"][0]
        assert queued["name"] == "sleep_two"
        assert queued["period"] == 2
        assert queued["source"] == "app1"
        assert queued["value"] >= 50

    @pytest.mark.core
    def test_failure_is_not_queued_and_propagates(self, queue: MetricQueue) -> None:
        with pytest.raises(RuntimeError, match="boom"):
            with queue.time("failing"):
                raise RuntimeError("boom")
        assert queue.is_empty()

    @pytest.mark.core
    def test_usable_as_decorator(self, queue: MetricQueue) -> None:
        @queue.time("handler", type="gauge")
        def handler() -> str:
            return "done"

        assert handler() == "done"
        assert handler() == "done"
        assert [g["name"] for g in queue.gauges()] == ["handler", "handler"]
