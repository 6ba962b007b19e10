"""Measurement batching queue.

MetricQueue accumulates normalized measurements in memory, merges in other
queues, aggregators and raw payloads, and hands the combined payload to a
persister on submit().
"""

import logging
import time
from collections.abc import Callable, Generator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from metricqueue.core.exceptions import (
    InvalidParameters,
    MetricQueueError,
    NotMergeable,
    PersistError,
)
from metricqueue.core.models import (
    LegacyQueued,
    MetricType,
    QueueDefaults,
    QueueMode,
    RawEntry,
    TaggedEntry,
    TaggedQueued,
)
from metricqueue.core.normalize import (
    is_number,
    normalize_measurement,
    parse_measure_time,
    parse_tags,
)
from metricqueue.core.ports import AggregatorPort, PersisterPort

logger = logging.getLogger(__name__)

DEFAULT_PER_REQUEST = 500


@dataclass
class Timing:
    """Result object for the MetricQueue.time() context manager."""

    name: str
    elapsed_ms: float | None = None


@dataclass
class _Incoming:
    gauges: list[LegacyQueued]
    counters: list[LegacyQueued]
    measurements: list[TaggedQueued]

    def is_empty(self) -> bool:
        return not (self.gauges or self.counters or self.measurements)

    def size(self) -> int:
        return len(self.gauges) + len(self.counters) + len(self.measurements)


def _normalize_prefix(prefix: Any) -> str | None:
    if prefix is None or prefix == "":
        return None
    return str(prefix)


def _positive(name: str, value: Any) -> Any:
    if value is not None and (not is_number(value) or value <= 0):
        raise InvalidParameters(f"{name} must be a positive number, got {value!r}")
    return value


def _backfill_source(entry: Any, source: str | None) -> Any:
    if source is None or entry.source is not None:
        return entry
    return entry.with_source(source)


def _backfill_tags(entry: Any, tags: dict[str, str]) -> Any:
    if not tags or entry.tags is not None:
        return entry
    return entry.with_tags(tags)


def _raw_entries(payload: Mapping[str, Any], key: str) -> list[RawEntry]:
    items = payload.get(key)
    if items is None:
        return []
    if isinstance(items, (str, bytes)) or not isinstance(items, Sequence):
        raise InvalidParameters(f"{key} must be a list of entries")
    entries = []
    for item in items:
        if not isinstance(item, Mapping) or "name" not in item:
            raise InvalidParameters(
                f"every entry in {key} must be a mapping with a name"
            )
        entries.append(RawEntry(dict(item)))
    return entries


class MetricQueue:
    """In-memory batch of gauges, counters and tagged measurements.

    A queue constructed with a default source or measure_time uses the
    legacy schema; one constructed with default tags or time uses the tagged
    schema. A queue with neither is unbound and routes each entry on its
    own: entries with tags become tagged measurements, others gauges or
    counters.

    Example:
        ```python
        from metricqueue import InMemoryPersister, MetricQueue

        queue = MetricQueue(persister=InMemoryPersister(), source="web-1")
        queue.add(requests=12, latency={"value": 35.4, "period": 60})
        queue.submit()
        ```
    """

    def __init__(
        self,
        client: Any = None,
        persister: PersisterPort | None = None,
        *,
        source: str | None = None,
        tags: Mapping[str, str] | None = None,
        measure_time: Any = None,
        time: Any = None,
        prefix: str | None = None,
        per_request: int = DEFAULT_PER_REQUEST,
        autosubmit_count: int | None = None,
        autosubmit_interval: float | None = None,
        clear_failures: bool = False,
        skip_measurement_times: bool = False,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            client: Opaque client handle passed through to the persister.
            persister: Delivers payloads on submit(). Required for submit().
            source: Default source (legacy schema).
            tags: Default tags (tagged schema).
            measure_time: Default measure time (legacy schema).
            time: Default time (tagged schema).
            prefix: Prepended to names of subsequently added measurements.
            per_request: Advisory batch size forwarded to the persister.
            autosubmit_count: Submit once this many entries are queued.
            autosubmit_interval: Submit when this many seconds have passed
                since the last submission (or since construction).
            clear_failures: Drop queued entries when the persister raises
                PersistError.
            skip_measurement_times: Do not stamp the wall-clock time onto
                entries that have no time of their own.
            clock: Returns the current epoch time. Defaults to time.time.

        Raises:
            InvalidParameters: If legacy and tagged defaults are combined or
                an option is out of range.
            InvalidMeasureTime: If a default time cannot be resolved.
        """
        self._clock = clock
        has_legacy = source is not None or measure_time is not None
        has_tagged = bool(tags) or time is not None
        if has_legacy and has_tagged:
            raise InvalidParameters(
                "source/measure_time cannot be combined with tags/time"
            )
        if isinstance(per_request, bool) or not isinstance(per_request, int):
            raise InvalidParameters(f"per_request must be an int, got {per_request!r}")
        _positive("per_request", per_request)

        now = self._now()
        self._defaults = QueueDefaults(
            source=str(source) if source is not None else None,
            measure_time=(
                parse_measure_time(measure_time, now)
                if measure_time is not None
                else None
            ),
            time=parse_measure_time(time, now) if time is not None else None,
            tags=parse_tags(tags) if tags else {},
            prefix=_normalize_prefix(prefix),
        )
        self._client = client
        self._persister = persister
        self._per_request = per_request
        self._autosubmit_count = _positive("autosubmit_count", autosubmit_count)
        self._autosubmit_interval = _positive(
            "autosubmit_interval", autosubmit_interval
        )
        if (autosubmit_count or autosubmit_interval) and persister is None:
            raise InvalidParameters("autosubmit requires a persister")
        self._clear_failures = clear_failures
        self._skip_measurement_times = skip_measurement_times
        self._created_at = now
        self._last_submit_at: float | None = None
        self._gauges: list[LegacyQueued] = []
        self._counters: list[LegacyQueued] = []
        self._measurements: list[TaggedQueued] = []

    def _now(self) -> float:
        return (self._clock or time.time)()

    # --- Configuration ---

    @property
    def client(self) -> Any:
        return self._client

    @property
    def persister(self) -> PersisterPort | None:
        return self._persister

    @property
    def defaults(self) -> QueueDefaults:
        return self._defaults

    @property
    def mode(self) -> QueueMode | None:
        """Schema the queue is bound to, or None for an unbound queue."""
        return self._defaults.mode

    @property
    def per_request(self) -> int:
        return self._per_request

    @property
    def autosubmit_count(self) -> int | None:
        return self._autosubmit_count

    @property
    def autosubmit_interval(self) -> float | None:
        return self._autosubmit_interval

    @property
    def last_submit_time(self) -> datetime | None:
        """Time of the last successful submission, or None."""
        if self._last_submit_at is None:
            return None
        return datetime.fromtimestamp(self._last_submit_at, tz=UTC)

    @property
    def tags(self) -> dict[str, str]:
        """Default tags. Returns a copy; assign to change them."""
        return dict(self._defaults.tags)

    @tags.setter
    def tags(self, value: Mapping[str, str] | None) -> None:
        tags = parse_tags(value) if value else {}
        if tags and self._defaults.mode is QueueMode.LEGACY:
            raise InvalidParameters("cannot set tags on a queue that uses sources")
        if tags and (self._gauges or self._counters):
            raise InvalidParameters(
                "cannot set tags while gauges or counters are queued"
            )
        self._defaults = replace(self._defaults, tags=tags)

    @property
    def has_tags(self) -> bool:
        return bool(self._defaults.tags)

    @property
    def prefix(self) -> str | None:
        return self._defaults.prefix

    @prefix.setter
    def prefix(self, value: str | None) -> None:
        self._defaults = replace(self._defaults, prefix=_normalize_prefix(value))

    # --- Accumulation ---

    def add(
        self, measurements: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> "MetricQueue":
        """Queue one or more measurements.

        Each value is either a number or an attribute mapping with a
        ``value`` and optional ``type``, ``source``, ``tags``, ``period``,
        ``description``, ``attributes``, ``measure_time`` or ``time``. Names
        that are not valid keywords can be passed in the positional mapping.

        Returns:
            The queue itself, for chaining.

        Raises:
            InvalidParameters: If any measurement is malformed. Nothing from
                the call is queued in that case.
            InvalidMeasureTime: If any time attribute cannot be resolved.
        """
        if measurements is not None and not isinstance(measurements, Mapping):
            raise InvalidParameters("add() expects a mapping of names to measurements")
        items = {**(measurements or {}), **kwargs}
        now = self._now()
        normalized = [
            normalize_measurement(
                name, raw, self._defaults, now, self._skip_measurement_times
            )
            for name, raw in items.items()
        ]
        for metric_type, entry in normalized:
            if isinstance(entry, TaggedEntry):
                self._measurements.append(entry)
            elif metric_type is MetricType.COUNTER:
                self._counters.append(entry)
            else:
                self._gauges.append(entry)
        self._autosubmit_check()
        return self

    def gauges(self) -> list[dict[str, Any]]:
        """Return queued gauges as payload dicts."""
        return [entry.to_payload() for entry in self._gauges]

    def counters(self) -> list[dict[str, Any]]:
        """Return queued counters as payload dicts."""
        return [entry.to_payload() for entry in self._counters]

    def measurements(self) -> list[dict[str, Any]]:
        """Return queued tagged measurements as payload dicts."""
        return [entry.to_payload() for entry in self._measurements]

    def is_empty(self) -> bool:
        return not (self._gauges or self._counters or self._measurements)

    def size(self) -> int:
        """Total number of queued entries."""
        return len(self._gauges) + len(self._counters) + len(self._measurements)

    def clear(self) -> None:
        """Drop all queued entries. Defaults are kept."""
        self._gauges = []
        self._counters = []
        self._measurements = []

    flush = clear

    def queued(self) -> dict[str, Any]:
        """Return the pending payload.

        Lists are included only when non-empty, and queue defaults only when
        set. An empty queue yields an empty dict.
        """
        payload: dict[str, Any] = {}
        if self._gauges:
            payload["gauges"] = self.gauges()
        if self._counters:
            payload["counters"] = self.counters()
        if self._measurements:
            payload["measurements"] = self.measurements()
        if not payload:
            return payload

        defaults = self._defaults
        if defaults.source is not None:
            payload["source"] = defaults.source
        if defaults.measure_time is not None:
            payload["measure_time"] = defaults.measure_time
        if defaults.tags:
            payload["tags"] = dict(defaults.tags)
        if defaults.time is not None:
            payload["time"] = defaults.time
        return payload

    # --- Merging ---

    def _resolved_entries(self) -> _Incoming:
        # Entries leave this queue carrying its defaults as their own, so
        # they cannot pick up another queue's defaults later.
        source = self._defaults.source
        tags = self._defaults.tags
        return _Incoming(
            gauges=[_backfill_source(e, source) for e in self._gauges],
            counters=[_backfill_source(e, source) for e in self._counters],
            measurements=[_backfill_tags(e, tags) for e in self._measurements],
        )

    def merge(self, other: Any) -> "MetricQueue":
        """Append the entries of another queue, an aggregator or a payload mapping.

        The defaults of this queue are never changed. Entries from another
        queue keep their own source or tags and otherwise inherit that
        queue's defaults. Aggregates inherit the aggregator's source. Entries
        of a raw mapping are appended verbatim.

        Returns:
            The queue itself, for chaining.

        Raises:
            NotMergeable: If ``other`` is not a queue, aggregator or mapping.
            InvalidParameters: If the incoming entries use the schema this
                queue is not bound to, or a mapping is malformed.
        """
        if isinstance(other, MetricQueue):
            incoming = other._resolved_entries()
        elif isinstance(other, AggregatorPort):
            aggregates: list[LegacyQueued] = [
                _backfill_source(entry, other.source) for entry in other.aggregates()
            ]
            incoming = _Incoming(gauges=aggregates, counters=[], measurements=[])
        elif isinstance(other, Mapping):
            incoming = _Incoming(
                gauges=_raw_entries(other, "gauges"),
                counters=_raw_entries(other, "counters"),
                measurements=_raw_entries(other, "measurements"),
            )
        else:
            raise NotMergeable(f"cannot merge {type(other).__name__} into a queue")

        if incoming.is_empty():
            return self

        mode = self.mode
        if mode is QueueMode.LEGACY and incoming.measurements:
            raise InvalidParameters(
                "cannot merge tagged measurements into a queue that uses sources"
            )
        if mode is QueueMode.TAGGED and (incoming.gauges or incoming.counters):
            raise InvalidParameters(
                "cannot merge gauges or counters into a queue that uses tags"
            )

        self._gauges.extend(incoming.gauges)
        self._counters.extend(incoming.counters)
        self._measurements.extend(incoming.measurements)
        logger.debug(
            "Merged %d entries from %s", incoming.size(), type(other).__name__
        )
        self._autosubmit_check()
        return self

    # --- Submission ---

    def submit(self) -> bool:
        """Hand the queued payload to the persister.

        Returns:
            True if the queue was empty or the payload was accepted, in which
            case the queue is cleared. False if delivery failed, in which case
            the queue is left exactly as it was.

        Raises:
            MetricQueueError: If the queue has no persister.
            PersistError: If the collector rejected the payload. The queue is
                cleared first when ``clear_failures`` is set.
        """
        if self.is_empty():
            return True
        if self._persister is None:
            raise MetricQueueError("queue has no persister to submit to")

        size = self.size()
        try:
            accepted = self._persister.persist(
                self._client, self.queued(), per_request=self._per_request
            )
        except PersistError:
            if self._clear_failures:
                logger.warning("Collector rejected %d entries, clearing queue", size)
                self.clear()
            raise

        if not accepted:
            logger.warning("Submission of %d entries failed, keeping them queued", size)
            return False
        self._last_submit_at = self._now()
        self.clear()
        logger.debug("Submitted %d entries", size)
        return True

    def _autosubmit_check(self) -> None:
        if self._autosubmit_count is not None and self.size() >= self._autosubmit_count:
            self.submit()
        elif self._autosubmit_interval is not None:
            last = self._last_submit_at
            if last is None:
                last = self._created_at
            if self._now() - last >= self._autosubmit_interval:
                self.submit()

    # --- Timing ---

    @contextmanager
    def time(self, name: str, **options: Any) -> Generator[Timing]:
        """Context manager that queues the elapsed time of its body as a gauge.

        The elapsed wall-clock time in milliseconds is added under ``name``
        with ``options`` as extra attributes (e.g. ``source`` or
        ``period``). If the body raises, nothing is queued.

        Args:
            name: Metric name.
            **options: Additional measurement attributes.

        Yields:
            Timing whose ``elapsed_ms`` is set once the body completes.
        """
        timing = Timing(name=name)
        start = time.perf_counter()
        yield timing
        timing.elapsed_ms = (time.perf_counter() - start) * 1000.0
        self.add({name: {**options, "value": timing.elapsed_ms}})
