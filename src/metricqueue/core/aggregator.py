"""Running count/sum/min/max aggregation for merging into a queue."""

import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from metricqueue.core.exceptions import InvalidParameters
from metricqueue.core.models import AggregateEntry
from metricqueue.core.normalize import is_number, parse_measure_time

_AGGREGATOR_KEYS = frozenset({"value", "source"})


@dataclass
class _RunningStats:
    count: int = 0
    sum: float = 0.0
    min: float = float("inf")
    max: float = float("-inf")

    def observe(self, value: float) -> None:
        self.count += 1
        self.sum += value
        self.min = min(self.min, value)
        self.max = max(self.max, value)


class Aggregator:
    """Accumulates running statistics per metric name and source.

    Instead of queueing every observation, an aggregator keeps count, sum,
    min and max for each name. Merging it into a MetricQueue appends one
    aggregate gauge per name.

    Args:
        source: Default source for aggregates without their own.
        measure_time: Default measure time reported with queued().
        prefix: Prepended to names of subsequently added values.
    """

    def __init__(
        self,
        source: str | None = None,
        measure_time: Any = None,
        prefix: str | None = None,
    ) -> None:
        self._source = source
        self._measure_time = (
            parse_measure_time(measure_time, time.time())
            if measure_time is not None
            else None
        )
        self.prefix = prefix
        self._stats: dict[tuple[str, str | None], _RunningStats] = {}

    @property
    def source(self) -> str | None:
        return self._source

    @property
    def measure_time(self) -> int | None:
        return self._measure_time

    def add(
        self, measurements: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> "Aggregator":
        """Record values. Each is a number or a ``{"value", "source"}`` mapping."""
        if measurements is not None and not isinstance(measurements, Mapping):
            raise InvalidParameters("add() expects a mapping of names to values")
        items = {**(measurements or {}), **kwargs}
        observations = []
        for name, raw in items.items():
            if is_number(raw):
                value, source = raw, None
            elif isinstance(raw, Mapping):
                unknown = set(raw) - _AGGREGATOR_KEYS
                if unknown or not is_number(raw.get("value")):
                    raise InvalidParameters(
                        f"aggregated value {name!r} must be a number or a mapping "
                        "with a numeric value and optional source"
                    )
                value, source = raw["value"], raw.get("source")
            else:
                raise InvalidParameters(f"aggregated value {name!r} must be a number")
            full_name = f"{self.prefix}.{name}" if self.prefix else str(name)
            observations.append((full_name, source, value))

        for full_name, source, value in observations:
            stats = self._stats.setdefault((full_name, source), _RunningStats())
            stats.observe(float(value))
        return self

    def aggregates(self) -> list[AggregateEntry]:
        """Return one finalized entry per tracked name and source."""
        return [
            AggregateEntry(
                name=name,
                count=stats.count,
                sum=stats.sum,
                min=stats.min,
                max=stats.max,
                source=source,
            )
            for (name, source), stats in self._stats.items()
        ]

    def queued(self) -> dict[str, Any]:
        """Return the aggregates as a legacy payload, or {} when empty."""
        if not self._stats:
            return {}
        payload: dict[str, Any] = {
            "gauges": [entry.to_payload() for entry in self.aggregates()]
        }
        if self._source is not None:
            payload["source"] = self._source
        if self._measure_time is not None:
            payload["measure_time"] = self._measure_time
        return payload

    def is_empty(self) -> bool:
        return not self._stats

    def size(self) -> int:
        return len(self._stats)

    def clear(self) -> None:
        self._stats = {}
