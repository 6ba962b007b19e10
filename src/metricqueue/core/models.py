"""Core domain models for queued measurements."""

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class QueueMode(str, Enum):
    """Payload schema a queue is bound to."""

    LEGACY = "legacy"
    TAGGED = "tagged"


class MetricType(str, Enum):
    """Kind of a legacy measurement."""

    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class QueueDefaults:
    """Defaults a queue applies to the payload it submits.

    Attributes:
        source: Default source (legacy schema).
        measure_time: Default measure time in epoch seconds (legacy schema).
        time: Default time in epoch seconds (tagged schema).
        tags: Default tags (tagged schema). Empty means no tags.
        prefix: Prepended to names added while it is set.
    """

    source: str | None = None
    measure_time: int | None = None
    time: int | None = None
    tags: dict[str, str] = field(default_factory=dict)
    prefix: str | None = None

    @property
    def mode(self) -> QueueMode | None:
        """Schema implied by the defaults, or None when unbound."""
        if self.source is not None or self.measure_time is not None:
            return QueueMode.LEGACY
        if self.tags or self.time is not None:
            return QueueMode.TAGGED
        return None

    @property
    def default_time(self) -> int | None:
        return self.measure_time if self.measure_time is not None else self.time


def _optional(payload: dict[str, Any], **values: Any) -> dict[str, Any]:
    for key, value in values.items():
        if value is not None:
            payload[key] = value
    return payload


@dataclass(frozen=True)
class LegacyEntry:
    """A gauge or counter in the legacy schema.

    Attributes:
        name: Fully resolved metric name (prefix applied).
        value: The measured value.
        measure_time: Epoch seconds, or None when time stamping is skipped.
        source: Per-entry source override.
        period: Reporting period in seconds.
        description: Free-form description.
        attributes: Display attributes passed through to the collector.
    """

    name: str
    value: float
    measure_time: int | None = None
    source: str | None = None
    period: int | None = None
    description: str | None = None
    attributes: dict[str, Any] | None = None

    def with_source(self, source: str) -> "LegacyEntry":
        return replace(self, source=source)

    def to_payload(self) -> dict[str, Any]:
        return _optional(
            {"name": self.name, "value": self.value},
            measure_time=self.measure_time,
            source=self.source,
            period=self.period,
            description=self.description,
            attributes=copy.deepcopy(self.attributes),
        )


@dataclass(frozen=True)
class TaggedEntry:
    """A measurement in the tagged schema.

    Attributes:
        name: Fully resolved metric name (prefix applied).
        value: The measured value.
        time: Epoch seconds, or None when time stamping is skipped.
        tags: Per-entry tags. None means the entry has no tags of its own.
        period: Reporting period in seconds.
        description: Free-form description.
        attributes: Display attributes passed through to the collector.
    """

    name: str
    value: float
    time: int | None = None
    tags: dict[str, str] | None = None
    period: int | None = None
    description: str | None = None
    attributes: dict[str, Any] | None = None

    def with_tags(self, tags: dict[str, str]) -> "TaggedEntry":
        return replace(self, tags=dict(tags))

    def to_payload(self) -> dict[str, Any]:
        return _optional(
            {"name": self.name, "value": self.value},
            tags=dict(self.tags) if self.tags is not None else None,
            time=self.time,
            period=self.period,
            description=self.description,
            attributes=copy.deepcopy(self.attributes),
        )


@dataclass(frozen=True)
class AggregateEntry:
    """Finalized running statistics for one metric name.

    Attributes:
        name: Metric name.
        count: Number of observations.
        sum: Sum of all observed values.
        min: Smallest observed value.
        max: Largest observed value.
        source: Source the statistics were collected for.
    """

    name: str
    count: int
    sum: float
    min: float
    max: float
    source: str | None = None

    def with_source(self, source: str) -> "AggregateEntry":
        return replace(self, source=source)

    def to_payload(self) -> dict[str, Any]:
        return _optional(
            {
                "name": self.name,
                "count": self.count,
                "sum": self.sum,
                "min": self.min,
                "max": self.max,
            },
            source=self.source,
        )


@dataclass(frozen=True)
class RawEntry:
    """A pre-shaped entry taken verbatim from a merged payload mapping."""

    payload: dict[str, Any]

    def __post_init__(self) -> None:
        # Detach nested tags and attributes from the caller's mapping
        object.__setattr__(self, "payload", copy.deepcopy(dict(self.payload)))

    @property
    def name(self) -> str:
        return str(self.payload["name"])

    @property
    def source(self) -> str | None:
        return self.payload.get("source")

    @property
    def tags(self) -> dict[str, str] | None:
        return self.payload.get("tags")

    def with_source(self, source: str) -> "RawEntry":
        return RawEntry({**self.payload, "source": source})

    def with_tags(self, tags: dict[str, str]) -> "RawEntry":
        return RawEntry({**self.payload, "tags": dict(tags)})

    def to_payload(self) -> dict[str, Any]:
        return copy.deepcopy(self.payload)


LegacyQueued = LegacyEntry | AggregateEntry | RawEntry
TaggedQueued = TaggedEntry | RawEntry
