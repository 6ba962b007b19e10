"""Normalization of raw add() input into canonical queue entries.

A raw measurement is either a bare number or an attribute mapping. This
module is the only place that open shape is interpreted; everything past
it works with LegacyEntry and TaggedEntry.
"""

import copy
import math
from collections.abc import Mapping
from datetime import datetime
from numbers import Real
from typing import Any

from metricqueue.core.exceptions import InvalidMeasureTime, InvalidParameters
from metricqueue.core.models import (
    LegacyEntry,
    MetricType,
    QueueDefaults,
    QueueMode,
    TaggedEntry,
)

# Times older than this many seconds before now are rejected by the collector
MAX_MEASURE_TIME_AGE = 365 * 24 * 60 * 60

ATTRIBUTE_KEYS = frozenset(
    {
        "value",
        "type",
        "source",
        "tags",
        "period",
        "description",
        "attributes",
        "measure_time",
        "time",
    }
)


def is_number(value: Any) -> bool:
    """Return True for real numbers, excluding bool."""
    return isinstance(value, Real) and not isinstance(value, bool)


def parse_measure_time(value: Any, now: float) -> int:
    """Resolve a time-like value to integer epoch seconds.

    Args:
        value: A datetime, an int/float epoch, or a numeric string.
        now: Current wall-clock time, used to reject stale times.

    Returns:
        Epoch seconds as int.

    Raises:
        InvalidMeasureTime: If the value has an unsupported type, is not
            numeric, or lies more than a year in the past.
    """
    if isinstance(value, datetime):
        epoch = int(value.timestamp())
    elif is_number(value):
        if not math.isfinite(value):
            raise InvalidMeasureTime(f"measure time must be finite, got {value!r}")
        epoch = int(value)
    elif isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            raise InvalidMeasureTime(
                f"measure time is not a numeric string: {value!r}"
            ) from None
        if not math.isfinite(parsed):
            raise InvalidMeasureTime(f"measure time must be finite, got {value!r}")
        epoch = int(parsed)
    else:
        raise InvalidMeasureTime(
            f"unsupported measure time type: {type(value).__name__}"
        )

    if epoch < int(now) - MAX_MEASURE_TIME_AGE:
        raise InvalidMeasureTime(f"measure time {epoch} is too far in the past")
    return epoch


def parse_metric_type(value: Any) -> MetricType:
    """Resolve a gauge/counter type given as a string or MetricType."""
    if isinstance(value, MetricType):
        return value
    if isinstance(value, str):
        try:
            return MetricType(value.lower())
        except ValueError:
            pass
    raise InvalidParameters(f"unknown metric type: {value!r}")


def parse_tags(value: Any) -> dict[str, str]:
    """Validate a tag mapping and return a private copy of it."""
    if not isinstance(value, Mapping):
        raise InvalidParameters(f"tags must be a mapping, got {type(value).__name__}")
    for key, tag_value in value.items():
        if not isinstance(key, str):
            raise InvalidParameters(f"tag names must be strings, got {key!r}")
        if not isinstance(tag_value, str):
            raise InvalidParameters(
                f"tag {key!r} must have a string value, got {tag_value!r}"
            )
    return dict(value)


def _attributes_for(name: str, raw: Any) -> Mapping[str, Any]:
    if is_number(raw):
        return {"value": raw}
    if not isinstance(raw, Mapping):
        raise InvalidParameters(
            f"measurement {name!r} must be a number or a mapping, "
            f"got {type(raw).__name__}"
        )
    unknown = set(raw) - ATTRIBUTE_KEYS
    if unknown:
        raise InvalidParameters(
            f"measurement {name!r} has unknown attributes: {sorted(map(str, unknown))}"
        )
    if not is_number(raw.get("value")):
        raise InvalidParameters(f"measurement {name!r} requires a numeric value")
    return raw


def normalize_measurement(
    name: Any,
    raw: Any,
    defaults: QueueDefaults,
    now: float,
    skip_measurement_times: bool = False,
) -> tuple[MetricType, LegacyEntry | TaggedEntry]:
    """Turn one add() item into a canonical entry.

    Args:
        name: Metric name as given by the caller (before prefixing).
        raw: A bare number or an attribute mapping.
        defaults: Defaults of the queue the entry is added to.
        now: Current wall-clock time in epoch seconds.
        skip_measurement_times: Leave the time unset when neither the entry
            nor the queue supplies one.

    Returns:
        The metric type and either a LegacyEntry or a TaggedEntry. The type
        only matters for legacy entries, which are split into gauges and
        counters.

    Raises:
        InvalidParameters: If the input is malformed or mixes schemas.
        InvalidMeasureTime: If a time attribute cannot be resolved.
    """
    if not isinstance(name, str) or not name:
        raise InvalidParameters(f"metric name must be a non-empty string, got {name!r}")
    attrs = _attributes_for(name, raw)
    metric_type = parse_metric_type(attrs.get("type", MetricType.GAUGE))

    source = attrs.get("source")
    tags = attrs.get("tags")
    if source is not None and tags is not None:
        raise InvalidParameters(
            f"measurement {name!r} cannot have both source and tags"
        )

    mode = defaults.mode
    if tags is not None and mode is QueueMode.LEGACY:
        raise InvalidParameters(
            f"measurement {name!r} has tags but the queue uses sources"
        )
    if source is not None and mode is QueueMode.TAGGED:
        raise InvalidParameters(
            f"measurement {name!r} has a source but the queue uses tags"
        )

    if "measure_time" in attrs and "time" in attrs:
        raise InvalidParameters(
            f"measurement {name!r} cannot have both measure_time and time"
        )
    own_time = attrs.get("measure_time", attrs.get("time"))
    if own_time is not None:
        epoch: int | None = parse_measure_time(own_time, now)
    elif defaults.default_time is not None:
        epoch = defaults.default_time
    elif skip_measurement_times:
        epoch = None
    else:
        epoch = int(now)

    full_name = f"{defaults.prefix}.{name}" if defaults.prefix else name
    attributes = attrs.get("attributes")
    if attributes is not None:
        if not isinstance(attributes, Mapping):
            raise InvalidParameters(f"attributes of {name!r} must be a mapping")
        attributes = copy.deepcopy(dict(attributes))

    if tags is not None or mode is QueueMode.TAGGED:
        return metric_type, TaggedEntry(
            name=full_name,
            value=attrs["value"],
            time=epoch,
            tags=parse_tags(tags) if tags is not None else None,
            period=attrs.get("period"),
            description=attrs.get("description"),
            attributes=attributes,
        )
    return metric_type, LegacyEntry(
        name=full_name,
        value=attrs["value"],
        measure_time=epoch,
        source=source,
        period=attrs.get("period"),
        description=attrs.get("description"),
        attributes=attributes,
    )
