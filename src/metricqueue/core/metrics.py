"""Measurement builder functions for MetricQueue.add()."""

from typing import Any

from metricqueue.core.models import MetricType


def gauge(name: str, value: float, **attributes: Any) -> dict[str, dict[str, Any]]:
    """Build a gauge measurement.

    Args:
        name: Metric name (e.g., "cpu_percent")
        value: Current gauge value
        **attributes: Optional measurement attributes (source, tags, period...)

    Returns:
        Mapping of name to attributes, suitable for MetricQueue.add()
    """
    return {name: {**attributes, "type": MetricType.GAUGE, "value": value}}


def counter(
    name: str, value: float = 1, **attributes: Any
) -> dict[str, dict[str, Any]]:
    """Build a counter measurement.

    Args:
        name: Metric name (e.g., "total_visits")
        value: Counter value (default: 1)
        **attributes: Optional measurement attributes (source, tags, period...)

    Returns:
        Mapping of name to attributes, suitable for MetricQueue.add()
    """
    return {name: {**attributes, "type": MetricType.COUNTER, "value": value}}
