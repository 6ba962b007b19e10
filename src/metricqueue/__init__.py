"""Client-side batching queue for gauges, counters and tagged measurements."""

from metricqueue.adapters.persisters import (
    InMemoryPersister,
    NDJSONStreamPersister,
    SQLitePersister,
)
from metricqueue.core.aggregator import Aggregator
from metricqueue.core.exceptions import (
    InvalidMeasureTime,
    InvalidParameters,
    MetricQueueError,
    NotMergeable,
    PersistError,
)
from metricqueue.core.metrics import counter, gauge
from metricqueue.core.models import (
    AggregateEntry,
    LegacyEntry,
    MetricType,
    QueueDefaults,
    QueueMode,
    TaggedEntry,
)
from metricqueue.core.ports import AggregatorPort, PersisterPort
from metricqueue.core.queue import MetricQueue, Timing

__all__ = [
    # Queue
    "MetricQueue",
    "Timing",
    "Aggregator",
    # Models
    "AggregateEntry",
    "LegacyEntry",
    "MetricType",
    "QueueDefaults",
    "QueueMode",
    "TaggedEntry",
    # Ports
    "AggregatorPort",
    "PersisterPort",
    # Persisters
    "InMemoryPersister",
    "NDJSONStreamPersister",
    "SQLitePersister",
    # Builders
    "counter",
    "gauge",
    # Errors
    "InvalidMeasureTime",
    "InvalidParameters",
    "MetricQueueError",
    "NotMergeable",
    "PersistError",
]
