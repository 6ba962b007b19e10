"""Exception hierarchy for metricqueue."""


class MetricQueueError(Exception):
    """Base class for all metricqueue errors."""


class InvalidParameters(MetricQueueError, ValueError):
    """Raised when arguments mix legacy and tagged schema or are malformed."""


class InvalidMeasureTime(MetricQueueError, ValueError):
    """Raised when a time value cannot be resolved to epoch seconds."""


class NotMergeable(MetricQueueError, TypeError):
    """Raised when merge() is given something it cannot merge."""


class PersistError(MetricQueueError):
    """Raised by a persister when the collector rejects a payload outright.

    Ordinary delivery failure is reported by persist() returning False;
    this is reserved for payloads that will never be accepted.
    """
