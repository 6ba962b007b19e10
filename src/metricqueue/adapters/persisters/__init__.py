"""Persister adapters implementing PersisterPort."""

from metricqueue.adapters.persisters.in_memory import InMemoryPersister, PersistCall
from metricqueue.adapters.persisters.sqlite import SpooledPayload, SQLitePersister
from metricqueue.adapters.persisters.stream import NDJSONStreamPersister

__all__ = [
    "InMemoryPersister",
    "NDJSONStreamPersister",
    "PersistCall",
    "SQLitePersister",
    "SpooledPayload",
]
