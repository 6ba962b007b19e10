"""Port interfaces for queue collaborators.

These protocols define the contracts that persisters and aggregators must
implement. The queue depends only on these interfaces, not on concrete
implementations.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from metricqueue.core.models import AggregateEntry


@runtime_checkable
class PersisterPort(Protocol):
    """Port for delivering a queued payload to the remote collector.

    Examples: InMemoryPersister, NDJSONStreamPersister, SQLitePersister.
    """

    def persist(
        self, client: Any, payload: Mapping[str, Any], *, per_request: int
    ) -> bool:
        """Deliver a payload.

        Args:
            client: Opaque client handle the queue was constructed with.
            payload: The queue's queued() snapshot.
            per_request: Advisory batch size for persisters that chunk.

        Returns:
            True if the payload was accepted, False on delivery failure.
        """
        ...


@runtime_checkable
class AggregatorPort(Protocol):
    """Port for running-statistics aggregators that can be merged into a queue."""

    @property
    def source(self) -> str | None:
        """Default source for aggregates without their own."""
        ...

    def aggregates(self) -> Iterable[AggregateEntry]:
        """Return finalized count/sum/min/max entries, one per tracked metric."""
        ...
