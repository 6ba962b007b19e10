"""In-memory persister."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PersistCall:
    """One recorded call to InMemoryPersister.persist().

    Attributes:
        client: Client handle the queue passed.
        payload: Copy of the submitted payload.
        per_request: Batch size hint the queue passed.
        accepted: What persist() returned.
    """

    client: Any
    payload: dict[str, Any]
    per_request: int
    accepted: bool


class InMemoryPersister:
    """In-memory implementation of PersisterPort.

    Records every payload it is given instead of sending it anywhere.
    Suitable for testing and for applications that inspect payloads
    themselves. The result of persist() is configurable, so delivery
    failure can be simulated.

    Args:
        accept: Value persist() returns until return_value() changes it.
    """

    def __init__(self, accept: bool = True) -> None:
        self._accept = accept
        self._calls: list[PersistCall] = []

    def return_value(self, accept: bool) -> None:
        """Set what subsequent persist() calls return."""
        self._accept = accept

    def persist(
        self, client: Any, payload: Mapping[str, Any], *, per_request: int
    ) -> bool:
        """Record the payload and return the configured result."""
        self._calls.append(
            PersistCall(
                client=client,
                payload=dict(payload),
                per_request=per_request,
                accepted=self._accept,
            )
        )
        return self._accept

    @property
    def calls(self) -> list[PersistCall]:
        """All persist() calls, oldest first."""
        return list(self._calls)

    @property
    def persisted(self) -> list[dict[str, Any]]:
        """Payloads of accepted calls, oldest first."""
        return [call.payload for call in self._calls if call.accepted]
