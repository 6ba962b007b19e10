"""Persister that writes payloads as NDJSON to a text stream."""

import logging
from collections.abc import Mapping
from typing import Any, TextIO

from metricqueue.core.encoding.ndjson import encode_payloads

logger = logging.getLogger(__name__)


class NDJSONStreamPersister:
    """Writes each payload as one JSON line to a text stream.

    Useful for piping measurements to a log shipper or for inspecting them
    on stdout during development.

    Example:
        ```python
        import sys

        queue = MetricQueue(persister=NDJSONStreamPersister(sys.stdout))
        ```
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def persist(
        self, client: Any, payload: Mapping[str, Any], *, per_request: int
    ) -> bool:
        """Write the payload. Returns False if the stream cannot be written."""
        try:
            self._stream.write(encode_payloads([payload]))
            self._stream.flush()
        except (OSError, ValueError) as exc:
            logger.warning("Could not write payload to stream: %s", exc)
            return False
        return True
