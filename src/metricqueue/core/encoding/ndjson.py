"""NDJSON encoder for queued payloads."""

import json
from collections.abc import Iterable, Mapping
from typing import Any


def encode_payloads(payloads: Iterable[Mapping[str, Any]]) -> str:
    """Encode payloads to newline-delimited JSON.

    Args:
        payloads: An iterable of queued() snapshots.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no payloads.
    """
    lines = [json.dumps(payload, sort_keys=True) for payload in payloads]

    if not lines:
        return ""

    return "\n".join(lines) + "\n"
