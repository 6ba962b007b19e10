"""Spool batched measurements to SQLite and drain them from an async task.

Run with:
    python examples/spool_example.py

The worker side submits synchronously; the forwarding side reads the spool
with aiosqlite and acknowledges what it has forwarded.
"""

import asyncio
import logging
import random
import sys

from metricqueue import Aggregator, MetricQueue, NDJSONStreamPersister, SQLitePersister

logger = logging.getLogger(__name__)

SPOOL_PATH = "metricqueue_spool.db"


def record_requests(queue: MetricQueue, requests: int) -> None:
    """Simulate request handling, timing each one into an aggregator."""
    latencies = Aggregator(source="web-1")
    for _ in range(requests):
        with queue.time("request_handling_ms"):
            pass
        latencies.add(latency_ms=random.uniform(5, 120))
    queue.add(requests_total={"type": "counter", "value": requests})
    queue.merge(latencies)


async def forward_spool(spool: SQLitePersister) -> None:
    """Forward spooled payloads to stdout as NDJSON, then acknowledge them."""
    forwarder = NDJSONStreamPersister(sys.stdout)
    last_id = 0
    async for spooled in spool.read():
        per_request = spooled.per_request
        if not forwarder.persist(None, spooled.payload, per_request=per_request):
            break
        last_id = spooled.id
    if last_id:
        deleted = await spool.acknowledge(last_id)
        logger.info("Forwarded %d spooled payloads", deleted)


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    spool = SQLitePersister(SPOOL_PATH)
    queue = MetricQueue(
        persister=spool, source="web-1", prefix="app", autosubmit_count=50
    )

    for _ in range(3):
        record_requests(queue, requests=10)
        queue.submit()

    await forward_spool(spool)


if __name__ == "__main__":
    asyncio.run(main())
