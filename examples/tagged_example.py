"""Tagged measurements written straight to stdout.

Run with:
    python examples/tagged_example.py
"""

import sys

from metricqueue import MetricQueue, NDJSONStreamPersister, counter, gauge

queue = MetricQueue(
    persister=NDJSONStreamPersister(sys.stdout),
    tags={"region": "us-east-1", "service": "billing"},
)

queue.add(gauge("cpu_percent", 41.5))
queue.add(counter("invoices_sent", 12, tags={"region": "eu-west-1"}))


@queue.time("render_invoice_ms")
def render_invoice() -> str:
    return "<invoice/>"


render_invoice()
queue.submit()
