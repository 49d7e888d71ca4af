"""
Prometheus metrics for the copy pipeline.

Metrics live in the global REGISTRY; expose them with
``prometheus_client.start_http_server`` (the CLI does this for ``--metrics-port``).
"""

from prometheus_client import Counter, Gauge, Histogram

ROWS_READ_TOTAL = Counter(
    "tablecopy_rows_read_total",
    "Rows read from the source cursor",
)

BATCHES_BUILT_TOTAL = Counter(
    "tablecopy_batches_built_total",
    "Batch statements rendered by the producer",
)

BATCH_BYTES = Histogram(
    "tablecopy_batch_bytes",
    "Size of rendered batch statements in bytes",
    buckets=[1024, 16384, 131072, 524288, 1048576, 2097152, 4194304, 16777216],
)

BATCH_EXECUTIONS_TOTAL = Counter(
    "tablecopy_batch_executions_total",
    "Batches handled by writer workers",
    ["outcome"],
)

WRITE_LATENCY_SECONDS = Histogram(
    "tablecopy_write_latency_seconds",
    "Time spent executing one batch on the destination",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30],
)

QUEUE_DEPTH = Gauge(
    "tablecopy_queue_depth",
    "Batches waiting in the handoff queue",
)
