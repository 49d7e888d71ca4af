"""Concurrent copy pipeline

Single producer -> BoundedQueue -> WriterPool -> destination:
- BoundedQueue (blocking push/pop, backpressure on the producer)
- BatchBuilder (rows -> size-bounded INSERT statements)
- WriterPool / SinkWorker (one thread and one connection per worker)
- Orchestrator (wiring and the shutdown handshake)
"""

from .types import (
    SHUTDOWN,
    BatchPayload,
    Escaper,
    FailurePolicy,
    Row,
    ShutdownMarker,
    SinkConnection,
    SinkFactory,
    SourceCursor,
    WorkerConfig,
)
from .queue import BoundedQueue
from .batch import BatchBuilder, BatchConfig, DEFAULT_FLUSH_BYTES
from .writer import SinkWorker, WriterPool
from .orchestrator import CopyResult, Orchestrator, PipelineConfig

__all__ = [
    # types
    "Row",
    "BatchPayload",
    "ShutdownMarker",
    "SHUTDOWN",
    "FailurePolicy",
    "WorkerConfig",
    "SourceCursor",
    "Escaper",
    "SinkConnection",
    "SinkFactory",
    # runtime
    "BoundedQueue",
    "BatchBuilder",
    "BatchConfig",
    "DEFAULT_FLUSH_BYTES",
    "SinkWorker",
    "WriterPool",
    "Orchestrator",
    "PipelineConfig",
    "CopyResult",
]
