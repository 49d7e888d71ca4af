from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
from time import monotonic
from typing import Optional

from loguru import logger

from ..errors import ConnectionFailed, map_db_error
from .batch import DEFAULT_FLUSH_BYTES, BatchBuilder, BatchConfig
from .queue import BoundedQueue
from .types import FailurePolicy, SinkConnection, SinkFactory, SourceCursor, WorkerConfig
from .writer import QueueItem, WriterPool


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable knobs for one copy run."""

    workers: int = 16
    queue_capacity: int = 100
    flush_bytes: int = DEFAULT_FLUSH_BYTES
    policy: FailurePolicy = FailurePolicy.FAIL_FAST


@dataclass
class CopyResult:
    """What one pipeline run did."""

    rows: int = 0
    batches: int = 0
    bytes: int = 0
    executed: int = 0
    failed: int = 0
    discarded: int = 0
    elapsed: float = 0.0
    workers: int = 0
    extra: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "rows": self.rows,
            "batches": self.batches,
            "bytes": self.bytes,
            "executed": self.executed,
            "failed": self.failed,
            "discarded": self.discarded,
            "elapsed_sec": round(self.elapsed, 3),
            "workers": self.workers,
            **self.extra,
        }


class Orchestrator:
    """Wires the single BatchBuilder producer to a WriterPool through one queue.

    ``run`` always performs the shutdown handshake (one marker per worker)
    and joins every worker before returning or raising, so no writer is left
    blocked on ``pop``. Producer errors are re-raised after the join; a
    fail-fast writer error surfaces as ``FatalPipelineError``.

    Example:
        orch = Orchestrator(connect_destination, PipelineConfig(workers=8))
        result = orch.run(source_rows, "`dst_table`")
    """

    def __init__(self, connect: SinkFactory, config: Optional[PipelineConfig] = None):
        self._connect = connect
        self._cfg = config or PipelineConfig()

    @property
    def config(self) -> PipelineConfig:
        return self._cfg

    def run(
        self,
        source: SourceCursor,
        table: str,
        escaper: Optional[SinkConnection] = None,
    ) -> CopyResult:
        """Copy every row of ``source`` into ``table`` on the destination.

        Args:
            source: Lazy row sequence (consumed once)
            table: Destination table name; quoted by the escaper's dialect
            escaper: Connection used only for escaping; one is opened (and
                closed) from the connect factory when omitted
        """
        cfg = self._cfg
        own_escaper = escaper is None
        if escaper is None:
            try:
                escaper = self._connect()
            except Exception as e:
                raise map_db_error(e, ConnectionFailed) from e

        result = CopyResult(workers=cfg.workers)
        t0 = monotonic()
        try:
            queue: BoundedQueue[QueueItem] = BoundedQueue(cfg.queue_capacity)
            pool = WriterPool(queue, WorkerConfig(connect=self._connect, policy=cfg.policy), cfg.workers)
            builder = BatchBuilder(
                escaper.quote_identifier(table), escaper, BatchConfig(flush_bytes=cfg.flush_bytes)
            )

            pool.start()
            logger.info(
                f"Copy pipeline started: table={table} workers={cfg.workers} "
                f"queue={cfg.queue_capacity} flush_bytes={cfg.flush_bytes}"
            )
            try:
                with closing(builder.build(source)) as payloads:
                    for payload in payloads:
                        queue.push(payload)
                        result.rows += payload.row_count
                        result.batches += 1
                        result.bytes += payload.size
                        if pool.aborted:
                            logger.warning("Writer failure detected; producer stops reading the source")
                            break
            except BaseException:
                logger.exception("Producer failed; shutting down writers")
                raise
            finally:
                pool.shutdown()
                pool.join()
                for worker in pool.workers:
                    result.executed += worker.executed
                    result.failed += worker.failed
                    result.discarded += worker.discarded
                result.elapsed = monotonic() - t0

            fatal = pool.fatal_error
            if fatal is not None:
                raise fatal
        finally:
            if own_escaper:
                escaper.close()

        logger.info(
            f"Copy pipeline finished: rows={result.rows} batches={result.batches} "
            f"failed={result.failed} in {result.elapsed:.2f}s"
        )
        return result
