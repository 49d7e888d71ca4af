from __future__ import annotations

import threading
from time import monotonic
from typing import Callable, Optional, Union

from loguru import logger

from ..errors import ConnectionFailed, FatalPipelineError, map_db_error
from ..metrics import BATCH_EXECUTIONS_TOTAL, WRITE_LATENCY_SECONDS
from .queue import BoundedQueue
from .types import SHUTDOWN, BatchPayload, FailurePolicy, ShutdownMarker, SinkConnection, WorkerConfig

QueueItem = Union[BatchPayload, ShutdownMarker]
FatalHandler = Callable[[int, BatchPayload, Exception], None]


class SinkWorker:
    """One writer thread bound to one exclusively owned sink connection.

    Loops popping from the shared queue until it sees a shutdown marker.
    Once the pool is aborted, popped payloads are discarded rather than
    executed so the producer is never left blocked on a full queue.
    """

    def __init__(
        self,
        worker_id: int,
        queue: BoundedQueue[QueueItem],
        conn: SinkConnection,
        policy: FailurePolicy,
        abort: threading.Event,
        on_fatal: FatalHandler,
    ):
        self.worker_id = worker_id
        self._queue = queue
        self._conn = conn
        self._policy = policy
        self._abort = abort
        self._on_fatal = on_fatal
        self._thread: Optional[threading.Thread] = None

        self.executed = 0
        self.failed = 0
        self.discarded = 0

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self.run, name=f"cp-writer-{self.worker_id}", daemon=True
        )
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        try:
            while True:
                item = self._queue.pop()
                if item is SHUTDOWN:
                    break
                if self._abort.is_set():
                    self.discarded += 1
                    BATCH_EXECUTIONS_TOTAL.labels(outcome="discarded").inc()
                    continue
                self._execute(item)
        finally:
            self._close()
        logger.debug(
            f"Writer {self.worker_id} done: executed={self.executed} "
            f"failed={self.failed} discarded={self.discarded}"
        )

    def _execute(self, payload: BatchPayload) -> None:
        t0 = monotonic()
        try:
            self._conn.execute(payload.statement)
        except Exception as exc:
            fatal = self._policy is FailurePolicy.FAIL_FAST
            if fatal:
                # abort before anything slow so no other worker starts a new batch
                self._on_fatal(self.worker_id, payload, exc)
            self.failed += 1
            BATCH_EXECUTIONS_TOTAL.labels(outcome="failed").inc()
            if fatal:
                logger.critical(f"Could not insert data (batch #{payload.sequence}): {exc}")
            else:
                logger.warning(f"Could not insert data (batch #{payload.sequence}): {exc}")
            return
        finally:
            WRITE_LATENCY_SECONDS.observe(monotonic() - t0)

        self.executed += 1
        BATCH_EXECUTIONS_TOTAL.labels(outcome="ok").inc()
        logger.debug(
            f"Writer {self.worker_id} wrote batch #{payload.sequence} ({payload.row_count} rows)"
        )

    def _close(self) -> None:
        try:
            self._conn.close()
        except Exception as exc:
            logger.warning(f"Writer {self.worker_id} failed to close its connection: {exc}")


class WriterPool:
    """Fixed set of SinkWorkers consuming one BoundedQueue.

    ``start`` opens every connection up front in the calling thread so a bad
    destination fails before any data moves; each worker then owns its
    connection for its whole life.
    """

    def __init__(self, queue: BoundedQueue[QueueItem], config: WorkerConfig, workers: int = 16):
        if workers <= 0:
            raise ValueError("workers must be > 0")
        self._queue = queue
        self._cfg = config
        self._n = workers
        self._abort = threading.Event()
        self._lock = threading.Lock()
        self._fatal: Optional[FatalPipelineError] = None
        self._workers: list[SinkWorker] = []

    @property
    def workers(self) -> list[SinkWorker]:
        return list(self._workers)

    @property
    def aborted(self) -> bool:
        return self._abort.is_set()

    @property
    def fatal_error(self) -> Optional[FatalPipelineError]:
        with self._lock:
            return self._fatal

    def start(self) -> None:
        if self._workers:
            raise RuntimeError("WriterPool already started")

        conns: list[SinkConnection] = []
        try:
            for _ in range(self._n):
                conns.append(self._cfg.connect())
        except Exception as e:
            for conn in conns:
                try:
                    conn.close()
                except Exception as close_exc:
                    logger.debug(f"Ignoring close error during failed start: {close_exc}")
            raise map_db_error(e, ConnectionFailed) from e

        for i, conn in enumerate(conns):
            worker = SinkWorker(
                worker_id=i,
                queue=self._queue,
                conn=conn,
                policy=self._cfg.policy,
                abort=self._abort,
                on_fatal=self._fail,
            )
            self._workers.append(worker)
            worker.start()
        logger.info(f"Started {self._n} writer threads (policy={self._cfg.policy.value})")

    def shutdown(self) -> None:
        """Push one shutdown marker per worker. Call only after the last payload."""
        for _ in range(self._n):
            self._queue.push(SHUTDOWN)

    def join(self) -> None:
        for worker in self._workers:
            worker.join()

    # --------------------------- internals

    def _fail(self, worker_id: int, payload: BatchPayload, exc: Exception) -> None:
        with self._lock:
            if self._fatal is None:
                self._fatal = FatalPipelineError(
                    f"Writer {worker_id} could not insert batch #{payload.sequence}: {exc}",
                    cause=exc,
                    sequence=payload.sequence,
                )
        self._abort.set()
