from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from loguru import logger

from ..errors import EscapeError, SourceReadError, TableCopyError
from ..metrics import BATCH_BYTES, BATCHES_BUILT_TOTAL, ROWS_READ_TOTAL
from .types import BatchPayload, Escaper, Row

DEFAULT_FLUSH_BYTES = 1024 * 1024


@dataclass(frozen=True)
class BatchConfig:
    """Soft size threshold for a rendered batch statement."""

    flush_bytes: int = DEFAULT_FLUSH_BYTES


class BatchBuilder:
    """
    Renders source rows into ``INSERT INTO <table> VALUES`` statements.

    Rows are appended to the current buffer; once the buffer grows past
    ``flush_bytes`` it is finalized and a new one is started. The last,
    possibly small, buffer is emitted when the source is exhausted.

    Usage:
        builder = BatchBuilder("`dst`", escaper)
        for payload in builder.build(rows):
            queue.push(payload)
    """

    def __init__(self, table: str, escaper: Escaper, config: BatchConfig | None = None):
        self._cfg = config or BatchConfig()
        if self._cfg.flush_bytes <= 0:
            raise ValueError("flush_bytes must be > 0")
        self._escaper = escaper
        self._prefix = f"INSERT INTO {table} VALUES\n".encode()
        self._sequence = 0

    # --------------------------- public API

    def build(self, rows: Iterable[Row]) -> Iterator[BatchPayload]:
        """Yield payloads covering every row exactly once, in order."""
        buf = bytearray()
        count = 0
        reader = self._read(rows)
        try:
            for row in reader:
                rendered = self.render_row(row)
                buf += b",\n" if count else self._prefix
                buf += rendered
                count += 1
                if len(buf) > self._cfg.flush_bytes:
                    yield self._finalize(buf, count)
                    buf = bytearray()
                    count = 0
        finally:
            reader.close()

        if count:
            yield self._finalize(buf, count)

    def render_row(self, row: Row) -> bytes:
        """Render one row as a parenthesized value tuple."""
        out = bytearray(b"(")
        for i, value in enumerate(row.values):
            if i:
                out += b","
            if value is None:
                out += b"NULL"
            else:
                out += b"'"
                out += self._escape(value)
                out += b"'"
        out += b")"
        return bytes(out)

    # --------------------------- internals

    def _escape(self, value: bytes) -> bytes:
        try:
            return self._escaper.escape(value)
        except TableCopyError:
            raise
        except Exception as e:
            raise EscapeError(f"Could not escape value of {len(value)} bytes: {e}") from e

    @staticmethod
    def _read(rows: Iterable[Row]) -> Iterator[Row]:
        it = iter(rows)
        try:
            while True:
                try:
                    row = next(it)
                except StopIteration:
                    return
                except TableCopyError:
                    raise
                except Exception as e:
                    raise SourceReadError(f"Source cursor failed: {e}") from e
                ROWS_READ_TOTAL.inc()
                yield row
        finally:
            # release the source cursor as soon as the builder is closed
            close = getattr(it, "close", None)
            if close is not None:
                close()

    def _finalize(self, buf: bytearray, count: int) -> BatchPayload:
        payload = BatchPayload(statement=bytes(buf), row_count=count, sequence=self._sequence)
        self._sequence += 1
        BATCHES_BUILT_TOTAL.inc()
        BATCH_BYTES.observe(payload.size)
        logger.debug(f"Batch #{payload.sequence} ready: rows={count} bytes={payload.size}")
        return payload
