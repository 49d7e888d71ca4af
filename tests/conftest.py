"""
Pytest configuration and fixtures for tablecopy.

Provides in-memory sink/escaper doubles so the pipeline can be exercised
without a MySQL server.
"""

import threading
from typing import Callable, Optional

import pytest

from tablecopy.pipeline import Row

_ESCAPES = {
    0x00: b"\\0",
    ord("\n"): b"\\n",
    ord("\r"): b"\\r",
    ord("\\"): b"\\\\",
    ord("'"): b"\\'",
    ord('"'): b'\\"',
    0x1A: b"\\Z",
}
_UNESCAPES = {v[1:2]: bytes([k]) for k, v in _ESCAPES.items()}


def mysql_escape(raw: bytes) -> bytes:
    out = bytearray()
    for b in raw:
        out += _ESCAPES.get(b, bytes([b]))
    return bytes(out)


def mysql_unescape(escaped: bytes) -> bytes:
    out = bytearray()
    i = 0
    while i < len(escaped):
        if escaped[i : i + 1] == b"\\":
            out += _UNESCAPES[escaped[i + 1 : i + 2]]
            i += 2
        else:
            out += escaped[i : i + 1]
            i += 1
    return bytes(out)


class FakeEscaper:
    """Escapes like mysql_real_escape_string, quotes with backticks."""

    def escape(self, raw: bytes) -> bytes:
        return mysql_escape(raw)

    def quote_identifier(self, name: str) -> str:
        return f"`{name}`"


class FakeSink(FakeEscaper):
    """Records executed statements into a shared log; ``fail_when`` decides failures."""

    def __init__(self, log: "SinkLog", sink_id: int):
        self.log = log
        self.sink_id = sink_id
        self.closed = False

    def execute(self, statement: bytes) -> None:
        self.log.record(self.sink_id, statement)

    def close(self) -> None:
        self.closed = True
        self.log.closed(self.sink_id)


class SinkLog:
    """Thread-safe record of everything the fake sinks did."""

    def __init__(self, fail_when: Optional[Callable[[bytes], bool]] = None, delay: float = 0.0):
        self._lock = threading.Lock()
        self._fail_when = fail_when
        self._delay = delay
        self.statements: list[bytes] = []
        self.by_sink: dict[int, list[bytes]] = {}
        self.failures: list[bytes] = []
        self.after_failure = 0
        self.closed_ids: list[int] = []
        self.sinks: list[FakeSink] = []

    def connect(self) -> FakeSink:
        with self._lock:
            sink = FakeSink(self, len(self.sinks))
            self.sinks.append(sink)
            return sink

    def record(self, sink_id: int, statement: bytes) -> None:
        # sampled on entry: a call already waiting on the lock started before the failure
        started_after_failure = bool(self.failures)
        if self._delay:
            threading.Event().wait(self._delay)
        with self._lock:
            if started_after_failure:
                self.after_failure += 1
            if self._fail_when is not None and self._fail_when(statement):
                self.failures.append(statement)
                raise RuntimeError("Duplicate entry for key 'PRIMARY'")
            self.statements.append(statement)
            self.by_sink.setdefault(sink_id, []).append(statement)

    def closed(self, sink_id: int) -> None:
        with self._lock:
            self.closed_ids.append(sink_id)


def make_rows(n: int, width: int = 3, size: int = 8) -> list[Row]:
    return [
        Row(tuple(f"r{i:06d}c{j}".ljust(size, "x").encode() for j in range(width)))
        for i in range(n)
    ]


@pytest.fixture
def escaper():
    return FakeEscaper()


@pytest.fixture
def sink_log():
    return SinkLog()
