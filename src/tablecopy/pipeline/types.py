from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, Protocol, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Row:
    """One source record: ordered nullable raw field values."""

    values: tuple[Optional[bytes], ...]

    @property
    def lengths(self) -> tuple[int, ...]:
        """Per-field byte lengths (0 for NULL)."""
        return tuple(len(v) if v is not None else 0 for v in self.values)

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class BatchPayload:
    """A fully rendered bulk-insert statement covering ``row_count`` rows."""

    statement: bytes
    row_count: int
    sequence: int

    @property
    def size(self) -> int:
        return len(self.statement)


class ShutdownMarker:
    """Queue sentinel telling a worker to exit. Use the ``SHUTDOWN`` instance."""

    _instance: Optional["ShutdownMarker"] = None

    def __new__(cls) -> "ShutdownMarker":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SHUTDOWN"


SHUTDOWN = ShutdownMarker()


class FailurePolicy(str, Enum):
    """What a worker does when a batch fails on the destination."""

    FAIL_FAST = "fail_fast"  # abort the whole copy on the first failure
    TOLERANT = "tolerant"  # log and carry on with the next batch


class SourceCursor(Protocol):
    """Lazy, finite, non-restartable sequence of rows."""

    def __iter__(self) -> Iterator[Row]: ...


class Escaper(Protocol):
    """The part of a sink connection BatchBuilder needs."""

    def escape(self, raw: bytes) -> bytes: ...

    def quote_identifier(self, name: str) -> str: ...


class SinkConnection(Escaper, Protocol):
    """Destination connection owned by exactly one worker."""

    def execute(self, statement: bytes) -> None: ...

    def close(self) -> None: ...


SinkFactory = Callable[[], SinkConnection]


@dataclass(frozen=True)
class WorkerConfig:
    """Shared, read-only worker settings: how to connect and how to fail."""

    connect: SinkFactory
    policy: FailurePolicy = FailurePolicy.FAIL_FAST
