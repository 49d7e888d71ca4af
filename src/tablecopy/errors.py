"""
Custom exceptions for tablecopy.

Collaborator boundaries (MySQL driver, target parsing, schema handling) raise
these so the pipeline and CLI only ever deal with one exception family.
"""

from __future__ import annotations

from typing import Optional


class TableCopyError(Exception):
    """Base error for all table copy failures."""

    pass


class TargetParseError(TableCopyError):
    """A ``host[:port]/db[/table]`` target could not be parsed."""

    pass


class ConnectionFailed(TableCopyError):
    """A data-store connection could not be established."""

    pass


class SchemaError(TableCopyError):
    """The create-statement could not be read or rewritten."""

    pass


class SourceReadError(TableCopyError):
    """The source cursor failed mid-stream."""

    pass


class EscapeError(TableCopyError):
    """A field value could not be escaped for literal embedding."""

    pass


class ExecutionError(TableCopyError):
    """A batch statement failed on the destination."""

    pass


class FatalPipelineError(TableCopyError):
    """A fail-fast worker hit an execution error; the copy was aborted."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, sequence: int = -1):
        super().__init__(message)
        self.cause = cause
        self.sequence = sequence


class QueueInvariantViolation(AssertionError):
    """Internal: the bounded queue observed a length outside [0, capacity]."""

    pass


def map_db_error(e: Exception, kind: type[TableCopyError] = TableCopyError) -> TableCopyError:
    """Wrap a driver exception into the tablecopy taxonomy.

    Already-mapped errors pass through untouched; everything else becomes
    ``kind`` with the driver's message.
    """
    if isinstance(e, TableCopyError):
        return e
    import mysql.connector

    if isinstance(e, mysql.connector.Error):
        errno = getattr(e, "errno", None)
        msg = getattr(e, "msg", None) or str(e)
        if errno:
            return kind(f"[{errno}] {msg}")
        return kind(msg)
    return kind(str(e))
