"""
Unit tests for driver error mapping.
"""

import mysql.connector

from tablecopy.errors import (
    ConnectionFailed,
    ExecutionError,
    FatalPipelineError,
    TableCopyError,
    map_db_error,
)


def test_maps_mysql_error_with_errno():
    err = mysql.connector.Error(msg="Duplicate entry '1' for key 'PRIMARY'", errno=1062)
    mapped = map_db_error(err, ExecutionError)
    assert isinstance(mapped, ExecutionError)
    assert "[1062]" in str(mapped)
    assert "Duplicate entry" in str(mapped)


def test_passes_through_own_errors():
    own = ConnectionFailed("nope")
    assert map_db_error(own, ExecutionError) is own


def test_wraps_foreign_errors():
    mapped = map_db_error(OSError("boom"), ConnectionFailed)
    assert isinstance(mapped, ConnectionFailed)
    assert str(mapped) == "boom"


def test_fatal_error_carries_cause():
    cause = RuntimeError("x")
    fatal = FatalPipelineError("aborted", cause=cause, sequence=7)
    assert isinstance(fatal, TableCopyError)
    assert fatal.cause is cause
    assert fatal.sequence == 7
