"""
MySQL collaborators for the copy pipeline.

- ``establish_connection``: connect to a Target and apply session settings
- ``MySQLSink``: execute rendered batches / escape literals (one per writer)
- ``MySQLSource``: stream a SELECT as raw-bytes rows through an unbuffered cursor
- ``get_schema_definition`` / ``create_table``: schema round-trip
"""

from __future__ import annotations

import re
from typing import Iterator, Optional

import mysql.connector
from loguru import logger

from .config import Settings
from .errors import (
    ConnectionFailed,
    EscapeError,
    ExecutionError,
    SchemaError,
    SourceReadError,
    map_db_error,
)
from .pipeline import Row
from .targets import Target

OPTION_GROUPS = ["client", "mysqlcp"]
CRAZY_SESSION = "SET sql_log_bin=0, unique_checks=0, rocksdb_write_disable_wal=1"

_CHARSET_RE = re.compile(r"^[A-Za-z0-9_]+$")


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def establish_connection(target: Target, settings: Settings, consume_results: bool = True):
    """Connect to ``target`` and prepare the session for bulk copying.

    Pass ``consume_results=False`` for a streaming source: the driver would
    otherwise read every remaining row when a cursor is closed early.
    """
    if not _CHARSET_RE.match(settings.CHARSET):
        raise ConnectionFailed(f"Invalid connection character set: {settings.CHARSET!r}")

    kwargs: dict = {
        "host": target.host,
        "port": target.port,
        "database": target.database,
        "autocommit": True,
        "use_pure": True,
        "consume_results": consume_results,
        "connection_timeout": settings.CONNECT_TIMEOUT,
    }
    if settings.USER:
        kwargs["user"] = settings.USER
    if settings.PASSWORD:
        kwargs["password"] = settings.PASSWORD
    if settings.OPTION_FILE:
        kwargs["option_files"] = settings.OPTION_FILE
        kwargs["option_groups"] = OPTION_GROUPS

    try:
        conn = mysql.connector.connect(**kwargs)
    except mysql.connector.Error as e:
        logger.error(f"Could not connect to {target.display}: {e}")
        raise map_db_error(e, ConnectionFailed) from e

    cur = conn.cursor()
    try:
        cur.execute(f"SET NAMES {settings.CHARSET}")
        cur.execute(f"SET wait_timeout={int(settings.WAIT_TIMEOUT)}")
        if settings.CRAZY:
            try:
                cur.execute(CRAZY_SESSION)
            except mysql.connector.Error as e:
                logger.warning(f"Could not set crazy variables on {target.display}: {e}")
    except mysql.connector.Error as e:
        conn.close()
        raise map_db_error(e, ConnectionFailed) from e
    finally:
        cur.close()

    logger.debug(f"Connected to {target.display}")
    return conn


class MySQLSink:
    """Destination connection: executes batches and escapes literals."""

    def __init__(self, conn):
        self._conn = conn
        self._sql_mode: Optional[str] = None

    @classmethod
    def connect(cls, target: Target, settings: Settings) -> "MySQLSink":
        return cls(establish_connection(target, settings))

    def execute(self, statement: bytes) -> None:
        try:
            self._conn.cmd_query(statement)
        except mysql.connector.Error as e:
            raise map_db_error(e, ExecutionError) from e

    def escape(self, raw: bytes) -> bytes:
        return self._conn.converter.escape(bytes(raw), self._escape_mode())

    def quote_identifier(self, name: str) -> str:
        return quote_identifier(name)

    def close(self) -> None:
        self._conn.close()

    def _escape_mode(self) -> Optional[str]:
        # quotes are doubled instead of backslashed under NO_BACKSLASH_ESCAPES
        if self._sql_mode is None:
            try:
                self._sql_mode = self._conn.sql_mode or ""
            except mysql.connector.Error as e:
                raise map_db_error(e, EscapeError) from e
        if "NO_BACKSLASH_ESCAPES" in self._sql_mode.split(","):
            return "NO_BACKSLASH_ESCAPES"
        return None


class MySQLSource:
    """Streams ``query`` as raw rows; iterate once."""

    def __init__(self, conn, query: str, fetch_size: int = 1000):
        self._conn = conn
        self._query = query
        self._fetch_size = fetch_size

    def __iter__(self) -> Iterator[Row]:
        cur = self._conn.cursor(raw=True)
        try:
            try:
                cur.execute(self._query)
            except mysql.connector.Error as e:
                raise map_db_error(e, SourceReadError) from e

            while True:
                try:
                    rows = cur.fetchmany(self._fetch_size)
                except mysql.connector.Error as e:
                    raise map_db_error(e, SourceReadError) from e
                if not rows:
                    return
                for r in rows:
                    yield Row(tuple(bytes(v) if v is not None else None for v in r))
        finally:
            if self._conn.unread_result:
                # closing the cursor would drain the rest of the result set
                logger.warning("Source read stopped early; dropping the source connection")
                self._conn.shutdown()
            else:
                cur.close()


def close_quietly(conn) -> None:
    """Close ``conn``, logging instead of raising if it is already torn down."""
    try:
        conn.close()
    except mysql.connector.Error as e:
        logger.debug(f"Ignoring close error: {e}")


def get_schema_definition(conn, table: str) -> str:
    """Return the source table's ``CREATE TABLE`` statement."""
    cur = conn.cursor(raw=True, buffered=True)
    try:
        cur.execute(f"SHOW CREATE TABLE {quote_identifier(table)}")
        row = cur.fetchone()
    except mysql.connector.Error as e:
        logger.critical(f"Could not read schema: {e}")
        raise map_db_error(e, SchemaError) from e
    finally:
        cur.close()

    if not row or len(row) < 2 or row[1] is None:
        raise SchemaError(f"SHOW CREATE TABLE returned nothing for {table}")
    ddl = row[1]
    return ddl.decode("utf-8") if isinstance(ddl, (bytes, bytearray)) else str(ddl)


def create_table(conn, ddl: str) -> None:
    cur = conn.cursor()
    try:
        cur.execute(ddl)
    except mysql.connector.Error as e:
        raise map_db_error(e, SchemaError) from e
    finally:
        cur.close()
