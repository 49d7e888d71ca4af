"""
Table copy service.

Connects both ends, recreates the source table's schema on the destination
(under the destination name, when given) and streams every row through the
concurrent pipeline.
"""

from __future__ import annotations

from typing import Optional

from loguru import logger

from .config import Settings
from .errors import SchemaError, TargetParseError
from .mysql import (
    MySQLSink,
    MySQLSource,
    close_quietly,
    create_table,
    establish_connection,
    get_schema_definition,
    quote_identifier,
)
from .pipeline import CopyResult, Orchestrator
from .schema import rewrite_table_name
from .targets import parse_target


def copy_table(
    source: str,
    destination: str,
    settings: Settings,
    query: Optional[str] = None,
) -> CopyResult:
    """Copy ``source`` (host[:port]/db/table) into ``destination`` (host[:port]/db[/table]).

    Args:
        source: Source target; the table part is required
        destination: Destination target; the table defaults to the source table
        settings: Connection and pipeline settings
        query: SELECT to run instead of ``SELECT * FROM <table>``

    Returns:
        CopyResult of the pipeline run
    """
    src_target = parse_target(source)
    dst_target = parse_target(destination)
    if not src_target.table:
        raise TargetParseError(f"No source table specified in '{source}'")
    dst_table = dst_target.table or src_target.table

    src = establish_connection(src_target, settings, consume_results=False)
    try:
        ddl = get_schema_definition(src, src_target.table)
        new_ddl = rewrite_table_name(ddl, dst_target.table)

        dst_conn = establish_connection(dst_target, settings)
        dst = MySQLSink(dst_conn)
        try:
            try:
                create_table(dst_conn, new_ddl)
                logger.info(f"Created table {dst_table} on {dst_target.display}")
            except SchemaError as e:
                logger.warning(f"Cannot create table: {e}")

            select = query or f"SELECT * FROM {quote_identifier(src_target.table)}"
            logger.info(
                f"Copying {src_target.display}/{src_target.table} -> "
                f"{dst_target.display}/{dst_table}"
            )
            orch = Orchestrator(
                lambda: MySQLSink.connect(dst_target, settings),
                settings.pipeline_config(),
            )
            result = orch.run(MySQLSource(src, select), dst_table, escaper=dst)
        finally:
            dst.close()
    finally:
        close_quietly(src)

    result.extra.update(
        {
            "source": f"{src_target.display}/{src_target.table}",
            "destination": f"{dst_target.display}/{dst_table}",
        }
    )
    return result
