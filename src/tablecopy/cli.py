from __future__ import annotations

import json
import sys
from typing import Optional

import typer
from loguru import logger
from prometheus_client import start_http_server

from .config import get_settings
from .copy import copy_table
from .errors import FatalPipelineError, TableCopyError

app = typer.Typer(
    help=(
        "Quickly dump-and-load data from one table to another:\n\n"
        "tablecopy srchost[:port]/db/table dsthost[:port]/db/[table]"
    )
)


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


@app.command()
def main(
    source: str = typer.Argument(..., help="srchost[:port]/db/table"),
    destination: str = typer.Argument(..., help="dsthost[:port]/db/[table]"),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Override SELECT query"),
    threads: Optional[int] = typer.Option(
        None, "--threads", "-t", min=1, help="Number of writer threads"
    ),
    crazy: bool = typer.Option(
        False, "--crazy", help="Crazy fast, super unsafe, not safe for prod"
    ),
    force: bool = typer.Option(False, "--force", help="Ignore insertion failures"),
    charset: Optional[str] = typer.Option(None, "--charset", help="Connection character set"),
    queue_capacity: Optional[int] = typer.Option(
        None, "--queue-capacity", min=1, help="Batches buffered between reader and writers"
    ),
    flush_bytes: Optional[int] = typer.Option(
        None, "--flush-bytes", min=1, help="Start a new INSERT once a batch passes this size"
    ),
    metrics_port: Optional[int] = typer.Option(
        None, "--metrics-port", help="Expose Prometheus metrics on this port"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Copy tables between DBs."""
    _configure_logging(verbose)

    overrides = {
        "THREADS": threads,
        "CHARSET": charset,
        "QUEUE_CAPACITY": queue_capacity,
        "FLUSH_BYTES": flush_bytes,
    }
    update = {k: v for k, v in overrides.items() if v is not None}
    if crazy:
        update["CRAZY"] = True
    if force:
        update["FORCE"] = True
    settings = get_settings().model_copy(update=update)

    if metrics_port:
        start_http_server(metrics_port)
        logger.info(f"Serving metrics on :{metrics_port}")

    try:
        result = copy_table(source, destination, settings, query=query)
    except FatalPipelineError as e:
        logger.critical(f"Copy aborted: {e}")
        raise typer.Exit(code=1)
    except TableCopyError as e:
        logger.critical(f"{type(e).__name__}: {e}")
        raise typer.Exit(code=1)

    typer.echo(json.dumps(result.as_dict(), indent=2))


if __name__ == "__main__":
    app()
