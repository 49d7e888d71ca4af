"""
tablecopy

Bulk-copies one MySQL table into another (possibly on a different host) by
reading rows on one thread and executing multi-row INSERTs on a pool of
writer threads, each with its own connection.

Usage:
    from tablecopy import copy_table, get_settings

    result = copy_table("src:3306/shop/orders", "dst/shop_copy/orders", get_settings())

    # Or drive the pipeline with your own collaborators
    from tablecopy.pipeline import Orchestrator, PipelineConfig
    Orchestrator(connect_sink, PipelineConfig(workers=4)).run(rows, "orders")
"""

from .config import Settings, get_settings
from .copy import copy_table
from .errors import (
    ConnectionFailed,
    EscapeError,
    ExecutionError,
    FatalPipelineError,
    SchemaError,
    SourceReadError,
    TableCopyError,
    TargetParseError,
)
from .pipeline import CopyResult, FailurePolicy, Orchestrator, PipelineConfig
from .targets import Target, parse_target

__version__ = "1.0.0"
__all__ = [
    "copy_table",
    "Settings",
    "get_settings",
    "Target",
    "parse_target",
    "Orchestrator",
    "PipelineConfig",
    "CopyResult",
    "FailurePolicy",
    "TableCopyError",
    "TargetParseError",
    "ConnectionFailed",
    "SchemaError",
    "SourceReadError",
    "EscapeError",
    "ExecutionError",
    "FatalPipelineError",
]
