from __future__ import annotations

from typing import Optional

from .errors import SchemaError


def rewrite_table_name(ddl: str, new_name: Optional[str]) -> str:
    """Point a ``CREATE TABLE`` statement at ``new_name``.

    Only the first line (which carries the table name) is replaced; column
    and index definitions are kept verbatim.
    """
    if not new_name:
        return ddl

    nl = ddl.find("\n")
    if nl < 0:
        raise SchemaError("Create statement has no column definitions to keep")

    quoted = new_name.replace("`", "``")
    return f"CREATE TABLE `{quoted}` ({ddl[nl:]}"
