"""
Connection target parsing.

A target names a host, a database and optionally a table:
``host[:port]/db[/table]``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import TargetParseError

DEFAULT_PORT = 3306


@dataclass(frozen=True)
class Target:
    host: str
    database: str
    port: int = DEFAULT_PORT
    table: Optional[str] = None

    @property
    def display(self) -> str:
        return f"{self.host}:{self.port}/{self.database}"


def parse_target(target: str) -> Target:
    """Split ``host[:port]/db[/table]`` into a Target.

    Anything after the second slash is the table name, slashes included.
    """
    if not target or not target.strip():
        raise TargetParseError("Could not parse connection details: empty input")

    parts = target.strip().split("/", 2)
    hostport = parts[0]
    host, sep, port_s = hostport.partition(":")
    if not host:
        raise TargetParseError(f"No host specified in '{target}'")

    port = DEFAULT_PORT
    if sep:
        try:
            port = int(port_s)
        except ValueError:
            raise TargetParseError(f"Invalid port '{port_s}' in '{target}'") from None
        if not 0 < port < 65536:
            raise TargetParseError(f"Port out of range in '{target}'")

    if len(parts) < 2 or not parts[1]:
        raise TargetParseError(f"No database name specified in '{target}'")

    table = parts[2] if len(parts) > 2 and parts[2] else None
    return Target(host=host, database=parts[1], port=port, table=table)
