"""SQLite connection factory.

Opens the lifecycle database with the pragmas the engines rely on and ensures
the schema exists.

Usage::

    from lifecycle_spine.core.connection import create_connection

    conn = create_connection(":memory:")
    conn = create_connection("/var/lib/lifecycle/lifecycle.db")
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.schema import create_tables

logger = get_logger(__name__)


def create_connection(path: str | Path = ":memory:", *, init_schema: bool = True) -> sqlite3.Connection:
    """Open a SQLite connection suitable for the lifecycle service.

    File databases use WAL so that an evaluation process and an execution
    process can work on the same file; ``busy_timeout`` absorbs short writer
    contention instead of failing the statement.
    """
    path_str = str(path)
    if path_str != ":memory:":
        Path(path_str).expanduser().parent.mkdir(parents=True, exist_ok=True)
        path_str = str(Path(path_str).expanduser())

    conn = sqlite3.connect(path_str, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout = 5000")
    if path_str != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")

    if init_schema:
        tables = create_tables(conn)
        logger.debug("database.schema_ready", path=path_str, tables=len(tables))
    return conn


__all__ = ["create_connection"]
