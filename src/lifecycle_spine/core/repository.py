"""Base repository for SQLite-backed stores.

Provides :class:`BaseRepository`, the small set of query helpers every
lifecycle store (registry, catalog, tracker, queue, logs) builds on.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection        ← protocol from core.protocols           │
    │                                                                    │
    │   execute(sql, params)     → cursor                                │
    │   query(sql, params)       → list[dict]                            │
    │   query_one(sql, params)   → dict | None                           │
    │   insert(table, data)      → lastrowid                             │
    │   transaction()            → commit / rollback scope               │
    └────────────────────────────────────────────────────────────────────┘

Usage:
    >>> class MyRepo(BaseRepository):
    ...     def get_by_id(self, id: str):
    ...         return self.query_one("SELECT * FROM my_table WHERE id = ?", (id,))

Tags:
    repository, database, sqlite
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from lifecycle_spine.core.protocols import Connection


class BaseRepository:
    """Query helpers shared by all lifecycle stores.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol
              (normally a ``sqlite3.Connection`` from ``create_connection``).
    """

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor."""
        return self.conn.execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts."""
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []

        # sqlite3.Row supports dict(row); plain tuples need the description
        try:
            return [dict(row) for row in rows]
        except (TypeError, ValueError):
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=False)) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def scalar(self, sql: str, params: tuple = ()) -> Any:
        """Execute a SELECT and return the first column of the first row."""
        row = self.conn.execute(sql, params).fetchone()
        return None if row is None else row[0]

    # -- Insert helpers ----------------------------------------------------

    def insert(self, table: str, data: dict[str, Any]) -> int:
        """Insert a single row from a dict and return its rowid."""
        columns = list(data.keys())
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"  # noqa: S608
        cursor = self.conn.execute(sql, tuple(data.values()))
        return cursor.lastrowid

    # -- Transactions ------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Commit on success, roll back on any exception."""
        try:
            yield
        except BaseException:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()


__all__ = ["BaseRepository"]
