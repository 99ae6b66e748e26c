"""Tests for the SQLite connection factory, schema and timestamp helpers."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime, timedelta, timezone

from lifecycle_spine.core.connection import create_connection
from lifecycle_spine.core.logging import LogContext, get_logger
from lifecycle_spine.core.repository import BaseRepository
from lifecycle_spine.core.schema import LIFECYCLE_TABLES, create_tables
from lifecycle_spine.core.timestamps import days_between, ensure_utc, from_iso8601, to_iso8601


def _tables(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r[0] for r in rows}


class TestCreateConnection:
    def test_memory_has_schema(self):
        conn = create_connection(":memory:")
        assert set(LIFECYCLE_TABLES.values()) <= _tables(conn)
        assert conn.row_factory is sqlite3.Row
        conn.close()

    def test_file_database_created(self, tmp_path):
        path = tmp_path / "nested" / "lifecycle.db"
        conn = create_connection(path)
        assert path.exists()
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        conn.close()

    def test_create_tables_idempotent(self, conn):
        first = create_tables(conn)
        second = create_tables(conn)
        assert first == second

    def test_without_schema(self):
        conn = create_connection(":memory:", init_schema=False)
        assert "lc_policies" not in _tables(conn)
        conn.close()


class TestBaseRepository:
    def test_transaction_rolls_back(self, conn):
        repo = BaseRepository(conn)
        try:
            with repo.transaction():
                repo.insert(
                    "lc_policy_audit",
                    {"policy_id": 1, "operation": "REGISTER", "recorded_at": "x", "snapshot_json": "{}"},
                )
                raise RuntimeError("abort")
        except RuntimeError:
            pass
        assert repo.scalar("SELECT COUNT(*) FROM lc_policy_audit") == 0

    def test_query_returns_dicts(self, conn):
        repo = BaseRepository(conn)
        with repo.transaction():
            repo.insert(
                "lc_policy_audit",
                {"policy_id": 4, "operation": "REGISTER", "recorded_at": "x", "snapshot_json": "{}"},
            )
        row = repo.query_one("SELECT policy_id, operation FROM lc_policy_audit")
        assert row == {"policy_id": 4, "operation": "REGISTER"}


class TestTimestamps:
    def test_naive_treated_as_utc(self):
        assert ensure_utc(datetime(2025, 1, 1)).tzinfo is UTC

    def test_round_trip_normalizes_offset(self):
        local = datetime(2025, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        assert from_iso8601(to_iso8601(local)) == datetime(2025, 1, 1, 10, tzinfo=UTC)

    def test_days_between(self):
        now = datetime(2025, 6, 1, tzinfo=UTC)
        assert days_between(now - timedelta(days=120, hours=5), now) == 120
        assert days_between(None, now) is None


class TestLogging:
    def test_log_context_binds_and_clears(self):
        import structlog

        with LogContext(policy_id=1):
            assert structlog.contextvars.get_contextvars()["policy_id"] == 1
        assert "policy_id" not in structlog.contextvars.get_contextvars()
        get_logger(__name__).debug("test.event", value=1)
