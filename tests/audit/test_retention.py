"""Tests for retention and purge utilities."""

from __future__ import annotations

from datetime import timedelta

from lifecycle_spine.audit.retention import (
    RetentionConfig,
    compute_cutoff,
    purge_all,
    purge_settled_entries,
)
from lifecycle_spine.core.timestamps import to_iso8601
from lifecycle_spine.queue.models import QueueStatus


def _settled_entry(conn, entry_id, status, completed_at):
    conn.execute(
        """
        INSERT INTO lc_action_queue
            (entry_id, policy_id, target_id, eligible, reason, status, created_at, evaluated_at, completed_at)
        VALUES (?, 1, ?, 1, 'r', ?, ?, ?, ?)
        """,
        (entry_id, f"dw.sales:P{entry_id}", status, completed_at, completed_at, completed_at),
    )


def _log_row(conn, finished_at):
    conn.execute(
        """
        INSERT INTO lc_execution_log
            (entry_id, policy_id, target_id, action_type, attempt, started_at, finished_at, duration_ms, outcome)
        VALUES (1, 1, 'dw.sales:P1', 'COMPRESS', 1, ?, ?, 10, 'SUCCESS')
        """,
        (finished_at, finished_at),
    )


class TestCutoff:
    def test_compute_cutoff(self, clock):
        assert compute_cutoff(30, clock()) == to_iso8601(clock() - timedelta(days=30))


class TestPurge:
    def test_settled_entries_keep_failed(self, conn, clock):
        old = to_iso8601(clock() - timedelta(days=400))
        _settled_entry(conn, 1, "DONE", old)
        _settled_entry(conn, 2, "FAILED", old)
        _settled_entry(conn, 3, "DONE", to_iso8601(clock()))

        result = purge_settled_entries(conn, 365, clock())
        assert result.deleted == 1
        remaining = [r[0] for r in conn.execute("SELECT status FROM lc_action_queue ORDER BY entry_id")]
        assert remaining == [QueueStatus.FAILED.value, QueueStatus.DONE.value]

    def test_purge_all(self, conn, clock):
        _log_row(conn, to_iso8601(clock() - timedelta(days=100)))
        _log_row(conn, to_iso8601(clock() - timedelta(days=5)))
        _settled_entry(conn, 1, "DONE", to_iso8601(clock() - timedelta(days=100)))
        conn.commit()

        report = purge_all(conn, RetentionConfig(execution_log=30, settled_entries=90), clock)
        assert report.success
        assert report.total_deleted == 2
        assert [r.table for r in report.results] == ["lc_execution_log", "lc_action_queue"]

    def test_purge_all_continues_after_failure(self, conn, clock):
        _settled_entry(conn, 1, "DONE", to_iso8601(clock() - timedelta(days=100)))
        conn.commit()
        conn.execute("DROP TABLE lc_execution_log")

        report = purge_all(conn, RetentionConfig(execution_log=30, settled_entries=30), clock)
        assert not report.success
        assert "lc_execution_log" in report.errors
        assert report.total_deleted == 1

    def test_config_from_settings(self, settings):
        config = RetentionConfig.from_settings(settings.model_copy(update={"log_retention_days": 90}))
        assert config.execution_log == 90
        assert config.settled_entries == 90


def test_service_run_retention(service, make_target, make_policy, clock):
    service.register_target(make_target())
    service.register_policy(make_policy())
    service.evaluate()
    service.execute()

    clock.advance(days=400)
    report = service.run_retention()
    assert report.total_deleted == 2
    assert service.log_entries() == []
    assert service.queue_entries() == []
