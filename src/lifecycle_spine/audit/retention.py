"""Retention and purge utilities.

Purges execution history and settled queue entries past their retention
period. Stale PENDING entries are handled by the evaluation engine at the
start of every cycle and are not touched here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.protocols import Connection
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.core.timestamps import to_iso8601, utc_now

logger = get_logger(__name__)


@dataclass
class PurgeResult:
    """Result of a purge operation."""

    table: str
    deleted: int
    cutoff: str


@dataclass
class RetentionReport:
    """Aggregated results of a full retention run."""

    results: list[PurgeResult] = field(default_factory=list)
    total_deleted: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


@dataclass
class RetentionConfig:
    """Retention periods in days."""

    execution_log: int = 365
    settled_entries: int = 365

    @classmethod
    def from_settings(cls, settings: LifecycleSettings) -> RetentionConfig:
        return cls(execution_log=settings.log_retention_days, settled_entries=settings.log_retention_days)


def compute_cutoff(days: int, now: datetime | None = None) -> str:
    """ISO 8601 cutoff; records older than ``days`` before ``now`` are purgeable."""
    return to_iso8601((now or utc_now()) - timedelta(days=days))


def purge_table(
    conn: Connection,
    table: str,
    timestamp_column: str,
    cutoff: str,
    extra_condition: str | None = None,
) -> PurgeResult:
    """Delete rows whose ``timestamp_column`` is older than ``cutoff``."""
    where = f"{timestamp_column} < ?"
    if extra_condition:
        where = f"{where} AND {extra_condition}"

    sql = f"DELETE FROM {table} WHERE {where}"  # noqa: S608
    cursor = conn.execute(sql, (cutoff,))
    deleted = cursor.rowcount
    conn.commit()

    logger.info("retention.purged", table=table, deleted=deleted, cutoff=cutoff)
    return PurgeResult(table=table, deleted=deleted, cutoff=cutoff)


def purge_execution_log(conn: Connection, days: int = 365, now: datetime | None = None) -> PurgeResult:
    return purge_table(conn, "lc_execution_log", "finished_at", compute_cutoff(days, now))


def purge_settled_entries(conn: Connection, days: int = 365, now: datetime | None = None) -> PurgeResult:
    """Delete DONE queue entries completed before the cutoff.

    FAILED entries are kept until an operator requeues them.
    """
    return purge_table(
        conn,
        "lc_action_queue",
        "completed_at",
        compute_cutoff(days, now),
        extra_condition="status = 'DONE'",
    )


def purge_all(
    conn: Connection,
    config: RetentionConfig | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> RetentionReport:
    """Run every purge; one failing table does not stop the others."""
    config = config or RetentionConfig()
    now = clock()
    report = RetentionReport()

    jobs: list[tuple[str, Callable[[], PurgeResult]]] = [
        ("lc_execution_log", lambda: purge_execution_log(conn, config.execution_log, now)),
        ("lc_action_queue", lambda: purge_settled_entries(conn, config.settled_entries, now)),
    ]
    for table, job in jobs:
        try:
            result = job()
        except Exception as e:  # noqa: BLE001
            conn.rollback()
            report.errors[table] = str(e)
            logger.error("retention.failed", table=table, error=str(e))
            continue
        report.results.append(result)
        report.total_deleted += result.deleted

    return report


__all__ = [
    "PurgeResult",
    "RetentionConfig",
    "RetentionReport",
    "compute_cutoff",
    "purge_all",
    "purge_execution_log",
    "purge_settled_entries",
    "purge_table",
]
