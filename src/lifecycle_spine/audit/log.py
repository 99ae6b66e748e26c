"""
Append-only execution log and policy audit trail.

The execution log holds one row per execution attempt; external reporting
derives effectiveness (space saved, compression ratio) and failure rates
from it. Neither store offers update operations.

Architecture:
    ::

        ExecutionEngine ──append()──► lc_execution_log ◄── list() / for_entry()
                                                       ◄── recent_failure_count()   (alerting poll)
                                                       ◄── purge_older_than()       (retention)

        PolicyRegistry  ──record()──► lc_policy_audit  ◄── list(policy_id)

    ``append`` and ``record`` do not commit: they join the transaction of
    the state change they describe.

Examples:
    >>> log = ExecutionLog(conn)
    >>> log.recent_failure_count(timedelta(hours=24))
    0

Tags:
    audit, execution-log, append-only, alerting, lifecycle-spine
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime, timedelta

from lifecycle_spine.audit.models import (
    AuditOperation,
    ExecutionLogEntry,
    ExecutionOutcome,
    PolicyAuditRecord,
)
from lifecycle_spine.audit.retention import purge_execution_log
from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.protocols import Connection
from lifecycle_spine.core.repository import BaseRepository
from lifecycle_spine.core.timestamps import to_iso8601, utc_now

logger = get_logger(__name__)

_FAILURE_OUTCOMES = (ExecutionOutcome.TRANSIENT_FAILURE.value, ExecutionOutcome.FATAL_FAILURE.value)


class ExecutionLog(BaseRepository):
    """One row per execution attempt, ordered by ``log_id``."""

    def __init__(self, conn: Connection, clock: Callable[[], datetime] = utc_now) -> None:
        super().__init__(conn)
        self._clock = clock

    def append(self, entry: ExecutionLogEntry) -> int:
        """Append an attempt record; the caller commits."""
        log_id = self.insert("lc_execution_log", entry.to_row())
        logger.debug(
            "log.appended",
            log_id=log_id,
            entry_id=entry.entry_id,
            target_id=entry.target_id,
            outcome=entry.outcome.value,
        )
        return log_id

    def list(
        self,
        *,
        entry_id: int | None = None,
        target_id: str | None = None,
        policy_id: int | None = None,
        outcome: ExecutionOutcome | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[ExecutionLogEntry]:
        conditions = []
        params: list[object] = []
        if entry_id is not None:
            conditions.append("entry_id = ?")
            params.append(entry_id)
        if target_id is not None:
            conditions.append("target_id = ?")
            params.append(target_id)
        if policy_id is not None:
            conditions.append("policy_id = ?")
            params.append(policy_id)
        if outcome is not None:
            conditions.append("outcome = ?")
            params.append(ExecutionOutcome(outcome).value)
        if since is not None:
            conditions.append("finished_at >= ?")
            params.append(to_iso8601(since))

        sql = "SELECT * FROM lc_execution_log"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY log_id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [ExecutionLogEntry.from_row(r) for r in self.query(sql, tuple(params))]

    def for_entry(self, entry_id: int) -> list[ExecutionLogEntry]:
        return self.list(entry_id=entry_id)

    def recent_failure_count(self, window: timedelta, now: datetime | None = None) -> int:
        """Failed attempts (transient or fatal) finished within ``window``."""
        cutoff = (now or self._clock()) - window
        return self.scalar(
            "SELECT COUNT(*) FROM lc_execution_log WHERE finished_at >= ? AND outcome IN (?, ?)",
            (to_iso8601(cutoff), *_FAILURE_OUTCOMES),
        )

    def purge_older_than(self, days: int, now: datetime | None = None) -> int:
        """Delete attempts that finished more than ``days`` ago."""
        return purge_execution_log(self.conn, days, now or self._clock()).deleted


class PolicyAuditLog(BaseRepository):
    """Append-only trail of policy registry mutations."""

    def record(
        self,
        policy_id: int,
        operation: AuditOperation,
        snapshot: dict,
        *,
        actor: str | None,
        at: datetime,
    ) -> int:
        """Append an audit record; the caller commits."""
        return self.insert(
            "lc_policy_audit",
            {
                "policy_id": policy_id,
                "operation": AuditOperation(operation).value,
                "actor": actor,
                "recorded_at": to_iso8601(at),
                "snapshot_json": json.dumps(snapshot, sort_keys=True),
            },
        )

    def list(self, policy_id: int | None = None) -> list[PolicyAuditRecord]:
        if policy_id is None:
            rows = self.query("SELECT * FROM lc_policy_audit ORDER BY audit_id")
        else:
            rows = self.query(
                "SELECT * FROM lc_policy_audit WHERE policy_id = ? ORDER BY audit_id", (policy_id,)
            )
        return [PolicyAuditRecord.from_row(r) for r in rows]


__all__ = ["ExecutionLog", "PolicyAuditLog"]
