"""
Durable action queue.

One row per (policy, target) pair, upserted by the evaluation engine and
advanced by the execution engine. Both engines may run at the same time: the
evaluation upsert relies on SQLite's ``ON CONFLICT ... DO UPDATE`` keyed by the
pair and never touches a RUNNING row, and :meth:`ActionQueue.claim` is a single
conditional UPDATE that also refuses when the target already has a RUNNING
entry.

Architecture:
    ::

        EvaluationEngine ─ upsert_decision() ─┐
                                              ▼
                              ┌─────────────────────────────┐
                              │       lc_action_queue        │
                              │  UNIQUE(policy_id,target_id) │
                              └─────────────────────────────┘
                                              │
        ExecutionEngine ─ dispatchable() ─► claim() ─► complete() / fail() / release_for_retry()

    Upsert outcomes:
        no row                → INSERTED   (PENDING)
        PENDING               → REFRESHED  (eligible, reason, evaluated_at)
        DONE + eligible       → SUPERSEDED (fresh PENDING row, new entry_id;
                                            not for actions without a destination state)
        DONE / FAILED         → REFRESHED  (reason only; status kept)
        RUNNING               → SKIPPED

Guardrails:
    ❌ DON'T: Read status and then write it in two statements
    ✅ DO: Put the expected status in the UPDATE's WHERE clause and check rowcount

Tags:
    queue, upsert, compare-and-set, sqlite, lifecycle-spine
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum

from lifecycle_spine.core.errors import InvalidTransitionError, NotFoundError
from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.protocols import Connection
from lifecycle_spine.core.repository import BaseRepository
from lifecycle_spine.core.timestamps import to_iso8601, utc_now
from lifecycle_spine.queue.models import QueueEntry, QueueStatus, validate_queue_transition

logger = get_logger(__name__)


class UpsertResult(str, Enum):
    INSERTED = "INSERTED"
    REFRESHED = "REFRESHED"
    SUPERSEDED = "SUPERSEDED"
    SKIPPED = "SKIPPED"


class ActionQueue(BaseRepository):
    """SQLite-backed action queue."""

    def __init__(self, conn: Connection, clock: Callable[[], datetime] = utc_now) -> None:
        super().__init__(conn)
        self._clock = clock

    # -- Evaluation side ---------------------------------------------------

    def upsert_decision(
        self,
        policy_id: int,
        target_id: str,
        eligible: bool,
        reason: str,
        now: datetime | None = None,
        supersede_done: bool = True,
    ) -> UpsertResult:
        """Record an eligibility decision for (policy, target).

        With ``supersede_done=False`` a DONE entry stays DONE even when the
        pair is eligible again; used for actions whose effect is not visible
        on the target.
        """
        ts = to_iso8601(now or self._clock())
        with self.transaction():
            superseded = False
            if eligible and supersede_done:
                cursor = self.execute(
                    "DELETE FROM lc_action_queue WHERE policy_id = ? AND target_id = ? AND status = 'DONE'",
                    (policy_id, target_id),
                )
                superseded = cursor.rowcount > 0

            existed = superseded or self.scalar(
                "SELECT COUNT(*) FROM lc_action_queue WHERE policy_id = ? AND target_id = ?",
                (policy_id, target_id),
            ) > 0

            cursor = self.execute(
                """
                INSERT INTO lc_action_queue (
                    policy_id, target_id, eligible, reason, status, attempt_count,
                    created_at, evaluated_at
                ) VALUES (?, ?, ?, ?, 'PENDING', 0, ?, ?)
                ON CONFLICT(policy_id, target_id) DO UPDATE SET
                    eligible = excluded.eligible,
                    reason = excluded.reason,
                    evaluated_at = excluded.evaluated_at
                WHERE lc_action_queue.status != 'RUNNING'
                """,
                (policy_id, target_id, int(eligible), reason, ts, ts),
            )

        if cursor.rowcount == 0:
            return UpsertResult.SKIPPED
        if superseded:
            logger.debug("queue.superseded", policy_id=policy_id, target_id=target_id)
            return UpsertResult.SUPERSEDED
        return UpsertResult.REFRESHED if existed else UpsertResult.INSERTED

    def purge_stale_pending(self, older_than: datetime) -> int:
        """Delete never-attempted PENDING entries last evaluated before ``older_than``.

        Entries with attempts keep their retry budget and are left alone.
        """
        with self.transaction():
            cursor = self.execute(
                """
                DELETE FROM lc_action_queue
                WHERE status = 'PENDING' AND attempt_count = 0 AND evaluated_at < ?
                """,
                (to_iso8601(older_than),),
            )
        if cursor.rowcount:
            logger.info("queue.stale_purged", deleted=cursor.rowcount, older_than=to_iso8601(older_than))
        return cursor.rowcount

    def clear_pending(self, policy_id: int | None = None) -> int:
        """Delete PENDING entries, for one policy or all."""
        with self.transaction():
            if policy_id is None:
                cursor = self.execute("DELETE FROM lc_action_queue WHERE status = 'PENDING'")
            else:
                cursor = self.execute(
                    "DELETE FROM lc_action_queue WHERE status = 'PENDING' AND policy_id = ?", (policy_id,)
                )
        logger.info("queue.cleared", policy_id=policy_id, deleted=cursor.rowcount)
        return cursor.rowcount

    # -- Execution side ----------------------------------------------------

    def dispatchable(self, now: datetime | None = None) -> list[QueueEntry]:
        """Eligible PENDING entries of enabled policies whose backoff has elapsed.

        Ordered by policy priority, then entry id (insertion order).
        """
        ts = to_iso8601(now or self._clock())
        rows = self.query(
            """
            SELECT q.* FROM lc_action_queue q
            JOIN lc_policies p ON p.policy_id = q.policy_id
            WHERE q.status = 'PENDING'
              AND q.eligible = 1
              AND p.enabled = 1
              AND (q.next_attempt_at IS NULL OR q.next_attempt_at <= ?)
            ORDER BY p.priority, q.entry_id
            """,
            (ts,),
        )
        return [QueueEntry.from_row(r) for r in rows]

    def claim(self, entry_id: int, now: datetime | None = None) -> QueueEntry | None:
        """Atomically move an entry PENDING → RUNNING.

        Returns None when the entry is no longer claimable or its target
        already has a RUNNING entry.
        """
        with self.transaction():
            cursor = self.execute(
                """
                UPDATE lc_action_queue
                SET status = 'RUNNING', attempt_count = attempt_count + 1, started_at = ?
                WHERE entry_id = ?
                  AND status = 'PENDING'
                  AND eligible = 1
                  AND NOT EXISTS (
                      SELECT 1 FROM lc_action_queue r
                      WHERE r.target_id = lc_action_queue.target_id AND r.status = 'RUNNING'
                  )
                """,
                (to_iso8601(now or self._clock()), entry_id),
            )
        if cursor.rowcount != 1:
            return None
        return self.get(entry_id)

    def complete(self, entry_id: int, warning: str | None = None, now: datetime | None = None) -> None:
        """RUNNING → DONE (caller commits)."""
        self._transition(
            entry_id,
            QueueStatus.DONE,
            completed_at=to_iso8601(now or self._clock()),
            warning=warning,
            next_attempt_at=None,
        )

    def fail(self, entry_id: int, error: str, now: datetime | None = None) -> None:
        """RUNNING → FAILED (caller commits)."""
        self._transition(
            entry_id,
            QueueStatus.FAILED,
            completed_at=to_iso8601(now or self._clock()),
            last_error=error,
            next_attempt_at=None,
        )

    def release_for_retry(self, entry_id: int, next_attempt_at: datetime, error: str) -> None:
        """RUNNING → PENDING with a backoff (caller commits)."""
        self._transition(
            entry_id,
            QueueStatus.PENDING,
            next_attempt_at=to_iso8601(next_attempt_at),
            last_error=error,
        )

    def discard_pending_for_target(self, target_id: str) -> int:
        """Delete PENDING entries of a dropped target (caller commits)."""
        cursor = self.execute(
            "DELETE FROM lc_action_queue WHERE target_id = ? AND status = 'PENDING'", (target_id,)
        )
        return cursor.rowcount

    def _transition(self, entry_id: int, status: QueueStatus, **fields: object) -> None:
        entry = self.require(entry_id)
        validate_queue_transition(entry.status, status)
        columns = {"status": status.value, **fields}
        assignments = ", ".join(f"{column} = ?" for column in columns)
        cursor = self.execute(
            f"UPDATE lc_action_queue SET {assignments} WHERE entry_id = ? AND status = ?",  # noqa: S608
            (*columns.values(), entry_id, entry.status.value),
        )
        if cursor.rowcount != 1:
            raise InvalidTransitionError(entry.status.value, status.value)

    # -- Operator actions --------------------------------------------------

    def requeue(self, entry_id: int, now: datetime | None = None) -> QueueEntry:
        """Replace a FAILED entry with a fresh PENDING one (attempts reset)."""
        entry = self.require(entry_id)
        if entry.status is not QueueStatus.FAILED:
            raise InvalidTransitionError(entry.status.value, "PENDING (requeue)")
        ts = to_iso8601(now or self._clock())
        with self.transaction():
            self.execute("DELETE FROM lc_action_queue WHERE entry_id = ?", (entry_id,))
            new_id = self.insert(
                "lc_action_queue",
                {
                    "policy_id": entry.policy_id,
                    "target_id": entry.target_id,
                    "eligible": int(entry.eligible),
                    "reason": entry.reason,
                    "status": QueueStatus.PENDING.value,
                    "attempt_count": 0,
                    "created_at": ts,
                    "evaluated_at": ts,
                },
            )
        logger.info("queue.requeued", old_entry_id=entry_id, entry_id=new_id, target_id=entry.target_id)
        return self.require(new_id)

    def recover_stale_running(self, now: datetime | None = None) -> int:
        """Return RUNNING entries left by a crashed executor to PENDING.

        Only safe when no executor is active against this database.
        """
        with self.transaction():
            cursor = self.execute(
                """
                UPDATE lc_action_queue
                SET status = 'PENDING', next_attempt_at = ?, last_error = 'recovered: executor interrupted'
                WHERE status = 'RUNNING'
                """,
                (to_iso8601(now or self._clock()),),
            )
        if cursor.rowcount:
            logger.warning("queue.running_recovered", recovered=cursor.rowcount)
        return cursor.rowcount

    # -- Queries -----------------------------------------------------------

    def get(self, entry_id: int) -> QueueEntry | None:
        row = self.query_one("SELECT * FROM lc_action_queue WHERE entry_id = ?", (entry_id,))
        return QueueEntry.from_row(row) if row else None

    def require(self, entry_id: int) -> QueueEntry:
        entry = self.get(entry_id)
        if entry is None:
            raise NotFoundError(f"Queue entry not found: {entry_id}").with_context(entry_id=entry_id)
        return entry

    def get_for(self, policy_id: int, target_id: str) -> QueueEntry | None:
        row = self.query_one(
            "SELECT * FROM lc_action_queue WHERE policy_id = ? AND target_id = ?", (policy_id, target_id)
        )
        return QueueEntry.from_row(row) if row else None

    def list(
        self,
        *,
        status: QueueStatus | None = None,
        policy_id: int | None = None,
        target_id: str | None = None,
        eligible: bool | None = None,
        limit: int | None = None,
    ) -> list[QueueEntry]:
        conditions = []
        params: list[object] = []
        if status is not None:
            conditions.append("status = ?")
            params.append(QueueStatus(status).value)
        if policy_id is not None:
            conditions.append("policy_id = ?")
            params.append(policy_id)
        if target_id is not None:
            conditions.append("target_id = ?")
            params.append(target_id)
        if eligible is not None:
            conditions.append("eligible = ?")
            params.append(int(eligible))

        sql = "SELECT * FROM lc_action_queue"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY entry_id"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [QueueEntry.from_row(r) for r in self.query(sql, tuple(params))]

    def running_count(self) -> int:
        return self.scalar("SELECT COUNT(*) FROM lc_action_queue WHERE status = 'RUNNING'")

    def running_targets(self) -> set[str]:
        rows = self.query("SELECT DISTINCT target_id FROM lc_action_queue WHERE status = 'RUNNING'")
        return {r["target_id"] for r in rows}

    def counts_by_status(self) -> dict[str, int]:
        rows = self.query("SELECT status, COUNT(*) AS n FROM lc_action_queue GROUP BY status")
        return {r["status"]: r["n"] for r in rows}


__all__ = ["ActionQueue", "UpsertResult"]
