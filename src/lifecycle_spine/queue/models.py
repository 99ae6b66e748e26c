"""Action queue models.

Defines the queue entry and its status state machine::

    PENDING → RUNNING
    RUNNING → DONE | FAILED | PENDING (transient failure, retry pending)
    DONE    → (terminal)
    FAILED  → (terminal)

Supersede (re-eligible after DONE) and operator requeue do not transition a
terminal entry; they replace the row with a fresh PENDING entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from lifecycle_spine.core.errors import InvalidTransitionError
from lifecycle_spine.core.timestamps import from_iso8601, to_iso8601


class QueueStatus(str, Enum):
    """Status of a queue entry.

    State transitions are enforced via ``QUEUE_VALID_TRANSITIONS``.
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (QueueStatus.DONE, QueueStatus.FAILED)


QUEUE_VALID_TRANSITIONS: dict[QueueStatus, frozenset[QueueStatus]] = {
    QueueStatus.PENDING: frozenset({QueueStatus.RUNNING}),
    QueueStatus.RUNNING: frozenset({QueueStatus.DONE, QueueStatus.FAILED, QueueStatus.PENDING}),
    QueueStatus.DONE: frozenset(),
    QueueStatus.FAILED: frozenset(),
}


def validate_queue_transition(current: QueueStatus, target: QueueStatus) -> None:
    """Raise :class:`InvalidTransitionError` if ``current → target`` is illegal."""
    if target not in QUEUE_VALID_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)


@dataclass(frozen=True)
class QueueEntry:
    """Decision and execution state for one (policy, target) pair."""

    entry_id: int
    policy_id: int
    target_id: str
    eligible: bool
    reason: str
    status: QueueStatus
    attempt_count: int
    created_at: datetime
    evaluated_at: datetime
    next_attempt_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_error: str | None = None
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "policy_id": self.policy_id,
            "target_id": self.target_id,
            "eligible": self.eligible,
            "reason": self.reason,
            "status": self.status.value,
            "attempt_count": self.attempt_count,
            "created_at": to_iso8601(self.created_at),
            "evaluated_at": to_iso8601(self.evaluated_at),
            "next_attempt_at": to_iso8601(self.next_attempt_at),
            "started_at": to_iso8601(self.started_at),
            "completed_at": to_iso8601(self.completed_at),
            "last_error": self.last_error,
            "warning": self.warning,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> QueueEntry:
        return cls(
            entry_id=row["entry_id"],
            policy_id=row["policy_id"],
            target_id=row["target_id"],
            eligible=bool(row["eligible"]),
            reason=row["reason"],
            status=QueueStatus(row["status"]),
            attempt_count=row["attempt_count"],
            created_at=from_iso8601(row["created_at"]),
            evaluated_at=from_iso8601(row["evaluated_at"]),
            next_attempt_at=from_iso8601(row["next_attempt_at"]),
            started_at=from_iso8601(row["started_at"]),
            completed_at=from_iso8601(row["completed_at"]),
            last_error=row["last_error"],
            warning=row["warning"],
        )


__all__ = ["QUEUE_VALID_TRANSITIONS", "QueueEntry", "QueueStatus", "validate_queue_transition"]
