"""Audit and execution log models."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from lifecycle_spine.core.timestamps import from_iso8601, to_iso8601


class ExecutionOutcome(str, Enum):
    """Classification of one execution attempt."""

    SUCCESS = "SUCCESS"
    WARNING = "WARNING"                    # primary action done, secondary step failed
    TRANSIENT_FAILURE = "TRANSIENT_FAILURE"
    FATAL_FAILURE = "FATAL_FAILURE"

    @property
    def is_failure(self) -> bool:
        return self in (ExecutionOutcome.TRANSIENT_FAILURE, ExecutionOutcome.FATAL_FAILURE)


class AuditOperation(str, Enum):
    REGISTER = "REGISTER"
    UPDATE = "UPDATE"
    ENABLE = "ENABLE"
    DISABLE = "DISABLE"


@dataclass(frozen=True)
class ExecutionLogEntry:
    """One execution attempt.

    Space saved and compression ratio are derived from the before/after
    sizes reported by the storage driver.
    """

    entry_id: int
    policy_id: int
    target_id: str
    action_type: str
    attempt: int
    started_at: datetime
    finished_at: datetime
    duration_ms: int
    outcome: ExecutionOutcome
    policy_name: str | None = None
    size_before_mb: float | None = None
    size_after_mb: float | None = None
    error_class: str | None = None
    error_detail: str | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)
    log_id: int | None = None

    @property
    def space_saved_mb(self) -> float | None:
        if self.size_before_mb is None or self.size_after_mb is None:
            return None
        return self.size_before_mb - self.size_after_mb

    @property
    def compression_ratio(self) -> float | None:
        if self.size_before_mb is None or not self.size_after_mb:
            return None
        return self.size_before_mb / self.size_after_mb

    def to_row(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "policy_id": self.policy_id,
            "policy_name": self.policy_name,
            "target_id": self.target_id,
            "action_type": self.action_type,
            "attempt": self.attempt,
            "started_at": to_iso8601(self.started_at),
            "finished_at": to_iso8601(self.finished_at),
            "duration_ms": self.duration_ms,
            "size_before_mb": self.size_before_mb,
            "size_after_mb": self.size_after_mb,
            "space_saved_mb": self.space_saved_mb,
            "compression_ratio": self.compression_ratio,
            "outcome": self.outcome.value,
            "error_class": self.error_class,
            "error_detail": self.error_detail,
            "warnings_json": json.dumps(list(self.warnings)),
        }

    def to_dict(self) -> dict[str, Any]:
        result = self.to_row()
        result["log_id"] = self.log_id
        result["warnings"] = list(self.warnings)
        del result["warnings_json"]
        return result

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ExecutionLogEntry:
        return cls(
            log_id=row["log_id"],
            entry_id=row["entry_id"],
            policy_id=row["policy_id"],
            policy_name=row["policy_name"],
            target_id=row["target_id"],
            action_type=row["action_type"],
            attempt=row["attempt"],
            started_at=from_iso8601(row["started_at"]),
            finished_at=from_iso8601(row["finished_at"]),
            duration_ms=row["duration_ms"],
            size_before_mb=row["size_before_mb"],
            size_after_mb=row["size_after_mb"],
            outcome=ExecutionOutcome(row["outcome"]),
            error_class=row["error_class"],
            error_detail=row["error_detail"],
            warnings=tuple(json.loads(row["warnings_json"] or "[]")),
        )


@dataclass(frozen=True)
class PolicyAuditRecord:
    """Snapshot of a policy after a registry mutation."""

    policy_id: int
    operation: AuditOperation
    recorded_at: datetime
    snapshot: dict[str, Any]
    actor: str | None = None
    audit_id: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> PolicyAuditRecord:
        return cls(
            audit_id=row["audit_id"],
            policy_id=row["policy_id"],
            operation=AuditOperation(row["operation"]),
            actor=row["actor"],
            recorded_at=from_iso8601(row["recorded_at"]),
            snapshot=json.loads(row["snapshot_json"]),
        )


__all__ = ["AuditOperation", "ExecutionLogEntry", "ExecutionOutcome", "PolicyAuditRecord"]
