"""Execution log, policy audit trail and retention."""

from lifecycle_spine.audit.log import ExecutionLog, PolicyAuditLog
from lifecycle_spine.audit.models import (
    AuditOperation,
    ExecutionLogEntry,
    ExecutionOutcome,
    PolicyAuditRecord,
)

__all__ = [
    "AuditOperation",
    "ExecutionLog",
    "ExecutionLogEntry",
    "ExecutionOutcome",
    "PolicyAuditLog",
    "PolicyAuditRecord",
]
