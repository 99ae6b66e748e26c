"""Action queue: one decision row per (policy, target) pair."""

from lifecycle_spine.queue.models import (
    QUEUE_VALID_TRANSITIONS,
    QueueEntry,
    QueueStatus,
    validate_queue_transition,
)
from lifecycle_spine.queue.store import ActionQueue, UpsertResult

__all__ = [
    "QUEUE_VALID_TRANSITIONS",
    "ActionQueue",
    "QueueEntry",
    "QueueStatus",
    "UpsertResult",
    "validate_queue_transition",
]
