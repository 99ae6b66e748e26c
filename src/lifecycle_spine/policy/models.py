"""Policy domain models.

Defines the core data structures of the policy registry:
- PolicyCategory / ActionType: what a policy is for and what it does
- ConditionSet: AND-combined eligibility conditions
- ActionParameters: arguments handed to the storage driver
- Policy: a registered lifecycle rule

The category → action table and the per-action required parameters are the
structural rules enforced by :mod:`lifecycle_spine.policy.validator`.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from lifecycle_spine.core.timestamps import from_iso8601, to_iso8601
from lifecycle_spine.tracking.models import Temperature


class PolicyCategory(str, Enum):
    """Purpose of a policy."""

    COMPRESSION = "COMPRESSION"
    TIERING = "TIERING"
    ARCHIVAL = "ARCHIVAL"
    PURGE = "PURGE"
    CUSTOM = "CUSTOM"


class ActionType(str, Enum):
    """Transition performed on an eligible target."""

    COMPRESS = "COMPRESS"
    MOVE = "MOVE"
    MARK_READ_ONLY = "MARK_READ_ONLY"
    DROP = "DROP"
    CUSTOM = "CUSTOM"

    @property
    def has_destination_state(self) -> bool:
        """Whether the target's state shows the action was applied."""
        return self is not ActionType.CUSTOM


ALLOWED_ACTIONS: dict[PolicyCategory, frozenset[ActionType]] = {
    PolicyCategory.COMPRESSION: frozenset({ActionType.COMPRESS, ActionType.MOVE}),
    PolicyCategory.TIERING: frozenset({ActionType.MOVE}),
    PolicyCategory.ARCHIVAL: frozenset({ActionType.MARK_READ_ONLY, ActionType.MOVE, ActionType.COMPRESS}),
    PolicyCategory.PURGE: frozenset({ActionType.DROP}),
    PolicyCategory.CUSTOM: frozenset({ActionType.CUSTOM}),
}

REQUIRED_PARAMETERS: dict[ActionType, tuple[str, ...]] = {
    ActionType.COMPRESS: ("compression_profile",),
    ActionType.MOVE: ("destination_tier",),
    ActionType.MARK_READ_ONLY: (),
    ActionType.DROP: (),
    ActionType.CUSTOM: ("custom_action",),
}


@dataclass(frozen=True)
class ConditionSet:
    """Eligibility conditions, combined by AND.

    ``predicate`` is an expression tree in the constrained predicate language
    of :mod:`lifecycle_spine.policy.predicates`.
    """

    age_days: int | None = None
    age_months: int | None = None
    size_threshold_mb: float | None = None
    temperature: Temperature | None = None
    predicate: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if isinstance(self.temperature, str) and not isinstance(self.temperature, Temperature):
            object.__setattr__(self, "temperature", Temperature(self.temperature.upper()))

    def is_empty(self) -> bool:
        return (
            self.age_days is None
            and self.age_months is None
            and self.size_threshold_mb is None
            and self.temperature is None
            and not self.predicate
        )

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        if self.temperature is not None:
            result["temperature"] = self.temperature.value
        return {k: v for k, v in result.items() if v is not None}


@dataclass(frozen=True)
class ActionParameters:
    """Arguments passed through to the storage driver."""

    compression_profile: str | None = None
    destination_tier: str | None = None
    parallel_degree: int | None = None
    rebuild_secondary_structures: bool = False
    refresh_statistics: bool = False
    custom_action: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class Policy:
    """A lifecycle rule.

    ``policy_id`` and the audit fields are assigned by the registry; a policy
    built in code or loaded from YAML starts without them.
    """

    name: str
    selector: str
    category: PolicyCategory
    action_type: ActionType
    conditions: ConditionSet = field(default_factory=ConditionSet)
    parameters: ActionParameters = field(default_factory=ActionParameters)
    priority: int = 100
    enabled: bool = True
    threshold_profile: str | None = None
    description: str | None = None
    policy_id: int | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    modified_by: str | None = None
    modified_at: datetime | None = None

    def __post_init__(self) -> None:
        self.category = PolicyCategory(self.category)
        self.action_type = ActionType(self.action_type)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization and audit snapshots."""
        return {
            "policy_id": self.policy_id,
            "name": self.name,
            "selector": self.selector,
            "category": self.category.value,
            "action_type": self.action_type.value,
            "conditions": self.conditions.to_dict(),
            "parameters": self.parameters.to_dict(),
            "priority": self.priority,
            "enabled": self.enabled,
            "threshold_profile": self.threshold_profile,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": to_iso8601(self.created_at),
            "modified_by": self.modified_by,
            "modified_at": to_iso8601(self.modified_at),
        }

    def to_row(self) -> dict[str, Any]:
        """Column values for ``lc_policies`` (without policy_id)."""
        c, p = self.conditions, self.parameters
        return {
            "name": self.name,
            "selector": self.selector,
            "category": self.category.value,
            "action_type": self.action_type.value,
            "age_days": c.age_days,
            "age_months": c.age_months,
            "size_threshold_mb": c.size_threshold_mb,
            "temperature": c.temperature.value if c.temperature else None,
            "predicate_json": json.dumps(c.predicate) if c.predicate else None,
            "compression_profile": p.compression_profile,
            "destination_tier": p.destination_tier,
            "parallel_degree": p.parallel_degree,
            "rebuild_secondary_structures": int(p.rebuild_secondary_structures),
            "refresh_statistics": int(p.refresh_statistics),
            "custom_action": p.custom_action,
            "priority": self.priority,
            "enabled": int(self.enabled),
            "threshold_profile": self.threshold_profile,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": to_iso8601(self.created_at),
            "modified_by": self.modified_by,
            "modified_at": to_iso8601(self.modified_at),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Policy:
        return cls(
            policy_id=row["policy_id"],
            name=row["name"],
            selector=row["selector"],
            category=PolicyCategory(row["category"]),
            action_type=ActionType(row["action_type"]),
            conditions=ConditionSet(
                age_days=row["age_days"],
                age_months=row["age_months"],
                size_threshold_mb=row["size_threshold_mb"],
                temperature=Temperature(row["temperature"]) if row["temperature"] else None,
                predicate=json.loads(row["predicate_json"]) if row["predicate_json"] else None,
            ),
            parameters=ActionParameters(
                compression_profile=row["compression_profile"],
                destination_tier=row["destination_tier"],
                parallel_degree=row["parallel_degree"],
                rebuild_secondary_structures=bool(row["rebuild_secondary_structures"]),
                refresh_statistics=bool(row["refresh_statistics"]),
                custom_action=row["custom_action"],
            ),
            priority=row["priority"],
            enabled=bool(row["enabled"]),
            threshold_profile=row["threshold_profile"],
            description=row["description"],
            created_by=row["created_by"],
            created_at=from_iso8601(row["created_at"]),
            modified_by=row["modified_by"],
            modified_at=from_iso8601(row["modified_at"]),
        )


__all__ = [
    "ALLOWED_ACTIONS",
    "REQUIRED_PARAMETERS",
    "ActionParameters",
    "ActionType",
    "ConditionSet",
    "Policy",
    "PolicyCategory",
]
