"""Condition checks and reason strings.

Pure functions: given a policy, a target and its facts, say whether each
condition holds and how to phrase it. The evaluation engine turns the results
into the reason recorded on the queue entry::

    eligible    "age 120d ≥ 90d threshold, current profile NONE ≠ HIGH"
    ineligible  "age 40d < 90d threshold"
    at state    "already at target state: profile HIGH"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from lifecycle_spine.core.timestamps import days_between
from lifecycle_spine.policy.models import ActionType, ConditionSet, Policy
from lifecycle_spine.policy.predicates import describe_predicate, evaluate_predicate
from lifecycle_spine.targets.models import TargetObject
from lifecycle_spine.tracking.models import AccessRecord, Temperature

REASON_SEPARATOR = ", "


@dataclass(frozen=True)
class ConditionCheck:
    name: str
    satisfied: bool
    description: str


def _num(value: float) -> str:
    return f"{value:g}"


def target_facts(
    target: TargetObject,
    record: AccessRecord | None,
    now: datetime,
    temperature: Temperature,
) -> dict[str, Any]:
    """Attribute values visible to conditions and predicates.

    Age comes from the creation boundary; without one it falls back to
    the days since the last write.
    """
    days_since_read = days_between(record.last_read_at, now) if record else None
    days_since_write = days_between(record.last_write_at, now) if record else None
    age = target.age_days(now)
    if age is None:
        age = days_since_write
    return {
        "age_days": age,
        "age_months": age // 30 if age is not None else None,
        "size_mb": target.size_mb,
        "tier": target.tier,
        "compression_profile": target.compression_profile,
        "read_only": target.read_only,
        "temperature": temperature.value,
        "read_count": record.read_count if record else 0,
        "write_count": record.write_count if record else 0,
        "days_since_read": days_since_read,
        "days_since_write": days_since_write,
        "owner": target.owner,
        "name": target.name,
        "subobject": target.subobject,
        "tags": target.tags,
    }


def check_conditions(conditions: ConditionSet, facts: dict[str, Any]) -> list[ConditionCheck]:
    """Evaluate every configured condition, in a fixed order."""
    checks: list[ConditionCheck] = []

    if conditions.age_days is not None:
        age = facts["age_days"]
        if age is None:
            checks.append(ConditionCheck("age_days", False, "age unknown"))
        elif age >= conditions.age_days:
            checks.append(ConditionCheck("age_days", True, f"age {age}d ≥ {conditions.age_days}d threshold"))
        else:
            checks.append(ConditionCheck("age_days", False, f"age {age}d < {conditions.age_days}d threshold"))

    if conditions.age_months is not None:
        months = facts["age_months"]
        if months is None:
            checks.append(ConditionCheck("age_months", False, "age unknown"))
        elif months >= conditions.age_months:
            checks.append(
                ConditionCheck("age_months", True, f"age {months}mo ≥ {conditions.age_months}mo threshold")
            )
        else:
            checks.append(
                ConditionCheck("age_months", False, f"age {months}mo < {conditions.age_months}mo threshold")
            )

    if conditions.size_threshold_mb is not None:
        size, limit = facts["size_mb"], conditions.size_threshold_mb
        if size >= limit:
            checks.append(ConditionCheck("size", True, f"size {_num(size)}MB ≥ {_num(limit)}MB threshold"))
        else:
            checks.append(ConditionCheck("size", False, f"size {_num(size)}MB < {_num(limit)}MB threshold"))

    if conditions.temperature is not None:
        actual, required = facts["temperature"], conditions.temperature.value
        if actual == required:
            checks.append(ConditionCheck("temperature", True, f"temperature {actual}"))
        else:
            checks.append(ConditionCheck("temperature", False, f"temperature {actual} ≠ required {required}"))

    if conditions.predicate:
        text = describe_predicate(conditions.predicate)
        if evaluate_predicate(conditions.predicate, facts):
            checks.append(ConditionCheck("predicate", True, f"predicate {text} holds"))
        else:
            checks.append(ConditionCheck("predicate", False, f"predicate {text} not met"))

    return checks


def _same_profile(a: str | None, b: str | None) -> bool:
    return (a or "").upper() == (b or "").upper()


def already_at_destination(policy: Policy, target: TargetObject) -> str | None:
    """Describe the destination state when the target is already in it."""
    params = policy.parameters
    action = policy.action_type
    same_profile = _same_profile(target.compression_profile, params.compression_profile)
    if action is ActionType.COMPRESS and same_profile:
        return f"profile {target.compression_profile}"
    if action is ActionType.MOVE and target.tier == params.destination_tier:
        if not params.compression_profile or same_profile:
            return f"tier {target.tier}"
    if action is ActionType.MARK_READ_ONLY and target.read_only:
        return "read-only"
    return None


def state_difference(policy: Policy, target: TargetObject) -> str:
    """How the target differs from the destination state."""
    params = policy.parameters
    action = policy.action_type
    if action is ActionType.COMPRESS:
        return f"current profile {target.compression_profile} ≠ {params.compression_profile}"
    if action is ActionType.MOVE:
        parts = []
        if target.tier != params.destination_tier:
            parts.append(f"current tier {target.tier} ≠ {params.destination_tier}")
        if params.compression_profile and not _same_profile(
            target.compression_profile, params.compression_profile
        ):
            parts.append(f"current profile {target.compression_profile} ≠ {params.compression_profile}")
        return REASON_SEPARATOR.join(parts)
    if action is ActionType.MARK_READ_ONLY:
        return "currently writable"
    if action is ActionType.DROP:
        return f"{_num(target.size_mb)}MB to release"
    return f"custom action {params.custom_action}"


__all__ = [
    "REASON_SEPARATOR",
    "ConditionCheck",
    "already_at_destination",
    "check_conditions",
    "state_difference",
    "target_facts",
]
