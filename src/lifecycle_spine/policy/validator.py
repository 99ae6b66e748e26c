"""Structural policy validation.

Runs synchronously before any registry write. The first problem found is
raised as a :class:`ValidationError` whose ``kind`` tells automation what went
wrong; nothing is persisted for an invalid policy.

Checks, in order::

    selector      → UNKNOWN_TARGET
    parameters    → MISSING_PARAMETER
    category      → CATEGORY_ACTION_MISMATCH
    priority      → PRIORITY_OUT_OF_RANGE
    conditions    → NO_CONDITION, INVALID_CONDITION
"""

from __future__ import annotations

from collections.abc import Callable

from lifecycle_spine.core.errors import ValidationError, ValidationErrorKind
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.policy.models import ALLOWED_ACTIONS, REQUIRED_PARAMETERS, Policy
from lifecycle_spine.policy.predicates import PredicateError, validate_predicate
from lifecycle_spine.policy.selectors import SelectorError, compile_selector
from lifecycle_spine.tracking.models import BUILTIN_PROFILES


class PolicyValidator:
    """Validates policies against structural rules and the known namespaces.

    Args:
        settings: Source of the valid priority range
        namespace_exists: Lookup used for literal selectors; normally
            ``TargetCatalog.has_namespace``
    """

    def __init__(self, settings: LifecycleSettings, namespace_exists: Callable[[str], bool]) -> None:
        self.settings = settings
        self.namespace_exists = namespace_exists

    def validate(self, policy: Policy) -> None:
        self._check_selector(policy)
        self._check_parameters(policy)
        self._check_category(policy)
        self._check_priority(policy)
        self._check_conditions(policy)

    def _check_selector(self, policy: Policy) -> None:
        try:
            selector = compile_selector(policy.selector)
        except SelectorError as e:
            raise self._error(str(e), ValidationErrorKind.UNKNOWN_TARGET, "selector", policy) from e
        if selector.is_literal and not self.namespace_exists(selector.namespace or ""):
            raise self._error(
                f"Selector {policy.selector!r} names unknown namespace {selector.namespace!r}",
                ValidationErrorKind.UNKNOWN_TARGET,
                "selector",
                policy,
            )

    def _check_parameters(self, policy: Policy) -> None:
        for name in REQUIRED_PARAMETERS[policy.action_type]:
            if not getattr(policy.parameters, name):
                raise self._error(
                    f"Action {policy.action_type.value} requires parameter '{name}'",
                    ValidationErrorKind.MISSING_PARAMETER,
                    name,
                    policy,
                )
        degree = policy.parameters.parallel_degree
        if degree is not None and degree < 1:
            raise self._error(
                f"parallel_degree must be >= 1, got {degree}",
                ValidationErrorKind.MISSING_PARAMETER,
                "parallel_degree",
                policy,
            )

    def _check_category(self, policy: Policy) -> None:
        allowed = ALLOWED_ACTIONS[policy.category]
        if policy.action_type not in allowed:
            names = ", ".join(sorted(a.value for a in allowed))
            raise self._error(
                f"Action {policy.action_type.value} is not permitted for category "
                f"{policy.category.value} (allowed: {names})",
                ValidationErrorKind.CATEGORY_ACTION_MISMATCH,
                "action_type",
                policy,
            )

    def _check_priority(self, policy: Policy) -> None:
        low, high = self.settings.priority_min, self.settings.priority_max
        if not low <= policy.priority <= high:
            raise self._error(
                f"Priority {policy.priority} outside [{low}, {high}]",
                ValidationErrorKind.PRIORITY_OUT_OF_RANGE,
                "priority",
                policy,
            )

    def _check_conditions(self, policy: Policy) -> None:
        conditions = policy.conditions
        if conditions.is_empty():
            raise self._error(
                "Policy has no condition", ValidationErrorKind.NO_CONDITION, "conditions", policy
            )
        for name in ("age_days", "age_months", "size_threshold_mb"):
            value = getattr(conditions, name)
            if value is not None and value < 0:
                raise self._error(
                    f"{name} must be non-negative, got {value}",
                    ValidationErrorKind.INVALID_CONDITION,
                    name,
                    policy,
                )
        if conditions.predicate:
            try:
                validate_predicate(conditions.predicate)
            except PredicateError as e:
                raise self._error(str(e), ValidationErrorKind.INVALID_CONDITION, "predicate", policy) from e
        if policy.threshold_profile and policy.threshold_profile not in BUILTIN_PROFILES:
            raise self._error(
                f"Unknown threshold profile {policy.threshold_profile!r}",
                ValidationErrorKind.INVALID_CONDITION,
                "threshold_profile",
                policy,
            )

    @staticmethod
    def _error(message: str, kind: ValidationErrorKind, field: str, policy: Policy) -> ValidationError:
        return ValidationError(message, kind=kind, field=field).with_context(  # type: ignore[return-value]
            policy_name=policy.name, policy_id=policy.policy_id
        )


__all__ = ["PolicyValidator"]
