"""Policies: model, selectors, predicate language, validation, registry and YAML loading."""

from lifecycle_spine.policy.loader import PolicyDocument, load_policy_file, parse_policies
from lifecycle_spine.policy.models import (
    ALLOWED_ACTIONS,
    ActionParameters,
    ActionType,
    ConditionSet,
    Policy,
    PolicyCategory,
)
from lifecycle_spine.policy.registry import PolicyRegistry
from lifecycle_spine.policy.selectors import Selector, SelectorCache, compile_selector
from lifecycle_spine.policy.validator import PolicyValidator

__all__ = [
    "ALLOWED_ACTIONS",
    "ActionParameters",
    "ActionType",
    "ConditionSet",
    "Policy",
    "PolicyCategory",
    "PolicyDocument",
    "PolicyRegistry",
    "PolicyValidator",
    "Selector",
    "SelectorCache",
    "compile_selector",
    "load_policy_file",
    "parse_policies",
]
