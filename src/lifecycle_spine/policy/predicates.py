"""Constrained custom predicates.

Custom eligibility conditions are data, not code. A predicate is a small
expression tree over a fixed vocabulary of target facts, optionally calling
named predicate functions registered in code:

    {"attr": "tier", "op": "==", "value": "standard"}
    {"all": [{"attr": "size_mb", "op": ">", "value": 1024},
             {"not": {"attr": "read_only", "op": "==", "value": true}}]}
    {"any": [{"predicate": "never_accessed"},
             {"predicate": "has_tag", "args": {"tag": "scratch"}}]}

Trees are validated at policy registration (:func:`validate_predicate`) so the
evaluation engine only ever walks well-formed input.

Registering a named predicate::

    @register_predicate("large_and_cold")
    def large_and_cold(facts, min_mb=1024):
        return facts["size_mb"] >= min_mb and facts["temperature"] == "COLD"
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Mapping
from typing import Any

from lifecycle_spine.core.logging import get_logger

logger = get_logger(__name__)

PredicateFunc = Callable[..., bool]

VOCABULARY: frozenset[str] = frozenset({
    "age_days",
    "age_months",
    "size_mb",
    "tier",
    "compression_profile",
    "read_only",
    "temperature",
    "read_count",
    "write_count",
    "days_since_read",
    "days_since_write",
    "owner",
    "name",
    "subobject",
    "tags",
})


def _contains(container: Any, item: Any) -> bool:
    return container is not None and item in container


def _in(item: Any, container: Any) -> bool:
    return item in container


def _not_in(item: Any, container: Any) -> bool:
    return item not in container


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": _in,
    "not in": _not_in,
    "contains": _contains,
}

_ORDERING_OPS = frozenset({"<", "<=", ">", ">="})
_MEMBERSHIP_OPS = frozenset({"in", "not in"})

# Named predicate registry
_predicates: dict[str, PredicateFunc] = {}
_builtin_names: set[str] = set()


class PredicateError(ValueError):
    """Predicate tree is malformed or uses unknown names."""


def register_predicate(name: str) -> Callable[[PredicateFunc], PredicateFunc]:
    """Decorator to register a named predicate function.

    The function receives the fact mapping plus the node's ``args`` as
    keyword arguments and returns a bool.
    """

    def decorator(func: PredicateFunc) -> PredicateFunc:
        if name in _predicates:
            raise ValueError(f"Predicate '{name}' is already registered")
        _predicates[name] = func
        logger.debug("predicate_registered", name=name, func=func.__name__)
        return func

    return decorator


def get_predicate(name: str) -> PredicateFunc:
    if name not in _predicates:
        available = ", ".join(sorted(_predicates))
        raise KeyError(f"Predicate '{name}' not found. Available: {available}")
    return _predicates[name]


def list_predicates() -> list[str]:
    return sorted(_predicates)


def clear_registry() -> None:
    """Drop non-builtin predicates (for testing)."""
    for name in list(_predicates):
        if name not in _builtin_names:
            del _predicates[name]


# =============================================================================
# BUILT-IN PREDICATES
# =============================================================================


@register_predicate("never_accessed")
def never_accessed(facts: Mapping[str, Any]) -> bool:
    return not facts.get("read_count") and not facts.get("write_count")


@register_predicate("uncompressed")
def uncompressed(facts: Mapping[str, Any]) -> bool:
    return facts.get("compression_profile") == "NONE"


@register_predicate("writable")
def writable(facts: Mapping[str, Any]) -> bool:
    return not facts.get("read_only")


@register_predicate("has_tag")
def has_tag(facts: Mapping[str, Any], tag: str) -> bool:
    return tag in (facts.get("tags") or ())


_builtin_names.update(_predicates)


# =============================================================================
# VALIDATION
# =============================================================================


def validate_predicate(node: Any, path: str = "predicate") -> None:
    """Check that a predicate tree is well formed.

    Raises:
        PredicateError: With the path of the offending node
    """
    if not isinstance(node, Mapping) or not node:
        raise PredicateError(f"{path}: expected a non-empty mapping")

    if "all" in node or "any" in node:
        key = "all" if "all" in node else "any"
        _expect_keys(node, {key}, path)
        children = node[key]
        if not isinstance(children, list) or not children:
            raise PredicateError(f"{path}.{key}: expected a non-empty list")
        for i, child in enumerate(children):
            validate_predicate(child, f"{path}.{key}[{i}]")
        return

    if "not" in node:
        _expect_keys(node, {"not"}, path)
        validate_predicate(node["not"], f"{path}.not")
        return

    if "predicate" in node:
        _expect_keys(node, {"predicate", "args"}, path)
        name = node["predicate"]
        if name not in _predicates:
            raise PredicateError(f"{path}: unknown named predicate {name!r}")
        args = node.get("args", {})
        if not isinstance(args, Mapping):
            raise PredicateError(f"{path}.args: expected a mapping")
        return

    if "attr" in node:
        _expect_keys(node, {"attr", "op", "value"}, path)
        attr, op = node["attr"], node.get("op")
        if attr not in VOCABULARY:
            raise PredicateError(f"{path}: unknown attribute {attr!r}")
        if op not in OPERATORS:
            raise PredicateError(f"{path}: unknown operator {op!r}")
        if "value" not in node:
            raise PredicateError(f"{path}: missing 'value'")
        if op in _MEMBERSHIP_OPS and not isinstance(node["value"], (list, tuple)):
            raise PredicateError(f"{path}: operator {op!r} needs a list value")
        return

    raise PredicateError(f"{path}: expected one of all/any/not/predicate/attr")


def _expect_keys(node: Mapping[str, Any], allowed: set[str], path: str) -> None:
    extra = set(node) - allowed
    if extra:
        raise PredicateError(f"{path}: unexpected keys {sorted(extra)}")


# =============================================================================
# EVALUATION
# =============================================================================


def evaluate_predicate(node: Mapping[str, Any], facts: Mapping[str, Any]) -> bool:
    """Evaluate a validated predicate tree against target facts.

    Unknown facts (``None``) never satisfy an ordering comparison.
    """
    if "all" in node:
        return all(evaluate_predicate(child, facts) for child in node["all"])
    if "any" in node:
        return any(evaluate_predicate(child, facts) for child in node["any"])
    if "not" in node:
        return not evaluate_predicate(node["not"], facts)
    if "predicate" in node:
        func = get_predicate(node["predicate"])
        return bool(func(facts, **node.get("args", {})))

    actual = facts.get(node["attr"])
    op = node["op"]
    if actual is None and op in _ORDERING_OPS:
        return False
    return bool(OPERATORS[op](actual, node["value"]))


def describe_predicate(node: Mapping[str, Any]) -> str:
    """Render a predicate tree for eligibility reasons."""
    if "all" in node:
        return "(" + " and ".join(describe_predicate(c) for c in node["all"]) + ")"
    if "any" in node:
        return "(" + " or ".join(describe_predicate(c) for c in node["any"]) + ")"
    if "not" in node:
        return f"not {describe_predicate(node['not'])}"
    if "predicate" in node:
        args = node.get("args") or {}
        rendered = ", ".join(f"{k}={v!r}" for k, v in args.items())
        return f"{node['predicate']}({rendered})"
    return f"{node['attr']} {node['op']} {node['value']!r}"


__all__ = [
    "OPERATORS",
    "VOCABULARY",
    "PredicateError",
    "clear_registry",
    "describe_predicate",
    "evaluate_predicate",
    "get_predicate",
    "list_predicates",
    "register_predicate",
    "validate_predicate",
]
