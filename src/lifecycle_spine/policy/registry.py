"""
Policy registry.

Owns lifecycle policy definitions. Every mutation is validated first and
written together with its audit record in one transaction, so a caller is
never left with a half-registered policy or an unaudited change.

Architecture:
    ::

        register(policy) ─► PolicyValidator.validate ─► duplicate-name check
                                                              │
                                       ┌──────────────────────┘
                                       ▼
                             BEGIN ── INSERT lc_policies
                                   ── INSERT lc_policy_audit (REGISTER)
                             COMMIT ─► overlap warning (log only)

        update / enable / disable follow the same shape.

Examples:
    >>> registry = PolicyRegistry(conn, settings, catalog.has_namespace)
    >>> stored = registry.register(Policy(
    ...     name="compress-90d", selector="dw.sales",
    ...     category=PolicyCategory.COMPRESSION, action_type=ActionType.COMPRESS,
    ...     conditions=ConditionSet(age_days=90),
    ...     parameters=ActionParameters(compression_profile="HIGH"),
    ... ))
    >>> stored.policy_id
    1

Guardrails:
    ❌ DON'T: Reject overlapping policies
    ✅ DO: Warn; priority then policy id decides the execution order

Tags:
    policy, registry, validation, audit, lifecycle-spine
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import datetime

from lifecycle_spine.audit.log import PolicyAuditLog
from lifecycle_spine.audit.models import AuditOperation, PolicyAuditRecord
from lifecycle_spine.core.errors import PolicyNotFoundError, ValidationError, ValidationErrorKind
from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.protocols import Connection
from lifecycle_spine.core.repository import BaseRepository
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.core.timestamps import to_iso8601, utc_now
from lifecycle_spine.policy.models import Policy
from lifecycle_spine.policy.selectors import compile_selector
from lifecycle_spine.policy.validator import PolicyValidator

logger = get_logger(__name__)


class PolicyRegistry(BaseRepository):
    """Validated, audited store of :class:`Policy` definitions."""

    def __init__(
        self,
        conn: Connection,
        settings: LifecycleSettings,
        namespace_exists: Callable[[str], bool],
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(conn)
        self.settings = settings
        self.validator = PolicyValidator(settings, namespace_exists)
        self.audit = PolicyAuditLog(conn)
        self._clock = clock

    # -- Mutations ---------------------------------------------------------

    def validate(self, policy: Policy) -> None:
        """Dry-run validation; raises :class:`ValidationError`, writes nothing."""
        self.validator.validate(policy)
        self._check_unique_name(policy.name, ignore_id=policy.policy_id)

    def register(self, policy: Policy, actor: str | None = None) -> Policy:
        self.validator.validate(policy)
        self._check_unique_name(policy.name)

        now = self._clock()
        stored = dataclasses.replace(
            policy, policy_id=None, created_by=actor, created_at=now, modified_by=None, modified_at=None
        )
        with self.transaction():
            policy_id = self.insert("lc_policies", stored.to_row())
            stored.policy_id = policy_id
            self.audit.record(policy_id, AuditOperation.REGISTER, stored.to_dict(), actor=actor, at=now)

        logger.info(
            "policy.registered",
            policy_id=policy_id,
            name=stored.name,
            category=stored.category.value,
            action_type=stored.action_type.value,
            priority=stored.priority,
        )
        if stored.enabled:
            self._warn_overlaps(stored)
        return stored

    def update(self, policy: Policy, actor: str | None = None) -> Policy:
        if policy.policy_id is None:
            raise PolicyNotFoundError("Cannot update a policy without policy_id")
        current = self.require(policy.policy_id)
        self.validator.validate(policy)
        self._check_unique_name(policy.name, ignore_id=policy.policy_id)

        now = self._clock()
        stored = dataclasses.replace(
            policy,
            created_by=current.created_by,
            created_at=current.created_at,
            modified_by=actor,
            modified_at=now,
        )
        row = stored.to_row()
        assignments = ", ".join(f"{column} = ?" for column in row)
        with self.transaction():
            self.execute(
                f"UPDATE lc_policies SET {assignments} WHERE policy_id = ?",  # noqa: S608
                (*row.values(), stored.policy_id),
            )
            self.audit.record(stored.policy_id, AuditOperation.UPDATE, stored.to_dict(), actor=actor, at=now)

        logger.info("policy.updated", policy_id=stored.policy_id, name=stored.name)
        if stored.enabled:
            self._warn_overlaps(stored)
        return stored

    def enable(self, policy_id: int, actor: str | None = None) -> Policy:
        policy = self._set_enabled(policy_id, True, actor)
        self._warn_overlaps(policy)
        return policy

    def disable(self, policy_id: int, actor: str | None = None) -> Policy:
        return self._set_enabled(policy_id, False, actor)

    def _set_enabled(self, policy_id: int, enabled: bool, actor: str | None) -> Policy:
        policy = self.require(policy_id)
        now = self._clock()
        policy.enabled = enabled
        policy.modified_by = actor
        policy.modified_at = now
        operation = AuditOperation.ENABLE if enabled else AuditOperation.DISABLE
        with self.transaction():
            self.execute(
                "UPDATE lc_policies SET enabled = ?, modified_by = ?, modified_at = ? WHERE policy_id = ?",
                (int(enabled), actor, to_iso8601(now), policy_id),
            )
            self.audit.record(policy_id, operation, policy.to_dict(), actor=actor, at=now)
        logger.info("policy.enabled" if enabled else "policy.disabled", policy_id=policy_id, name=policy.name)
        return policy

    # -- Queries -----------------------------------------------------------

    def get(self, policy_id: int) -> Policy | None:
        row = self.query_one("SELECT * FROM lc_policies WHERE policy_id = ?", (policy_id,))
        return Policy.from_row(row) if row else None

    def require(self, policy_id: int) -> Policy:
        policy = self.get(policy_id)
        if policy is None:
            raise PolicyNotFoundError(f"Policy not found: {policy_id}").with_context(policy_id=policy_id)
        return policy

    def get_by_name(self, name: str) -> Policy | None:
        row = self.query_one("SELECT * FROM lc_policies WHERE name = ?", (name,))
        return Policy.from_row(row) if row else None

    def resolve(self, ref: str | int) -> Policy:
        """Look a policy up by numeric id or by name."""
        if isinstance(ref, int) or str(ref).isdigit():
            return self.require(int(ref))
        policy = self.get_by_name(str(ref))
        if policy is None:
            raise PolicyNotFoundError(f"Policy not found: {ref}").with_context(policy_name=str(ref))
        return policy

    def list(self, enabled_only: bool = False) -> list[Policy]:
        """Policies in execution order: priority ascending, then id."""
        sql = "SELECT * FROM lc_policies"
        if enabled_only:
            sql += " WHERE enabled = 1"
        sql += " ORDER BY priority, policy_id"
        return [Policy.from_row(r) for r in self.query(sql)]

    def audit_trail(self, policy_id: int) -> list[PolicyAuditRecord]:
        return self.audit.list(policy_id)

    # -- Helpers -----------------------------------------------------------

    def _check_unique_name(self, name: str, ignore_id: int | None = None) -> None:
        existing = self.get_by_name(name)
        if existing is not None and (ignore_id is None or existing.policy_id != ignore_id):
            raise ValidationError(
                f"Policy name {name!r} is already registered (id {existing.policy_id})",
                kind=ValidationErrorKind.DUPLICATE_POLICY,
                field="name",
            ).with_context(policy_name=name)

    def _warn_overlaps(self, policy: Policy) -> None:
        selector = compile_selector(policy.selector)
        for other in self.list(enabled_only=True):
            if other.policy_id == policy.policy_id:
                continue
            if selector.overlaps(compile_selector(other.selector)):
                logger.warning(
                    "policy.overlap_detected",
                    policy_id=policy.policy_id,
                    name=policy.name,
                    other_policy_id=other.policy_id,
                    other_name=other.name,
                    priority=policy.priority,
                    other_priority=other.priority,
                )


__all__ = ["PolicyRegistry"]
