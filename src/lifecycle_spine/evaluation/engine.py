"""
Evaluation engine.

Reconciles enabled policies against current target and access state and
records one decision per (policy, target) pair in the action queue. Every
decision carries a reason, positive or negative, so "why (not)?" is always
answerable from the queue.

Architecture:
    ::

        evaluate_all()
          │
          ├── targets = catalog.list()           (once per cycle)
          ├── access  = tracker.records()        (once per cycle)
          │
          ├── for policy in registry.list(enabled_only=True)   # priority, id
          │     selector = cache.get(policy.selector)          # compiled once
          │     for target in targets matching selector:
          │         RUNNING entry?          → skip, no write
          │         decide(policy, target)  → Decision(eligible, reason)
          │         queue.upsert_decision()
          │         error?                  → "evaluation error: ...", continue
          │
          └── purge never-attempted PENDING entries not refreshed for N days

    decide():
        already at destination  → ineligible "already at target state: ..."
        first failing condition → ineligible "age 40d < 90d threshold"
        otherwise               → eligible "age 120d ≥ 90d threshold, current profile NONE ≠ HIGH"

Examples:
    >>> engine = EvaluationEngine(registry, catalog, tracker, queue, settings)
    >>> report = engine.evaluate_all()
    >>> report.eligible
    3
    >>> engine.explain("compress-90d", "dw.sales:P2024_01").reason
    'age 40d < 90d threshold'

Guardrails:
    ❌ DON'T: Let one target's error abort the cycle
    ✅ DO: Record it as an ineligible decision and move on

Tags:
    evaluation, eligibility, explainability, idempotent, lifecycle-spine
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from lifecycle_spine.core.logging import LogContext, get_logger
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.core.timestamps import to_iso8601, utc_now
from lifecycle_spine.evaluation.conditions import (
    REASON_SEPARATOR,
    ConditionCheck,
    already_at_destination,
    check_conditions,
    state_difference,
    target_facts,
)
from lifecycle_spine.policy.models import Policy
from lifecycle_spine.policy.registry import PolicyRegistry
from lifecycle_spine.policy.selectors import SelectorCache, compile_selector
from lifecycle_spine.queue.models import QueueEntry, QueueStatus
from lifecycle_spine.queue.store import ActionQueue, UpsertResult
from lifecycle_spine.targets.catalog import TargetCatalog
from lifecycle_spine.targets.models import TargetObject
from lifecycle_spine.tracking.models import AccessRecord
from lifecycle_spine.tracking.tracker import AccessTracker

logger = get_logger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating one policy against one target."""

    policy_id: int
    target_id: str
    eligible: bool
    reason: str
    checks: tuple[ConditionCheck, ...] = ()


@dataclass
class EvaluationReport:
    """Counters for one evaluation run."""

    started_at: datetime
    finished_at: datetime | None = None
    policies_evaluated: int = 0
    candidates: int = 0
    eligible: int = 0
    ineligible: int = 0
    skipped: int = 0
    errors: int = 0
    stale_purged: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": to_iso8601(self.started_at),
            "finished_at": to_iso8601(self.finished_at),
            "policies_evaluated": self.policies_evaluated,
            "candidates": self.candidates,
            "eligible": self.eligible,
            "ineligible": self.ineligible,
            "skipped": self.skipped,
            "errors": self.errors,
            "stale_purged": self.stale_purged,
        }


@dataclass(frozen=True)
class Explanation:
    """Current decision for a (policy, target) pair plus its stored queue entry."""

    policy_id: int
    policy_name: str
    target_id: str
    eligible: bool
    reason: str
    checks: tuple[ConditionCheck, ...] = ()
    entry: QueueEntry | None = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "policy_name": self.policy_name,
            "target_id": self.target_id,
            "eligible": self.eligible,
            "reason": self.reason,
            "checks": [
                {"name": c.name, "satisfied": c.satisfied, "description": c.description} for c in self.checks
            ],
            "entry": self.entry.to_dict() if self.entry else None,
            "notes": list(self.notes),
        }


class EvaluationEngine:
    """Produces and refreshes queue decisions."""

    def __init__(
        self,
        registry: PolicyRegistry,
        catalog: TargetCatalog,
        tracker: AccessTracker,
        queue: ActionQueue,
        settings: LifecycleSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.registry = registry
        self.catalog = catalog
        self.tracker = tracker
        self.queue = queue
        self.settings = settings
        self._clock = clock

    # -- Entry points ------------------------------------------------------

    def evaluate_all(self) -> EvaluationReport:
        """Evaluate every enabled policy against every matching target."""
        now = self._clock()
        report = EvaluationReport(started_at=now)
        self._run(self.registry.list(enabled_only=True), self.catalog.list(), now, report)
        cutoff = now - timedelta(days=self.settings.stale_pending_days)
        report.stale_purged = self.queue.purge_stale_pending(cutoff)
        return report

    def evaluate_policy(self, policy_ref: int | str) -> EvaluationReport:
        """Evaluate a single policy (enabled or not) against its targets."""
        now = self._clock()
        report = EvaluationReport(started_at=now)
        self._run([self.registry.resolve(policy_ref)], self.catalog.list(), now, report)
        return report

    def evaluate_namespace(self, namespace: str) -> EvaluationReport:
        """Evaluate every enabled policy against the targets of one namespace."""
        now = self._clock()
        report = EvaluationReport(started_at=now)
        self._run(self.registry.list(enabled_only=True), self.catalog.list(namespace=namespace), now, report)
        return report

    def explain(self, policy_ref: int | str, target_id: str) -> Explanation:
        """Decide (policy, target) now, without writing, alongside the stored entry."""
        policy = self.registry.resolve(policy_ref)
        target = self.catalog.require(target_id)
        now = self._clock()
        decision = self.decide(policy, target, self.tracker.get(target_id), now)
        entry = self.queue.get_for(policy.policy_id, target_id)

        notes = []
        if not policy.enabled:
            notes.append("policy is disabled")
        if not compile_selector(policy.selector).matches(target):
            notes.append("target does not match the policy selector")
        if entry is not None and entry.status is not QueueStatus.PENDING:
            notes.append(f"queue entry is {entry.status.value}")

        return Explanation(
            policy_id=policy.policy_id,
            policy_name=policy.name,
            target_id=target_id,
            eligible=decision.eligible,
            reason=decision.reason,
            checks=decision.checks,
            entry=entry,
            notes=notes,
        )

    # -- Decision ----------------------------------------------------------

    def decide(
        self,
        policy: Policy,
        target: TargetObject,
        record: AccessRecord | None,
        now: datetime,
    ) -> Decision:
        """Pure eligibility decision for one (policy, target) pair."""
        at_state = already_at_destination(policy, target)
        if at_state is not None:
            return Decision(policy.policy_id, target.target_id, False, f"already at target state: {at_state}")

        profile = self.tracker.resolve_profile(policy.threshold_profile)
        temperature = self.tracker.classify(target, profile, record=record, now=now)
        facts = target_facts(target, record, now, temperature)
        checks = tuple(check_conditions(policy.conditions, facts))

        for check in checks:
            if not check.satisfied:
                return Decision(policy.policy_id, target.target_id, False, check.description, checks)

        parts = [c.description for c in checks]
        difference = state_difference(policy, target)
        if difference:
            parts.append(difference)
        return Decision(policy.policy_id, target.target_id, True, REASON_SEPARATOR.join(parts), checks)

    # -- Internals ---------------------------------------------------------

    def _run(
        self,
        policies: Iterable[Policy],
        targets: list[TargetObject],
        now: datetime,
        report: EvaluationReport,
    ) -> None:
        cache = SelectorCache()
        records = {r.target_id: r for r in self.tracker.records()}

        for policy in policies:
            report.policies_evaluated += 1
            selector = cache.get(policy.selector)
            with LogContext(policy_id=policy.policy_id, policy_name=policy.name):
                for target in targets:
                    if not selector.matches(target):
                        continue
                    report.candidates += 1
                    self._evaluate_one(policy, target, records.get(target.target_id), now, report)

        report.finished_at = self._clock()
        logger.info("evaluation.completed", **report.to_dict())

    def _evaluate_one(
        self,
        policy: Policy,
        target: TargetObject,
        record: AccessRecord | None,
        now: datetime,
        report: EvaluationReport,
    ) -> None:
        existing = self.queue.get_for(policy.policy_id, target.target_id)
        if existing is not None and existing.status is QueueStatus.RUNNING:
            report.skipped += 1
            return

        try:
            decision = self.decide(policy, target, record, now)
        except Exception as e:  # noqa: BLE001
            report.errors += 1
            logger.error("evaluation.target_failed", target_id=target.target_id, error=str(e))
            decision = Decision(policy.policy_id, target.target_id, False, f"evaluation error: {e}")

        result = self.queue.upsert_decision(
            policy.policy_id,
            target.target_id,
            decision.eligible,
            decision.reason,
            now,
            supersede_done=policy.action_type.has_destination_state,
        )
        if result is UpsertResult.SKIPPED:
            report.skipped += 1
        elif decision.eligible:
            report.eligible += 1
        else:
            report.ineligible += 1
        logger.debug(
            "evaluation.decided",
            target_id=target.target_id,
            eligible=decision.eligible,
            reason=decision.reason,
            result=result.value,
        )


__all__ = ["Decision", "EvaluationEngine", "EvaluationReport", "Explanation"]
