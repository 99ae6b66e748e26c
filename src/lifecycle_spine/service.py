"""
Lifecycle service façade.

Owns the registry, catalog, tracker, queue and logs over one database and
exposes the operations external schedulers and the CLI call. Nothing outside
this object touches the tables directly.

Architecture:
    ::

        LifecycleService
          ├── catalog    TargetCatalog        lc_targets
          ├── registry   PolicyRegistry       lc_policies, lc_policy_audit
          ├── tracker    AccessTracker        lc_access
          ├── queue      ActionQueue          lc_action_queue
          ├── log        ExecutionLog         lc_execution_log
          ├── evaluator  EvaluationEngine
          └── executor   ExecutionEngine ──► StorageDriver, ScheduleGate

Examples:
    >>> service = LifecycleService(create_connection(), LifecycleSettings(), gate=AlwaysOpenGate())
    >>> service.register_target(TargetObject("dw", "sales", "P2024_01", tier="hot", size_mb=500))
    >>> service.register_policy(policy)
    >>> service.evaluate().eligible
    1
    >>> service.execute(max_operations=10).succeeded
    1

    From settings (CLI)::

        service = LifecycleService.from_settings(get_settings())

Tags:
    service, facade, lifecycle-spine
"""

from __future__ import annotations

import importlib
import sqlite3
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

from lifecycle_spine.audit.log import ExecutionLog
from lifecycle_spine.audit.models import ExecutionLogEntry, PolicyAuditRecord
from lifecycle_spine.audit.retention import RetentionConfig, RetentionReport, purge_all
from lifecycle_spine.core.connection import create_connection
from lifecycle_spine.core.errors import ErrorCategory, LifecycleError
from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.core.protocols import Connection
from lifecycle_spine.core.settings import LifecycleSettings, get_settings
from lifecycle_spine.core.timestamps import utc_now
from lifecycle_spine.evaluation.engine import EvaluationEngine, EvaluationReport, Explanation
from lifecycle_spine.execution.driver import SimulatedStorageDriver, StorageDriver
from lifecycle_spine.execution.engine import ExecutionEngine, ExecutionReport
from lifecycle_spine.execution.gate import ScheduleGate, TimeWindowGate
from lifecycle_spine.execution.retry import RetryStrategy
from lifecycle_spine.policy.models import Policy
from lifecycle_spine.policy.registry import PolicyRegistry
from lifecycle_spine.queue.models import QueueEntry, QueueStatus
from lifecycle_spine.queue.store import ActionQueue
from lifecycle_spine.targets.catalog import TargetCatalog
from lifecycle_spine.targets.models import TargetObject
from lifecycle_spine.tracking.models import AccessRecord, AccessSignal, AccessSignalSource
from lifecycle_spine.tracking.tracker import AccessTracker

logger = get_logger(__name__)


def load_object(ref: str) -> Any:
    """Import ``module:qualname`` and return the attribute."""
    module_name, sep, qualname = ref.partition(":")
    if not sep or not module_name or not qualname:
        raise LifecycleError(f"Expected 'module:qualname', got {ref!r}", category=ErrorCategory.CONFIG)
    try:
        obj: Any = importlib.import_module(module_name)
        for part in qualname.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as e:
        raise LifecycleError(f"Cannot load {ref!r}: {e}", category=ErrorCategory.CONFIG, cause=e) from e
    return obj


class LifecycleService:
    """Single owner of lifecycle state."""

    def __init__(
        self,
        conn: Connection,
        settings: LifecycleSettings | None = None,
        driver: StorageDriver | None = None,
        gate: ScheduleGate | None = None,
        signal_source: AccessSignalSource | None = None,
        retry: RetryStrategy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.conn = conn
        self.settings = settings or get_settings()
        self.clock = clock
        self.driver = driver or SimulatedStorageDriver()
        self.gate = gate or TimeWindowGate.from_settings(self.settings)

        self.catalog = TargetCatalog(conn, clock)
        self.registry = PolicyRegistry(conn, self.settings, self.catalog.has_namespace, clock)
        self.tracker = AccessTracker(conn, self.catalog, self.settings, signal_source, clock)
        self.queue = ActionQueue(conn, clock)
        self.log = ExecutionLog(conn, clock)
        self.evaluator = EvaluationEngine(
            self.registry, self.catalog, self.tracker, self.queue, self.settings, clock
        )
        self.executor = ExecutionEngine(
            self.queue,
            self.catalog,
            self.registry,
            self.log,
            self.driver,
            self.gate,
            self.settings,
            retry=retry,
            clock=clock,
        )

    @classmethod
    def from_settings(cls, settings: LifecycleSettings | None = None) -> LifecycleService:
        """Open the configured database and load the configured driver."""
        settings = settings or get_settings()
        conn = create_connection(settings.database_path)
        driver = load_object(settings.storage_driver)()
        source = load_object(settings.access_signal_source)() if settings.access_signal_source else None
        return cls(conn, settings, driver=driver, signal_source=source)

    def close(self) -> None:
        if isinstance(self.conn, sqlite3.Connection):
            self.conn.close()

    # -- Targets -----------------------------------------------------------

    def register_target(self, target: TargetObject) -> TargetObject:
        return self.catalog.register(target)

    def register_targets(self, targets: Iterable[TargetObject]) -> int:
        count = 0
        for target in targets:
            self.catalog.register(target)
            count += 1
        return count

    def targets(self, namespace: str | None = None) -> list[TargetObject]:
        return self.catalog.list(namespace=namespace)

    # -- Policies ----------------------------------------------------------

    def validate_policy(self, policy: Policy) -> None:
        self.registry.validate(policy)

    def register_policy(self, policy: Policy, actor: str | None = None) -> Policy:
        return self.registry.register(policy, actor)

    def update_policy(self, policy: Policy, actor: str | None = None) -> Policy:
        return self.registry.update(policy, actor)

    def enable_policy(self, policy_ref: int | str, actor: str | None = None) -> Policy:
        return self.registry.enable(self.registry.resolve(policy_ref).policy_id, actor)

    def disable_policy(self, policy_ref: int | str, actor: str | None = None) -> Policy:
        return self.registry.disable(self.registry.resolve(policy_ref).policy_id, actor)

    def policies(self, enabled_only: bool = False) -> list[Policy]:
        return self.registry.list(enabled_only=enabled_only)

    def policy_audit(self, policy_ref: int | str) -> list[PolicyAuditRecord]:
        return self.registry.audit_trail(self.registry.resolve(policy_ref).policy_id)

    # -- Tracking ----------------------------------------------------------

    def refresh_access(self, scope: str | None = None, signals: Iterable[AccessSignal] | None = None) -> int:
        return self.tracker.refresh(scope, signals=signals)

    def access_records(self, scope: str | None = None) -> list[AccessRecord]:
        return self.tracker.records(scope)

    # -- Evaluation --------------------------------------------------------

    def evaluate(self) -> EvaluationReport:
        return self.evaluator.evaluate_all()

    def evaluate_policy(self, policy_ref: int | str) -> EvaluationReport:
        return self.evaluator.evaluate_policy(policy_ref)

    def evaluate_namespace(self, namespace: str) -> EvaluationReport:
        return self.evaluator.evaluate_namespace(namespace)

    def explain(self, policy_ref: int | str, target_id: str) -> Explanation:
        return self.evaluator.explain(policy_ref, target_id)

    # -- Execution ---------------------------------------------------------

    def execute(
        self, max_operations: int | None = None, policy_ref: int | str | None = None
    ) -> ExecutionReport:
        policy_id = self.registry.resolve(policy_ref).policy_id if policy_ref is not None else None
        return self.executor.run_cycle(max_operations=max_operations, policy_id=policy_id)

    # -- Queue -------------------------------------------------------------

    def queue_entries(
        self,
        status: QueueStatus | None = None,
        policy_ref: int | str | None = None,
        target_id: str | None = None,
        eligible: bool | None = None,
        limit: int | None = None,
    ) -> list[QueueEntry]:
        policy_id = self.registry.resolve(policy_ref).policy_id if policy_ref is not None else None
        return self.queue.list(
            status=status, policy_id=policy_id, target_id=target_id, eligible=eligible, limit=limit
        )

    def requeue(self, entry_id: int) -> QueueEntry:
        return self.queue.requeue(entry_id)

    def clear_queue(self, policy_ref: int | str | None = None) -> int:
        policy_id = self.registry.resolve(policy_ref).policy_id if policy_ref is not None else None
        return self.queue.clear_pending(policy_id)

    def recover_stale_running(self) -> int:
        return self.queue.recover_stale_running()

    # -- Reporting ---------------------------------------------------------

    def log_entries(
        self,
        entry_id: int | None = None,
        target_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[ExecutionLogEntry]:
        return self.log.list(entry_id=entry_id, target_id=target_id, since=since, limit=limit)

    def recent_failure_count(self, hours: int | None = None) -> int:
        window = timedelta(hours=hours if hours is not None else self.settings.failure_window_hours)
        return self.log.recent_failure_count(window)

    def purge_log(self, days: int | None = None) -> int:
        return self.log.purge_older_than(days if days is not None else self.settings.log_retention_days)

    def run_retention(self) -> RetentionReport:
        return purge_all(self.conn, RetentionConfig.from_settings(self.settings), clock=self.clock)


__all__ = ["LifecycleService", "load_object"]
