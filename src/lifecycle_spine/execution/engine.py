"""
Execution engine: ThreadPool-based queue drain.

Drains dispatchable queue entries under the schedule gate, a global
concurrency cap and per-target mutual exclusion, hands the physical work to
the storage driver on worker threads, and records every attempt.

ARCHITECTURE
────────────
::

    run_cycle(max_operations)
      │
      ├── gate closed?                     → report.gate_closed, nothing dispatched
      ├── candidates = queue.dispatchable()  (priority, then entry id)
      │
      └── for entry in candidates:                       (dispatch thread)
            ├── max_operations reached?    → stop
            ├── target dispatched already? → skip (stays PENDING)
            ├── RUNNING ≥ cap?             → wait for one of ours to finish
            ├── gate closed?               → stop; in-flight work completes
            ├── queue.claim()              → RUNNING, attempt+1 (None: target busy)
            └── pool.submit(driver.perform + secondary steps)   (worker thread)

      completion (dispatch thread, one transaction per entry):
            success   → catalog.apply_transition / remove, queue.complete, log SUCCESS
            degraded  → same, entry DONE with warning, log WARNING
            reported  → DriverResult.outcome other than SUCCESS/WARNING is a failure
            transient → queue.release_for_retry (backoff) or queue.fail when exhausted
            fatal     → queue.fail
            always    → log.append

    Workers only call the driver; every database write happens on the
    dispatch thread.

    A completion that cannot be recorded is logged and counted as failed;
    the rest of the cycle carries on.

Tags:
    execution, thread-pool, concurrency-cap, mutual-exclusion, retry, lifecycle-spine
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from lifecycle_spine.audit.log import ExecutionLog
from lifecycle_spine.audit.models import ExecutionLogEntry, ExecutionOutcome
from lifecycle_spine.core.errors import (
    ExecutionError,
    FailureClass,
    FatalExecutionError,
    PartialDegradation,
    TargetNotFoundError,
    TransientExecutionError,
    classify_failure,
)
from lifecycle_spine.core.logging import LogContext, get_logger
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.core.timestamps import to_iso8601, utc_now
from lifecycle_spine.execution.driver import DriverResult, StorageDriver
from lifecycle_spine.execution.gate import ScheduleGate
from lifecycle_spine.execution.retry import RetryStrategy, strategy_from_settings
from lifecycle_spine.policy.models import ActionType, Policy
from lifecycle_spine.policy.registry import PolicyRegistry
from lifecycle_spine.queue.models import QueueEntry
from lifecycle_spine.queue.store import ActionQueue
from lifecycle_spine.targets.catalog import TargetCatalog
from lifecycle_spine.targets.models import TargetObject

logger = get_logger(__name__)


@dataclass
class ExecutionReport:
    """Counters and per-entry outcomes for one execution cycle."""

    started_at: datetime
    finished_at: datetime | None = None
    dispatched: int = 0
    succeeded: int = 0
    warnings: int = 0
    retried: int = 0
    failed: int = 0
    skipped_busy: int = 0
    gate_closed: bool = False
    capacity_exhausted: bool = False
    entries: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": to_iso8601(self.started_at),
            "finished_at": to_iso8601(self.finished_at),
            "dispatched": self.dispatched,
            "succeeded": self.succeeded,
            "warnings": self.warnings,
            "retried": self.retried,
            "failed": self.failed,
            "skipped_busy": self.skipped_busy,
            "gate_closed": self.gate_closed,
            "capacity_exhausted": self.capacity_exhausted,
            "entries": list(self.entries),
        }


@dataclass
class _Dispatch:
    entry: QueueEntry
    policy: Policy
    target: TargetObject
    started_at: datetime


@dataclass
class _WorkResult:
    result: DriverResult
    degradations: list[PartialDegradation]


class ExecutionEngine:
    """Drains the action queue through a bounded worker pool."""

    def __init__(
        self,
        queue: ActionQueue,
        catalog: TargetCatalog,
        registry: PolicyRegistry,
        log: ExecutionLog,
        driver: StorageDriver,
        gate: ScheduleGate,
        settings: LifecycleSettings,
        retry: RetryStrategy | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.queue = queue
        self.catalog = catalog
        self.registry = registry
        self.log = log
        self.driver = driver
        self.gate = gate
        self.settings = settings
        self.retry = retry or strategy_from_settings(settings)
        self._clock = clock

    # -- Cycle -------------------------------------------------------------

    def run_cycle(self, max_operations: int | None = None, policy_id: int | None = None) -> ExecutionReport:
        """Dispatch up to ``max_operations`` entries and wait for them to finish.

        Args:
            max_operations: Cap on entries dispatched this cycle (None = no cap)
            policy_id: Restrict the cycle to one policy's entries
        """
        now = self._clock()
        report = ExecutionReport(started_at=now)

        if not self.gate.is_window_open(now):
            report.gate_closed = True
            report.finished_at = now
            logger.info("execution.gate_closed", at=to_iso8601(now))
            return report

        candidates = self.queue.dispatchable(now)
        if policy_id is not None:
            candidates = [c for c in candidates if c.policy_id == policy_id]
        policies = {p.policy_id: p for p in self.registry.list()}
        cap = self.settings.max_concurrent_operations

        logger.info(
            "execution.cycle_started", candidates=len(candidates), max_operations=max_operations, cap=cap
        )

        dispatched_targets: set[str] = set()
        in_flight: dict[Future[_WorkResult], _Dispatch] = {}

        with ThreadPoolExecutor(max_workers=cap, thread_name_prefix="lifecycle-exec") as pool:
            for candidate in candidates:
                if max_operations is not None and report.dispatched >= max_operations:
                    break
                if candidate.target_id in dispatched_targets:
                    report.skipped_busy += 1
                    logger.debug(
                        "execution.target_busy", entry_id=candidate.entry_id, target_id=candidate.target_id
                    )
                    continue
                if not self._wait_for_capacity(in_flight, cap, report):
                    report.capacity_exhausted = True
                    break
                if not self.gate.is_window_open(self._clock()):
                    report.gate_closed = True
                    logger.info("execution.gate_closed_mid_cycle", dispatched=report.dispatched)
                    break

                entry = self.queue.claim(candidate.entry_id, self._clock())
                if entry is None:
                    report.skipped_busy += 1
                    logger.debug(
                        "execution.claim_refused", entry_id=candidate.entry_id, target_id=candidate.target_id
                    )
                    continue

                report.dispatched += 1
                dispatched_targets.add(entry.target_id)
                policy = policies[entry.policy_id]
                target = self.catalog.get(entry.target_id)
                if target is None:
                    missing = TargetNotFoundError(f"Target not found: {entry.target_id}")
                    self._record_failure(entry, policy, None, self._clock(), missing, report)
                    continue

                dispatch = _Dispatch(entry, policy, target, self._clock())
                logger.info(
                    "execution.dispatched",
                    entry_id=entry.entry_id,
                    target_id=entry.target_id,
                    policy_id=policy.policy_id,
                    action_type=policy.action_type.value,
                    attempt=entry.attempt_count,
                )
                in_flight[pool.submit(self._work, target, policy)] = dispatch

            while in_flight:
                self._drain(in_flight, report)

        report.finished_at = self._clock()
        summary = {k: v for k, v in report.to_dict().items() if k != "entries"}
        logger.info("execution.cycle_completed", **summary)
        return report

    def _wait_for_capacity(
        self, in_flight: dict[Future[_WorkResult], _Dispatch], cap: int, report: ExecutionReport
    ) -> bool:
        """Block until fewer than ``cap`` entries are RUNNING.

        Returns False when the cap is held entirely by other executors.
        """
        while self.queue.running_count() >= cap:
            if not in_flight:
                logger.info("execution.capacity_exhausted", running=self.queue.running_count(), cap=cap)
                return False
            self._drain(in_flight, report)
        return True

    def _drain(self, in_flight: dict[Future[_WorkResult], _Dispatch], report: ExecutionReport) -> None:
        done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
        for future in done:
            dispatch = in_flight.pop(future)
            with LogContext(entry_id=dispatch.entry.entry_id, target_id=dispatch.target.target_id):
                try:
                    self._complete(dispatch, future, report)
                except Exception as e:  # noqa: BLE001
                    report.failed += 1
                    logger.error(
                        "execution.completion_failed", entry_id=dispatch.entry.entry_id, error=str(e)
                    )

    # -- Worker side -------------------------------------------------------

    def _work(self, target: TargetObject, policy: Policy) -> _WorkResult:
        """Primary action plus optional secondary steps (worker thread)."""
        params = policy.parameters
        result = self.driver.perform(target, policy.action_type, params)

        degradations: list[PartialDegradation] = []
        steps: list[tuple[str, Callable[..., None]]] = []
        if params.rebuild_secondary_structures:
            steps.append(("rebuild_secondary_structures", self.driver.rebuild_secondary_structures))
        if params.refresh_statistics:
            steps.append(("refresh_statistics", self.driver.refresh_statistics))
        for step, call in steps:
            try:
                call(target, params)
            except Exception as e:  # noqa: BLE001
                degradations.append(PartialDegradation(f"{step} failed: {e}", step=step, cause=e))
        return _WorkResult(result, degradations)

    # -- Completion (dispatch thread) ---------------------------------------

    def _complete(self, dispatch: _Dispatch, future: Future[_WorkResult], report: ExecutionReport) -> None:
        finished = self._clock()
        try:
            work = future.result()
        except Exception as e:  # noqa: BLE001
            self._record_failure(dispatch.entry, dispatch.policy, dispatch, finished, e, report)
            return

        result = work.result
        reported = result.outcome.upper()
        if reported not in ("SUCCESS", "WARNING"):
            error: ExecutionError
            if reported.startswith("TRANSIENT"):
                error = TransientExecutionError(f"driver reported outcome {result.outcome}")
            else:
                error = FatalExecutionError(f"driver reported outcome {result.outcome}")
            self._record_failure(dispatch.entry, dispatch.policy, dispatch, finished, error, report)
            return

        entry, policy, target = dispatch.entry, dispatch.policy, dispatch.target
        warnings = [*result.warnings, *(d.message for d in work.degradations)]
        outcome = ExecutionOutcome.WARNING if warnings else ExecutionOutcome.SUCCESS

        with self.queue.transaction():
            self._apply_state_change(policy, target, result)
            self.queue.complete(entry.entry_id, warning="; ".join(warnings) or None, now=finished)
            self.log.append(
                ExecutionLogEntry(
                    entry_id=entry.entry_id,
                    policy_id=policy.policy_id,
                    policy_name=policy.name,
                    target_id=target.target_id,
                    action_type=policy.action_type.value,
                    attempt=entry.attempt_count,
                    started_at=dispatch.started_at,
                    finished_at=finished,
                    duration_ms=result.duration_ms,
                    size_before_mb=result.before_size_mb,
                    size_after_mb=result.after_size_mb,
                    outcome=outcome,
                    warnings=tuple(warnings),
                )
            )

        if outcome is ExecutionOutcome.WARNING:
            report.warnings += 1
            logger.warning("execution.degraded", warnings=warnings)
        else:
            report.succeeded += 1
            logger.info(
                "execution.succeeded",
                before_mb=result.before_size_mb,
                after_mb=result.after_size_mb,
                duration_ms=result.duration_ms,
            )
        report.entries.append(
            {
                "entry_id": entry.entry_id,
                "target_id": target.target_id,
                "outcome": outcome.value,
                "status": "DONE",
            }
        )

    def _apply_state_change(self, policy: Policy, target: TargetObject, result: DriverResult) -> None:
        params = policy.parameters
        action = policy.action_type
        if action is ActionType.DROP:
            self.catalog.remove(target.target_id)
            self.queue.discard_pending_for_target(target.target_id)
        elif action is ActionType.COMPRESS:
            self.catalog.apply_transition(
                target.target_id, compression_profile=params.compression_profile, size_mb=result.after_size_mb
            )
        elif action is ActionType.MOVE:
            self.catalog.apply_transition(
                target.target_id,
                tier=params.destination_tier,
                compression_profile=params.compression_profile,
                size_mb=result.after_size_mb,
            )
        elif action is ActionType.MARK_READ_ONLY:
            self.catalog.apply_transition(target.target_id, read_only=True)

    def _record_failure(
        self,
        entry: QueueEntry,
        policy: Policy,
        dispatch: _Dispatch | None,
        finished: datetime,
        error: BaseException,
        report: ExecutionReport,
    ) -> None:
        failure = classify_failure(error)
        detail = f"{type(error).__name__}: {error}"
        started = dispatch.started_at if dispatch else finished
        retry = failure is FailureClass.TRANSIENT and self.retry.should_retry(entry.attempt_count)
        if failure is FailureClass.TRANSIENT:
            outcome = ExecutionOutcome.TRANSIENT_FAILURE
        else:
            outcome = ExecutionOutcome.FATAL_FAILURE

        with self.queue.transaction():
            if retry:
                delay = self.retry.next_delay(entry.attempt_count - 1)
                self.queue.release_for_retry(entry.entry_id, finished + timedelta(seconds=delay), detail)
            else:
                self.queue.fail(entry.entry_id, detail, now=finished)
            self.log.append(
                ExecutionLogEntry(
                    entry_id=entry.entry_id,
                    policy_id=policy.policy_id,
                    policy_name=policy.name,
                    target_id=entry.target_id,
                    action_type=policy.action_type.value,
                    attempt=entry.attempt_count,
                    started_at=started,
                    finished_at=finished,
                    duration_ms=int((finished - started).total_seconds() * 1000),
                    size_before_mb=dispatch.target.size_mb if dispatch else None,
                    outcome=outcome,
                    error_class=type(error).__name__,
                    error_detail=str(error),
                )
            )

        if retry:
            report.retried += 1
            logger.warning(
                "execution.retry_scheduled",
                entry_id=entry.entry_id,
                attempt=entry.attempt_count,
                max_attempts=self.retry.max_attempts,
                error=detail,
            )
            status = "PENDING"
        else:
            report.failed += 1
            logger.error(
                "execution.failed",
                entry_id=entry.entry_id,
                failure=failure.value,
                attempt=entry.attempt_count,
                error=detail,
            )
            status = "FAILED"
        report.entries.append(
            {
                "entry_id": entry.entry_id,
                "target_id": entry.target_id,
                "outcome": outcome.value,
                "status": status,
            }
        )


__all__ = ["ExecutionEngine", "ExecutionReport"]
