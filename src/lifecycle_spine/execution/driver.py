"""Storage driver contract and a simulated implementation.

The storage driver performs the physical work of a transition (rewriting a
segment with a compression profile, relocating it, flipping it read-only,
dropping it). The execution engine calls it from worker threads and never
touches storage itself.

Drivers report failure by raising. ``TransientExecutionError`` (or a
recognisably transient OS error) is retried; anything else fails the entry.
"""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from lifecycle_spine.core.logging import get_logger
from lifecycle_spine.policy.models import ActionParameters, ActionType
from lifecycle_spine.targets.models import TargetObject

logger = get_logger(__name__)


@dataclass(frozen=True)
class DriverResult:
    """What the driver observed while performing an action.

    ``outcome`` other than SUCCESS or WARNING is recorded as a failed attempt;
    a ``TRANSIENT`` prefix makes it retryable.
    """

    before_size_mb: float
    after_size_mb: float
    duration_ms: int
    outcome: str = "SUCCESS"
    warnings: tuple[str, ...] = field(default_factory=tuple)


@runtime_checkable
class StorageDriver(Protocol):
    def perform(
        self, target: TargetObject, action_type: ActionType, parameters: ActionParameters
    ) -> DriverResult:
        """Carry out the primary action."""
        ...

    def rebuild_secondary_structures(self, target: TargetObject, parameters: ActionParameters) -> None:
        """Rebuild indexes or other structures invalidated by the action."""
        ...

    def refresh_statistics(self, target: TargetObject, parameters: ActionParameters) -> None:
        """Refresh optimizer statistics after the action."""
        ...


DEFAULT_COMPRESSION_RATIOS: dict[str, float] = {
    "NONE": 1.0,
    "LOW": 2.0,
    "MEDIUM": 4.0,
    "HIGH": 6.25,
    "ARCHIVE": 10.0,
}


class SimulatedStorageDriver:
    """In-process driver for tests and local dry runs.

    Sizes follow ``compression_ratios``; failures are scripted per target.
    The driver also records how many operations ran concurrently, overall
    and per target.

    Example:
        >>> driver = SimulatedStorageDriver()
        >>> driver.fail_next("dw.sales:P1", TransientExecutionError("busy"), times=2)
        >>> driver.fail_step("dw.sales:P2", "refresh_statistics", RuntimeError("stats lock"))
    """

    def __init__(
        self,
        compression_ratios: dict[str, float] | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.compression_ratios = dict(compression_ratios or DEFAULT_COMPRESSION_RATIOS)
        self.delay_seconds = delay_seconds
        self.calls: list[tuple[str, ActionType]] = []
        self.max_in_flight = 0
        self.max_in_flight_per_target = 0
        self._failures: dict[str, deque[BaseException]] = defaultdict(deque)
        self._step_failures: dict[tuple[str, str], BaseException] = {}
        self._in_flight: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    # -- Scripting ---------------------------------------------------------

    def fail_next(self, target_id: str, error: BaseException, times: int = 1) -> None:
        """Raise ``error`` on the next ``times`` primary actions for a target."""
        self._failures[target_id].extend([error] * times)

    def fail_step(self, target_id: str, step: str, error: BaseException) -> None:
        """Raise ``error`` from a secondary step for a target."""
        self._step_failures[(target_id, step)] = error

    # -- StorageDriver -----------------------------------------------------

    def perform(
        self, target: TargetObject, action_type: ActionType, parameters: ActionParameters
    ) -> DriverResult:
        started = time.monotonic()
        with self._lock:
            self.calls.append((target.target_id, action_type))
            self._in_flight[target.target_id] += 1
            self.max_in_flight = max(self.max_in_flight, sum(self._in_flight.values()))
            per_target = self._in_flight[target.target_id]
            self.max_in_flight_per_target = max(self.max_in_flight_per_target, per_target)
            pending = self._failures.get(target.target_id)
            error = pending.popleft() if pending else None
        try:
            if self.delay_seconds:
                time.sleep(self.delay_seconds)
            if error is not None:
                raise error
            after = self._size_after(target, action_type, parameters)
        finally:
            with self._lock:
                self._in_flight[target.target_id] -= 1

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            "driver.performed",
            target_id=target.target_id,
            action_type=action_type.value,
            before_mb=target.size_mb,
            after_mb=after,
        )
        return DriverResult(before_size_mb=target.size_mb, after_size_mb=after, duration_ms=duration_ms)

    def rebuild_secondary_structures(self, target: TargetObject, parameters: ActionParameters) -> None:
        self._run_step(target, "rebuild_secondary_structures")

    def refresh_statistics(self, target: TargetObject, parameters: ActionParameters) -> None:
        self._run_step(target, "refresh_statistics")

    # -- Helpers -----------------------------------------------------------

    def _run_step(self, target: TargetObject, step: str) -> None:
        error = self._step_failures.get((target.target_id, step))
        if error is not None:
            raise error

    def _ratio(self, profile: str) -> float:
        return self.compression_ratios.get(profile.upper(), 3.0)

    def _size_after(
        self, target: TargetObject, action_type: ActionType, parameters: ActionParameters
    ) -> float:
        if action_type is ActionType.DROP:
            return 0.0
        profile = parameters.compression_profile
        if action_type in (ActionType.COMPRESS, ActionType.MOVE) and profile:
            # Sizes scale relative to the current profile
            raw = target.size_mb * self._ratio(target.compression_profile)
            return round(raw / self._ratio(profile), 6)
        return target.size_mb


__all__ = ["DEFAULT_COMPRESSION_RATIOS", "DriverResult", "SimulatedStorageDriver", "StorageDriver"]
