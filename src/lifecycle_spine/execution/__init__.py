"""Execution: schedule gate, retry strategies, storage drivers and the dispatch engine."""

from lifecycle_spine.execution.driver import DriverResult, SimulatedStorageDriver, StorageDriver
from lifecycle_spine.execution.engine import ExecutionEngine, ExecutionReport
from lifecycle_spine.execution.gate import AlwaysOpenGate, ScheduleGate, TimeWindowGate
from lifecycle_spine.execution.retry import ConstantBackoff, ExponentialBackoff, RetryStrategy

__all__ = [
    "AlwaysOpenGate",
    "ConstantBackoff",
    "DriverResult",
    "ExecutionEngine",
    "ExecutionReport",
    "ExponentialBackoff",
    "RetryStrategy",
    "ScheduleGate",
    "SimulatedStorageDriver",
    "StorageDriver",
    "TimeWindowGate",
]
