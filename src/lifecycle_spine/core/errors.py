"""
Structured error types for lifecycle-spine.

Every failure the engine can observe is expressed as a typed error carrying a
category, retry semantics and structured context. The hierarchy mirrors the
decisions the engines have to make:

- **Registration time:** ``ValidationError`` is raised synchronously by the
  policy registry and never reaches the queue.
- **Execution time:** ``TransientExecutionError`` is retried up to the
  configured attempt budget, ``FatalExecutionError`` fails the queue entry
  immediately, and ``PartialDegradation`` downgrades a successful action to a
  WARNING outcome.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       LifecycleError                             │
        │  (category, retryable, retry_after, context, cause)             │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError         ExecutionError        NotFoundError     │
        │  (VALIDATION, kind)      (EXECUTION)           (NOT_FOUND)       │
        │                               │                     │            │
        │                   TransientExecutionError   PolicyNotFoundError  │
        │                   FatalExecutionError       TargetNotFoundError  │
        │                   PartialDegradation                             │
        │                                                                  │
        │  InvalidTransitionError (STATE)                                  │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> err = TransientExecutionError("target busy", retry_after=60)
    >>> err.retryable
    True
    >>> ValidationError("no condition", kind=ValidationErrorKind.NO_CONDITION).exit_code
    14

    Classifying an arbitrary driver exception:

    >>> classify_failure(PermissionError("denied"))
    <FailureClass.FATAL: 'FATAL'>

Guardrails:
    ❌ DON'T: Raise bare Exception from a storage driver
    ✅ DO: Raise TransientExecutionError or FatalExecutionError so the
       executor can decide between retry and operator intervention

Tags:
    error-handling, exception-hierarchy, retry-logic, lifecycle-spine
"""

from __future__ import annotations

import errno
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"      # Policy definition problems
    EXECUTION = "EXECUTION"        # Storage driver failures
    NOT_FOUND = "NOT_FOUND"        # Unknown policy / target
    STATE = "STATE"                # Illegal queue transitions
    CONFIG = "CONFIG"              # Settings problems
    INTERNAL = "INTERNAL"          # Bugs, unexpected state


class ValidationErrorKind(str, Enum):
    """Sub-kind of a policy validation failure.

    Each kind maps to a distinct process exit code so automation can branch on
    the failure without parsing messages.
    """

    UNKNOWN_TARGET = "UNKNOWN_TARGET"
    MISSING_PARAMETER = "MISSING_PARAMETER"
    CATEGORY_ACTION_MISMATCH = "CATEGORY_ACTION_MISMATCH"
    NO_CONDITION = "NO_CONDITION"
    PRIORITY_OUT_OF_RANGE = "PRIORITY_OUT_OF_RANGE"
    INVALID_CONDITION = "INVALID_CONDITION"
    DUPLICATE_POLICY = "DUPLICATE_POLICY"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    ValidationErrorKind.UNKNOWN_TARGET: 10,
    ValidationErrorKind.MISSING_PARAMETER: 11,
    ValidationErrorKind.CATEGORY_ACTION_MISMATCH: 12,
    ValidationErrorKind.PRIORITY_OUT_OF_RANGE: 13,
    ValidationErrorKind.NO_CONDITION: 14,
    ValidationErrorKind.INVALID_CONDITION: 15,
    ValidationErrorKind.DUPLICATE_POLICY: 16,
}


class FailureClass(str, Enum):
    """How the execution engine treats a failed attempt."""

    TRANSIENT = "TRANSIENT"
    FATAL = "FATAL"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        policy_id: Policy being registered, evaluated or executed
        policy_name: Human-readable policy name
        target_id: Target object identifier (``owner.name:subobject``)
        entry_id: Queue entry identifier
        action_type: Action being performed
        metadata: Additional key-value pairs
    """

    policy_id: int | None = None
    policy_name: str | None = None
    target_id: str | None = None
    entry_id: int | None = None
    action_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["policy_id", "policy_name", "target_id", "entry_id", "action_type"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class LifecycleError(Exception):
    """Base exception for all lifecycle-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that the
    common case needs no keyword arguments.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> LifecycleError:
        """Add context to this error (fluent API).

        Usage:
            raise FatalExecutionError("gone").with_context(target_id="dw.sales:P1")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging and API responses."""
        result: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context = self.context.to_dict()
        if context:
            result["context"] = context
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


# =============================================================================
# REGISTRATION ERRORS
# =============================================================================


class ValidationError(LifecycleError):
    """A policy definition is structurally invalid.

    Raised synchronously by the registry; the caller is never left with a
    half-registered policy.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, kind: ValidationErrorKind, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.field = field

    @property
    def exit_code(self) -> int:
        return self.kind.exit_code

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["kind"] = self.kind.value
        if self.field:
            result["field"] = self.field
        return result


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class ExecutionError(LifecycleError):
    """Base for failures raised while performing a lifecycle action."""

    default_category = ErrorCategory.EXECUTION


class TransientExecutionError(ExecutionError):
    """Resource contention, insufficient space, target temporarily busy."""

    default_retryable = True


class FatalExecutionError(ExecutionError):
    """Missing target, insufficient permission, invalid configuration.

    No retry; requires operator intervention.
    """

    default_retryable = False


class PartialDegradation(ExecutionError):
    """A secondary step failed after the primary action succeeded."""

    default_retryable = False

    def __init__(self, message: str, *, step: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.step = step


class PolicyFileError(LifecycleError):
    """A policy document could not be parsed or does not match the schema."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# LOOKUP / STATE ERRORS
# =============================================================================


class NotFoundError(LifecycleError):
    default_category = ErrorCategory.NOT_FOUND


class PolicyNotFoundError(NotFoundError):
    """No policy with the given id or name."""


class TargetNotFoundError(NotFoundError):
    """No target object with the given id."""


class InvalidTransitionError(LifecycleError):
    """Raised when an illegal queue status transition is attempted."""

    default_category = ErrorCategory.STATE

    def __init__(self, current: str, target: str, enum_name: str = "QueueStatus") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current} → {target}")


# =============================================================================
# CLASSIFICATION
# =============================================================================


def classify_failure(error: BaseException) -> FailureClass:
    """Decide whether a failed attempt may be retried.

    Typed lifecycle errors decide for themselves through ``retryable``. Plain
    exceptions coming out of a storage driver are mapped conservatively:
    anything not recognisably transient is fatal.
    """
    if isinstance(error, LifecycleError):
        return FailureClass.TRANSIENT if error.retryable else FailureClass.FATAL

    # PermissionError / FileNotFoundError subclass OSError; check them first.
    if isinstance(error, (PermissionError, FileNotFoundError, LookupError)):
        return FailureClass.FATAL
    if isinstance(error, (TimeoutError, ConnectionError, BlockingIOError, InterruptedError)):
        return FailureClass.TRANSIENT
    if isinstance(error, OSError) and error.errno in (errno.ENOSPC, errno.EBUSY, errno.EAGAIN):
        return FailureClass.TRANSIENT
    return FailureClass.FATAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ExecutionError",
    "FailureClass",
    "FatalExecutionError",
    "InvalidTransitionError",
    "LifecycleError",
    "NotFoundError",
    "PartialDegradation",
    "PolicyFileError",
    "PolicyNotFoundError",
    "TargetNotFoundError",
    "TransientExecutionError",
    "ValidationError",
    "ValidationErrorKind",
    "classify_failure",
]
