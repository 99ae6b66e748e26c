"""Core infrastructure: errors, logging, settings, schema and persistence helpers."""

from lifecycle_spine.core.errors import (
    ErrorCategory,
    ErrorContext,
    FailureClass,
    FatalExecutionError,
    InvalidTransitionError,
    LifecycleError,
    PartialDegradation,
    PolicyNotFoundError,
    TargetNotFoundError,
    TransientExecutionError,
    ValidationError,
    ValidationErrorKind,
    classify_failure,
)
from lifecycle_spine.core.settings import LifecycleSettings, get_settings

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FailureClass",
    "FatalExecutionError",
    "InvalidTransitionError",
    "LifecycleError",
    "LifecycleSettings",
    "PartialDegradation",
    "PolicyNotFoundError",
    "TargetNotFoundError",
    "TransientExecutionError",
    "ValidationError",
    "ValidationErrorKind",
    "classify_failure",
    "get_settings",
]
