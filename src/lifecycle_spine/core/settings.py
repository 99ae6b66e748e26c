"""Runtime configuration for lifecycle-spine.

All knobs the engines consult live on :class:`LifecycleSettings`. Values come
from keyword arguments, then ``LIFECYCLE_*`` environment variables, then a
``.env`` file, then the defaults below (which match the defaults the system
has always shipped with: a 22:00–06:00 automation window, four concurrent
operations, three attempts, HOT < 90 days and WARM < 365 days).

Examples:
    >>> from lifecycle_spine.core.settings import LifecycleSettings
    >>> settings = LifecycleSettings(max_concurrent_operations=2)
    >>> settings.max_attempts
    3

    Environment-driven::

        LIFECYCLE_MAX_ATTEMPTS=5 LIFECYCLE_EXECUTION_WINDOW_START=20:00 lifecycle-spine execute

Tags:
    settings, configuration, pydantic, environment, lifecycle-spine
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class LifecycleSettings(BaseSettings):
    """Settings shared by the registry, tracker and both engines.

    Fields
    ──────
    database_path              : SQLite file backing registry, queue and logs
    max_concurrent_operations  : Global cap on RUNNING queue entries
    max_attempts               : Attempts before a transient failure becomes FAILED
    hot/warm/cold_threshold_days : Global temperature thresholds
    priority_min/priority_max  : Valid policy priority range
    execution_window_start/end : Automation window (HH:MM, may wrap midnight)
    retry_backoff              : exponential | fixed | none
    storage_driver             : module:qualname of the storage driver
    stale_pending_days         : PENDING entries not re-evaluated for this long are purged
    log_retention_days         : Execution log retention
    failure_window_hours       : Window for the recent-failure alerting query
    """

    model_config = SettingsConfigDict(
        env_prefix="LIFECYCLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".spine" / "lifecycle.db",
        description="SQLite database holding policies, queue, access records and logs",
    )

    # ── Execution ────────────────────────────────────────────────
    max_concurrent_operations: int = Field(default=4, ge=1)
    max_attempts: int = Field(default=3, ge=1)
    execution_window_start: str = "22:00"
    execution_window_end: str = "06:00"
    retry_backoff: Literal["exponential", "fixed", "none"] = "exponential"
    retry_base_delay_seconds: float = Field(default=300.0, ge=0)
    retry_max_delay_seconds: float = Field(default=3600.0, ge=0)
    storage_driver: str = Field(
        default="lifecycle_spine.execution.driver:SimulatedStorageDriver",
        description="module:qualname of the StorageDriver implementation",
    )
    access_signal_source: str | None = Field(
        default=None, description="module:qualname of an AccessSignalSource (optional)"
    )

    # ── Policies ─────────────────────────────────────────────────
    priority_min: int = 1
    priority_max: int = 999
    default_priority: int = 100

    # ── Temperature ──────────────────────────────────────────────
    hot_threshold_days: int = Field(default=90, ge=0)
    warm_threshold_days: int = Field(default=365, ge=0)
    cold_threshold_days: int = Field(default=1095, ge=0)

    # ── Housekeeping ─────────────────────────────────────────────
    stale_pending_days: int = Field(default=7, ge=1)
    log_retention_days: int = Field(default=365, ge=1)
    failure_window_hours: int = Field(default=24, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    @field_validator("execution_window_start", "execution_window_end")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError(f"expected HH:MM, got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_ranges(self) -> LifecycleSettings:
        if not self.hot_threshold_days < self.warm_threshold_days < self.cold_threshold_days:
            raise ValueError("temperature thresholds must satisfy hot < warm < cold")
        if self.priority_min > self.priority_max:
            raise ValueError("priority_min must not exceed priority_max")
        if not self.priority_min <= self.default_priority <= self.priority_max:
            raise ValueError("default_priority must lie within [priority_min, priority_max]")
        return self


_settings: LifecycleSettings | None = None


def get_settings() -> LifecycleSettings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = LifecycleSettings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (tests, CLI option overrides)."""
    global _settings
    _settings = None


__all__ = ["LifecycleSettings", "get_settings", "reset_settings"]
