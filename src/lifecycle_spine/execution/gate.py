"""Schedule gates.

The execution engine asks a gate whether the automation window is open
before a batch and before every dispatch. Work already in flight always
completes; a closing gate only stops new dispatches.
"""

from __future__ import annotations

from datetime import UTC, datetime, time, tzinfo
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo

from lifecycle_spine.core.settings import LifecycleSettings


@runtime_checkable
class ScheduleGate(Protocol):
    def is_window_open(self, now: datetime) -> bool: ...


class AlwaysOpenGate:
    """Gate for manual runs and tests."""

    def is_window_open(self, now: datetime) -> bool:
        return True


def _parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


class TimeWindowGate:
    """Daily window ``[start, end)`` in local wall-clock time.

    A window whose end is not after its start wraps midnight, so the default
    22:00–06:00 is open from 22:00 until 06:00 the next morning. Equal start
    and end mean always open.

    Args:
        start: ``HH:MM`` or :class:`datetime.time`
        end: ``HH:MM`` or :class:`datetime.time`
        tz: IANA zone name the window is expressed in (default UTC)
    """

    def __init__(self, start: str | time, end: str | time, tz: str = "UTC") -> None:
        self.start = _parse_hhmm(start) if isinstance(start, str) else start
        self.end = _parse_hhmm(end) if isinstance(end, str) else end
        self.tz: tzinfo = UTC if tz == "UTC" else ZoneInfo(tz)

    @classmethod
    def from_settings(cls, settings: LifecycleSettings) -> TimeWindowGate:
        return cls(settings.execution_window_start, settings.execution_window_end)

    def is_window_open(self, now: datetime) -> bool:
        local = now.astimezone(self.tz).time() if now.tzinfo else now.time()
        if self.start == self.end:
            return True
        if self.start < self.end:
            return self.start <= local < self.end
        return local >= self.start or local < self.end

    def __repr__(self) -> str:
        return f"TimeWindowGate({self.start:%H:%M}-{self.end:%H:%M}, tz={self.tz})"


__all__ = ["AlwaysOpenGate", "ScheduleGate", "TimeWindowGate"]
