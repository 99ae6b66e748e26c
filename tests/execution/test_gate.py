"""Tests for schedule gates."""

from datetime import UTC, datetime, time

import pytest

from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.execution.gate import AlwaysOpenGate, ScheduleGate, TimeWindowGate


def _at(hour, minute=0):
    return datetime(2025, 6, 1, hour, minute, tzinfo=UTC)


class TestTimeWindowGate:
    @pytest.mark.parametrize(
        ("hour", "minute", "expected"),
        [(21, 59, False), (22, 0, True), (23, 30, True), (3, 0, True), (5, 59, True), (6, 0, False), (12, 0, False)],
    )
    def test_overnight_window(self, hour, minute, expected):
        gate = TimeWindowGate("22:00", "06:00")
        assert gate.is_window_open(_at(hour, minute)) is expected

    def test_daytime_window(self):
        gate = TimeWindowGate(time(9, 0), time(17, 0))
        assert gate.is_window_open(_at(9))
        assert not gate.is_window_open(_at(17))

    def test_equal_bounds_always_open(self):
        gate = TimeWindowGate("00:00", "00:00")
        assert all(gate.is_window_open(_at(h)) for h in range(24))

    def test_time_zone(self):
        gate = TimeWindowGate("22:00", "06:00", tz="Europe/Berlin")
        # 21:30 UTC is 23:30 in Berlin during summer time
        assert gate.is_window_open(_at(21, 30))
        assert not gate.is_window_open(_at(5, 0))

    def test_from_settings(self):
        gate = TimeWindowGate.from_settings(
            LifecycleSettings(_env_file=None, execution_window_start="01:00", execution_window_end="02:00")
        )
        assert gate.is_window_open(_at(1, 30))
        assert not gate.is_window_open(_at(2, 30))


def test_always_open():
    gate = AlwaysOpenGate()
    assert isinstance(gate, ScheduleGate)
    assert gate.is_window_open(_at(12))
