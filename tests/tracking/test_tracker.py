"""Tests for the access/temperature tracker."""

from __future__ import annotations

from datetime import timedelta

import pytest

from lifecycle_spine.tracking.models import (
    BUILTIN_PROFILES,
    AccessRecord,
    AccessSignal,
    Temperature,
    ThresholdProfile,
)

PID = "dw.sales:P2024_01"


@pytest.fixture
def tracker(service, make_target):
    service.register_target(make_target(age_days=120))
    return service.tracker


def _days_ago(clock, days):
    return clock() - timedelta(days=days)


class TestThresholdProfile:
    def test_bands(self):
        profile = ThresholdProfile("T", 30, 90, 180)
        assert profile.band(0) is Temperature.HOT
        assert profile.band(29) is Temperature.HOT
        assert profile.band(30) is Temperature.WARM
        assert profile.band(89) is Temperature.WARM
        assert profile.band(90) is Temperature.COLD

    def test_must_be_increasing(self):
        with pytest.raises(ValueError, match="hot < warm < cold"):
            ThresholdProfile("BAD", 90, 30, 180)

    def test_builtin_profiles(self):
        assert set(BUILTIN_PROFILES) == {"DEFAULT", "FAST_AGING", "SLOW_AGING", "AGGRESSIVE_ARCHIVE"}
        assert BUILTIN_PROFILES["FAST_AGING"].hot_days == 30

    def test_temperature_ordering(self):
        assert Temperature.HOT.is_hotter_than(Temperature.WARM)
        assert Temperature.COLD.warmer() is Temperature.WARM
        assert Temperature.HOT.warmer() is Temperature.HOT


class TestClassify:
    """Default profile: HOT < 90 days, WARM < 365 days, COLD beyond."""

    def _classify(self, tracker, clock, target, **record):
        return tracker.classify(target, record=AccessRecord(PID, **record), now=clock())

    def test_write_recency_decides(self, tracker, clock, make_target):
        target = make_target()
        assert self._classify(tracker, clock, target, last_write_at=_days_ago(clock, 10)) is Temperature.HOT
        assert self._classify(tracker, clock, target, last_write_at=_days_ago(clock, 200)) is Temperature.WARM
        assert self._classify(tracker, clock, target, last_write_at=_days_ago(clock, 400)) is Temperature.COLD

    def test_hotter_reads_raise_one_band(self, tracker, clock, make_target):
        result = self._classify(
            tracker,
            clock,
            make_target(),
            last_write_at=_days_ago(clock, 400),
            last_read_at=_days_ago(clock, 5),
        )
        assert result is Temperature.WARM

    def test_colder_reads_do_not_lower(self, tracker, clock, make_target):
        result = self._classify(
            tracker,
            clock,
            make_target(),
            last_write_at=_days_ago(clock, 10),
            last_read_at=_days_ago(clock, 400),
        )
        assert result is Temperature.HOT

    def test_read_only_signal(self, tracker, clock, make_target):
        result = self._classify(tracker, clock, make_target(), last_read_at=_days_ago(clock, 100))
        assert result is Temperature.WARM

    def test_falls_back_to_age(self, tracker, clock, make_target):
        assert tracker.classify(make_target(age_days=30), now=clock()) is Temperature.HOT
        assert tracker.classify(make_target(age_days=120), now=clock()) is Temperature.WARM

    def test_nothing_known_is_cold(self, tracker, clock, make_target):
        assert tracker.classify(make_target("P_NEW", age_days=None), now=clock()) is Temperature.COLD

    def test_named_profile(self, tracker, clock, make_target):
        target = make_target(age_days=120)
        assert tracker.classify(target, tracker.resolve_profile("FAST_AGING"), now=clock()) is Temperature.COLD
        assert tracker.resolve_profile(None) is tracker.default_profile


class TestRefresh:
    def test_creates_record_for_every_target_in_scope(self, service, tracker, make_target):
        service.register_target(make_target("P2024_02"))
        service.register_target(make_target(name="orders"))

        assert tracker.refresh(scope="dw.sales") == 2
        assert [r.target_id for r in tracker.records()] == ["dw.sales:P2024_01", "dw.sales:P2024_02"]

    def test_merge_keeps_maximum(self, tracker, clock):
        recent = _days_ago(clock, 1)
        older = _days_ago(clock, 50)
        tracker.refresh(signals=[AccessSignal(PID, last_read_at=recent, read_count=10)])
        tracker.refresh(signals=[AccessSignal(PID, last_read_at=older, last_write_at=older, read_count=4)])

        record = tracker.get(PID)
        assert record.last_read_at == recent
        assert record.last_write_at == older
        assert record.read_count == 10
        assert record.temperature is Temperature.HOT

    def test_replay_is_idempotent(self, tracker, clock):
        signal = AccessSignal(PID, last_write_at=_days_ago(clock, 3), write_count=7)
        tracker.refresh(signals=[signal])
        first = tracker.get(PID)
        tracker.refresh(signals=[signal])
        assert tracker.get(PID) == first

    def test_signals_for_unknown_targets_ignored(self, tracker, clock):
        tracker.refresh(signals=[AccessSignal("dw.ghost:P1", last_read_at=clock())])
        assert tracker.get("dw.ghost:P1") is None

    def test_polls_source(self, tracker, clock):
        class StaticSource:
            def __init__(self):
                self.seen = []

            def collect(self, targets):
                self.seen.extend(t.target_id for t in targets)
                return [AccessSignal(t.target_id, last_write_at=clock()) for t in targets]

        source = StaticSource()
        tracker.refresh(source=source)
        assert source.seen == [PID]
        assert tracker.get(PID).temperature is Temperature.HOT

    def test_temperature_cools_as_time_passes(self, tracker, clock):
        tracker.refresh(signals=[AccessSignal(PID, last_write_at=clock())])
        clock.advance(days=400)
        tracker.refresh()
        assert tracker.get(PID).temperature is Temperature.COLD

    def test_records_scope(self, service, tracker, make_target):
        service.register_target(make_target(name="orders"))
        tracker.refresh()
        assert [r.target_id for r in tracker.records("dw.orders")] == ["dw.orders:P2024_01"]
