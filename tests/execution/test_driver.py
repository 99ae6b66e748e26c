"""Tests for the simulated storage driver."""

import pytest

from lifecycle_spine.core.errors import TransientExecutionError
from lifecycle_spine.execution.driver import SimulatedStorageDriver, StorageDriver
from lifecycle_spine.policy.models import ActionParameters, ActionType


def test_satisfies_protocol(driver):
    assert isinstance(driver, StorageDriver)


class TestSizes:
    def test_compress_none_to_high(self, driver, make_target):
        params = ActionParameters(compression_profile="HIGH")
        result = driver.perform(make_target(size_mb=500), ActionType.COMPRESS, params)
        assert result.before_size_mb == 500
        assert result.after_size_mb == 80.0

    def test_recompress_relative_to_current_profile(self, driver, make_target):
        target = make_target(size_mb=250, compression_profile="LOW")
        result = driver.perform(target, ActionType.COMPRESS, ActionParameters(compression_profile="ARCHIVE"))
        assert result.after_size_mb == 50.0

    def test_drop_releases_everything(self, driver, make_target):
        assert driver.perform(make_target(), ActionType.DROP, ActionParameters()).after_size_mb == 0.0

    def test_read_only_keeps_size(self, driver, make_target):
        result = driver.perform(make_target(size_mb=42), ActionType.MARK_READ_ONLY, ActionParameters())
        assert result.after_size_mb == 42

    def test_custom_ratios(self, make_target):
        driver = SimulatedStorageDriver(compression_ratios={"NONE": 1.0, "ZSTD": 5.0})
        params = ActionParameters(compression_profile="zstd")
        result = driver.perform(make_target(size_mb=100), ActionType.COMPRESS, params)
        assert result.after_size_mb == 20.0


class TestScriptedFailures:
    def test_fail_next_times(self, driver, make_target):
        target = make_target()
        driver.fail_next(target.target_id, TransientExecutionError("busy"), times=2)
        params = ActionParameters(compression_profile="HIGH")

        for _ in range(2):
            with pytest.raises(TransientExecutionError):
                driver.perform(target, ActionType.COMPRESS, params)
        driver.perform(target, ActionType.COMPRESS, params)
        assert len(driver.calls) == 3

    def test_fail_step(self, driver, make_target):
        target = make_target()
        driver.fail_step(target.target_id, "refresh_statistics", RuntimeError("stats lock"))
        driver.rebuild_secondary_structures(target, ActionParameters())
        with pytest.raises(RuntimeError, match="stats lock"):
            driver.refresh_statistics(target, ActionParameters())

    def test_tracks_in_flight(self, driver, make_target):
        driver.perform(make_target(), ActionType.MARK_READ_ONLY, ActionParameters())
        assert driver.max_in_flight == 1
        assert driver.max_in_flight_per_target == 1
