"""Tests for retry strategies."""

import pytest

from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.execution.retry import ConstantBackoff, ExponentialBackoff, strategy_from_settings


class TestExponentialBackoff:
    def test_delays_double(self):
        strategy = ExponentialBackoff(max_attempts=3, base_delay=300.0, max_delay=3600.0)
        assert [strategy.next_delay(n) for n in range(3)] == [300.0, 600.0, 1200.0]

    def test_capped(self):
        strategy = ExponentialBackoff(base_delay=300.0, max_delay=1000.0)
        assert strategy.next_delay(5) == 1000.0

    def test_jitter_stays_in_range(self):
        strategy = ExponentialBackoff(base_delay=100.0, jitter=True, jitter_range=0.25)
        for _ in range(50):
            assert 75.0 <= strategy.next_delay(0) <= 125.0

    @pytest.mark.parametrize(("attempts", "expected"), [(1, True), (2, True), (3, False), (4, False)])
    def test_should_retry(self, attempts, expected):
        assert ExponentialBackoff(max_attempts=3).should_retry(attempts) is expected


class TestConstantBackoff:
    def test_constant(self):
        strategy = ConstantBackoff(max_attempts=5, delay=60.0)
        assert {strategy.next_delay(n) for n in range(4)} == {60.0}
        assert strategy.should_retry(4)
        assert not strategy.should_retry(5)


class TestFromSettings:
    def test_exponential_default(self):
        strategy = strategy_from_settings(LifecycleSettings(_env_file=None))
        assert isinstance(strategy, ExponentialBackoff)
        assert strategy.max_attempts == 3
        assert strategy.next_delay(0) == 300.0

    def test_fixed(self):
        settings = LifecycleSettings(_env_file=None, retry_backoff="fixed", retry_base_delay_seconds=30)
        strategy = strategy_from_settings(settings)
        assert isinstance(strategy, ConstantBackoff)
        assert strategy.next_delay(2) == 30.0

    def test_none_retries_next_cycle(self):
        strategy = strategy_from_settings(LifecycleSettings(_env_file=None, retry_backoff="none", max_attempts=2))
        assert strategy.next_delay(0) == 0.0
        assert strategy.max_attempts == 2
