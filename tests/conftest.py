"""
Shared pytest fixtures for lifecycle-spine tests.

This module provides:
- A controllable clock so ages, backoffs and retention cut-offs are deterministic
- In-memory SQLite connections with the lifecycle schema applied
- A fully wired LifecycleService over a simulated storage driver
- Target and policy factories

Usage:
    def test_something(service, make_target, make_policy):
        service.register_target(make_target("P2024_01", age_days=120))
        service.register_policy(make_policy())
"""

import sys
from collections.abc import Callable, Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

# Ensure lifecycle_spine is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lifecycle_spine.core.connection import create_connection
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.execution.driver import SimulatedStorageDriver
from lifecycle_spine.execution.gate import AlwaysOpenGate
from lifecycle_spine.execution.retry import ConstantBackoff
from lifecycle_spine.policy.models import ActionParameters, ActionType, ConditionSet, Policy, PolicyCategory
from lifecycle_spine.policy.predicates import clear_registry
from lifecycle_spine.service import LifecycleService
from lifecycle_spine.targets.models import TargetObject

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if "scenarios" in item.nodeid:
            item.add_marker(pytest.mark.integration)
        elif not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Clock
# =============================================================================


class MutableClock:
    """Callable clock that only moves when a test says so."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


# =============================================================================
# Infrastructure
# =============================================================================


@pytest.fixture(autouse=True)
def clean_predicate_registry() -> Generator[None, None, None]:
    """Drop predicates registered by a test."""
    yield
    clear_registry()


@pytest.fixture
def settings() -> LifecycleSettings:
    return LifecycleSettings(_env_file=None, database_path=":memory:")


@pytest.fixture
def conn():
    connection = create_connection(":memory:")
    yield connection
    connection.close()


@pytest.fixture
def driver() -> SimulatedStorageDriver:
    return SimulatedStorageDriver()


@pytest.fixture
def service(conn, settings, driver, clock) -> LifecycleService:
    """Service with an open gate and immediate retries."""
    return LifecycleService(
        conn,
        settings,
        driver=driver,
        gate=AlwaysOpenGate(),
        retry=ConstantBackoff(max_attempts=settings.max_attempts, delay=0),
        clock=clock,
    )


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_target(clock) -> Callable[..., TargetObject]:
    def factory(
        subobject: str = "P2024_01",
        *,
        age_days: int | None = 120,
        owner: str = "dw",
        name: str = "sales",
        tier: str = "standard",
        size_mb: float = 500.0,
        **kwargs: Any,
    ) -> TargetObject:
        boundary = clock() - timedelta(days=age_days) if age_days is not None else None
        return TargetObject(
            owner=owner,
            name=name,
            subobject=subobject,
            tier=tier,
            size_mb=size_mb,
            boundary=boundary,
            **kwargs,
        )

    return factory


@pytest.fixture
def make_policy() -> Callable[..., Policy]:
    def factory(
        name: str = "compress-90d",
        *,
        selector: str = "dw.sales",
        category: PolicyCategory = PolicyCategory.COMPRESSION,
        action_type: ActionType = ActionType.COMPRESS,
        conditions: ConditionSet | None = None,
        parameters: ActionParameters | None = None,
        **kwargs: Any,
    ) -> Policy:
        return Policy(
            name=name,
            selector=selector,
            category=category,
            action_type=action_type,
            conditions=ConditionSet(age_days=90) if conditions is None else conditions,
            parameters=ActionParameters(compression_profile="HIGH") if parameters is None else parameters,
            **kwargs,
        )

    return factory
