"""Tests for service wiring."""

from __future__ import annotations

import pytest

from lifecycle_spine.core.errors import ErrorCategory, LifecycleError
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.execution.driver import SimulatedStorageDriver
from lifecycle_spine.execution.gate import TimeWindowGate
from lifecycle_spine.service import LifecycleService, load_object


class TestLoadObject:
    def test_loads_nested_attribute(self):
        assert load_object("lifecycle_spine.execution.driver:SimulatedStorageDriver") is SimulatedStorageDriver
        assert load_object("lifecycle_spine.service:LifecycleService.from_settings").__name__ == "from_settings"

    @pytest.mark.parametrize(
        "ref",
        ["lifecycle_spine.execution.driver", ":Driver", "no_such_module_xyz:Thing", "lifecycle_spine:Missing"],
    )
    def test_bad_reference(self, ref):
        with pytest.raises(LifecycleError) as exc_info:
            load_object(ref)
        assert exc_info.value.category is ErrorCategory.CONFIG


class TestFromSettings:
    def test_opens_database_file(self, tmp_path, make_target):
        settings = LifecycleSettings(_env_file=None, database_path=tmp_path / "nested" / "lifecycle.db")
        service = LifecycleService.from_settings(settings)
        try:
            assert isinstance(service.driver, SimulatedStorageDriver)
            assert isinstance(service.gate, TimeWindowGate)
            service.register_target(make_target())
        finally:
            service.close()

        reopened = LifecycleService.from_settings(settings)
        try:
            assert [t.target_id for t in reopened.targets()] == ["dw.sales:P2024_01"]
        finally:
            reopened.close()

    def test_unknown_driver(self, tmp_path):
        settings = LifecycleSettings(
            _env_file=None, database_path=tmp_path / "lifecycle.db", storage_driver="nowhere_xyz:Driver"
        )
        with pytest.raises(LifecycleError, match="Cannot load"):
            LifecycleService.from_settings(settings)


def test_policy_audit_trail(service, make_target, make_policy):
    service.register_target(make_target())
    policy = service.register_policy(make_policy(), actor="ops")
    service.disable_policy(policy.name, actor="ops")
    service.enable_policy(policy.policy_id)

    trail = service.policy_audit("compress-90d")
    assert [r.operation.value for r in trail] == ["REGISTER", "DISABLE", "ENABLE"]
    assert trail[0].actor == "ops"
