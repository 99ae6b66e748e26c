"""Tests for YAML policy documents."""

from __future__ import annotations

import pytest

from lifecycle_spine.core.errors import PolicyFileError
from lifecycle_spine.policy.loader import PolicyDocument, load_policy_file, parse_policies
from lifecycle_spine.policy.models import ActionType, PolicyCategory
from lifecycle_spine.tracking.models import Temperature

TWO_POLICIES = """\
apiVersion: lifecycle.spine.io/v1
kind: LifecyclePolicy
metadata:
  name: compress-90d
  description: Compress sales partitions after one quarter
spec:
  selector: dw.sales
  category: COMPRESSION
  action: COMPRESS
  conditions:
    age_days: 90
  parameters:
    compression_profile: HIGH
    refresh_statistics: true
---
apiVersion: lifecycle.spine.io/v1
kind: LifecyclePolicy
metadata:
  name: archive-cold
spec:
  selector: "tag:finance"
  category: ARCHIVAL
  action: MOVE
  priority: 200
  enabled: false
  threshold_profile: FAST_AGING
  conditions:
    temperature: COLD
    predicate:
      all:
        - predicate: uncompressed
        - attr: size_mb
          op: ">="
          value: 100
  parameters:
    destination_tier: archive
"""


class TestParsePolicies:
    def test_multi_document(self):
        first, second = parse_policies(TWO_POLICIES)

        assert first.name == "compress-90d"
        assert first.category is PolicyCategory.COMPRESSION
        assert first.action_type is ActionType.COMPRESS
        assert first.priority == 100
        assert first.conditions.age_days == 90
        assert first.parameters.refresh_statistics is True

        assert second.enabled is False
        assert second.threshold_profile == "FAST_AGING"
        assert second.conditions.temperature is Temperature.COLD
        assert second.conditions.predicate["all"][0] == {"predicate": "uncompressed"}
        assert second.parameters.destination_tier == "archive"

    def test_invalid_yaml(self):
        with pytest.raises(PolicyFileError, match="Invalid YAML"):
            parse_policies("metadata: [unclosed")

    def test_empty(self):
        with pytest.raises(PolicyFileError, match="No policy documents"):
            parse_policies("---\n")

    def test_unknown_field_rejected(self):
        bad = TWO_POLICIES.replace("  priority: 200\n", "  priority: 200\n  schedule: nightly\n")
        with pytest.raises(PolicyFileError) as exc_info:
            parse_policies(bad)
        assert exc_info.value.context.metadata["document"] == 1

    def test_unknown_action_rejected(self):
        with pytest.raises(PolicyFileError):
            parse_policies(TWO_POLICIES.replace("action: COMPRESS", "action: SHRED"))

    def test_wrong_kind_rejected(self):
        with pytest.raises(PolicyFileError):
            parse_policies(TWO_POLICIES.replace("kind: LifecyclePolicy", "kind: Workflow", 1))


class TestLoadPolicyFile:
    def test_from_disk(self, tmp_path):
        path = tmp_path / "policies.yaml"
        path.write_text(TWO_POLICIES, encoding="utf-8")
        assert [p.name for p in load_policy_file(path)] == ["compress-90d", "archive-cold"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(PolicyFileError, match="Cannot read"):
            load_policy_file(tmp_path / "nope.yaml")


class TestPolicyDocument:
    def test_export_and_reload(self):
        policy = parse_policies(TWO_POLICIES)[1]
        text = PolicyDocument.from_policy(policy).to_yaml()
        assert "archive-cold" in text
        [reloaded] = parse_policies(text)
        assert reloaded.conditions == policy.conditions
        assert reloaded.parameters == policy.parameters
