"""
Tests for the lifecycle-spine CLI.

Commands run in-process through Typer's CliRunner against a temporary
SQLite file; the execution window is configured to be always open.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from typer.testing import CliRunner

from lifecycle_spine.cli import app

runner = CliRunner()

TARGETS = """\
- owner: dw
  name: sales
  subobject: P2020_01
  tier: standard
  size_mb: 500
  boundary: 2020-01-01T00:00:00Z
  tags: [finance]
- owner: dw
  name: sales
  subobject: P2020_02
  tier: standard
  size_mb: 250
  compression_profile: high
  boundary: 2020-02-01T00:00:00Z
"""

POLICY = """\
apiVersion: lifecycle.spine.io/v1
kind: LifecyclePolicy
metadata:
  name: compress-90d
spec:
  selector: dw.sales
  category: COMPRESSION
  action: COMPRESS
  conditions:
    age_days: 90
  parameters:
    compression_profile: HIGH
"""


@pytest.fixture(autouse=True)
def cli_env(tmp_path, monkeypatch):
    monkeypatch.setenv("LIFECYCLE_DATABASE_PATH", str(tmp_path / "lifecycle.db"))
    monkeypatch.setenv("LIFECYCLE_EXECUTION_WINDOW_START", "00:00")
    monkeypatch.setenv("LIFECYCLE_EXECUTION_WINDOW_END", "00:00")
    monkeypatch.setenv("LIFECYCLE_LOG_LEVEL", "WARNING")


@pytest.fixture
def files(tmp_path):
    targets = tmp_path / "targets.yaml"
    targets.write_text(TARGETS, encoding="utf-8")
    policy = tmp_path / "policy.yaml"
    policy.write_text(POLICY, encoding="utf-8")
    return {"targets": str(targets), "policy": str(policy)}


def invoke(*args):
    return runner.invoke(app, list(args))


def invoke_json(*args):
    result = invoke(*args, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


@pytest.fixture
def registered(files):
    assert invoke("targets", "register", files["targets"]).exit_code == 0
    assert invoke("policy", "register", files["policy"], "--actor", "ops").exit_code == 0
    return files


class TestRoot:
    def test_version(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert "lifecycle-spine" in result.stdout

    def test_no_args_shows_help(self):
        result = invoke()
        assert "policy" in result.output
        assert "execute" in result.output


class TestPolicyCommands:
    def test_validate_unknown_namespace_exit_code(self, files):
        result = invoke("policy", "validate", files["policy"])
        assert result.exit_code == 10

    def test_validate_ok(self, files):
        invoke("targets", "register", files["targets"])
        result = invoke("policy", "validate", files["policy"])
        assert result.exit_code == 0
        assert "1 policy(ies) valid" in result.stdout

    def test_validate_bad_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("metadata: [unclosed", encoding="utf-8")
        assert invoke("policy", "validate", str(path)).exit_code == 2

    def test_validate_missing_file(self, tmp_path):
        assert invoke("policy", "validate", str(tmp_path / "missing.yaml")).exit_code == 2

    def test_priority_out_of_range(self, files, tmp_path):
        invoke("targets", "register", files["targets"])
        path = tmp_path / "bad-priority.yaml"
        path.write_text(POLICY.replace("  category:", "  priority: 5000\n  category:"), encoding="utf-8")
        assert invoke("policy", "validate", str(path)).exit_code == 13

    def test_register_list_and_show(self, registered):
        [policy] = invoke_json("policy", "list")
        assert policy["name"] == "compress-90d"
        assert policy["created_by"] == "ops"

        shown = invoke_json("policy", "show", "compress-90d")
        assert shown["policy_id"] == policy["policy_id"]

    def test_register_duplicate(self, registered):
        assert invoke("policy", "register", registered["policy"]).exit_code == 16

    def test_disable_and_enable(self, registered):
        assert invoke("policy", "disable", "compress-90d").exit_code == 0
        assert invoke_json("policy", "list", "--enabled") == []
        assert invoke("policy", "enable", "1").exit_code == 0
        assert len(invoke_json("policy", "list", "--enabled")) == 1

    def test_show_unknown(self, registered):
        assert invoke("policy", "show", "nope").exit_code == 3


class TestTargetCommands:
    def test_register_and_list(self, files):
        result = invoke("targets", "register", files["targets"])
        assert result.exit_code == 0
        assert "2 target(s) registered" in result.stdout

        targets = invoke_json("targets", "list", "--namespace", "dw.sales")
        assert [t["target_id"] for t in targets] == ["dw.sales:P2020_01", "dw.sales:P2020_02"]
        assert targets[1]["compression_profile"] == "HIGH"

    def test_refresh_access(self, files):
        invoke("targets", "register", files["targets"])
        result = invoke("targets", "refresh-access", "--scope", "dw.sales")
        assert result.exit_code == 0
        assert "Refreshed 2 target(s)" in result.stdout

    def test_malformed_targets_file(self, tmp_path):
        path = tmp_path / "targets.yaml"
        path.write_text("owner: dw\n", encoding="utf-8")
        assert invoke("targets", "register", str(path)).exit_code == 2


class TestLifecycle:
    def test_evaluate_execute_and_inspect(self, registered):
        report = invoke_json("evaluate")
        assert report["eligible"] == 1
        assert report["ineligible"] == 1

        entries = invoke_json("queue", "list", "--eligible")
        assert len(entries) == 1
        assert entries[0]["reason"].endswith("current profile NONE ≠ HIGH")

        executed = invoke_json("execute")
        assert executed["succeeded"] == 1

        assert invoke_json("queue", "list", "--status", "done")[0]["target_id"] == "dw.sales:P2020_01"
        [row] = invoke_json("log", "list")
        assert row["outcome"] == "SUCCESS"
        assert row["size_after_mb"] == 80.0

        [target] = [t for t in invoke_json("targets", "list") if t["subobject"] == "P2020_01"]
        assert target["compression_profile"] == "HIGH"

    def test_explain(self, registered):
        result = invoke("explain", "compress-90d", "dw.sales:P2020_02")
        assert result.exit_code == 0
        assert "not eligible" in result.stdout
        assert "already at target state: profile HIGH" in result.stdout

        data = invoke_json("explain", "compress-90d", "dw.sales:P2020_01")
        assert data["eligible"] is True

    def test_explain_unknown_target(self, registered):
        assert invoke("explain", "compress-90d", "dw.sales:NOPE").exit_code == 3

    def test_evaluate_rejects_both_scopes(self, registered):
        assert invoke("evaluate", "--policy", "1", "--namespace", "dw.sales").exit_code == 2

    def test_execute_with_closed_window(self, registered, monkeypatch):
        invoke("evaluate")
        hour = datetime.now(UTC).hour
        monkeypatch.setenv("LIFECYCLE_EXECUTION_WINDOW_START", f"{(hour + 2) % 24:02d}:00")
        monkeypatch.setenv("LIFECYCLE_EXECUTION_WINDOW_END", f"{(hour + 3) % 24:02d}:00")

        result = invoke("execute")
        assert result.exit_code == 0
        assert "Execution window is closed" in result.stdout
        assert invoke_json("queue", "list", "--status", "pending", "--eligible")[0]["attempt_count"] == 0


class TestQueueAndLogCommands:
    def test_requeue_unknown_entry(self, registered):
        assert invoke("queue", "requeue", "999").exit_code == 3

    def test_requeue_pending_entry_rejected(self, registered):
        invoke("evaluate")
        assert invoke("queue", "requeue", "1").exit_code == 1

    def test_clear(self, registered):
        invoke("evaluate")
        result = invoke("queue", "clear", "--policy", "compress-90d")
        assert result.exit_code == 0
        assert "Removed 2 pending entries" in result.stdout

    def test_recover(self, registered):
        result = invoke("queue", "recover")
        assert result.exit_code == 0
        assert "Recovered 0 running entries" in result.stdout

    def test_failures_threshold(self, registered):
        result = invoke("failures", "--hours", "24", "--threshold", "1")
        assert result.exit_code == 0
        assert result.stdout.strip() == "0"
        assert invoke("failures", "--threshold", "0").exit_code == 1

    def test_log_purge(self, registered):
        result = invoke("log", "purge", "--days", "30")
        assert result.exit_code == 0
        assert "Purged 0 log entries" in result.stdout

    def test_log_purge_all(self, registered):
        result = invoke("log", "purge", "--all")
        assert result.exit_code == 0
        assert "lc_execution_log: 0 deleted" in result.stdout
