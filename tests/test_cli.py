"""Tests for the rollout-e2e command line."""

import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from rollout_e2e.cli import _deep_merge, _flatten, build_config, cli

from .conftest import FakeObserver, converged, make_pods, workload


@pytest.fixture(autouse=True)
def results_env(monkeypatch, tmp_path):
    monkeypatch.setenv("RESULTS_DIR", str(tmp_path / "results"))
    monkeypatch.delenv("NAMESPACE", raising=False)


@pytest.fixture
def runner():
    return CliRunner()


DEPLOYMENT = {
    "kind": "Deployment",
    "metadata": {"name": "app", "namespace": "default"},
    "spec": {
        "replicas": 4,
        "selector": {"matchLabels": {"app": "app"}},
        "strategy": {"type": "RollingUpdate", "rollingUpdate": {"maxSurge": 1, "maxUnavailable": 0}},
    },
    "status": {},
}


def invoke_watch(runner, observer, *args):
    kube = MagicMock()
    kube.get_workload.return_value = DEPLOYMENT
    with patch("rollout_e2e.cli.KubeCommand", return_value=kube), \
            patch("rollout_e2e.cli.KubectlObserver", return_value=observer):
        return runner.invoke(cli, ["watch", "deploy/app", "--interval", "0.01", "--timeout", "0.05", *args])


class TestWatch:
    def test_success_exit_zero(self, runner):
        result = invoke_watch(runner, FakeObserver([(converged(4), [])]))
        assert result.exit_code == 0, result.output
        assert '"status": "success"' in result.output

    def test_violation_exit_one(self, runner):
        observer = FakeObserver([(workload(updated=1, total=5), make_pods(ready=4, running_not_ready=1))])
        result = invoke_watch(runner, observer)
        assert result.exit_code == 1
        assert "maxUnavailable violation: 1 > 0" in result.output

    def test_timeout_exit_two(self, runner):
        observer = FakeObserver([(workload(updated=1), make_pods(ready=4))])
        result = invoke_watch(runner, observer)
        assert result.exit_code == 2
        assert '"status": "timeout"' in result.output

    def test_policy_override(self, runner):
        observer = FakeObserver([(workload(updated=1, total=5), make_pods(ready=4, running_not_ready=1))])
        result = invoke_watch(runner, observer, "--max-unavailable", "1")
        assert result.exit_code == 2

    def test_zero_allowance_is_usage_error(self, runner):
        result = invoke_watch(runner, FakeObserver([(converged(4), [])]),
                              "--max-surge", "0", "--max-unavailable", "0")
        assert result.exit_code == 1
        assert "can never progress" in result.output

    def test_leaves_no_results_dir(self, runner, tmp_path):
        result = invoke_watch(runner, FakeObserver([(converged(4), [])]))
        assert result.exit_code == 0, result.output
        assert not (tmp_path / "results").exists()

    def test_invalid_environment_is_usage_error(self, runner, monkeypatch):
        monkeypatch.setenv("POLL_INTERVAL", "0")
        result = invoke_watch(runner, FakeObserver([(converged(4), [])]))
        assert result.exit_code == 1
        assert "POLL_INTERVAL must be positive" in result.output
        assert "Traceback" not in result.output

    def test_bad_workload_argument(self, runner):
        result = runner.invoke(cli, ["watch", "app"])
        assert result.exit_code == 2
        assert "KIND/NAME" in result.output

    def test_unsupported_kind(self, runner):
        result = runner.invoke(cli, ["watch", "daemonset/agent"])
        assert result.exit_code == 2
        assert "unsupported workload kind" in result.output


class TestRun:
    def test_dry_run_lists_tests(self, runner):
        result = runner.invoke(cli, ["run", "--dry-run"])
        assert result.exit_code == 0, result.output
        for test_id in ("CONN-001", "RU-001", "RU-002", "PDB-001", "PDB-002", "TOPO-001", "AFF-001", "AFF-002"):
            assert f"[DRY-RUN] {test_id}" in result.output

    def test_dry_run_category_filter(self, runner):
        result = runner.invoke(cli, ["run", "--dry-run", "--category", "pdb"])
        assert "PDB-001" in result.output
        assert "RU-001" not in result.output

    def test_no_matching_tests(self, runner):
        result = runner.invoke(cli, ["run", "--dry-run", "--test", "NOPE-999"])
        assert result.exit_code == 1
        assert "No tests found" in result.output

    def test_exit_code_follows_blocking_failures(self, runner):
        with patch("rollout_e2e.cli.run_suite", return_value={"blocking_failures": 1}):
            result = runner.invoke(cli, ["run"])
        assert result.exit_code == 1

    def test_keep_namespace_flag(self, runner):
        with patch("rollout_e2e.cli.run_suite", return_value={"blocking_failures": 0}) as run_suite:
            result = runner.invoke(cli, ["run", "--keep-namespace"])
        assert result.exit_code == 0
        assert run_suite.call_args[0][0].keep_namespace is True

    def test_bad_config_key(self, runner, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("monitor:\n  max_surge: 1\n")
        result = runner.invoke(cli, ["run", "--dry-run", "--config", str(cfg)])
        assert result.exit_code == 1
        assert "unknown config key" in result.output


class TestConfigLayering:
    def test_yaml_over_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("POLL_INTERVAL", "5")
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text("monitor:\n  poll_interval: 1\nsuite:\n  allowed_to_fail: [TOPO-001]\n")
        cfg = build_config(str(cfg_file))
        assert cfg.poll_interval == 1
        assert cfg.allowed_to_fail == ["TOPO-001"]

    def test_env_file_loaded_first(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ROLLOUT_TIMEOUT", "300")
        env_file = tmp_path / ".env"
        env_file.write_text("ROLLOUT_TIMEOUT=42\n")
        assert build_config(env_file=str(env_file)).rollout_timeout == 42

    def test_deep_merge(self):
        base = {"monitor": {"poll_interval": None, "rollout_timeout": None}}
        _deep_merge(base, {"monitor": {"poll_interval": 2}})
        assert base == {"monitor": {"poll_interval": 2, "rollout_timeout": None}}

    def test_flatten_drops_unset(self):
        assert _flatten({"cluster": {"namespace": None, "kube_context": "dev"}, "results_dir": "/r"}) == {
            "kube_context": "dev", "results_dir": "/r"}


class TestSummary:
    def test_table(self, runner, tmp_path):
        (tmp_path / "RU-001.json").write_text(json.dumps({
            "test_id": "RU-001", "category": "02-rolling-update", "status": "fail",
            "assertions": [{"passed": True}, {"passed": False}],
            "duration_seconds": 12.5, "error_message": "maxSurge violation: 2 > 1",
        }))
        (tmp_path / "summary-run-1.json").write_text("{}")

        result = runner.invoke(cli, ["summary", str(tmp_path)])
        assert result.exit_code == 0, result.output
        assert "RU-001" in result.output
        assert "1/2" in result.output
        assert "summary-run-1" not in result.output

    def test_empty_dir(self, runner, tmp_path):
        result = runner.invoke(cli, ["summary", str(tmp_path)])
        assert result.exit_code == 1
        assert "no test results" in result.output
