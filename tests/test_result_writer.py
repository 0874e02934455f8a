"""Tests for per-test result files and the aggregated summary."""

import json
import os

import pytest

from rollout_e2e.models import BudgetViolation, OutcomeStatus, RolloutOutcome, ViolationKind
from rollout_e2e.result_writer import ResultWriter, aggregate_results


@pytest.fixture
def writer(tmp_path, log):
    return ResultWriter(str(tmp_path), log=log, environment={"namespace": "test-ns"},
                        allowed_to_fail=["TOPO-001"])


def load(tmp_path, test_id):
    with open(os.path.join(str(tmp_path), f"{test_id}.json")) as f:
        return json.load(f)


class TestResultWriter:
    def test_pass(self, writer, tmp_path):
        writer.start_test("RU-001", "Deployment rolling update", "rolling-update")
        writer.assert_gte("initial pods running", 4, 4)
        writer.add_evidence("pods", ["a", "b"])
        result = writer.finish_test()

        assert result.status == "pass"
        data = load(tmp_path, "RU-001")
        assert data["status"] == "pass"
        assert data["evidence"] == {"pods": ["a", "b"]}
        assert data["environment"] == {"namespace": "test-ns"}
        assert data["end_time"]

    def test_fail_on_any_failed_assertion(self, writer):
        writer.start_test("PDB-001", "PDB", "pdb")
        writer.assert_eq("ok", 1, 1)
        writer.assert_lte("skew", 2, 1)
        assert writer.finish_test().status == "fail"

    @pytest.mark.parametrize("method,args,passed", [
        ("assert_gt", (1, 0), True),
        ("assert_gt", (0, 0), False),
        ("assert_all_eq", (["a", "a"], "a"), True),
        ("assert_all_eq", ([], "a"), False),
        ("assert_none_eq", (["b", "c"], "a"), True),
        ("assert_none_eq", (["b", "a"], "a"), False),
        ("assert_not_empty", ([1],), True),
        ("assert_not_empty", ([],), False),
    ])
    def test_assertion_helpers(self, writer, method, args, passed):
        writer.start_test("X-001", "x", "x")
        getattr(writer, method)("desc", *args)
        assert writer.current.assertions[-1].passed is passed

    def test_assert_outcome_failure(self, writer, tmp_path):
        outcome = RolloutOutcome(
            OutcomeStatus.BUDGET_VIOLATION,
            violation=BudgetViolation(ViolationKind.SURGE, 2, 1),
            message="maxSurge violation: 2 > 1",
            samples=3,
        )
        writer.start_test("RU-001", "rollout", "rolling-update")
        writer.assert_outcome("rollout within budget", outcome)
        writer.finish_test()

        data = load(tmp_path, "RU-001")
        assert data["status"] == "fail"
        assert data["error_message"] == "maxSurge violation: 2 > 1"
        assert data["evidence"]["rollout_outcome"]["violation"] == {"kind": "surge", "observed": 2, "allowed": 1}
        assert data["assertions"][0]["actual"] == "budget_violation"

    def test_skip_and_error(self, writer, tmp_path):
        writer.start_test("AFF-001", "affinity", "affinity")
        writer.skip_test("no zones")
        writer.start_test("AFF-002", "anti", "affinity")
        writer.error_test("boom")

        assert load(tmp_path, "AFF-001")["status"] == "skip"
        assert load(tmp_path, "AFF-002")["error_message"] == "boom"

    def test_allowed_to_fail_flagged(self, writer, tmp_path):
        writer.start_test("TOPO-001", "topology", "topology")
        writer.finish_test()
        assert load(tmp_path, "TOPO-001")["allowed_to_fail"] is True


class TestAggregate:
    def test_summary_counts(self, writer, tmp_path, log):
        writer.start_test("RU-001", "a", "rolling-update")
        writer.finish_test()
        writer.start_test("RU-002", "b", "rolling-update")
        writer.assert_eq("x", 1, 2)
        writer.finish_test()
        writer.start_test("TOPO-001", "c", "topology")
        writer.assert_eq("x", 1, 2)
        writer.finish_test()
        writer.start_test("AFF-001", "d", "affinity")
        writer.skip_test("no zones")

        summary = aggregate_results(str(tmp_path), log=log)

        assert summary["total_tests"] == 4
        assert (summary["passed"], summary["failed"], summary["skipped"], summary["errors"]) == (1, 2, 1, 0)
        assert summary["allowed_failures"] == 1
        assert summary["blocking_failures"] == 1
        assert summary["pass_rate"] == "25.0%"
        assert os.path.exists(summary["summary_path"])
        rolling = next(c for c in summary["categories"] if c["name"] == "rolling-update")
        assert (rolling["total"], rolling["passed"], rolling["failed"]) == (2, 1, 1)

    def test_ignores_summaries_and_suite_logs(self, tmp_path, log):
        (tmp_path / "summary-run-1.json").write_text("{}")
        (tmp_path / "test_suite_log_1.json").write_text("{}")
        summary = aggregate_results(str(tmp_path), log=log)
        assert summary["total_tests"] == 0
        assert summary["pass_rate"] == "0.0%"
