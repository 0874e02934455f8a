"""Test result dataclasses and JSON serialization."""

import json
import os
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import RolloutOutcome
from .runlog import RunLog


@dataclass
class Assertion:
    description: str
    expected: str
    actual: Any
    passed: bool


@dataclass
class TestResult:
    __test__ = False  # not a pytest test class

    test_id: str
    test_name: str
    category: str
    status: str = "error"  # pass, fail, skip, error
    start_time: str = ""
    end_time: str = ""
    duration_seconds: float = 0.0
    assertions: List[Assertion] = field(default_factory=list)
    evidence: Dict[str, Any] = field(default_factory=dict)
    error_message: str = ""
    allowed_to_fail: bool = False
    environment: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)


class ResultWriter:
    """Manages test lifecycle and writes JSON results."""

    def __init__(self, results_dir: str, log: Optional[RunLog] = None,
                 environment: Optional[Dict[str, str]] = None,
                 allowed_to_fail: Optional[List[str]] = None):
        self.results_dir = results_dir
        os.makedirs(results_dir, exist_ok=True)
        self.log = log or RunLog("results")
        self.environment = environment or {}
        self.allowed_to_fail = set(allowed_to_fail or [])
        self._current: Optional[TestResult] = None
        self._start_ts: float = 0.0

    @property
    def current(self) -> Optional[TestResult]:
        return self._current

    def start_test(self, test_id: str, test_name: str, category: str) -> TestResult:
        now = datetime.now(timezone.utc)
        self._start_ts = time.time()
        self._current = TestResult(
            test_id=test_id,
            test_name=test_name,
            category=category,
            start_time=now.isoformat(),
            allowed_to_fail=test_id in self.allowed_to_fail,
            environment=dict(self.environment),
        )
        self.log.info(f"━━━ {test_id}: {test_name} ━━━")
        if self._current.allowed_to_fail:
            self.log.info(f"tag: {test_id}, allowed to fail: True")
        return self._current

    def add_assertion(self, desc: str, expected: str, actual: Any, passed: bool):
        a = Assertion(description=desc, expected=expected, actual=actual, passed=passed)
        self._current.assertions.append(a)
        mark = "✓" if passed else "✗"
        self.log.info(f"  ➤ {mark} {desc} (expected: {expected}, actual: {actual})")

    def assert_gt(self, desc: str, actual: int, threshold: int):
        self.add_assertion(desc, f">{threshold}", actual, actual > threshold)

    def assert_gte(self, desc: str, actual: int, threshold: int):
        self.add_assertion(desc, f">={threshold}", actual, actual >= threshold)

    def assert_lte(self, desc: str, actual: int, threshold: int):
        self.add_assertion(desc, f"<={threshold}", actual, actual <= threshold)

    def assert_eq(self, desc: str, actual: Any, expected: Any):
        self.add_assertion(desc, str(expected), actual, actual == expected)

    def assert_all_eq(self, desc: str, values: List[Any], expected: Any):
        passed = bool(values) and all(v == expected for v in values)
        self.add_assertion(desc, f"all == {expected}", values, passed)

    def assert_none_eq(self, desc: str, values: List[Any], unexpected: Any):
        passed = bool(values) and all(v != unexpected for v in values)
        self.add_assertion(desc, f"none == {unexpected}", values, passed)

    def assert_not_empty(self, desc: str, value: Any):
        self.add_assertion(desc, "non-empty", f"{len(value) if value else 0} items", bool(value))

    def assert_outcome(self, desc: str, outcome: RolloutOutcome):
        """Record a monitor outcome as one assertion plus its diagnostics as evidence."""
        self.add_assertion(desc, "success", outcome.status.value, outcome.passed)
        self.add_evidence("rollout_outcome", outcome.to_dict())
        if not outcome.passed:
            self._current.error_message = outcome.message

    def add_evidence(self, key: str, value: Any):
        self._current.evidence[key] = value

    def skip_test(self, reason: str):
        self._current.status = "skip"
        self._current.error_message = reason
        self._finish()

    def error_test(self, reason: str):
        self._current.status = "error"
        self._current.error_message = reason
        self._finish()

    def finish_test(self) -> TestResult:
        failed = sum(1 for a in self._current.assertions if not a.passed)
        self._current.status = "pass" if failed == 0 else "fail"
        self._finish()
        return self._current

    def _finish(self):
        now = datetime.now(timezone.utc)
        self._current.end_time = now.isoformat()
        self._current.duration_seconds = round(time.time() - self._start_ts, 1)

        out_path = os.path.join(self.results_dir, f"{self._current.test_id}.json")
        with open(out_path, "w") as f:
            json.dump(self._current.to_dict(), f, indent=2, default=str)

        status = self._current.status
        dur = self._current.duration_seconds
        tid = self._current.test_id
        if status == "pass":
            self.log.info(f" ✓ {tid} PASSED ({dur}s)")
        elif status == "fail":
            suffix = " (allowed to fail)" if self._current.allowed_to_fail else ""
            self.log.error(f"✗ {tid} FAILED ({dur}s){suffix}")
        elif status == "skip":
            self.log.warn(f" ⊘ {tid} SKIPPED: {self._current.error_message}")
        else:
            self.log.error(f"! {tid} ERROR: {self._current.error_message}")


def aggregate_results(results_dir: str, log: Optional[RunLog] = None) -> Dict:
    """Read all individual result files and produce a summary."""
    log = log or RunLog("results")
    run_id = f"run-{datetime.now().strftime('%Y%m%d-%H%M%S')}"
    results = []
    categories: Dict[str, Dict] = {}
    failed_tests = []

    for fname in sorted(os.listdir(results_dir)):
        if not fname.endswith(".json") or fname.startswith(("summary-", "test_suite_log_")):
            continue
        with open(os.path.join(results_dir, fname)) as f:
            result = json.load(f)
        results.append(result)

        cat = result.get("category", "unknown")
        if cat not in categories:
            categories[cat] = {"name": cat, "total": 0, "passed": 0, "failed": 0, "skipped": 0, "errors": 0}
        categories[cat]["total"] += 1

        status = result.get("status", "error")
        if status == "pass":
            categories[cat]["passed"] += 1
        elif status in ("fail", "error"):
            categories[cat]["failed" if status == "fail" else "errors"] += 1
            failed_tests.append({
                "test_id": result["test_id"],
                "status": status,
                "allowed_to_fail": result.get("allowed_to_fail", False),
                "error_message": result.get("error_message", "")
            })
        elif status == "skip":
            categories[cat]["skipped"] += 1

    total = len(results)
    passed = sum(1 for r in results if r["status"] == "pass")
    failed = sum(1 for r in results if r["status"] == "fail")
    errors = sum(1 for r in results if r["status"] == "error")
    skipped = sum(1 for r in results if r["status"] == "skip")
    allowed_failures = sum(1 for ft in failed_tests if ft["allowed_to_fail"])
    blocking_failures = len(failed_tests) - allowed_failures
    rate = f"{(passed / total * 100):.1f}%" if total > 0 else "0.0%"

    summary = {
        "run_id": run_id,
        "total_tests": total,
        "passed": passed,
        "failed": failed,
        "errors": errors,
        "skipped": skipped,
        "allowed_failures": allowed_failures,
        "blocking_failures": blocking_failures,
        "pass_rate": rate,
        "categories": list(categories.values()),
        "failed_tests": failed_tests,
        "results": results,
    }

    out_path = os.path.join(results_dir, f"summary-{run_id}.json")
    with open(out_path, "w") as f:
        json.dump(summary, f, indent=2, default=str)

    log.info(f"{'═' * 51}")
    log.info(f"  Run Summary: {run_id}")
    log.info(f"  Total: {total}  Pass: {passed}  Fail: {failed}  Error: {errors}  Skip: {skipped}")
    log.info(f"  Pass Rate: {rate}")
    log.info(f"{'═' * 51}")

    for ft in failed_tests:
        note = " (allowed to fail)" if ft["allowed_to_fail"] else ""
        log.error(f"  ✗ {ft['test_id']}{note}: {ft['error_message']}")

    log.info(f"Results saved to: {out_path}")
    summary["summary_path"] = out_path
    return summary
