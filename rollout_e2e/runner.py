"""Scenario discovery and execution.

Categories run in key order. Each category's setup() runs before its first
test and teardown() after its last, whatever the tests did.
"""

import importlib
import os
from itertools import groupby
from typing import Callable, Dict, List, Optional, Tuple

from .config import SuiteConfig
from .result_writer import ResultWriter, aggregate_results
from .runlog import RunLog

# Category module mapping
CATEGORY_MODULES = {
    "01-connectivity": "rollout_e2e.scenarios.connectivity",
    "02-rolling-update": "rollout_e2e.scenarios.rolling_update",
    "03-pdb": "rollout_e2e.scenarios.pdb",
    "04-topology": "rollout_e2e.scenarios.topology",
    "05-affinity": "rollout_e2e.scenarios.affinity",
}

DiscoveredTest = Tuple[str, str, str, Callable]


def discover_tests(category_filter: str = "", test_filter: str = "",
                   log: Optional[RunLog] = None) -> List[DiscoveredTest]:
    """Discover test functions across category modules."""
    log = log or RunLog("runner")
    tests = []
    for cat_key, module_name in sorted(CATEGORY_MODULES.items()):
        if category_filter and category_filter not in cat_key:
            continue
        try:
            mod = importlib.import_module(module_name)
        except ImportError as e:
            log.warn(f"Cannot import {module_name}: {e}")
            continue

        for attr_name in sorted(dir(mod)):
            if not attr_name.startswith("test_"):
                continue
            func = getattr(mod, attr_name)
            if not callable(func):
                continue
            test_id = getattr(func, "test_id", attr_name)
            if test_filter and test_filter not in test_id and test_filter not in attr_name:
                continue
            tests.append((cat_key, test_id, attr_name, func))
    return tests


def clear_results(results_dir: str):
    for f in os.listdir(results_dir):
        if f.endswith(".json"):
            os.remove(os.path.join(results_dir, f))


def _run_hook(module, hook: str, config: SuiteConfig, log: RunLog):
    fn = getattr(module, hook, None)
    if fn is not None:
        fn(config, log)


def run_category(cat_key: str, tests: List[DiscoveredTest], config: SuiteConfig,
                 writer: ResultWriter, log: RunLog):
    module = importlib.import_module(CATEGORY_MODULES[cat_key])
    cat_log = log.child(cat_key)

    try:
        _run_hook(module, "setup", config, cat_log)
    except Exception as e:
        cat_log.error(f"Setup of {cat_key} failed: {e}")
        for _, test_id, func_name, _ in tests:
            writer.start_test(test_id, func_name, cat_key)
            writer.error_test(f"category setup failed: {e}")
        _teardown(module, cat_key, config, cat_log)
        return

    try:
        for _, test_id, func_name, func in tests:
            cat_log.info(f"{'═' * 51}")
            cat_log.info(f"  Executing: {test_id} ({func_name})")
            cat_log.info(f"{'═' * 51}")
            try:
                func(config, writer, cat_log.child(test_id))
            except Exception as e:
                cat_log.error(f"{test_id} raised exception: {e!r}")
                current = writer.current
                # the test may have raised before or after writing its own result
                if current is None or current.test_id != test_id or current.end_time:
                    writer.start_test(test_id, func_name, cat_key)
                writer.error_test(f"{type(e).__name__}: {e}")
    finally:
        _teardown(module, cat_key, config, cat_log)


def _teardown(module, cat_key: str, config: SuiteConfig, log: RunLog):
    try:
        _run_hook(module, "teardown", config, log)
    except Exception as e:
        log.error(f"Teardown of {cat_key} failed: {e}")


def run_suite(config: SuiteConfig, log: RunLog, category: str = "", test: str = "",
              dry_run: bool = False) -> Optional[Dict]:
    """Run the selected scenarios and aggregate their results.

    Returns the summary dict, or None for a dry run.
    """
    tests = discover_tests(category, test, log=log)
    if not tests:
        raise LookupError(f"No tests found (category={category}, test={test})")

    log.info(f"Found {len(tests)} test(s) to execute")
    if dry_run:
        for cat_key, test_id, func_name, _ in tests:
            log.info(f"[DRY-RUN] {test_id} ({cat_key}/{func_name})")
        return None

    os.makedirs(config.results_dir, exist_ok=True)
    # Clear previous results unless running a single test
    if not test:
        clear_results(config.results_dir)

    writer = ResultWriter(
        config.results_dir,
        log=log.child("results"),
        environment={"namespace": config.namespace, "kube_context": config.kube_context or ""},
        allowed_to_fail=config.allowed_to_fail,
    )
    for cat_key, group in groupby(tests, key=lambda t: t[0]):
        run_category(cat_key, list(group), config, writer, log)

    return aggregate_results(config.results_dir, log=log.child("results"))
