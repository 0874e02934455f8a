"""CLI interface for rollout-e2e."""

import copy
import json
import os
import sys

import click
import yaml
from tabulate import tabulate

from .budget import MonitorPreconditionError
from .config import SuiteConfig, load_env_file
from .models import Budget, BudgetPolicy, OutcomeStatus
from .monitor import RolloutMonitor
from .observation import (KubectlObserver, ObservationError, normalize_kind, policy_from_strategy,
                          ref_from_workload, snapshot_from_workload)
from .runlog import LogSink, RunLog
from .runner import run_suite
from .utils import KubectlError, KubeCommand

# None leaves the environment (or built-in default) in charge of a field
DEFAULT_CONFIG = {
    "cluster": {
        "namespace": None,
        "kube_context": None,
        "kubeconfig": None,
    },
    "monitor": {
        "poll_interval": None,
        "rollout_timeout": None,
        "call_timeout": None,
    },
    "scenarios": {
        "schedule_wait": None,
        "scale_timeout": None,
        "namespace_delete_timeout": None,
        "pdb_check_interval": None,
        "pdb_deletion_samples": None,
    },
    "suite": {
        "allowed_to_fail": None,
        "keep_namespace": None,
        "manifests_dir": None,
        "results_dir": None,
    },
}

EXIT_CODES = {
    OutcomeStatus.SUCCESS: 0,
    OutcomeStatus.BUDGET_VIOLATION: 1,
    OutcomeStatus.ERROR: 1,
    OutcomeStatus.TIMEOUT: 2,
}


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """Kubernetes rollout-policy e2e suite and rollout monitor."""
    pass


def build_config(config_file=None, env_file=None) -> SuiteConfig:
    """Environment first, then a YAML config file layered over it."""
    if env_file:
        load_env_file(env_file)
    cfg = SuiteConfig()
    if config_file:
        merged = copy.deepcopy(DEFAULT_CONFIG)
        with open(config_file) as f:
            user_config = yaml.safe_load(f) or {}
            _deep_merge(merged, user_config)
        cfg.apply_overrides(_flatten(merged))
    return cfg


@cli.command()
@click.option('--config', 'config_file', type=click.Path(exists=True), help='Path to config.yaml file')
@click.option('--env-file', type=click.Path(exists=True), help='Load KEY=VALUE pairs before reading config')
@click.option('--category', default='', help='Filter by category name')
@click.option('--test', default='', help='Filter by test ID (e.g. RU-001)')
@click.option('--dry-run', is_flag=True, help='List tests without executing')
@click.option('--keep-namespace', is_flag=True, help='Do not delete test namespaces afterwards')
@click.option('--debug', is_flag=True, help='Echo per-pod debug lines')
def run(config_file, env_file, category, test, dry_run, keep_namespace, debug):
    """Run the e2e scenarios against the current cluster."""
    try:
        cfg = build_config(config_file, env_file)
    except ValueError as e:
        raise click.ClickException(str(e))
    if keep_namespace:
        cfg.keep_namespace = True

    sink = LogSink()
    log = RunLog("suite", sink, debug=debug)
    log.info(f"Namespace: {cfg.namespace}  Results: {cfg.results_dir}")

    try:
        summary = run_suite(cfg, log, category=category, test=test, dry_run=dry_run)
    except LookupError as e:
        raise click.ClickException(str(e))

    if summary is None:
        return
    log.info(f"Suite log: {sink.write_suite_log(cfg.results_dir)}")

    # Exit code based on test results
    sys.exit(1 if summary["blocking_failures"] > 0 else 0)


@cli.command()
@click.argument('workload')
@click.option('-n', '--namespace', default='default', help='Namespace of the workload')
@click.option('--max-surge', default=None, help='Override maxSurge (e.g. 1 or 25%)')
@click.option('--max-unavailable', default=None, help='Override maxUnavailable (e.g. 0 or 25%)')
@click.option('--min-available', type=int, default=None, help='Fail if ready pods drop below this')
@click.option('--replicas', type=int, default=None, help='Desired replicas (default: spec.replicas)')
@click.option('--interval', type=float, default=None, help='Poll interval in seconds')
@click.option('--timeout', type=float, default=None, help='Give up after this many seconds')
@click.option('--debug', is_flag=True, help='Echo per-pod debug lines')
def watch(workload, namespace, max_surge, max_unavailable, min_available, replicas,
          interval, timeout, debug):
    """Monitor an in-flight rollout of KIND/NAME against its budget.

    Exits 0 on success, 1 on a budget violation or error, 2 on timeout.
    """
    if "/" not in workload:
        raise click.BadParameter("expected KIND/NAME", param_hint="WORKLOAD")
    kind, name = workload.split("/", 1)
    try:
        kind = normalize_kind(kind)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="WORKLOAD")

    try:
        cfg = SuiteConfig()
    except ValueError as e:
        raise click.ClickException(str(e))
    log = RunLog("watch", debug=debug)
    kube = KubeCommand(namespace, context=cfg.kube_context, kubeconfig=cfg.kubeconfig,
                       timeout=cfg.call_timeout)

    try:
        obj = kube.get_workload(kind, name)
        ref = ref_from_workload(obj)
        policy = _watch_policy(obj, max_surge, max_unavailable)
        desired = replicas if replicas is not None else snapshot_from_workload(obj).desired_replicas
    except (KubectlError, ObservationError, ValueError) as e:
        raise click.ClickException(str(e))

    observer = KubectlObserver(context=cfg.kube_context, kubeconfig=cfg.kubeconfig,
                               call_timeout=cfg.call_timeout)
    monitor = RolloutMonitor(observer, log=log, call_timeout=cfg.call_timeout)
    try:
        outcome = monitor.run(ref, desired, policy,
                              interval if interval is not None else cfg.poll_interval,
                              timeout if timeout is not None else cfg.rollout_timeout,
                              min_available=min_available)
    except MonitorPreconditionError as e:
        raise click.ClickException(str(e))

    click.echo(json.dumps(outcome.to_dict(), indent=2))
    sys.exit(EXIT_CODES[outcome.status])


def _watch_policy(obj, max_surge, max_unavailable) -> BudgetPolicy:
    if max_surge is not None and max_unavailable is not None:
        return BudgetPolicy.of(max_surge, max_unavailable)
    declared = policy_from_strategy(obj)
    return BudgetPolicy(
        Budget.parse(max_surge) if max_surge is not None else declared.max_surge,
        Budget.parse(max_unavailable) if max_unavailable is not None else declared.max_unavailable,
    )


@cli.command()
@click.argument('results_dir', type=click.Path(exists=True, file_okay=False))
def summary(results_dir):
    """Print a table of the per-test results in RESULTS_DIR."""
    rows = []
    for fname in sorted(os.listdir(results_dir)):
        if not fname.endswith(".json") or fname.startswith(("summary-", "test_suite_log_")):
            continue
        with open(os.path.join(results_dir, fname)) as f:
            result = json.load(f)
        failed = sum(1 for a in result.get("assertions", []) if not a.get("passed"))
        rows.append([
            result.get("test_id", fname),
            result.get("category", ""),
            result.get("status", "error"),
            f"{len(result.get('assertions', [])) - failed}/{len(result.get('assertions', []))}",
            result.get("duration_seconds", 0.0),
            "yes" if result.get("allowed_to_fail") else "",
            result.get("error_message", ""),
        ])

    if not rows:
        raise click.ClickException(f"no test results in {results_dir}")
    click.echo(tabulate(rows, headers=["Test", "Category", "Status", "Assertions", "Seconds",
                                       "Allowed to fail", "Message"], tablefmt="grid"))


def _deep_merge(base: dict, update: dict):
    """Deep merge update dict into base dict."""
    for key, value in update.items():
        if isinstance(value, dict) and key in base and isinstance(base[key], dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def _flatten(cfg: dict) -> dict:
    """Collapse the sectioned config into SuiteConfig field overrides."""
    overrides = {}
    for key, value in cfg.items():
        if isinstance(value, dict):
            overrides.update({k: v for k, v in value.items() if v is not None})
        elif value is not None:
            overrides[key] = value
    return overrides


if __name__ == "__main__":
    cli()
