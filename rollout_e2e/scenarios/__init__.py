"""Live-cluster scenario categories.

Each category module exposes test_* functions taking (config, writer, log)
and tagged with a .test_id, plus optional setup(config, log) and
teardown(config, log) hooks that the runner calls around the category.
"""

import time
from typing import Dict, List, Optional

from ..config import SuiteConfig
from ..manifest import dump_manifest, load_manifest
from ..models import RolloutOutcome
from ..monitor import RolloutMonitor
from ..observation import (KubectlObserver, policy_from_strategy, ref_from_workload,
                           snapshot_from_workload)
from ..placement import active_running, bump_cpu_request, node_zone
from ..runlog import RunLog
from ..utils import KubeCommand, KubectlError, NamespaceHelper


def kube_for(config: SuiteConfig) -> KubeCommand:
    return KubeCommand(config.namespace, context=config.kube_context,
                       kubeconfig=config.kubeconfig, timeout=config.call_timeout)


def observer_for(config: SuiteConfig) -> KubectlObserver:
    return KubectlObserver(context=config.kube_context, kubeconfig=config.kubeconfig,
                           call_timeout=config.call_timeout)


def apply_manifests(config: SuiteConfig, log: RunLog, *names: str) -> Dict[str, List[Dict]]:
    """Apply packaged manifests into the suite namespace, in order."""
    kube = kube_for(config)
    applied = {}
    for name in names:
        docs = load_manifest(config.manifests_dir, name, namespace=config.namespace)
        log.info(f"=== Applying {name} manifest ===")
        kube.apply_manifest(dump_manifest(docs))
        applied[name] = docs
    return applied


def ensure_namespace(config: SuiteConfig, log: RunLog):
    NamespaceHelper(kube_for(config), log).ensure()


def cleanup_namespace(config: SuiteConfig, log: RunLog):
    if config.keep_namespace:
        log.info(f"Keeping namespace {config.namespace}")
        return
    NamespaceHelper(kube_for(config), log).delete_and_wait(timeout=config.namespace_delete_timeout)


def wait_for_running(kube: KubeCommand, label: str, count: int, timeout: float,
                     log: RunLog, interval: float = 5) -> int:
    """Poll until at least count pods matching label are running. Returns the last count."""
    deadline = time.monotonic() + timeout
    running = 0
    while True:
        try:
            running = len(active_running(kube.get_pods(label=label)))
            log.info(f"Waiting for pods ({label}): {running}/{count} running")
            if running >= count:
                return running
        except KubectlError as e:
            log.warn(f"Temporary error listing pods: {e}")

        if time.monotonic() >= deadline:
            return running
        time.sleep(interval)


def node_zones(kube: KubeCommand, pods: List[Dict]) -> Dict[str, str]:
    """Map each node hosting one of pods to its zone label."""
    zones: Dict[str, str] = {}
    for pod in pods:
        node_name = pod.get("spec", {}).get("nodeName", "")
        if node_name and node_name not in zones:
            zones[node_name] = node_zone(kube.get_node(node_name))
    return zones


def wait_for_new_generation(kube: KubeCommand, kind: str, name: str, timeout: float,
                            interval: float = 1) -> bool:
    """Wait until the controller has observed the latest spec of a workload."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            obj = kube.get_workload(kind, name)
            metadata = obj.get("metadata", {})
            observed = obj.get("status", {}).get("observedGeneration", 0)
            if observed >= metadata.get("generation", 0):
                return True
        except KubectlError:
            pass  # retried until the deadline
        if time.monotonic() >= deadline:
            return False
        time.sleep(interval)


def trigger_and_monitor(config: SuiteConfig, log: RunLog, kind: str, name: str,
                        min_available: Optional[int] = None) -> RolloutOutcome:
    """Start a rolling update of a live workload and monitor it to completion.

    The rollout is triggered by changing the pod template's CPU request. The
    budget is the one declared on the workload's own update strategy.
    """
    kube = kube_for(config)
    workload = kube.get_workload(kind, name)
    ref = ref_from_workload(workload)
    policy = policy_from_strategy(workload)
    desired = snapshot_from_workload(workload).desired_replicas

    log.info(f"=== Triggering rolling update of {kind}/{name} ===")
    kube.replace(bump_cpu_request(workload))
    if not wait_for_new_generation(kube, kind, name, config.schedule_wait):
        log.warn(f"{kind}/{name} did not observe the new generation within {config.schedule_wait}s")

    monitor = RolloutMonitor(observer_for(config), log=log.child("rollout-monitor"),
                             call_timeout=config.call_timeout)
    return monitor.run(ref, desired, policy, config.poll_interval, config.rollout_timeout,
                       min_available=min_available)
