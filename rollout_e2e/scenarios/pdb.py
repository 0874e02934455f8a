"""PodDisruptionBudget Tests (PDB-001, PDB-002)."""

import time

from ..config import SuiteConfig
from ..manifest import find_pdb_min_available, find_replicas
from ..placement import active_running
from ..result_writer import ResultWriter
from ..runlog import RunLog
from ..utils import KubectlError
from . import (apply_manifests, cleanup_namespace, ensure_namespace, kube_for,
               trigger_and_monitor, wait_for_running)

CATEGORY = "pdb"

DEPLOYMENT_MANIFEST = "pdb-deployment.yaml"
PDB_MANIFEST = "pdb.yaml"
SELECTOR = "app=app,component=my-unique-deployment"


def _apply(config: SuiteConfig, log: RunLog):
    """Apply the deployment and its PDB. Returns (replicas, minAvailable)."""
    applied = apply_manifests(config, log, DEPLOYMENT_MANIFEST, PDB_MANIFEST)
    min_available = find_pdb_min_available(applied[PDB_MANIFEST])
    log.info(f"=== Minimum allowed pods from PDB: {min_available} ===")
    return find_replicas(applied[DEPLOYMENT_MANIFEST]), min_available


def setup(config: SuiteConfig, log: RunLog):
    ensure_namespace(config, log)


def test_pdb_001(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Rolling update never drops the ready count below the PDB's minAvailable."""
    kube = kube_for(config)
    writer.start_test("PDB-001", "Rolling update respects PDB minAvailable", CATEGORY)

    replicas, min_available = _apply(config, log)
    running = wait_for_running(kube, SELECTOR, replicas, config.rollout_timeout, log,
                               interval=config.poll_interval)
    writer.assert_gte("initial pods running", running, replicas)
    if running < replicas:
        writer.finish_test()
        return

    outcome = trigger_and_monitor(config, log, "deployment", "app")
    writer.assert_outcome("rollout completes", outcome)
    writer.assert_gte("minimum ready pods observed during rollout",
                      outcome.min_observed_available or 0, min_available)
    writer.finish_test()


test_pdb_001.test_id = "PDB-001"


def test_pdb_002(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Directly deleted pods are replaced back up to minAvailable."""
    kube = kube_for(config)
    writer.start_test("PDB-002", "Pods recover to PDB minAvailable after deletion", CATEGORY)

    replicas, min_available = _apply(config, log)
    wait_for_running(kube, SELECTOR, replicas, config.rollout_timeout, log,
                     interval=config.poll_interval)

    pods = kube.get_pods(label=SELECTOR)
    log.info(f"=== Attempting to delete {len(pods)} pods ===")
    for pod in pods:
        name = pod["metadata"]["name"]
        try:
            kube.delete("pod", name)
            log.info(f"Successfully initiated deletion of pod {name}")
        except KubectlError as e:
            log.warn(f"Failed to delete pod {name}: {e}")

    samples = []
    for attempt in range(1, config.pdb_deletion_samples + 1):
        time.sleep(config.pdb_check_interval)
        try:
            running = len(active_running(kube.get_pods(label=SELECTOR)))
        except KubectlError as e:
            log.warn(f"Attempt {attempt}: could not list pods: {e}")
            continue
        samples.append(running)
        log.info(f"Attempt {attempt} | Running pods: {running} (minAvailable {min_available})")
        if running >= min_available:
            break

    writer.add_evidence("running_samples", samples)
    writer.add_evidence("deleted_pods", len(pods))
    writer.assert_gte("running pods recovered to minAvailable", samples[-1] if samples else 0, min_available)
    writer.finish_test()


test_pdb_002.test_id = "PDB-002"


def teardown(config: SuiteConfig, log: RunLog):
    cleanup_namespace(config, log)
