"""Rolling Update Tests (RU-001, RU-002).

Trigger a rollout by changing the pod template's CPU request, then watch it
with the rollout monitor against the budget the workload itself declares.
"""

from ..config import SuiteConfig
from ..manifest import find_replicas
from ..result_writer import ResultWriter
from ..runlog import RunLog
from . import (apply_manifests, cleanup_namespace, ensure_namespace, kube_for,
               trigger_and_monitor, wait_for_running)

CATEGORY = "rolling-update"

DEPLOYMENT_MANIFEST = "rolling-update-deployment.yaml"
STATEFULSET_MANIFEST = "rolling-update-statefulset.yaml"


def setup(config: SuiteConfig, log: RunLog):
    ensure_namespace(config, log)


def test_ru_001(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Deployment rollout stays within maxSurge / maxUnavailable and completes."""
    kube = kube_for(config)
    writer.start_test("RU-001", "Deployment rolling update within budget", CATEGORY)

    docs = apply_manifests(config, log, DEPLOYMENT_MANIFEST)[DEPLOYMENT_MANIFEST]
    replicas = find_replicas(docs)
    running = wait_for_running(kube, "app=app", replicas, config.rollout_timeout, log,
                               interval=config.poll_interval)
    writer.assert_gte("initial pods running", running, replicas)
    if running < replicas:
        writer.finish_test()
        return

    try:
        outcome = trigger_and_monitor(config, log, "deployment", "app")
        writer.assert_outcome("rollout completes within its surge/unavailable budget", outcome)
    finally:
        kube.delete("deployment", "app", wait=True)
    writer.finish_test()


test_ru_001.test_id = "RU-001"


def test_ru_002(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """StatefulSet rollout keeps at least replicas-1 pods ready and completes."""
    kube = kube_for(config)
    writer.start_test("RU-002", "StatefulSet rolling update keeps replicas-1 ready", CATEGORY)

    docs = apply_manifests(config, log, STATEFULSET_MANIFEST)[STATEFULSET_MANIFEST]
    replicas = find_replicas(docs)
    running = wait_for_running(kube, "app=app", replicas, config.rollout_timeout, log,
                               interval=config.poll_interval)
    writer.assert_gte("initial pods running", running, replicas)
    if running < replicas:
        writer.finish_test()
        return

    try:
        outcome = trigger_and_monitor(config, log, "statefulset", "app", min_available=replicas - 1)
        writer.assert_outcome("rollout completes with one pod down at most", outcome)
        if outcome.min_observed_available is not None:
            writer.assert_gte("minimum ready pods observed", outcome.min_observed_available, replicas - 1)
    finally:
        kube.delete("statefulset", "app", wait=True)
    writer.finish_test()


test_ru_002.test_id = "RU-002"


def teardown(config: SuiteConfig, log: RunLog):
    cleanup_namespace(config, log)
