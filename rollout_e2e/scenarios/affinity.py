"""Pod Affinity Tests (AFF-001, AFF-002).

A single zone-marker pod pins a zone; a dependent app with zone-level pod
affinity (or anti-affinity) to it is scaled by an HPA, and every scheduled
dependent pod must land in (or out of) the marker's zone.
"""

import time

from ..config import SuiteConfig
from ..placement import active_running, pod_node, zones_for_pods
from ..result_writer import ResultWriter
from ..runlog import RunLog
from ..utils import KubeCommand, KubectlError
from . import apply_manifests, cleanup_namespace, ensure_namespace, kube_for, node_zones, wait_for_running

CATEGORY = "affinity"

MARKER_MANIFEST = "zone-marker.yaml"
AFFINITY_MANIFEST = "affinity-dependent-app.yaml"
ANTI_AFFINITY_MANIFEST = "anti-affinity-dependent-app.yaml"
HPA_MANIFEST = "hpa-dependent-app.yaml"
MARKER_SELECTOR = "app=desired-zone-for-affinity"
DEPENDENT_SELECTOR = "app=dependent-app"


def setup(config: SuiteConfig, log: RunLog):
    ensure_namespace(config, log)


def _marker_zone(kube: KubeCommand, config: SuiteConfig, log: RunLog) -> str:
    apply_manifests(config, log, MARKER_MANIFEST)
    if wait_for_running(kube, MARKER_SELECTOR, 1, config.rollout_timeout, log,
                        interval=config.poll_interval) < 1:
        return ""
    marker = active_running(kube.get_pods(label=MARKER_SELECTOR))[0]
    zone = node_zones(kube, [marker]).get(pod_node(marker), "")
    log.info(f"Zone marker {marker['metadata']['name']} is in zone {zone or '<none>'}")
    return zone


def _dependent_zones(kube: KubeCommand, config: SuiteConfig, log: RunLog, manifest: str):
    """Apply the dependent app and return the zones of its running pods."""
    apply_manifests(config, log, manifest, HPA_MANIFEST)
    wait_for_running(kube, DEPENDENT_SELECTOR, 1, config.rollout_timeout, log,
                     interval=config.poll_interval)
    log.info(f"=== Wait {config.schedule_wait:.0f}s for dependent pods to schedule ===")
    time.sleep(config.schedule_wait)
    pods = active_running(kube.get_pods(label=DEPENDENT_SELECTOR))
    return zones_for_pods(pods, node_zones(kube, pods))


def _remove_dependent(kube: KubeCommand, log: RunLog):
    for kind, name in (("hpa", "dependent-app-hpa"), ("deployment", "dependent-app")):
        try:
            kube.delete(kind, name, wait=True)
        except KubectlError as e:
            if not e.not_found:
                log.warn(f"Could not delete {kind}/{name}: {e}")


def test_aff_001(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Dependent pods share the zone-marker's zone."""
    kube = kube_for(config)
    writer.start_test("AFF-001", "Pod affinity keeps dependents in the marker zone", CATEGORY)

    marker_zone = _marker_zone(kube, config, log)
    if not marker_zone:
        writer.skip_test("zone marker did not start or its node has no zone label")
        return

    try:
        zones = _dependent_zones(kube, config, log, AFFINITY_MANIFEST)
    finally:
        _remove_dependent(kube, log)

    writer.add_evidence("marker_zone", marker_zone)
    writer.add_evidence("dependent_zones", zones)
    writer.assert_all_eq("dependent pods in marker zone", zones, marker_zone)
    writer.finish_test()


test_aff_001.test_id = "AFF-001"


def test_aff_002(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Anti-affinity dependent pods avoid the zone-marker's zone."""
    kube = kube_for(config)
    writer.start_test("AFF-002", "Pod anti-affinity keeps dependents out of the marker zone", CATEGORY)

    marker_zone = _marker_zone(kube, config, log)
    if not marker_zone:
        writer.skip_test("zone marker did not start or its node has no zone label")
        return

    try:
        zones = _dependent_zones(kube, config, log, ANTI_AFFINITY_MANIFEST)
    finally:
        _remove_dependent(kube, log)

    writer.add_evidence("marker_zone", marker_zone)
    writer.add_evidence("dependent_zones", zones)
    writer.assert_none_eq("dependent pods outside marker zone", zones, marker_zone)
    writer.finish_test()


test_aff_002.test_id = "AFF-002"


def teardown(config: SuiteConfig, log: RunLog):
    cleanup_namespace(config, log)
