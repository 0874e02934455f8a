"""Topology Spread Tests (TOPO-001).

Lets an HPA scale a CPU-burning StatefulSet to its maximum and checks the
zone topology spread constraint held while it grew.
"""

from ..config import SuiteConfig
from ..manifest import find_hpa_max_replicas
from ..placement import zone_distribution, zone_skew
from ..result_writer import ResultWriter
from ..runlog import RunLog
from . import apply_manifests, cleanup_namespace, ensure_namespace, kube_for, node_zones, wait_for_running

CATEGORY = "topology"

STATEFULSET_MANIFEST = "topology-statefulset.yaml"
HPA_MANIFEST = "hpa-statefulset.yaml"
SELECTOR = "app=myapp"
MAX_SKEW = 1


def setup(config: SuiteConfig, log: RunLog):
    ensure_namespace(config, log)


def test_topo_001(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """HPA scales the StatefulSet to maxReplicas with zone skew <= 1."""
    kube = kube_for(config)
    writer.start_test("TOPO-001", "Zone spread holds at HPA maxReplicas", CATEGORY)

    applied = apply_manifests(config, log, STATEFULSET_MANIFEST, HPA_MANIFEST)
    max_replicas = find_hpa_max_replicas(applied[HPA_MANIFEST])

    log.info(f"=== Wait for HPA to trigger scaling (maxReplicas: {max_replicas}) ===")
    running = wait_for_running(kube, SELECTOR, max_replicas, config.scale_timeout, log,
                               interval=config.poll_interval)
    writer.assert_gte("HPA scaled to maxReplicas", running, max_replicas)

    pods = kube.get_pods(label=SELECTOR)
    zones = node_zones(kube, pods)
    distribution = zone_distribution(pods, zones)
    skew = zone_skew(distribution)

    log.info("Zone Distribution Analysis:")
    log.info(f"Total Pods: {len(pods)}  Zones Used: {len(distribution)}  Skew: {skew}")
    for zone, count in sorted(distribution.items()):
        log.info(f"- {zone or '<no zone label>'}: {count}")

    writer.add_evidence("zone_distribution", distribution)
    writer.assert_lte("max zone skew", skew, MAX_SKEW)
    writer.finish_test()


test_topo_001.test_id = "TOPO-001"


def teardown(config: SuiteConfig, log: RunLog):
    cleanup_namespace(config, log)
