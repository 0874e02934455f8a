"""Cluster Connectivity Tests (CONN-001 through CONN-003).

Sanity checks run before any workload is applied: the API answers, nodes
are Ready, and the suite namespace can be created.
"""

from ..config import SuiteConfig
from ..result_writer import ResultWriter
from ..runlog import RunLog
from ..utils import NamespaceHelper
from . import cleanup_namespace, kube_for

CATEGORY = "connectivity"


def node_ready(node: dict) -> bool:
    for cond in node.get("status", {}).get("conditions") or []:
        if cond.get("type") == "Ready":
            return cond.get("status") == "True"
    return False


def test_conn_001(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Cluster nodes can be listed."""
    kube = kube_for(config)
    writer.start_test("CONN-001", "List cluster nodes", CATEGORY)

    log.info("=== Listing cluster nodes ===")
    nodes = kube.get_nodes()
    names = [n["metadata"]["name"] for n in nodes]
    log.info(f"Discovered {len(names)} nodes:")
    for i, name in enumerate(names, 1):
        log.info(f"{i}. {name}")

    writer.assert_not_empty("cluster has nodes", names)
    writer.add_evidence("nodes", names)
    writer.finish_test()


test_conn_001.test_id = "CONN-001"


def test_conn_002(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Every node reports Ready."""
    kube = kube_for(config)
    writer.start_test("CONN-002", "All nodes Ready", CATEGORY)

    log.info("=== Checking node readiness ===")
    readiness = {}
    for node in kube.get_nodes():
        name = node["metadata"]["name"]
        readiness[name] = node_ready(node)
        log.info(f"Node {name:<30}: {'Ready' if readiness[name] else 'Not Ready'}")

    writer.assert_all_eq("all nodes Ready", list(readiness.values()), True)
    writer.add_evidence("node_readiness", readiness)
    writer.finish_test()


test_conn_002.test_id = "CONN-002"


def test_conn_003(config: SuiteConfig, writer: ResultWriter, log: RunLog):
    """Suite namespace exists after setup."""
    helper = NamespaceHelper(kube_for(config), log)
    writer.start_test("CONN-003", "Test namespace exists", CATEGORY)

    created = helper.ensure()
    writer.assert_eq(f"namespace {config.namespace} exists", helper.exists(), True)
    writer.add_evidence("namespace", {"name": config.namespace, "created": created})
    writer.finish_test()


test_conn_003.test_id = "CONN-003"


def teardown(config: SuiteConfig, log: RunLog):
    cleanup_namespace(config, log)
