"""Pod placement analysis: zone distribution, skew, and update triggers."""

import copy
from typing import Any, Dict, Iterable, List

ZONE_LABEL = "topology.kubernetes.io/zone"


def node_zone(node: Dict[str, Any]) -> str:
    return node.get("metadata", {}).get("labels", {}).get(ZONE_LABEL, "")


def pod_node(pod: Dict[str, Any]) -> str:
    return pod.get("spec", {}).get("nodeName", "")


def is_running(pod: Dict[str, Any]) -> bool:
    return pod.get("status", {}).get("phase") == "Running"


def is_terminating(pod: Dict[str, Any]) -> bool:
    return pod.get("metadata", {}).get("deletionTimestamp") is not None


def active_running(pods: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Running pods with no deletion requested."""
    return [p for p in pods if is_running(p) and not is_terminating(p)]


def zones_for_pods(pods: Iterable[Dict[str, Any]], node_zones: Dict[str, str]) -> List[str]:
    """Zone of each scheduled pod, in pod order. Unscheduled pods are skipped."""
    return [node_zones.get(pod_node(p), "") for p in pods if pod_node(p)]


def zone_distribution(pods: Iterable[Dict[str, Any]], node_zones: Dict[str, str]) -> Dict[str, int]:
    distribution: Dict[str, int] = {}
    for zone in zones_for_pods(pods, node_zones):
        distribution[zone] = distribution.get(zone, 0) + 1
    return distribution


def zone_skew(distribution: Dict[str, int]) -> int:
    """Max minus min pods per zone across the zones that hold pods."""
    if not distribution:
        return 0
    return max(distribution.values()) - min(distribution.values())


def bump_cpu_request(workload: Dict[str, Any], cpu: str = "100m") -> Dict[str, Any]:
    """Copy of a workload with the first container's CPU request changed.

    Changing the pod template is what triggers a rolling update.
    """
    updated = copy.deepcopy(workload)
    container = updated["spec"]["template"]["spec"]["containers"][0]
    container.setdefault("resources", {}).setdefault("requests", {})["cpu"] = cpu
    for key in ("resourceVersion", "uid", "creationTimestamp", "generation", "managedFields"):
        updated.get("metadata", {}).pop(key, None)
    updated.pop("status", None)
    return updated
