"""Read-only view of workloads and their pods.

The monitor only ever calls get_workload_status() and list_pods(); anything
implementing those two methods can stand in for the cluster.
"""

from typing import Any, Dict, List, Optional, Protocol

from .models import Budget, BudgetPolicy, PodPhase, PodSnapshot, WorkloadRef, WorkloadSnapshot
from .utils import KubeCommand

WORKLOAD_KINDS = ("deployment", "statefulset")

# apps/v1 defaults when the strategy leaves a field unset
DEPLOYMENT_DEFAULT_SURGE = "25%"
DEPLOYMENT_DEFAULT_UNAVAILABLE = "25%"
STATEFULSET_DEFAULT_UNAVAILABLE = 1

# Raised while reading a malformed object; surfaced as ObservationError
DECODE_ERRORS = (TypeError, ValueError, AttributeError, KeyError)


class ObservationError(Exception):
    """The cluster answered, but not with something we could read."""


class ObservationService(Protocol):
    def get_workload_status(self, ref: WorkloadRef, timeout: Optional[float] = None) -> WorkloadSnapshot:
        ...

    def list_pods(self, ref: WorkloadRef, timeout: Optional[float] = None) -> List[PodSnapshot]:
        ...


def normalize_kind(kind: str) -> str:
    lowered = kind.lower()
    aliases = {"deploy": "deployment", "sts": "statefulset"}
    lowered = aliases.get(lowered, lowered)
    if lowered.endswith("s") and lowered[:-1] in WORKLOAD_KINDS:
        lowered = lowered[:-1]
    if lowered not in WORKLOAD_KINDS:
        raise ValueError(f"unsupported workload kind: {kind}")
    return lowered


def snapshot_from_workload(obj: Dict[str, Any]) -> WorkloadSnapshot:
    """Decode a Deployment or StatefulSet object into replica counters."""
    spec = obj.get("spec") or {}
    status = obj.get("status") or {}
    if "replicas" not in spec:
        raise ObservationError(f"{obj.get('kind', 'workload')} has no spec.replicas")
    return WorkloadSnapshot(
        desired_replicas=int(spec["replicas"]),
        updated_replicas=int(status.get("updatedReplicas") or 0),
        total_replicas=int(status.get("replicas") or 0),
        available_replicas=int(status.get("availableReplicas") or 0),
    )


def is_pod_ready(pod: Dict[str, Any]) -> bool:
    for cond in (pod.get("status") or {}).get("conditions") or []:
        if cond.get("type") == "Ready":
            return cond.get("status") == "True"
    return False


def snapshot_from_pod(pod: Dict[str, Any]) -> PodSnapshot:
    metadata = pod.get("metadata") or {}
    return PodSnapshot(
        name=metadata.get("name", ""),
        is_terminating=metadata.get("deletionTimestamp") is not None,
        phase=PodPhase.from_status((pod.get("status") or {}).get("phase")),
        is_ready=is_pod_ready(pod),
    )


def selector_from_workload(obj: Dict[str, Any]) -> str:
    """Render spec.selector.matchLabels as a kubectl label selector."""
    match_labels = (obj.get("spec", {}).get("selector") or {}).get("matchLabels") or {}
    if not match_labels:
        raise ObservationError("workload selector has no matchLabels")
    return ",".join(f"{k}={v}" for k, v in sorted(match_labels.items()))


def ref_from_workload(obj: Dict[str, Any]) -> WorkloadRef:
    metadata = obj.get("metadata") or {}
    return WorkloadRef(
        kind=normalize_kind(obj.get("kind", "")),
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        selector=selector_from_workload(obj),
    )


def policy_from_strategy(obj: Dict[str, Any]) -> BudgetPolicy:
    """Read the declared rolling-update budget off a workload object."""
    kind = normalize_kind(obj.get("kind", ""))
    spec = obj.get("spec") or {}

    if kind == "deployment":
        strategy = spec.get("strategy") or {}
        if strategy.get("type", "RollingUpdate") != "RollingUpdate":
            raise ObservationError(f"Deployment is not using RollingUpdate strategy: {strategy.get('type')}")
        rolling = strategy.get("rollingUpdate") or {}
        return BudgetPolicy(
            max_surge=Budget.parse(rolling.get("maxSurge"), DEPLOYMENT_DEFAULT_SURGE),
            max_unavailable=Budget.parse(rolling.get("maxUnavailable"), DEPLOYMENT_DEFAULT_UNAVAILABLE),
        )

    strategy = spec.get("updateStrategy") or {}
    if strategy.get("type", "RollingUpdate") != "RollingUpdate":
        raise ObservationError(f"StatefulSet is not using RollingUpdate strategy: {strategy.get('type')}")
    rolling = strategy.get("rollingUpdate") or {}
    return BudgetPolicy(
        max_surge=Budget(0),
        max_unavailable=Budget.parse(rolling.get("maxUnavailable"), STATEFULSET_DEFAULT_UNAVAILABLE),
    )


class KubectlObserver:
    """ObservationService backed by kubectl."""

    def __init__(self, context: Optional[str] = None, kubeconfig: Optional[str] = None,
                 call_timeout: float = 30):
        self.context = context
        self.kubeconfig = kubeconfig
        self.call_timeout = call_timeout

    def _kube(self, namespace: str) -> KubeCommand:
        return KubeCommand(namespace, context=self.context, kubeconfig=self.kubeconfig,
                           timeout=self.call_timeout)

    def get_workload(self, ref: WorkloadRef, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._kube(ref.namespace).get_workload(ref.kind, ref.name, timeout=timeout)

    def get_workload_status(self, ref: WorkloadRef, timeout: Optional[float] = None) -> WorkloadSnapshot:
        obj = self.get_workload(ref, timeout=timeout)
        try:
            return snapshot_from_workload(obj)
        except DECODE_ERRORS as e:
            raise ObservationError(f"cannot decode {ref}: {e!r}") from e

    def list_pods(self, ref: WorkloadRef, timeout: Optional[float] = None) -> List[PodSnapshot]:
        kube = self._kube(ref.namespace)
        try:
            return [snapshot_from_pod(pod) for pod in kube.get_pods(label=ref.selector, timeout=timeout)]
        except DECODE_ERRORS as e:
            raise ObservationError(f"cannot decode pods of {ref}: {e!r}") from e
