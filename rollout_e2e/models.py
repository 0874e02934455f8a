"""Data models for workload observation and rollout outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


class PodPhase(str, Enum):
    """Pod phase as far as rollout accounting cares."""
    PENDING = "Pending"
    RUNNING = "Running"
    OTHER = "Other"

    @classmethod
    def from_status(cls, phase: Optional[str]) -> "PodPhase":
        if phase == "Pending":
            return cls.PENDING
        if phase == "Running":
            return cls.RUNNING
        return cls.OTHER


class PodClassification(str, Enum):
    READY = "Ready"
    RUNNING_NOT_READY = "RunningNotReady"
    PENDING = "Pending"
    TERMINATING = "Terminating"


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    BUDGET_VIOLATION = "budget_violation"
    TIMEOUT = "timeout"
    ERROR = "error"


class ViolationKind(str, Enum):
    SURGE = "surge"
    UNAVAILABLE = "unavailable"
    MIN_AVAILABLE = "min_available"


@dataclass(frozen=True)
class WorkloadRef:
    """Identifies a Deployment or StatefulSet and the selector for its pods."""
    kind: str  # "deployment", "statefulset"
    name: str
    namespace: str
    selector: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.name} (ns={self.namespace}, selector={self.selector})"


@dataclass(frozen=True)
class WorkloadSnapshot:
    """Workload replica counters captured in one poll."""
    desired_replicas: int
    updated_replicas: int
    total_replicas: int
    available_replicas: int

    def converged_at(self, desired: int) -> bool:
        """Every replica is updated and available, with no extras left over."""
        return (self.updated_replicas == desired
                and self.total_replicas == desired
                and self.available_replicas == desired)


@dataclass(frozen=True)
class PodSnapshot:
    """One pod as seen in one poll. is_ready only matters when RUNNING."""
    name: str
    is_terminating: bool
    phase: PodPhase
    is_ready: bool = False


@dataclass(frozen=True)
class PodCounts:
    """Aggregate classifier output.

    total is the number of pods observed and may exceed the sum of the
    named buckets when a pod reports an unrecognized phase.
    """
    ready: int = 0
    running_not_ready: int = 0
    pending: int = 0
    terminating: int = 0
    total: int = 0

    @property
    def unavailable(self) -> int:
        return self.terminating + self.pending + self.running_not_ready

    @property
    def classified(self) -> int:
        return self.ready + self.unavailable


@dataclass(frozen=True)
class Budget:
    """Absolute pod count or percentage of desired replicas."""
    value: int
    is_percent: bool = False

    @classmethod
    def parse(cls, raw: Union["Budget", int, str, None], default: Union[int, str] = 0) -> "Budget":
        """Parse 1, "1" or "25%" the way the apps/v1 IntOrString fields read."""
        if isinstance(raw, Budget):
            return raw
        if raw is None:
            raw = default
        if isinstance(raw, bool):
            raise ValueError(f"invalid budget value: {raw!r}")
        if isinstance(raw, int):
            if raw < 0:
                raise ValueError(f"budget must be non-negative, got {raw}")
            return cls(raw, False)

        text = str(raw).strip()
        is_percent = text.endswith("%")
        number = text[:-1].strip() if is_percent else text
        if not number.isdigit():
            raise ValueError(f"invalid budget value: {raw!r}")
        return cls(int(number), is_percent)

    def __str__(self) -> str:
        return f"{self.value}%" if self.is_percent else str(self.value)


@dataclass(frozen=True)
class BudgetPolicy:
    max_surge: Budget
    max_unavailable: Budget

    @classmethod
    def of(cls, max_surge: Union[Budget, int, str], max_unavailable: Union[Budget, int, str]) -> "BudgetPolicy":
        return cls(Budget.parse(max_surge), Budget.parse(max_unavailable))

    def __str__(self) -> str:
        return f"maxSurge={self.max_surge} maxUnavailable={self.max_unavailable}"


@dataclass(frozen=True)
class ResolvedBudget:
    """Concrete pod ceilings for one monitor run."""
    max_surge: int
    max_unavailable: int


@dataclass(frozen=True)
class BudgetViolation:
    kind: ViolationKind
    observed: int
    allowed: int
    counts: PodCounts = field(default_factory=PodCounts)

    def __str__(self) -> str:
        if self.kind == ViolationKind.MIN_AVAILABLE:
            return f"ready pods {self.observed} < required minimum {self.allowed}"
        label = "maxSurge" if self.kind == ViolationKind.SURGE else "maxUnavailable"
        return f"{label} violation: {self.observed} > {self.allowed}"


@dataclass
class RolloutOutcome:
    """Terminal result of one monitor run."""
    status: OutcomeStatus
    violation: Optional[BudgetViolation] = None
    message: str = ""
    samples: int = 0
    transient_errors: int = 0
    min_observed_available: Optional[int] = None
    last_counts: Optional[PodCounts] = None
    resolved: Optional[ResolvedBudget] = None
    elapsed_seconds: float = 0.0

    @property
    def passed(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status.value,
            "message": self.message,
            "samples": self.samples,
            "transient_errors": self.transient_errors,
            "min_observed_available": self.min_observed_available,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
        }
        if self.violation:
            data["violation"] = {
                "kind": self.violation.kind.value,
                "observed": self.violation.observed,
                "allowed": self.violation.allowed,
            }
        if self.last_counts:
            data["last_counts"] = {
                "ready": self.last_counts.ready,
                "running_not_ready": self.last_counts.running_not_ready,
                "pending": self.last_counts.pending,
                "terminating": self.last_counts.terminating,
                "total": self.last_counts.total,
            }
        if self.resolved:
            data["resolved"] = {
                "max_surge": self.resolved.max_surge,
                "max_unavailable": self.resolved.max_unavailable,
            }
        return data
