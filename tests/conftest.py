"""Shared fixtures: a fake clock and a scripted observation service."""

from typing import List, Optional

import pytest

from rollout_e2e.models import PodPhase, PodSnapshot, WorkloadRef, WorkloadSnapshot
from rollout_e2e.runlog import LogSink, RunLog


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeObserver:
    """Replays one scripted step per poll.

    A step is either an exception instance (raised from get_workload_status)
    or a (WorkloadSnapshot, pods) tuple, where pods may itself be an exception
    raised from list_pods. The last step repeats once the script runs out.
    """

    def __init__(self, steps):
        self.steps = list(steps)
        self.calls = 0
        self.timeouts: List[Optional[float]] = []
        self._pods: List[PodSnapshot] = []

    def _next(self):
        step = self.steps[min(self.calls, len(self.steps) - 1)]
        self.calls += 1
        return step

    def get_workload_status(self, ref, timeout=None):
        self.timeouts.append(timeout)
        step = self._next()
        if isinstance(step, Exception):
            raise step
        workload, self._pods = step
        return workload

    def list_pods(self, ref, timeout=None):
        self.timeouts.append(timeout)
        if isinstance(self._pods, Exception):
            raise self._pods
        return list(self._pods)


def make_pods(ready=0, running_not_ready=0, pending=0, terminating=0, failed=0) -> List[PodSnapshot]:
    pods = []
    pods += [PodSnapshot(f"ready-{i}", False, PodPhase.RUNNING, True) for i in range(ready)]
    pods += [PodSnapshot(f"starting-{i}", False, PodPhase.RUNNING, False) for i in range(running_not_ready)]
    pods += [PodSnapshot(f"pending-{i}", False, PodPhase.PENDING) for i in range(pending)]
    pods += [PodSnapshot(f"old-{i}", True, PodPhase.RUNNING, True) for i in range(terminating)]
    pods += [PodSnapshot(f"failed-{i}", False, PodPhase.OTHER) for i in range(failed)]
    return pods


def workload(desired=4, updated=0, total=None, available=None) -> WorkloadSnapshot:
    return WorkloadSnapshot(
        desired_replicas=desired,
        updated_replicas=updated,
        total_replicas=desired if total is None else total,
        available_replicas=desired if available is None else available,
    )


def converged(desired=4) -> WorkloadSnapshot:
    return WorkloadSnapshot(desired, desired, desired, desired)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return LogSink()


@pytest.fixture
def log(sink):
    return RunLog("test", sink, echo=False)


@pytest.fixture
def ref():
    return WorkloadRef(kind="deployment", name="app", namespace="test-ns", selector="app=app")
