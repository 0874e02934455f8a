"""Rollout-policy monitor.

Samples a workload while a rolling update is in flight and checks every
sample against the declared surge and unavailability budget. A run ends in
exactly one of: SUCCESS (the workload converged), BUDGET_VIOLATION (one
sample broke the budget), TIMEOUT (the deadline passed first) or ERROR (an
unexpected fault inside the loop).

Observation failures are retried until the deadline and never advance a
budget check. A budget violation is never retried.
"""

import time
from typing import Callable, List, Optional

from .budget import MonitorPreconditionError, check_allowance, resolve_policy, validate_selector
from .classifier import classify_pods, describe_pods, format_counts
from .models import (BudgetPolicy, BudgetViolation, OutcomeStatus, PodCounts, PodSnapshot,
                     ResolvedBudget, RolloutOutcome, ViolationKind, WorkloadRef, WorkloadSnapshot)
from .observation import ObservationError, ObservationService
from .runlog import RunLog
from .utils import KubectlError

TRANSIENT_ERRORS = (KubectlError, ObservationError, OSError)

# Floor for one observation call when a sample starts with less than this
# left. No sample starts at or past the deadline, so a run overruns it by at
# most this much per call still in flight.
MIN_CALL_TIMEOUT = 1.0


class _RunState:
    """Counters owned by a single run."""

    def __init__(self):
        self.samples = 0
        self.transient_errors = 0
        self.min_observed_available: Optional[int] = None
        self.last_counts: Optional[PodCounts] = None

    def observe_available(self, available: int):
        if self.min_observed_available is None or available < self.min_observed_available:
            self.min_observed_available = available


def evaluate_budget(counts: PodCounts, desired: int, resolved: ResolvedBudget,
                    min_available: Optional[int] = None) -> Optional[BudgetViolation]:
    """Return the first budget breach in one sample, or None."""
    surge = counts.total - desired
    if surge > resolved.max_surge:
        return BudgetViolation(ViolationKind.SURGE, surge, resolved.max_surge, counts)
    if counts.unavailable > resolved.max_unavailable:
        return BudgetViolation(ViolationKind.UNAVAILABLE, counts.unavailable, resolved.max_unavailable, counts)
    if min_available is not None and counts.ready < min_available:
        return BudgetViolation(ViolationKind.MIN_AVAILABLE, counts.ready, min_available, counts)
    return None


class RolloutMonitor:
    """Polls one workload until its rollout succeeds, breaks budget, or times out.

    The instance only holds collaborators; each run() keeps its own state, so
    one monitor can serve several workloads from separate threads.
    """

    def __init__(self, observer: ObservationService, log: Optional[RunLog] = None,
                 call_timeout: float = 30.0,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.observer = observer
        self.log = log or RunLog("rollout-monitor")
        self.call_timeout = call_timeout
        self.clock = clock
        self.sleep = sleep

    def run(self, ref: WorkloadRef, desired_replicas: int, policy: BudgetPolicy,
            poll_interval: float, deadline: float,
            min_available: Optional[int] = None) -> RolloutOutcome:
        """Monitor a rollout the caller has already triggered.

        Args:
            ref: Workload and the label selector of its pods
            desired_replicas: Target replica count; budgets resolve against it once
            policy: maxSurge / maxUnavailable, absolute or percentage
            poll_interval: Seconds between samples
            deadline: Seconds from now after which the run resolves TIMEOUT
            min_available: Optional floor on ready pods checked at every sample

        Raises:
            MonitorPreconditionError: before the first poll, for arguments no
                rollout could satisfy
        """
        if poll_interval <= 0:
            raise MonitorPreconditionError(f"poll interval must be positive, got {poll_interval}")
        if deadline <= 0:
            raise MonitorPreconditionError(f"deadline must be positive, got {deadline}")
        if min_available is not None and min_available < 0:
            raise MonitorPreconditionError(f"min_available must be >= 0, got {min_available}")
        validate_selector(ref.selector)
        resolved = resolve_policy(policy, desired_replicas)
        check_allowance(resolved, policy, desired_replicas)

        self.log.info(f"=== Monitoring rollout of {ref} ===")
        self.log.info(f"  Replicas: {desired_replicas}  MaxSurge: {policy.max_surge} ({resolved.max_surge} pods)"
                      f"  MaxUnavailable: {policy.max_unavailable} ({resolved.max_unavailable} pods)")

        state = _RunState()
        started = self.clock()
        try:
            outcome = self._poll(ref, desired_replicas, policy, resolved, poll_interval,
                                 started + deadline, min_available, state)
        except Exception as e:
            self.log.error(f"Rollout monitor fault: {e!r}")
            outcome = RolloutOutcome(OutcomeStatus.ERROR, message=f"monitor fault: {e!r}")

        outcome.samples = state.samples
        outcome.transient_errors = state.transient_errors
        outcome.min_observed_available = state.min_observed_available
        outcome.last_counts = state.last_counts
        outcome.resolved = resolved
        outcome.elapsed_seconds = self.clock() - started
        self._report(outcome)
        return outcome

    def _call_timeout(self, expires: float) -> float:
        remaining = expires - self.clock()
        return max(min(self.call_timeout, remaining), MIN_CALL_TIMEOUT)

    def _poll(self, ref: WorkloadRef, desired: int, policy: BudgetPolicy, resolved: ResolvedBudget,
              poll_interval: float, expires: float, min_available: Optional[int],
              state: _RunState) -> RolloutOutcome:
        while True:
            state.samples += 1
            try:
                workload: WorkloadSnapshot = self.observer.get_workload_status(
                    ref, timeout=self._call_timeout(expires))
                pods: Optional[List[PodSnapshot]] = None
                if not workload.converged_at(desired):
                    pods = self.observer.list_pods(ref, timeout=self._call_timeout(expires))
            except TRANSIENT_ERRORS as e:
                state.transient_errors += 1
                self.log.warn(f"Sample {state.samples}: observation failed, retrying: {e}")
            else:
                if pods is None:
                    state.observe_available(workload.available_replicas)
                    return RolloutOutcome(
                        OutcomeStatus.SUCCESS,
                        message=f"rollout complete: {desired}/{desired} replicas updated and available",
                    )

                violation = self._sample(state, pods, desired, policy, resolved, min_available)
                if violation:
                    return RolloutOutcome(OutcomeStatus.BUDGET_VIOLATION, violation=violation,
                                          message=str(violation))

            now = self.clock()
            if now < expires:
                self.sleep(min(poll_interval, expires - now))
            if self.clock() >= expires:
                return RolloutOutcome(
                    OutcomeStatus.TIMEOUT,
                    message=f"rollout did not converge within the deadline ({state.samples} samples)",
                )

    def _sample(self, state: _RunState, pods: List[PodSnapshot], desired: int, policy: BudgetPolicy,
                resolved: ResolvedBudget, min_available: Optional[int]) -> Optional[BudgetViolation]:
        counts = classify_pods(pods)
        state.last_counts = counts
        state.observe_available(counts.ready)

        self.log.info(f"=== Sample checking rolling update status (attempt {state.samples}) ===")
        for label, name in describe_pods(pods):
            self.log.debug(f"[{label}] {name}")
        self.log.info(
            f"  Total Pods: {counts.total}  Surge Usage: {counts.total - desired}/{policy.max_surge}"
            f"  Unavailable: {counts.unavailable}/{policy.max_unavailable}  {format_counts(counts)}",
            sample=state.samples,
            ready=counts.ready,
            running_not_ready=counts.running_not_ready,
            pending=counts.pending,
            terminating=counts.terminating,
            total=counts.total,
        )
        return evaluate_budget(counts, desired, resolved, min_available)

    def _report(self, outcome: RolloutOutcome):
        if outcome.status == OutcomeStatus.SUCCESS:
            self.log.info(f"✓ {outcome.message} after {outcome.samples} sample(s)", outcome=outcome.to_dict())
        elif outcome.status == OutcomeStatus.TIMEOUT:
            self.log.error(f"⊘ {outcome.message}", outcome=outcome.to_dict())
        else:
            self.log.error(f"✗ {outcome.message}", outcome=outcome.to_dict())


def monitor_rollout(observer: ObservationService, ref: WorkloadRef, desired_replicas: int,
                    policy: BudgetPolicy, poll_interval: float, deadline: float,
                    min_available: Optional[int] = None, log: Optional[RunLog] = None,
                    call_timeout: float = 30.0) -> RolloutOutcome:
    """One-shot form of RolloutMonitor(...).run(...)."""
    monitor = RolloutMonitor(observer, log=log, call_timeout=call_timeout)
    return monitor.run(ref, desired_replicas, policy, poll_interval, deadline, min_available=min_available)
