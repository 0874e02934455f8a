"""Rolling-update budget resolution.

Percentages resolve against the desired replica count: surge rounds up and
unavailability rounds down, the same fenceposts the Deployment controller
uses. Resolution happens once per monitor run.
"""

import re

from .models import Budget, BudgetPolicy, ResolvedBudget

# key=value or key!=value terms, comma separated; set-based selectors are
# accepted as-is by kubectl so only the term shape is checked here.
_SELECTOR_TERM = re.compile(
    r"^\s*!?[A-Za-z0-9]([A-Za-z0-9._/-]*[A-Za-z0-9])?\s*"
    r"((==?|!=)\s*[A-Za-z0-9._-]*|\s+(in|notin)\s*\([^)]*\))?\s*$"
)


class MonitorPreconditionError(ValueError):
    """Caller passed arguments no rollout could ever satisfy."""


def _scaled(budget: Budget, desired: int, round_up: bool) -> int:
    if not budget.is_percent:
        return budget.value
    scaled = budget.value * desired
    if round_up:
        return (scaled + 99) // 100
    return scaled // 100


def resolve_surge(budget: Budget, desired: int) -> int:
    """Concrete surge ceiling; percentages round up."""
    return _scaled(budget, desired, round_up=True)


def resolve_unavailable(budget: Budget, desired: int) -> int:
    """Concrete unavailability ceiling; percentages round down."""
    return _scaled(budget, desired, round_up=False)


def resolve_policy(policy: BudgetPolicy, desired: int) -> ResolvedBudget:
    if desired < 0:
        raise MonitorPreconditionError(f"desired replicas must be >= 0, got {desired}")
    return ResolvedBudget(
        max_surge=resolve_surge(policy.max_surge, desired),
        max_unavailable=resolve_unavailable(policy.max_unavailable, desired),
    )


def check_allowance(resolved: ResolvedBudget, policy: BudgetPolicy, desired: int) -> None:
    """Reject a policy that leaves the controller no room to move."""
    if desired > 0 and resolved.max_surge == 0 and resolved.max_unavailable == 0:
        raise MonitorPreconditionError(
            f"{policy} resolves to zero surge and zero unavailability "
            f"for {desired} replicas; the rollout can never progress"
        )


def validate_selector(selector: str) -> None:
    if not selector or not selector.strip():
        raise MonitorPreconditionError("pod selector must not be empty")
    for term in re.split(r",(?![^()]*\))", selector):
        if not _SELECTOR_TERM.match(term):
            raise MonitorPreconditionError(f"malformed label selector term {term!r} in {selector!r}")
