"""Kubernetes rollout-policy e2e suite."""

from .models import (Budget, BudgetPolicy, BudgetViolation, OutcomeStatus, PodClassification,
                     PodCounts, PodPhase, PodSnapshot, RolloutOutcome, WorkloadRef, WorkloadSnapshot)
from .monitor import RolloutMonitor, monitor_rollout

__version__ = "1.0.0"
