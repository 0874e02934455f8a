"""Pod lifecycle classification for rollout sampling."""

from typing import Iterable, Iterator, Optional, Tuple

from .models import PodClassification, PodCounts, PodPhase, PodSnapshot


def classify_pod(pod: PodSnapshot) -> Optional[PodClassification]:
    """Classify one pod.

    Terminating wins over phase. A pod whose phase is neither Pending nor
    Running (Succeeded, Failed, Unknown) gets no classification and is only
    reflected in PodCounts.total.
    """
    if pod.is_terminating:
        return PodClassification.TERMINATING
    if pod.phase == PodPhase.PENDING:
        return PodClassification.PENDING
    if pod.phase == PodPhase.RUNNING:
        return PodClassification.READY if pod.is_ready else PodClassification.RUNNING_NOT_READY
    return None


def classify_pods(pods: Iterable[PodSnapshot]) -> PodCounts:
    """Count pods per classification."""
    ready = running_not_ready = pending = terminating = total = 0
    for pod in pods:
        total += 1
        label = classify_pod(pod)
        if label == PodClassification.READY:
            ready += 1
        elif label == PodClassification.RUNNING_NOT_READY:
            running_not_ready += 1
        elif label == PodClassification.PENDING:
            pending += 1
        elif label == PodClassification.TERMINATING:
            terminating += 1
    return PodCounts(
        ready=ready,
        running_not_ready=running_not_ready,
        pending=pending,
        terminating=terminating,
        total=total,
    )


def describe_pods(pods: Iterable[PodSnapshot]) -> Iterator[Tuple[str, str]]:
    """Yield (label, pod name) in input order for sample logging."""
    for pod in pods:
        label = classify_pod(pod)
        yield (label.value if label else "Unclassified", pod.name)


def format_counts(counts: PodCounts) -> str:
    return (f"Ready: {counts.ready} | RunningNotReady: {counts.running_not_ready} | "
            f"Pending: {counts.pending} | Terminating: {counts.terminating}")
