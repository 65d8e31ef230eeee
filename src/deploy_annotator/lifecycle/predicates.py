"""Change-detection predicates gating re-triggering.

These compare two snapshots of the same object and deliberately ignore the
workload's metadata map, so a successful patch of the persisted lifecycle
state never re-triggers reconciliation on its own.
"""

from __future__ import annotations

from collections.abc import Mapping

from deploy_annotator.contracts.models import WorkloadSnapshot
from deploy_annotator.lifecycle.gate import TrackingGate


def spec_changed(old: WorkloadSnapshot, new: WorkloadSnapshot) -> bool:
    return old.generation != new.generation or old.images != new.images


def readiness_changed(old: WorkloadSnapshot, new: WorkloadSnapshot) -> bool:
    return (
        old.observed_generation != new.observed_generation
        or old.desired_replicas != new.desired_replicas
        or old.ready_replicas != new.ready_replicas
    )


def rollout_relevant_change(old: WorkloadSnapshot | None, new: WorkloadSnapshot) -> bool:
    """True when an update should reach the lifecycle state machine."""
    if old is None:
        return True
    return spec_changed(old, new) or readiness_changed(old, new)


def namespace_tracking_changed(
    gate: TrackingGate,
    previous: Mapping[str, str] | None,
    current: Mapping[str, str] | None,
    *,
    created: bool = False,
) -> bool:
    """True when a namespace event should fan out to its workloads.

    A newly created namespace only matters when it arrives already enabled.
    """
    if created:
        return gate.is_tracked(current)
    return gate.toggled(previous, current)
