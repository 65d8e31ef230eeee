"""Steady-state readiness predicate."""

from __future__ import annotations

from deploy_annotator.contracts.models import WorkloadSnapshot


def is_ready(snapshot: WorkloadSnapshot) -> bool:
    return (
        snapshot.ready_replicas > 0
        and snapshot.ready_replicas == snapshot.desired_replicas
        and snapshot.observed_generation == snapshot.generation
    )
