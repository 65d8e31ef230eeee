"""Fixture data for demo scenarios."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from threading import Lock

from deploy_annotator.contracts.models import ChildController, WorkloadIdentity, WorkloadSnapshot
from deploy_annotator.contracts.types import WorkloadKind

DEMO_NAMESPACE = "shop"
TRACKING_LABELS = {"deployment-annotator": "enabled"}
EPOCH = datetime(2025, 1, 17, 9, 0, tzinfo=timezone.utc)


class SteppingClock:
    """Deterministic clock advancing a fixed step on every read."""

    def __init__(self, start: datetime = EPOCH, step: timedelta = timedelta(minutes=1)) -> None:
        self._current = start
        self._step = step
        self._lock = Lock()

    def __call__(self) -> datetime:
        with self._lock:
            self._current += self._step
            return self._current


def identity(
    name: str, kind: WorkloadKind = WorkloadKind.DEPLOYMENT, namespace: str = DEMO_NAMESPACE
) -> WorkloadIdentity:
    return WorkloadIdentity(namespace=namespace, name=name, kind=kind)


def workload(
    name: str,
    image: str,
    *,
    kind: WorkloadKind = WorkloadKind.DEPLOYMENT,
    namespace: str = DEMO_NAMESPACE,
    generation: int = 1,
    observed_generation: int = 0,
    replicas: int = 2,
    ready: int = 0,
) -> WorkloadSnapshot:
    """A workload snapshot with a stable uid derived from its name."""
    return WorkloadSnapshot(
        identity=identity(name, kind, namespace),
        uid=f"uid-{namespace}-{name}",
        generation=generation,
        observed_generation=observed_generation,
        desired_replicas=replicas,
        ready_replicas=ready,
        images=[image],
        selector={"app": name},
    )


def rolled_out(snapshot: WorkloadSnapshot) -> WorkloadSnapshot:
    """The same workload once every replica of its generation is ready."""
    return snapshot.model_copy(
        update={
            "observed_generation": snapshot.generation,
            "ready_replicas": snapshot.desired_replicas,
            "metadata": {},
        }
    )


def updated(snapshot: WorkloadSnapshot, image: str) -> WorkloadSnapshot:
    """A new spec generation running ``image``, not yet observed."""
    return snapshot.model_copy(
        update={"generation": snapshot.generation + 1, "images": [image], "metadata": {}}
    )


def replica_set(owner: WorkloadSnapshot, template_hash: str, offset_minutes: int) -> ChildController:
    return ChildController(
        name=f"{owner.identity.name}-{template_hash}",
        owner_uid=owner.uid,
        created_at=EPOCH + timedelta(minutes=offset_minutes),
        template_hash=template_hash,
        images=list(owner.images),
    )
