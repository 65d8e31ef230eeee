"""Last-seen state kept by the watchers to evaluate change predicates."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

from deploy_annotator.contracts.models import WorkloadIdentity, WorkloadSnapshot


@dataclass(slots=True)
class WatchCache:
    """Previous snapshot per workload and previous labels per namespace."""

    workloads: dict[WorkloadIdentity, WorkloadSnapshot] = field(default_factory=dict)
    namespaces: dict[str, dict[str, str]] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock)

    def observe_workload(self, snapshot: WorkloadSnapshot) -> WorkloadSnapshot | None:
        """Store ``snapshot`` and return the one it replaces."""
        with self._lock:
            previous = self.workloads.get(snapshot.identity)
            self.workloads[snapshot.identity] = snapshot
            return previous

    def forget_workload(self, identity: WorkloadIdentity) -> WorkloadSnapshot | None:
        with self._lock:
            return self.workloads.pop(identity, None)

    def observe_namespace(self, namespace: str, labels: dict[str, str]) -> dict[str, str] | None:
        with self._lock:
            previous = self.namespaces.get(namespace)
            self.namespaces[namespace] = dict(labels)
            return previous

    def forget_namespace(self, namespace: str) -> None:
        with self._lock:
            self.namespaces.pop(namespace, None)
