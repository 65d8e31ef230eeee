"""In-memory stand-in for the cluster API used by demos and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock

from deploy_annotator.contracts.models import (
    ChildController,
    WorkloadIdentity,
    WorkloadSnapshot,
)
from deploy_annotator.contracts.types import WorkloadKind
from deploy_annotator.kube.base import BaseWorkloadAdapter, MetadataConflictError, StoreError


@dataclass(slots=True)
class InMemoryCluster:
    """Namespaces, workloads and child controllers keyed by identity.

    Every write bumps the object's resourceVersion, so metadata patches are
    subject to the same optimistic concurrency checks as the real API.
    """

    namespaces: dict[str, dict[str, str]] = field(default_factory=dict)
    workloads: dict[WorkloadIdentity, WorkloadSnapshot] = field(default_factory=dict)
    children: dict[WorkloadIdentity, list[ChildController]] = field(default_factory=dict)
    conflicts: int = 0
    failures: int = 0
    _revision: int = 0
    _lock: RLock = field(default_factory=RLock)

    def set_namespace(self, namespace: str, labels: dict[str, str] | None = None) -> None:
        with self._lock:
            self.namespaces[namespace] = dict(labels or {})

    def labels(self, namespace: str) -> dict[str, str] | None:
        with self._lock:
            labels = self.namespaces.get(namespace)
            return dict(labels) if labels is not None else None

    def apply(self, snapshot: WorkloadSnapshot) -> WorkloadSnapshot:
        """Create or update a workload, keeping metadata the caller did not set."""
        with self._lock:
            existing = self.workloads.get(snapshot.identity)
            metadata = dict(existing.metadata) if existing else {}
            metadata.update(snapshot.metadata)
            stored = snapshot.model_copy(
                update={"metadata": metadata, "resource_version": self._bump()}
            )
            self.workloads[snapshot.identity] = stored
            return stored.model_copy(deep=True)

    def delete(self, identity: WorkloadIdentity) -> WorkloadSnapshot | None:
        with self._lock:
            self.children.pop(identity, None)
            return self.workloads.pop(identity, None)

    def add_child(self, identity: WorkloadIdentity, child: ChildController) -> None:
        with self._lock:
            self.children.setdefault(identity, []).append(child)

    def get(self, identity: WorkloadIdentity) -> WorkloadSnapshot | None:
        with self._lock:
            snapshot = self.workloads.get(identity)
            return snapshot.model_copy(deep=True) if snapshot else None

    def write_metadata(
        self,
        identity: WorkloadIdentity,
        annotations: dict[str, str | None],
        resource_version: str | None,
    ) -> None:
        with self._lock:
            if self.failures > 0:
                self.failures -= 1
                raise StoreError(f"patch {identity.key}: 500 Internal Server Error")
            current = self.workloads.get(identity)
            if current is None:
                raise StoreError(f"patch {identity.key}: 404 Not Found")
            if self.conflicts > 0:
                self.conflicts -= 1
                self._bump()
                raise MetadataConflictError(f"conflict on {identity.key}")
            if resource_version and resource_version != current.resource_version:
                raise MetadataConflictError(f"conflict on {identity.key}")
            metadata = dict(current.metadata)
            for key, value in annotations.items():
                if value is None:
                    metadata.pop(key, None)
                else:
                    metadata[key] = value
            self.workloads[identity] = current.model_copy(
                update={"metadata": metadata, "resource_version": self._bump()}
            )

    def adapter(self, kind: WorkloadKind) -> InMemoryWorkloadAdapter:
        return InMemoryWorkloadAdapter(cluster=self, kind=kind)

    def _bump(self) -> str:
        self._revision += 1
        return str(self._revision)


class InMemoryWorkloadAdapter(BaseWorkloadAdapter):
    """WorkloadAdapter over an InMemoryCluster for one kind."""

    def __init__(self, cluster: InMemoryCluster, kind: WorkloadKind) -> None:
        self.cluster = cluster
        self.kind = kind

    def fetch(self, identity: WorkloadIdentity) -> WorkloadSnapshot | None:
        return self.cluster.get(identity)

    def list_in_namespace(self, namespace: str) -> list[WorkloadSnapshot]:
        with self.cluster._lock:
            return [
                snapshot.model_copy(deep=True)
                for identity, snapshot in self.cluster.workloads.items()
                if identity.kind is self.kind and identity.namespace == namespace
            ]

    def children(self, snapshot: WorkloadSnapshot) -> list[ChildController]:
        with self.cluster._lock:
            return list(self.cluster.children.get(snapshot.identity, []))

    def _write_metadata(
        self,
        identity: WorkloadIdentity,
        annotations: dict[str, str | None],
        resource_version: str | None,
    ) -> None:
        self.cluster.write_metadata(identity, annotations, resource_version)
