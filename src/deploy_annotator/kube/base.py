"""Per-kind workload adapters and the metadata store contract."""

from __future__ import annotations

import logging
from typing import Protocol

from deploy_annotator.contracts.models import (
    ChildController,
    WorkloadIdentity,
    WorkloadSnapshot,
)
from deploy_annotator.contracts.types import WorkloadKind
from deploy_annotator.lifecycle.fingerprint import compute_version, latest_owned_child
from deploy_annotator.lifecycle.readiness import is_ready
from deploy_annotator.lifecycle.sanitize import sanitize_for_log

logger = logging.getLogger(__name__)

DEFAULT_PATCH_ATTEMPTS = 5


class StoreError(RuntimeError):
    """Raised when the cluster API fails a read or write."""


class MetadataConflictError(StoreError):
    """Raised when a write loses an optimistic concurrency race."""


class NamespaceReader(Protocol):
    """Reads namespace labels."""

    def labels(self, namespace: str) -> dict[str, str] | None:
        """Return the namespace labels, or None when the namespace does not exist."""


class WorkloadAdapter(Protocol):
    """Capabilities the lifecycle reconciler needs from one workload kind."""

    kind: WorkloadKind

    def fetch(self, identity: WorkloadIdentity) -> WorkloadSnapshot | None: ...

    def list_in_namespace(self, namespace: str) -> list[WorkloadSnapshot]: ...

    def patch_metadata(self, identity: WorkloadIdentity, key_merge: dict[str, str]) -> bool: ...

    def is_ready(self, snapshot: WorkloadSnapshot) -> bool: ...

    def primary_image(self, snapshot: WorkloadSnapshot) -> str | None: ...

    def rollout_pending(self, snapshot: WorkloadSnapshot) -> bool: ...

    def compute_version(self, snapshot: WorkloadSnapshot, image_tag: str) -> str: ...


class BaseWorkloadAdapter:
    """Shared adapter behaviour; subclasses provide the raw reads and writes.

    ``patch_metadata`` implements read-merge-write with a resourceVersion
    precondition and retries conflicts a bounded number of times.
    """

    kind: WorkloadKind
    patch_attempts: int = DEFAULT_PATCH_ATTEMPTS

    def fetch(self, identity: WorkloadIdentity) -> WorkloadSnapshot | None:
        raise NotImplementedError

    def list_in_namespace(self, namespace: str) -> list[WorkloadSnapshot]:
        raise NotImplementedError

    def children(self, snapshot: WorkloadSnapshot) -> list[ChildController]:
        return []

    def _write_metadata(
        self,
        identity: WorkloadIdentity,
        annotations: dict[str, str | None],
        resource_version: str | None,
    ) -> None:
        raise NotImplementedError

    def identity(self, namespace: str, name: str) -> WorkloadIdentity:
        return WorkloadIdentity(namespace=namespace, name=name, kind=self.kind)

    def patch_metadata(self, identity: WorkloadIdentity, key_merge: dict[str, str]) -> bool:
        """Merge ``key_merge`` into the workload metadata; empty values remove keys.

        Returns False when the workload no longer exists.
        """
        annotations: dict[str, str | None] = {
            key: (value or None) for key, value in key_merge.items()
        }
        for attempt in range(1, self.patch_attempts + 1):
            current = self.fetch(identity)
            if current is None:
                return False
            try:
                self._write_metadata(identity, annotations, current.resource_version)
                return True
            except MetadataConflictError:
                logger.info(
                    "metadata.patch_conflict",
                    extra={
                        "extra": {
                            "workload": sanitize_for_log(identity.key),
                            "kind": identity.kind.value,
                            "attempt": attempt,
                        }
                    },
                )
        raise StoreError(
            f"conflict patching {sanitize_for_log(identity.key)} after {self.patch_attempts} attempts"
        )

    def is_ready(self, snapshot: WorkloadSnapshot) -> bool:
        return is_ready(snapshot)

    def primary_image(self, snapshot: WorkloadSnapshot) -> str | None:
        image = snapshot.primary_image
        if image is None or not image.strip():
            return None
        return image

    def rollout_pending(self, snapshot: WorkloadSnapshot) -> bool:
        """True while a Deployment's newest ReplicaSet still carries the previous template.

        Until the Deployment controller creates the ReplicaSet for the new spec,
        the template hash in the version belongs to the old rollout.
        """
        if self.kind is not WorkloadKind.DEPLOYMENT:
            return False
        if snapshot.observed_generation >= snapshot.generation:
            return False
        child = self._latest_child(snapshot)
        return child is not None and child.images != snapshot.images

    def compute_version(self, snapshot: WorkloadSnapshot, image_tag: str) -> str:
        return compute_version(snapshot, image_tag, self._latest_child(snapshot))

    def _latest_child(self, snapshot: WorkloadSnapshot) -> ChildController | None:
        try:
            return latest_owned_child(snapshot.uid, self.children(snapshot))
        except StoreError as exc:
            logger.info(
                "fingerprint.child_lookup_failed",
                extra={
                    "extra": {
                        "workload": sanitize_for_log(snapshot.identity.key),
                        "error": sanitize_for_log(str(exc)),
                    }
                },
            )
            return None
