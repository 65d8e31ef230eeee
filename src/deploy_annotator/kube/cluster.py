"""Kubernetes API adapters for Deployments, StatefulSets and DaemonSets."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from kubernetes import client
from kubernetes.client import ApiException

from deploy_annotator.contracts.models import (
    ChildController,
    WorkloadIdentity,
    WorkloadSnapshot,
)
from deploy_annotator.contracts.types import WorkloadKind
from deploy_annotator.kube.base import (
    BaseWorkloadAdapter,
    MetadataConflictError,
    StoreError,
)

TEMPLATE_HASH_LABEL = "pod-template-hash"


def _api_error(action: str, identity: str, exc: ApiException) -> StoreError:
    return StoreError(f"{action} {identity}: {exc.status} {exc.reason}")


class KubernetesWorkloadAdapter(BaseWorkloadAdapter):
    """Reads and patches one workload kind through the apps/v1 API."""

    kind: WorkloadKind
    owner_kind: str

    def __init__(self, apps_api: client.AppsV1Api | None = None) -> None:
        self._apps_api = apps_api or client.AppsV1Api()

    # per-kind API bindings
    def _read(self, name: str, namespace: str) -> Any:
        raise NotImplementedError

    def _list(self, namespace: str) -> Any:
        raise NotImplementedError

    def _patch(self, name: str, namespace: str, body: dict[str, Any]) -> Any:
        raise NotImplementedError

    def watch_target(self) -> Callable[..., Any]:
        """List call streamed by the watcher across all namespaces."""
        raise NotImplementedError

    def replica_counts(self, status: Any) -> tuple[int, int]:
        """Return (desired, ready) from the kind's status."""
        return (status.replicas or 0, status.ready_replicas or 0)

    def fetch(self, identity: WorkloadIdentity) -> WorkloadSnapshot | None:
        try:
            obj = self._read(identity.name, identity.namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise _api_error("read", identity.key, exc) from exc
        return self.snapshot(obj)

    def list_in_namespace(self, namespace: str) -> list[WorkloadSnapshot]:
        try:
            result = self._list(namespace)
        except ApiException as exc:
            raise _api_error("list", namespace, exc) from exc
        return [self.snapshot(item) for item in result.items or []]

    def _write_metadata(
        self,
        identity: WorkloadIdentity,
        annotations: dict[str, str | None],
        resource_version: str | None,
    ) -> None:
        metadata: dict[str, Any] = {"annotations": annotations}
        if resource_version:
            metadata["resourceVersion"] = resource_version
        try:
            self._patch(identity.name, identity.namespace, {"metadata": metadata})
        except ApiException as exc:
            if exc.status == 409:
                raise MetadataConflictError(f"conflict on {identity.key}") from exc
            raise _api_error("patch", identity.key, exc) from exc

    def snapshot(self, obj: Any) -> WorkloadSnapshot:
        meta = obj.metadata
        spec = obj.spec
        status = obj.status
        images: list[str] = []
        selector: dict[str, str] = {}
        if spec is not None:
            template_spec = spec.template.spec if spec.template is not None else None
            for container in (template_spec.containers if template_spec else None) or []:
                images.append(container.image or "")
            if spec.selector is not None and spec.selector.match_labels:
                selector = dict(spec.selector.match_labels)
        desired, ready = self.replica_counts(status) if status is not None else (0, 0)
        return WorkloadSnapshot(
            identity=self.identity(meta.namespace, meta.name),
            uid=meta.uid or "",
            generation=meta.generation or 0,
            observed_generation=(status.observed_generation or 0) if status is not None else 0,
            desired_replicas=desired,
            ready_replicas=ready,
            images=images,
            selector=selector,
            metadata=dict(meta.annotations or {}),
            resource_version=meta.resource_version,
        )


class DeploymentAdapter(KubernetesWorkloadAdapter):
    """Deployments fingerprint rollouts by their newest ReplicaSet's template hash."""

    kind = WorkloadKind.DEPLOYMENT
    owner_kind = "Deployment"

    def _read(self, name: str, namespace: str) -> Any:
        return self._apps_api.read_namespaced_deployment(name, namespace)

    def _list(self, namespace: str) -> Any:
        return self._apps_api.list_namespaced_deployment(namespace)

    def _patch(self, name: str, namespace: str, body: dict[str, Any]) -> Any:
        return self._apps_api.patch_namespaced_deployment(name, namespace, body)

    def watch_target(self) -> Callable[..., Any]:
        return self._apps_api.list_deployment_for_all_namespaces

    def children(self, snapshot: WorkloadSnapshot) -> list[ChildController]:
        selector = ",".join(f"{key}={value}" for key, value in sorted(snapshot.selector.items()))
        try:
            result = self._apps_api.list_namespaced_replica_set(
                snapshot.identity.namespace, label_selector=selector or None
            )
        except ApiException as exc:
            raise _api_error("list replicasets", snapshot.identity.key, exc) from exc
        children = []
        for replica_set in result.items or []:
            child = replica_set_child(replica_set, self.owner_kind)
            if child is not None:
                children.append(child)
        return children


class StatefulSetAdapter(KubernetesWorkloadAdapter):
    kind = WorkloadKind.STATEFULSET
    owner_kind = "StatefulSet"

    def _read(self, name: str, namespace: str) -> Any:
        return self._apps_api.read_namespaced_stateful_set(name, namespace)

    def _list(self, namespace: str) -> Any:
        return self._apps_api.list_namespaced_stateful_set(namespace)

    def _patch(self, name: str, namespace: str, body: dict[str, Any]) -> Any:
        return self._apps_api.patch_namespaced_stateful_set(name, namespace, body)

    def watch_target(self) -> Callable[..., Any]:
        return self._apps_api.list_stateful_set_for_all_namespaces


class DaemonSetAdapter(KubernetesWorkloadAdapter):
    kind = WorkloadKind.DAEMONSET
    owner_kind = "DaemonSet"

    def _read(self, name: str, namespace: str) -> Any:
        return self._apps_api.read_namespaced_daemon_set(name, namespace)

    def _list(self, namespace: str) -> Any:
        return self._apps_api.list_namespaced_daemon_set(namespace)

    def _patch(self, name: str, namespace: str, body: dict[str, Any]) -> Any:
        return self._apps_api.patch_namespaced_daemon_set(name, namespace, body)

    def watch_target(self) -> Callable[..., Any]:
        return self._apps_api.list_daemon_set_for_all_namespaces

    def replica_counts(self, status: Any) -> tuple[int, int]:
        return (status.desired_number_scheduled or 0, status.number_available or 0)


ADAPTERS: dict[WorkloadKind, type[KubernetesWorkloadAdapter]] = {
    WorkloadKind.DEPLOYMENT: DeploymentAdapter,
    WorkloadKind.STATEFULSET: StatefulSetAdapter,
    WorkloadKind.DAEMONSET: DaemonSetAdapter,
}


def controller_owner(obj: Any, owner_kind: str) -> Any | None:
    """Return the controlling apps/v1 owner reference of ``owner_kind``, if any."""
    for owner in obj.metadata.owner_references or []:
        if owner.kind == owner_kind and owner.api_version == "apps/v1":
            return owner
    return None


def replica_set_child(replica_set: Any, owner_kind: str = "Deployment") -> ChildController | None:
    owner = controller_owner(replica_set, owner_kind)
    if owner is None or owner.controller is False:
        return None
    meta = replica_set.metadata
    created_at = meta.creation_timestamp or datetime.min.replace(tzinfo=timezone.utc)
    template = replica_set.spec.template if replica_set.spec is not None else None
    containers = (template.spec.containers if template and template.spec else None) or []
    return ChildController(
        name=meta.name,
        owner_uid=owner.uid or "",
        created_at=created_at,
        template_hash=(meta.labels or {}).get(TEMPLATE_HASH_LABEL),
        images=[container.image or "" for container in containers],
    )


class KubernetesNamespaceReader:
    """NamespaceReader backed by the core/v1 API."""

    def __init__(self, core_api: client.CoreV1Api | None = None) -> None:
        self._core_api = core_api or client.CoreV1Api()

    def labels(self, namespace: str) -> dict[str, str] | None:
        try:
            obj = self._core_api.read_namespace(namespace)
        except ApiException as exc:
            if exc.status == 404:
                return None
            raise _api_error("read namespace", namespace, exc) from exc
        return dict(obj.metadata.labels or {})
