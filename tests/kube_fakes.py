"""kubernetes.client model builders and a fake apps/v1 API for adapter tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from kubernetes import client
from kubernetes.client import ApiException

T0 = datetime(2025, 1, 17, 9, 0, tzinfo=timezone.utc)


def _template(image: str, app: str) -> client.V1PodTemplateSpec:
    return client.V1PodTemplateSpec(
        metadata=client.V1ObjectMeta(labels={"app": app}),
        spec=client.V1PodSpec(containers=[client.V1Container(name=app, image=image)]),
    )


def _meta(name: str, namespace: str, **extra: Any) -> client.V1ObjectMeta:
    return client.V1ObjectMeta(
        name=name,
        namespace=namespace,
        uid=f"uid-{name}",
        generation=extra.pop("generation", 1),
        resource_version=extra.pop("resource_version", "100"),
        annotations=extra.pop("annotations", None),
        **extra,
    )


def deployment(
    name: str = "web",
    namespace: str = "shop",
    image: str = "svc:1.0",
    *,
    replicas: int = 2,
    ready: int | None = None,
    observed_generation: int = 1,
    **meta: Any,
) -> client.V1Deployment:
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=_meta(name, namespace, **meta),
        spec=client.V1DeploymentSpec(
            replicas=replicas,
            selector=client.V1LabelSelector(match_labels={"app": name}),
            template=_template(image, name),
        ),
        status=client.V1DeploymentStatus(
            replicas=replicas, ready_replicas=ready, observed_generation=observed_generation
        ),
    )


def stateful_set(name: str = "db", namespace: str = "shop", image: str = "postgres:16.1") -> client.V1StatefulSet:
    return client.V1StatefulSet(
        api_version="apps/v1",
        kind="StatefulSet",
        metadata=_meta(name, namespace),
        spec=client.V1StatefulSetSpec(
            replicas=1,
            service_name=name,
            selector=client.V1LabelSelector(match_labels={"app": name}),
            template=_template(image, name),
        ),
        status=client.V1StatefulSetStatus(replicas=1, ready_replicas=1, observed_generation=1),
    )


def daemon_set(
    name: str = "agent", namespace: str = "shop", image: str = "agent:2.0", *, available: int = 3
) -> client.V1DaemonSet:
    return client.V1DaemonSet(
        api_version="apps/v1",
        kind="DaemonSet",
        metadata=_meta(name, namespace),
        spec=client.V1DaemonSetSpec(
            selector=client.V1LabelSelector(match_labels={"app": name}),
            template=_template(image, name),
        ),
        status=client.V1DaemonSetStatus(
            current_number_scheduled=3,
            desired_number_scheduled=3,
            number_misscheduled=0,
            number_ready=3,
            number_available=available,
            observed_generation=1,
        ),
    )


def replica_set(
    owner: client.V1Deployment,
    template_hash: str,
    minutes: int,
    *,
    controller: bool = True,
    owner_kind: str = "Deployment",
    image: str | None = None,
) -> client.V1ReplicaSet:
    image = image or owner.spec.template.spec.containers[0].image
    return client.V1ReplicaSet(
        metadata=client.V1ObjectMeta(
            name=f"{owner.metadata.name}-{template_hash}",
            namespace=owner.metadata.namespace,
            labels={"app": owner.metadata.name, "pod-template-hash": template_hash},
            creation_timestamp=T0 + timedelta(minutes=minutes),
            owner_references=[
                client.V1OwnerReference(
                    api_version="apps/v1",
                    kind=owner_kind,
                    name=owner.metadata.name,
                    uid=owner.metadata.uid,
                    controller=controller,
                )
            ],
        ),
        spec=client.V1ReplicaSetSpec(
            selector=client.V1LabelSelector(match_labels={"app": owner.metadata.name}),
            template=_template(image, owner.metadata.name),
        ),
    )


class FakeAppsApi:
    """Records calls against an in-memory set of apps/v1 objects."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], Any] = {}
        self.replica_sets: list[client.V1ReplicaSet] = []
        self.patches: list[dict[str, Any]] = []
        self.selectors: list[str | None] = []
        self.conflicts = 0
        self.error_status: int | None = None

    def add(self, obj: Any) -> Any:
        self.objects[(obj.kind, obj.metadata.namespace, obj.metadata.name)] = obj
        return obj

    def _read(self, kind: str, name: str, namespace: str) -> Any:
        if self.error_status is not None:
            raise ApiException(status=self.error_status, reason="Injected")
        obj = self.objects.get((kind, namespace, name))
        if obj is None:
            raise ApiException(status=404, reason="Not Found")
        return obj

    def _list(self, kind: str, namespace: str) -> Any:
        items = [obj for (k, ns, _), obj in self.objects.items() if k == kind and ns == namespace]
        return type("List", (), {"items": items})()

    def _patch(self, kind: str, name: str, namespace: str, body: dict[str, Any]) -> Any:
        obj = self._read(kind, name, namespace)
        self.patches.append(body)
        if self.conflicts > 0:
            self.conflicts -= 1
            obj.metadata.resource_version = str(int(obj.metadata.resource_version) + 1)
            raise ApiException(status=409, reason="Conflict")
        if body["metadata"].get("resourceVersion") != obj.metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        annotations = dict(obj.metadata.annotations or {})
        for key, value in body["metadata"]["annotations"].items():
            if value is None:
                annotations.pop(key, None)
            else:
                annotations[key] = value
        obj.metadata.annotations = annotations
        obj.metadata.resource_version = str(int(obj.metadata.resource_version) + 1)
        return obj

    def read_namespaced_deployment(self, name: str, namespace: str) -> Any:
        return self._read("Deployment", name, namespace)

    def list_namespaced_deployment(self, namespace: str) -> Any:
        return self._list("Deployment", namespace)

    def patch_namespaced_deployment(self, name: str, namespace: str, body: dict[str, Any]) -> Any:
        return self._patch("Deployment", name, namespace, body)

    def read_namespaced_stateful_set(self, name: str, namespace: str) -> Any:
        return self._read("StatefulSet", name, namespace)

    def read_namespaced_daemon_set(self, name: str, namespace: str) -> Any:
        return self._read("DaemonSet", name, namespace)

    def list_namespaced_replica_set(self, namespace: str, label_selector: str | None = None) -> Any:
        self.selectors.append(label_selector)
        items = [rs for rs in self.replica_sets if rs.metadata.namespace == namespace]
        return type("List", (), {"items": items})()

    def list_deployment_for_all_namespaces(self, **kwargs: Any) -> Any:
        return type("List", (), {"items": []})()


class FakeCoreApi:
    def __init__(self, namespaces: dict[str, dict[str, str] | None] | None = None) -> None:
        self.namespaces = namespaces or {}

    def read_namespace(self, name: str) -> Any:
        if name not in self.namespaces:
            raise ApiException(status=404, reason="Not Found")
        return client.V1Namespace(
            metadata=client.V1ObjectMeta(name=name, labels=self.namespaces[name])
        )
