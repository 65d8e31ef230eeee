"""Tests for the Kubernetes adapters using kubernetes.client models."""

from __future__ import annotations

import pytest

from deploy_annotator.contracts.models import (
    END_ANNOTATION_KEY,
    START_ANNOTATION_KEY,
    VERSION_KEY,
)
from deploy_annotator.contracts.types import WorkloadKind
from deploy_annotator.kube.base import StoreError
from deploy_annotator.kube.cluster import (
    DaemonSetAdapter,
    DeploymentAdapter,
    KubernetesNamespaceReader,
    StatefulSetAdapter,
    replica_set_child,
)
from kube_fakes import (
    FakeAppsApi,
    FakeCoreApi,
    daemon_set,
    deployment,
    replica_set,
    stateful_set,
)


@pytest.fixture
def apps() -> FakeAppsApi:
    return FakeAppsApi()


def test_deployment_snapshot_normalizes_fields(apps: FakeAppsApi) -> None:
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]
    obj = deployment(image="registry:5000/svc:1.0", ready=2, annotations={VERSION_KEY: "v"})

    snapshot = adapter.snapshot(obj)

    assert snapshot.identity.key == "shop/web"
    assert snapshot.identity.kind is WorkloadKind.DEPLOYMENT
    assert snapshot.uid == "uid-web"
    assert snapshot.images == ["registry:5000/svc:1.0"]
    assert snapshot.selector == {"app": "web"}
    assert (snapshot.desired_replicas, snapshot.ready_replicas) == (2, 2)
    assert snapshot.metadata == {VERSION_KEY: "v"}
    assert snapshot.resource_version == "100"
    assert adapter.is_ready(snapshot)


def test_missing_ready_replicas_count_as_zero(apps: FakeAppsApi) -> None:
    snapshot = DeploymentAdapter(apps).snapshot(deployment(ready=None))  # type: ignore[arg-type]
    assert snapshot.ready_replicas == 0
    assert not DeploymentAdapter(apps).is_ready(snapshot)  # type: ignore[arg-type]


def test_daemonset_readiness_uses_available_and_desired(apps: FakeAppsApi) -> None:
    adapter = DaemonSetAdapter(apps)  # type: ignore[arg-type]
    assert adapter.is_ready(adapter.snapshot(daemon_set(available=3)))
    degraded = adapter.snapshot(daemon_set(available=2))
    assert (degraded.desired_replicas, degraded.ready_replicas) == (3, 2)
    assert not adapter.is_ready(degraded)


def test_statefulset_fetch_and_version(apps: FakeAppsApi) -> None:
    apps.add(stateful_set())
    adapter = StatefulSetAdapter(apps)  # type: ignore[arg-type]

    snapshot = adapter.fetch(adapter.identity("shop", "db"))

    assert snapshot is not None
    assert adapter.compute_version(snapshot, "16.1") == "gen-1-img-16.1"


def test_fetch_maps_not_found_and_errors(apps: FakeAppsApi) -> None:
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]
    assert adapter.fetch(adapter.identity("shop", "missing")) is None

    apps.error_status = 500
    with pytest.raises(StoreError, match="read shop/web: 500"):
        adapter.fetch(adapter.identity("shop", "web"))


def test_patch_metadata_sends_scoped_merge_with_precondition(apps: FakeAppsApi) -> None:
    obj = apps.add(deployment(annotations={END_ANNOTATION_KEY: "4", "owner": "team-a"}))
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]

    written = adapter.patch_metadata(
        adapter.identity("shop", "web"),
        {START_ANNOTATION_KEY: "9", END_ANNOTATION_KEY: "", VERSION_KEY: "gen-2-img-2.0"},
    )

    assert written
    assert apps.patches == [
        {
            "metadata": {
                "annotations": {
                    START_ANNOTATION_KEY: "9",
                    END_ANNOTATION_KEY: None,
                    VERSION_KEY: "gen-2-img-2.0",
                },
                "resourceVersion": "100",
            }
        }
    ]
    assert obj.metadata.annotations == {
        "owner": "team-a",
        START_ANNOTATION_KEY: "9",
        VERSION_KEY: "gen-2-img-2.0",
    }


def test_patch_metadata_retries_conflicts_with_fresh_version(apps: FakeAppsApi) -> None:
    apps.add(deployment())
    apps.conflicts = 1
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]

    assert adapter.patch_metadata(adapter.identity("shop", "web"), {VERSION_KEY: "v"})
    assert [patch["metadata"]["resourceVersion"] for patch in apps.patches] == ["100", "101"]


def test_patch_metadata_gives_up_after_bounded_attempts(apps: FakeAppsApi) -> None:
    apps.add(deployment())
    apps.conflicts = 99
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]

    with pytest.raises(StoreError, match="after 5 attempts"):
        adapter.patch_metadata(adapter.identity("shop", "web"), {VERSION_KEY: "v"})
    assert len(apps.patches) == 5


def test_patch_metadata_on_deleted_workload_is_noop(apps: FakeAppsApi) -> None:
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]
    assert not adapter.patch_metadata(adapter.identity("shop", "web"), {VERSION_KEY: "v"})
    assert apps.patches == []


def test_deployment_version_uses_newest_owned_replica_set(apps: FakeAppsApi) -> None:
    owner = apps.add(deployment(image="svc:2.0", generation=3))
    other = deployment(name="api")
    apps.replica_sets = [
        replica_set(owner, "aaa111", 1),
        replica_set(owner, "bbb222", 7),
        replica_set(other, "ccc333", 9),
    ]
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]
    snapshot = adapter.snapshot(owner)

    assert adapter.compute_version(snapshot, "2.0") == "hash-bbb222-img-2.0"
    assert apps.selectors == ["app=web"]


def test_deployment_version_falls_back_without_replica_sets(apps: FakeAppsApi) -> None:
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]
    snapshot = adapter.snapshot(apps.add(deployment(generation=2)))
    assert adapter.compute_version(snapshot, "1.0") == "gen-2-img-1.0"


def test_deployment_rollout_pending_until_new_replica_set_exists(apps: FakeAppsApi) -> None:
    owner = apps.add(deployment(image="svc:2.0", generation=2, observed_generation=1))
    apps.replica_sets = [replica_set(owner, "aaa111", 1, image="svc:1.0")]
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]
    snapshot = adapter.snapshot(owner)

    assert adapter.rollout_pending(snapshot)

    apps.replica_sets.append(replica_set(owner, "bbb222", 7))
    assert not adapter.rollout_pending(snapshot)
    assert adapter.compute_version(snapshot, "2.0") == "hash-bbb222-img-2.0"


def test_observed_generation_is_never_pending(apps: FakeAppsApi) -> None:
    owner = apps.add(deployment(image="svc:2.0", generation=2, observed_generation=2))
    apps.replica_sets = [replica_set(owner, "aaa111", 1, image="svc:1.0")]
    adapter = DeploymentAdapter(apps)  # type: ignore[arg-type]

    assert not adapter.rollout_pending(adapter.snapshot(owner))
    assert apps.selectors == []


def test_replica_set_child_requires_controlling_deployment_owner() -> None:
    owner = deployment()
    child = replica_set_child(replica_set(owner, "abc", 1))
    assert child is not None and child.images == ["svc:1.0"]
    assert replica_set_child(replica_set(owner, "abc", 1)).template_hash == "abc"  # type: ignore[union-attr]
    assert replica_set_child(replica_set(owner, "abc", 1, controller=False)) is None
    assert replica_set_child(replica_set(owner, "abc", 1, owner_kind="StatefulSet")) is None


def test_namespace_reader_returns_labels_or_none() -> None:
    reader = KubernetesNamespaceReader(
        FakeCoreApi({"shop": {"deployment-annotator": "enabled"}, "bare": None})  # type: ignore[arg-type]
    )
    assert reader.labels("shop") == {"deployment-annotator": "enabled"}
    assert reader.labels("bare") == {}
    assert reader.labels("missing") is None
