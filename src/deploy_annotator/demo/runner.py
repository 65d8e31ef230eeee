"""Offline scenario runner replaying cluster changes against in-memory fakes."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from deploy_annotator.contracts.events import (
    CHILD_CHANGED,
    NAMESPACE_ADDED,
    NAMESPACE_MODIFIED,
    WORKLOAD_ADDED,
    WORKLOAD_DELETED,
    WORKLOAD_MODIFIED,
    NamespaceEvent,
    WorkloadEvent,
)
from deploy_annotator.contracts.models import (
    PERSISTED_KEYS,
    AnnotationRecord,
    ChildController,
    WorkloadIdentity,
    WorkloadSnapshot,
)
from deploy_annotator.contracts.types import WorkloadKind
from deploy_annotator.demo import fixtures
from deploy_annotator.lifecycle.reconciler import LifecycleReconciler
from deploy_annotator.observability.logging import configure_logging
from deploy_annotator.orchestrator.controller import WorkloadController
from deploy_annotator.orchestrator.state import WatchCache
from deploy_annotator.registry.cluster_registry import InMemoryCluster
from deploy_annotator.sinks.memory import InMemoryAnnotationSink


@dataclass(slots=True)
class ScenarioStep:
    """One cluster change and what it produced."""

    action: str
    emitted: list[str]
    state: dict[str, str]


@dataclass(slots=True)
class ScenarioResult:
    """Result from running a scenario."""

    name: str
    steps: list[ScenarioStep] = field(default_factory=list)
    annotations: list[AnnotationRecord] = field(default_factory=list)

    def emitted(self) -> list[str]:
        return [title for step in self.steps for title in step.emitted]


class ClusterHarness:
    """Plays the watcher's role over an InMemoryCluster.

    Each change is turned into the same trigger event the Kubernetes watch
    streams would produce, and queued work is drained synchronously.
    """

    def __init__(
        self,
        cluster: InMemoryCluster | None = None,
        sink: InMemoryAnnotationSink | None = None,
        *,
        kinds: tuple[WorkloadKind, ...] = tuple(WorkloadKind),
        requeue_delay: float = 0.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.cluster = cluster or InMemoryCluster()
        self.sink = sink or InMemoryAnnotationSink()
        self.cache = WatchCache()
        self.clock = clock or fixtures.SteppingClock()
        self.controllers: dict[WorkloadKind, WorkloadController] = {}
        for kind in kinds:
            adapter = self.cluster.adapter(kind)
            reconciler = LifecycleReconciler(
                adapter,
                self.cluster,
                self.sink,
                requeue_delay=requeue_delay,
                clock=self.clock,
            )
            self.controllers[kind] = WorkloadController(adapter, reconciler, workers=1)

    def label_namespace(self, namespace: str, labels: dict[str, str]) -> list[str]:
        previous = self.cache.observe_namespace(namespace, labels)
        self.cluster.set_namespace(namespace, labels)
        event = NamespaceEvent(
            event_type=NAMESPACE_ADDED if previous is None else NAMESPACE_MODIFIED,
            namespace=namespace,
            labels=labels,
            previous_labels=previous,
        )
        return self._settle(
            lambda: [
                controller.handle_namespace_event(event)
                for controller in self.controllers.values()
            ]
        )

    def apply(self, snapshot: WorkloadSnapshot) -> list[str]:
        stored = self.cluster.apply(snapshot)
        previous = self.cache.observe_workload(stored)
        event = WorkloadEvent(
            event_type=WORKLOAD_ADDED if previous is None else WORKLOAD_MODIFIED,
            identity=stored.identity,
            snapshot=stored,
            previous=previous,
        )
        controller = self._controller(stored.identity)
        return self._settle(lambda: controller.handle_workload_event(event))

    def add_child(self, owner: WorkloadIdentity, child: ChildController) -> list[str]:
        self.cluster.add_child(owner, child)
        event = WorkloadEvent(event_type=CHILD_CHANGED, identity=owner)
        return self._settle(lambda: self._controller(owner).handle_workload_event(event))

    def delete(self, identity: WorkloadIdentity) -> list[str]:
        self.cluster.delete(identity)
        previous = self.cache.forget_workload(identity)
        event = WorkloadEvent(event_type=WORKLOAD_DELETED, identity=identity, previous=previous)
        return self._settle(lambda: self._controller(identity).handle_workload_event(event))

    def persisted(self, identity: WorkloadIdentity) -> dict[str, str]:
        snapshot = self.cluster.get(identity)
        if snapshot is None:
            return {}
        return {key: value for key, value in snapshot.metadata.items() if key in PERSISTED_KEYS}

    def _controller(self, identity: WorkloadIdentity) -> WorkloadController:
        return self.controllers[identity.kind]

    def _settle(self, trigger: Callable[[], object]) -> list[str]:
        before = set(self.sink.records)
        trigger()
        for controller in self.controllers.values():
            controller.process_pending()
        return [record.title for record in self.sink.annotations if record.id not in before]


def rollout_scenario(harness: ClusterHarness) -> list[ScenarioStep]:
    """Create, roll out, update and delete a Deployment, then disable tracking."""
    web = fixtures.workload("web", "registry.local:5000/svc:1.0")
    cache = fixtures.workload("cache", "redis:7.2", kind=WorkloadKind.STATEFULSET)
    web_v2 = fixtures.updated(fixtures.rolled_out(web), "registry.local:5000/svc:2.0")
    steps: list[ScenarioStep] = []

    def record(action: str, emitted: list[str], identity: WorkloadIdentity) -> None:
        state = harness.persisted(identity)
        steps.append(ScenarioStep(action=action, emitted=emitted, state=state))

    enabled = harness.label_namespace(fixtures.DEMO_NAMESPACE, fixtures.TRACKING_LABELS)
    record("namespace.enabled", enabled, web.identity)
    record("cache.created", harness.apply(cache), cache.identity)
    record("web.created", harness.apply(web), web.identity)
    first_rs = fixtures.replica_set(web, "5d8f7c", 1)
    record("web.replicaset.created", harness.add_child(web.identity, first_rs), web.identity)
    record("web.ready", harness.apply(fixtures.rolled_out(web)), web.identity)
    record("web.updated", harness.apply(web_v2), web.identity)
    second_rs = fixtures.replica_set(web_v2, "7b9c4d", 5)
    record("web.replicaset.rolled", harness.add_child(web.identity, second_rs), web.identity)
    record("web.deleted", harness.delete(web.identity), web.identity)
    disabled = harness.label_namespace(fixtures.DEMO_NAMESPACE, {})
    record("namespace.disabled", disabled, cache.identity)
    return steps


def preexisting_scenario(harness: ClusterHarness) -> list[ScenarioStep]:
    """Workloads running before tracking is enabled are baselined, not announced."""
    api = fixtures.rolled_out(fixtures.workload("api", "svc-api:3.1", replicas=3))
    agent = fixtures.rolled_out(
        fixtures.workload(
            "node-agent", "agent@sha256:0123456789abcdef", kind=WorkloadKind.DAEMONSET
        )
    )
    agent_v2 = fixtures.updated(agent, "agent@sha256:fedcba9876543210")
    harness.apply(api)
    harness.apply(agent)
    enabled = harness.label_namespace(fixtures.DEMO_NAMESPACE, fixtures.TRACKING_LABELS)
    return [
        ScenarioStep(
            action="namespace.enabled", emitted=enabled, state=harness.persisted(api.identity)
        ),
        ScenarioStep(
            action="node-agent.updated",
            emitted=harness.apply(agent_v2),
            state=harness.persisted(agent.identity),
        ),
        ScenarioStep(
            action="node-agent.ready",
            emitted=harness.apply(fixtures.rolled_out(agent_v2)),
            state=harness.persisted(agent.identity),
        ),
    ]


def retry_scenario(harness: ClusterHarness) -> list[ScenarioStep]:
    """A failed annotation call is retried on the next reconciliation."""
    db = fixtures.workload("db", "postgres:16.1", kind=WorkloadKind.STATEFULSET, replicas=1)
    harness.label_namespace(fixtures.DEMO_NAMESPACE, fixtures.TRACKING_LABELS)
    harness.apply(db)
    harness.sink.fail_creates = 1
    emitted = harness.apply(fixtures.updated(db, "postgres:16.2"))
    return [
        ScenarioStep(action="db.updated", emitted=emitted, state=harness.persisted(db.identity))
    ]


SCENARIOS: dict[str, Callable[[ClusterHarness], list[ScenarioStep]]] = {
    "rollout": rollout_scenario,
    "preexisting": preexisting_scenario,
    "retry": retry_scenario,
}


def run_scenario(
    name: str,
    *,
    harness: ClusterHarness | None = None,
    configure_logs: bool = True,
) -> ScenarioResult:
    """Run a named scenario end-to-end against in-memory fakes."""
    if configure_logs:
        configure_logging()
    harness = harness or ClusterHarness()
    steps = SCENARIOS[name](harness)
    return ScenarioResult(name=name, steps=steps, annotations=harness.sink.annotations)
