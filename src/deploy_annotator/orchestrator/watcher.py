"""Kubernetes watch streams feeding the workload controllers."""

from __future__ import annotations

from collections.abc import Callable, Iterable
import logging
from threading import Event as ThreadEvent, Lock, Thread
from typing import Any

from kubernetes import client, watch
from kubernetes.client import ApiException

from deploy_annotator.contracts.events import (
    CHILD_CHANGED,
    NAMESPACE_ADDED,
    NAMESPACE_MODIFIED,
    WATCH_EVENT_TYPES,
    WORKLOAD_ADDED,
    WORKLOAD_DELETED,
    WORKLOAD_MODIFIED,
    NamespaceEvent,
    WorkloadEvent,
)
from deploy_annotator.contracts.models import WorkloadIdentity
from deploy_annotator.contracts.types import WorkloadKind
from deploy_annotator.kube.cluster import KubernetesWorkloadAdapter, controller_owner
from deploy_annotator.lifecycle.sanitize import sanitize_for_log
from deploy_annotator.orchestrator.controller import WorkloadController
from deploy_annotator.orchestrator.state import WatchCache

logger = logging.getLogger(__name__)

WATCH_TIMEOUT_SECONDS = 300
RESTART_DELAY_SECONDS = 5.0


class ClusterWatcher:
    """Streams workload, ReplicaSet and Namespace events into controllers.

    ReplicaSet events are mapped to their owning Deployment because readiness
    and the template hash of a rollout surface there first. Streams restart
    after expiry or errors; a re-listed object already in the cache is
    treated as a modification, so restarts do not re-trigger every workload.
    """

    def __init__(
        self,
        controllers: Iterable[WorkloadController],
        core_api: client.CoreV1Api | None = None,
        apps_api: client.AppsV1Api | None = None,
        cache: WatchCache | None = None,
    ) -> None:
        self.controllers = {controller.kind: controller for controller in controllers}
        self._core_api = core_api or client.CoreV1Api()
        self._apps_api = apps_api or client.AppsV1Api()
        self.cache = cache or WatchCache()
        self._watches: list[watch.Watch] = []
        self._lock = Lock()
        self._threads: list[Thread] = []

    def start(self, stop_event: ThreadEvent) -> list[Thread]:
        targets: list[tuple[str, Callable[[ThreadEvent], None]]] = [
            ("namespaces", self._watch_namespaces)
        ]
        for kind, controller in self.controllers.items():
            targets.append((kind.value, self._workload_loop(controller)))
        if WorkloadKind.DEPLOYMENT in self.controllers:
            targets.append(("replicasets", self._watch_replica_sets))
        self._threads = [
            Thread(target=target, args=(stop_event,), name=f"watch-{name}", daemon=True)
            for name, target in targets
        ]
        for thread in self._threads:
            thread.start()
        return self._threads

    def stop(self) -> None:
        with self._lock:
            for active in self._watches:
                active.stop()

    def handle_workload(self, controller: WorkloadController, raw_type: str, obj: Any) -> bool:
        adapter = controller.adapter
        if not isinstance(adapter, KubernetesWorkloadAdapter):
            return False
        snapshot = adapter.snapshot(obj)
        event_type = WATCH_EVENT_TYPES.get(raw_type)
        if event_type is None:
            return False
        if event_type == WORKLOAD_DELETED:
            previous = self.cache.forget_workload(snapshot.identity)
            return controller.handle_workload_event(
                WorkloadEvent(
                    event_type=event_type,
                    identity=snapshot.identity,
                    snapshot=snapshot,
                    previous=previous,
                )
            )
        previous = self.cache.observe_workload(snapshot)
        if event_type == WORKLOAD_ADDED and previous is not None:
            event_type = WORKLOAD_MODIFIED
        return controller.handle_workload_event(
            WorkloadEvent(
                event_type=event_type,
                identity=snapshot.identity,
                snapshot=snapshot,
                previous=previous,
            )
        )

    def handle_replica_set(self, raw_type: str, obj: Any) -> bool:
        controller = self.controllers.get(WorkloadKind.DEPLOYMENT)
        owner = controller_owner(obj, "Deployment")
        if controller is None or owner is None or raw_type not in WATCH_EVENT_TYPES:
            return False
        identity = WorkloadIdentity(
            namespace=obj.metadata.namespace, name=owner.name, kind=WorkloadKind.DEPLOYMENT
        )
        return controller.handle_workload_event(
            WorkloadEvent(event_type=CHILD_CHANGED, identity=identity)
        )

    def handle_namespace(self, raw_type: str, obj: Any) -> int:
        name = obj.metadata.name
        if raw_type == "DELETED":
            self.cache.forget_namespace(name)
            return 0
        labels = dict(obj.metadata.labels or {})
        previous = self.cache.observe_namespace(name, labels)
        event = NamespaceEvent(
            event_type=NAMESPACE_ADDED if raw_type == "ADDED" else NAMESPACE_MODIFIED,
            namespace=name,
            labels=labels,
            previous_labels=previous,
        )
        if event.event_type == NAMESPACE_ADDED and previous is not None:
            event = event.model_copy(update={"event_type": NAMESPACE_MODIFIED})
        return sum(
            controller.handle_namespace_event(event) for controller in self.controllers.values()
        )

    def _workload_loop(self, controller: WorkloadController) -> Callable[[ThreadEvent], None]:
        adapter = controller.adapter

        def run(stop_event: ThreadEvent) -> None:
            if not isinstance(adapter, KubernetesWorkloadAdapter):
                return
            self._stream(
                stop_event,
                controller.kind.value,
                adapter.watch_target(),
                lambda raw_type, obj: self.handle_workload(controller, raw_type, obj),
            )

        return run

    def _watch_replica_sets(self, stop_event: ThreadEvent) -> None:
        self._stream(
            stop_event,
            "replicaset",
            self._apps_api.list_replica_set_for_all_namespaces,
            self.handle_replica_set,
        )

    def _watch_namespaces(self, stop_event: ThreadEvent) -> None:
        self._stream(stop_event, "namespace", self._core_api.list_namespace, self.handle_namespace)

    def _stream(
        self,
        stop_event: ThreadEvent,
        resource: str,
        list_fn: Callable[..., Any],
        handler: Callable[[str, Any], Any],
    ) -> None:
        logger.info("watch.started", extra={"extra": {"resource": resource}})
        while not stop_event.is_set():
            active = watch.Watch()
            with self._lock:
                self._watches.append(active)
            try:
                for event in active.stream(list_fn, timeout_seconds=WATCH_TIMEOUT_SECONDS):
                    if stop_event.is_set():
                        break
                    try:
                        handler(event["type"], event["object"])
                    except Exception:  # noqa: BLE001
                        logger.exception(
                            "watch.handler_failed",
                            extra={"extra": {"resource": resource, "type": event.get("type")}},
                        )
            except ApiException as exc:
                if exc.status == 410:
                    logger.info("watch.expired", extra={"extra": {"resource": resource}})
                    continue
                logger.error(
                    "watch.failed",
                    extra={
                        "extra": {
                            "resource": resource,
                            "status": exc.status,
                            "error": sanitize_for_log(str(exc.reason)),
                        }
                    },
                )
                stop_event.wait(RESTART_DELAY_SECONDS)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "watch.failed",
                    extra={"extra": {"resource": resource, "error": sanitize_for_log(str(exc))}},
                )
                stop_event.wait(RESTART_DELAY_SECONDS)
            finally:
                with self._lock:
                    self._watches.remove(active)
        logger.info("watch.stopped", extra={"extra": {"resource": resource}})
