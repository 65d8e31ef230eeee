"""Per-kind controller: trigger filtering, queueing and namespace fan-out."""

from __future__ import annotations

import logging
from threading import Event as ThreadEvent, Thread

from deploy_annotator.contracts.events import (
    NAMESPACE_ADDED,
    WORKLOAD_MODIFIED,
    NamespaceEvent,
    WorkloadEvent,
)
from deploy_annotator.contracts.types import WorkloadKind
from deploy_annotator.kube.base import StoreError, WorkloadAdapter
from deploy_annotator.lifecycle.predicates import (
    namespace_tracking_changed,
    rollout_relevant_change,
)
from deploy_annotator.lifecycle.reconciler import LifecycleReconciler, ReconcileResult
from deploy_annotator.lifecycle.sanitize import sanitize_for_log
from deploy_annotator.orchestrator.worker import ReconcileWorker
from deploy_annotator.orchestrator.workqueue import WorkQueue

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 2


class WorkloadController:
    """Coordinates lifecycle reconciliation for one workload kind."""

    def __init__(
        self,
        adapter: WorkloadAdapter,
        reconciler: LifecycleReconciler,
        *,
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        self.adapter = adapter
        self.reconciler = reconciler
        self.queue = WorkQueue()
        self.workers = [
            ReconcileWorker(queue=self.queue, reconciler=reconciler) for _ in range(max(workers, 1))
        ]
        self._threads: list[Thread] = []

    @property
    def kind(self) -> WorkloadKind:
        return self.adapter.kind

    def handle_workload_event(self, event: WorkloadEvent) -> bool:
        """Queue the workload if the event is rollout-relevant."""
        if event.event_type == WORKLOAD_MODIFIED and event.snapshot is not None:
            if not rollout_relevant_change(event.previous, event.snapshot):
                logger.debug(
                    "trigger.filtered",
                    extra={"extra": {"kind": self.kind.value, "workload": _key(event)}},
                )
                return False
        self.queue.add(event.identity, event.snapshot or event.previous)
        return True

    def handle_namespace_event(self, event: NamespaceEvent) -> int:
        """Fan a tracking-label toggle out to every workload of this kind.

        Both directions queue every workload: the worker initializes newly
        tracked ones and clears persisted state from untracked ones. Cleanup
        never runs alongside another reconciliation of the same key. Returns
        the number of workloads queued.
        """
        gate = self.reconciler.gate
        created = event.event_type == NAMESPACE_ADDED and event.previous_labels is None
        if not namespace_tracking_changed(
            gate, event.previous_labels, event.labels, created=created
        ):
            return 0
        namespace = sanitize_for_log(event.namespace)
        try:
            workloads = self.adapter.list_in_namespace(event.namespace)
        except StoreError as exc:
            logger.error(
                "namespace.list_failed",
                extra={
                    "extra": {
                        "kind": self.kind.value,
                        "namespace": namespace,
                        "error": sanitize_for_log(str(exc)),
                    }
                },
            )
            return 0

        for snapshot in workloads:
            self.queue.add(snapshot.identity, snapshot)
        state = "enabled" if gate.is_tracked(event.labels) else "disabled"
        logger.info(
            f"namespace.tracking_{state}",
            extra={
                "extra": {"kind": self.kind.value, "namespace": namespace, "count": len(workloads)}
            },
        )
        return len(workloads)

    def start(self, stop_event: ThreadEvent) -> list[Thread]:
        self._threads = [
            Thread(
                target=worker.run,
                args=(stop_event,),
                name=f"{self.kind.value}-worker-{index}",
                daemon=True,
            )
            for index, worker in enumerate(self.workers)
        ]
        for thread in self._threads:
            thread.start()
        return self._threads

    def stop(self, timeout: float = 5.0) -> None:
        self.queue.shutdown()
        for thread in self._threads:
            thread.join(timeout=timeout)

    def process_pending(self) -> list[ReconcileResult]:
        """Drain ready items on the calling thread; delayed retries stay queued."""
        results = []
        worker = self.workers[0]
        while True:
            item = self.queue.get(timeout=0)
            if item is None:
                return results
            results.append(worker.process(item))


def _key(event: WorkloadEvent) -> str:
    return sanitize_for_log(event.identity.key)
