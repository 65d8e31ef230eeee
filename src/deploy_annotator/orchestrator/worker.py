"""Reconcile worker that drains a controller's work queue."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from threading import Event as ThreadEvent

from deploy_annotator.lifecycle.reconciler import LifecycleReconciler, ReconcileResult
from deploy_annotator.lifecycle.sanitize import sanitize_for_log
from deploy_annotator.observability.metrics import RECONCILE_DURATION, RECONCILE_ERRORS
from deploy_annotator.orchestrator.workqueue import WorkItem, WorkQueue

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileWorker:
    """Worker that reconciles one key at a time from a shared queue."""

    queue: WorkQueue
    reconciler: LifecycleReconciler
    poll_interval: float = 0.2

    def run(self, stop_event: ThreadEvent) -> None:
        while not stop_event.is_set() and not self.queue.is_shutdown:
            item = self.queue.get(timeout=self.poll_interval)
            if item is None:
                continue
            self.process(item)

    def process(self, item: WorkItem) -> ReconcileResult:
        kind = item.identity.kind.value
        try:
            with RECONCILE_DURATION.labels(kind=kind).time():
                result = self.reconciler.reconcile(item.identity, item.hint)
        except Exception:  # noqa: BLE001
            logger.exception(
                "reconcile.crashed",
                extra={"extra": {"kind": kind, "workload": sanitize_for_log(item.identity.key)}},
            )
            RECONCILE_ERRORS.labels(kind=kind).inc()
            result = ReconcileResult(requeue_after=self.reconciler.requeue_delay)
        finally:
            self.queue.done(item.identity)
        if result.requeue_after is not None:
            logger.info(
                "reconcile.requeued",
                extra={
                    "extra": {
                        "kind": kind,
                        "workload": sanitize_for_log(item.identity.key),
                        "after_seconds": result.requeue_after,
                    }
                },
            )
            self.queue.add_after(item.identity, result.requeue_after, item.hint)
        return result
