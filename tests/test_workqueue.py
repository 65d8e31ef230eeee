"""Unit tests for the deduplicating work queue and reconcile worker."""

from __future__ import annotations

from threading import Event as ThreadEvent, Thread
import time

from deploy_annotator.demo import fixtures
from deploy_annotator.lifecycle.reconciler import ReconcileResult
from deploy_annotator.orchestrator.worker import ReconcileWorker
from deploy_annotator.orchestrator.workqueue import WorkQueue

WEB = fixtures.identity("web")
API = fixtures.identity("api")


def test_duplicate_adds_collapse_and_keep_latest_hint() -> None:
    queue = WorkQueue()
    first = fixtures.workload("web", "svc:1.0")
    second = fixtures.workload("web", "svc:2.0")
    queue.add(WEB, first)
    queue.add(WEB, second)
    queue.add(API)

    assert len(queue) == 2
    item = queue.get(timeout=0)
    assert item is not None and item.identity == WEB
    assert item.hint == second


def test_key_in_flight_is_not_handed_out_twice() -> None:
    queue = WorkQueue()
    queue.add(WEB)
    item = queue.get(timeout=0)
    assert item is not None

    queue.add(WEB)
    assert queue.get(timeout=0) is None

    queue.done(WEB)
    again = queue.get(timeout=0)
    assert again is not None and again.identity == WEB


def test_add_after_delays_delivery() -> None:
    queue = WorkQueue()
    queue.add_after(WEB, 0.05)
    assert queue.get(timeout=0) is None
    assert queue.pending_delayed() == 1

    item = queue.get(timeout=1.0)
    assert item is not None and item.identity == WEB


def test_shutdown_unblocks_waiting_consumers() -> None:
    queue = WorkQueue()
    results = []
    consumer = Thread(target=lambda: results.append(queue.get(timeout=5.0)))
    consumer.start()
    time.sleep(0.05)
    queue.shutdown()
    consumer.join(timeout=1.0)

    assert results == [None]
    queue.add(WEB)
    assert len(queue) == 0


class _ScriptedReconciler:
    requeue_delay = 30.0

    def __init__(self, outcomes: list[object]) -> None:
        self.outcomes = outcomes
        self.calls = []

    def reconcile(self, identity, hint=None):
        self.calls.append(identity)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_worker_requeues_on_request() -> None:
    queue = WorkQueue()
    reconciler = _ScriptedReconciler([ReconcileResult(requeue_after=0.01), ReconcileResult()])
    worker = ReconcileWorker(queue=queue, reconciler=reconciler)  # type: ignore[arg-type]
    queue.add(WEB)

    stop = ThreadEvent()
    thread = Thread(target=worker.run, args=(stop,), daemon=True)
    thread.start()
    deadline = time.monotonic() + 2.0
    while len(reconciler.calls) < 2 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    thread.join(timeout=1.0)

    assert reconciler.calls == [WEB, WEB]


def test_worker_survives_unexpected_errors() -> None:
    queue = WorkQueue()
    reconciler = _ScriptedReconciler([RuntimeError("boom")])
    worker = ReconcileWorker(queue=queue, reconciler=reconciler)  # type: ignore[arg-type]
    queue.add(WEB)

    item = queue.get(timeout=0)
    assert item is not None
    result = worker.process(item)

    assert result.requeue_after == 30.0
    assert queue.pending_delayed() == 1
    assert queue.get(timeout=0) is None
