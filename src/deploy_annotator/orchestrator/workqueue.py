"""Deduplicating work queue with per-key single consumers."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import heapq
from itertools import count
from threading import Condition
import time

from deploy_annotator.contracts.models import WorkloadIdentity, WorkloadSnapshot


@dataclass(slots=True)
class WorkItem:
    """A key handed to a worker, with the latest best-effort snapshot."""

    identity: WorkloadIdentity
    hint: WorkloadSnapshot | None = None


class WorkQueue:
    """Thread-safe queue of workload identities.

    A key is queued at most once. A key handed out by ``get`` is in flight
    until ``done``; adding it again meanwhile marks it dirty and it is queued
    once the current worker finishes, so no two workers ever hold the same key.
    """

    def __init__(self) -> None:
        self._cond = Condition()
        self._queue: deque[WorkloadIdentity] = deque()
        self._queued: set[WorkloadIdentity] = set()
        self._processing: set[WorkloadIdentity] = set()
        self._dirty: set[WorkloadIdentity] = set()
        self._hints: dict[WorkloadIdentity, WorkloadSnapshot] = {}
        self._delayed: list[tuple[float, int, WorkloadIdentity]] = []
        self._seq = count()
        self._shutdown = False

    def add(self, identity: WorkloadIdentity, hint: WorkloadSnapshot | None = None) -> None:
        with self._cond:
            if self._shutdown:
                return
            if hint is not None:
                self._hints[identity] = hint
            self._enqueue(identity)

    def add_after(
        self, identity: WorkloadIdentity, delay: float, hint: WorkloadSnapshot | None = None
    ) -> None:
        if delay <= 0:
            self.add(identity, hint)
            return
        with self._cond:
            if self._shutdown:
                return
            if hint is not None:
                self._hints[identity] = hint
            heapq.heappush(self._delayed, (time.monotonic() + delay, next(self._seq), identity))
            self._cond.notify()

    def get(self, timeout: float | None = None) -> WorkItem | None:
        """Return the next item, or None on timeout or shutdown."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while True:
                self._promote_due()
                if self._queue:
                    identity = self._queue.popleft()
                    self._queued.discard(identity)
                    self._processing.add(identity)
                    return WorkItem(identity=identity, hint=self._hints.pop(identity, None))
                if self._shutdown:
                    return None
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return None
                self._cond.wait(self._wait_time(remaining))

    def done(self, identity: WorkloadIdentity) -> None:
        with self._cond:
            self._processing.discard(identity)
            if identity in self._dirty:
                self._dirty.discard(identity)
                if not self._shutdown:
                    self._enqueue(identity)

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def pending_delayed(self) -> int:
        with self._cond:
            return len(self._delayed)

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    def _enqueue(self, identity: WorkloadIdentity) -> None:
        if identity in self._processing:
            self._dirty.add(identity)
            return
        if identity in self._queued:
            return
        self._queued.add(identity)
        self._queue.append(identity)
        self._cond.notify()

    def _promote_due(self) -> None:
        now = time.monotonic()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, identity = heapq.heappop(self._delayed)
            self._enqueue(identity)

    def _wait_time(self, remaining: float | None) -> float | None:
        if not self._delayed:
            return remaining
        due_in = max(self._delayed[0][0] - time.monotonic(), 0.0)
        return due_in if remaining is None else min(remaining, due_in)
