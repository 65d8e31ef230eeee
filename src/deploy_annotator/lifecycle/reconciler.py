"""Lifecycle reconciliation shared by every workload kind."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from deploy_annotator.contracts.models import (
    Observation,
    PersistedState,
    WorkloadIdentity,
    WorkloadSnapshot,
)
from deploy_annotator.contracts.types import LifecycleAction, LifecyclePhase
from deploy_annotator.kube.base import NamespaceReader, StoreError, WorkloadAdapter
from deploy_annotator.lifecycle import annotations
from deploy_annotator.lifecycle.fingerprint import extract_image_tag
from deploy_annotator.lifecycle.gate import TrackingGate
from deploy_annotator.lifecycle.sanitize import sanitize_for_log
from deploy_annotator.lifecycle.state_machine import Decision, decide
from deploy_annotator.observability.metrics import ANNOTATIONS, RECONCILE_ERRORS
from deploy_annotator.observability.telemetry import get_tracer, workload_attributes
from deploy_annotator.sinks.base import AnnotationSink, AnnotationSinkError

logger = logging.getLogger(__name__)

DEFAULT_REQUEUE_DELAY = 60.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of one reconciliation; ``requeue_after`` asks for a retry."""

    decision: Decision | None = None
    requeue_after: float | None = None
    annotation_id: int | None = None


class _Requeue(Exception):
    pass


class LifecycleReconciler:
    """Runs the lifecycle state machine for one workload kind.

    Fetches the workload and its namespace, derives the observation, asks the
    state machine for a decision and applies it to the annotation sink and the
    workload's metadata. Transient failures end the reconciliation with a
    fixed-delay requeue instead of retrying in place.
    """

    def __init__(
        self,
        adapter: WorkloadAdapter,
        namespaces: NamespaceReader,
        sink: AnnotationSink,
        *,
        gate: TrackingGate | None = None,
        requeue_delay: float = DEFAULT_REQUEUE_DELAY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.adapter = adapter
        self.namespaces = namespaces
        self.sink = sink
        self.gate = gate or TrackingGate()
        self.requeue_delay = requeue_delay
        self.clock = clock
        self._tracer = get_tracer(f"deploy_annotator.{adapter.kind.value}")

    def reconcile(
        self, identity: WorkloadIdentity, hint: WorkloadSnapshot | None = None
    ) -> ReconcileResult:
        with self._tracer.start_as_current_span(
            f"reconcile.{identity.kind.value}", attributes=workload_attributes(identity)
        ) as span:
            try:
                result = self._reconcile(identity, hint)
            except _Requeue:
                span.set_attribute("deploy_annotator.requeued", True)
                RECONCILE_ERRORS.labels(kind=identity.kind.value).inc()
                return ReconcileResult(requeue_after=self.requeue_delay)
            if result.decision is not None:
                span.set_attribute("deploy_annotator.action", result.decision.action.value)
            return result

    def _reconcile(
        self, identity: WorkloadIdentity, hint: WorkloadSnapshot | None
    ) -> ReconcileResult:
        log_fields = self._fields(identity)
        try:
            snapshot = self.adapter.fetch(identity)
        except StoreError as exc:
            logger.error("workload.fetch_failed", extra={"extra": {**log_fields, "error": str(exc)}})
            raise _Requeue from exc

        if snapshot is None:
            return self._reconcile_missing(identity, hint)

        try:
            labels = self.namespaces.labels(identity.namespace)
        except StoreError as exc:
            logger.error(
                "namespace.fetch_failed", extra={"extra": {**log_fields, "error": str(exc)}}
            )
            raise _Requeue from exc

        state = PersistedState.from_metadata(snapshot.metadata)
        if not self.gate.is_tracked(labels):
            decision = decide(state, Observation(tracking_enabled=False, workload_exists=True))
            if decision.action is LifecycleAction.CLEAR:
                self._persist(identity, decision, state)
                logger.info("lifecycle.cleared", extra={"extra": log_fields})
            return ReconcileResult(decision=decision)

        image_ref = self.adapter.primary_image(snapshot)
        if image_ref is None:
            logger.info("workload.no_containers", extra={"extra": log_fields})
            return ReconcileResult()

        if state.version and self.adapter.rollout_pending(snapshot):
            logger.debug(
                "lifecycle.awaiting_rollout",
                extra={
                    "extra": {
                        **log_fields,
                        "generation": snapshot.generation,
                        "observed_generation": snapshot.observed_generation,
                    }
                },
            )
            return ReconcileResult(
                decision=Decision(LifecycleAction.NONE, reason="new spec not yet rolled out")
            )

        image_tag = extract_image_tag(image_ref)
        observation = Observation(
            tracking_enabled=True,
            workload_exists=True,
            current_version=self.adapter.compute_version(snapshot, image_tag),
            ready=self.adapter.is_ready(snapshot),
        )
        decision = decide(state, observation)
        log_fields = {**log_fields, "version": sanitize_for_log(observation.current_version)}
        logger.debug(
            "lifecycle.decided",
            extra={
                "extra": {
                    **log_fields,
                    "action": decision.action.value,
                    "reason": decision.reason,
                    "stored_version": sanitize_for_log(state.version),
                    "generation": snapshot.generation,
                    "observed_generation": snapshot.observed_generation,
                }
            },
        )

        if decision.action is LifecycleAction.NONE:
            return ReconcileResult(decision=decision)
        if decision.action is LifecycleAction.INITIALIZE:
            self._persist(identity, decision, state)
            logger.info("lifecycle.initialized", extra={"extra": log_fields})
            return ReconcileResult(decision=decision)

        annotation_id = self._emit(identity, decision, image_tag, image_ref)
        self._persist(identity, decision, state, annotation_id)
        if decision.action is LifecycleAction.COMPLETE:
            self._extend_start_to_region(identity, state, image_tag)
        logger.info(
            f"lifecycle.{decision.phase.value}" if decision.phase else "lifecycle.applied",
            extra={
                "extra": {
                    **log_fields,
                    "action": decision.action.value,
                    "annotation_id": annotation_id,
                }
            },
        )
        return ReconcileResult(decision=decision, annotation_id=annotation_id)

    def _reconcile_missing(
        self, identity: WorkloadIdentity, hint: WorkloadSnapshot | None
    ) -> ReconcileResult:
        log_fields = self._fields(identity)
        try:
            labels = self.namespaces.labels(identity.namespace)
        except StoreError as exc:
            logger.error(
                "namespace.fetch_failed",
                extra={"extra": {**log_fields, "error": str(exc), "deleted": True}},
            )
            return ReconcileResult()

        observation = Observation(
            tracking_enabled=self.gate.is_tracked(labels), workload_exists=False
        )
        decision = decide(PersistedState(), observation)
        if decision.action is not LifecycleAction.DELETE:
            logger.debug("workload.deleted_untracked", extra={"extra": log_fields})
            return ReconcileResult(decision=decision)

        image_ref = (hint.primary_image if hint else None) or ""
        image_tag = extract_image_tag(image_ref) if image_ref else ""
        annotation_id = self._emit(identity, decision, image_tag, image_ref)
        logger.info(
            "lifecycle.deleted", extra={"extra": {**log_fields, "annotation_id": annotation_id}}
        )
        return ReconcileResult(decision=decision, annotation_id=annotation_id)

    def _emit(
        self, identity: WorkloadIdentity, decision: Decision, image_tag: str, image_ref: str
    ) -> int:
        phase: LifecyclePhase = decision.phase  # type: ignore[assignment]
        content = annotations.render(identity, phase, image_tag, image_ref)
        try:
            annotation_id = self.sink.create(content.title, content.tags, content.body, self.clock())
        except AnnotationSinkError as exc:
            logger.error(
                "sink.create_failed",
                extra={
                    "extra": {
                        **self._fields(identity),
                        "phase": phase.value,
                        "error": sanitize_for_log(str(exc)),
                    }
                },
            )
            raise _Requeue from exc
        ANNOTATIONS.labels(kind=identity.kind.value, phase=phase.value).inc()
        return annotation_id

    def _persist(
        self,
        identity: WorkloadIdentity,
        decision: Decision,
        state: PersistedState,
        annotation_id: int | None = None,
    ) -> None:
        key_merge = decision.metadata_patch(state, annotation_id)
        if not key_merge:
            return
        try:
            self.adapter.patch_metadata(identity, key_merge)
        except StoreError as exc:
            logger.error(
                "metadata.patch_failed",
                extra={
                    "extra": {
                        **self._fields(identity),
                        "action": decision.action.value,
                        "error": sanitize_for_log(str(exc)),
                    }
                },
            )
            raise _Requeue from exc

    def _extend_start_to_region(
        self, identity: WorkloadIdentity, state: PersistedState, image_tag: str
    ) -> None:
        try:
            start_id = int(state.start_annotation_id or "")
        except ValueError:
            logger.warning(
                "sink.region_skipped",
                extra={
                    "extra": {
                        **self._fields(identity),
                        "start_annotation_id": sanitize_for_log(state.start_annotation_id),
                    }
                },
            )
            return
        try:
            self.sink.extend_to_region(
                start_id, self.clock(), annotations.region_tags(identity, image_tag)
            )
        except AnnotationSinkError as exc:
            logger.error(
                "sink.region_failed",
                extra={
                    "extra": {
                        **self._fields(identity),
                        "start_annotation_id": start_id,
                        "error": sanitize_for_log(str(exc)),
                    }
                },
            )

    @staticmethod
    def _fields(identity: WorkloadIdentity) -> dict[str, str]:
        return {
            "kind": identity.kind.value,
            "namespace": sanitize_for_log(identity.namespace),
            "name": sanitize_for_log(identity.name),
        }
