"""Per-workload lifecycle state machine.

``decide`` is pure: given the persisted state and a fresh observation it
returns the action to take. The next persisted state depends on the id the
annotation sink hands back, so the decision renders it as a scoped key merge
through ``metadata_patch``.

Rules, first match wins:

1. workload gone, namespace tracked        -> DELETE (emit "deleted")
2. workload present, tracking disabled     -> CLEAR (drop persisted keys)
3. no version persisted yet                -> INITIALIZE (record version only)
4. version differs, no start on record     -> START
   version differs, start already recorded -> RESTART (new start, end cleared)
5. same version, ready, start without end  -> COMPLETE
   anything else                           -> NONE
"""

from __future__ import annotations

from dataclasses import dataclass

from deploy_annotator.contracts.models import (
    END_ANNOTATION_KEY,
    START_ANNOTATION_KEY,
    VERSION_KEY,
    Observation,
    PersistedState,
)
from deploy_annotator.contracts.types import LifecycleAction, LifecyclePhase


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of one state machine evaluation."""

    action: LifecycleAction
    version: str | None = None
    reason: str = ""

    @property
    def phase(self) -> LifecyclePhase | None:
        return _PHASES.get(self.action)

    @property
    def emits(self) -> bool:
        return self.phase is not None

    def metadata_patch(
        self, state: PersistedState, annotation_id: int | None = None
    ) -> dict[str, str] | None:
        """Scoped key merge to persist, or None when nothing is written.

        Only the keys an action owns are touched; an empty value removes a key.
        """
        new_id = str(annotation_id) if annotation_id is not None else ""
        if self.action is LifecycleAction.INITIALIZE:
            return {VERSION_KEY: self.version or ""}
        if self.action is LifecycleAction.START:
            return {START_ANNOTATION_KEY: new_id, VERSION_KEY: self.version or ""}
        if self.action is LifecycleAction.RESTART:
            return {
                START_ANNOTATION_KEY: new_id,
                END_ANNOTATION_KEY: "",
                VERSION_KEY: self.version or "",
            }
        if self.action is LifecycleAction.COMPLETE:
            return {END_ANNOTATION_KEY: new_id}
        if self.action is LifecycleAction.CLEAR:
            return PersistedState().to_metadata()
        return None


_PHASES = {
    LifecycleAction.START: LifecyclePhase.STARTED,
    LifecycleAction.RESTART: LifecyclePhase.STARTED,
    LifecycleAction.COMPLETE: LifecyclePhase.COMPLETED,
    LifecycleAction.DELETE: LifecyclePhase.DELETED,
}


def decide(state: PersistedState, observation: Observation) -> Decision:
    if not observation.workload_exists:
        if observation.tracking_enabled:
            return Decision(LifecycleAction.DELETE, reason="workload deleted")
        return Decision(LifecycleAction.NONE, reason="deleted in untracked namespace")

    if not observation.tracking_enabled:
        if state.is_empty:
            return Decision(LifecycleAction.NONE, reason="untracked")
        return Decision(LifecycleAction.CLEAR, reason="tracking disabled")

    current = observation.current_version
    if not state.version:
        return Decision(LifecycleAction.INITIALIZE, version=current, reason="first sighting")

    if state.version != current:
        if state.start_annotation_id:
            return Decision(
                LifecycleAction.RESTART, version=current, reason="version changed mid-rollout"
            )
        return Decision(LifecycleAction.START, version=current, reason="version changed")

    if observation.ready and state.start_annotation_id and not state.end_annotation_id:
        return Decision(LifecycleAction.COMPLETE, version=current, reason="rollout ready")
    return Decision(LifecycleAction.NONE, version=current, reason="no lifecycle change")
