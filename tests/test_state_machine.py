"""Unit tests for the lifecycle state machine rules."""

from __future__ import annotations

from deploy_annotator.contracts.models import (
    END_ANNOTATION_KEY,
    START_ANNOTATION_KEY,
    VERSION_KEY,
    Observation,
    PersistedState,
)
from deploy_annotator.contracts.types import LifecycleAction, LifecyclePhase
from deploy_annotator.lifecycle.state_machine import Decision, decide

V1 = "hash-aaa-img-1.0"
V2 = "hash-bbb-img-2.0"


def _persisted(
    state: PersistedState, decision: Decision, annotation_id: int | None = None
) -> PersistedState:
    """Apply the decision's key merge to metadata the way the adapter writes it."""
    metadata = {key: value for key, value in state.to_metadata().items() if value}
    metadata["unrelated"] = "kept"
    for key, value in (decision.metadata_patch(state, annotation_id) or {}).items():
        if value:
            metadata[key] = value
        else:
            metadata.pop(key, None)
    assert metadata["unrelated"] == "kept"
    return PersistedState.from_metadata(metadata)


def _tracked(version: str | None = V1, ready: bool = False) -> Observation:
    return Observation(
        tracking_enabled=True, workload_exists=True, current_version=version, ready=ready
    )


def test_deleted_workload_in_tracked_namespace_emits_deleted() -> None:
    decision = decide(PersistedState(), Observation(tracking_enabled=True, workload_exists=False))
    assert decision.action is LifecycleAction.DELETE
    assert decision.phase is LifecyclePhase.DELETED
    assert decision.metadata_patch(PersistedState(), 7) is None


def test_deleted_workload_in_untracked_namespace_is_ignored() -> None:
    decision = decide(PersistedState(), Observation(tracking_enabled=False, workload_exists=False))
    assert decision.action is LifecycleAction.NONE
    assert not decision.emits


def test_tracking_disabled_clears_state_without_emitting() -> None:
    state = PersistedState(version=V1, start_annotation_id="3", end_annotation_id="4")
    decision = decide(state, Observation(tracking_enabled=False, workload_exists=True))
    assert decision.action is LifecycleAction.CLEAR
    assert not decision.emits
    assert decision.metadata_patch(state) == {
        VERSION_KEY: "",
        START_ANNOTATION_KEY: "",
        END_ANNOTATION_KEY: "",
    }
    assert _persisted(state, decision).is_empty


def test_tracking_disabled_without_state_is_noop() -> None:
    decision = decide(PersistedState(), Observation(tracking_enabled=False, workload_exists=True))
    assert decision.action is LifecycleAction.NONE


def test_first_sighting_records_version_only() -> None:
    decision = decide(PersistedState(), _tracked(ready=True))
    assert decision.action is LifecycleAction.INITIALIZE
    assert not decision.emits
    assert decision.metadata_patch(PersistedState()) == {VERSION_KEY: V1}


def test_version_change_without_start_emits_started() -> None:
    state = PersistedState(version=V1)
    decision = decide(state, _tracked(V2))
    assert decision.action is LifecycleAction.START
    assert decision.phase is LifecyclePhase.STARTED
    assert decision.metadata_patch(state, 11) == {START_ANNOTATION_KEY: "11", VERSION_KEY: V2}
    assert _persisted(state, decision, 11) == PersistedState(version=V2, start_annotation_id="11")


def test_version_change_mid_rollout_restarts_and_clears_end() -> None:
    state = PersistedState(version=V1, start_annotation_id="3", end_annotation_id="4")
    decision = decide(state, _tracked(V2))
    assert decision.action is LifecycleAction.RESTART
    assert decision.phase is LifecyclePhase.STARTED
    assert decision.metadata_patch(state, 12) == {
        START_ANNOTATION_KEY: "12",
        END_ANNOTATION_KEY: "",
        VERSION_KEY: V2,
    }
    assert _persisted(state, decision, 12) == PersistedState(version=V2, start_annotation_id="12")


def test_ready_rollout_completes_once() -> None:
    state = PersistedState(version=V1, start_annotation_id="3")
    decision = decide(state, _tracked(ready=True))
    assert decision.action is LifecycleAction.COMPLETE
    assert decision.metadata_patch(state, 5) == {END_ANNOTATION_KEY: "5"}

    completed = _persisted(state, decision, 5)
    assert completed == PersistedState(version=V1, start_annotation_id="3", end_annotation_id="5")
    assert decide(completed, _tracked(ready=True)).action is LifecycleAction.NONE


def test_not_ready_rollout_waits() -> None:
    state = PersistedState(version=V1, start_annotation_id="3")
    assert decide(state, _tracked(ready=False)).action is LifecycleAction.NONE


def test_ready_without_start_does_not_complete() -> None:
    state = PersistedState(version=V1)
    assert decide(state, _tracked(ready=True)).action is LifecycleAction.NONE


def test_repeated_evaluation_is_idempotent() -> None:
    state = PersistedState()
    observation = _tracked(V2)
    first = decide(state, observation)
    state = _persisted(state, first)
    second = decide(state, observation)
    assert first.action is LifecycleAction.INITIALIZE
    assert second.action is LifecycleAction.NONE
    assert not second.emits
