"""Title, tag and body rendering for lifecycle annotations."""

from __future__ import annotations

from dataclasses import dataclass

from deploy_annotator.contracts.models import WorkloadIdentity
from deploy_annotator.contracts.types import LifecyclePhase
from deploy_annotator.lifecycle.sanitize import sanitize_for_log

CATEGORY = "deploy"
REGION_TAG = "region"

_TITLE_ACTIONS = {
    LifecyclePhase.STARTED: "start",
    LifecyclePhase.COMPLETED: "end",
    LifecyclePhase.DELETED: "delete",
}


@dataclass(frozen=True, slots=True)
class AnnotationContent:
    title: str
    tags: list[str]
    body: str


def _tags(identity: WorkloadIdentity, image_tag: str, marker: str) -> list[str]:
    values = [
        CATEGORY,
        sanitize_for_log(identity.namespace),
        sanitize_for_log(identity.name),
        sanitize_for_log(image_tag),
        marker,
        identity.kind.value,
    ]
    return [value for value in values if value]


def render(
    identity: WorkloadIdentity, phase: LifecyclePhase, image_tag: str, image_ref: str
) -> AnnotationContent:
    name = sanitize_for_log(identity.name)
    title = f"{CATEGORY}-{_TITLE_ACTIONS[phase]}:{name}"
    if phase is LifecyclePhase.DELETED:
        body = f"Deleted deployment {name}"
    else:
        body = f"{phase.value.capitalize()} deployment {sanitize_for_log(image_ref)}"
    return AnnotationContent(title=title, tags=_tags(identity, image_tag, phase.value), body=body)


def region_tags(identity: WorkloadIdentity, image_tag: str) -> list[str]:
    return _tags(identity, image_tag, REGION_TAG)
