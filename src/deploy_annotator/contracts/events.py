"""Trigger event contracts delivered from watchers to controllers."""

from __future__ import annotations

from pydantic import BaseModel, Field

from deploy_annotator.contracts.models import WorkloadIdentity, WorkloadSnapshot


class WorkloadEvent(BaseModel):
    """A watch event for a workload or one of its child controllers."""

    event_type: str
    identity: WorkloadIdentity
    snapshot: WorkloadSnapshot | None = None
    previous: WorkloadSnapshot | None = None


class NamespaceEvent(BaseModel):
    """A watch event for a namespace, carrying old and new labels."""

    event_type: str
    namespace: str
    labels: dict[str, str] = Field(default_factory=dict)
    previous_labels: dict[str, str] | None = None


WORKLOAD_ADDED = "workload.added"
WORKLOAD_MODIFIED = "workload.modified"
WORKLOAD_DELETED = "workload.deleted"
CHILD_CHANGED = "workload.child.changed"
NAMESPACE_ADDED = "namespace.added"
NAMESPACE_MODIFIED = "namespace.modified"

WATCH_EVENT_TYPES = {
    "ADDED": WORKLOAD_ADDED,
    "MODIFIED": WORKLOAD_MODIFIED,
    "DELETED": WORKLOAD_DELETED,
}
