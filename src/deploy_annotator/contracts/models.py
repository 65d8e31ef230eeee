"""Domain models for workload lifecycle tracking."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from deploy_annotator.contracts.types import WorkloadKind

ANNOTATION_PREFIX = "deployment-annotator.io/"
VERSION_KEY = f"{ANNOTATION_PREFIX}tracked-version"
START_ANNOTATION_KEY = f"{ANNOTATION_PREFIX}start-annotation-id"
END_ANNOTATION_KEY = f"{ANNOTATION_PREFIX}end-annotation-id"
PERSISTED_KEYS = (VERSION_KEY, START_ANNOTATION_KEY, END_ANNOTATION_KEY)


class WorkloadIdentity(BaseModel, frozen=True):
    """Namespace, name and kind of a workload."""

    namespace: str
    name: str
    kind: WorkloadKind

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


class WorkloadSnapshot(BaseModel):
    """Point-in-time view of a workload, normalized across kinds."""

    identity: WorkloadIdentity
    uid: str = ""
    generation: int = 0
    observed_generation: int = 0
    desired_replicas: int = 0
    ready_replicas: int = 0
    images: list[str] = Field(default_factory=list)
    selector: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, str] = Field(default_factory=dict)
    resource_version: str | None = None

    @property
    def primary_image(self) -> str | None:
        return self.images[0] if self.images else None


class ChildController(BaseModel):
    """A controller owned by a workload, e.g. a ReplicaSet owned by a Deployment."""

    name: str
    owner_uid: str
    created_at: datetime
    template_hash: str | None = None
    images: list[str] = Field(default_factory=list)


class PersistedState(BaseModel):
    """Lifecycle state stored in the workload's own metadata."""

    version: str | None = None
    start_annotation_id: str | None = None
    end_annotation_id: str | None = None

    @classmethod
    def from_metadata(cls, metadata: dict[str, str]) -> PersistedState:
        return cls(
            version=metadata.get(VERSION_KEY) or None,
            start_annotation_id=metadata.get(START_ANNOTATION_KEY) or None,
            end_annotation_id=metadata.get(END_ANNOTATION_KEY) or None,
        )

    def to_metadata(self) -> dict[str, str]:
        """Render as a key merge; empty values remove keys."""
        return {
            VERSION_KEY: self.version or "",
            START_ANNOTATION_KEY: self.start_annotation_id or "",
            END_ANNOTATION_KEY: self.end_annotation_id or "",
        }

    @property
    def is_empty(self) -> bool:
        return not (self.version or self.start_annotation_id or self.end_annotation_id)


class Observation(BaseModel):
    """Facts computed from a fresh look at the cluster."""

    tracking_enabled: bool
    workload_exists: bool
    current_version: str | None = None
    ready: bool = False


class AnnotationRecord(BaseModel):
    """An annotation as stored by the sink."""

    id: int
    title: str
    tags: list[str]
    body: str
    timestamp: datetime
    end_timestamp: datetime | None = None
    is_region: bool = False
