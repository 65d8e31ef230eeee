"""In-memory annotation sink for demos and tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from itertools import count
from threading import Lock

from deploy_annotator.contracts.models import AnnotationRecord
from deploy_annotator.sinks.base import AnnotationSinkError


@dataclass(slots=True)
class InMemoryAnnotationSink:
    """Stores annotations in a dict keyed by id.

    ``fail_creates`` / ``fail_regions`` make the next calls raise, to exercise
    the reschedule paths.
    """

    records: dict[int, AnnotationRecord] = field(default_factory=dict)
    fail_creates: int = 0
    fail_regions: int = 0
    _ids: count = field(default_factory=lambda: count(1))
    _lock: Lock = field(default_factory=Lock)

    def create(self, title: str, tags: list[str], body: str, timestamp: datetime) -> int:
        with self._lock:
            if self.fail_creates > 0:
                self.fail_creates -= 1
                raise AnnotationSinkError("grafana 503: unavailable", status_code=503)
            annotation_id = next(self._ids)
            self.records[annotation_id] = AnnotationRecord(
                id=annotation_id,
                title=title,
                tags=list(tags),
                body=body,
                timestamp=timestamp,
            )
            return annotation_id

    def extend_to_region(self, annotation_id: int, end_timestamp: datetime, tags: list[str]) -> None:
        with self._lock:
            if self.fail_regions > 0:
                self.fail_regions -= 1
                raise AnnotationSinkError("grafana 500: region update failed", status_code=500)
            record = self.records.get(annotation_id)
            if record is None:
                raise AnnotationSinkError(
                    f"grafana 404: annotation {annotation_id} not found", status_code=404
                )
            self.records[annotation_id] = record.model_copy(
                update={"end_timestamp": end_timestamp, "is_region": True, "tags": list(tags)}
            )

    @property
    def annotations(self) -> list[AnnotationRecord]:
        with self._lock:
            return [self.records[key] for key in sorted(self.records)]

    def titles(self) -> list[str]:
        return [record.title for record in self.annotations]
