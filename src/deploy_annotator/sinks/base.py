"""Annotation sink interface."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class AnnotationSinkError(RuntimeError):
    """Raised when the annotation service rejects or fails a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AnnotationSink(Protocol):
    """Creates and updates annotation records."""

    def create(self, title: str, tags: list[str], body: str, timestamp: datetime) -> int:
        """Create an instant annotation and return its id."""

    def extend_to_region(self, annotation_id: int, end_timestamp: datetime, tags: list[str]) -> None:
        """Turn an existing annotation into a region ending at ``end_timestamp``."""
