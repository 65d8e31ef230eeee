"""Namespace opt-in gate for lifecycle tracking."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_LABEL_KEY = "deployment-annotator"
DEFAULT_LABEL_VALUE = "enabled"


@dataclass(frozen=True, slots=True)
class TrackingGate:
    """Decides whether a namespace is tracked from its labels."""

    label_key: str = DEFAULT_LABEL_KEY
    label_value: str = DEFAULT_LABEL_VALUE

    def is_tracked(self, labels: Mapping[str, str] | None) -> bool:
        if not labels:
            return False
        return labels.get(self.label_key) == self.label_value

    def toggled(
        self, previous: Mapping[str, str] | None, current: Mapping[str, str] | None
    ) -> bool:
        return self.is_tracked(previous) != self.is_tracked(current)
