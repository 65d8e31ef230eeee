"""Shared enums for deploy-annotator contracts."""

from __future__ import annotations

from enum import Enum


class WorkloadKind(str, Enum):
    """Workload kinds tracked by the controller."""

    DEPLOYMENT = "deployment"
    STATEFULSET = "statefulset"
    DAEMONSET = "daemonset"


class LifecyclePhase(str, Enum):
    """Rollout phases reported to the annotation sink."""

    STARTED = "started"
    COMPLETED = "completed"
    DELETED = "deleted"


class LifecycleAction(str, Enum):
    """Actions the lifecycle state machine can decide on."""

    NONE = "none"
    INITIALIZE = "initialize"
    START = "start"
    RESTART = "restart"
    COMPLETE = "complete"
    DELETE = "delete"
    CLEAR = "clear"
