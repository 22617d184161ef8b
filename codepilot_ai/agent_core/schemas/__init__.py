"""Shared pydantic base model and domain enums for the agent core."""

from .base import BaseSchema
from .domain import (
    InteractionMode,
    MissionState,
    PlanNodeStatus,
    PolicyAction,
    Severity,
    TaskCapability,
    TimelineStatus,
)

__all__ = [
    "BaseSchema",
    "InteractionMode",
    "MissionState",
    "PlanNodeStatus",
    "PolicyAction",
    "Severity",
    "TaskCapability",
    "TimelineStatus",
]
