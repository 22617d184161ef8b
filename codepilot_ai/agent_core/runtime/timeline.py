from __future__ import annotations

"""Append-only timeline of structured session events.

The tool runtime records ``tool_execution`` / ``policy_blocked`` events and the
mission manager records mission and plan transitions. The feedback packet reads
the latest events back.
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..schemas.base import BaseSchema, utc_now_iso
from ..schemas.domain import TimelineStatus


class TimelineEvent(BaseSchema):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    action: str
    timestamp: str = Field(default_factory=utc_now_iso)
    step_id: Optional[str] = None
    tool: Optional[str] = None
    status: Optional[TimelineStatus] = None
    message: Optional[str] = None
    artifacts: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None


class TimelineRecorder:
    """In-memory, append-only event log owned by one session."""

    def __init__(self) -> None:
        self._events: List[TimelineEvent] = []

    def record(
        self,
        action: str,
        *,
        status: Optional[TimelineStatus] = None,
        step_id: Optional[str] = None,
        tool: Optional[str] = None,
        message: Optional[str] = None,
        artifacts: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> TimelineEvent:
        """Append an event; ``event_id`` and ``timestamp`` are generated when omitted."""
        fields: Dict[str, Any] = {
            "action": action,
            "status": status,
            "step_id": step_id,
            "tool": tool,
            "message": message,
            "artifacts": artifacts,
            "metadata": metadata,
        }
        if event_id:
            fields["event_id"] = event_id
        if timestamp:
            fields["timestamp"] = timestamp
        event = TimelineEvent(**fields)
        self._events.append(event)
        return event

    def list(self) -> List[TimelineEvent]:
        return list(self._events)

    def latest(self, count: int = 10) -> List[TimelineEvent]:
        if count <= 0:
            return []
        return self._events[-count:]

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
