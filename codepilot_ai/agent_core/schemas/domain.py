from __future__ import annotations

from enum import Enum


class TaskCapability(str, Enum):
    """Permission tier selecting the guardrail branch for a task."""

    read_only = "read_only"
    write_with_diff = "write_with_diff"
    write_and_run_tests = "write_and_run_tests"
    full_shell = "full_shell"


class InteractionMode(str, Enum):
    full_autonomy = "full_autonomy"
    ask_before_risky = "ask_before_risky"
    ask_every_step = "ask_every_step"


class PlanNodeStatus(str, Enum):
    pending = "pending"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    skipped = "skipped"
    blocked = "blocked"


class MissionState(str, Enum):
    idle = "IDLE"
    planning = "PLANNING"
    executing = "EXECUTING"
    done = "DONE"


class TimelineStatus(str, Enum):
    started = "started"
    retrying = "retrying"
    succeeded = "succeeded"
    failed = "failed"
    blocked = "blocked"
    skipped = "skipped"


class PolicyAction(str, Enum):
    allow = "allow"
    block = "block"
    dry_run = "dry-run"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


TERMINAL_SUCCESS_STATUSES = frozenset({PlanNodeStatus.succeeded, PlanNodeStatus.skipped})
ACTIVE_STATUSES = frozenset({PlanNodeStatus.pending, PlanNodeStatus.running})
