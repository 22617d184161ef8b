from __future__ import annotations

"""Mission state machine and plan scheduling.

``MissionManager`` owns the current mission text, its ``TaskSpec`` and the
active ``PlanDAG``. It moves through four states::

    IDLE -> PLANNING -> EXECUTING -> (PLANNING | DONE)

Scheduling is recomputed on every call: a node is *runnable* when it is
pending or running and all of its dependencies have succeeded or were
skipped. Nodes on a dependency cycle are never runnable; the plan then stays
EXECUTING without a current task until it is replaced.

Every transition is recorded on the session ``TimelineRecorder`` so the
feedback packet can summarize progress and recent errors.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from ..errors import PlanContractError
from ..runtime.timeline import TimelineRecorder
from ..schemas.domain import (
    ACTIVE_STATUSES,
    TERMINAL_SUCCESS_STATUSES,
    MissionState,
    PlanNodeStatus,
    TimelineStatus,
)
from .contracts import (
    FeedbackPacket,
    PlanDAG,
    PlanNode,
    TaskSpec,
    normalize_plan_dag,
    normalize_task_spec,
)

logger = logging.getLogger(__name__)

FEEDBACK_EVENT_WINDOW = 10

_NODE_TIMELINE_STATUS = {
    PlanNodeStatus.succeeded: TimelineStatus.succeeded,
    PlanNodeStatus.skipped: TimelineStatus.skipped,
    PlanNodeStatus.blocked: TimelineStatus.blocked,
}


class TaskSpecListener(Protocol):
    """Receives the active task spec (implemented by ``PolicyEngine``)."""

    def set_task_spec(self, spec: Optional[TaskSpec]) -> None: ...


def _coerce_status(status: Union[PlanNodeStatus, str, None]) -> PlanNodeStatus:
    try:
        return PlanNodeStatus(status)
    except ValueError:
        return PlanNodeStatus.pending


class MissionManager:
    """Track a mission, its task spec and the plan DAG executing it."""

    def __init__(
        self,
        timeline: Optional[TimelineRecorder] = None,
        policy: Optional[TaskSpecListener] = None,
    ) -> None:
        self._timeline = timeline if timeline is not None else TimelineRecorder()
        self._policy = policy
        self._mission: Optional[str] = None
        self._task_spec: Optional[TaskSpec] = None
        self._plan: Optional[PlanDAG] = None
        self._state = MissionState.idle

    @property
    def timeline(self) -> TimelineRecorder:
        return self._timeline

    def set_policy_engine(self, policy: TaskSpecListener) -> None:
        self._policy = policy
        if self._task_spec is not None:
            policy.set_task_spec(self._task_spec)

    # ------------------------------------------------------------------
    # Mission and task spec
    # ------------------------------------------------------------------

    def set_task_spec(self, spec: Union[TaskSpec, Mapping[str, Any]]) -> TaskSpec:
        """
        Normalize and store the task spec, forwarding it to the policy engine.

        Raises:
            PlanContractError: If the normalized goal is empty.
        """
        normalized = normalize_task_spec(spec)
        if not normalized.goal.natural:
            raise PlanContractError("Task spec goal.natural is required.")

        self._task_spec = normalized
        if self._policy is not None:
            self._policy.set_task_spec(normalized)
        self._timeline.record(
            "task_spec_recorded",
            message=normalized.goal.natural,
            metadata={"machine": normalized.goal.machine},
        )
        if self._state == MissionState.idle:
            self._state = MissionState.planning
        return normalized

    def get_task_spec(self) -> Optional[TaskSpec]:
        return self._task_spec

    def set_mission(self, mission: str) -> None:
        """Start a new mission; any existing plan is discarded."""
        self._mission = mission
        self._plan = None
        self._state = MissionState.planning
        self._timeline.record("mission_set", message=mission)
        logger.info(f"Mission set: {mission!r}")
        if self._task_spec is None:
            self.set_task_spec(
                {
                    "goal": {
                        "natural": mission,
                        "machine": {"type": "general", "target_outcome": "mission_complete"},
                    }
                }
            )

    def get_mission(self) -> Optional[str]:
        return self._mission

    def complete_mission(self) -> None:
        self._state = MissionState.done
        self._timeline.record(
            "mission_completed",
            message=self._mission or "mission",
            status=TimelineStatus.succeeded,
        )
        logger.info(f"Mission completed: {self._mission!r}")

    def request_replan(self, reason: Optional[str] = None) -> None:
        if self._state == MissionState.done:
            return
        self._state = MissionState.planning
        self._timeline.record(
            "plan.replan_requested",
            status=TimelineStatus.blocked,
            message=reason or "Replan requested",
        )
        logger.debug(f"Replan requested: {reason or 'no reason given'}")

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def set_plan(self, steps: Sequence[str]) -> PlanDAG:
        """Create a linear plan ``step_1 -> step_2 -> ...`` from step titles."""
        nodes = [
            {
                "id": f"step_{index + 1}",
                "title": step,
                "description": step,
                "depends_on": [] if index == 0 else [f"step_{index}"],
            }
            for index, step in enumerate(steps)
        ]
        return self.set_plan_graph({"nodes": nodes})

    def set_plan_graph(self, plan: Union[PlanDAG, Mapping[str, Any]]) -> PlanDAG:
        """
        Replace the active plan.

        Raises:
            PlanContractError: On duplicate node ids or unknown dependencies.
        """
        normalized = normalize_plan_dag(plan)
        self._plan = normalized
        self._state = MissionState.executing if normalized.nodes else MissionState.planning
        self._timeline.record(
            "plan_created",
            status=TimelineStatus.started,
            metadata={
                "nodes": len(normalized.nodes),
                "version": normalized.metadata.version,
                "rationale": normalized.metadata.rationale,
            },
        )
        logger.info(f"Plan created with {len(normalized.nodes)} nodes")
        return self.get_plan()

    def get_plan(self) -> Optional[PlanDAG]:
        """Return a deep copy of the active plan."""
        return self._plan.model_copy(deep=True) if self._plan is not None else None

    def get_runnable_nodes(self) -> List[PlanNode]:
        """Pending or running nodes whose dependencies have all succeeded or been skipped."""
        if self._plan is None:
            return []
        completed = {n.id for n in self._plan.nodes if n.status in TERMINAL_SUCCESS_STATUSES}
        return [
            n
            for n in self._plan.nodes
            if n.status in ACTIVE_STATUSES and all(dep in completed for dep in n.depends_on)
        ]

    def get_current_task(self) -> Optional[PlanNode]:
        """
        Return the first runnable node while executing.

        A pending node is marked running and a single ``plan.node_started``
        event is recorded for it.
        """
        if self._state != MissionState.executing or self._plan is None:
            return None
        runnable = self.get_runnable_nodes()
        if not runnable:
            return None
        current = runnable[0]
        if current.status == PlanNodeStatus.pending:
            current.status = PlanNodeStatus.running
            self._timeline.record(
                "plan.node_started",
                status=TimelineStatus.started,
                step_id=current.id,
                message=current.title,
            )
        return current

    def complete_current_task(self, status: Union[PlanNodeStatus, str] = PlanNodeStatus.succeeded) -> Optional[PlanNode]:
        """
        Mark the first runnable node with ``status``.

        With nothing runnable the mission returns to PLANNING. After marking,
        the mission returns to PLANNING only when every node succeeded; a plan
        stalled on failed or blocked nodes stays EXECUTING.
        """
        if self._state != MissionState.executing or self._plan is None:
            return None
        runnable = self.get_runnable_nodes()
        if not runnable:
            self._state = MissionState.planning
            return None

        current = runnable[0]
        current.status = _coerce_status(status)
        self._timeline.record(
            "plan.node_completed",
            status=_NODE_TIMELINE_STATUS.get(current.status, TimelineStatus.failed),
            step_id=current.id,
            message=current.title,
        )

        if not self.get_runnable_nodes() and all(n.status == PlanNodeStatus.succeeded for n in self._plan.nodes):
            self._state = MissionState.planning
        return current

    def update_node_status(self, target: str, status: Union[PlanNodeStatus, str]) -> bool:
        """
        Set a node's status by id or case-insensitive title.

        Marking a node failed or blocked requests a replan.

        Returns:
            False if there is no plan or no matching node.
        """
        if self._plan is None:
            return False
        wanted = target.lower()
        node = next(
            (n for n in self._plan.nodes if n.id == target or n.title.lower() == wanted),
            None,
        )
        if node is None:
            return False

        node.status = _coerce_status(status)
        if node.status == PlanNodeStatus.succeeded:
            event_status = TimelineStatus.succeeded
        elif node.status == PlanNodeStatus.failed:
            event_status = TimelineStatus.failed
        else:
            event_status = TimelineStatus.blocked
        self._timeline.record(
            "plan.node_manual_update",
            status=event_status,
            step_id=node.id,
            message=f"Manually marked {node.title}",
        )
        if node.status in (PlanNodeStatus.failed, PlanNodeStatus.blocked):
            self.request_replan(f"Node {node.id} marked {node.status.value}")
        return True

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_state(self) -> MissionState:
        return self._state

    def _succeeded_count(self) -> int:
        return sum(1 for n in self._plan.nodes if n.status == PlanNodeStatus.succeeded) if self._plan else 0

    def get_status(self) -> str:
        """Human-readable mission status."""
        if self._state == MissionState.idle:
            return "I am idle. I have no mission."
        if self._state == MissionState.done:
            return f'Mission "{self._mission}" is complete.'

        lines = [f'Mission: "{self._mission or "n/a"}"', f"State: {self._state.value}"]
        if self._plan is not None:
            lines.append(f"Plan progress: {self._succeeded_count()}/{len(self._plan.nodes)} done")
            current = self.get_current_task()
            if current is not None:
                lines.append(f"Current Task: {current.title}")
            else:
                lines.append("Plan is complete or blocked. Ready for replanning.")
        return "\n".join(lines)

    def get_feedback_packet(self) -> FeedbackPacket:
        events = self._timeline.latest(FEEDBACK_EVENT_WINDOW)
        errors: List[Dict[str, Any]] = [
            {"type": e.action, "message": e.message, "details_artifact": e.event_id}
            for e in events
            if e.status == TimelineStatus.failed or e.action == "policy_blocked"
        ]
        deltas: List[Dict[str, Any]] = [
            {"type": "plan_node_status", "target": n.id, "status": n.status.value, "title": n.title}
            for n in (self._plan.nodes if self._plan else [])
        ]

        parts = []
        if self._task_spec is not None and self._task_spec.goal.natural:
            parts.append(f"Goal: {self._task_spec.goal.natural}")
        if self._plan is not None:
            parts.append(f"Plan: {self._succeeded_count()}/{len(self._plan.nodes)} nodes done")

        return FeedbackPacket(
            summary=" | ".join(parts) or "No active task",
            deltas=deltas,
            errors=errors,
            timeline_refs=[e.event_id for e in events],
        )
