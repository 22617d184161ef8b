from __future__ import annotations

"""Mission and guardrail tools exposed to the model as the ``mission`` suite.

The handlers are thin adapters over ``MissionManager`` and ``PolicyEngine``.
Contract violations (empty goal, duplicate node ids, unknown dependencies,
invalid guardrail values) are returned to the model as text so it can correct
its input; they never abort the tool call.
"""

import json
import logging
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from ..errors import PlanContractError
from ..planning.mission import MissionManager
from ..policy.engine import PolicyEngine
from ..runtime.models import ToolDefinition, ToolSuite
from ..runtime.timeline import TimelineRecorder
from ..schemas.domain import PlanNodeStatus, TimelineStatus

logger = logging.getLogger(__name__)

MISSION_SUITE_ID = "mission"

_GUARDRAIL_KEYS = ("tool_allowlist", "tool_denylist", "max_runtime_ms", "max_file_size_bytes")


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


def build_mission_tools(
    mission: MissionManager,
    policy: PolicyEngine,
    timeline: TimelineRecorder,
) -> List[ToolDefinition]:
    """
    Build the mission tool definitions bound to one session's collaborators.

    Args:
        mission: Mission manager mutated by the planning tools.
        policy: Policy engine inspected and updated by the guardrail tools.
        timeline: Receives a ``policy.updated`` event on guardrail changes.

    Returns:
        Tool definitions in the order they are offered to the provider.
    """

    def set_mission(args: Dict[str, Any]) -> str:
        text = args.get("mission")
        if not isinstance(text, str) or not text.strip():
            return "Error: mission must be a non-empty string."
        mission.set_mission(text.strip())
        spec = args.get("task_spec")
        if isinstance(spec, Mapping) and spec:
            try:
                mission.set_task_spec(spec)
            except (PlanContractError, ValidationError) as e:
                logger.warning(f"Task spec rejected while setting mission: {e}")
                return f"Mission set but task spec rejected: {e}"
        state = "captured" if spec else "initialized"
        return f'Mission set: "{text}". Task spec {state}. I will now create a plan to achieve this.'

    def set_task_spec(args: Dict[str, Any]) -> str:
        spec = args.get("spec")
        if not isinstance(spec, Mapping) or not spec:
            return "Error: spec must be provided as an object."
        try:
            recorded = mission.set_task_spec(spec)
        except (PlanContractError, ValidationError) as e:
            logger.warning(f"Task spec rejected: {e}")
            return f"Error: {e}"
        return f"Task spec recorded. Goal: {recorded.goal.natural or '(no goal)'}"

    def get_mission(args: Dict[str, Any]) -> str:
        return mission.get_status()

    def complete_mission(args: Dict[str, Any]) -> str:
        summary = args.get("summary")
        if not isinstance(summary, str) or not summary.strip():
            return "Error: summary must be a non-empty string."
        current = mission.get_mission()
        mission.complete_mission()
        return f'Mission "{current}" has been completed. Summary: {summary}'

    def create_plan(args: Dict[str, Any]) -> str:
        graph = args.get("plan")
        if isinstance(graph, Mapping) and graph:
            try:
                mission.set_plan_graph(graph)
            except (PlanContractError, ValidationError) as e:
                logger.warning(f"Plan DAG rejected: {e}")
                return f"Error recording plan DAG: {e}"
            return "Plan DAG recorded. Execution ready."

        steps = args.get("steps")
        if not isinstance(steps, list) or any(not isinstance(s, str) for s in steps):
            return "Error: provide either plan (DAG) or steps (array of strings)."
        mission.set_plan(steps)
        return f"Plan created with {len(steps)} steps. Starting execution."

    def get_current_task(args: Dict[str, Any]) -> str:
        task = mission.get_current_task()
        if task is None:
            return "No active task. The plan is complete or blocked."
        return _dump(
            {
                "id": task.id,
                "title": task.title,
                "description": task.description,
                "status": task.status.value,
                "depends_on": list(task.depends_on),
            }
        )

    def complete_task(args: Dict[str, Any]) -> str:
        completed = mission.get_current_task()
        if completed is None:
            return "Error: No active task to complete."
        status = args.get("status") or PlanNodeStatus.succeeded.value
        mission.complete_current_task(status)
        base = f'Task "{completed.title}" marked {status}.'
        following = mission.get_current_task()
        if following is None:
            return f"{base} Plan is done or needs replanning."
        return f"{base} Next task: {following.title}."

    def get_plan_status(args: Dict[str, Any]) -> str:
        plan = mission.get_plan()
        if plan is None:
            return "No plan has been created yet."
        return _dump(plan.model_dump(mode="json"))

    def get_feedback_packet(args: Dict[str, Any]) -> str:
        return _dump(mission.get_feedback_packet().model_dump(mode="json"))

    def inspect_guardrails(args: Dict[str, Any]) -> str:
        spec = mission.get_task_spec()
        risk_profile = spec.risk_profile if spec is not None else None
        return _dump(
            {
                "config": policy.get_config_snapshot().model_dump(mode="json"),
                "risk_profile": risk_profile.model_dump(mode="json", exclude_none=True) if risk_profile else None,
                "goal": spec.goal.model_dump(mode="json") if spec is not None else None,
            }
        )

    def update_guardrails(args: Dict[str, Any]) -> str:
        updates = {key: args[key] for key in _GUARDRAIL_KEYS if key in args}
        try:
            snapshot = policy.set_config(updates)
        except ValidationError as e:
            logger.warning(f"Guardrail update rejected: {e}")
            return f"Error: invalid guardrail settings: {e.error_count()} problem(s) found."
        timeline.record(
            "policy.updated",
            status=TimelineStatus.succeeded,
            message="Guardrails updated via tool",
            metadata={"config": snapshot.model_dump(mode="json")},
        )
        return "Guardrails updated."

    return [
        ToolDefinition(
            name="SetMission",
            description=(
                "Sets the agent's high-level objective or \"mission\". "
                "This will begin the autonomous execution loop."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "mission": {
                        "type": "string",
                        "description": "A clear and concise description of the overall mission.",
                    },
                    "task_spec": {
                        "type": "object",
                        "description": (
                            "Optional structured task spec contract containing goal, constraints, "
                            "budget, and risk profile."
                        ),
                    },
                },
                "required": ["mission"],
            },
            handler=set_mission,
        ),
        ToolDefinition(
            name="SetTaskSpec",
            description=(
                "Captures a structured task contract including goal, constraints, budget, "
                "risk profile, and evaluation hints."
            ),
            parameters={
                "type": "object",
                "properties": {"spec": {"type": "object", "description": "Structured task spec contract."}},
                "required": ["spec"],
            },
            handler=set_task_spec,
        ),
        ToolDefinition(
            name="GetMission",
            description="Retrieves the current mission and the status of the plan.",
            parameters={"type": "object", "properties": {}},
            handler=get_mission,
        ),
        ToolDefinition(
            name="CompleteMission",
            description="Declares the overall mission as complete.",
            parameters={
                "type": "object",
                "properties": {
                    "summary": {
                        "type": "string",
                        "description": "A summary of how the mission was accomplished.",
                    }
                },
                "required": ["summary"],
            },
            handler=complete_mission,
        ),
        ToolDefinition(
            name="CreatePlan",
            description="Creates a new plan to work towards the current mission. Supports linear steps or a DAG.",
            parameters={
                "type": "object",
                "properties": {
                    "steps": {
                        "type": "array",
                        "description": "A list of tasks to be executed to achieve the mission.",
                        "items": {"type": "string"},
                    },
                    "plan": {"type": "object", "description": "Plan DAG with nodes and optional metadata."},
                },
                "required": [],
            },
            handler=create_plan,
        ),
        ToolDefinition(
            name="GetCurrentTask",
            description="Gets the current task from the plan (next runnable node).",
            parameters={"type": "object", "properties": {}},
            handler=get_current_task,
        ),
        ToolDefinition(
            name="CompleteTask",
            description="Marks the current task as complete.",
            parameters={
                "type": "object",
                "properties": {
                    "status": {
                        "type": "string",
                        "enum": ["succeeded", "failed", "skipped", "blocked"],
                        "description": "Outcome for the current task.",
                    }
                },
            },
            handler=complete_task,
        ),
        ToolDefinition(
            name="GetPlanStatus",
            description="Returns the current plan DAG with node statuses.",
            parameters={"type": "object", "properties": {}},
            handler=get_plan_status,
        ),
        ToolDefinition(
            name="GetFeedbackPacket",
            description="Returns a structured feedback packet (summary, deltas, errors, timeline refs).",
            parameters={"type": "object", "properties": {}},
            handler=get_feedback_packet,
        ),
        ToolDefinition(
            name="InspectGuardrails",
            description="Shows the active guardrail policy, task spec snapshot, and risk profile.",
            parameters={"type": "object", "properties": {}},
            handler=inspect_guardrails,
        ),
        ToolDefinition(
            name="UpdateGuardrails",
            description=(
                "Updates guardrail policy (allowlist, denylist, max runtime/file size) for the current session."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "tool_allowlist": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Only allow these tools (empty to clear allowlist).",
                    },
                    "tool_denylist": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Block these tools.",
                    },
                    "max_runtime_ms": {
                        "type": "number",
                        "description": "Maximum allowed timeout in milliseconds for tool calls.",
                    },
                    "max_file_size_bytes": {
                        "type": "integer",
                        "description": "Maximum allowed content size for write operations in bytes.",
                    },
                },
                "additionalProperties": False,
            },
            handler=update_guardrails,
        ),
    ]


def build_mission_suite(
    mission: MissionManager,
    policy: PolicyEngine,
    timeline: TimelineRecorder,
) -> ToolSuite:
    return ToolSuite(
        id=MISSION_SUITE_ID,
        description="Mission planning and guardrail tools",
        tools=build_mission_tools(mission, policy, timeline),
    )
