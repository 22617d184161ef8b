from __future__ import annotations

"""Task and plan contracts.

``TaskSpec`` describes what a mission is trying to achieve and under which
capability tier. ``PlanDAG`` is the dependency graph of steps produced for it.

Both are normalized on write:

- ``normalize_task_spec`` trims strings, drops blank list items, coerces budget
  numbers and drops unknown capability / interaction values.
- ``normalize_plan_dag`` fills default ids and titles, resets unknown statuses
  to ``pending`` and rejects duplicate ids or dependencies on unknown ids.

Dependency cycles are *not* detected. A cyclic plan is accepted and simply
never yields a runnable node for the nodes on the cycle.
"""

import math
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import Field

from ..errors import PlanContractError
from ..schemas.base import BaseSchema, utc_now_iso
from ..schemas.domain import InteractionMode, PlanNodeStatus, TaskCapability

Number = Union[int, float]


class TaskGoal(BaseSchema):
    natural: str = ""
    machine: Dict[str, Any] = Field(default_factory=dict)


class TaskBudget(BaseSchema):
    max_steps: Optional[Number] = None
    max_wall_time_sec: Optional[Number] = None
    cost_ceiling: Optional[Union[Number, str]] = None


class TaskInteraction(BaseSchema):
    mode: Optional[InteractionMode] = None


class TaskRiskProfile(BaseSchema):
    capability: Optional[TaskCapability] = None
    interaction: Optional[TaskInteraction] = None


class TaskEvaluation(BaseSchema):
    success: Optional[List[str]] = None
    acceptance_hint: Optional[str] = None


class TaskSpec(BaseSchema):
    """
    Structured description of a mission.

    Attributes:
        goal: Natural-language goal plus an optional machine-readable mapping.
        constraints: Free-form constraints the agent must respect.
        budget: Optional step, wall-time and cost limits.
        risk_profile: Capability tier and interaction mode used by the guardrails.
        evaluation: Success criteria and an acceptance hint.
    """

    goal: TaskGoal = Field(default_factory=TaskGoal)
    constraints: List[str] = Field(default_factory=list)
    budget: Optional[TaskBudget] = None
    risk_profile: Optional[TaskRiskProfile] = None
    evaluation: Optional[TaskEvaluation] = None


class PlanNode(BaseSchema):
    id: str
    title: str
    description: Optional[str] = None
    tool: Optional[str] = None
    args: Optional[Dict[str, Any]] = None
    depends_on: List[str] = Field(default_factory=list)
    status: PlanNodeStatus = PlanNodeStatus.pending


class PlanMetadata(BaseSchema):
    rationale: Optional[str] = None
    version: str = "v1"
    created_at: str = Field(default_factory=utc_now_iso)


class PlanDAG(BaseSchema):
    """Dependency graph of plan nodes, replaced wholesale on every write."""

    nodes: List[PlanNode] = Field(default_factory=list)
    metadata: PlanMetadata = Field(default_factory=PlanMetadata)


class FeedbackPacket(BaseSchema):
    """Compact progress report assembled from the plan and recent timeline events."""

    summary: str
    deltas: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    timeline_refs: List[str] = Field(default_factory=list)


def _as_dict(data: Any) -> Dict[str, Any]:
    if isinstance(data, BaseSchema):
        return data.model_dump(exclude_none=True, mode="json")
    if isinstance(data, Mapping):
        return dict(data)
    return {}


def _clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _clean_str_list(values: Any) -> List[str]:
    if not isinstance(values, (list, tuple)):
        return []
    return [s for s in (_clean_str(v) for v in values) if s]


def _to_number(value: Any) -> Optional[Number]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _enum_or_none(enum_cls, value: Any):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def normalize_task_spec(data: Union[TaskSpec, Mapping[str, Any]]) -> TaskSpec:
    """
    Build a normalized ``TaskSpec`` from a mapping or an existing spec.

    Invalid optional values are dropped instead of rejected. The caller decides
    whether an empty ``goal.natural`` is acceptable.
    """
    raw = _as_dict(data)
    goal_raw = _as_dict(raw.get("goal"))
    machine = goal_raw.get("machine")
    goal = TaskGoal(
        natural=_clean_str(goal_raw.get("natural")),
        machine=dict(machine) if isinstance(machine, Mapping) else {},
    )

    budget: Optional[TaskBudget] = None
    if isinstance(raw.get("budget"), Mapping):
        b = raw["budget"]
        ceiling = b.get("cost_ceiling")
        budget = TaskBudget(
            max_steps=_to_number(b.get("max_steps")),
            max_wall_time_sec=_to_number(b.get("max_wall_time_sec")),
            cost_ceiling=ceiling if isinstance(ceiling, (int, float, str)) and not isinstance(ceiling, bool) else None,
        )

    risk_profile: Optional[TaskRiskProfile] = None
    if isinstance(raw.get("risk_profile"), Mapping):
        r = raw["risk_profile"]
        interaction = None
        if isinstance(r.get("interaction"), Mapping):
            interaction = TaskInteraction(mode=_enum_or_none(InteractionMode, r["interaction"].get("mode")))
        risk_profile = TaskRiskProfile(
            capability=_enum_or_none(TaskCapability, r.get("capability")),
            interaction=interaction,
        )

    evaluation: Optional[TaskEvaluation] = None
    if isinstance(raw.get("evaluation"), Mapping):
        e = raw["evaluation"]
        evaluation = TaskEvaluation(
            success=_clean_str_list(e["success"]) if isinstance(e.get("success"), (list, tuple)) else None,
            acceptance_hint=_clean_str(e.get("acceptance_hint")) or None,
        )

    return TaskSpec(
        goal=goal,
        constraints=_clean_str_list(raw.get("constraints")),
        budget=budget,
        risk_profile=risk_profile,
        evaluation=evaluation,
    )


def normalize_plan_dag(data: Union[PlanDAG, Mapping[str, Any]]) -> PlanDAG:
    """
    Build a validated ``PlanDAG`` from a mapping or an existing graph.

    Raises:
        PlanContractError: On a duplicate node id or a dependency on an unknown id.
    """
    raw = _as_dict(data)
    seen: set[str] = set()
    nodes: List[PlanNode] = []

    for index, node_raw in enumerate(raw.get("nodes") or []):
        node = _as_dict(node_raw)
        node_id = _clean_str(node.get("id")) or f"step_{index + 1}"
        if node_id in seen:
            raise PlanContractError(f'Duplicate plan node id detected: "{node_id}"')
        seen.add(node_id)

        args = node.get("args")
        nodes.append(
            PlanNode(
                id=node_id,
                title=_clean_str(node.get("title")) or node_id,
                description=node["description"] if isinstance(node.get("description"), str) else None,
                tool=node["tool"] if isinstance(node.get("tool"), str) else None,
                args=dict(args) if isinstance(args, Mapping) else None,
                depends_on=_clean_str_list(node.get("depends_on")),
                status=_enum_or_none(PlanNodeStatus, node.get("status")) or PlanNodeStatus.pending,
            )
        )

    for node in nodes:
        for dep in node.depends_on:
            if dep not in seen:
                raise PlanContractError(f'Plan node "{node.id}" depends on unknown node "{dep}"')

    meta = _as_dict(raw.get("metadata"))
    metadata = PlanMetadata(
        rationale=meta["rationale"] if isinstance(meta.get("rationale"), str) else None,
        version=_clean_str(meta.get("version")) or "v1",
        created_at=_clean_str(meta.get("created_at")) or utc_now_iso(),
    )
    return PlanDAG(nodes=nodes, metadata=metadata)
