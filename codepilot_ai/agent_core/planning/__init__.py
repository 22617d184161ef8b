"""Task contracts and mission planning.

- ``TaskSpec`` / ``PlanDAG`` and their normalizers live in ``contracts``.
- ``MissionManager`` drives the mission state machine and schedules plan nodes
  in dependency order.
"""

from .contracts import (
    FeedbackPacket,
    PlanDAG,
    PlanMetadata,
    PlanNode,
    TaskBudget,
    TaskEvaluation,
    TaskGoal,
    TaskInteraction,
    TaskRiskProfile,
    TaskSpec,
    normalize_plan_dag,
    normalize_task_spec,
)
from .mission import MissionManager

__all__ = [
    "FeedbackPacket",
    "MissionManager",
    "PlanDAG",
    "PlanMetadata",
    "PlanNode",
    "TaskBudget",
    "TaskEvaluation",
    "TaskGoal",
    "TaskInteraction",
    "TaskRiskProfile",
    "TaskSpec",
    "normalize_plan_dag",
    "normalize_task_spec",
]
