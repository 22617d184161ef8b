from __future__ import annotations

import pytest

from codepilot_ai.agent_core.errors import PlanContractError
from codepilot_ai.agent_core.planning.contracts import (
    PlanDAG,
    TaskSpec,
    normalize_plan_dag,
    normalize_task_spec,
)
from codepilot_ai.agent_core.schemas.domain import InteractionMode, PlanNodeStatus, TaskCapability


class TestNormalizeTaskSpec:
    def test_trims_and_drops_blank_values(self) -> None:
        spec = normalize_task_spec(
            {
                "goal": {"natural": "  Add caching  ", "machine": {"type": "feature"}},
                "constraints": ["  keep API stable ", "", "   ", 7],
                "evaluation": {"success": ["tests pass", " "], "acceptance_hint": "   "},
            }
        )

        assert spec.goal.natural == "Add caching"
        assert spec.goal.machine == {"type": "feature"}
        assert spec.constraints == ["keep API stable", "7"]
        assert spec.evaluation.success == ["tests pass"]
        assert spec.evaluation.acceptance_hint is None

    def test_coerces_budget_numbers(self) -> None:
        spec = normalize_task_spec(
            {
                "goal": {"natural": "x"},
                "budget": {"max_steps": "12", "max_wall_time_sec": "abc", "cost_ceiling": True},
            }
        )

        assert spec.budget.max_steps == 12
        assert spec.budget.max_wall_time_sec is None
        assert spec.budget.cost_ceiling is None

    def test_unknown_enum_values_are_dropped(self) -> None:
        spec = normalize_task_spec(
            {
                "goal": {"natural": "x"},
                "risk_profile": {"capability": "root_access", "interaction": {"mode": "ask_before_risky"}},
            }
        )

        assert spec.risk_profile.capability is None
        assert spec.risk_profile.interaction.mode == InteractionMode.ask_before_risky

    def test_accepts_existing_spec(self) -> None:
        original = normalize_task_spec({"goal": {"natural": "x"}, "risk_profile": {"capability": "read_only"}})

        again = normalize_task_spec(original)

        assert isinstance(again, TaskSpec)
        assert again.risk_profile.capability == TaskCapability.read_only

    def test_non_mapping_input_gives_empty_goal(self) -> None:
        spec = normalize_task_spec({"goal": "not an object"})
        assert spec.goal.natural == ""
        assert spec.constraints == []


class TestNormalizePlanDag:
    def test_fills_default_ids_titles_and_status(self) -> None:
        plan = normalize_plan_dag(
            {
                "nodes": [
                    {"title": "  Explore  "},
                    {"id": "impl", "depends_on": ["step_1", " "], "status": "exploded"},
                ],
                "metadata": {"rationale": "two steps"},
            }
        )

        first, second = plan.nodes
        assert first.id == "step_1"
        assert first.title == "Explore"
        assert first.status == PlanNodeStatus.pending
        assert second.title == "impl"
        assert second.depends_on == ["step_1"]
        assert second.status == PlanNodeStatus.pending
        assert plan.metadata.version == "v1"
        assert plan.metadata.rationale == "two steps"
        assert plan.metadata.created_at.endswith("Z")

    def test_keeps_known_status_and_args(self) -> None:
        plan = normalize_plan_dag(
            {"nodes": [{"id": "a", "status": "succeeded", "tool": "Read", "args": {"path": "x"}}]}
        )

        node = plan.nodes[0]
        assert node.status == PlanNodeStatus.succeeded
        assert node.tool == "Read"
        assert node.args == {"path": "x"}

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(PlanContractError, match='Duplicate plan node id detected: "a"'):
            normalize_plan_dag({"nodes": [{"id": "a"}, {"id": "a"}]})

    def test_unknown_dependency_rejected(self) -> None:
        with pytest.raises(PlanContractError, match='Plan node "b" depends on unknown node "zzz"'):
            normalize_plan_dag({"nodes": [{"id": "a"}, {"id": "b", "depends_on": ["zzz"]}]})

    def test_cycles_are_accepted(self) -> None:
        plan = normalize_plan_dag(
            {"nodes": [{"id": "a", "depends_on": ["b"]}, {"id": "b", "depends_on": ["a"]}]}
        )
        assert [n.id for n in plan.nodes] == ["a", "b"]

    def test_round_trips_existing_graph(self) -> None:
        plan = normalize_plan_dag({"nodes": [{"id": "a"}], "metadata": {"version": "v2"}})

        again = normalize_plan_dag(plan)

        assert isinstance(again, PlanDAG)
        assert again.metadata.version == "v2"
        assert again.metadata.created_at == plan.metadata.created_at

    def test_plan_contract_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            normalize_plan_dag({"nodes": [{"id": "a"}, {"id": "a"}]})
