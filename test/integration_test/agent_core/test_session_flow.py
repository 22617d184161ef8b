"""End-to-end flows through an ``AgentSession`` and the runtime it builds."""

from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from codepilot_ai.agent_core.errors import PermanentExecutionError
from codepilot_ai.agent_core.runtime.core_tools import ToolExecutionContext
from codepilot_ai.agent_core.runtime.models import Err, ErrorKind, Ok, ToolCallRequest, ToolDefinition, ToolSuite
from codepilot_ai.agent_core.session import AgentSession
from codepilot_ai.agent_core.schemas.domain import MissionState
from codepilot_ai.core.config import Settings

CONTEXT = ToolExecutionContext(profile_name="general", provider="anthropic", model="claude", workspace_context="repo")


class _Workspace:
    """Fake file and shell tools that record what actually ran."""

    def __init__(self) -> None:
        self.reads: List[str] = []
        self.commands: List[str] = []

    def read(self, args: Dict[str, Any]) -> str:
        self.reads.append(args["path"])
        return f"contents of {args['path']}"

    def bash(self, args: Dict[str, Any]) -> str:
        self.commands.append(args["command"])
        return f"ran {args['command']}"

    def suite(self) -> ToolSuite:
        return ToolSuite(
            id="workspace",
            description="Fake workspace tools",
            tools=[
                ToolDefinition(
                    name="Read",
                    description="Read a file",
                    parameters={"type": "object", "properties": {"path": {"type": "string"}}, "required": ["path"]},
                    handler=self.read,
                ),
                ToolDefinition(
                    name="execute_bash",
                    description="Run a shell command",
                    parameters={
                        "type": "object",
                        "properties": {"command": {"type": "string"}, "timeout": {"type": "number"}},
                        "required": ["command"],
                    },
                    handler=self.bash,
                ),
            ],
        )


def _settings(**values: Any) -> Settings:
    return Settings(_env_file=None, **values)


@pytest.fixture
def workspace() -> _Workspace:
    return _Workspace()


async def _call(runtime, name: str, **arguments: Any):
    return await runtime.execute_outcome(ToolCallRequest(name=name, arguments=arguments))


@pytest.mark.asyncio
async def test_task_spec_from_tool_drives_policy(workspace: _Workspace, no_sleep) -> None:
    session = AgentSession.create(_settings(), session_id="flow-1")
    runtime = session.build_tool_runtime(CONTEXT, [workspace.suite()], sleep=no_sleep)

    assert isinstance(await _call(runtime, "execute_bash", command="ls"), Ok)

    await _call(
        runtime,
        "SetTaskSpec",
        spec={"goal": {"natural": "Review only"}, "risk_profile": {"capability": "read_only"}},
    )
    blocked = await _call(runtime, "execute_bash", command="ls")
    read = await _call(runtime, "Read", path="README.md")

    assert isinstance(blocked, Err)
    assert blocked.kind == ErrorKind.policy_blocked
    assert blocked.message == 'Policy read_only forbids tool "execute_bash"'
    assert workspace.commands == ["ls"]
    assert read.render() == "contents of README.md"
    assert any(e.action == "policy_blocked" for e in session.timeline.list())


@pytest.mark.asyncio
async def test_write_with_diff_returns_preview(workspace: _Workspace, no_sleep) -> None:
    session = AgentSession.create(_settings())
    runtime = session.build_tool_runtime(CONTEXT, [workspace.suite()], sleep=no_sleep)
    await _call(runtime, "SetMission", mission="m", task_spec={"goal": {"natural": "m"}, "risk_profile": {"capability": "write_with_diff"}})

    outcome = await _call(runtime, "execute_bash", command="rm build.log")

    assert isinstance(outcome, Ok) and outcome.dry_run
    assert outcome.output == 'Dry-run: would execute "rm build.log"'
    assert workspace.commands == []


@pytest.mark.asyncio
async def test_guardrails_from_settings(workspace: _Workspace, no_sleep) -> None:
    session = AgentSession.create(_settings(tool_denylist=["execute_bash"], max_runtime_ms=1000))
    runtime = session.build_tool_runtime(CONTEXT, [workspace.suite()], sleep=no_sleep)

    denied = await _call(runtime, "execute_bash", command="ls")
    guardrails = json.loads((await _call(runtime, "InspectGuardrails")).render())

    assert denied.render() == 'Tool "execute_bash" is explicitly denied by policy.'
    assert guardrails["config"]["tool_denylist"] == ["execute_bash"]
    assert guardrails["config"]["max_runtime_ms"] == 1000


@pytest.mark.asyncio
async def test_cache_settings_apply_to_runtime(workspace: _Workspace, no_sleep) -> None:
    session = AgentSession.create(_settings(cache_max_entries=1))
    runtime = session.build_tool_runtime(CONTEXT, [workspace.suite()], sleep=no_sleep)

    await _call(runtime, "Read", path="a.py")
    cached = await _call(runtime, "Read", path="a.py")
    await _call(runtime, "Read", path="b.py")

    stats = runtime.get_cache_stats()
    assert isinstance(cached, Ok) and cached.cached
    assert workspace.reads == ["a.py", "b.py"]
    assert stats["max_entries"] == 1
    assert stats["entries"] == 1
    assert stats["evictions"] == 1
    assert session.cache_metrics.hits == 1


@pytest.mark.asyncio
async def test_cache_can_be_disabled_by_override(workspace: _Workspace, no_sleep) -> None:
    session = AgentSession.create(_settings())
    runtime = session.build_tool_runtime(CONTEXT, [workspace.suite()], sleep=no_sleep, enable_cache=False)

    await _call(runtime, "Read", path="a.py")
    await _call(runtime, "Read", path="a.py")

    assert workspace.reads == ["a.py", "a.py"]


@pytest.mark.asyncio
async def test_plan_flow_and_metrics(workspace: _Workspace, no_sleep) -> None:
    session = AgentSession.create(_settings(), session_id="flow-2")
    runtime = session.build_tool_runtime(CONTEXT, [workspace.suite()], sleep=no_sleep)

    await _call(runtime, "SetMission", mission="Document the API")
    await _call(runtime, "CreatePlan", steps=["Read sources", "Write docs"])
    current = json.loads((await _call(runtime, "GetCurrentTask")).render())
    await _call(runtime, "Read", path="api.py")
    await _call(runtime, "CompleteTask")
    await _call(runtime, "CompleteTask")
    await _call(runtime, "CompleteMission", summary="Docs written")

    assert current["title"] == "Read sources"
    assert session.mission.get_state() == MissionState.done
    assert session.session_id == "flow-2"

    names = [m.tool_name for m in session.metrics.get_tool_metrics()]
    assert names[:3] == ["SetMission", "CreatePlan", "GetCurrentTask"]
    assert "Read" in names
    assert all(m.success for m in session.metrics.get_tool_metrics())
    assert session.monitor.active_tool_executions == 0


@pytest.mark.asyncio
async def test_provider_tool_listing_order(workspace: _Workspace) -> None:
    runtime = AgentSession.create(_settings()).build_tool_runtime(CONTEXT, [workspace.suite()])

    names = [t["name"] for t in runtime.list_provider_tools()]

    assert names[:3] == ["context_snapshot", "capabilities_overview", "profile_details"]
    assert names[3] == "SetMission"
    assert names[-2:] == ["Read", "execute_bash"]


@pytest.mark.asyncio
async def test_sessions_share_nothing(workspace: _Workspace) -> None:
    first = AgentSession.create(_settings())
    second = AgentSession.create(_settings())
    runtime = first.build_tool_runtime(CONTEXT, [workspace.suite()])

    await _call(runtime, "SetMission", mission="only in the first session")
    await _call(runtime, "UpdateGuardrails", tool_denylist=["Read"])

    assert second.mission.get_state() == MissionState.idle
    assert second.policy.get_config_snapshot().tool_denylist is None
    assert len(second.timeline) == 0
    assert first.session_id != second.session_id


@pytest.mark.asyncio
async def test_long_output_is_truncated(no_sleep) -> None:
    session = AgentSession.create(_settings(max_tool_output_length=100))
    suite = ToolSuite(
        id="noisy",
        description="Produces a lot of output",
        tools=[ToolDefinition(name="dump_logs", handler=lambda args: "x" * 1000)],
    )
    runtime = session.build_tool_runtime(CONTEXT, [suite], sleep=no_sleep)

    outcome = await _call(runtime, "dump_logs")

    assert isinstance(outcome, Ok)
    assert len(outcome.output) < 1000


@pytest.mark.asyncio
async def test_tool_failures_reach_feedback_packet(workspace: _Workspace, no_sleep) -> None:
    def boom(args: Dict[str, Any]) -> str:
        raise PermanentExecutionError("permission denied")

    failing = ToolSuite(id="failing", description="Always fails", tools=[ToolDefinition(name="boom", handler=boom)])
    session = AgentSession.create(_settings(tool_denylist=["execute_bash"]))
    runtime = session.build_tool_runtime(CONTEXT, [workspace.suite(), failing], sleep=no_sleep)

    failed = await _call(runtime, "boom")
    await _call(runtime, "execute_bash", command="ls")

    errors = session.mission.get_feedback_packet().errors
    assert session.mission.timeline is session.timeline
    assert isinstance(failed, Err)
    assert failed.message == 'Failed to run "boom": permission denied'
    assert {"type": "tool_execution", "message": 'Failed to run "boom": permission denied'} in [
        {"type": e["type"], "message": e["message"]} for e in errors
    ]
    assert any(e["type"] == "policy_blocked" for e in errors)
    assert no_sleep.calls == []
