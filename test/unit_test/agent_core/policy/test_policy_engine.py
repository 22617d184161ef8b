from __future__ import annotations

from typing import Any, Dict, Optional

import pytest
from pydantic import ValidationError

from codepilot_ai.agent_core.planning.contracts import TaskSpec, normalize_task_spec
from codepilot_ai.agent_core.policy.base import NoopPolicy, PolicyEvaluator
from codepilot_ai.agent_core.policy.engine import (
    PolicyEngine,
    build_preview,
    is_dangerous_command,
    is_forced_recursive_delete,
    is_high_risk_shell,
)
from codepilot_ai.agent_core.policy.models import PolicyConfig
from codepilot_ai.agent_core.runtime.models import ToolCallRequest, ToolDefinition
from codepilot_ai.agent_core.schemas.domain import PolicyAction, Severity


def _spec(capability: Optional[str]) -> TaskSpec:
    data: Dict[str, Any] = {"goal": {"natural": "fix the bug"}}
    if capability is not None:
        data["risk_profile"] = {"capability": capability}
    return normalize_task_spec(data)


def _engine(capability: Optional[str] = None, **config: Any) -> PolicyEngine:
    engine = PolicyEngine(config=config or None)
    engine.set_task_spec(_spec(capability))
    return engine


def _bash(command: str, **extra: Any) -> ToolCallRequest:
    return ToolCallRequest(name="execute_bash", arguments={"command": command, **extra})


class TestCommandPatterns:
    @pytest.mark.parametrize(
        "command",
        ["rm -rf /", "rm -fr /*", "sudo rm -rf / ", "rm -rf --no-preserve-root /", "shutdown -h now", "mkfs.ext4 /dev/sda",
         "dd if=/dev/zero of=/dev/sda", ":(){ :|:& };:"],
    )
    def test_dangerous(self, command: str) -> None:
        assert is_dangerous_command(command) is True

    @pytest.mark.parametrize(
        "command",
        [
            "rm -r -f /",
            "rm --recursive --force /",
            "rm -f -R /home",
            "rm -rf /etc",
            "rm -rf ~",
            "rm -Rf $HOME",
            "rm -rf ./build",
            "cd /tmp && rm -rf cache",
        ],
    )
    def test_forced_recursive_delete_in_any_spelling(self, command: str) -> None:
        assert is_forced_recursive_delete(command) is True
        assert is_dangerous_command(command) is True

    @pytest.mark.parametrize(
        "command",
        ["rm -r build", "rm -f tmp.txt", "rm tmp.txt", "ls -la /", "git status --force-with-lease", ""],
    )
    def test_not_dangerous(self, command: str) -> None:
        assert is_dangerous_command(command) is False

    def test_high_risk(self) -> None:
        assert is_high_risk_shell("sudo apt update") is True
        assert is_high_risk_shell("chmod -R 777 .") is True
        assert is_high_risk_shell("chown user file") is True
        assert is_high_risk_shell("brew install jq") is True
        assert is_high_risk_shell("pytest -q") is False
        assert is_high_risk_shell("   ") is False


def test_no_spec_defaults_to_full_shell() -> None:
    engine = PolicyEngine()
    assert engine.evaluate(_bash("make test")) is None
    assert engine.evaluate(ToolCallRequest(name="Edit", arguments={"path": "a.py"})) is None


def test_allowlist_blocks_unlisted_tools() -> None:
    engine = _engine(tool_allowlist=["Read"])

    decision = engine.evaluate(ToolCallRequest(name="Glob"))

    assert decision is not None
    assert decision.action == PolicyAction.block
    assert decision.reason == 'Tool "Glob" is not in the active allowlist.'
    assert decision.severity == Severity.medium
    assert engine.evaluate(ToolCallRequest(name="Read")) is None


def test_denylist_blocks_with_high_severity() -> None:
    engine = _engine(tool_denylist=["Read"])

    decision = engine.evaluate(ToolCallRequest(name="Read"))

    assert decision.action == PolicyAction.block
    assert decision.reason == 'Tool "Read" is explicitly denied by policy.'
    assert decision.severity == Severity.high


def test_root_delete_blocked_even_under_full_shell() -> None:
    decision = _engine("full_shell").evaluate(_bash("rm -rf /"))

    assert decision.action == PolicyAction.block
    assert decision.reason == 'Command blocked by guardrails: "rm -rf /"'
    assert decision.severity == Severity.high


@pytest.mark.parametrize("command", ["rm -r -f /", "rm --recursive --force /", "rm -rf ~"])
def test_split_and_long_delete_flags_blocked_under_full_shell(command: str) -> None:
    decision = _engine("full_shell").evaluate(_bash(command))

    assert decision.action == PolicyAction.block
    assert decision.reason == f'Command blocked by guardrails: "{command}"'


def test_read_only_blocks_shell_and_mutating_but_not_reads() -> None:
    engine = _engine("read_only")

    bash = engine.evaluate(_bash("ls"))
    edit = engine.evaluate(ToolCallRequest(name="Edit", arguments={}))

    assert bash.action == PolicyAction.block
    assert bash.reason == 'Policy read_only forbids tool "execute_bash"'
    assert edit.action == PolicyAction.block
    assert engine.evaluate(ToolCallRequest(name="Read", arguments={"path": "a.py"})) is None


def test_read_only_skips_size_caps() -> None:
    engine = _engine("read_only", max_file_size_bytes=1)
    assert engine.evaluate(ToolCallRequest(name="Read", arguments={"content": "large"})) is None


def test_write_with_diff_dry_runs_shell_with_command_preview() -> None:
    decision = _engine("write_with_diff").evaluate(_bash("rm tmp.txt"))

    assert decision.action == PolicyAction.dry_run
    assert decision.severity == Severity.low
    assert decision.reason == 'Policy write_with_diff requires dry-run for "execute_bash"'
    assert decision.preview == 'Dry-run: would execute "rm tmp.txt"'


def test_write_with_diff_preview_uses_tool_description() -> None:
    tool = ToolDefinition(name="write_file", handler=lambda args: "x", description="Write a file")

    decision = _engine("write_with_diff").evaluate(ToolCallRequest(name="write_file", arguments={}), tool)

    assert decision.preview == 'Dry-run: would invoke "write_file" (Write a file)'


def test_write_and_run_tests_blocks_high_risk_shell() -> None:
    engine = _engine("write_and_run_tests")

    decision = engine.evaluate(_bash("sudo make install"))

    assert decision.action == PolicyAction.block
    assert decision.reason == 'High-risk shell command blocked: "sudo make install"'
    assert engine.evaluate(_bash("pytest -q")) is None


def test_runtime_cap_blocks_long_timeouts() -> None:
    engine = _engine("full_shell", max_runtime_ms=1000)

    decision = engine.evaluate(_bash("make", timeout=5000))

    assert decision.action == PolicyAction.block
    assert decision.reason == "Requested timeout 5000ms exceeds policy cap of 1000ms."
    assert engine.evaluate(_bash("make", timeout=500)) is None


def test_file_size_cap_counts_utf8_bytes() -> None:
    engine = _engine(max_file_size_bytes=4)

    decision = engine.evaluate(ToolCallRequest(name="write_file", arguments={"content": "héé"}))

    assert decision.action == PolicyAction.block
    assert decision.reason == "Content size 5 bytes exceeds policy cap of 4 bytes."


def test_high_risk_shell_dry_runs_under_full_shell() -> None:
    decision = _engine("full_shell").evaluate(_bash("chmod 777 run.sh"))

    assert decision.action == PolicyAction.dry_run
    assert decision.severity == Severity.high
    assert decision.reason == "High-risk shell command requires confirmation"
    assert decision.preview == 'Dry-run: would execute "chmod 777 run.sh"'


def test_non_mapping_arguments_are_treated_as_empty() -> None:
    assert _engine("full_shell").evaluate(ToolCallRequest(name="execute_bash", arguments="not json")) is None


def test_spec_provider_takes_precedence() -> None:
    current = {"spec": _spec("read_only")}
    engine = PolicyEngine(spec_provider=lambda: current["spec"])
    engine.set_task_spec(_spec("full_shell"))

    assert engine.evaluate(_bash("ls")).action == PolicyAction.block
    current["spec"] = _spec("full_shell")
    assert engine.evaluate(_bash("ls")) is None


class TestConfig:
    def test_partial_merge_keeps_other_keys(self) -> None:
        engine = PolicyEngine(config={"tool_denylist": ["Bash"], "max_runtime_ms": 1000})

        snapshot = engine.set_config({"tool_allowlist": "Read"})

        assert snapshot.tool_allowlist == ["Read"]
        assert snapshot.tool_denylist == ["Bash"]
        assert snapshot.max_runtime_ms == 1000

    def test_blank_names_are_dropped_and_empty_list_clears(self) -> None:
        engine = PolicyEngine(config={"tool_allowlist": [" Read ", "", "  "]})
        assert engine.get_config_snapshot().tool_allowlist == ["Read"]

        engine.set_config({"tool_allowlist": []})
        assert engine.get_config_snapshot().tool_allowlist is None

    def test_snapshot_is_a_copy(self) -> None:
        engine = PolicyEngine(config={"tool_denylist": ["Bash"]})

        snapshot = engine.get_config_snapshot()
        snapshot.tool_denylist.append("Read")

        assert engine.get_config_snapshot().tool_denylist == ["Bash"]

    def test_accepts_policy_config_instances(self) -> None:
        engine = PolicyEngine(config={"tool_denylist": ["Bash"]})
        engine.set_config(PolicyConfig(max_file_size_bytes=10))

        snapshot = engine.get_config_snapshot()
        assert snapshot.tool_denylist == ["Bash"]
        assert snapshot.max_file_size_bytes == 10

    def test_invalid_values_raise(self) -> None:
        engine = PolicyEngine()
        with pytest.raises(ValidationError):
            engine.set_config({"max_runtime_ms": -1})
        with pytest.raises(ValidationError):
            engine.set_config({"unknown_key": True})


def test_protocol_conformance() -> None:
    assert isinstance(PolicyEngine(), PolicyEvaluator)
    assert NoopPolicy().evaluate(ToolCallRequest(name="anything")) is None


def test_build_preview_without_tool() -> None:
    call = ToolCallRequest(name="run_tests", arguments={})
    assert build_preview(call, {}) == 'Dry-run: would invoke "run_tests"'
