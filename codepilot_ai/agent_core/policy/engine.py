from __future__ import annotations

"""Guardrail evaluation for tool calls.

``PolicyEngine`` is consulted by ``ToolRuntime`` before the cache and before
any handler runs. It is a pure function of the call, the tool definition, the
active task spec and the session ``PolicyConfig``. Rules are checked in order
and the first match wins:

1. allow-list (block, medium)
2. deny-list (block, high)
3. catastrophic shell commands such as deleting the filesystem root
   (block, high), regardless of capability
4. the task capability:

   - ``read_only`` blocks shell and mutating tools and has no opinion on
     anything else,
   - ``write_with_diff`` turns shell and mutating tools into dry-runs,
   - ``write_and_run_tests`` blocks high-risk shell commands,
   - ``full_shell`` adds nothing;

5. runtime and content-size caps (block, medium)
6. any remaining high-risk shell command becomes a dry-run (high).

``None`` means "no opinion": the runtime proceeds as if the call were allowed.
"""

import logging
import re
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Union

from ..schemas.domain import PolicyAction, Severity, TaskCapability
from .models import PolicyConfig, ToolPolicyDecision, normalize_tool_names

if TYPE_CHECKING:
    from ..planning.contracts import TaskSpec
    from ..runtime.models import ToolCallRequest, ToolDefinition

logger = logging.getLogger(__name__)

SpecProvider = Callable[[], Optional["TaskSpec"]]

SHELL_TOOLS = frozenset({"execute_bash", "execute_bash_stream", "BashOutput", "KillShell"})

MUTATING_TOOLS = frozenset(
    {
        "execute_bash",
        "execute_bash_stream",
        "Edit",
        "write_file",
        "NotebookEdit",
        "TodoWrite",
        "install_dependencies",
        "run_build",
        "run_tests",
        "run_repo_checks",
    }
)

# Arguments of each ``rm`` invocation, up to the next command separator.
_RM_INVOCATION = re.compile(r"\brm\s+([^;&|\n]*)", re.IGNORECASE)
_RECURSIVE_FLAG = re.compile(r"(?<!\S)(?:-(?!-)[a-z]*r|--recursive\b)", re.IGNORECASE)
_FORCE_FLAG = re.compile(r"(?<!\S)(?:-(?!-)[a-z]*f|--force\b)", re.IGNORECASE)

_DANGEROUS_PATTERNS = (
    re.compile(r"\bshutdown\b", re.IGNORECASE),
    re.compile(r"\breboot\b", re.IGNORECASE),
    re.compile(r"\bmkfs\b", re.IGNORECASE),
    re.compile(r"\bdd\s+if=", re.IGNORECASE),
    # Classic fork bomb, e.g. ":(){ :|:& };:".
    re.compile(r":\(\)\s*\{\s*:\s*\|\s*:\s*&?\s*;?\s*\}\s*;?\s*:"),
)

_HIGH_RISK_PATTERNS = (
    re.compile(r"^sudo\b", re.IGNORECASE),
    re.compile(r"\bchmod\s+(?:-R\s+)?7", re.IGNORECASE),
    re.compile(r"\bchown\s+", re.IGNORECASE),
    re.compile(r"\b(?:apt(?:-get)?|yum|dnf|brew)\s+install\b", re.IGNORECASE),
)


def is_shell_tool(name: str) -> bool:
    return name in SHELL_TOOLS


def is_mutating_tool(name: str) -> bool:
    return name in MUTATING_TOOLS


def is_forced_recursive_delete(command: str) -> bool:
    """Whether ``command`` runs ``rm`` with both recursive and force flags, in any spelling."""
    for match in _RM_INVOCATION.finditer(command or ""):
        args = match.group(1)
        if _RECURSIVE_FLAG.search(args) and _FORCE_FLAG.search(args):
            return True
    return False


def is_dangerous_command(command: str) -> bool:
    if not command:
        return False
    return is_forced_recursive_delete(command) or any(p.search(command) for p in _DANGEROUS_PATTERNS)


def is_high_risk_shell(command: str) -> bool:
    trimmed = (command or "").strip()
    if not trimmed:
        return False
    return any(p.search(trimmed) for p in _HIGH_RISK_PATTERNS)


def _format_number(value: Union[int, float]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_preview(call: "ToolCallRequest", args: Mapping[str, Any], tool: Optional["ToolDefinition"] = None) -> str:
    """Describe what a dry-run call would have done."""
    command = args.get("command")
    if call.name == "execute_bash" and isinstance(command, str):
        return f'Dry-run: would execute "{command}"'
    if tool is not None and tool.description:
        return f'Dry-run: would invoke "{call.name}" ({tool.description})'
    return f'Dry-run: would invoke "{call.name}"'


class PolicyEngine:
    """Guardrail evaluator driven by the task capability and a ``PolicyConfig``.

    The active task spec is read through ``spec_provider`` when one is given
    (typically the mission manager's current spec); otherwise the spec stored
    with ``set_task_spec`` is used.
    """

    def __init__(
        self,
        spec_provider: Optional[SpecProvider] = None,
        config: Union[PolicyConfig, Mapping[str, Any], None] = None,
    ) -> None:
        self._spec_provider = spec_provider
        self._spec: Optional["TaskSpec"] = None
        self._config = PolicyConfig()
        if config is not None:
            self.set_config(config)

    def set_task_spec(self, spec: Optional["TaskSpec"]) -> None:
        self._spec = spec

    def set_config(self, partial: Union[PolicyConfig, Mapping[str, Any]]) -> PolicyConfig:
        """
        Merge ``partial`` into the current configuration.

        Only keys present in ``partial`` change. Allow/deny lists are trimmed and
        blank names dropped; a list that ends up empty clears the setting.

        Raises:
            pydantic.ValidationError: If ``partial`` contains unknown keys or invalid values.
        """
        if isinstance(partial, PolicyConfig):
            updates = partial.model_dump(exclude_unset=True)
        else:
            updates = dict(partial)
        for key in ("tool_allowlist", "tool_denylist"):
            value = updates.get(key)
            if isinstance(value, str):
                value = [value]
            if value is not None:
                updates[key] = normalize_tool_names(list(value))

        merged = {**self._config.model_dump(), **updates}
        self._config = PolicyConfig.model_validate(merged)
        logger.debug(f"Policy config updated: {self._config.model_dump(exclude_none=True)}")
        return self.get_config_snapshot()

    def get_config_snapshot(self) -> PolicyConfig:
        return self._config.model_copy(deep=True)

    def _active_spec(self) -> Optional["TaskSpec"]:
        if self._spec_provider is not None:
            return self._spec_provider()
        return self._spec

    def _capability(self) -> TaskCapability:
        spec = self._active_spec()
        if spec is not None and spec.risk_profile is not None and spec.risk_profile.capability is not None:
            return spec.risk_profile.capability
        return TaskCapability.full_shell

    def evaluate(
        self, call: "ToolCallRequest", tool: Optional["ToolDefinition"] = None
    ) -> Optional[ToolPolicyDecision]:
        """
        Evaluate a tool call against the guardrails.

        Args:
            call: The requested call. Non-mapping arguments are treated as empty.
            tool: The resolved tool definition, used for dry-run previews.

        Returns:
            The first matching decision, or ``None`` when no rule applies.
        """
        name = call.name
        args: Dict[str, Any] = dict(call.arguments) if isinstance(call.arguments, Mapping) else {}
        command = args.get("command") if isinstance(args.get("command"), str) else ""
        shell = is_shell_tool(name)
        mutating = is_mutating_tool(name)
        cfg = self._config

        if cfg.tool_allowlist and name not in cfg.tool_allowlist:
            return ToolPolicyDecision(
                action=PolicyAction.block,
                reason=f'Tool "{name}" is not in the active allowlist.',
                severity=Severity.medium,
            )
        if cfg.tool_denylist and name in cfg.tool_denylist:
            return ToolPolicyDecision(
                action=PolicyAction.block,
                reason=f'Tool "{name}" is explicitly denied by policy.',
                severity=Severity.high,
            )

        if is_dangerous_command(command):
            return ToolPolicyDecision(
                action=PolicyAction.block,
                reason=f'Command blocked by guardrails: "{command}"',
                severity=Severity.high,
            )

        capability = self._capability()
        if capability == TaskCapability.read_only:
            if shell or mutating:
                return ToolPolicyDecision(
                    action=PolicyAction.block,
                    reason=f'Policy read_only forbids tool "{name}"',
                    severity=Severity.medium,
                )
            return None

        if capability == TaskCapability.write_with_diff and (shell or mutating):
            return ToolPolicyDecision(
                action=PolicyAction.dry_run,
                reason=f'Policy write_with_diff requires dry-run for "{name}"',
                preview=build_preview(call, args, tool),
                severity=Severity.low,
            )

        if capability == TaskCapability.write_and_run_tests and shell and is_high_risk_shell(command):
            return ToolPolicyDecision(
                action=PolicyAction.block,
                reason=f'High-risk shell command blocked: "{command}"',
                severity=Severity.high,
            )

        timeout = args.get("timeout")
        if (
            cfg.max_runtime_ms
            and isinstance(timeout, (int, float))
            and not isinstance(timeout, bool)
            and timeout > cfg.max_runtime_ms
        ):
            return ToolPolicyDecision(
                action=PolicyAction.block,
                reason=(
                    f"Requested timeout {_format_number(timeout)}ms exceeds policy cap of "
                    f"{_format_number(cfg.max_runtime_ms)}ms."
                ),
                severity=Severity.medium,
            )

        content = args.get("content")
        if cfg.max_file_size_bytes and isinstance(content, str):
            size = len(content.encode("utf-8"))
            if size > cfg.max_file_size_bytes:
                return ToolPolicyDecision(
                    action=PolicyAction.block,
                    reason=f"Content size {size} bytes exceeds policy cap of {cfg.max_file_size_bytes} bytes.",
                    severity=Severity.medium,
                )

        if shell and is_high_risk_shell(command):
            return ToolPolicyDecision(
                action=PolicyAction.dry_run,
                reason="High-risk shell command requires confirmation",
                preview=build_preview(call, args, tool),
                severity=Severity.high,
            )

        return None
