"""Guardrail policy for tool execution.

The policy layer provides *runtime* decisions for tool calls, separate from
prompting and planning.

Components
----------

- ``PolicyConfig``: session-wide allow/deny lists and runtime/content caps.
- ``ToolPolicyDecision``: allow, block or dry-run verdict with a reason,
  optional preview and severity.
- ``PolicyEvaluator``: protocol consumed by ``ToolRuntime``.
- ``PolicyEngine``: guardrail evaluator combining the config with the active
  task's capability tier.
- ``NoopPolicy``: evaluator that never has an opinion.
"""

from .base import NoopPolicy, PolicyEvaluator
from .engine import (
    MUTATING_TOOLS,
    SHELL_TOOLS,
    PolicyEngine,
    build_preview,
    is_dangerous_command,
    is_high_risk_shell,
)
from .models import PolicyConfig, ToolPolicyDecision

__all__ = [
    "MUTATING_TOOLS",
    "SHELL_TOOLS",
    "NoopPolicy",
    "PolicyConfig",
    "PolicyEngine",
    "PolicyEvaluator",
    "ToolPolicyDecision",
    "build_preview",
    "is_dangerous_command",
    "is_high_risk_shell",
]
