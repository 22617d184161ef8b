"""Execution core of the coding agent.

Everything between "the model asked for a tool" and "text goes back to the
model" lives here:

- ``runtime``: ``ToolRuntime`` with its registry, result cache, output
  truncation, argument validation and the session timeline.
- ``policy``: ``PolicyEngine`` guardrails (allow/deny lists, capability tiers,
  dangerous shell commands, runtime and size caps).
- ``retry``: ``with_retry`` exponential backoff, ``CircuitBreaker`` and error
  classification.
- ``planning``: ``TaskSpec`` / ``PlanDAG`` contracts and the ``MissionManager``
  state machine.
- ``tools``: the ``mission`` tool suite exposing planning to the model.
- ``session``: ``AgentSession``, which wires one instance of each of the above.

Typical usage
-------------

1. Create an ``AgentSession`` (optionally from explicit ``Settings``).
2. Build a ``ToolRuntime`` with ``session.build_tool_runtime(context, suites)``.
3. Forward ``runtime.list_provider_tools()`` to the model provider and feed
   each returned tool call to ``await runtime.execute(call)``.
"""

from .errors import (
    AgentCoreError,
    CircuitOpenError,
    PermanentExecutionError,
    PlanContractError,
    PolicyBlockedError,
    ToolArgumentValidationError,
    ToolNotFoundError,
    ToolRegistrationError,
    TransientExecutionError,
)
from .planning import MissionManager, PlanDAG, PlanNode, TaskSpec
from .policy import PolicyConfig, PolicyEngine, ToolPolicyDecision
from .retry import CircuitBreaker, RetryConfig, with_retry
from .runtime import (
    TimelineRecorder,
    ToolCallRequest,
    ToolDefinition,
    ToolExecutionContext,
    ToolRuntime,
    ToolSuite,
    create_default_tool_runtime,
)
from .session import AgentSession

__all__ = [
    "AgentCoreError",
    "AgentSession",
    "CircuitBreaker",
    "CircuitOpenError",
    "MissionManager",
    "PermanentExecutionError",
    "PlanContractError",
    "PlanDAG",
    "PlanNode",
    "PolicyBlockedError",
    "PolicyConfig",
    "PolicyEngine",
    "RetryConfig",
    "TaskSpec",
    "TimelineRecorder",
    "ToolArgumentValidationError",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolExecutionContext",
    "ToolNotFoundError",
    "ToolPolicyDecision",
    "ToolRegistrationError",
    "ToolRuntime",
    "ToolSuite",
    "TransientExecutionError",
    "create_default_tool_runtime",
    "with_retry",
]
