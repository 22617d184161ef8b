"""Error types for the agent core.

Defines a small hierarchy of exceptions raised by the tool runtime, the
guardrail policy, the retry utilities and the mission planner.

Execution-time errors (validation, policy, transient/permanent handler
failures, missing tools) are converted to text at the ``ToolRuntime.execute``
boundary. Authoring-time errors (``PlanContractError``,
``ToolRegistrationError``) are raised synchronously to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .policy.models import ToolPolicyDecision


class AgentCoreError(Exception):
    """Base error for all agent core exceptions."""


class ToolArgumentValidationError(AgentCoreError):
    """Raised when tool arguments do not satisfy the tool's parameter schema.

    The message is surfaced to the model verbatim and the call is never retried.
    """

    def __init__(self, tool_name: str, problems: list[str]) -> None:
        self.tool_name = tool_name
        self.problems = list(problems)
        super().__init__(f'Invalid arguments for "{tool_name}": ' + "; ".join(self.problems))


class PolicyBlockedError(AgentCoreError):
    """Raised when a guardrail refuses a tool call."""

    def __init__(self, tool_name: str, decision: Optional["ToolPolicyDecision"] = None, reason: str = "") -> None:
        self.tool_name = tool_name
        self.decision = decision
        message = reason or (decision.reason if decision is not None and decision.reason else "")
        super().__init__(message or f'Tool "{tool_name}" blocked by policy.')


class TransientExecutionError(AgentCoreError):
    """Raised for handler failures that may succeed when retried."""

    def __init__(self, message: str, attempts: int = 1) -> None:
        self.attempts = attempts
        super().__init__(message)


class OperationTimeoutError(TransientExecutionError):
    """Raised when a single retry attempt exceeds its per-attempt timeout."""

    def __init__(self, timeout_ms: float) -> None:
        self.timeout_ms = timeout_ms
        shown = int(timeout_ms) if float(timeout_ms).is_integer() else timeout_ms
        super().__init__(f"Operation timed out after {shown}ms")


class PermanentExecutionError(AgentCoreError):
    """Raised for handler failures that will not succeed when retried."""


class ToolNotFoundError(AgentCoreError):
    """Raised when no active suite provides the requested tool."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f'Tool "{tool_name}" is not available.')


class ToolRegistrationError(AgentCoreError, ValueError):
    """Raised when a suite cannot be registered (blank or duplicate tool names)."""


class PlanContractError(AgentCoreError, ValueError):
    """Raised for malformed task specs and plan graphs.

    Covers duplicate node ids, dependencies on unknown node ids and task specs
    without a natural-language goal.
    """


class CircuitOpenError(AgentCoreError):
    """Raised by ``CircuitBreaker.execute`` while the breaker is open."""

    def __init__(self) -> None:
        super().__init__("Circuit breaker is OPEN - too many failures")
