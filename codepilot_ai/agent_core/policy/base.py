from __future__ import annotations

"""Policy evaluator protocol.

``ToolRuntime`` only depends on this protocol. ``PolicyEngine`` is the
guardrail implementation; ``NoopPolicy`` is used when a runtime is built
without guardrails.
"""

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from .models import ToolPolicyDecision

if TYPE_CHECKING:
    from ..runtime.models import ToolCallRequest, ToolDefinition


@runtime_checkable
class PolicyEvaluator(Protocol):
    """Decide how a tool call should be handled.

    Returning ``None`` means the evaluator has no opinion and the call proceeds.
    """

    def evaluate(
        self, call: "ToolCallRequest", tool: Optional["ToolDefinition"] = None
    ) -> Optional[ToolPolicyDecision]: ...


class NoopPolicy:
    """Evaluator that never has an opinion."""

    def evaluate(
        self, call: "ToolCallRequest", tool: Optional["ToolDefinition"] = None
    ) -> Optional[ToolPolicyDecision]:
        return None
