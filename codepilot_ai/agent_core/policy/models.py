from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..schemas.base import BaseSchema
from ..schemas.domain import PolicyAction, Severity


def normalize_tool_names(values: Optional[List[Any]]) -> Optional[List[str]]:
    """Trim names and drop blanks; an empty result means "no list"."""
    if values is None:
        return None
    names = [str(v).strip() for v in values if v is not None and str(v).strip()]
    return names or None


class PolicyConfig(BaseSchema):
    """
    Session-wide guardrail limits.

    Default behavior is permissive: no allow-list, no deny-list and no caps.
    """

    tool_allowlist: Optional[List[str]] = Field(
        default=None,
        description="If set, only these tool names may be executed.",
    )
    tool_denylist: Optional[List[str]] = Field(
        default=None,
        description="Tool names in this list are always blocked.",
    )
    max_runtime_ms: Optional[float] = Field(
        default=None,
        gt=0,
        description="Calls requesting a larger numeric 'timeout' argument are blocked.",
    )
    max_file_size_bytes: Optional[int] = Field(
        default=None,
        gt=0,
        description="Calls whose 'content' argument exceeds this many UTF-8 bytes are blocked.",
    )

    @field_validator("tool_allowlist", "tool_denylist", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set)):
            return normalize_tool_names(list(value))
        return value


@dataclass(frozen=True)
class ToolPolicyDecision:
    """
    Result of a guardrail evaluation for a single tool call.

    Attributes:
        action: allow, block or dry-run.
        reason: Human-readable reason; returned to the model for block decisions.
        sanitized_arguments: Argument overrides merged into the call on allow.
        preview: Text returned instead of running the tool on dry-run.
        severity: low, medium or high.
    """

    action: PolicyAction
    reason: Optional[str] = None
    sanitized_arguments: Optional[Dict[str, Any]] = None
    preview: Optional[str] = None
    severity: Optional[Severity] = None
