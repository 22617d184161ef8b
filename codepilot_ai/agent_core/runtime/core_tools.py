from __future__ import annotations

"""Metadata tools registered by every runtime as the ``runtime.core`` suite."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .models import ToolDefinition, ToolSuite

CORE_SUITE_ID = "runtime.core"


@dataclass(frozen=True)
class ToolExecutionContext:
    """
    Describes the environment the tools run in.

    Attributes:
        profile_name: Active CLI profile (e.g. ``general``).
        provider: Provider id (e.g. ``anthropic``).
        model: Model identifier.
        workspace_context: Repository snapshot captured at startup, if any.
    """

    profile_name: str
    provider: str
    model: str
    workspace_context: Optional[str] = None


def build_context_snapshot_tool(workspace_context: Optional[str]) -> ToolDefinition:
    def handler(args: Dict[str, Any]) -> str:
        text = (workspace_context or "").strip()
        if not text:
            return "Workspace context is unavailable."
        if args.get("format") == "markdown":
            return "\n".join(["```text", text, "```"])
        return text

    return ToolDefinition(
        name="context_snapshot",
        description="Returns the repository context that was automatically captured during startup.",
        parameters={
            "type": "object",
            "properties": {
                "format": {
                    "type": "string",
                    "description": 'Use "plain" for raw text or "markdown" for a fenced block.',
                    "enum": ["plain", "markdown"],
                }
            },
        },
        handler=handler,
    )


def build_capabilities_tool(context: ToolExecutionContext) -> ToolDefinition:
    def handler(args: Dict[str, Any]) -> str:
        adjective = "Operator facing" if args.get("audience") == "developer" else "Model facing"
        return "\n".join(
            [
                f"{adjective} capabilities summary:",
                "- Full file system access (read, write, list, search).",
                "- Bash command execution for running scripts and tools.",
                "- Advanced code search and pattern matching.",
                "- Deterministic workspace context snapshot appended to the system prompt.",
                "- Tool invocations are logged in realtime for transparency.",
                f"- Active provider: {context.provider} ({context.model}).",
            ]
        )

    return ToolDefinition(
        name="capabilities_overview",
        description="Summarizes the agent runtime capabilities including available tools and features.",
        parameters={
            "type": "object",
            "properties": {
                "audience": {
                    "type": "string",
                    "enum": ["developer", "model"],
                    "description": "Tailors the tone of the description.",
                }
            },
        },
        handler=handler,
    )


def build_profile_details_tool(context: ToolExecutionContext) -> ToolDefinition:
    def handler(args: Dict[str, Any]) -> str:
        payload = {
            "profile": context.profile_name,
            "provider": context.provider,
            "model": context.model,
            "workspace_context": context.workspace_context if args.get("include_workspace_context") else None,
        }
        return json.dumps(payload, indent=2)

    return ToolDefinition(
        name="profile_details",
        description="Returns the configuration of the active CLI profile.",
        parameters={
            "type": "object",
            "properties": {
                "include_workspace_context": {
                    "type": "boolean",
                    "description": "Set true to append the workspace context snapshot if available.",
                }
            },
            "additionalProperties": False,
        },
        handler=handler,
    )


def build_core_suite(context: ToolExecutionContext) -> ToolSuite:
    return ToolSuite(
        id=CORE_SUITE_ID,
        description="Core runtime metadata tools",
        tools=[
            build_context_snapshot_tool(context.workspace_context),
            build_capabilities_tool(context),
            build_profile_details_tool(context),
        ],
    )
