from __future__ import annotations

"""Tool registration and call data models.

- ``ToolDefinition`` / ``ToolSuite`` describe what a ``ToolRuntime`` can run.
- ``ToolCallRequest`` is a single model-issued call.
- ``ToolOutcome`` is the structured result of the execution pipeline. It is
  rendered to plain text only at the ``ToolRuntime.execute`` boundary.
"""

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Union


class ToolHandler(Protocol):
    """Callable implementing a tool.

    May return text, any JSON-serializable value, or an awaitable of either.
    """

    def __call__(self, args: Dict[str, Any]) -> Union[Any, Awaitable[Any]]: ...


ArgumentNormalizer = Callable[[Dict[str, Any]], Dict[str, Any]]


@dataclass
class ToolDefinition:
    """
    A single tool exposed to the model.

    Attributes:
        name: Unique tool name among the active suites.
        handler: Implementation invoked with the normalized argument mapping.
        description: Short description forwarded to the provider.
        parameters: Optional JSON schema of the arguments.
        cacheable: Explicit cacheability. ``None`` falls back to the built-in list
            of idempotent read/search tools.
        normalize_arguments: Optional hook applied after generic normalization.
    """

    name: str
    handler: ToolHandler
    description: str = ""
    parameters: Optional[Dict[str, Any]] = None
    cacheable: Optional[bool] = None
    normalize_arguments: Optional[ArgumentNormalizer] = None

    def to_provider_schema(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": self.name, "description": self.description}
        if self.parameters is not None:
            entry["parameters"] = self.parameters
        return entry


@dataclass
class ToolSuite:
    """A named group of tools registered and unregistered together."""

    id: str
    tools: List[ToolDefinition] = field(default_factory=list)
    description: str = ""


@dataclass(frozen=True)
class ToolCallRequest:
    """
    A tool call issued by the model.

    ``arguments`` may be a mapping, a JSON object encoded as a string, or
    ``None``; ``normalize_call_arguments`` turns all of these into a dict.
    """

    name: str
    arguments: Any = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


def normalize_call_arguments(raw: Any) -> Dict[str, Any]:
    """Coerce raw call arguments to a plain dict.

    Blank, malformed or non-object JSON strings and any other value become ``{}``.
    """
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return {}
        try:
            parsed = json.loads(text)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


class ErrorKind(str, Enum):
    not_found = "not_found"
    policy_blocked = "policy_blocked"
    validation = "validation"
    execution = "execution"


@dataclass(frozen=True)
class Ok:
    """Successful pipeline outcome.

    ``dry_run`` marks a policy preview returned instead of running the handler.
    """

    output: str
    attempts: int = 0
    cached: bool = False
    dry_run: bool = False

    def render(self) -> str:
        return self.output


@dataclass(frozen=True)
class Err:
    """Failed pipeline outcome; ``message`` is the text surfaced to the model."""

    kind: ErrorKind
    message: str
    attempts: int = 0

    def render(self) -> str:
        return self.message


ToolOutcome = Union[Ok, Err]
