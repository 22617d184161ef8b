"""Tool execution runtime.

``ToolRuntime`` owns the tool registry and runs each call through policy,
cache, validation and retry. Supporting pieces:

- ``TimelineRecorder``: append-only log of execution and mission events.
- ``ContextManager``: truncates oversized tool output by tool kind.
- ``ToolResultCache``: bounded TTL cache of idempotent tool results.
- ``core_tools``: the ``runtime.core`` metadata suite.
"""

from .cache import ToolResultCache
from .context import ContextManager, TruncationResult
from .core_tools import ToolExecutionContext, build_core_suite
from .models import (
    Err,
    ErrorKind,
    Ok,
    ToolCallRequest,
    ToolDefinition,
    ToolHandler,
    ToolOutcome,
    ToolSuite,
    normalize_call_arguments,
)
from .timeline import TimelineEvent, TimelineRecorder
from .tool_runtime import (
    CACHEABLE_TOOLS,
    ToolRuntime,
    ToolRuntimeObserver,
    create_default_tool_runtime,
    retry_config_for,
)
from .validation import validate_tool_arguments

__all__ = [
    "CACHEABLE_TOOLS",
    "ContextManager",
    "Err",
    "ErrorKind",
    "Ok",
    "TimelineEvent",
    "TimelineRecorder",
    "ToolCallRequest",
    "ToolDefinition",
    "ToolExecutionContext",
    "ToolHandler",
    "ToolOutcome",
    "ToolResultCache",
    "ToolRuntime",
    "ToolRuntimeObserver",
    "ToolSuite",
    "TruncationResult",
    "build_core_suite",
    "create_default_tool_runtime",
    "normalize_call_arguments",
    "retry_config_for",
    "validate_tool_arguments",
]
