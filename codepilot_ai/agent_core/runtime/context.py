from __future__ import annotations

"""Tool output truncation.

Tool results are appended to the model context verbatim, so oversized output
is cut down before it leaves ``ToolRuntime``. The strategy depends on the tool:

- file reads keep the head and the tail,
- search results keep the first matches,
- shell output keeps mostly the end, where errors and exit summaries are,
- anything else keeps the beginning.

Every truncated result carries a notice stating how much was dropped.
"""

from dataclasses import dataclass
from typing import List

DEFAULT_MAX_TOOL_OUTPUT_LENGTH = 10_000
DEFAULT_CHARS_PER_TOKEN = 3
NOTICE_RESERVE = 100

FILE_READ_TOOLS = frozenset({"Read", "read_file"})
SEARCH_TOOLS = frozenset({"Grep", "grep_search", "Glob", "glob_search"})
SHELL_OUTPUT_TOOLS = frozenset({"Bash", "bash", "execute_bash", "execute_bash_stream"})


@dataclass(frozen=True)
class TruncationResult:
    content: str
    was_truncated: bool
    original_length: int
    truncated_length: int


class ContextManager:
    """Keep individual tool outputs within a character budget."""

    def __init__(
        self,
        max_tool_output_length: int = DEFAULT_MAX_TOOL_OUTPUT_LENGTH,
        chars_per_token: int = DEFAULT_CHARS_PER_TOKEN,
    ) -> None:
        self.max_tool_output_length = max(1, max_tool_output_length)
        self.chars_per_token = max(1, chars_per_token)

    def truncate_tool_output(self, output: str, tool_name: str) -> TruncationResult:
        original_length = len(output)
        if original_length <= self.max_tool_output_length:
            return TruncationResult(output, False, original_length, original_length)

        if tool_name in FILE_READ_TOOLS:
            content = self._truncate_file(output)
        elif tool_name in SEARCH_TOOLS:
            content = self._truncate_search(output)
        elif tool_name in SHELL_OUTPUT_TOOLS:
            content = self._truncate_shell(output)
        else:
            content = self._truncate_default(output)
        return TruncationResult(content, True, original_length, len(content))

    def estimate_tokens(self, text: str) -> int:
        """Rough token estimate for ``text``; conservative for code-heavy content."""
        return -(-len(text) // self.chars_per_token)

    def _truncate_file(self, output: str) -> str:
        lines = output.split("\n")
        if len(lines) <= 100:
            return self._truncate_default(output)
        keep = max(1, self.max_tool_output_length // 100)
        if keep * 2 >= len(lines):
            return self._truncate_default(output)
        dropped = len(lines) - keep * 2
        parts: List[str] = [
            *lines[:keep],
            f"\n... [{dropped} lines truncated for context management] ...\n",
            *lines[-keep:],
        ]
        return "\n".join(parts)

    def _truncate_search(self, output: str) -> str:
        lines = output.split("\n")
        keep = max(1, self.max_tool_output_length // 80)
        if len(lines) <= keep:
            return self._truncate_default(output)
        dropped = len(lines) - keep
        return "\n".join(
            [*lines[:keep], f"\n... [{dropped} more results truncated for context management] ..."]
        )

    def _truncate_shell(self, output: str) -> str:
        limit = self.max_tool_output_length
        keep_tail = max(1, int(limit * 0.8))
        keep_head = max(0, limit - keep_tail - NOTICE_RESERVE)
        dropped = len(output) - keep_head - keep_tail
        return (
            f"{output[:keep_head]}\n\n... [{dropped} characters truncated for context management] ...\n\n"
            f"{output[-keep_tail:]}"
        )

    def _truncate_default(self, output: str) -> str:
        limit = self.max_tool_output_length
        keep = max(0, limit - NOTICE_RESERVE)
        dropped = len(output) - keep
        return f"{output[:keep]}\n\n... [{dropped} characters truncated for context management] ..."
