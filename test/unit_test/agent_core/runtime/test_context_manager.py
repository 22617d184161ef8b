from __future__ import annotations

from codepilot_ai.agent_core.runtime.context import ContextManager


def test_short_output_is_untouched() -> None:
    result = ContextManager(max_tool_output_length=100).truncate_tool_output("hello", "Read")

    assert result.content == "hello"
    assert result.was_truncated is False
    assert result.original_length == result.truncated_length == 5


def test_file_read_keeps_head_and_tail() -> None:
    text = "\n".join(f"line {i}" for i in range(500))
    result = ContextManager(max_tool_output_length=1000).truncate_tool_output(text, "Read")

    lines = result.content.split("\n")
    assert result.was_truncated is True
    assert lines[0] == "line 0"
    assert lines[-1] == "line 499"
    assert "[480 lines truncated for context management]" in result.content


def test_search_keeps_first_results() -> None:
    text = "\n".join(f"src/file_{i}.py:1: match" for i in range(100))
    result = ContextManager(max_tool_output_length=800).truncate_tool_output(text, "Grep")

    assert result.content.startswith("src/file_0.py:1: match")
    assert "[90 more results truncated for context management]" in result.content
    assert "file_50" not in result.content


def test_shell_keeps_mostly_the_tail() -> None:
    text = "a" * 1000 + "FINAL ERROR"
    result = ContextManager(max_tool_output_length=500).truncate_tool_output(text, "execute_bash")

    assert result.content.endswith("FINAL ERROR")
    assert "characters truncated for context management" in result.content
    assert result.truncated_length < result.original_length


def test_default_keeps_the_beginning() -> None:
    text = "START" + "b" * 1000
    result = ContextManager(max_tool_output_length=300).truncate_tool_output(text, "custom")

    assert result.content.startswith("START")
    assert "[805 characters truncated for context management]" in result.content


def test_short_file_falls_back_to_default_strategy() -> None:
    text = "x" * 5000
    result = ContextManager(max_tool_output_length=1000).truncate_tool_output(text, "read_file")

    assert result.content.startswith("x" * 900)
    assert "[4100 characters truncated for context management]" in result.content


def test_estimate_tokens_rounds_up() -> None:
    manager = ContextManager(chars_per_token=3)
    assert manager.estimate_tokens("") == 0
    assert manager.estimate_tokens("abcd") == 2
    assert manager.estimate_tokens("abcdef") == 2
