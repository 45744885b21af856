"""Tests for the toolkit: ToolDefinition formats, ToolResult, ToolExecutor.

Executor tests cover dispatch by name, unknown tools, undeclared argument
filtering, handler exceptions (including RangeError from read_lines)
turned into error results, JSON serialization, and output truncation.
"""

from __future__ import annotations

import json

import pytest

from snapforge.document import ExplorationToolProvider
from snapforge.toolkit import ToolDefinition, ToolExecutor, ToolResult
from tests.helpers import SAMPLE_DOCUMENT


def _echo_tool(handler=None) -> ToolDefinition:
    return ToolDefinition(
        name="echo",
        description="Echo the value back.",
        parameters={
            "type": "object",
            "properties": {"value": {"type": "string"}},
            "required": ["value"],
        },
        handler=handler or (lambda value: {"echo": value}),
    )


# ===========================================================================
# ToolDefinition / ToolResult
# ===========================================================================


class TestToolDefinitionFormats:
    def test_to_openai(self):
        spec = _echo_tool().to_openai()
        assert spec == {
            "type": "function",
            "function": {
                "name": "echo",
                "description": "Echo the value back.",
                "parameters": _echo_tool().parameters,
            },
        }

    def test_to_anthropic(self):
        spec = _echo_tool().to_anthropic()
        assert spec["name"] == "echo"
        assert spec["input_schema"]["required"] == ["value"]


class TestToolResult:
    def test_success_content_is_output(self):
        assert ToolResult("t", True, output="ok").as_message_content() == "ok"

    def test_failure_content_is_prefixed(self):
        assert ToolResult("t", False, error="bad").as_message_content() == "Error: bad"


# ===========================================================================
# ToolExecutor
# ===========================================================================


class TestToolExecutor:
    def test_dispatch_serializes_json(self):
        executor = ToolExecutor([_echo_tool()])
        result = executor.execute("echo", {"value": "hi"})
        assert result.success
        assert json.loads(result.output) == {"echo": "hi"}

    def test_string_output_passes_through(self):
        executor = ToolExecutor([_echo_tool(lambda value: value.upper())])
        assert executor.execute("echo", {"value": "hi"}).output == "HI"

    def test_unknown_tool(self):
        executor = ToolExecutor([_echo_tool()])
        result = executor.execute("nope", {})
        assert not result.success
        assert "Unknown tool: nope" in result.error
        assert "echo" in result.error

    def test_undeclared_arguments_dropped(self):
        executor = ToolExecutor([_echo_tool()])
        result = executor.execute("echo", {"value": "hi", "extra": 1})
        assert result.success

    def test_handler_exception_becomes_error_result(self):
        def boom(value):
            raise RuntimeError("kaput")

        result = ToolExecutor([_echo_tool(boom)]).execute("echo", {"value": "x"})
        assert not result.success
        assert result.error == "RuntimeError: kaput"

    def test_missing_required_argument(self):
        result = ToolExecutor([_echo_tool()]).execute("echo", {})
        assert not result.success
        assert result.error.startswith("TypeError")

    def test_output_truncated(self):
        executor = ToolExecutor([_echo_tool(lambda value: value * 100)], max_output_chars=50)
        output = executor.execute("echo", {"value": "ab"}).output
        assert len(output) == 53
        assert output.endswith("...")

    def test_available_and_openai_tools(self):
        executor = ToolExecutor([_echo_tool()])
        assert executor.available_tools() == ["echo"]
        assert executor.openai_tools()[0]["function"]["name"] == "echo"


class TestExecutorWithExplorationTools:
    @pytest.fixture
    def executor(self):
        return ToolExecutor(ExplorationToolProvider(SAMPLE_DOCUMENT).tools())

    def test_read_section_range_error(self, executor):
        result = executor.execute("read_html_section", {"start_line": 50, "end_line": 60})
        assert not result.success
        assert result.error.startswith("RangeError: Invalid line range: 50-60")

    def test_stats_has_no_parameters(self, executor):
        result = executor.execute("get_html_stats", {})
        assert result.success
        assert json.loads(result.output)["structure"]["tables"] == 1

    def test_search_html_text(self, executor):
        result = executor.execute("search_html_text", {"search_text": "medication"})
        assert json.loads(result.output)["found"] == 1
