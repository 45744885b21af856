"""Tool-calling data models.

A ``ToolDefinition`` is what the backend sees, a ``ToolCall`` is what it
asks for, and a ``ToolResult`` is the text we send back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True)
class ToolDefinition:
    """One exploration tool.

    Attributes:
        name: Name the backend calls it by (e.g. "search_html").
        description: When the model should reach for it.
        parameters: JSON Schema for the arguments.
        handler: Called with the declared arguments; returns a JSON-able value.
    """

    name: str
    description: str
    parameters: dict
    handler: Callable[..., object]

    def _described(self, schema_key: str) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, schema_key: self.parameters}

    def to_openai(self) -> dict:
        """Chat-completions ``tools`` entry."""
        return {"type": "function", "function": self._described("parameters")}

    def to_anthropic(self) -> dict:
        """Messages API ``tools`` entry."""
        return self._described("input_schema")


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation parsed from a backend message."""

    id: str
    name: str
    arguments: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call.

    ``output`` is sent back verbatim on success; failures are sent as
    ``Error: <error>``.
    """

    tool_name: str
    success: bool
    output: str = ""
    error: str = ""

    def as_message_content(self) -> str:
        return self.output if self.success else f"Error: {self.error}"
