"""Tool-calling primitives shared by the exploration tools and generation loop."""

from snapforge.toolkit.executor import ToolExecutor
from snapforge.toolkit.models import ToolCall, ToolDefinition, ToolResult

__all__ = ["ToolCall", "ToolDefinition", "ToolExecutor", "ToolResult"]
