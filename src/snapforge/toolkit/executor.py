"""ToolExecutor: dispatches backend tool calls to tool handlers.

Looks up the tool by name, drops arguments the tool's schema does not
declare, invokes the handler, and serializes the outcome into a
``ToolResult`` whose text goes back to the backend verbatim.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from snapforge.document.index import truncate
from snapforge.toolkit.models import ToolResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from snapforge.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Runs tool calls against a fixed set of tool definitions.

    Usage::

        executor = ToolExecutor(provider.tools(), max_output_chars=12000)
        result = executor.execute("get_html_stats", {})
    """

    def __init__(self, tools: Iterable[ToolDefinition], *, max_output_chars: int = 12000) -> None:
        self._tools: dict[str, ToolDefinition] = {t.name: t for t in tools}
        self._max_output_chars = max_output_chars

    def available_tools(self) -> list[str]:
        return list(self._tools.keys())

    def openai_tools(self) -> list[dict]:
        return [t.to_openai() for t in self._tools.values()]

    def execute(self, tool_name: str, arguments: dict) -> ToolResult:
        """Execute a tool by name. Never raises for tool-level failures."""
        tool = self._tools.get(tool_name)
        if tool is None:
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=(
                    f"Unknown tool: {tool_name}. "
                    f"Available tools: {', '.join(self._tools)}"
                ),
            )

        declared = tool.parameters.get("properties", {})
        accepted = {k: v for k, v in (arguments or {}).items() if k in declared}
        dropped = set(arguments or {}) - set(accepted)
        if dropped:
            logger.debug("Dropping undeclared arguments for %s: %s", tool_name, sorted(dropped))

        try:
            value = tool.handler(**accepted)
        except Exception as exc:
            logger.debug("Tool %s failed: %s", tool_name, exc, exc_info=True)
            return ToolResult(
                tool_name=tool_name,
                success=False,
                error=f"{type(exc).__name__}: {exc}",
            )

        output = value if isinstance(value, str) else json.dumps(value, indent=2, default=str)
        return ToolResult(
            tool_name=tool_name,
            success=True,
            output=truncate(output, self._max_output_chars),
        )
