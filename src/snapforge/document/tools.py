"""Exploration tools over a DocumentIndex.

Four bounded, side-effect-free queries the generation loop exposes to the
backend so it can locate data without the whole document in context:

- ``stats()``             -- size, structure counts, likely data locations
- ``search_by_selector()`` -- CSS selector matches
- ``search_by_text()``     -- case-insensitive own-text search
- ``read_lines()``         -- literal line range

Every result is a small JSON-able dict. Handler lambdas whitelist their
parameters explicitly.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from snapforge.document.index import DocumentIndex, own_text, truncate
from snapforge.toolkit.models import ToolDefinition

if TYPE_CHECKING:
    from snapforge.models.config import ForgeConfig

logger = logging.getLogger(__name__)

SALIENT_ATTRIBUTES = ("id", "name", "class", "value", "type", "href", "aria-label", "title")

TEXT_SEARCH_SCOPES = ("body", "form", "table", "main", "article")

# (selector, label) pairs reported by stats() when they match.
DATA_HINT_PATTERNS: tuple[tuple[str, str], ...] = (
    ('[data-testid*="patient"]', "Patient data elements"),
    ('[id*="patient"], [id*="demographics"]', "Patient ID elements"),
    ('input[name*="name"], input[name*="dob"]', "Name/DOB inputs"),
    ('[class*="patient"], [class*="demographic"]', "Patient classes"),
    ("dl, [class*='field'], [class*='value']", "Label/value containers"),
    ("table", "Tables (may contain data)"),
    ("[data-shadow-root]", "Captured shadow DOM content"),
    ("[data-iframe-content], iframe[srcdoc]", "Captured iframe content"),
)

TOOL_NAMES = ("get_html_stats", "search_html", "search_html_text", "read_html_section")


def _attributes(tag) -> dict[str, str]:
    attrs: dict[str, str] = {}
    for name in SALIENT_ATTRIBUTES:
        value = tag.get(name)
        if not value:
            continue
        attrs[name] = " ".join(value) if isinstance(value, list) else str(value)
    return attrs


class ExplorationToolProvider:
    """Bounded query surface over one document.

    Args:
        index: Parsed document, or raw text to parse.
        config: Caps for previews, result counts and node visits.
    """

    def __init__(self, index: DocumentIndex | str, config: ForgeConfig | None = None) -> None:
        from snapforge.models.config import ForgeConfig as _ForgeConfig

        self._index = index if isinstance(index, DocumentIndex) else DocumentIndex(index)
        self._config = config or _ForgeConfig()

    @property
    def index(self) -> DocumentIndex:
        return self._index

    def _clamp(self, max_results: int | None) -> int:
        if max_results is None:
            return self._config.default_max_results
        return max(1, min(int(max_results), self._config.max_results_limit))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Document size, structure counts, and heuristic data locations."""
        idx = self._index
        hints: list[str] = []
        for selector, label in DATA_HINT_PATTERNS:
            matches = idx.select(selector)
            if not matches:
                continue
            first_line = matches[0].sourceline
            where = f", first at line {first_line}" if first_line else ""
            hints.append(f"{label}: {len(matches)} found{where}")

        return {
            "document": {
                "total_lines": idx.total_lines,
                "size_bytes": idx.size_bytes,
                "size_mb": f"{idx.size_bytes / 1024 / 1024:.2f}",
            },
            "structure": {
                "total_elements": idx.count("*"),
                "attribute_count": idx.attribute_count(),
                "forms": idx.count("form"),
                "inputs": idx.count("input"),
                "tables": idx.count("table"),
            },
            "potential_data_sections": hints,
            "tips": [
                "Use search_html() to find specific elements by CSS selector",
                "Use search_html_text() to find elements containing specific text",
                "Use read_html_section() to examine specific line ranges",
                "Start with broad searches, then narrow down to specific elements",
            ],
        }

    def search_by_selector(self, query: str, max_results: int | None = None) -> dict[str, Any]:
        """Up to ``max_results`` elements matching a CSS selector."""
        limit = self._clamp(max_results)
        try:
            matches = self._index.select(query, limit=limit)
        except ValueError as exc:
            return {"error": f"Search failed: {exc}", "query": query}

        cfg = self._config
        results = []
        for position, tag in enumerate(matches, start=1):
            results.append({
                "index": position,
                "tag": tag.name,
                "line": tag.sourceline,
                "text": truncate(tag.get_text(" ", strip=True), cfg.text_preview_chars),
                "attributes": _attributes(tag),
                "html_preview": truncate(tag.decode_contents(), cfg.html_preview_chars),
            })
        logger.debug("search_by_selector %r -> %d results", query, len(results))
        return {
            "query": query,
            "found": len(results),
            "max_results": limit,
            "results": results,
        }

    def search_by_text(self, needle: str, max_results: int | None = None) -> dict[str, Any]:
        """Case-insensitive search over own-text nodes inside content containers.

        Stops at ``max_results`` hits or after visiting ``node_visit_limit``
        elements, whichever comes first.
        """
        limit = self._clamp(max_results)
        ceiling = self._config.node_visit_limit
        lowered = needle.lower()
        results: list[dict[str, Any]] = []
        seen: set[int] = set()
        checked = 0

        for scope in self._index.content_scopes(TEXT_SEARCH_SCOPES):
            if len(results) >= limit or checked >= ceiling:
                break
            for element in scope.find_all(True):
                if len(results) >= limit or checked >= ceiling:
                    break
                if id(element) in seen:
                    continue
                seen.add(id(element))
                checked += 1
                text = own_text(element).strip()
                if lowered and lowered in text.lower():
                    results.append({
                        "tag": element.name,
                        "line": element.sourceline,
                        "text": truncate(text, self._config.text_preview_chars),
                        "id": element.get("id"),
                        "class": " ".join(element.get("class") or []) or None,
                        "html_preview": truncate(element.decode_contents(), self._config.text_preview_chars),
                    })

        logger.debug(
            "search_by_text %r checked %d elements, found %d", needle, checked, len(results)
        )
        return {
            "search_text": needle,
            "found": len(results),
            "elements_checked": checked,
            "truncated_search": checked >= ceiling,
            "results": results,
        }

    def read_lines(self, start: int, end: int) -> dict[str, Any]:
        """Literal 1-indexed inclusive line range.

        Raises:
            RangeError: If the range falls outside the document.
        """
        start, end = int(start), int(end)
        section = "\n".join(self._index.line_slice(start, end))
        return {
            "start_line": start,
            "end_line": end,
            "line_count": end - start + 1,
            "char_count": len(section),
            "content": section,
        }

    # ------------------------------------------------------------------
    # Tool definitions
    # ------------------------------------------------------------------

    def tools(self) -> list[ToolDefinition]:
        """Tool definitions bound to this provider."""
        return [
            ToolDefinition(
                name="get_html_stats",
                description=(
                    "Get statistics about the HTML document including size, line "
                    "count, structure counts and likely data locations. Use this "
                    "first to understand the document before searching."
                ),
                parameters={"type": "object", "properties": {}},
                handler=lambda: self.stats(),
            ),
            ToolDefinition(
                name="search_html",
                description=(
                    "Search the HTML for elements matching a CSS selector. Returns "
                    "matching elements with their line, text and key attributes."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": 'CSS selector (e.g. ".patient-name", "#dob", "input[name=firstName]")',
                        },
                        "max_results": {
                            "type": "integer",
                            "minimum": 1,
                            "description": "Maximum number of results to return (default: 5)",
                        },
                    },
                    "required": ["query"],
                },
                handler=lambda query, max_results=None: self.search_by_selector(query, max_results),
            ),
            ToolDefinition(
                name="search_html_text",
                description=(
                    "Find elements whose own text contains the given string "
                    "(case-insensitive). Useful for labels, headers and known values."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "search_text": {
                            "type": "string",
                            "description": "Text to search for (case-insensitive)",
                        },
                        "max_results": {
                            "type": "integer",
                            "minimum": 1,
                            "description": "Maximum number of results to return (default: 5)",
                        },
                    },
                    "required": ["search_text"],
                },
                handler=lambda search_text, max_results=None: self.search_by_text(search_text, max_results),
            ),
            ToolDefinition(
                name="read_html_section",
                description=(
                    "Read a range of lines from the HTML document (1-indexed, "
                    "inclusive). Use after a search tells you where the data is."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "start_line": {"type": "integer", "minimum": 1, "description": "First line to read"},
                        "end_line": {"type": "integer", "minimum": 1, "description": "Last line to read (inclusive)"},
                        "reason": {"type": "string", "description": "Why you need this section"},
                    },
                    "required": ["start_line", "end_line"],
                },
                handler=lambda start_line, end_line, reason=None: self._read_section(start_line, end_line, reason),
            ),
        ]

    def _read_section(self, start_line: int, end_line: int, reason: str | None) -> dict[str, Any]:
        if reason:
            logger.debug("Reading lines %s-%s: %s", start_line, end_line, reason)
        return self.read_lines(start_line, end_line)
