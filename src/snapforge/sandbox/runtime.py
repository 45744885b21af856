"""Helper runtime injected into every execution context.

Captured pages keep shadow-DOM and same-origin iframe content as escaped
HTML in ``data-shadow-root`` / ``data-iframe-content`` attributes, or in an
``<iframe srcdoc>``. The helpers here treat those as encapsulation
boundaries: the ``*_deep`` queries parse each boundary into its own tree
and search it after the tree that contains it (breadth first).

Everything is bound to one parsed document by :func:`build_runtime`; the
returned mapping is what candidate code sees as globals.
"""

from __future__ import annotations

import re
import time
import types
from collections import deque
from datetime import datetime
from typing import Any, Callable, Iterator

from bs4 import BeautifulSoup, Tag

BOUNDARY_ATTRIBUTES = ("data-shadow-root", "data-iframe-content")

POLL_INTERVAL_MS = 100
DEFAULT_WAIT_MS = 5000

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%m/%d/%y",
    "%m.%d.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%b. %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y%m%d",
)


def _collapse(text: str) -> str:
    return " ".join(text.split())


def parse_date(text: str | None) -> str | None:
    """Normalize a date string to ``YYYY-MM-DD``, or None if unparseable."""
    if not text:
        return None
    cleaned = _collapse(str(text))
    if not cleaned:
        return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def get_attr(element: Tag | None, name: str) -> str | None:
    """Attribute value, or None when the element or value is missing."""
    if element is None:
        return None
    value = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value or None


class BoundaryResolver:
    """Parses and caches the sub-trees behind captured boundaries."""

    def __init__(self) -> None:
        self._trees: dict[int, tuple[Tag, list[BeautifulSoup]]] = {}

    def subtrees(self, tag: Tag) -> list[BeautifulSoup]:
        """Sub-trees attached directly to ``tag``."""
        cached = self._trees.get(id(tag))
        if cached is not None:
            return cached[1]
        trees = []
        for attr in BOUNDARY_ATTRIBUTES:
            content = tag.get(attr)
            if content:
                trees.append(BeautifulSoup(str(content), "html.parser"))
        if tag.name == "iframe" and tag.get("srcdoc"):
            trees.append(BeautifulSoup(str(tag["srcdoc"]), "html.parser"))
        # The tag is kept alive alongside its trees so id() stays unique.
        self._trees[id(tag)] = (tag, trees)
        return trees

    def _hosts(self, root: Tag) -> Iterator[Tag]:
        if not isinstance(root, BeautifulSoup) and _is_host(root):
            yield root
        yield from root.find_all(_is_host)

    def roots(self, root: Tag) -> Iterator[Tag]:
        """``root`` then every boundary sub-tree reachable from it, breadth first."""
        queue: deque[Tag] = deque([root])
        while queue:
            current = queue.popleft()
            yield current
            for host in self._hosts(current):
                queue.extend(self.subtrees(host))


def _is_host(tag: Tag) -> bool:
    if any(tag.has_attr(attr) for attr in BOUNDARY_ATTRIBUTES):
        return True
    return tag.name == "iframe" and tag.has_attr("srcdoc")


def _safe_regex_module() -> types.SimpleNamespace:
    return types.SimpleNamespace(
        search=re.search,
        match=re.match,
        fullmatch=re.fullmatch,
        findall=re.findall,
        finditer=re.finditer,
        sub=re.sub,
        subn=re.subn,
        split=re.split,
        compile=re.compile,
        escape=re.escape,
        IGNORECASE=re.IGNORECASE,
        I=re.IGNORECASE,
        MULTILINE=re.MULTILINE,
        M=re.MULTILINE,
        DOTALL=re.DOTALL,
        S=re.DOTALL,
    )


def build_runtime(
    document: BeautifulSoup,
    console: list[str] | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """Bind the helper surface to ``document``.

    Args:
        document: Parsed raw document.
        console: If given, ``print()`` inside the candidate appends here.
        sleep: Used by ``wait_for_element`` between polls.
    """
    resolver = BoundaryResolver()

    def query_deep(selector: str, root: Tag | None = None) -> Tag | None:
        for tree in resolver.roots(document if root is None else root):
            found = tree.select_one(selector)
            if found is not None:
                return found
        return None

    def query_all_deep(selector: str, root: Tag | None = None) -> list[Tag]:
        results: list[Tag] = []
        for tree in resolver.roots(document if root is None else root):
            results.extend(tree.select(selector))
        return results

    def get_text_deep(element: Tag | None) -> str:
        if element is None:
            return ""
        parts = [element.get_text()]
        roots = resolver.roots(element)
        next(roots)
        parts.extend(tree.get_text() for tree in roots)
        return _collapse(" ".join(parts))

    def get_iframe_text(element: Tag | None) -> str | None:
        if element is None:
            return None
        texts = [_collapse(tree.get_text()) for tree in resolver.subtrees(element)]
        text = " ".join(t for t in texts if t)
        return text or None

    def extract_table_data(table: Tag | None, headers: list[str]) -> dict[str, str | None]:
        result: dict[str, str | None] = {}
        if table is None:
            return result
        rows = table.select("tr")
        header_row = table.select_one("thead tr") or (rows[0] if rows else None)
        if header_row is None:
            return result

        columns: dict[int, str] = {}
        for index, cell in enumerate(header_row.find_all(["th", "td"])):
            label = _collapse(cell.get_text()).lower()
            for header in headers:
                if header.lower() in label:
                    columns[index] = header

        for row in rows:
            if row is header_row:
                continue
            for index, cell in enumerate(row.find_all(["td", "th"])):
                header = columns.get(index)
                if header and not result.get(header):
                    result[header] = _collapse(cell.get_text()) or None
        return result

    def wait_for_element(selector: str, timeout_ms: int = DEFAULT_WAIT_MS) -> Tag | None:
        deadline = time.monotonic() + max(timeout_ms, 0) / 1000
        while True:
            found = query_deep(selector)
            if found is not None:
                return found
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            sleep(min(POLL_INTERVAL_MS / 1000, remaining))

    runtime: dict[str, Any] = {
        "document": document,
        "query_deep": query_deep,
        "query_all_deep": query_all_deep,
        "get_text_deep": get_text_deep,
        "get_attr": get_attr,
        "get_iframe_text": get_iframe_text,
        "parse_date": parse_date,
        "extract_table_data": extract_table_data,
        "wait_for_element": wait_for_element,
        "re": _safe_regex_module(),
    }
    if console is not None:
        def _print(*args: Any, sep: str = " ", end: str = "") -> None:
            console.append(sep.join(str(a) for a in args) + end)

        runtime["print"] = _print
    return runtime
