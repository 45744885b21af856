"""Line-addressable index over a raw HTML document.

The document is parsed exactly once per Snapshot. BeautifulSoup's
``html.parser`` backend records the source line of every tag, which lets
search results point the model at ``read_html_section`` ranges.
"""

from __future__ import annotations

import logging
from typing import Iterator

import soupsieve
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from snapforge.exceptions import RangeError

logger = logging.getLogger(__name__)

_NON_CONTENT_TAGS = frozenset({"script", "style", "noscript", "template"})


def truncate(text: str, limit: int) -> str:
    """Cap ``text`` at ``limit`` characters, marking the cut with '...'."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def own_text(tag: Tag) -> str:
    """Text of the tag's direct string children only (not descendants)."""
    if tag.name in _NON_CONTENT_TAGS:
        return ""
    parts = [
        str(child)
        for child in tag.children
        if isinstance(child, NavigableString) and not isinstance(child, PreformattedString)
    ]
    return "".join(parts)


class DocumentIndex:
    """Parsed view of one raw document.

    Attributes:
        raw: The literal document text.
        lines: The document split on ``\\n``; line ``n`` is ``lines[n - 1]``.
        soup: BeautifulSoup tree for selector and text queries.
    """

    def __init__(self, raw_document: str) -> None:
        self.raw = raw_document
        self.lines = raw_document.split("\n")
        self.soup = BeautifulSoup(raw_document, "html.parser")
        logger.debug(
            "Indexed document: %d lines, %d bytes",
            len(self.lines),
            self.size_bytes,
        )

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    @property
    def size_bytes(self) -> int:
        return len(self.raw.encode("utf-8"))

    # ------------------------------------------------------------------
    # Line addressing
    # ------------------------------------------------------------------

    def line_slice(self, start: int, end: int) -> list[str]:
        """Return lines ``start..end`` inclusive (1-indexed).

        Raises:
            RangeError: If either bound is outside ``[1, total_lines]`` or
                ``end < start``.
        """
        total = self.total_lines
        if start < 1 or end < start or end > total:
            raise RangeError(start, end, total)
        return self.lines[start - 1:end]

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def select(self, selector: str, limit: int | None = None) -> list[Tag]:
        """CSS-select elements in document order.

        Raises:
            ValueError: If the selector cannot be parsed.
        """
        try:
            return self.soup.select(selector, limit=limit or 0)
        except (soupsieve.SelectorSyntaxError, NotImplementedError) as exc:
            raise ValueError(f"Invalid selector {selector!r}: {exc}") from exc

    def count(self, selector: str) -> int:
        try:
            return len(self.soup.select(selector))
        except (soupsieve.SelectorSyntaxError, NotImplementedError):
            return 0

    def elements(self) -> Iterator[Tag]:
        """Iterate every element in document order."""
        return iter(self.soup.find_all(True))

    def content_scopes(self, names: tuple[str, ...]) -> list[Tag | BeautifulSoup]:
        """Elements that scope a text search, in the order of ``names``.

        Fragments without a ``<body>`` fall back to the whole tree.
        """
        scopes: list[Tag | BeautifulSoup] = []
        if self.soup.body is None:
            scopes.append(self.soup)
        for name in names:
            scopes.extend(self.soup.find_all(name))
        return scopes

    def attribute_count(self) -> int:
        return sum(len(tag.attrs) for tag in self.elements())
