"""Tests for DocumentIndex and ExplorationToolProvider.

Tests cover stats(), selector search (including invalid selectors),
own-text search with its result cap and node-visit ceiling, read_lines
range checks, and the four tool definitions.
"""

from __future__ import annotations

import json

import pytest

from snapforge.document import DocumentIndex, ExplorationToolProvider
from snapforge.document.index import own_text, truncate
from snapforge.exceptions import RangeError
from snapforge.models.config import ForgeConfig
from tests.helpers import SAMPLE_DOCUMENT


@pytest.fixture
def provider() -> ExplorationToolProvider:
    return ExplorationToolProvider(SAMPLE_DOCUMENT)


# ---------------------------------------------------------------------------
# DocumentIndex
# ---------------------------------------------------------------------------


class TestDocumentIndex:
    def test_lines_are_literal(self):
        idx = DocumentIndex("a\nb\n\nc")
        assert idx.total_lines == 4
        assert idx.line_slice(2, 3) == ["b", ""]

    def test_size_counts_utf8_bytes(self):
        assert DocumentIndex("é").size_bytes == 2

    def test_invalid_selector_raises_value_error(self):
        with pytest.raises(ValueError):
            DocumentIndex("<p>x</p>").select("div[")

    def test_fragment_scopes_fall_back_to_root(self):
        idx = DocumentIndex("<div>hi</div>")
        assert idx.content_scopes(("body",)) == [idx.soup]

    def test_own_text_excludes_children(self):
        idx = DocumentIndex("<div>outer <span>inner</span></div>")
        assert own_text(idx.select("div")[0]).strip() == "outer"

    def test_truncate(self):
        assert truncate("abcdef", 3) == "abc..."
        assert truncate("abc", 3) == "abc"


# ---------------------------------------------------------------------------
# stats()
# ---------------------------------------------------------------------------


class TestStats:
    def test_document_and_structure(self, provider):
        stats = provider.stats()
        assert stats["document"]["total_lines"] == len(SAMPLE_DOCUMENT.split("\n"))
        assert stats["document"]["size_bytes"] == len(SAMPLE_DOCUMENT.encode())
        assert stats["structure"]["tables"] == 1
        assert stats["structure"]["forms"] == 0
        assert stats["structure"]["total_elements"] > 10

    def test_hints_point_at_lines(self, provider):
        hints = provider.stats()["potential_data_sections"]
        assert any(h.startswith("Patient ID elements: 1 found, first at line 4") for h in hints)
        assert any(h.startswith("Tables (may contain data): 1 found") for h in hints)

    def test_captured_boundaries_reported(self):
        html = '<div data-shadow-root="&lt;span&gt;x&lt;/span&gt;"></div>'
        hints = ExplorationToolProvider(html).stats()["potential_data_sections"]
        assert any("shadow DOM" in h for h in hints)

    def test_result_is_json_serializable(self, provider):
        json.dumps(provider.stats())


# ---------------------------------------------------------------------------
# search_by_selector()
# ---------------------------------------------------------------------------


class TestSearchBySelector:
    def test_match_shape(self, provider):
        result = provider.search_by_selector(".patient-name")
        assert result["found"] == 1
        hit = result["results"][0]
        assert hit["tag"] == "span"
        assert hit["line"] == 5
        assert hit["text"] == "Ann Smith"
        assert hit["attributes"] == {"class": "patient-name"}

    def test_max_results(self, provider):
        result = provider.search_by_selector("span", max_results=2)
        assert result["found"] == 2
        assert [r["index"] for r in result["results"]] == [1, 2]

    def test_text_is_capped(self):
        config = ForgeConfig(text_preview_chars=10)
        p = ExplorationToolProvider("<p>" + "x" * 50 + "</p>", config)
        assert p.search_by_selector("p")["results"][0]["text"] == "x" * 10 + "..."

    def test_invalid_selector_is_an_error_result(self, provider):
        result = provider.search_by_selector("div[")
        assert result["query"] == "div["
        assert result["error"].startswith("Search failed:")

    def test_no_matches(self, provider):
        assert provider.search_by_selector(".nothing")["results"] == []


# ---------------------------------------------------------------------------
# search_by_text()
# ---------------------------------------------------------------------------


class TestSearchByText:
    def test_case_insensitive_own_text(self, provider):
        result = provider.search_by_text("dob:")
        assert result["found"] == 1
        assert result["results"][0]["tag"] == "span"
        assert result["results"][0]["line"] == 6

    def test_parent_not_matched_for_child_text(self, provider):
        result = provider.search_by_text("Ann Smith")
        assert [r["class"] for r in result["results"]] == ["patient-name"]

    def test_elements_visited_once_across_scopes(self, provider):
        result = provider.search_by_text("aspirin", max_results=10)
        assert result["found"] == 1

    def test_max_results(self):
        html = "<body>" + "<p>item</p>" * 20 + "</body>"
        result = ExplorationToolProvider(html).search_by_text("item", max_results=3)
        assert result["found"] == 3

    def test_node_visit_ceiling(self):
        html = "<body>" + "<p>x</p>" * 50 + "<p>needle</p></body>"
        config = ForgeConfig(node_visit_limit=10)
        result = ExplorationToolProvider(html, config).search_by_text("needle")
        assert result["found"] == 0
        assert result["elements_checked"] == 10
        assert result["truncated_search"] is True


# ---------------------------------------------------------------------------
# read_lines()
# ---------------------------------------------------------------------------


class TestReadLines:
    def test_inclusive_range(self, provider):
        result = provider.read_lines(4, 5)
        assert result["line_count"] == 2
        assert result["content"].splitlines()[0] == '  <section id="demographics">'

    def test_single_line(self, provider):
        assert provider.read_lines(1, 1)["content"] == "<html>"

    @pytest.mark.parametrize("start,end", [(0, 2), (3, 2), (1, 999)])
    def test_out_of_range(self, provider, start, end):
        with pytest.raises(RangeError) as info:
            provider.read_lines(start, end)
        assert "Invalid line range" in str(info.value)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


class TestToolDefinitions:
    def test_four_tools(self, provider):
        names = [t.name for t in provider.tools()]
        assert names == ["get_html_stats", "search_html", "search_html_text", "read_html_section"]

    def test_openai_format(self, provider):
        spec = provider.tools()[1].to_openai()
        assert spec["type"] == "function"
        assert spec["function"]["parameters"]["required"] == ["query"]

    def test_handlers_call_provider(self, provider):
        tools = {t.name: t for t in provider.tools()}
        assert tools["search_html"].handler(query="#dob")["found"] == 1
        assert tools["read_html_section"].handler(start_line=1, end_line=2, reason="peek")["line_count"] == 2
