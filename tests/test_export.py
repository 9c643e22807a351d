"""Tests for rendering and exporting a compacted context."""

import json
import pytest

from conftest import NOW, make_item

from frizy.data.models import CompressionLevel, ProjectInfo, ScoringConfig, Status
from frizy.scoring.compactor import compact
from frizy.services.context_export import (
    ExportFormat,
    group_by_lane,
    render_block,
    serialize,
    summarize_content,
)


@pytest.fixture
def project():
    return ProjectInfo(id="p1", name="Frizy", description="Board for AI pairing")


@pytest.fixture
def result():
    items = [
        make_item("v1", days_ago=0, lane="vision", title="North star", tags=["core"]),
        make_item("c1", days_ago=1, lane="current", title="Build parser"),
        make_item("x1", days_ago=2, lane="zeta", title="Odd lane"),
        make_item("n1", days_ago=3, lane="next", title="Ship it"),
        make_item("gone", days_ago=20, lane="current", title="Hidden block"),
    ]
    return compact(items, ScoringConfig(max_items=4, compression_threshold=0.25), now=NOW)


class TestRenderBlock:
    def test_excluded_renders_empty(self):
        assert render_block(make_item("a"), None) == ""

    def test_minimal_is_one_line(self):
        item = make_item("a", title="Fix login", tags=["auth", "bug"])
        assert render_block(item, CompressionLevel.MINIMAL) == "Fix login [not_started, medium] #auth, bug"

    def test_full_has_metadata(self):
        item = make_item("a", days_ago=0, title="T", content="Body", progress=40, session_touch_count=3)
        text = render_block(item, CompressionLevel.FULL)
        assert "Body" in text
        assert "Last worked: 2026-03-10 12:00" in text
        assert "AI sessions: 3" in text
        assert "Progress: 40%" in text

    def test_full_never_worked(self):
        assert "Last worked: Never" in render_block(make_item("a"), CompressionLevel.FULL)

    def test_levels_shrink(self):
        item = make_item("a", days_ago=1, content="\n".join(f"line {i}" for i in range(10)))
        full = render_block(item, CompressionLevel.FULL)
        summary = render_block(item, CompressionLevel.SUMMARY)
        minimal = render_block(item, CompressionLevel.MINIMAL)
        assert len(full) > len(summary) > len(minimal)


class TestSummarize:
    def test_keeps_three_lines(self):
        assert summarize_content("a\n\nb\nc\nd") == "a\nb\nc..."

    def test_short_content_untouched(self):
        assert summarize_content("just this") == "just this"

    def test_caps_characters(self):
        text = summarize_content("x" * 400)
        assert text == "x" * 150 + "..."


class TestMarkdown:
    def test_lane_order(self, result):
        lanes = list(group_by_lane(result.included_items))
        assert lanes == ["vision", "current", "next", "zeta"]

    def test_only_included_blocks(self, result, project):
        text = serialize(result, ExportFormat.MARKDOWN, project)
        assert "Hidden block" not in text
        assert "Build parser" in text

    def test_headers_and_footer(self, result, project):
        text = serialize(result, "markdown", project)
        assert text.startswith("# Project: Frizy\n")
        assert "Project Status: 4/5 blocks included" in text
        assert "## Vision Lane" in text
        assert "### North star" in text
        assert "Context generated: 2026-03-10T12:00:00" in text
        assert "Compression: 3 blocks compressed" in text
        assert "\n---\n" in text

    def test_reasons_only_on_compressed_blocks(self, result):
        text = serialize(result, "markdown")
        assert text.count("*Included because:") == 3

    def test_deterministic(self, result, project):
        assert serialize(result, "markdown", project) == serialize(result, "markdown", project)

    def test_empty_board(self):
        text = serialize(compact([], now=NOW), "markdown")
        assert "Lane" not in text
        assert "Compression: 0 blocks compressed" in text


class TestTxt:
    def test_no_markup(self, result, project):
        text = serialize(result, ExportFormat.TXT, project)
        assert "#" not in text.replace("#core", "")
        assert "Project: Frizy" in text
        assert "Vision Lane" in text

    def test_no_markdown_rule(self, result, project):
        text = serialize(result, "txt", project)
        assert "---" not in text
        assert "Context generated: 2026-03-10T12:00:00" in text

    def test_hash_in_content_survives(self):
        item = make_item("a", days_ago=0, content="# not a heading")
        text = serialize(compact([item], now=NOW), "txt")
        assert "# not a heading" in text


class TestJson:
    def test_included_items_only(self, result, project):
        data = json.loads(serialize(result, "json", project))
        ids = [entry["item"]["id"] for entry in data["items"]]
        assert "gone" not in ids
        assert len(ids) == 4
        assert data["format"] == "json"
        assert data["project"]["name"] == "Frizy"
        assert data["summary"]["total"] == 5

    def test_enums_as_strings(self, result):
        data = json.loads(serialize(result, "json"))
        first = data["items"][0]
        assert first["compression_level"] == "full"
        assert first["item"]["status"] == Status.NOT_STARTED.value
        assert data["project"] is None

    def test_unknown_format(self, result):
        with pytest.raises(ValueError):
            serialize(result, "pdf")
