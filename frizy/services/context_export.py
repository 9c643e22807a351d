"""
Context Export — turns a CompactionResult into text an LLM (or a human) reads.

Three formats:
  json      structured dump of the included blocks plus the summary
  markdown  grouped by lane; detail per block follows its compression level
  txt       the same blocks as markdown, without markup

Output is deterministic: the only timestamp is the explicit "generated at"
header, taken from the result itself.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Dict, List, Optional, Union

from frizy.data import codec
from frizy.data.models import (
    CompactionResult,
    CompressionLevel,
    ProjectInfo,
    ScoredItem,
    WorkItem,
)

logger = logging.getLogger(__name__)

LANE_ORDER = ["vision", "goals", "current", "next", "context"]
SUMMARY_MAX_CHARS = 150
SUMMARY_MAX_LINES = 3


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    TXT = "txt"


# ── Per-block rendering ─────────────────────────────────────────────────────

def _enum_text(value: object) -> str:
    return getattr(value, "value", str(value))


def _headline(item: WorkItem) -> str:
    return f"{item.title} [{_enum_text(item.status)}, {_enum_text(item.priority)}]"


def summarize_content(content: str) -> str:
    """First SUMMARY_MAX_LINES non-blank lines, capped at SUMMARY_MAX_CHARS."""
    lines = [ln.rstrip() for ln in content.strip().splitlines() if ln.strip()]
    text = "\n".join(lines[:SUMMARY_MAX_LINES])
    truncated = len(lines) > SUMMARY_MAX_LINES
    if len(text) > SUMMARY_MAX_CHARS:
        text = text[:SUMMARY_MAX_CHARS].rstrip()
        truncated = True
    return text + "..." if truncated else text


def render_block(item: WorkItem, level: Optional[CompressionLevel]) -> str:
    """Body of one block at the given level. Excluded blocks (level None) render empty."""
    if level is None:
        return ""
    tags = ", ".join(item.tags)

    if level == CompressionLevel.MINIMAL:
        return _headline(item) + (f" #{tags}" if tags else "")

    if level == CompressionLevel.SUMMARY:
        lines = [_headline(item)]
        summary = summarize_content(item.content)
        if summary:
            lines.append(summary)
        if tags:
            lines.append(f"Tags: {tags}")
        return "\n".join(lines)

    lines = [_headline(item)]
    if item.content.strip():
        lines.append(item.content.strip())
    if tags:
        lines.append(f"Tags: {tags}")
    last = item.last_worked_at.strftime("%Y-%m-%d %H:%M") if item.last_worked_at else "Never"
    lines.append(f"Last worked: {last}")
    lines.append(f"AI sessions: {item.session_touch_count}")
    lines.append(f"Progress: {item.progress:g}%")
    return "\n".join(lines)


# ── Whole-context rendering ─────────────────────────────────────────────────

def _lane_title(lane: str) -> str:
    return lane[:1].upper() + lane[1:]


def group_by_lane(items: List[ScoredItem]) -> Dict[str, List[ScoredItem]]:
    """Known lanes in board order, then any other lane alphabetically."""
    groups: Dict[str, List[ScoredItem]] = {}
    for s in items:
        groups.setdefault(s.item.lane, []).append(s)
    known = [lane for lane in LANE_ORDER if lane in groups]
    others = sorted(lane for lane in groups if lane not in LANE_ORDER)
    return {lane: groups[lane] for lane in known + others}


def render_context(
    result: CompactionResult,
    project: Optional[ProjectInfo] = None,
    markup: bool = True,
) -> str:
    """Render included blocks as markdown (markup=True) or plain text."""
    h1 = "# " if markup else ""
    h2 = "## " if markup else ""
    h3 = "### " if markup else ""
    summary = result.summary
    out: List[str] = []

    if project is not None:
        out.append(f"{h1}Project: {project.name}")
        if project.description:
            out.append(project.description)
        out.append("")
        out.append(f"Project Status: {summary.included}/{summary.total} blocks included")
        out.append("")

    for lane, lane_items in group_by_lane(result.included_items).items():
        out.append(f"{h2}{_lane_title(lane)} Lane")
        out.append("")
        for s in lane_items:
            out.append(h3 + render_block(s.item, s.compression_level))
            if s.compression_level != CompressionLevel.FULL and s.include_reasons:
                reasons = ", ".join(s.include_reasons)
                out.append(f"*Included because: {reasons}*" if markup else f"Included because: {reasons}")
            out.append("")

    if markup:
        out.append("---")
    out.append(f"Context generated: {result.generated_at.isoformat(timespec='seconds')}")
    out.append(f"Compression: {summary.compressed} blocks compressed")
    out.append(f"Estimated size: {round(summary.context_size / 1000)}k characters")
    if summary.warnings:
        out.append(f"Skipped: {len(summary.warnings)} blocks with warnings")
    return "\n".join(out) + "\n"


def render_json(result: CompactionResult, project: Optional[ProjectInfo] = None) -> str:
    data = codec.compaction_result_to_dict(result, included_only=True)
    data["format"] = ExportFormat.JSON.value
    data["project"] = (
        {"id": project.id, "name": project.name, "description": project.description}
        if project is not None else None
    )
    return json.dumps(data, indent=2, sort_keys=True)


def serialize(
    result: CompactionResult,
    format: Union[ExportFormat, str] = ExportFormat.JSON,
    project: Optional[ProjectInfo] = None,
) -> str:
    """Export a compaction result. Raises ValueError on an unknown format."""
    fmt = ExportFormat(format)
    if fmt == ExportFormat.MARKDOWN:
        return render_context(result, project, markup=True)
    if fmt == ExportFormat.TXT:
        return render_context(result, project, markup=False)
    return render_json(result, project)


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   The last step before the prompt: lays the chosen blocks out by lane and
#   renders each at its compression level (full / summary / minimal).
#
# Key points:
#   - render_block() is also what the compactor measures for context_size,
#     so the size estimate and the real export never disagree.
#   - txt is rendered without markup rather than by regex-stripping the
#     markdown, so a '#' inside a block's own content survives.
#   - Excluded blocks never appear in any format.
#
# Interviewer-friendly talking points:
#   1. Determinism matters for prompts: identical boards give identical
#      text, which keeps LLM caching and diffs meaningful.
#   2. Format is an Enum; ExportFormat("pdf") fails loudly instead of
#      quietly falling back to JSON.
