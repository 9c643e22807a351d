"""
Context Service — the host-facing state around the compactor.

Keeps what the user chose (starred blocks, manual include/exclude
overrides, scoring config), the last generated context, and a history of
context decisions with feedback. compact() itself stays a pure function;
this class just remembers its inputs between calls.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from frizy.data.models import (
    DEFAULT_SCORING_CONFIG,
    CompactionResult,
    CompressionLevel,
    ContextDecision,
    DecisionFeedback,
    Override,
    ProjectInfo,
    ScoreBreakdown,
    ScoringConfig,
    WorkItem,
)
from frizy.scoring.compactor import compact
from frizy.services.context_export import ExportFormat, render_context, serialize

logger = logging.getLogger(__name__)

TOP_SCORES_COUNT = 5


class ContextManager:
    """Per-project context state. One instance per open project."""

    def __init__(
        self,
        project_id: str,
        config: ScoringConfig = DEFAULT_SCORING_CONFIG,
        project: Optional[ProjectInfo] = None,
    ) -> None:
        self.project_id = project_id
        self.project = project
        self.config = config.validate()
        self.important_ids: Set[str] = set()
        self.manual_overrides: Dict[str, Override] = {}
        self.context: Optional[CompactionResult] = None
        self.decisions: List[ContextDecision] = []

    # ── User preferences ────────────────────────────────────────────────────

    def mark_block_important(self, block_id: str, important: bool = True) -> None:
        if important:
            self.important_ids.add(block_id)
        else:
            self.important_ids.discard(block_id)

    def set_block_override(self, block_id: str, override: Union[Override, str, None]) -> None:
        """Pin a block in or out of the context; None clears the override."""
        if override is None:
            self.manual_overrides.pop(block_id, None)
            return
        self.manual_overrides[block_id] = Override(override)

    def update_config(self, **changes: Any) -> ScoringConfig:
        """Apply config changes. They take effect on the next generate_context()."""
        self.config = self.config.with_changes(**changes)
        logger.info("Context config updated for project %s: %s", self.project_id, sorted(changes))
        return self.config

    # ── Generation & export ─────────────────────────────────────────────────

    def generate_context(self, items: Iterable[WorkItem], now: Optional[datetime] = None) -> CompactionResult:
        self.context = compact(
            items,
            self.config,
            self.important_ids.__contains__,
            dict(self.manual_overrides),
            now,
        )
        if self.context.summary.warnings:
            logger.warning(
                "Context for project %s generated with %d warnings",
                self.project_id, len(self.context.summary.warnings),
            )
        return self.context

    def get_context_string(self, project: Optional[ProjectInfo] = None) -> Optional[str]:
        """Markdown context for the AI assistant; None before the first generation."""
        if self.context is None:
            return None
        return render_context(self.context, project or self.project)

    def export_context(
        self,
        format: Union[ExportFormat, str] = ExportFormat.JSON,
        project: Optional[ProjectInfo] = None,
    ) -> Optional[str]:
        if self.context is None:
            return None
        return serialize(self.context, format, project or self.project)

    # ── Decision history ────────────────────────────────────────────────────

    def save_decision(self, feedback: Optional[DecisionFeedback] = None) -> Optional[ContextDecision]:
        """Record what the last context contained, with optional user feedback."""
        if self.context is None:
            return None
        ctx = self.context
        decision = ContextDecision(
            id=f"decision-{int(ctx.generated_at.timestamp() * 1000)}-{len(self.decisions) + 1}",
            project_id=self.project_id,
            generated_at=ctx.generated_at,
            included_block_ids=[s.item.id for s in ctx.included_items],
            excluded_block_ids=[s.item.id for s in ctx.excluded_items],
            manual_overrides=dict(self.manual_overrides),
            config=ctx.config,
            feedback=feedback,
        )
        self.decisions.append(decision)
        return decision

    def decisions_for_project(self, project_id: Optional[str] = None) -> List[ContextDecision]:
        pid = project_id or self.project_id
        return [d for d in self.decisions if d.project_id == pid]

    # ── Queries ─────────────────────────────────────────────────────────────

    def stats(self) -> Optional[Dict[str, Any]]:
        """Summary numbers for the context panel."""
        if self.context is None:
            return None
        summary = self.context.summary
        included = self.context.included_items
        breakdown = {level.value: 0 for level in CompressionLevel}
        for s in included:
            breakdown[s.compression_level.value] += 1
        return {
            "total": summary.total,
            "included": summary.included,
            "compressed": summary.compressed,
            "excluded": summary.excluded,
            "average_score": summary.average_score,
            "context_size": summary.context_size,
            "warnings": list(summary.warnings),
            "top_scores": [
                {
                    "block_id": s.item.id,
                    "title": s.item.title,
                    "score": s.score,
                    "reasons": list(s.include_reasons),
                }
                for s in included[:TOP_SCORES_COUNT]
            ],
            "compression_breakdown": breakdown,
            "manual_override_count": len(self.manual_overrides),
            "important_block_count": len(self.important_ids),
        }

    def is_block_included(self, block_id: str) -> bool:
        if self.context is None:
            return False
        scored = self.context.find(block_id)
        return scored is not None and scored.included

    def get_block_score(self, block_id: str) -> Optional[ScoreBreakdown]:
        if self.context is None:
            return None
        scored = self.context.find(block_id)
        return scored.breakdown if scored else None
