"""
Codec — the single place where models are mapped to and from plain dicts.

The host owns storage (database rows, localStorage blobs, JSON files); it
hands us dicts and takes dicts back. Everything here round-trips losslessly
through the dataclasses in models.py.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from .models import (
    ActivityRecord,
    ActivityType,
    CapturedInsight,
    CompactionResult,
    CompactionSummary,
    ContextSnapshot,
    Importance,
    InsightType,
    Priority,
    ScoredItem,
    ScoringConfig,
    ScoringWeights,
    Session,
    SessionStatus,
    SessionSummary,
    SessionTrigger,
    Status,
    TriggerType,
    WorkItem,
    payload_from_dict,
    payload_to_dict,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def as_local_naive(value: datetime) -> datetime:
    """Offset-aware datetimes become naive local time; naive ones pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# helper: parse ISO datetime strings coming from storage (timestamptz included)
_parse_dt = lambda s: as_local_naive(datetime.fromisoformat(s)) if s else None
_format_dt = lambda d: d.isoformat() if d else None

# Column names used by the board database for the same WorkItem fields
_WORK_ITEM_ALIASES = {
    "last_worked": "last_worked_at",
    "claude_sessions": "session_touch_count",
}


def _enum_or_raw(enum_cls: Type[E], value: Any) -> Any:
    """Convert to enum when possible; otherwise keep the raw value so the
    compactor can report the item as malformed instead of failing the load."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return value


def dumps(data: Any) -> str:
    """Compact, key-sorted JSON. Used wherever a stable character count matters."""
    return json.dumps(data, separators=(",", ":"), sort_keys=True, default=str)


# ── Work items ──────────────────────────────────────────────────────────────

def work_item_from_dict(data: Dict[str, Any]) -> WorkItem:
    data = {_WORK_ITEM_ALIASES.get(k, k): v for k, v in data.items()}
    return WorkItem(
        id=data.get("id") or "",
        title=data.get("title") or "",
        content=data.get("content") or "",
        lane=data.get("lane") or "current",
        status=_enum_or_raw(Status, data.get("status", Status.NOT_STARTED.value)),
        priority=_enum_or_raw(Priority, data.get("priority", Priority.MEDIUM.value)),
        effort=data.get("effort") or 0.0,
        energy_level=data.get("energy_level"),
        complexity=data.get("complexity"),
        inspiration=data.get("inspiration") or 0.0,
        progress=data.get("progress") or 0.0,
        last_worked_at=_parse_dt(data.get("last_worked_at")),
        session_touch_count=data.get("session_touch_count") or 0,
        tags=list(data.get("tags") or []),
        dependencies=list(data.get("dependencies") or []),
        blocked_by=list(data.get("blocked_by") or []),
        created_at=_parse_dt(data.get("created_at")),
        updated_at=_parse_dt(data.get("updated_at")),
    )


def work_item_to_dict(item: WorkItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "title": item.title,
        "content": item.content,
        "lane": item.lane,
        "status": getattr(item.status, "value", item.status),
        "priority": getattr(item.priority, "value", item.priority),
        "effort": item.effort,
        "energy_level": item.energy_level,
        "complexity": item.complexity,
        "inspiration": item.inspiration,
        "progress": item.progress,
        "last_worked_at": _format_dt(item.last_worked_at),
        "session_touch_count": item.session_touch_count,
        "tags": list(item.tags),
        "dependencies": list(item.dependencies),
        "blocked_by": list(item.blocked_by),
        "created_at": _format_dt(item.created_at),
        "updated_at": _format_dt(item.updated_at),
    }


def work_items_from_list(rows: Iterable[Dict[str, Any]]) -> List[WorkItem]:
    return [work_item_from_dict(r) for r in rows]


# ── Scoring config & compaction output ──────────────────────────────────────

def config_to_dict(config: ScoringConfig) -> Dict[str, Any]:
    return {
        "weights": dict(vars(config.weights)),
        "max_items": config.max_items,
        "compression_threshold": config.compression_threshold,
        "recency_decay_days": config.recency_decay_days,
    }


def config_from_dict(data: Dict[str, Any]) -> ScoringConfig:
    """Build and validate a config; missing keys take the defaults."""
    defaults = ScoringConfig()
    weights = ScoringWeights(**data.get("weights", {}))
    return ScoringConfig(
        weights=weights,
        max_items=data.get("max_items", defaults.max_items),
        compression_threshold=data.get("compression_threshold", defaults.compression_threshold),
        recency_decay_days=data.get("recency_decay_days", defaults.recency_decay_days),
    ).validate()


def scored_item_to_dict(scored: ScoredItem) -> Dict[str, Any]:
    return {
        "item": work_item_to_dict(scored.item),
        "score": scored.score,
        "score_breakdown": scored.breakdown.as_dict(),
        "include_reasons": list(scored.include_reasons),
        "manual_override": scored.manual_override.value if scored.manual_override else None,
        "is_user_important": scored.is_user_important,
        "included": scored.included,
        "compression_level": scored.compression_level.value if scored.compression_level else None,
    }


def compaction_summary_to_dict(summary: CompactionSummary) -> Dict[str, Any]:
    return {
        "total": summary.total,
        "included": summary.included,
        "compressed": summary.compressed,
        "excluded": summary.excluded,
        "average_score": summary.average_score,
        "context_size": summary.context_size,
        "warnings": list(summary.warnings),
    }


def compaction_result_to_dict(result: CompactionResult, included_only: bool = False) -> Dict[str, Any]:
    items = result.included_items if included_only else list(result.items)
    return {
        "generated_at": _format_dt(result.generated_at),
        "config": config_to_dict(result.config),
        "summary": compaction_summary_to_dict(result.summary),
        "items": [scored_item_to_dict(s) for s in items],
    }


# ── Activities & insights ───────────────────────────────────────────────────

def activity_to_dict(activity: ActivityRecord) -> Dict[str, Any]:
    return {
        "id": activity.id,
        "type": activity.type.value,
        "timestamp": _format_dt(activity.timestamp),
        "description": activity.description,
        "block_id": activity.block_id,
        "metadata": payload_to_dict(activity.metadata),
    }


def activity_from_dict(data: Dict[str, Any]) -> ActivityRecord:
    return ActivityRecord(
        id=data["id"],
        type=ActivityType(data["type"]),
        timestamp=_parse_dt(data["timestamp"]),
        description=data.get("description", ""),
        block_id=data.get("block_id"),
        metadata=payload_from_dict(data.get("metadata")),
    )


def insight_to_dict(insight: CapturedInsight) -> Dict[str, Any]:
    return {
        "id": insight.id,
        "type": insight.type.value,
        "title": insight.title,
        "content": insight.content,
        "timestamp": _format_dt(insight.timestamp),
        "session_id": insight.session_id,
        "related_block_ids": list(insight.related_block_ids),
        "tags": list(insight.tags),
        "importance": insight.importance.value,
    }


def insight_from_dict(data: Dict[str, Any]) -> CapturedInsight:
    return CapturedInsight(
        id=data["id"],
        type=InsightType(data["type"]),
        title=data["title"],
        content=data["content"],
        timestamp=_parse_dt(data["timestamp"]),
        session_id=data.get("session_id", ""),
        related_block_ids=tuple(data.get("related_block_ids") or ()),
        tags=tuple(data.get("tags") or ()),
        importance=Importance(data.get("importance", Importance.MEDIUM.value)),
    )


# ── Sessions ────────────────────────────────────────────────────────────────

def trigger_to_dict(trigger: Optional[SessionTrigger]) -> Optional[Dict[str, Any]]:
    if trigger is None:
        return None
    return {
        "type": trigger.type.value,
        "reason": trigger.reason,
        "timestamp": _format_dt(trigger.timestamp),
    }


def trigger_from_dict(data: Optional[Dict[str, Any]]) -> Optional[SessionTrigger]:
    if not data:
        return None
    return SessionTrigger(
        type=TriggerType(data["type"]),
        reason=data.get("reason", ""),
        timestamp=_parse_dt(data["timestamp"]),
    )


def session_to_dict(session: Session) -> Dict[str, Any]:
    return {
        "id": session.id,
        "project_id": session.project_id,
        "start_time": _format_dt(session.start_time),
        "end_time": _format_dt(session.end_time),
        "status": session.status.value,
        "activities": [activity_to_dict(a) for a in session.activities],
        "insights": [insight_to_dict(i) for i in session.insights],
        "context_usage": session.context_usage,
        "last_activity": _format_dt(session.last_activity),
        "blocks_in_focus": list(session.blocks_in_focus),
        "context_snapshot": {
            "total_blocks": session.context_snapshot.total_blocks,
            "blocks_by_lane": dict(session.context_snapshot.blocks_by_lane),
            "priorities": dict(session.context_snapshot.priorities),
        },
        "trigger": trigger_to_dict(session.trigger),
    }


def session_from_dict(data: Dict[str, Any]) -> Session:
    snapshot = data.get("context_snapshot") or {}
    return Session(
        id=data["id"],
        project_id=data["project_id"],
        start_time=_parse_dt(data["start_time"]),
        end_time=_parse_dt(data.get("end_time")),
        status=SessionStatus(data.get("status", SessionStatus.ACTIVE.value)),
        activities=[activity_from_dict(a) for a in data.get("activities", [])],
        insights=[insight_from_dict(i) for i in data.get("insights", [])],
        context_usage=data.get("context_usage", 0),
        last_activity=_parse_dt(data.get("last_activity")),
        blocks_in_focus=list(data.get("blocks_in_focus", [])),
        context_snapshot=ContextSnapshot(
            total_blocks=snapshot.get("total_blocks", 0),
            blocks_by_lane=dict(snapshot.get("blocks_by_lane", {})),
            priorities=dict(snapshot.get("priorities", {})),
        ),
        trigger=trigger_from_dict(data.get("trigger")),
    )


def session_summary_to_dict(summary: SessionSummary) -> Dict[str, Any]:
    return {
        "session_id": summary.session_id,
        "project_id": summary.project_id,
        "title": summary.title,
        "started_at": _format_dt(summary.started_at),
        "ended_at": _format_dt(summary.ended_at),
        "duration_minutes": summary.duration_minutes,
        "blocks_worked": summary.blocks_worked,
        "blocks_created": summary.blocks_created,
        "blocks_modified": summary.blocks_modified,
        "blocks_completed": summary.blocks_completed,
        "key_accomplishments": list(summary.key_accomplishments),
        "decisions": [insight_to_dict(i) for i in summary.decisions],
        "problems": [insight_to_dict(i) for i in summary.problems],
        "ideas": [insight_to_dict(i) for i in summary.ideas],
        "learnings": [insight_to_dict(i) for i in summary.learnings],
        "next_steps": list(summary.next_steps),
        "blockers": list(summary.blockers),
        "productivity_score": summary.productivity_score,
        "focus_areas": list(summary.focus_areas),
        "insights": [insight_to_dict(i) for i in summary.insights],
    }


def session_summary_from_dict(data: Dict[str, Any]) -> SessionSummary:
    insights = lambda key: tuple(insight_from_dict(i) for i in data.get(key, []))
    return SessionSummary(
        session_id=data["session_id"],
        project_id=data["project_id"],
        title=data.get("title", ""),
        started_at=_parse_dt(data["started_at"]),
        ended_at=_parse_dt(data["ended_at"]),
        duration_minutes=data["duration_minutes"],
        blocks_worked=data.get("blocks_worked", 0),
        blocks_created=data.get("blocks_created", 0),
        blocks_modified=data.get("blocks_modified", 0),
        blocks_completed=data.get("blocks_completed", 0),
        key_accomplishments=tuple(data.get("key_accomplishments", [])),
        decisions=insights("decisions"),
        problems=insights("problems"),
        ideas=insights("ideas"),
        learnings=insights("learnings"),
        next_steps=tuple(data.get("next_steps", [])),
        blockers=tuple(data.get("blockers", [])),
        productivity_score=data["productivity_score"],
        focus_areas=tuple(data.get("focus_areas", [])),
        insights=insights("insights"),
    )


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Maps every model to a plain dict and back. The core never touches
#   storage; the host calls session_to_dict() before saving and
#   session_from_dict() after loading.
#
# Key points:
#   - Datetimes travel as ISO strings, enums as their string values.
#   - work_item_from_dict() accepts the board database column names
#     (last_worked, claude_sessions) as aliases.
#   - An unknown status/priority is kept raw so the compactor can skip that
#     one block with a warning instead of failing the whole load.
#
# Interviewer-friendly talking points:
#   1. Same idea as a repository's row mappers: one module knows the wire
#      shape, everything else speaks dataclasses.
#   2. dumps() uses compact separators and sorted keys so character counts
#      (and therefore token estimates) are stable across runs.
