"""
Data models for Frizy core.

Plain dataclasses for the board items the host hands us, the scored
projection the compactor produces, and the session records the tracker
keeps. No persistence logic lives here; see codec.py for dict mapping.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import InvalidConfig


# ── Board enums ─────────────────────────────────────────────────────────────

class Status(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Override(str, Enum):
    """Manual include/exclude flag set by the user on a block."""
    INCLUDE = "include"
    EXCLUDE = "exclude"


class CompressionLevel(str, Enum):
    FULL = "full"
    SUMMARY = "summary"
    MINIMAL = "minimal"


# ── Work items ──────────────────────────────────────────────────────────────

@dataclass
class WorkItem:
    """A block on the project board. Owned by the host; the core only reads it."""
    id: str = ""
    title: str = ""
    content: str = ""
    lane: str = "current"
    status: Status = Status.NOT_STARTED
    priority: Priority = Priority.MEDIUM
    effort: float = 0.0
    energy_level: Optional[str] = None
    complexity: Optional[str] = None
    inspiration: float = 0.0
    progress: float = 0.0
    last_worked_at: Optional[datetime] = None
    session_touch_count: int = 0
    tags: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)  # ids this block depends on
    blocked_by: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProjectInfo:
    """Header information for exported context."""
    id: str = ""
    name: str = ""
    description: str = ""


# ── Scoring configuration ───────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoringWeights:
    """Relative weights; they need not sum to 1.0."""
    recency: float = 0.25
    session_touches: float = 0.20
    priority: float = 0.20
    status: float = 0.15
    user_importance: float = 0.15
    manual_override: float = 0.05
    dependencies: float = 0.05

    def total(self) -> float:
        return (self.recency + self.session_touches + self.priority
                + self.status + self.user_importance + self.manual_override
                + self.dependencies)


@dataclass(frozen=True)
class ScoringConfig:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    max_items: int = 15
    compression_threshold: float = 0.4  # fraction of max_items rendered in full
    recency_decay_days: float = 7.0     # half-life of the recency sub-score

    def validate(self) -> "ScoringConfig":
        """Raise InvalidConfig on anything we would otherwise have to clamp."""
        for name, value in vars(self.weights).items():
            if not _is_finite_number(value):
                raise InvalidConfig(f"Weight '{name}' must be a finite number, got {value!r}.")
            if value < 0:
                raise InvalidConfig(f"Weight '{name}' must not be negative, got {value!r}.")
        if isinstance(self.max_items, bool) or not isinstance(self.max_items, int):
            raise InvalidConfig(f"max_items must be an integer, got {self.max_items!r}.")
        if self.max_items < 0:
            raise InvalidConfig(f"max_items must not be negative, got {self.max_items}.")
        if not _is_finite_number(self.compression_threshold) or not (
            0.0 <= self.compression_threshold <= 1.0
        ):
            raise InvalidConfig(
                f"compression_threshold must be within [0, 1], got {self.compression_threshold!r}."
            )
        if not _is_finite_number(self.recency_decay_days) or self.recency_decay_days <= 0:
            raise InvalidConfig(
                f"recency_decay_days must be a positive number, got {self.recency_decay_days!r}."
            )
        return self

    def with_changes(self, **changes: Any) -> "ScoringConfig":
        """Return a validated copy. `weights` may be a mapping of partial weight changes."""
        weights = changes.pop("weights", None)
        if isinstance(weights, dict):
            weights = replace(self.weights, **weights)
        if weights is not None:
            changes["weights"] = weights
        return replace(self, **changes).validate()


DEFAULT_SCORING_CONFIG = ScoringConfig()


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


# ── Compaction output ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class ScoreBreakdown:
    recency: float = 0.0
    session_touches: float = 0.0
    priority: float = 0.0
    status: float = 0.0
    user_importance: float = 0.0
    manual_override: float = 0.0
    dependencies: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return dict(vars(self))


@dataclass(frozen=True)
class ScoredItem:
    """A WorkItem plus everything the compactor decided about it."""
    item: WorkItem
    score: float
    breakdown: ScoreBreakdown
    include_reasons: Tuple[str, ...] = ()
    manual_override: Optional[Override] = None
    is_user_important: bool = False
    included: bool = False
    compression_level: Optional[CompressionLevel] = None


@dataclass(frozen=True)
class CompactionSummary:
    total: int = 0
    included: int = 0
    compressed: int = 0
    excluded: int = 0
    average_score: float = 0.0
    context_size: int = 0  # characters of rendered included bodies
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CompactionResult:
    items: Tuple[ScoredItem, ...]
    summary: CompactionSummary
    generated_at: datetime
    config: ScoringConfig

    @property
    def included_items(self) -> List[ScoredItem]:
        return [s for s in self.items if s.included]

    @property
    def excluded_items(self) -> List[ScoredItem]:
        return [s for s in self.items if not s.included]

    def find(self, item_id: str) -> Optional[ScoredItem]:
        for s in self.items:
            if s.item.id == item_id:
                return s
        return None


@dataclass
class DecisionFeedback:
    was_helpful: bool
    missing_block_ids: List[str] = field(default_factory=list)
    unnecessary_block_ids: List[str] = field(default_factory=list)
    notes: str = ""


@dataclass
class ContextDecision:
    """What one generated context contained, kept so overrides can be reviewed later."""
    id: str
    project_id: str
    generated_at: datetime
    included_block_ids: List[str]
    excluded_block_ids: List[str]
    manual_overrides: Dict[str, Override]
    config: ScoringConfig
    feedback: Optional[DecisionFeedback] = None


# ── Session enums ───────────────────────────────────────────────────────────

class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CONTEXT_EXCEEDED = "context_exceeded"
    CRASHED = "crashed"


class TriggerType(str, Enum):
    DAILY = "daily"
    CONTEXT_LIMIT = "context_limit"
    INACTIVITY = "inactivity"
    MANUAL = "manual"
    PROJECT_SWITCH = "project_switch"
    ERROR_RECOVERY = "error_recovery"


class ActivityType(str, Enum):
    BLOCK_CREATED = "block_created"
    BLOCK_UPDATED = "block_updated"
    BLOCK_MOVED = "block_moved"
    BLOCK_COMPLETED = "block_completed"
    INSIGHT_CAPTURED = "insight_captured"
    DECISION_MADE = "decision_made"
    PROBLEM_SOLVED = "problem_solved"
    IDEA_GENERATED = "idea_generated"
    CONTEXT_ADDED = "context_added"


class InsightType(str, Enum):
    DECISION = "decision"
    PROBLEM_SOLUTION = "problem_solution"
    IDEA = "idea"
    LEARNING = "learning"
    BLOCKER = "blocker"
    NEXT_STEP = "next_step"
    REFERENCE = "reference"


class Importance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ── Activity payloads ───────────────────────────────────────────────────────
# Tagged union over the metadata shapes the board actually sends. Anything
# with an unknown `kind` is kept verbatim in OtherPayload.

@dataclass(frozen=True)
class FieldChange:
    kind = "field_change"
    field_name: str = ""
    old_value: Any = None
    new_value: Any = None
    details: Optional[str] = None


@dataclass(frozen=True)
class BlockMove:
    kind = "block_move"
    from_lane: str = ""
    to_lane: str = ""


@dataclass(frozen=True)
class InsightNote:
    kind = "insight_note"
    details: str = ""
    confidence: float = 0.5


@dataclass(frozen=True)
class OtherPayload:
    kind = "other"
    raw: Dict[str, Any] = field(default_factory=dict)


ActivityPayload = Union[FieldChange, BlockMove, InsightNote, OtherPayload]

_PAYLOAD_TYPES = {cls.kind: cls for cls in (FieldChange, BlockMove, InsightNote)}


def payload_from_dict(data: Optional[Dict[str, Any]]) -> Optional[ActivityPayload]:
    """Pick the payload variant from data['kind']; fall back to OtherPayload."""
    if data is None:
        return None
    kind = data.get("kind")
    cls = _PAYLOAD_TYPES.get(kind)
    if cls is not None:
        try:
            return cls(**{k: v for k, v in data.items() if k != "kind"})
        except TypeError:
            pass  # unexpected keys: keep the raw mapping
    if kind == OtherPayload.kind and isinstance(data.get("raw"), dict):
        return OtherPayload(raw=dict(data["raw"]))
    return OtherPayload(raw=dict(data))


def payload_to_dict(payload: Optional[ActivityPayload]) -> Optional[Dict[str, Any]]:
    if payload is None:
        return None
    if isinstance(payload, OtherPayload):
        return {"kind": OtherPayload.kind, "raw": dict(payload.raw)}
    return {"kind": payload.kind, **vars(payload)}


# ── Session records ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ActivityRecord:
    """One thing that happened during a session. Append-only."""
    id: str
    type: ActivityType
    timestamp: datetime
    description: str = ""
    block_id: Optional[str] = None
    metadata: Optional[ActivityPayload] = None


@dataclass(frozen=True)
class CapturedInsight:
    id: str
    type: InsightType
    title: str
    content: str
    timestamp: datetime
    session_id: str = ""
    related_block_ids: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    importance: Importance = Importance.MEDIUM


@dataclass(frozen=True)
class SessionTrigger:
    """Why a new session should start. Produced by evaluate_rollover, never stored by the core."""
    type: TriggerType
    reason: str
    timestamp: datetime


@dataclass(frozen=True)
class RolloverDecision:
    should_start: bool
    trigger: Optional[SessionTrigger] = None


@dataclass
class ContextSnapshot:
    """Board shape at session start."""
    total_blocks: int = 0
    blocks_by_lane: Dict[str, int] = field(default_factory=dict)
    priorities: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_items(cls, items: List[WorkItem]) -> "ContextSnapshot":
        lanes: Dict[str, int] = {}
        priorities: Dict[str, int] = {}
        for item in items:
            lanes[item.lane] = lanes.get(item.lane, 0) + 1
            key = item.priority.value if isinstance(item.priority, Priority) else str(item.priority)
            priorities[key] = priorities.get(key, 0) + 1
        return cls(total_blocks=len(items), blocks_by_lane=lanes, priorities=priorities)


@dataclass
class Session:
    """One tracked work period, roughly one AI-assistant conversation."""
    id: str
    project_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    status: SessionStatus = SessionStatus.ACTIVE
    activities: List[ActivityRecord] = field(default_factory=list)
    insights: List[CapturedInsight] = field(default_factory=list)
    context_usage: int = 0  # estimated tokens; never decreases while active
    last_activity: Optional[datetime] = None
    blocks_in_focus: List[str] = field(default_factory=list)
    context_snapshot: ContextSnapshot = field(default_factory=ContextSnapshot)
    trigger: Optional[SessionTrigger] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE


@dataclass(frozen=True)
class SessionSummary:
    """Produced once, when a session ends."""
    session_id: str
    project_id: str
    title: str
    started_at: datetime
    ended_at: datetime
    duration_minutes: float
    blocks_worked: int
    blocks_created: int
    blocks_modified: int
    blocks_completed: int
    key_accomplishments: Tuple[str, ...]
    decisions: Tuple[CapturedInsight, ...]
    problems: Tuple[CapturedInsight, ...]
    ideas: Tuple[CapturedInsight, ...]
    learnings: Tuple[CapturedInsight, ...]
    next_steps: Tuple[str, ...]
    blockers: Tuple[str, ...]
    productivity_score: float
    focus_areas: Tuple[str, ...]
    insights: Tuple[CapturedInsight, ...]


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Defines the "shape" of everything the context compactor and the session
#   tracker pass around. Board blocks come in as WorkItem; the compactor hands
#   back CompactionResult; the tracker keeps Session and emits SessionSummary.
#
# Key classes and why they exist:
#   - WorkItem: a read-only view of a board block. The host owns it.
#   - ScoringConfig: weights and budget. Frozen, so "changing" it means
#     building a new one, which keeps old results consistent with the config
#     they were produced under.
#   - ScoredItem / CompactionResult: immutable, rebuilt on every compaction.
#   - ActivityPayload: a small tagged union instead of a free-form dict, with
#     OtherPayload as the escape hatch for event kinds we don't know yet.
#   - Session: the only mutable record; it grows while active.
#
# Interviewer-friendly talking points:
#   1. str-valued Enums serialize to plain strings, so JSON export needs no
#      custom encoder for them.
#   2. Frozen dataclasses for outputs make "immutable once produced" a
#      property of the type rather than a convention.
#   3. Validation lives on the config itself, so every entry point that
#      accepts a config fails the same way.
