"""
Session Service — orchestrates the lifecycle of an AI work session.

Handles: start, end, crash, activity tracking, insight capture, rollover
checks, and computing the session summary from the raw activity log when a
session ends.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import numpy as np

from frizy.data.errors import InvalidInsight, NoActiveSession
from frizy.data.models import (
    ActivityPayload,
    ActivityRecord,
    ActivityType,
    CapturedInsight,
    ContextSnapshot,
    Importance,
    InsightNote,
    InsightType,
    RolloverDecision,
    Session,
    SessionStatus,
    SessionSummary,
    SessionTrigger,
    TriggerType,
    payload_from_dict,
)
from frizy.services.session_rules import (
    DEFAULT_POLICY,
    SessionPolicy,
    calculate_context_usage,
    evaluate_rollover,
    generate_session_id,
    get_session_stats,
)

logger = logging.getLogger(__name__)

# Productivity score: baseline plus capped bonuses, clamped to [0, 10]
PRODUCTIVITY_BASELINE = 4.0
COMPLETION_BONUS, COMPLETION_CAP = 0.5, 2.0
CREATION_BONUS, CREATION_CAP = 0.3, 1.0
INSIGHT_BONUS, INSIGHT_CAP = 0.2, 2.0
DENSITY_CAP = 1.0  # activities per minute

IMPORTANCE_CONFIDENCE = {
    Importance.HIGH: 0.9,
    Importance.MEDIUM: 0.7,
    Importance.LOW: 0.5,
}


class SessionStore:
    """In-memory home for every session the tracker has seen.

    Owned by the host and passed to SessionService; there is no module-level
    instance. Holds sessions per project, the current session reference and
    the summaries of ended sessions.
    """

    def __init__(self) -> None:
        self.sessions: Dict[str, List[Session]] = {}
        self.summaries: Dict[str, SessionSummary] = {}
        self.current: Optional[Session] = None
        self._sequence = itertools.count(1)

    def add(self, session: Session) -> None:
        self.sessions.setdefault(session.project_id, []).append(session)

    def next_sequence(self) -> int:
        return next(self._sequence)

    def sessions_for(self, project_id: str) -> List[Session]:
        return list(self.sessions.get(project_id, []))

    def all_sessions(self) -> List[Session]:
        return [s for group in self.sessions.values() for s in group]

    def active_sessions(self) -> List[Session]:
        return [s for s in self.all_sessions() if s.is_active]

    def get(self, session_id: str) -> Optional[Session]:
        for s in self.all_sessions():
            if s.id == session_id:
                return s
        return None


class SessionService:
    """
    Manages the lifecycle of work sessions.

    Only ONE session can be active at a time. State transitions:
        no session → active → (completed | context_exceeded | crashed)
    Starting a session while another is active ends the old one first.
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        policy: SessionPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = datetime.now,
        on_session_update: Optional[Callable[[Session], None]] = None,
        on_insight_capture: Optional[Callable[[CapturedInsight], None]] = None,
    ) -> None:
        self.store = store if store is not None else SessionStore()
        self.policy = policy
        self.clock = clock

        # Callbacks the host may set
        self.on_session_update = on_session_update
        self.on_insight_capture = on_insight_capture

    @property
    def current_session(self) -> Optional[Session]:
        return self.store.current

    # ── Session lifecycle ───────────────────────────────────────────────────

    def start_session(
        self,
        project_id: str,
        context_snapshot: Optional[ContextSnapshot] = None,
        trigger: Optional[SessionTrigger] = None,
    ) -> str:
        """Start a new session, ending the current one first. Returns the new id."""
        now = self.clock()
        trigger = trigger or SessionTrigger(
            type=TriggerType.MANUAL, reason="Session started by user", timestamp=now,
        )

        current = self.store.current
        if current is not None and current.is_active:
            status = (
                SessionStatus.CONTEXT_EXCEEDED
                if trigger.type == TriggerType.CONTEXT_LIMIT
                else SessionStatus.COMPLETED
            )
            self.end_session(status)

        session = Session(
            id=generate_session_id(trigger, project_id, now, self.store.next_sequence()),
            project_id=project_id,
            start_time=now,
            last_activity=now,
            context_snapshot=context_snapshot or ContextSnapshot(),
            trigger=trigger,
        )
        self.store.add(session)
        self.store.current = session
        logger.info(
            "Session %s started for project %s (%s: %s)",
            session.id, project_id, trigger.type.value, trigger.reason,
        )
        self._notify(session)
        return session.id

    def end_session(self, status: SessionStatus = SessionStatus.COMPLETED) -> Optional[SessionSummary]:
        """End the active session and return its summary; None if nothing is active."""
        session = self.store.current
        if session is None or not session.is_active:
            return None
        if status == SessionStatus.ACTIVE:
            raise ValueError("A session cannot end in the 'active' state.")

        now = self.clock()
        session.end_time = now
        summary = self._build_summary(session, now)
        session.status = status

        self.store.summaries[session.id] = summary
        self.store.current = None
        logger.info(
            "Session %s ended (%s) after %.1f min, productivity %.1f",
            session.id, status.value, summary.duration_minutes, summary.productivity_score,
        )
        return summary

    def mark_crashed(self, reason: str = "") -> Optional[Session]:
        """Flag the active session as crashed. It stays current so the next
        rollover check reports error_recovery."""
        session = self.store.current
        if session is None or not session.is_active:
            return None
        session.status = SessionStatus.CRASHED
        session.end_time = self.clock()
        logger.warning("Session %s marked as crashed: %s", session.id, reason or "no reason given")
        return session

    # ── Rollover ────────────────────────────────────────────────────────────

    def check_rollover(self, project_id: Optional[str] = None) -> RolloverDecision:
        current = self.store.current
        last_event = None
        usage = 0
        if current is not None:
            last_event = current.last_activity or current.start_time
            usage = current.context_usage
        return evaluate_rollover(current, last_event, usage, project_id, self.clock(), self.policy)

    def ensure_session(
        self,
        project_id: str,
        context_snapshot: Optional[ContextSnapshot] = None,
    ) -> Optional[SessionTrigger]:
        """Roll over if any trigger fires. Returns the trigger, or None if the
        current session carries on."""
        decision = self.check_rollover(project_id)
        if not decision.should_start:
            return None
        logger.info("Session rollover: %s (%s)", decision.trigger.type.value, decision.trigger.reason)
        self.start_session(project_id, context_snapshot, decision.trigger)
        return decision.trigger

    # ── Activity & insights ─────────────────────────────────────────────────

    def track_activity(
        self,
        activity_type: Union[ActivityType, str],
        description: str = "",
        block_id: Optional[str] = None,
        metadata: Union[ActivityPayload, Dict[str, Any], None] = None,
    ) -> ActivityRecord:
        """Append an activity to the active session. Raises NoActiveSession."""
        session = self._require_active("track activity")
        now = self.clock()
        if isinstance(metadata, dict):
            metadata = payload_from_dict(metadata)

        record = ActivityRecord(
            id=f"activity-{int(now.timestamp() * 1000)}-{self.store.next_sequence()}",
            type=ActivityType(activity_type),
            timestamp=now,
            description=description,
            block_id=block_id,
            metadata=metadata,
        )
        session.activities.append(record)
        session.last_activity = now
        if block_id and block_id not in session.blocks_in_focus:
            session.blocks_in_focus.append(block_id)
        self._refresh_context_usage(session)
        self._notify(session)
        return record

    def capture_insight(
        self,
        insight_type: Union[InsightType, str],
        title: str,
        content: str,
        related_block_ids: Iterable[str] = (),
        tags: Iterable[str] = (),
        importance: Union[Importance, str] = Importance.MEDIUM,
    ) -> CapturedInsight:
        """Validate and store a user-captured insight. Raises NoActiveSession
        without an active session and InvalidInsight on blank fields."""
        session = self._require_active("capture insight")

        if not isinstance(insight_type, InsightType):
            if not str(insight_type or "").strip():
                raise InvalidInsight("Insight type is required.")
            try:
                insight_type = InsightType(str(insight_type).strip())
            except ValueError:
                raise InvalidInsight(f"Unknown insight type {insight_type!r}.") from None
        if not isinstance(title, str) or not title.strip():
            raise InvalidInsight(f"Insight title must be a non-blank string, got {title!r}.")
        if not isinstance(content, str) or not content.strip():
            raise InvalidInsight(f"Insight content must be a non-blank string, got {content!r}.")
        try:
            importance = Importance(importance)
        except ValueError:
            raise InvalidInsight(f"Unknown importance {importance!r}.") from None

        now = self.clock()
        insight = CapturedInsight(
            id=f"insight-{int(now.timestamp() * 1000)}-{self.store.next_sequence()}",
            type=insight_type,
            title=title.strip(),
            content=content.strip(),
            timestamp=now,
            session_id=session.id,
            related_block_ids=tuple(related_block_ids),
            tags=tuple(tags),
            importance=importance,
        )
        session.insights.append(insight)

        self.track_activity(
            ActivityType.INSIGHT_CAPTURED,
            description=f"{insight.type.value}: {insight.title}",
            metadata=InsightNote(details=insight.content, confidence=IMPORTANCE_CONFIDENCE[importance]),
        )
        if self.on_insight_capture:
            self.on_insight_capture(insight)
        return insight

    # ── Helpers ─────────────────────────────────────────────────────────────

    def get_session_stats(self) -> Dict[str, Any]:
        return get_session_stats(self.store.current, self.clock())

    def _require_active(self, action: str) -> Session:
        session = self.store.current
        if session is None or not session.is_active:
            raise NoActiveSession(f"Cannot {action}: no active session.")
        return session

    def _refresh_context_usage(self, session: Session) -> None:
        usage = calculate_context_usage([*session.activities, *session.insights])
        session.context_usage = max(session.context_usage, usage)

    def _notify(self, session: Session) -> None:
        if self.on_session_update:
            self.on_session_update(session)

    def _build_summary(self, session: Session, end_time: datetime) -> SessionSummary:
        """Walk activities and insights to compute the end-of-session summary."""
        duration = max(0.0, (end_time - session.start_time).total_seconds() / 60.0)
        activities = session.activities
        insights = session.insights

        def of_type(kind: InsightType) -> tuple:
            return tuple(i for i in insights if i.type == kind)

        decisions = of_type(InsightType.DECISION)
        problems = of_type(InsightType.PROBLEM_SOLUTION)
        ideas = of_type(InsightType.IDEA)
        learnings = of_type(InsightType.LEARNING)
        next_steps = tuple(i.content for i in of_type(InsightType.NEXT_STEP))
        blockers = tuple(i.content for i in of_type(InsightType.BLOCKER))

        created = sum(1 for a in activities if a.type == ActivityType.BLOCK_CREATED)
        completed = sum(1 for a in activities if a.type == ActivityType.BLOCK_COMPLETED)
        modified = sum(
            1 for a in activities if a.type in (ActivityType.BLOCK_UPDATED, ActivityType.BLOCK_MOVED)
        )

        accomplishments: List[str] = []
        if created:
            accomplishments.append(f"Created {created} new blocks")
        if completed:
            accomplishments.append(f"Completed {completed} blocks")
        if modified:
            accomplishments.append(f"Updated {modified} blocks")
        if decisions:
            accomplishments.append(f"Made {len(decisions)} key decisions")
        if problems:
            accomplishments.append(f"Solved {len(problems)} problems")

        score = productivity_score(completed, created, len(insights), len(activities), duration)

        return SessionSummary(
            session_id=session.id,
            project_id=session.project_id,
            title=session_title(accomplishments, len(session.blocks_in_focus), duration),
            started_at=session.start_time,
            ended_at=end_time,
            duration_minutes=duration,
            blocks_worked=len(session.blocks_in_focus),
            blocks_created=created,
            blocks_modified=modified,
            blocks_completed=completed,
            key_accomplishments=tuple(accomplishments),
            decisions=decisions,
            problems=problems,
            ideas=ideas,
            learnings=learnings,
            next_steps=next_steps,
            blockers=blockers,
            productivity_score=score,
            focus_areas=tuple(session.blocks_in_focus),
            insights=tuple(insights),
        )


def productivity_score(
    completed: int,
    created: int,
    insight_count: int,
    activity_count: int,
    duration_minutes: float,
) -> float:
    """4 + completions (≤2) + creations (≤1) + insights (≤2) + activity density (≤1), clamped to [0, 10]."""
    density = activity_count / max(duration_minutes, 1.0)
    raw = (
        PRODUCTIVITY_BASELINE
        + min(COMPLETION_CAP, completed * COMPLETION_BONUS)
        + min(CREATION_CAP, created * CREATION_BONUS)
        + min(INSIGHT_CAP, insight_count * INSIGHT_BONUS)
        + min(DENSITY_CAP, density)
    )
    return round(float(np.clip(raw, 0.0, 10.0)), 2)


def session_title(accomplishments: List[str], blocks_worked: int, duration_minutes: float) -> str:
    if accomplishments:
        return accomplishments[0]
    if blocks_worked:
        return f"Worked on {blocks_worked} blocks"
    return f"AI session ({round(duration_minutes)}min)"


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Runs the session state machine for AI-assisted coding: start, track
#   what happened, capture insights, end with a summary.
#
# Key classes:
#   - SessionStore: plain in-memory container the host owns. Replaces a
#     global "current session" singleton, so two tests (or two projects in
#     one process) never share state.
#   - SessionService: enforces the transitions and builds SessionSummary.
#
# Data flow:
#   host event → ensure_session(project) → evaluate_rollover() → maybe
#   start_session() → track_activity()/capture_insight() append to the
#   active session → end_session() → walks activities → SessionSummary.
#
# Interviewer-friendly talking points:
#   1. Errors are explicit: tracking without a session raises
#      NoActiveSession instead of silently dropping data.
#   2. end_session() twice returns None the second time; summaries are
#      produced exactly once and kept in the store.
#   3. The clock is injected, so "a new day started" and "2 hours idle"
#      are testable without sleeping.
