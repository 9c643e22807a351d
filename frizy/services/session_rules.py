"""
Session Rules — pure decisions about session boundaries.

Nothing here mutates a session or keeps state. The SessionService calls
these to decide when to roll over; the host may call them directly (e.g. to
decide whether a reconnect should resume rather than fork a session).

Rollover triggers, checked in this order (first match wins):
  1. no current session        → manual
  2. session started another day → daily
  3. context usage over threshold → context_limit
  4. idle longer than threshold  → inactivity
  5. different project requested → project_switch
  6. session crashed             → error_recovery
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from frizy.data import codec
from frizy.data.models import (
    ActivityRecord,
    CapturedInsight,
    RolloverDecision,
    Session,
    SessionStatus,
    SessionTrigger,
    TriggerType,
)

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class SessionPolicy:
    max_context_tokens: int = 200_000
    context_threshold: float = 0.8
    inactivity_threshold: timedelta = timedelta(hours=2)
    merge_gap: timedelta = timedelta(minutes=5)
    max_active_sessions: int = 10

    @property
    def context_token_limit(self) -> float:
        return self.max_context_tokens * self.context_threshold


DEFAULT_POLICY = SessionPolicy()


@dataclass(frozen=True)
class SessionArchive:
    active: List[Session]
    archived: List[Session]


# ── Rollover ────────────────────────────────────────────────────────────────

def evaluate_rollover(
    current: Optional[Session],
    last_event_time: Optional[datetime],
    context_usage: float,
    requested_project_id: Optional[str] = None,
    now: Optional[datetime] = None,
    policy: SessionPolicy = DEFAULT_POLICY,
) -> RolloverDecision:
    """Decide whether a new session must start before accepting more activity."""
    now = now or datetime.now()

    def start(kind: TriggerType, reason: str) -> RolloverDecision:
        return RolloverDecision(True, SessionTrigger(type=kind, reason=reason, timestamp=now))

    if current is None:
        return start(TriggerType.MANUAL, "No active session found")

    started = current.start_time.date()
    if started != now.date():
        return start(TriggerType.DAILY, f"New day started (was {started}, now {now.date()})")

    if context_usage > policy.context_token_limit:
        pct = round(context_usage / policy.max_context_tokens * 100)
        return start(TriggerType.CONTEXT_LIMIT, f"Context usage at {pct}% of limit")

    if last_event_time is not None:
        idle = now - last_event_time
        if idle > policy.inactivity_threshold:
            minutes = round(idle.total_seconds() / 60)
            return start(TriggerType.INACTIVITY, f"No activity for {minutes} minutes")

    if requested_project_id and current.project_id and requested_project_id != current.project_id:
        return start(
            TriggerType.PROJECT_SWITCH,
            f"Switched from project {current.project_id} to {requested_project_id}",
        )

    if current.status == SessionStatus.CRASHED:
        return start(TriggerType.ERROR_RECOVERY, "Recovering from previous session error")

    return RolloverDecision(False)


def generate_session_id(
    trigger: SessionTrigger,
    project_id: Optional[str] = None,
    now: Optional[datetime] = None,
    sequence: int = 0,
) -> str:
    """session-<date>-<hour>-<trigger>[-<project>]-<millis>-<sequence>.

    The millisecond stamp plus the store's sequence number keep two ids
    generated in the same hour (or the same millisecond) distinct.
    """
    now = now or datetime.now()
    parts = ["session", now.strftime("%Y-%m-%d"), f"{now.hour:02d}", trigger.type.value]
    if trigger.type == TriggerType.PROJECT_SWITCH:
        parts.append(_slug(project_id or "default"))
    parts.append(str(int(now.timestamp() * 1000)))
    parts.append(str(sequence))
    return "-".join(parts)


def _slug(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]+", "_", text).strip("_") or "default"


# ── Context usage ───────────────────────────────────────────────────────────

def _event_chars(event: Any) -> int:
    if isinstance(event, str):
        return len(event)
    if isinstance(event, ActivityRecord):
        return len(codec.dumps(codec.activity_to_dict(event)))
    if isinstance(event, CapturedInsight):
        return len(codec.dumps(codec.insight_to_dict(event)))
    return len(codec.dumps(event))


def calculate_context_usage(events: Iterable[Any]) -> int:
    """Rough token estimate: total serialized characters / 4.

    Strings count by length; records and mappings by their compact JSON
    encoding. A heuristic, not a tokenizer, but adding an event never
    lowers the estimate.
    """
    total_chars = sum(_event_chars(e) for e in events)
    return total_chars // CHARS_PER_TOKEN


# ── Merge / archive ─────────────────────────────────────────────────────────

def should_merge_sessions(a: Session, b: Session, policy: SessionPolicy = DEFAULT_POLICY) -> bool:
    """True when b looks like a reconnect of a (short gap, same project, a not crashed)."""
    gap = abs(b.start_time - (a.end_time or a.start_time))
    return (
        gap < policy.merge_gap
        and a.project_id == b.project_id
        and a.status != SessionStatus.CRASHED
    )


def archive_sessions(sessions: Iterable[Session], max_active: Optional[int] = None) -> SessionArchive:
    """Newest `max_active` sessions stay visible, the rest are archived. No deletion."""
    if max_active is None:
        max_active = DEFAULT_POLICY.max_active_sessions
    if max_active < 0:
        raise ValueError(f"max_active must not be negative, got {max_active}.")
    ordered = sorted(sessions, key=lambda s: s.start_time, reverse=True)
    return SessionArchive(active=ordered[:max_active], archived=ordered[max_active:])


def get_session_stats(session: Optional[Session], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Live numbers for a session panel."""
    if session is None:
        return {
            "is_active": False,
            "duration_minutes": 0.0,
            "activities_count": 0,
            "insights_count": 0,
            "blocks_in_focus": 0,
            "events_per_minute": 0.0,
            "context_usage": 0,
        }
    end = session.end_time or now or datetime.now()
    minutes = max(0.0, (end - session.start_time).total_seconds() / 60.0)
    return {
        "is_active": session.is_active,
        "duration_minutes": minutes,
        "activities_count": len(session.activities),
        "insights_count": len(session.insights),
        "blocks_in_focus": len(session.blocks_in_focus),
        "events_per_minute": len(session.activities) / minutes if minutes > 0 else 0.0,
        "context_usage": session.context_usage,
    }


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Answers questions about sessions without changing them: "should a new
#   session start now?", "how many tokens has this session used?", "is this
#   reconnect the same session?", "which sessions should the sidebar show?"
#
# Key design decisions:
#   - evaluate_rollover() checks triggers in a fixed order. A session that
#     started yesterday AND has been idle for 3 hours reports `daily`, not
#     `inactivity`. The order is part of the contract.
#   - All thresholds live in one frozen SessionPolicy, so tests and hosts
#     can tighten them without monkeypatching constants.
#   - `now` is a parameter everywhere: pure functions of their inputs.
#
# Interviewer-friendly talking points:
#   1. 4 characters per token is the usual rule of thumb for English text;
#      close enough to decide "are we near 80% of 200k?".
#   2. Floor division keeps the estimate an int and still monotonic.
