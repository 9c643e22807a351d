"""Tests for the session lifecycle, activity log and summaries."""

import pytest

from frizy.data.errors import InvalidInsight, NoActiveSession
from frizy.data.models import (
    ActivityType,
    BlockMove,
    ContextSnapshot,
    FieldChange,
    Importance,
    InsightNote,
    InsightType,
    OtherPayload,
    SessionStatus,
    TriggerType,
)
from frizy.services.session_rules import SessionPolicy
from frizy.services.session_service import (
    SessionService,
    SessionStore,
    productivity_score,
    session_title,
)


@pytest.fixture
def service(clock):
    return SessionService(SessionStore(), clock=clock)


@pytest.fixture
def active(service):
    service.start_session("p1")
    return service


class TestLifecycle:
    def test_start_session(self, service, clock):
        sid = service.start_session("p1", ContextSnapshot(total_blocks=3))
        session = service.current_session
        assert session.id == sid
        assert session.is_active
        assert session.start_time == clock.now
        assert session.trigger.type == TriggerType.MANUAL
        assert session.context_snapshot.total_blocks == 3
        assert service.store.sessions_for("p1") == [session]

    def test_only_one_active(self, service):
        first = service.start_session("p1")
        second = service.start_session("p1")
        assert first != second
        assert [s.id for s in service.store.active_sessions()] == [second]
        assert service.store.get(first).status == SessionStatus.COMPLETED
        assert first in service.store.summaries

    def test_end_session_twice(self, active, clock):
        clock.advance(minutes=30)
        summary = active.end_session()
        assert summary.duration_minutes == pytest.approx(30.0)
        assert active.current_session is None
        assert active.end_session() is None

    def test_end_without_session(self, service):
        assert service.end_session() is None

    def test_cannot_end_as_active(self, active):
        with pytest.raises(ValueError):
            active.end_session(SessionStatus.ACTIVE)

    def test_update_callback(self, clock):
        seen = []
        service = SessionService(clock=clock, on_session_update=seen.append)
        service.start_session("p1")
        service.track_activity(ActivityType.BLOCK_CREATED, block_id="b1")
        assert len(seen) == 2

    def test_stores_are_independent(self, clock):
        a = SessionService(clock=clock)
        b = SessionService(clock=clock)
        a.start_session("p1")
        assert b.current_session is None


class TestRollover:
    def test_ensure_starts_first_session(self, service):
        trigger = service.ensure_session("p1")
        assert trigger.type == TriggerType.MANUAL
        assert service.current_session is not None

    def test_ensure_keeps_live_session(self, active):
        sid = active.current_session.id
        assert active.ensure_session("p1") is None
        assert active.current_session.id == sid

    def test_project_switch(self, active):
        old = active.current_session
        trigger = active.ensure_session("p2")
        assert trigger.type == TriggerType.PROJECT_SWITCH
        assert active.current_session.project_id == "p2"
        assert old.status == SessionStatus.COMPLETED

    def test_inactivity(self, active, clock):
        clock.advance(hours=2, minutes=5)
        assert active.ensure_session("p1").type == TriggerType.INACTIVITY

    def test_new_day(self, active, clock):
        clock.advance(days=1)
        assert active.check_rollover("p1").trigger.type == TriggerType.DAILY

    def test_context_limit_marks_old_session(self, clock):
        service = SessionService(
            policy=SessionPolicy(max_context_tokens=100, context_threshold=0.5), clock=clock,
        )
        service.start_session("p1")
        old = service.current_session
        service.track_activity(ActivityType.CONTEXT_ADDED, "x" * 400)
        assert old.context_usage > 50
        trigger = service.ensure_session("p1")
        assert trigger.type == TriggerType.CONTEXT_LIMIT
        assert old.status == SessionStatus.CONTEXT_EXCEEDED

    def test_crash_then_recover(self, active, clock):
        crashed = active.mark_crashed("renderer died")
        assert crashed.status == SessionStatus.CRASHED
        assert active.current_session is crashed
        clock.advance(minutes=1)
        trigger = active.ensure_session("p1")
        assert trigger.type == TriggerType.ERROR_RECOVERY
        assert active.current_session.is_active
        assert crashed.status == SessionStatus.CRASHED


class TestActivity:
    def test_requires_session(self, service):
        with pytest.raises(NoActiveSession):
            service.track_activity(ActivityType.BLOCK_CREATED)

    def test_append_and_focus(self, active, clock):
        clock.advance(minutes=2)
        record = active.track_activity("block_updated", "edited", block_id="b1")
        active.track_activity(ActivityType.BLOCK_MOVED, block_id="b1")
        session = active.current_session
        assert record.type == ActivityType.BLOCK_UPDATED
        assert len(session.activities) == 2
        assert session.blocks_in_focus == ["b1"]
        assert session.last_activity == clock.now

    def test_ids_unique(self, active):
        ids = {active.track_activity(ActivityType.BLOCK_UPDATED).id for _ in range(5)}
        assert len(ids) == 5

    def test_dict_metadata_becomes_payload(self, active):
        moved = active.track_activity(
            ActivityType.BLOCK_MOVED, metadata={"kind": "block_move", "from_lane": "next", "to_lane": "current"},
        )
        changed = active.track_activity(
            ActivityType.BLOCK_UPDATED, metadata={"kind": "field_change", "field_name": "title"},
        )
        other = active.track_activity(ActivityType.CONTEXT_ADDED, metadata={"url": "https://example.com"})
        assert moved.metadata == BlockMove(from_lane="next", to_lane="current")
        assert isinstance(changed.metadata, FieldChange)
        assert other.metadata == OtherPayload(raw={"url": "https://example.com"})

    def test_context_usage_never_decreases(self, active):
        last = 0
        for i in range(10):
            active.track_activity(ActivityType.BLOCK_UPDATED, "change " * i)
            assert active.current_session.context_usage >= last
            last = active.current_session.context_usage


class TestInsights:
    def test_requires_session(self, service):
        with pytest.raises(NoActiveSession):
            service.capture_insight(InsightType.IDEA, "t", "c")

    def test_no_session_checked_before_validation(self, service):
        with pytest.raises(NoActiveSession):
            service.capture_insight("", "", "")

    @pytest.mark.parametrize("args", [
        ("", "title", "content"),
        ("idea", "  ", "content"),
        ("idea", "title", ""),
        ("hunch", "title", "content"),
    ])
    def test_blank_or_unknown_fields(self, active, args):
        with pytest.raises(InvalidInsight):
            active.capture_insight(*args)
        assert active.current_session.insights == []

    @pytest.mark.parametrize("title, content", [(5, "content"), ("title", None), (None, "content"), ("title", ["x"])])
    def test_non_string_fields(self, active, title, content):
        with pytest.raises(InvalidInsight, match="non-blank string"):
            active.capture_insight(InsightType.IDEA, title, content)
        assert active.current_session.insights == []

    def test_capture_records_activity(self, active):
        captured = []
        active.on_insight_capture = captured.append
        insight = active.capture_insight(
            "decision", "Use SQLite", "Local-first", related_block_ids=["b1"], importance=Importance.HIGH,
        )
        session = active.current_session
        assert insight.session_id == session.id
        assert insight.related_block_ids == ("b1",)
        assert session.insights == [insight]
        activity = session.activities[-1]
        assert activity.type == ActivityType.INSIGHT_CAPTURED
        assert activity.metadata == InsightNote(details="Local-first", confidence=0.9)
        assert captured == [insight]


class TestSummary:
    def test_counts_and_score(self, active, clock):
        active.track_activity(ActivityType.BLOCK_COMPLETED, block_id="b1")
        active.track_activity(ActivityType.BLOCK_COMPLETED, block_id="b2")
        active.track_activity(ActivityType.BLOCK_CREATED, block_id="b3")
        active.capture_insight(InsightType.DECISION, "Pick numpy", "Fast aggregates")
        active.capture_insight(InsightType.NEXT_STEP, "Wire UI", "Hook the timer to the panel")
        clock.advance(minutes=60)
        summary = active.end_session()

        assert summary.blocks_completed == 2
        assert summary.blocks_created == 1
        assert summary.blocks_worked == 3
        assert summary.productivity_score == pytest.approx(5.78)
        assert len(summary.decisions) == 1
        assert summary.next_steps == ("Hook the timer to the panel",)
        assert summary.title == "Created 1 new blocks"
        assert summary.focus_areas == ("b1", "b2", "b3")

    def test_moves_count_as_modified(self, active):
        active.track_activity(ActivityType.BLOCK_UPDATED, block_id="b1")
        active.track_activity(ActivityType.BLOCK_MOVED, block_id="b1")
        assert active.end_session().blocks_modified == 2

    def test_empty_session(self, active, clock):
        clock.advance(minutes=45)
        summary = active.end_session()
        assert summary.productivity_score == 4.0
        assert summary.title == "AI session (45min)"
        assert summary.key_accomplishments == ()

    def test_stats(self, active, clock):
        active.track_activity(ActivityType.BLOCK_UPDATED, block_id="b1")
        clock.advance(minutes=4)
        stats = active.get_session_stats()
        assert stats["is_active"] is True
        assert stats["duration_minutes"] == pytest.approx(4.0)
        assert stats["events_per_minute"] == pytest.approx(0.25)


class TestProductivityScore:
    def test_bounded(self):
        assert 0.0 <= productivity_score(0, 0, 0, 0, 0) <= 10.0
        assert productivity_score(100, 100, 100, 10_000, 1) == 10.0

    def test_title_fallbacks(self):
        assert session_title([], 2, 10) == "Worked on 2 blocks"
        assert session_title(["Completed 1 blocks"], 2, 10) == "Completed 1 blocks"
