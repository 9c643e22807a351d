"""Tests for dict mapping of board items, configs and sessions."""

import json
import pytest
from datetime import datetime, timezone

from conftest import FakeClock, NOW

from frizy.data import codec
from frizy.data.errors import InvalidConfig
from frizy.data.models import ActivityType, InsightType, Priority, ScoringConfig, Status
from frizy.scoring.compactor import compact
from frizy.services.context_service import ContextManager
from frizy.services.session_service import SessionService


class TestWorkItems:
    def test_board_column_aliases(self):
        item = codec.work_item_from_dict({
            "id": "b1",
            "title": "Parser",
            "status": "in_progress",
            "priority": "high",
            "last_worked": "2026-03-09T08:30:00",
            "claude_sessions": 4,
            "tags": ["core"],
        })
        assert item.status == Status.IN_PROGRESS
        assert item.priority == Priority.HIGH
        assert item.last_worked_at.day == 9
        assert item.session_touch_count == 4
        assert item.lane == "current"

    def test_unknown_enum_kept_raw(self):
        item = codec.work_item_from_dict({"id": "b1", "priority": "critical"})
        assert item.priority == "critical"
        result = compact([item], now=NOW)
        assert result.summary.total == 0
        assert "critical" in result.summary.warnings[0]

    def test_to_dict_uses_plain_values(self):
        item = codec.work_item_from_dict({"id": "b1", "last_worked_at": "2026-03-09T08:30:00"})
        data = codec.work_item_to_dict(item)
        assert data["status"] == "not_started"
        assert data["last_worked_at"] == "2026-03-09T08:30:00"
        assert codec.work_item_from_dict(data) == item

    def test_offset_timestamps_become_local_naive(self):
        item = codec.work_item_from_dict({"id": "a", "last_worked": "2026-03-10T10:00:00+00:00"})
        expected = datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert item.last_worked_at.tzinfo is None
        assert item.last_worked_at == expected

    def test_offset_timestamps_compact_without_now(self):
        items = codec.work_items_from_list([
            {"id": "a", "title": "Synced", "last_worked": "2026-03-10T10:00:00+00:00",
             "created_at": "2026-02-01T08:00:00+02:00"},
            {"id": "b", "title": "Local", "last_worked": "2026-03-09T10:00:00"},
        ])
        result = ContextManager("p1").generate_context(items)
        assert result.summary.total == 2
        assert result.summary.warnings == ()

    def test_nan_touch_count_from_json_is_skipped(self):
        rows = json.loads('[{"id": "a", "claude_sessions": NaN}, {"id": "b", "claude_sessions": 2}]')
        result = compact(codec.work_items_from_list(rows), now=NOW)
        assert [s.item.id for s in result.items] == ["b"]
        assert "session_touch_count" in result.summary.warnings[0]

    def test_dependency_fields_round_trip(self):
        item = codec.work_item_from_dict({"id": "a", "dependencies": ["b"], "blocked_by": ["c"]})
        assert item.dependencies == ["b"]
        assert item.blocked_by == ["c"]
        assert codec.work_item_from_dict(codec.work_item_to_dict(item)) == item


class TestConfig:
    def test_partial_config_takes_defaults(self):
        config = codec.config_from_dict({"max_items": 5, "weights": {"recency": 0.5}})
        assert config.max_items == 5
        assert config.weights.recency == 0.5
        assert config.weights.priority == ScoringConfig().weights.priority

    def test_invalid_config_rejected(self):
        with pytest.raises(InvalidConfig):
            codec.config_from_dict({"compression_threshold": 2})

    def test_round_trip(self):
        config = ScoringConfig(max_items=9)
        assert codec.config_from_dict(codec.config_to_dict(config)) == config


class TestSessions:
    def test_session_round_trip(self):
        clock = FakeClock()
        service = SessionService(clock=clock)
        service.start_session("p1")
        service.track_activity(ActivityType.BLOCK_MOVED, block_id="b1",
                               metadata={"kind": "block_move", "from_lane": "next", "to_lane": "current"})
        service.capture_insight(InsightType.LEARNING, "Qt timers", "Run on the event loop", tags=["qt"])
        session = service.current_session

        restored = codec.session_from_dict(codec.session_to_dict(session))
        assert restored == session

    def test_summary_round_trip(self):
        clock = FakeClock()
        service = SessionService(clock=clock)
        service.start_session("p1")
        service.capture_insight(InsightType.BLOCKER, "CI", "Runner offline")
        clock.advance(minutes=20)
        summary = service.end_session()

        restored = codec.session_summary_from_dict(codec.session_summary_to_dict(summary))
        assert restored == summary
        assert restored.blockers == ("Runner offline",)

    def test_dumps_is_stable(self):
        assert codec.dumps({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
