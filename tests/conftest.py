"""Shared fixtures and helpers for the test suite."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from frizy.data.models import Priority, Status, WorkItem

NOW = datetime(2026, 3, 10, 12, 0, 0)


class FakeClock:
    """Callable clock the services can be built with; advance() moves time."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_item(item_id: str, days_ago=None, **kwargs) -> WorkItem:
    """WorkItem last worked `days_ago` days before NOW (None = never)."""
    defaults = dict(
        title=f"Block {item_id}",
        content=f"Details for {item_id}",
        lane="current",
        status=Status.NOT_STARTED,
        priority=Priority.MEDIUM,
        created_at=NOW - timedelta(days=30),
    )
    defaults.update(kwargs)
    worked = NOW - timedelta(days=days_ago) if days_ago is not None else None
    defaults.setdefault("last_worked_at", worked)
    return WorkItem(id=item_id, **defaults)


@pytest.fixture
def clock():
    return FakeClock()
