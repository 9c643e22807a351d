"""Error types raised by the compactor and the session tracker."""

from __future__ import annotations


class FrizyError(Exception):
    """Base class for all core errors."""


class InvalidConfig(FrizyError, ValueError):
    """A ScoringConfig (or export request) we refuse to silently clamp."""


class MalformedItem(FrizyError, ValueError):
    """A WorkItem missing something scoring needs. Compaction skips these."""

    def __init__(self, item_id: object, reason: str) -> None:
        super().__init__(f"Malformed item {item_id!r}: {reason}")
        self.item_id = item_id
        self.reason = reason


class InvalidInsight(FrizyError, ValueError):
    """An insight with a blank type, title or content."""


class NoActiveSession(FrizyError, RuntimeError):
    """Activity or insight capture attempted with no active session."""
