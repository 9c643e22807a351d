from .errors import FrizyError, InvalidConfig, InvalidInsight, MalformedItem, NoActiveSession
from .models import (
    CompactionResult, ContextSnapshot, ProjectInfo, ScoredItem, ScoringConfig,
    Session, SessionSummary, WorkItem,
)

__all__ = [
    "FrizyError", "InvalidConfig", "InvalidInsight", "MalformedItem", "NoActiveSession",
    "CompactionResult", "ContextSnapshot", "ProjectInfo", "ScoredItem", "ScoringConfig",
    "Session", "SessionSummary", "WorkItem",
]
