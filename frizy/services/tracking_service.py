"""
Tracking Service — periodic context refresh, rollover checks and autosave.

The compactor and the session rules are pure; something still has to call
them on a schedule. This service runs QTimers on the host's Qt event loop:
regenerate the context every 30 s, check whether the session must roll
over every minute, and hand the active session to an autosave callback.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from PySide6.QtCore import QTimer

from frizy.data.models import CompactionResult, ContextSnapshot, Session, SessionTrigger, WorkItem
from frizy.services.context_service import ContextManager
from frizy.services.session_service import SessionService

logger = logging.getLogger(__name__)

# Default intervals (seconds); update_intervals() overrides them
DEFAULT_REFRESH_INTERVAL = 30
DEFAULT_ROLLOVER_CHECK_INTERVAL = 60
DEFAULT_AUTOSAVE_INTERVAL = 30


class TrackingService:
    """
    Drives the context manager and the session service from timers.

    Uses QTimers so callbacks run on the Qt event loop, on the same thread
    as every other mutation of the session state.
    """

    def __init__(
        self,
        context_manager: ContextManager,
        session_service: SessionService,
        items_provider: Callable[[], List[WorkItem]],
        on_context_refreshed: Optional[Callable[[CompactionResult], None]] = None,
        on_rollover: Optional[Callable[[SessionTrigger], None]] = None,
        on_autosave: Optional[Callable[[Session], None]] = None,
    ) -> None:
        self.context_mgr = context_manager
        self.session_svc = session_service
        self.items_provider = items_provider

        # Callbacks the host will set
        self.on_context_refreshed = on_context_refreshed
        self.on_rollover = on_rollover
        self.on_autosave = on_autosave

        # Configurable intervals (seconds)
        self.refresh_interval = DEFAULT_REFRESH_INTERVAL
        self.rollover_check_interval = DEFAULT_ROLLOVER_CHECK_INTERVAL
        self.autosave_interval = DEFAULT_AUTOSAVE_INTERVAL

        # QTimers
        self._refresh_timer = QTimer()
        self._refresh_timer.timeout.connect(self._refresh_context)

        self._rollover_timer = QTimer()
        self._rollover_timer.timeout.connect(self._check_rollover)

        self._autosave_timer = QTimer()
        self._autosave_timer.timeout.connect(self._autosave)

    # ── Public API ──────────────────────────────────────────────────────────

    def start(self) -> None:
        """Refresh once now, then keep everything on its timer."""
        self._refresh_context()
        self._refresh_timer.start(int(self.refresh_interval * 1000))
        self._rollover_timer.start(int(self.rollover_check_interval * 1000))
        self._autosave_timer.start(int(self.autosave_interval * 1000))
        logger.info(
            "Tracking started: refresh every %ss, rollover check every %ss",
            self.refresh_interval, self.rollover_check_interval,
        )

    def stop_all(self) -> None:
        self._refresh_timer.stop()
        self._rollover_timer.stop()
        self._autosave_timer.stop()

    def is_running(self) -> bool:
        return self._refresh_timer.isActive()

    def update_intervals(
        self,
        refresh_s: Optional[float] = None,
        rollover_s: Optional[float] = None,
        autosave_s: Optional[float] = None,
    ) -> None:
        """Update intervals (e.g. from settings). Running timers pick them up immediately."""
        if refresh_s is not None:
            self.refresh_interval = refresh_s
            if self._refresh_timer.isActive():
                self._refresh_timer.start(int(refresh_s * 1000))
        if rollover_s is not None:
            self.rollover_check_interval = rollover_s
            if self._rollover_timer.isActive():
                self._rollover_timer.start(int(rollover_s * 1000))
        if autosave_s is not None:
            self.autosave_interval = autosave_s
            if self._autosave_timer.isActive():
                self._autosave_timer.start(int(autosave_s * 1000))

    # ── Timer callbacks ─────────────────────────────────────────────────────

    def _refresh_context(self) -> None:
        items = self.items_provider()
        result = self.context_mgr.generate_context(items)
        logger.debug(
            "Context refreshed: %d/%d blocks included",
            result.summary.included, result.summary.total,
        )
        if self.on_context_refreshed:
            self.on_context_refreshed(result)

    def _check_rollover(self) -> None:
        snapshot = ContextSnapshot.from_items(self.items_provider())
        trigger = self.session_svc.ensure_session(self.context_mgr.project_id, snapshot)
        if trigger is None:
            return
        logger.info("Rollover check started a new session: %s", trigger.type.value)
        if self.on_rollover:
            self.on_rollover(trigger)

    def _autosave(self) -> None:
        session = self.session_svc.current_session
        if session is None or not session.is_active:
            return
        if self.on_autosave:
            self.on_autosave(session)


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Runs background timers that keep the context fresh and the session
#   boundaries honest: regenerate the ranked context, roll the session over
#   when a trigger fires, and hand the session to the host for saving.
#
# Key design decisions:
#   - Uses QTimer (PySide6) so callbacks run on the main thread. The session
#     service is single-writer by design; timers on the event loop keep it so.
#   - Callbacks and the item source are injected, so the service knows
#     nothing about the board UI or about storage.
#
# Data flow:
#   QTimer fires → _refresh_context() → ContextManager.generate_context()
#   → on_context_refreshed(result) → UI repaints the context panel.
#   QTimer fires → _check_rollover() → SessionService.ensure_session()
#   → on_rollover(trigger) → UI shows "new session started".
