"""Pomodoro focus/break state machine with per-day session statistics."""

import json
import logging
import time
from datetime import date, timedelta
from enum import Enum
from typing import Callable, List, Optional

from shared.kv_store import KeyValueStore
from shared.models import PomodoroSession, PomodoroSettings

logger = logging.getLogger(__name__)

SESSIONS_KEY = "pomodoroSessions"
SETTINGS_KEY = "pomodoroSettings"


class PomodoroPhase(Enum):
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"

    @property
    def is_break(self) -> bool:
        return self is not PomodoroPhase.FOCUS


def format_seconds(seconds: int) -> str:
    """Format seconds as MM:SS."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


class PomodoroTimer:
    """
    A timer for the Pomodoro Technique.

    Alternates focus and break phases. tick() is driven once per second by
    the caller while running; completing a phase stops the timer and loads
    the next phase so the user starts it explicitly.
    """

    def __init__(
        self,
        store: KeyValueStore,
        today: Callable[[], date] = date.today,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the timer from persisted settings and sessions.

        Args:
            store: Local store holding settings and daily sessions
            today: Returns the current calendar date
            clock: Returns the current time in epoch seconds
        """
        self.store = store
        self.today = today
        self.clock = clock
        self.settings = self._load_settings()
        self.sessions: List[PomodoroSession] = self._load_sessions()

        self.phase = PomodoroPhase.FOCUS
        self.remaining = self.settings.focus_minutes * 60
        self.running = False
        self.completed_sessions = 0
        self.session_started_at: Optional[float] = None

    def _load_settings(self) -> PomodoroSettings:
        raw = self.store.get_item(SETTINGS_KEY)
        if not raw:
            return PomodoroSettings()
        try:
            return PomodoroSettings.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Ignoring invalid pomodoro settings: {e}")
            return PomodoroSettings()

    def _load_sessions(self) -> List[PomodoroSession]:
        raw = self.store.get_item(SESSIONS_KEY)
        if not raw:
            return []
        try:
            return [PomodoroSession.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Ignoring invalid pomodoro sessions: {e}")
            return []

    def _save_sessions(self):
        self.store.set_item(SESSIONS_KEY, json.dumps([s.to_dict() for s in self.sessions]))

    # Controls

    def start(self):
        if self.running:
            logger.warning("Pomodoro is already running.")
            return
        self.running = True
        if self.session_started_at is None and self.phase is PomodoroPhase.FOCUS:
            self.session_started_at = self.clock()
        logger.info(f"Pomodoro started ({self.phase.value}, {format_seconds(self.remaining)} left).")

    def pause(self):
        self.running = False
        logger.info("Pomodoro paused.")

    def reset(self):
        """Return to a stopped full focus interval. Saved sessions are kept."""
        self.running = False
        self.phase = PomodoroPhase.FOCUS
        self.remaining = self.settings.focus_minutes * 60
        self.session_started_at = None
        logger.info("Pomodoro reset.")

    def update_settings(self, settings: PomodoroSettings):
        """Persist new settings; a stopped timer restarts its focus interval."""
        self.settings = settings
        self.store.set_item(SETTINGS_KEY, json.dumps(settings.to_dict()))
        if not self.running:
            self.phase = PomodoroPhase.FOCUS
            self.remaining = settings.focus_minutes * 60
        logger.info(f"Pomodoro settings saved: {settings.to_dict()}")

    # Clock

    def tick(self) -> Optional[PomodoroPhase]:
        """
        Advance one second.

        Returns:
            The phase just completed, or None
        """
        if not self.running:
            return None
        self.remaining = max(0, self.remaining - 1)
        if self.remaining > 0:
            return None

        finished = self.phase
        self._complete_phase()
        return finished

    def _complete_phase(self):
        self.running = False

        if self.phase is PomodoroPhase.FOCUS:
            self.completed_sessions += 1
            self._record_focus_session()

            is_long = self.completed_sessions % self.settings.sessions_until_long_break == 0
            if is_long:
                self.phase = PomodoroPhase.LONG_BREAK
                self.remaining = self.settings.long_break_minutes * 60
            else:
                self.phase = PomodoroPhase.SHORT_BREAK
                self.remaining = self.settings.short_break_minutes * 60
            self.session_started_at = None
            logger.info(
                f"Focus session {self.completed_sessions} complete, starting "
                f"{'long' if is_long else 'short'} break of {format_seconds(self.remaining)}."
            )
        else:
            self.phase = PomodoroPhase.FOCUS
            self.remaining = self.settings.focus_minutes * 60
            logger.info("Break complete, next focus session ready.")

    def _record_focus_session(self):
        today = self.today().isoformat()
        for session in self.sessions:
            if session.date == today:
                session.completed_sessions += 1
                session.total_focus_minutes += self.settings.focus_minutes
                break
        else:
            self.sessions.insert(0, PomodoroSession(
                id=str(int(self.clock() * 1000)),
                date=today,
                focus_time=self.settings.focus_minutes,
                break_time=self.settings.short_break_minutes,
                completed_sessions=1,
                total_focus_minutes=self.settings.focus_minutes,
            ))
        self._save_sessions()

    # Status

    @property
    def total_seconds(self) -> int:
        """Full length of the current phase."""
        if self.phase is PomodoroPhase.LONG_BREAK:
            return self.settings.long_break_minutes * 60
        if self.phase is PomodoroPhase.SHORT_BREAK:
            return self.settings.short_break_minutes * 60
        return self.settings.focus_minutes * 60

    def get_status(self) -> dict:
        return {
            "phase": self.phase.value,
            "is_running": self.running,
            "remaining": self.remaining,
            "remaining_formatted": format_seconds(self.remaining),
            "total": self.total_seconds,
            "completed_sessions": self.completed_sessions,
        }

    def today_stats(self) -> dict:
        today = self.today().isoformat()
        for session in self.sessions:
            if session.date == today:
                return {
                    "completed_sessions": session.completed_sessions,
                    "total_focus_minutes": session.total_focus_minutes,
                }
        return {"completed_sessions": 0, "total_focus_minutes": 0}

    def weekly_stats(self) -> dict:
        """Totals over sessions dated within the last seven days."""
        week_ago = self.today() - timedelta(days=7)
        sessions = minutes = 0
        for session in self.sessions:
            if date.fromisoformat(session.date) >= week_ago:
                sessions += session.completed_sessions
                minutes += session.total_focus_minutes
        return {"sessions": sessions, "minutes": minutes}
