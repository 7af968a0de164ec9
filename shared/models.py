"""Shared data models for the personal site storage, auth and timer core."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Medium(str, Enum):
    """Storage medium that actually serviced a call."""
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class ImageAsset:
    """Binary image content plus its metadata."""
    name: str
    content_type: str
    data: bytes
    created_at: float = field(default_factory=time.time)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class StorageResult:
    """Outcome of a save, get or upload through the fallback adapter."""
    medium: Medium
    value: Any = None


@dataclass
class LoginAttemptRecord:
    """Persisted failed-login counter. lastFailedAt is epoch milliseconds."""
    count: int = 0
    last_failed_at: int = 0

    def to_dict(self) -> dict:
        return {"count": self.count, "lastFailedAt": self.last_failed_at}

    @classmethod
    def from_dict(cls, data: dict) -> "LoginAttemptRecord":
        return cls(
            count=int(data.get("count", 0)),
            last_failed_at=int(data.get("lastFailedAt", 0))
        )


@dataclass
class PomodoroSettings:
    """Pomodoro interval configuration, all positive integers."""
    focus_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    sessions_until_long_break: int = 4

    def __post_init__(self):
        for name in (
            "focus_minutes",
            "short_break_minutes",
            "long_break_minutes",
            "sessions_until_long_break",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    def to_dict(self) -> dict:
        return {
            "focusMinutes": self.focus_minutes,
            "shortBreakMinutes": self.short_break_minutes,
            "longBreakMinutes": self.long_break_minutes,
            "sessionsUntilLongBreak": self.sessions_until_long_break,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PomodoroSettings":
        return cls(
            focus_minutes=data["focusMinutes"],
            short_break_minutes=data["shortBreakMinutes"],
            long_break_minutes=data["longBreakMinutes"],
            sessions_until_long_break=data["sessionsUntilLongBreak"],
        )


@dataclass
class PomodoroSession:
    """Focus statistics for one calendar day (date is YYYY-MM-DD)."""
    id: str
    date: str
    focus_time: int
    break_time: int
    completed_sessions: int
    total_focus_minutes: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "focusTime": self.focus_time,
            "breakTime": self.break_time,
            "completedSessions": self.completed_sessions,
            "totalFocusMinutes": self.total_focus_minutes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PomodoroSession":
        return cls(
            id=str(data["id"]),
            date=data["date"],
            focus_time=data.get("focusTime", 0),
            break_time=data.get("breakTime", 0),
            completed_sessions=data["completedSessions"],
            total_focus_minutes=data["totalFocusMinutes"],
        )


@dataclass
class SiteUser:
    """Logged-in user record kept in the local store."""
    name: str
    is_logged_in: bool = True
    email: Optional[str] = None
