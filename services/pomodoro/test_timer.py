"""Unit tests for the pomodoro state machine."""

import json
from datetime import date

import pytest

from shared.kv_store import InMemoryKeyValueStore
from shared.models import PomodoroSettings
from services.pomodoro.timer import (
    SESSIONS_KEY,
    SETTINGS_KEY,
    PomodoroPhase,
    PomodoroTimer,
    format_seconds,
)


class Today:
    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def today():
    return Today(date(2026, 10, 17))


@pytest.fixture
def timer(store, today):
    timer = PomodoroTimer(store, today=today, clock=lambda: 1_800_000_000.0)
    timer.update_settings(PomodoroSettings(
        focus_minutes=1, short_break_minutes=1, long_break_minutes=2, sessions_until_long_break=4
    ))
    return timer


def run_phase(timer):
    """Start the timer and tick until the current phase completes."""
    timer.start()
    finished = None
    while finished is None:
        finished = timer.tick()
    return finished


def complete_focus(timer):
    assert timer.phase is PomodoroPhase.FOCUS
    run_phase(timer)


def test_format_seconds():
    assert format_seconds(1500) == "25:00"
    assert format_seconds(61) == "01:01"
    assert format_seconds(-3) == "00:00"


def test_initial_state_uses_default_settings(store):
    timer = PomodoroTimer(store)

    assert timer.phase is PomodoroPhase.FOCUS
    assert timer.remaining == 25 * 60
    assert not timer.running


def test_tick_does_nothing_while_stopped(timer):
    assert timer.tick() is None
    assert timer.remaining == 60


def test_tick_decrements_while_running(timer):
    timer.start()
    timer.tick()

    assert timer.remaining == 59
    assert timer.get_status()["remaining_formatted"] == "00:59"


def test_focus_completion_moves_to_short_break(timer):
    finished = run_phase(timer)

    assert finished is PomodoroPhase.FOCUS
    assert timer.phase is PomodoroPhase.SHORT_BREAK
    assert timer.remaining == 60
    assert not timer.running


def test_break_completion_returns_to_focus(timer):
    run_phase(timer)
    finished = run_phase(timer)

    assert finished is PomodoroPhase.SHORT_BREAK
    assert timer.phase is PomodoroPhase.FOCUS
    assert timer.remaining == 60


def test_long_break_every_nth_session(timer):
    break_kinds = []
    for _ in range(8):
        complete_focus(timer)
        break_kinds.append(timer.phase)
        run_phase(timer)

    long_breaks = [i + 1 for i, phase in enumerate(break_kinds) if phase is PomodoroPhase.LONG_BREAK]
    assert long_breaks == [4, 8]
    assert break_kinds[0] is PomodoroPhase.SHORT_BREAK


def test_long_break_duration(timer):
    for _ in range(3):
        complete_focus(timer)
        run_phase(timer)
    complete_focus(timer)

    assert timer.phase is PomodoroPhase.LONG_BREAK
    assert timer.remaining == 120
    assert timer.total_seconds == 120


def test_same_day_completions_share_one_record(timer, store):
    complete_focus(timer)
    run_phase(timer)
    complete_focus(timer)

    sessions = json.loads(store.get_item(SESSIONS_KEY))
    assert len(sessions) == 1
    assert sessions[0]["date"] == "2026-10-17"
    assert sessions[0]["completedSessions"] == 2
    assert sessions[0]["totalFocusMinutes"] == 2


def test_new_day_creates_new_record_first(timer, today, store):
    complete_focus(timer)
    run_phase(timer)
    today.value = date(2026, 10, 18)
    complete_focus(timer)

    sessions = json.loads(store.get_item(SESSIONS_KEY))
    assert [s["date"] for s in sessions] == ["2026-10-18", "2026-10-17"]


def test_reset_keeps_history(timer, store):
    complete_focus(timer)
    timer.start()
    timer.tick()

    timer.reset()

    assert timer.phase is PomodoroPhase.FOCUS
    assert timer.remaining == 60
    assert not timer.running
    assert timer.session_started_at is None
    assert json.loads(store.get_item(SESSIONS_KEY))[0]["completedSessions"] == 1


def test_start_records_session_anchor(timer):
    timer.start()

    assert timer.session_started_at == 1_800_000_000.0


def test_settings_change_while_stopped_reinitializes_focus(timer, store):
    timer.update_settings(PomodoroSettings(focus_minutes=50))

    assert timer.remaining == 50 * 60
    assert json.loads(store.get_item(SETTINGS_KEY))["focusMinutes"] == 50


def test_settings_change_while_running_keeps_countdown(timer):
    timer.start()
    timer.tick()

    timer.update_settings(PomodoroSettings(focus_minutes=50))

    assert timer.remaining == 59


def test_settings_and_sessions_survive_reload(timer, store, today):
    complete_focus(timer)

    reloaded = PomodoroTimer(store, today=today)

    assert reloaded.settings.focus_minutes == 1
    assert reloaded.remaining == 60
    assert reloaded.today_stats() == {"completed_sessions": 1, "total_focus_minutes": 1}


def test_invalid_persisted_settings_fall_back_to_defaults(store):
    store.set_item(SETTINGS_KEY, json.dumps({"focusMinutes": 0}))

    timer = PomodoroTimer(store)

    assert timer.settings == PomodoroSettings()


def test_today_stats_without_sessions(timer):
    assert timer.today_stats() == {"completed_sessions": 0, "total_focus_minutes": 0}


def test_weekly_stats(store, today):
    store.set_item(SESSIONS_KEY, json.dumps([
        {"id": "3", "date": "2026-10-17", "completedSessions": 4, "totalFocusMinutes": 100},
        {"id": "2", "date": "2026-10-10", "completedSessions": 2, "totalFocusMinutes": 50},
        {"id": "1", "date": "2026-10-01", "completedSessions": 9, "totalFocusMinutes": 225},
    ]))

    timer = PomodoroTimer(store, today=today)

    assert timer.weekly_stats() == {"sessions": 6, "minutes": 150}
