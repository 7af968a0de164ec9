"""Tests for Google Calendar deep links."""

from datetime import datetime

from shared.schemas import CalendarEvent
from services.calendar.links import event_window, google_calendar_url


def make_event(**overrides):
    data = {
        "id": "1",
        "title": "Lab meeting",
        "description": "Weekly sync",
        "date": "2026-10-17",
        "type": "work",
    }
    data.update(overrides)
    return CalendarEvent(**data)


def test_event_without_time_defaults_to_morning_hour():
    start, end = event_window(make_event())

    assert start == datetime(2026, 10, 17, 9, 0)
    assert end == datetime(2026, 10, 17, 10, 0)


def test_event_with_time_lasts_one_hour():
    start, end = event_window(make_event(time="14:30"))

    assert start == datetime(2026, 10, 17, 14, 30)
    assert end == datetime(2026, 10, 17, 15, 30)


def test_late_event_ends_next_day():
    _, end = event_window(make_event(time="23:30"))

    assert end == datetime(2026, 10, 18, 0, 30)


def test_url_contains_template_fields():
    url = google_calendar_url(make_event(time="14:30", location="Room 3"))

    assert url.startswith("https://calendar.google.com/calendar/render?action=TEMPLATE&")
    assert "&text=Lab%20meeting" in url
    assert "&dates=20261017T143000/20261017T153000" in url
    assert "&details=Weekly%20sync" in url
    assert url.endswith("&location=Room%203")


def test_missing_location_is_empty():
    url = google_calendar_url(make_event())

    assert url.endswith("&location=")


def test_url_escapes_reserved_characters():
    url = google_calendar_url(make_event(title="Q&A / review", description="한글"))

    assert "&text=Q%26A%20%2F%20review&" in url
    assert "&details=%ED%95%9C%EA%B8%80&" in url
