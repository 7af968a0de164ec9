"""Google Calendar "add event" deep links for calendar events."""

from datetime import datetime, timedelta
from urllib.parse import quote

from shared.schemas import CalendarEvent

GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
DEFAULT_START_TIME = "09:00"
DEFAULT_DURATION = timedelta(hours=1)

# Characters encodeURIComponent leaves unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"


def _component(value: str) -> str:
    return quote(value or "", safe=_URI_COMPONENT_SAFE)


def event_window(event: CalendarEvent):
    """Start and end of an event; events without a time run 09:00 to 10:00."""
    start = datetime.strptime(f"{event.date}T{event.time or DEFAULT_START_TIME}", "%Y-%m-%dT%H:%M")
    return start, start + DEFAULT_DURATION


def google_calendar_url(event: CalendarEvent) -> str:
    """Build the TEMPLATE link that pre-fills a Google Calendar event."""
    start, end = event_window(event)
    dates = f"{start:%Y%m%dT%H%M%S}/{end:%Y%m%dT%H%M%S}"
    return (
        f"{GOOGLE_CALENDAR_URL}?action=TEMPLATE"
        f"&text={_component(event.title)}"
        f"&dates={dates}"
        f"&details={_component(event.description)}"
        f"&location={_component(event.location)}"
    )
