"""Today's events from Google Calendar for the menu bar"""

from .models import CalendarEvent, select_today_events
from .client import CalendarClient, CalendarError, AuthenticationRequired
from .preferences import Preferences
from .manager import CalendarFeedManager

__all__ = [
    "CalendarEvent",
    "select_today_events",
    "CalendarClient",
    "CalendarError",
    "AuthenticationRequired",
    "Preferences",
    "CalendarFeedManager",
]
