"""Calendar event model and the today's-events filter"""

import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any, Dict, Iterable, List, Optional

# "15/24" style day counter in a Cycle event description
_DAY_COUNTER_RE = re.compile(r"(\d+)/(\d+)")

CYCLE_MARKER = "Cycle"


def _parse_date(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


@dataclass
class CalendarEvent:
    """The subset of a Google Calendar event the feed shows

    All-day events carry ``start_date``/``end_date``; timed events carry
    ``start_datetime``/``end_datetime`` as returned by the API.
    """
    id: str
    summary: str
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_datetime: Optional[str] = None
    end_datetime: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "CalendarEvent":
        start = raw.get("start") or {}
        end = raw.get("end") or {}
        description = raw.get("description")
        return cls(
            id=str(raw.get("id", "")),
            summary=raw.get("summary") or "(No title)",
            description=description if isinstance(description, str) else None,
            start_date=_parse_date(start.get("date")),
            end_date=_parse_date(end.get("date")),
            start_datetime=start.get("dateTime"),
            end_datetime=end.get("dateTime"),
        )

    @property
    def is_all_day(self) -> bool:
        # All-day events use "date" instead of "dateTime"
        return self.start_date is not None

    @property
    def is_cycle(self) -> bool:
        return CYCLE_MARKER in self.summary

    @property
    def duration_in_days(self) -> int:
        if self.start_date is None or self.end_date is None:
            return 0
        return (self.end_date - self.start_date).days

    def is_today(self, tz: tzinfo, today: Optional[date] = None) -> bool:
        """True if ``today`` (in ``tz``) falls inside this all-day event

        The end date of an all-day event is exclusive.
        """
        if self.start_date is None or self.end_date is None:
            return False
        if today is None:
            today = datetime.now(tz).date()
        return self.start_date <= today < self.end_date

    @property
    def display_title(self) -> str:
        """Summary, with "day N/M" appended for Cycle events that carry a counter"""
        if self.is_cycle and self.description:
            match = _DAY_COUNTER_RE.search(self.description)
            if match:
                return f"{self.summary}, day {int(match.group(1))}/{int(match.group(2))}"
        return self.summary


def select_today_events(
    events: Iterable[CalendarEvent],
    tz: tzinfo,
    today: Optional[date] = None,
) -> List[CalendarEvent]:
    """Keep today's all-day events, longest first, Cycle events ahead of equal-length ones"""
    if today is None:
        today = datetime.now(tz).date()
    selected = [event for event in events if event.is_all_day and event.is_today(tz, today)]
    selected.sort(key=lambda event: (-event.duration_in_days, not event.is_cycle))
    return selected
