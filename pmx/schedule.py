"""
Project schedule: a flat list of dated, coloured events.

No recurrence, no multi-day spans, no overlap detection. Dates are local
calendar keys (YYYY-MM-DD).
"""
from typing import Optional, List, Dict, Any, Callable

from .calendar import date_key, days_in_month
from .clock import Clock, SYSTEM_CLOCK, make_short_id
from .schema import CalendarEvent, ColorTag

# Sorts after any real HH:MM
NO_START_TIME = "99:99"


class ScheduleStore:
    """In-memory event list. Mutations notify on_change (autosave hook)."""

    def __init__(
        self,
        events: Optional[List[CalendarEvent]] = None,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.clock = clock or SYSTEM_CLOCK
        self.on_change = on_change
        self._events: List[CalendarEvent] = list(events or [])

    @property
    def events(self) -> List[CalendarEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def add_event(
        self,
        date: str,
        title: str,
        color: Any = ColorTag.ACCENT,
        start_time: str = "",
        end_time: str = "",
    ) -> Optional[CalendarEvent]:
        """Append an event. Blank titles are ignored."""
        title = (title or "").strip()
        if not title or not date:
            return None
        event = CalendarEvent(
            id=make_short_id(self.clock),
            title=title,
            date=date,
            start_time=start_time or "",
            end_time=end_time or "",
            color=color if isinstance(color, ColorTag) else ColorTag.from_str(color),
        )
        self._events.append(event)
        self._changed()
        return event

    def delete_event(self, event_id: str) -> bool:
        before = len(self._events)
        self._events = [e for e in self._events if str(e.id) != str(event_id)]
        if len(self._events) == before:
            return False
        self._changed()
        return True

    def events_for_date(self, date: str) -> List[CalendarEvent]:
        """Events on date, earliest start first; untimed events last."""
        matches = [e for e in self._events if e.date == date]
        return sorted(matches, key=lambda e: e.start_time or NO_START_TIME)

    def events_in_month(self, year: int, month: int) -> Dict[str, List[CalendarEvent]]:
        """Date key -> events, for every day of the month that has any."""
        wanted = {date_key(year, month, d) for d in range(1, days_in_month(year, month) + 1)}
        grouped: Dict[str, List[CalendarEvent]] = {}
        for e in self._events:
            if e.date in wanted:
                grouped.setdefault(e.date, []).append(e)
        return grouped

    def to_payload(self) -> List[Dict[str, Any]]:
        """The `schedule` sub-field handed to the project store."""
        return [e.to_dict() for e in self._events]

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        clock: Optional[Clock] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> "ScheduleStore":
        entries = payload if isinstance(payload, list) else []
        events = [CalendarEvent.from_dict(e) for e in entries if isinstance(e, dict)]
        return cls(events=events, clock=clock, on_change=on_change)

    def _changed(self) -> None:
        if self.on_change:
            self.on_change()
