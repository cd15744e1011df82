"""
Month grid builder.

build_grid() lays a month out as rows of 7 cells, Sunday first:
  [None, None, 1, 2, 3, 4, 5,
   6, 7, ...                 ,
   ..., 30, 31, None, None, None]

Months are 1-12 throughout this module. Everything is a pure function of
its arguments; "today" comes in from the caller's Clock.
"""
from datetime import date, datetime
from typing import Optional, List, Iterable, Tuple

from .schema import CalendarEvent

WEEKDAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
MONTH_LABELS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

_DAYS = [31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(year: int, month: int) -> int:
    if month == 2 and is_leap_year(year):
        return 29
    return _DAYS[month - 1]


def first_weekday(year: int, month: int) -> int:
    """Weekday of day 1, 0=Sunday."""
    # date.weekday() is Monday=0
    return (date(year, month, 1).weekday() + 1) % 7


def build_grid(year: int, month: int) -> List[Optional[int]]:
    """Day numbers for a month view, padded with None to whole weeks."""
    cells: List[Optional[int]] = [None] * first_weekday(year, month)
    cells.extend(range(1, days_in_month(year, month) + 1))
    while len(cells) % 7:
        cells.append(None)
    return cells


def grid_rows(year: int, month: int) -> List[List[Optional[int]]]:
    cells = build_grid(year, month)
    return [cells[i:i + 7] for i in range(0, len(cells), 7)]


def date_key(year: int, month: int, day: int) -> str:
    return f"{year:04d}-{month:02d}-{day:02d}"


def events_on_day(
    events: Iterable[CalendarEvent], year: int, month: int, day: int
) -> List[CalendarEvent]:
    key = date_key(year, month, day)
    return [e for e in events if e.date == key]


def is_today(day: int, year: int, month: int, now: datetime) -> bool:
    return day == now.day and month == now.month and year == now.year


def prev_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def next_month(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def month_label(month: int) -> str:
    return MONTH_LABELS[month - 1]


def format_time(value: str) -> str:
    """'14:05' -> '2:05 PM'. Empty or malformed input gives ''."""
    if not value:
        return ""
    try:
        hours, minutes = (int(p) for p in value.split(":")[:2])
    except ValueError:
        return ""
    suffix = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"
