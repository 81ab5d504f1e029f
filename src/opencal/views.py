from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Dict, List

from .models import CalendarEvent


def shift_month(reference: date, delta: int) -> date:
    """Move ``reference`` by ``delta`` months, clamping the day to the month length."""
    month_index = reference.year * 12 + (reference.month - 1) + delta
    year, month = divmod(month_index, 12)
    month += 1
    next_first = date(year + (month == 12), month % 12 + 1, 1)
    last_day = (next_first - timedelta(days=1)).day
    return date(year, month, min(reference.day, last_day))


def month_grid(reference: date, week_start: int = 6) -> List[date]:
    """Days shown in the month grid: whole weeks covering ``reference``'s month.

    ``week_start`` is the ``date.weekday()`` index of the first column
    (6 = Sunday, 0 = Monday).
    """
    first = reference.replace(day=1)
    last = shift_month(first, 1) - timedelta(days=1)
    grid_start = first - timedelta(days=(first.weekday() - week_start) % 7)
    grid_end = last + timedelta(days=(week_start + 6 - last.weekday()) % 7)
    return [grid_start + timedelta(days=i) for i in range((grid_end - grid_start).days + 1)]


def _day_sort_key(e: CalendarEvent):
    return (0 if e.all_day else 1, e.start)


def _last_day(e: CalendarEvent) -> date:
    # DTEND is exclusive: an event ending at midnight does not occupy that day
    if e.end > e.start and e.end.time() == time(0):
        return (e.end - timedelta(days=1)).date()
    return e.end.date()


def events_for_day(events: List[CalendarEvent], day: date) -> List[CalendarEvent]:
    """Events starting, ending, or running through ``day``; all-day first, then by start."""
    matches = []
    for e in events:
        start_day = e.start.date()
        end_day = _last_day(e)
        if start_day == day or end_day == day or start_day < day < end_day:
            matches.append(e)
    return sorted(matches, key=_day_sort_key)


def is_multi_day(event: CalendarEvent) -> bool:
    return event.start.date() != _last_day(event)


def events_in_month(events: List[CalendarEvent], reference: date) -> List[CalendarEvent]:
    return [e for e in events if (e.start.year, e.start.month) == (reference.year, reference.month)]


def upcoming_events(events: List[CalendarEvent], now: datetime, days: int = 31) -> List[CalendarEvent]:
    horizon = now + timedelta(days=days)
    return sorted((e for e in events if now <= e.start <= horizon), key=lambda e: e.start)


def group_by_day(events: List[CalendarEvent]) -> Dict[date, List[CalendarEvent]]:
    grouped: Dict[date, List[CalendarEvent]] = OrderedDict()
    for e in sorted(events, key=lambda e: e.start):
        grouped.setdefault(e.start.date(), []).append(e)
    return grouped
