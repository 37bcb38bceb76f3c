# -*- coding: utf-8 -*-
"""
Occurrence resolution for single and recurring calendar events.

Decides whether an event occupies a given calendar date and, for timed events,
the concrete start/end instants of that day's occurrence. All functions are
pure; "local" dates and clock times are interpreted in the zone passed as ``tz``.
"""
from __future__ import annotations

import logging
import typing as t
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from study_planner.models import CalendarEvent, RecurrenceFrequency

logger = logging.getLogger(__name__)

UTC = timezone.utc

WEEKDAY_MAP = {
    "mon": 0, "monday": 0,
    "tue": 1, "tuesday": 1,
    "wed": 2, "wednesday": 2,
    "thu": 3, "thursday": 3,
    "fri": 4, "friday": 4,
    "sat": 5, "saturday": 5,
    "sun": 6, "sunday": 6,
}

Interval = tuple[datetime, datetime]


def to_local(value: datetime, tz: tzinfo = UTC) -> datetime:
    """Return ``value`` as an aware datetime in ``tz``; naive values are taken as already local."""
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def local_date(value: datetime, tz: tzinfo = UTC) -> date:
    return to_local(value, tz).date()


def format_clock(value: t.Union[datetime, time]) -> str:
    """'6:00 PM', without a leading zero on the hour."""
    return f"{value.hour % 12 or 12}:{value:%M %p}"


def _recurrence_weekdays(event: CalendarEvent, first_day: date) -> set[int]:
    """Weekday indices an event repeats on; falls back to the weekday of its first day."""
    weekdays = {WEEKDAY_MAP[name] for name in event.recurrence_days if name in WEEKDAY_MAP}
    unknown = [name for name in event.recurrence_days if name not in WEEKDAY_MAP]
    if unknown:
        logger.warning("event %r has unknown recurrence days %r", event.id, unknown)
    return weekdays or {first_day.weekday()}


def _week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def _matches_recurrence(event: CalendarEvent, day: date, first_day: date) -> bool:
    frequency = event.recurrence_frequency or RecurrenceFrequency.WEEKLY

    if frequency is RecurrenceFrequency.DAILY:
        return True
    if frequency is RecurrenceFrequency.MONTHLY:
        return day.day == first_day.day

    if day.weekday() not in _recurrence_weekdays(event, first_day):
        return False
    if frequency is RecurrenceFrequency.BIWEEKLY:
        weeks_apart = (_week_start(day) - _week_start(first_day)).days // 7
        return weeks_apart % 2 == 0
    return True


def _recurs_from(event: CalendarEvent, day: date, first_day: date, tz: tzinfo) -> bool:
    """Whether an occurrence of a recurring event starts on ``day``."""
    if day < first_day:
        return False
    if event.recurrence_end_date is not None and day > local_date(event.recurrence_end_date, tz):
        return False
    return _matches_recurrence(event, day, first_day)


def occurs_on(event: CalendarEvent, day: date, tz: tzinfo = UTC) -> bool:
    """Check whether ``event`` occupies the calendar date ``day``.

    All-day events compare stored calendar dates (no zone conversion), inclusive
    of both the start and the stored end date. Single timed events occupy only the
    local date of their start, even when they run past midnight. Recurring events
    occur on dates matching their frequency, on or after the first date and on or
    before ``recurrence_end_date`` when one is set. A recurring all-day event
    spanning several days repeats the whole span from each occurrence start.
    """
    if event.all_day and not event.is_recurring:
        return event.start.date() <= day <= event.end.date()

    first_day = event.start.date() if event.all_day else local_date(event.start, tz)
    if not event.is_recurring:
        return day == first_day

    span_days = (event.end.date() - first_day).days if event.all_day else 0
    return any(
        _recurs_from(event, day - timedelta(days=offset), first_day, tz)
        for offset in range(span_days + 1)
    )


def resolve_instant(event: CalendarEvent, day: date, tz: tzinfo = UTC) -> t.Optional[Interval]:
    """Concrete (start, end) of a timed event's occurrence on ``day``, or None.

    Returns None for all-day events and for dates the event does not occupy.
    """
    if event.all_day or not occurs_on(event, day, tz):
        return None

    start = to_local(event.start, tz)
    end = to_local(event.end, tz)
    if not event.is_recurring:
        return start, end

    occurrence_start = datetime.combine(day, start.time(), tzinfo=tz)
    return occurrence_start, occurrence_start + (end - start)


def occurrences_between(
        event: CalendarEvent,
        window_start: datetime,
        window_end: datetime,
        tz: tzinfo = UTC,
) -> list[Interval]:
    """Resolved occurrences of a timed event whose start lies in [window_start, window_end]."""
    if event.all_day:
        return []

    if not event.is_recurring:
        start, end = to_local(event.start, tz), to_local(event.end, tz)
        return [(start, end)] if window_start <= start <= window_end else []

    occurrences = []
    day = local_date(window_start, tz)
    last_day = local_date(window_end, tz)
    while day <= last_day:
        interval = resolve_instant(event, day, tz)
        if interval and window_start <= interval[0] <= window_end:
            occurrences.append(interval)
        day += timedelta(days=1)
    return occurrences


def day_sort_key(event: CalendarEvent, day: date, tz: tzinfo = UTC) -> tuple[int, datetime]:
    """All-day events first, then timed events by resolved start."""
    if event.all_day:
        return 0, datetime.min.replace(tzinfo=UTC)
    interval = resolve_instant(event, day, tz)
    return 1, interval[0] if interval else to_local(event.start, tz)


def events_on_day(events: t.Iterable[CalendarEvent], day: date, tz: tzinfo = UTC) -> list[CalendarEvent]:
    """Events occupying ``day`` in display order."""
    day_events = [event for event in events if occurs_on(event, day, tz)]
    return sorted(day_events, key=lambda event: day_sort_key(event, day, tz))
