# -*- coding: utf-8 -*-
"""Conflict detection between a candidate session and existing calendar events."""
from __future__ import annotations

import logging
import typing as t
from datetime import datetime, timedelta, tzinfo

from study_planner.models import CalendarEvent
from study_planner.occurrence import UTC, Interval, local_date, resolve_instant, to_local

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap; intervals that only touch do not overlap."""
    return a_start < b_end and a_end > b_start


def is_excluded(event: CalendarEvent, exclude_event_id: t.Optional[str], include_all_day: bool = False) -> bool:
    """Events that never count as conflicts for sessions planned for ``exclude_event_id``."""
    if exclude_event_id is not None and event.id == exclude_event_id:
        return True
    if event.is_study_session and exclude_event_id is not None and event.related_event_id == exclude_event_id:
        return True
    return event.all_day and not include_all_day


def _event_intervals(
        event: CalendarEvent,
        candidate_start: datetime,
        candidate_end: datetime,
        tz: tzinfo,
) -> list[Interval]:
    if not event.is_recurring:
        return [(to_local(event.start, tz), to_local(event.end, tz))]

    # Start one day early so an occurrence running past midnight is still seen.
    intervals = []
    day = local_date(candidate_start, tz) - timedelta(days=1)
    last_day = local_date(candidate_end, tz)
    while day <= last_day:
        interval = resolve_instant(event, day, tz)
        if interval:
            intervals.append(interval)
        day += timedelta(days=1)
    return intervals


def find_conflicts(
        candidate_start: datetime,
        candidate_end: datetime,
        events: t.Iterable[CalendarEvent],
        exclude_event_id: t.Optional[str] = None,
        *,
        include_all_day: bool = False,
        buffer: timedelta = timedelta(0),
        tz: tzinfo = UTC,
) -> list[CalendarEvent]:
    """Return the events whose resolved occurrence overlaps the candidate interval.

    Skipped: the event with ``exclude_event_id``, study sessions generated for that
    same event, and all-day events unless ``include_all_day`` is set. ``buffer``
    widens the candidate on both sides. An empty list means no conflict.
    """
    start = to_local(candidate_start, tz) - buffer
    end = to_local(candidate_end, tz) + buffer

    conflicting = []
    for event in events:
        if is_excluded(event, exclude_event_id, include_all_day):
            continue

        if event.all_day:
            # Stored all-day bounds are wall-clock midnights
            event_intervals = [(
                event.start.replace(tzinfo=tz),
                event.end.replace(tzinfo=tz),
            )]
        else:
            event_intervals = _event_intervals(event, start, end, tz)

        if any(overlaps(start, end, ev_start, ev_end) for ev_start, ev_end in event_intervals):
            logger.debug("find_conflicts: [%s, %s) conflicts with %r", start, end, event.title)
            conflicting.append(event)
    return conflicting
