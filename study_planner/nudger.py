# -*- coding: utf-8 -*-
"""
Nudger: spots upcoming events that need preparation.

Two scans are offered. ``identify_upcoming_events`` looks two weeks ahead and
annotates every event that requires preparation with the hours to plan for.
``identify_events_needing_study_suggestions`` looks eight days ahead and keeps
only events a study plan should be offered for right now.
"""
from __future__ import annotations

import logging
import math
import typing as t
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo

from study_planner.config import DEFAULT_STUDY_HOURS, NUDGE_WINDOW_DAYS, SUGGESTION_WINDOW_DAYS
from study_planner.models import CalendarEvent
from study_planner.occurrence import UTC, local_date, to_local

logger = logging.getLogger(__name__)

# Sources that import assignments with a placeholder of 0 preparation hours
IMPORTED_SOURCES = ("CANVAS", "LMS")


@dataclass
class Nudge:
    """An upcoming event that requires preparation."""
    event: CalendarEvent
    suggested_study_hours: float
    needs_preparation_input: bool


@dataclass
class UpcomingStudyOverview:
    nudges: list[Nudge]
    total_study_hours: float
    event_count: int
    events_by_date: dict[date, list[Nudge]] = field(default_factory=dict)


def _hours_missing(event: CalendarEvent) -> bool:
    return event.preparation_hours is None


def days_until_event(event: CalendarEvent, now: datetime) -> int:
    """Whole days until the event starts, rounded up."""
    now = to_local(now)
    return math.ceil((to_local(event.start, now.tzinfo) - now) / timedelta(days=1))


def is_event_within_days(event: CalendarEvent, days: int, now: datetime) -> bool:
    """True when the event starts between now and ``days`` days from now (by rounded-up day count)."""
    return 0 <= days_until_event(event, now) <= days


def _in_window(event: CalendarEvent, now: datetime, days: int) -> bool:
    now = to_local(now)
    start = to_local(event.start, now.tzinfo)
    return now <= start <= now + timedelta(days=days)


def identify_upcoming_events(
        events: t.Iterable[CalendarEvent],
        now: datetime,
        window_days: int = NUDGE_WINDOW_DAYS,
) -> list[Nudge]:
    """Events in the next ``window_days`` days that require preparation.

    Events without hours are nudged with the default of 3 hours and flagged so
    the user can be asked for a real value.
    """
    nudges = []
    for event in events:
        if not event.requires_preparation or not _in_window(event, now, window_days):
            continue
        missing = _hours_missing(event)
        hours = event.preparation_hours if event.preparation_hours else DEFAULT_STUDY_HOURS
        nudges.append(Nudge(event=event, suggested_study_hours=float(hours), needs_preparation_input=missing))

    logger.info("Nudger: %d event(s) need preparation in the next %d days", len(nudges), window_days)
    return nudges


def summarize_upcoming(
        events: t.Iterable[CalendarEvent],
        now: datetime,
        tz: tzinfo = UTC,
) -> UpcomingStudyOverview:
    """Upcoming nudges with their total hours, grouped by local start date."""
    nudges = identify_upcoming_events(events, now)
    by_date: dict[date, list[Nudge]] = defaultdict(list)
    for nudge in nudges:
        by_date[local_date(nudge.event.start, tz)].append(nudge)
    return UpcomingStudyOverview(
        nudges=nudges,
        total_study_hours=sum(nudge.suggested_study_hours for nudge in nudges),
        event_count=len(nudges),
        events_by_date=dict(sorted(by_date.items())),
    )


def _needs_suggestions(event: CalendarEvent) -> bool:
    if event.study_suggestions_accepted or event.study_suggestions_shown:
        return False
    if not event.requires_preparation:
        return False
    # Missing hours, or an imported placeholder of 0: ask the user
    if _hours_missing(event):
        return True
    if event.source in IMPORTED_SOURCES and event.preparation_hours == 0:
        return True
    if event.preparation_hours <= 0:
        logger.debug("Nudger: skipping %r, preparation hours set to %s", event.title, event.preparation_hours)
        return False
    return True


def identify_events_needing_study_suggestions(
        events: t.Iterable[CalendarEvent],
        now: datetime,
        window_days: int = SUGGESTION_WINDOW_DAYS,
) -> list[CalendarEvent]:
    """Events in the next ``window_days`` days a study plan should be offered for."""
    selected = [event for event in events if _in_window(event, now, window_days) and _needs_suggestions(event)]
    logger.info("Nudger: %d event(s) need study suggestions", len(selected))
    return selected
