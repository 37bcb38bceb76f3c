# -*- coding: utf-8 -*-
"""Turning accepted suggestions into calendar events, plus display and gating helpers."""
from __future__ import annotations

import dataclasses
import logging
import typing as t
import uuid
from datetime import datetime, tzinfo

from study_planner.config import SUGGESTION_WINDOW_DAYS
from study_planner.models import CalendarEvent, StudySuggestion
from study_planner.nudger import is_event_within_days
from study_planner.occurrence import UTC, format_clock, to_local

logger = logging.getLogger(__name__)

STUDY_SESSION_SOURCE = "NUDGER"


def _new_session_id() -> str:
    return f"study-{uuid.uuid4().hex[:12]}"


def create_study_events(
        suggestions: t.Iterable[StudySuggestion],
        id_factory: t.Callable[[], str] = _new_session_id,
) -> list[CalendarEvent]:
    """One study-session event per suggestion, linked back to its target event."""
    events = []
    for suggestion in suggestions:
        target = suggestion.related_event
        events.append(CalendarEvent(
            id=id_factory(),
            title=f"[{target.title}] {suggestion.message or 'Study Session'}",
            start=suggestion.suggested_start,
            end=suggestion.suggested_end,
            description=f"Study session for: {target.title}",
            requires_preparation=False,
            is_study_session=True,
            related_event_id=target.id,
            source=STUDY_SESSION_SOURCE,
        ))
    if not events:
        logger.warning("create_study_events: no suggestions given")
    return events


def mark_study_suggestions_shown(event: CalendarEvent, accepted: bool = False) -> CalendarEvent:
    """Copy of ``event`` recording that suggestions were shown (and whether they were accepted)."""
    return dataclasses.replace(event, study_suggestions_shown=True, study_suggestions_accepted=accepted)


def format_suggestion_message(suggestion: StudySuggestion, tz: tzinfo = UTC) -> str:
    """'Sat, Mar 15 from 6:00 PM to 8:00 PM: Review chapters 1-3'."""
    start = to_local(suggestion.suggested_start, tz)
    end = to_local(suggestion.suggested_end, tz)
    return f"{start:%a, %b} {start.day} from {format_clock(start)} to {format_clock(end)}: {suggestion.message}"


def should_generate(event: CalendarEvent, now: datetime, force: bool = False) -> bool:
    """Whether a plan may be generated for ``event`` now.

    ``force`` is the explicit user request and always wins. Without it, accepted
    events are never regenerated, and events more than eight days away or whose
    suggestions were already shown are skipped.
    """
    if force:
        return True
    if event.study_suggestions_accepted:
        logger.info("Suggestions for %r were already accepted; not generating", event.title)
        return False
    if not is_event_within_days(event, SUGGESTION_WINDOW_DAYS, now):
        logger.info("%r is more than %d days away; not generating", event.title, SUGGESTION_WINDOW_DAYS)
        return False
    return not event.study_suggestions_shown
