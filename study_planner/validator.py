# -*- coding: utf-8 -*-
"""
Plan validation.

``validate_plan`` checks the total scheduled duration against the requested
preparation time within a tolerance that grows with the size of the request.
``find_constraint_violations`` checks the scheduling rules the oracle was asked
to follow (buffers around existing events, sleep window, session length, slot
alignment, day budget).
"""
from __future__ import annotations

import logging
import math
import typing as t
from datetime import datetime, timedelta, tzinfo

from study_planner.classifier import classify_event
from study_planner.config import (
    HOMEWORK_SAME_DAY_CUTOFF,
    MAX_SESSION_LENGTH,
    SESSION_BUFFER,
    SLOT_INCREMENT_MINUTES,
    PlannerSettings,
    SleepSchedule,
)
from study_planner.conflicts import find_conflicts, overlaps
from study_planner.models import CalendarEvent, EventCategory, StudySuggestion, ValidationResult
from study_planner.occurrence import local_date, to_local
from study_planner.policy import day_budget, is_short_homework

logger = logging.getLogger(__name__)

BASE_TOLERANCE_MINUTES = 15
TOLERANCE_PER_EXTRA_HOUR = 5
MAX_EXTRA_TOLERANCE = 45


def tolerance_minutes(requested_hours: float) -> int:
    """Allowed deviation: 15 minutes, plus 5 per hour beyond 2 hours, capped at 60."""
    extra = math.floor(max(0.0, requested_hours - 2) * TOLERANCE_PER_EXTRA_HOUR)
    return BASE_TOLERANCE_MINUTES + min(MAX_EXTRA_TOLERANCE, extra)


def total_minutes(suggestions: t.Iterable[StudySuggestion]) -> int:
    return sum(round(suggestion.duration_minutes) for suggestion in suggestions)


def validate_plan(suggestions: t.Optional[list[StudySuggestion]], requested_hours: t.Any) -> ValidationResult:
    """Compare the plan's total duration with the requested hours.

    Never raises: an empty plan, malformed sessions or unusable hours give an
    invalid result with a zero total.
    """
    try:
        hours = float(requested_hours)
    except (TypeError, ValueError):
        logger.warning("validate_plan: unusable requested hours %r", requested_hours)
        return ValidationResult(is_valid=False)
    if not math.isfinite(hours) or hours < 0:
        logger.warning("validate_plan: unusable requested hours %r", requested_hours)
        return ValidationResult(is_valid=False)

    requested = hours * 60
    tolerance = tolerance_minutes(hours)
    empty = ValidationResult(
        is_valid=False,
        total_minutes=0,
        requested_minutes=round(requested),
        minutes_difference=-round(requested),
        tolerance_minutes=tolerance,
    )
    if not suggestions:
        return empty

    try:
        total = total_minutes(suggestions)
    except (AttributeError, TypeError):
        logger.warning("validate_plan: malformed sessions in plan")
        return empty

    difference = total - requested
    result = ValidationResult(
        is_valid=abs(difference) <= tolerance,
        total_minutes=total,
        requested_minutes=round(requested),
        minutes_difference=round(difference),
        tolerance_minutes=tolerance,
    )
    logger.debug("validate_plan: %s", result)
    return result


def overlaps_sleep(start: datetime, end: datetime, sleep: SleepSchedule, tz: tzinfo) -> bool:
    """True when any part of [start, end) falls inside the nightly sleep window."""
    local_start, local_end = to_local(start, tz), to_local(end, tz)
    day = local_start.date() - timedelta(days=1)
    while day <= local_end.date():
        wake_day = day if sleep.wakeup > sleep.bedtime else day + timedelta(days=1)
        sleep_start = datetime.combine(day, sleep.bedtime, tzinfo=tz)
        sleep_end = datetime.combine(wake_day, sleep.wakeup, tzinfo=tz)
        if overlaps(local_start, local_end, sleep_start, sleep_end):
            return True
        day += timedelta(days=1)
    return False


def _is_aligned(value: datetime) -> bool:
    return value.minute % SLOT_INCREMENT_MINUTES == 0 and value.second == 0 and value.microsecond == 0


def describe_session(suggestion: StudySuggestion, tz: tzinfo) -> str:
    start = to_local(suggestion.suggested_start, tz)
    end = to_local(suggestion.suggested_end, tz)
    return f"{start:%a %b %d %H:%M}-{end:%H:%M}"


def find_constraint_violations(
        suggestions: list[StudySuggestion],
        target: CalendarEvent,
        preparation_hours: float,
        existing_events: t.Iterable[CalendarEvent],
        now: datetime,
        settings: PlannerSettings,
        category: t.Optional[EventCategory] = None,
) -> list[str]:
    """List every scheduling rule the plan breaks, one human-readable line each."""
    tz = settings.timezone
    events = list(existing_events)
    category = category or classify_event(target)
    target_start = to_local(target.start, tz)
    now = to_local(now, tz)
    violations: list[str] = []

    ordered = sorted(suggestions, key=lambda s: s.suggested_start)
    for index, suggestion in enumerate(ordered, 1):
        label = f"Session {index} ({describe_session(suggestion, tz)})"
        start, end = to_local(suggestion.suggested_start, tz), to_local(suggestion.suggested_end, tz)

        if start < now:
            violations.append(f"{label} starts in the past.")
        if end > target_start:
            violations.append(f"{label} ends after the event starts.")
        if end - start > MAX_SESSION_LENGTH:
            violations.append(f"{label} is longer than {MAX_SESSION_LENGTH.seconds // 3600} hours.")
        if not (_is_aligned(start) and _is_aligned(end)):
            violations.append(f"{label} does not start and end on 15-minute increments.")
        if overlaps_sleep(start, end, settings.sleep, tz):
            violations.append(
                f"{label} falls inside sleep hours "
                f"({settings.sleep.bedtime:%H:%M}-{settings.sleep.wakeup:%H:%M})."
            )

        conflicts = find_conflicts(start, end, events, target.id, buffer=SESSION_BUFFER, tz=tz)
        if conflicts:
            titles = ", ".join(event.title for event in conflicts)
            violations.append(
                f"{label} is within {SESSION_BUFFER.seconds // 60} minutes of existing event(s): {titles}."
            )

        if index > 1:
            previous = ordered[index - 2]
            if overlaps(previous.suggested_start, previous.suggested_end, start, end):
                violations.append(f"{label} overlaps the previous session.")

    days_used = {local_date(s.suggested_start, tz) for s in suggestions}
    budget = day_budget(category, preparation_hours)
    if len(days_used) > budget:
        violations.append(f"The plan uses {len(days_used)} different days; the maximum is {budget}.")

    if (category is EventCategory.HOMEWORK
            and not is_short_homework(category, preparation_hours)
            and target_start.time() < HOMEWORK_SAME_DAY_CUTOFF
            and target_start.date() in days_used):
        violations.append("The assignment is due before 5:00 PM, so no session may be on the due date.")

    return violations
