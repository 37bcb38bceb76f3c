# -*- coding: utf-8 -*-
"""
FastMCP server exposing the study planner as tools.

Every tool is a thin wrapper around a private ``_function`` so the same logic
can be called directly (tests, CLI) without going through MCP.
"""
from __future__ import annotations

import functools
import logging
import typing as t
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time

from fastmcp import FastMCP

from study_planner.classifier import classify_event as _classify
from study_planner.config import PlannerSettings
from study_planner.conflicts import find_conflicts as _find_conflicts
from study_planner.models import CalendarEvent, StudyPlanResult, StudySuggestion, ValidationResult
from study_planner.occurrence import events_on_day, format_clock, to_local
from study_planner.planner import StudyPlanner
from study_planner.sessions import format_suggestion_message
from study_planner.store import CalendarStore, store
from study_planner.validator import validate_plan

logger = logging.getLogger(__name__)

mcp = FastMCP("StudyPlanner")


@dataclass
class ProposedSession:
    """A study session as supplied by a tool caller."""
    start: str  # ISO format
    end: str  # ISO format
    message: str = ""
    priority: str = "medium"


@functools.lru_cache(maxsize=1)
def get_settings() -> PlannerSettings:
    return PlannerSettings.from_env()


@functools.lru_cache(maxsize=1)
def get_planner() -> StudyPlanner:
    """OpenAI-backed planner, built on first use.

    :raises OracleConfigurationError: If OPENAI_API_KEY is not set.
    """
    return StudyPlanner.from_settings(get_settings())


def _parse_datetime(value: str) -> datetime:
    return to_local(datetime.fromisoformat(value.replace("Z", "+00:00")), get_settings().timezone)


def _parse_all_day(value: str) -> datetime:
    """Midnight of the written calendar date; the offset does not move the day."""
    written = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.combine(written.date(), time(), tzinfo=get_settings().timezone)


def _to_suggestions(target: CalendarEvent, sessions: list[ProposedSession]) -> list[StudySuggestion]:
    """:raises ValueError: If a session does not end after it starts."""
    suggestions = []
    for session in sessions:
        start = _parse_datetime(session.start)
        end = _parse_datetime(session.end)
        if end <= start:
            raise ValueError(f"Study session {session.start} - {session.end} must end after it starts")
        suggestions.append(StudySuggestion(
            related_event=target,
            suggested_start=start,
            suggested_end=end,
            message=session.message,
            priority=session.priority if session.priority in ("high", "medium", "low") else "medium",
        ))
    return suggestions


def _create_calendar_event(
        title: str,
        start: str,
        end: str,
        description: str = "",
        location: str = "",
        all_day: bool = False,
        requires_preparation: bool = False,
        preparation_hours: t.Optional[float] = None,
        recurrence_frequency: t.Optional[str] = None,
        recurrence_days: t.Optional[list[str]] = None,
        recurrence_end_date: t.Optional[str] = None,
        calendar: CalendarStore = store,
) -> CalendarEvent:
    parse = _parse_all_day if all_day else _parse_datetime
    event = CalendarEvent(
        id=uuid.uuid4().hex,
        title=title,
        start=parse(start),
        end=parse(end),
        description=description,
        location=location,
        all_day=all_day,
        is_recurring=recurrence_frequency is not None,
        recurrence_frequency=recurrence_frequency,
        recurrence_days=recurrence_days or [],
        recurrence_end_date=_parse_datetime(recurrence_end_date) if recurrence_end_date else None,
        requires_preparation=requires_preparation,
        preparation_hours=preparation_hours,
    )
    return calendar.add_event(event)


def _list_calendar_events(calendar: CalendarStore = store) -> list[CalendarEvent]:
    return calendar.list_events()


def _classify_event(event_id: str, calendar: CalendarStore = store) -> str:
    return _classify(calendar.get_event(event_id)).value


def _find_event_conflicts(
        start: str,
        end: str,
        exclude_event_id: t.Optional[str] = None,
        calendar: CalendarStore = store,
) -> list[CalendarEvent]:
    return _find_conflicts(
        _parse_datetime(start),
        _parse_datetime(end),
        calendar.list_events(),
        exclude_event_id,
        tz=get_settings().timezone,
    )


async def _generate_study_plan(
        event_id: str,
        preparation_hours: t.Optional[float] = None,
        now: t.Optional[str] = None,
        calendar: CalendarStore = store,
        planner: t.Optional[StudyPlanner] = None,
) -> StudyPlanResult:
    planner = planner or get_planner()
    target = calendar.get_event(event_id)
    return await planner.run(
        target,
        preparation_hours,
        calendar.list_events(),
        _parse_datetime(now) if now else None,
    )


def _validate_study_plan(
        event_id: str,
        sessions: list[ProposedSession],
        preparation_hours: t.Optional[float] = None,
        calendar: CalendarStore = store,
) -> ValidationResult:
    target = calendar.get_event(event_id)
    hours = preparation_hours if preparation_hours is not None else target.preparation_hours
    return validate_plan(_to_suggestions(target, sessions), hours)


def _accept_study_plan(
        event_id: str,
        sessions: list[ProposedSession],
        calendar: CalendarStore = store,
) -> list[CalendarEvent]:
    target = calendar.get_event(event_id)
    return calendar.accept_study_plan(event_id, _to_suggestions(target, sessions))


def _show_day(day: str, calendar: CalendarStore = store) -> str:
    tz = get_settings().timezone
    selected = date.fromisoformat(day)
    day_events = events_on_day(calendar.list_events(), selected, tz)
    if not day_events:
        return f"No events on {selected:%a %b %d}."

    lines = [f"{selected:%A, %B %d, %Y}"]
    for event in day_events:
        if event.all_day:
            lines.append(f"  all day    {event.title}")
        else:
            start = to_local(event.start, tz)
            lines.append(f"  {format_clock(start)}".ljust(13) + event.title)
    return "\n".join(lines)


def _format_study_plan(result: StudyPlanResult) -> str:
    tz = get_settings().timezone
    header = "Valid study plan" if not result.is_best_effort else "Best-effort study plan (not validated)"
    lines = [f"{header} after {result.attempts} attempt(s):"]
    lines.extend(f"- {format_suggestion_message(s, tz)}" for s in result.suggestions)
    if not result.suggestions:
        lines.append("No study suggestions available.")
    return "\n".join(lines)


@mcp.tool()
def create_calendar_event(
        title: str,
        start: str,
        end: str,
        description: str = "",
        location: str = "",
        all_day: bool = False,
        requires_preparation: bool = False,
        preparation_hours: t.Optional[float] = None,
        recurrence_frequency: t.Optional[str] = None,
        recurrence_days: t.Optional[list[str]] = None,
        recurrence_end_date: t.Optional[str] = None,
) -> CalendarEvent:
    """Creates a calendar event.

    :param title: Title of the event.
    :param start: Start time in ISO format.
    :param end: End time in ISO format.
    :param description: Description of the event (optional).
    :param location: Location of the event (optional).
    :param all_day: Whether the event lasts all day.
    :param requires_preparation: Whether study time should be planned for the event.
    :param preparation_hours: Hours of preparation needed (optional).
    :param recurrence_frequency: DAILY, WEEKLY, BIWEEKLY or MONTHLY for recurring events.
    :param recurrence_days: Weekday names the event repeats on (weekly events).
    :param recurrence_end_date: Last date of the recurrence in ISO format (optional).
    :return: The stored CalendarEvent.
    """
    return _create_calendar_event(
        title, start, end, description, location, all_day, requires_preparation,
        preparation_hours, recurrence_frequency, recurrence_days, recurrence_end_date,
    )


@mcp.tool()
def list_calendar_events() -> list[CalendarEvent]:
    """Lists all calendar events."""
    return _list_calendar_events()


@mcp.tool()
def classify_event(event_id: str) -> str:
    """Classifies an event as exam, homework, project or general.

    :param event_id: Id of a stored event.
    """
    return _classify_event(event_id)


@mcp.tool()
def find_conflicts(start: str, end: str, exclude_event_id: t.Optional[str] = None) -> list[CalendarEvent]:
    """Finds the timed events overlapping an interval.

    :param start: Interval start in ISO format.
    :param end: Interval end in ISO format.
    :param exclude_event_id: Target event whose own study sessions should be ignored.
    """
    return _find_event_conflicts(start, end, exclude_event_id)


@mcp.tool()
async def generate_study_plan(
        event_id: str,
        preparation_hours: t.Optional[float] = None,
) -> str:
    """Generates study sessions for an event that requires preparation.

    Retries with corrective feedback until the sessions add up to the requested
    hours, and reports a best-effort plan otherwise.

    :param event_id: Id of a stored event.
    :param preparation_hours: Overrides the hours stored on the event.
    :return: The proposed sessions, one per line.
    """
    return _format_study_plan(await _generate_study_plan(event_id, preparation_hours))


@mcp.tool()
def validate_study_plan(
        event_id: str,
        sessions: list[ProposedSession],
        preparation_hours: t.Optional[float] = None,
) -> ValidationResult:
    """Checks whether sessions add up to the requested preparation time.

    :param event_id: Id of the target event.
    :param sessions: Proposed sessions.
    :param preparation_hours: Overrides the hours stored on the event.
    """
    return _validate_study_plan(event_id, sessions, preparation_hours)


@mcp.tool()
def accept_study_plan(event_id: str, sessions: list[ProposedSession]) -> list[CalendarEvent]:
    """Adds accepted sessions to the calendar as study sessions for the event.

    :param event_id: Id of the target event.
    :param sessions: Sessions the user accepted.
    :return: The created study-session events.
    """
    return _accept_study_plan(event_id, sessions)


@mcp.tool()
def show_day(day: str) -> str:
    """Displays the events of one day, all-day events first.

    :param day: Date in YYYY-MM-DD format.
    """
    return _show_day(day)


if __name__ == "__main__":
    mcp.run()
