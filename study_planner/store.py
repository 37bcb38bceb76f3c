# -*- coding: utf-8 -*-
"""
In-memory storage for calendar events.

Stands in for the persistence collaborator: the MCP server uses the shared
module-level ``store``, the REST service keeps its own instance on app state.
"""
from __future__ import annotations

import dataclasses
import logging
import typing as t

from study_planner.models import CalendarEvent, StudySuggestion
from study_planner.sessions import create_study_events, mark_study_suggestions_shown

logger = logging.getLogger(__name__)


class CalendarStore:
    """Calendar events keyed by id, in insertion order."""

    def __init__(self, events: t.Iterable[CalendarEvent] = ()) -> None:
        self._events: dict[str, CalendarEvent] = {}
        for event in events:
            self.add_event(event)

    def __len__(self) -> int:
        return len(self._events)

    def add_event(self, event: CalendarEvent) -> CalendarEvent:
        """Adds an event to the calendar.

        :param event: The event to store.
        :raises ValueError: If an event with the same id is already stored.
        """
        if event.id in self._events:
            raise ValueError(f"Event {event.id!r} already exists")
        self._events[event.id] = event
        return event

    def get_event(self, event_id: str) -> CalendarEvent:
        """:raises KeyError: If no event has this id."""
        return self._events[event_id]

    def list_events(self) -> list[CalendarEvent]:
        return list(self._events.values())

    def update_event(self, event_id: str, **changes: t.Any) -> CalendarEvent:
        """Replace the stored event with a copy carrying ``changes``."""
        updated = dataclasses.replace(self.get_event(event_id), **changes)
        self._events[event_id] = updated
        return updated

    def delete_event(self, event_id: str) -> CalendarEvent:
        """Remove an event. Study sessions generated for it are kept."""
        return self._events.pop(event_id)

    def study_sessions_for(self, event_id: str) -> list[CalendarEvent]:
        return [e for e in self._events.values() if e.is_study_session and e.related_event_id == event_id]

    def accept_study_plan(self, target_id: str, suggestions: list[StudySuggestion]) -> list[CalendarEvent]:
        """Persist accepted suggestions as study sessions and mark the target.

        The target is marked shown, and accepted when at least one session was created.
        """
        target = self.get_event(target_id)
        created = [self.add_event(event) for event in create_study_events(suggestions)]
        self._events[target_id] = mark_study_suggestions_shown(target, accepted=bool(created))
        logger.info("Accepted %d study session(s) for %r", len(created), target.title)
        return created

    def clear(self) -> None:
        self._events.clear()


store = CalendarStore()
