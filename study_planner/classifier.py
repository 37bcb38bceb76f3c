# -*- coding: utf-8 -*-
"""Keyword classification of events into coarse preparation categories."""
import re

from study_planner.models import CalendarEvent, EventCategory


# Checked in order, first match wins
CATEGORY_PATTERNS: list[tuple[EventCategory, re.Pattern[str]]] = [
    (EventCategory.EXAM, re.compile(r"\b(exam|test|midterm|final|quiz)\b")),
    (EventCategory.HOMEWORK, re.compile(r"\b(homework|assignment|problem set|pset|exercise)\b")),
    (EventCategory.PROJECT, re.compile(r"\b(project|presentation|paper|essay|report)\b")),
]


def classify_text(text: str) -> EventCategory:
    """Classify free text by the first matching keyword family."""
    lowered = text.lower()
    for category, pattern in CATEGORY_PATTERNS:
        if pattern.search(lowered):
            return category
    return EventCategory.GENERAL


def classify_event(event: CalendarEvent) -> EventCategory:
    """Classify an event from its title and description."""
    return classify_text(f"{event.title or ''} {event.description or ''}")
