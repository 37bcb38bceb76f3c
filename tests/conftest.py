"""Shared fixtures: the exam scenario calendar and a scripted oracle."""
import json
import typing as t
from datetime import datetime, timezone

import pytest

from study_planner.models import CalendarEvent

UTC = timezone.utc


def at(value: str) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class ScriptedOracle:
    """Oracle returning canned replies in order; Exception items are raised instead."""

    def __init__(self, replies: list[t.Union[str, Exception]]) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def reply_for(*sessions: tuple[str, str], prose: bool = True) -> str:
    """Oracle reply proposing the given (start, end) sessions, fenced inside prose."""
    items = [
        {
            "suggestedStartTime": f"{start}:00+00:00",
            "suggestedEndTime": f"{end}:00+00:00",
            "message": f"Study block {idx}",
            "priority": "high" if idx == len(sessions) else "medium",
        }
        for idx, (start, end) in enumerate(sessions, 1)
    ]
    body = json.dumps(items, indent=2)
    if not prose:
        return body
    return f"Here is your study plan:\n```json\n{body}\n```\nGood luck!"


# Sums to 5 hours on three days, clear of the lab shift and of sleep hours
VALID_EXAM_PLAN = (
    ("2025-03-17T14:00", "2025-03-17T16:00"),
    ("2025-03-18T18:00", "2025-03-18T19:30"),
    ("2025-03-19T12:00", "2025-03-19T13:30"),
)

# Four hours only
SHORT_EXAM_PLAN = (
    ("2025-03-17T14:00", "2025-03-17T16:00"),
    ("2025-03-18T18:00", "2025-03-18T20:00"),
)


@pytest.fixture
def now() -> datetime:
    return at("2025-03-15T12:00:00")


@pytest.fixture
def final_exam() -> CalendarEvent:
    return CalendarEvent(
        id="exam-1",
        title="Final Exam",
        description="Covers chapters 1-8",
        start=at("2025-03-20T10:00:00"),
        end=at("2025-03-20T12:00:00"),
        requires_preparation=True,
        preparation_hours=5,
    )


@pytest.fixture
def lab_shift() -> CalendarEvent:
    return CalendarEvent(
        id="lab-1",
        title="Lab shift",
        start=at("2025-03-19T09:00:00"),
        end=at("2025-03-19T11:00:00"),
    )


@pytest.fixture
def calendar(final_exam: CalendarEvent, lab_shift: CalendarEvent) -> list[CalendarEvent]:
    return [final_exam, lab_shift]
