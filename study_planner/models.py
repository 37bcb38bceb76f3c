"""
Data models for calendar events and generated study plans.

This module contains the dataclasses shared by the occurrence resolver, the
conflict detector and the plan generator / validator / retry controller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import typing as t


class RecurrenceFrequency(str, Enum):
    """How often a recurring event repeats."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


class EventCategory(str, Enum):
    """Coarse event category used to pick an allocation policy."""
    EXAM = "exam"
    HOMEWORK = "homework"
    PROJECT = "project"
    GENERAL = "general"


class PlanStatus(str, Enum):
    """Terminal state of a retry-controller run."""
    VALID = "valid"
    EXHAUSTED = "exhausted"


Priority = t.Literal["high", "medium", "low"]
PRIORITIES: tuple[str, ...] = ("high", "medium", "low")


@dataclass
class CalendarEvent:
    """A calendar event, either single or recurring, timed or all-day.

    All-day events store ``start`` at 00:00 of the first day and ``end`` at
    00:00 of the day after the last day.
    """
    id: str
    title: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    all_day: bool = False
    is_recurring: bool = False
    recurrence_frequency: t.Optional[RecurrenceFrequency] = None
    recurrence_days: list[str] = field(default_factory=list)  # ["monday", "wednesday"]
    recurrence_end_date: t.Optional[datetime] = None
    requires_preparation: bool = False
    preparation_hours: t.Optional[float] = None  # None means "unspecified"
    is_study_session: bool = False
    related_event_id: t.Optional[str] = None
    study_suggestions_shown: bool = False
    study_suggestions_accepted: bool = False
    source: str = "custom"  # custom, CANVAS, LMS, NUDGER

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Event {self.id!r} ends before it starts")
        if isinstance(self.recurrence_frequency, str):
            self.recurrence_frequency = RecurrenceFrequency(self.recurrence_frequency.upper())
        self.recurrence_days = [day.lower() for day in self.recurrence_days]

    @property
    def duration_minutes(self) -> float:
        return (self.end - self.start).total_seconds() / 60


@dataclass
class StudySuggestion:
    """A proposed preparation session for a target event."""
    related_event: CalendarEvent
    suggested_start: datetime
    suggested_end: datetime
    message: str
    priority: Priority = "medium"

    @property
    def duration_minutes(self) -> float:
        return (self.suggested_end - self.suggested_start).total_seconds() / 60


@dataclass
class ValidationResult:
    """Outcome of checking a candidate plan against the requested duration."""
    is_valid: bool
    total_minutes: int = 0
    requested_minutes: int = 0
    minutes_difference: int = 0  # total - requested, signed
    tolerance_minutes: int = 0
    violations: list[str] = field(default_factory=list)


@dataclass
class StudyPlanResult:
    """Final suggestions of a retry-controller run plus how it ended."""
    suggestions: list[StudySuggestion]
    validation: ValidationResult
    attempts: int
    status: PlanStatus

    @property
    def is_best_effort(self) -> bool:
        return self.status is PlanStatus.EXHAUSTED
