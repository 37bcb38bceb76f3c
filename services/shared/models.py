"""
Shared Pydantic models for REST API serialization.

This module contains Pydantic equivalents of the study_planner dataclasses plus
the request/response bodies of the study planner service, and the helpers that
convert between the two representations.
"""
from __future__ import annotations

import typing as t
from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from study_planner import models as core
from study_planner.models import PlanStatus, RecurrenceFrequency


Priority = t.Literal["high", "medium", "low"]


class CalendarEvent(BaseModel):
    """
    A calendar event as exchanged over HTTP.

    ``id`` may be omitted on creation; the service assigns one.
    """
    id: t.Optional[str] = None
    title: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    all_day: bool = False
    is_recurring: bool = False
    recurrence_frequency: t.Optional[RecurrenceFrequency] = None
    recurrence_days: list[str] = Field(default_factory=list)  # ["monday", "wednesday"]
    recurrence_end_date: t.Optional[datetime] = None
    requires_preparation: bool = False
    preparation_hours: t.Optional[float] = None
    is_study_session: bool = False
    related_event_id: t.Optional[str] = None
    study_suggestions_shown: bool = False
    study_suggestions_accepted: bool = False
    source: str = "custom"


class StudySuggestion(BaseModel):
    """
    One proposed study session, referring to its target event by id.
    """
    related_event_id: str
    related_event_title: str = ""
    suggested_start: datetime
    suggested_end: datetime
    message: str = ""
    priority: Priority = "medium"
    summary: str = ""  # "Sat, Mar 15 from 6:00 PM to 8:00 PM: ..."

    @model_validator(mode="after")
    def check_order(self) -> "StudySuggestion":
        if self.suggested_end <= self.suggested_start:
            raise ValueError("suggested_end must be after suggested_start")
        return self


class ValidationResult(BaseModel):
    is_valid: bool
    total_minutes: int = 0
    requested_minutes: int = 0
    minutes_difference: int = 0
    tolerance_minutes: int = 0
    violations: list[str] = Field(default_factory=list)


class Nudge(BaseModel):
    event: CalendarEvent
    suggested_study_hours: float
    needs_preparation_input: bool


# ---------------------------------------------------------------------------
# Request / response bodies
# ---------------------------------------------------------------------------

class StudyPlanRequest(BaseModel):
    """
    Generate a study plan for a stored event.

    ``preparation_hours`` overrides the hours stored on the event; ``now``
    overrides the current time (useful for previews and tests).
    """
    event_id: str
    preparation_hours: t.Optional[float] = None
    now: t.Optional[datetime] = None
    force: bool = True


class StudyPlanResponse(BaseModel):
    event_id: str
    generated: bool = True
    status: t.Optional[PlanStatus] = None
    is_best_effort: bool = False
    attempts: int = 0
    suggestions: list[StudySuggestion] = Field(default_factory=list)
    validation: t.Optional[ValidationResult] = None


class ValidatePlanRequest(BaseModel):
    suggestions: list[StudySuggestion] = Field(default_factory=list)
    preparation_hours: float


class AcceptPlanRequest(BaseModel):
    event_id: str
    suggestions: list[StudySuggestion]


class AcceptPlanResponse(BaseModel):
    target: CalendarEvent
    created: list[CalendarEvent]


class NudgesResponse(BaseModel):
    upcoming: list[Nudge]
    needing_suggestions: list[CalendarEvent]
    total_study_hours: float


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def event_from_dataclass(event: core.CalendarEvent) -> CalendarEvent:
    return CalendarEvent.model_validate(event, from_attributes=True)


def event_to_dataclass(event: CalendarEvent, event_id: t.Optional[str] = None) -> core.CalendarEvent:
    """Convert to the core dataclass; ``event_id`` fills in a missing id."""
    data = event.model_dump()
    data["id"] = event.id or event_id
    if data["id"] is None:
        raise ValueError("Calendar event has no id")
    return core.CalendarEvent(**data)


def suggestion_from_dataclass(suggestion: core.StudySuggestion, summary: str = "") -> StudySuggestion:
    return StudySuggestion(
        related_event_id=suggestion.related_event.id,
        related_event_title=suggestion.related_event.title,
        suggested_start=suggestion.suggested_start,
        suggested_end=suggestion.suggested_end,
        message=suggestion.message,
        priority=suggestion.priority,
        summary=summary,
    )


def suggestion_to_dataclass(suggestion: StudySuggestion, target: core.CalendarEvent) -> core.StudySuggestion:
    return core.StudySuggestion(
        related_event=target,
        suggested_start=suggestion.suggested_start,
        suggested_end=suggestion.suggested_end,
        message=suggestion.message,
        priority=suggestion.priority,
    )


def validation_from_dataclass(result: core.ValidationResult) -> ValidationResult:
    return ValidationResult.model_validate(result, from_attributes=True)
