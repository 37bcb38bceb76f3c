"""
FastAPI service for study planning operations.

Exposes the calendar store, the retry-controlled study plan generator, plan
validation/acceptance and the nudger as REST endpoints. Plan generation can
take a minute or more since every attempt waits on the text-generation oracle.
"""
from __future__ import annotations

import logging
import typing as t
import uuid
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request

from services.shared.models import (
    AcceptPlanRequest,
    AcceptPlanResponse,
    CalendarEvent,
    Nudge,
    NudgesResponse,
    StudyPlanRequest,
    StudyPlanResponse,
    StudySuggestion,
    ValidatePlanRequest,
    ValidationResult,
    event_from_dataclass,
    event_to_dataclass,
    suggestion_from_dataclass,
    suggestion_to_dataclass,
    validation_from_dataclass,
)
from study_planner import models as core
from study_planner.config import PlannerSettings, configure_logging
from study_planner.exceptions import InvalidPreparationError, OracleConfigurationError
from study_planner.nudger import identify_events_needing_study_suggestions, summarize_upcoming
from study_planner.occurrence import to_local
from study_planner.planner import StudyPlanner
from study_planner.sessions import format_suggestion_message, should_generate
from study_planner.store import CalendarStore
from study_planner.validator import validate_plan

logger = logging.getLogger(__name__)


def create_app(
        planner: t.Optional[StudyPlanner] = None,
        calendar: t.Optional[CalendarStore] = None,
        settings: t.Optional[PlannerSettings] = None,
) -> FastAPI:
    """Build the service. Without a planner, an OpenAI-backed one is built on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize resources on startup and cleanup on shutdown."""
        configure_logging()
        app.state.settings = settings or (planner.settings if planner else PlannerSettings.from_env())
        app.state.store = calendar if calendar is not None else CalendarStore()
        app.state.planner = planner
        if app.state.planner is None:
            try:
                app.state.planner = StudyPlanner.from_settings(app.state.settings)
            except OracleConfigurationError as e:
                # The calendar endpoints still work; planning answers 503
                logger.warning("Study plan generation disabled: %s", e)

        yield

    app = FastAPI(
        title="Study Planner Service",
        description="REST API for calendar events and LLM-generated study plans",
        version="1.0.0",
        lifespan=lifespan,
    )
    _register_routes(app)
    return app


def _store(request: Request) -> CalendarStore:
    return request.app.state.store


def _get_event(request: Request, event_id: str) -> core.CalendarEvent:
    try:
        return _store(request).get_event(event_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Event {event_id!r} not found")


def _now(request: Request, now: t.Optional[datetime]) -> datetime:
    tz = request.app.state.settings.timezone
    return to_local(now, tz) if now else datetime.now(tz)


def _to_core_suggestions(request: Request, suggestions: list[StudySuggestion]) -> list[core.StudySuggestion]:
    return [suggestion_to_dataclass(s, _get_event(request, s.related_event_id)) for s in suggestions]


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint for container orchestration."""
        return {
            "status": "healthy",
            "service": "study-planner-service",
            "planner_ready": request.app.state.planner is not None,
        }

    @app.get("/events", response_model=list[CalendarEvent])
    async def list_events(request: Request) -> list[CalendarEvent]:
        return [event_from_dataclass(event) for event in _store(request).list_events()]

    @app.post("/events", response_model=CalendarEvent, status_code=201)
    async def create_event(request: Request, event: CalendarEvent) -> CalendarEvent:
        """Store a new event; an id is assigned when none is given."""
        try:
            created = _store(request).add_event(event_to_dataclass(event, uuid.uuid4().hex))
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return event_from_dataclass(created)

    @app.get("/events/{event_id}", response_model=CalendarEvent)
    async def get_event(request: Request, event_id: str) -> CalendarEvent:
        return event_from_dataclass(_get_event(request, event_id))

    @app.delete("/events/{event_id}", response_model=CalendarEvent)
    async def delete_event(request: Request, event_id: str) -> CalendarEvent:
        _get_event(request, event_id)
        return event_from_dataclass(_store(request).delete_event(event_id))

    @app.post("/study-plan", response_model=StudyPlanResponse)
    async def generate_study_plan(request: Request, body: StudyPlanRequest) -> StudyPlanResponse:
        """
        Generate study sessions for a stored event.

        Runs up to the configured number of oracle attempts, so this endpoint can
        take a while. The response says whether the plan validated or is a
        best-effort result.
        """
        planner: t.Optional[StudyPlanner] = request.app.state.planner
        target = _get_event(request, body.event_id)
        now = _now(request, body.now)

        if not should_generate(target, now, force=body.force):
            return StudyPlanResponse(event_id=target.id, generated=False)
        if planner is None:
            raise HTTPException(status_code=503, detail="Study plan generation is not configured (OPENAI_API_KEY)")

        try:
            result = await planner.run(target, body.preparation_hours, _store(request).list_events(), now)
        except InvalidPreparationError as e:
            raise HTTPException(status_code=422, detail=str(e))

        if result.suggestions:
            _store(request).update_event(target.id, study_suggestions_shown=True)

        tz = request.app.state.settings.timezone
        return StudyPlanResponse(
            event_id=target.id,
            status=result.status,
            is_best_effort=result.is_best_effort,
            attempts=result.attempts,
            suggestions=[
                suggestion_from_dataclass(s, format_suggestion_message(s, tz)) for s in result.suggestions
            ],
            validation=validation_from_dataclass(result.validation),
        )

    @app.post("/study-plan/validate", response_model=ValidationResult)
    async def validate_study_plan(request: Request, body: ValidatePlanRequest) -> ValidationResult:
        suggestions = _to_core_suggestions(request, body.suggestions)
        return validation_from_dataclass(validate_plan(suggestions, body.preparation_hours))

    @app.post("/study-plan/accept", response_model=AcceptPlanResponse)
    async def accept_study_plan(request: Request, body: AcceptPlanRequest) -> AcceptPlanResponse:
        """Store accepted suggestions as study sessions and mark the target event.

        Every suggestion must belong to ``event_id``; sessions are linked back to it.
        """
        target = _get_event(request, body.event_id)
        foreign = sorted({s.related_event_id for s in body.suggestions if s.related_event_id != target.id})
        if foreign:
            raise HTTPException(
                status_code=422,
                detail=f"Suggestions for {foreign} cannot be accepted for event {target.id!r}",
            )
        suggestions = [suggestion_to_dataclass(s, target) for s in body.suggestions]
        created = _store(request).accept_study_plan(target.id, suggestions)
        return AcceptPlanResponse(
            target=event_from_dataclass(_store(request).get_event(body.event_id)),
            created=[event_from_dataclass(event) for event in created],
        )

    @app.get("/nudges", response_model=NudgesResponse)
    async def nudges(request: Request, now: t.Optional[datetime] = None) -> NudgesResponse:
        """Events needing preparation in the next two weeks, and those due for suggestions."""
        current = _now(request, now)
        events = _store(request).list_events()
        overview = summarize_upcoming(events, current, request.app.state.settings.timezone)
        return NudgesResponse(
            upcoming=[
                Nudge(
                    event=event_from_dataclass(nudge.event),
                    suggested_study_hours=nudge.suggested_study_hours,
                    needs_preparation_input=nudge.needs_preparation_input,
                )
                for nudge in overview.nudges
            ],
            needing_suggestions=[
                event_from_dataclass(event) for event in identify_events_needing_study_suggestions(events, current)
            ],
            total_study_hours=overview.total_study_hours,
        )


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8004)
