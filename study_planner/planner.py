# -*- coding: utf-8 -*-
"""
Retry controller.

Runs the generate-and-validate loop: ask the plan generator for a candidate,
validate it, and when it is rejected feed the deviation back into the next
prompt. Stops at the first valid plan or when the attempt budget is used up,
in which case the last non-empty candidate is returned as a best-effort plan.
"""
from __future__ import annotations

import dataclasses
import logging
import math
import typing as t
from datetime import datetime, tzinfo

from prompts import load_prompt, render_prompt
from study_planner.classifier import classify_event
from study_planner.config import PlannerSettings
from study_planner.exceptions import InvalidPreparationError
from study_planner.generator import PlanGenerator
from study_planner.models import (
    CalendarEvent,
    EventCategory,
    PlanStatus,
    StudyPlanResult,
    StudySuggestion,
    ValidationResult,
)
from study_planner.occurrence import to_local
from study_planner.oracle import OpenAIOracle, TextOracle
from study_planner.validator import describe_session, find_constraint_violations, validate_plan

logger = logging.getLogger(__name__)

FEEDBACK_TEMPLATE = load_prompt("study_plan_feedback")


def check_preparation(target: CalendarEvent, preparation_hours: t.Any = None) -> float:
    """Return the usable preparation hours for ``target``.

    ``preparation_hours`` defaults to the value stored on the event.

    Raises:
        InvalidPreparationError: If the event does not require preparation or the
            hours are missing, non-numeric or not positive.
    """
    if not target.requires_preparation:
        raise InvalidPreparationError(f"Event {target.title!r} does not require preparation")

    if preparation_hours is None:
        preparation_hours = target.preparation_hours
    if preparation_hours is None or preparation_hours == "":
        raise InvalidPreparationError(f"Event {target.title!r} has no preparation hours")
    try:
        hours = float(preparation_hours)
    except (TypeError, ValueError):
        raise InvalidPreparationError(f"Preparation hours must be a number, got {preparation_hours!r}")
    if not math.isfinite(hours) or hours <= 0:
        raise InvalidPreparationError(f"Preparation hours must be positive, got {preparation_hours!r}")
    return hours


def _breakdown(suggestions: list[StudySuggestion], tz: tzinfo) -> str:
    if not suggestions:
        return "(none)"
    return "\n".join(
        f"- {describe_session(s, tz)} ({round(s.duration_minutes)} minutes)"
        for s in sorted(suggestions, key=lambda s: s.suggested_start)
    )


def build_feedback(
        validation: ValidationResult,
        suggestions: list[StudySuggestion],
        attempt: int,
        max_attempts: int,
        tz: tzinfo,
) -> str:
    """Corrective feedback block describing why ``attempt`` was rejected."""
    difference = validation.minutes_difference
    deviation_ok = bool(suggestions) and abs(difference) <= validation.tolerance_minutes

    if not suggestions:
        problem = "The previous reply did not contain any usable study sessions."
        remedy = "Reply with ONLY a JSON array of study sessions in the format shown below."
    elif deviation_ok:
        problem = (f"The total study time ({validation.total_minutes} minutes) was acceptable, "
                   f"but the plan broke these rules:")
        remedy = "Move or resize the offending sessions while keeping the same total."
    else:
        direction = "too short" if difference < 0 else "too long"
        problem = (
            f"The sessions added up to {validation.total_minutes} minutes, which is "
            f"{abs(difference)} minutes {direction} (deviation {difference:+d} minutes; requested "
            f"{validation.requested_minutes} minutes, allowed deviation "
            f"{validation.tolerance_minutes} minutes)."
        )
        if difference < 0:
            remedy = (f"Increase the total by adding a session or extending an existing one "
                      f"by {abs(difference)} minutes.")
        else:
            remedy = (f"Decrease the total by removing a session or shortening an existing one "
                      f"by {abs(difference)} minutes.")

    if suggestions and validation.violations:
        problem += "\n" + "\n".join(f"- {violation}" for violation in validation.violations)

    return render_prompt(FEEDBACK_TEMPLATE, {
        "ATTEMPT": attempt,
        "MAX_ATTEMPTS": max_attempts,
        "PROBLEM": problem,
        "REMEDY": remedy,
        "BREAKDOWN": _breakdown(suggestions, tz),
    })


class StudyPlanner:
    """
    Bounded generate-and-validate loop around a PlanGenerator.

    Args:
        oracle: Text-generation oracle used for every attempt
        settings: Planner settings (time zone, sleep window, attempt budget)
        enforce_constraints: Also reject duration-valid plans that break the
            scheduling rules (buffers, sleep window, day budget, ...)
    """

    def __init__(
            self,
            oracle: TextOracle,
            settings: t.Optional[PlannerSettings] = None,
            enforce_constraints: bool = True,
    ) -> None:
        self.settings = settings or PlannerSettings()
        self.generator = PlanGenerator(oracle, self.settings)
        self.enforce_constraints = enforce_constraints

    @classmethod
    def from_settings(cls, settings: t.Optional[PlannerSettings] = None) -> "StudyPlanner":
        """Planner backed by OpenAI, configured from the environment by default."""
        settings = settings or PlannerSettings.from_env()
        return cls(OpenAIOracle.from_settings(settings), settings)

    @property
    def max_attempts(self) -> int:
        return max(1, self.settings.max_attempts)

    def evaluate(
            self,
            suggestions: list[StudySuggestion],
            target: CalendarEvent,
            preparation_hours: float,
            existing_events: list[CalendarEvent],
            now: datetime,
            category: t.Optional[EventCategory] = None,
    ) -> ValidationResult:
        """Duration check plus, when enforced, the scheduling-rule check."""
        validation = validate_plan(suggestions, preparation_hours)
        if not (self.enforce_constraints and suggestions):
            return validation

        violations = find_constraint_violations(
            suggestions, target, preparation_hours, existing_events, now, self.settings, category,
        )
        if violations:
            validation = dataclasses.replace(validation, is_valid=False, violations=violations)
        return validation

    async def run(
            self,
            target: CalendarEvent,
            preparation_hours: t.Any = None,
            existing_events: t.Iterable[CalendarEvent] = (),
            now: t.Optional[datetime] = None,
    ) -> StudyPlanResult:
        """Generate a plan for ``target``, retrying with feedback until one validates.

        Raises:
            InvalidPreparationError: Before any oracle call, if the target cannot be planned.
        """
        hours = check_preparation(target, preparation_hours)
        tz = self.settings.timezone
        now = to_local(now, tz) if now else datetime.now(tz)
        events = list(existing_events)
        category = classify_event(target)

        feedback = ""
        best: list[StudySuggestion] = []
        best_validation = validate_plan([], hours)

        for attempt in range(1, self.max_attempts + 1):
            logger.info("Attempt %d/%d: planning %.2f hour(s) for %r (%s)",
                        attempt, self.max_attempts, hours, target.title, category.value)
            try:
                suggestions = await self.generator.generate_plan(target, hours, events, now, feedback)
            except Exception:
                logger.exception("Oracle call failed on attempt %d", attempt)
                suggestions = []

            validation = self.evaluate(suggestions, target, hours, events, now, category)
            if suggestions:
                best, best_validation = suggestions, validation

            if validation.is_valid:
                logger.info("Attempt %d produced a valid plan (%d minutes in %d session(s))",
                            attempt, validation.total_minutes, len(suggestions))
                return StudyPlanResult(suggestions, validation, attempt, PlanStatus.VALID)

            logger.warning("Attempt %d rejected: %d session(s), %+d minutes, %d rule violation(s)",
                           attempt, len(suggestions), validation.minutes_difference,
                           len(validation.violations))
            feedback = build_feedback(validation, suggestions, attempt, self.max_attempts, tz)

        logger.warning("No valid plan for %r after %d attempts; returning best effort (%d session(s))",
                       target.title, self.max_attempts, len(best))
        return StudyPlanResult(best, best_validation, self.max_attempts, PlanStatus.EXHAUSTED)

    async def get_valid_plan(
            self,
            target: CalendarEvent,
            preparation_hours: t.Any = None,
            existing_events: t.Iterable[CalendarEvent] = (),
            now: t.Optional[datetime] = None,
    ) -> list[StudySuggestion]:
        result = await self.run(target, preparation_hours, existing_events, now)
        return result.suggestions
