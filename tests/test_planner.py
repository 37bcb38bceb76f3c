"""Tests for the retry controller."""
import math
from datetime import timedelta

import pytest

from conftest import SHORT_EXAM_PLAN, VALID_EXAM_PLAN, ScriptedOracle, at, reply_for
from study_planner.config import PlannerSettings
from study_planner.conflicts import find_conflicts
from study_planner.exceptions import InvalidPreparationError
from study_planner.models import CalendarEvent, PlanStatus, StudySuggestion, ValidationResult
from study_planner.occurrence import UTC
from study_planner.planner import StudyPlanner, build_feedback, check_preparation
from study_planner.validator import overlaps_sleep

SETTINGS = PlannerSettings()


def planner_for(*replies, **kwargs) -> tuple[StudyPlanner, ScriptedOracle]:
    oracle = ScriptedOracle(list(replies))
    return StudyPlanner(oracle, SETTINGS, **kwargs), oracle


@pytest.mark.asyncio
async def test_end_to_end_exam_scenario(final_exam, lab_shift, calendar, now) -> None:
    planner, oracle = planner_for(reply_for(*VALID_EXAM_PLAN))

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.status is PlanStatus.VALID
    assert result.attempts == 1
    assert len(oracle.prompts) == 1

    total = sum(s.duration_minutes for s in result.suggestions)
    assert 285 <= total <= 315
    for s in result.suggestions:
        widened = (s.suggested_start - timedelta(minutes=30), s.suggested_end + timedelta(minutes=30))
        assert find_conflicts(*widened, [lab_shift]) == []
        assert not overlaps_sleep(s.suggested_start, s.suggested_end, SETTINGS.sleep, UTC)
    assert len({s.suggested_start.date() for s in result.suggestions}) <= math.ceil(5 / 2)


@pytest.mark.asyncio
async def test_short_plan_is_retried_with_feedback(final_exam, calendar, now) -> None:
    planner, oracle = planner_for(reply_for(*SHORT_EXAM_PLAN), reply_for(*VALID_EXAM_PLAN))

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.status is PlanStatus.VALID
    assert result.attempts == 2
    assert "REJECTED" not in oracle.prompts[0]
    feedback = oracle.prompts[1]
    assert "60 minutes too short" in feedback
    assert "-60 minutes" in feedback
    assert "Increase the total" in feedback
    assert "(120 minutes)" in feedback


@pytest.mark.asyncio
async def test_exhausted_budget_returns_last_plan_as_best_effort(final_exam, calendar, now) -> None:
    planner, oracle = planner_for(*[reply_for(*SHORT_EXAM_PLAN)] * 3)

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.status is PlanStatus.EXHAUSTED
    assert result.is_best_effort
    assert result.attempts == 3
    assert len(oracle.prompts) == 3
    assert len(result.suggestions) == 2
    assert result.validation.minutes_difference == -60


@pytest.mark.asyncio
async def test_all_unparsable_replies_give_empty_plan(final_exam, calendar, now) -> None:
    planner, oracle = planner_for("no idea", "still no idea", "```json\nnope\n```")

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.suggestions == []
    assert result.is_best_effort
    assert len(oracle.prompts) == 3
    assert "did not contain any usable study sessions" in oracle.prompts[1]


@pytest.mark.asyncio
async def test_best_effort_keeps_last_non_empty_plan(final_exam, calendar, now) -> None:
    planner, _ = planner_for(reply_for(*SHORT_EXAM_PLAN), "garbage", "more garbage")

    result = await planner.run(final_exam, 5, calendar, now)

    assert len(result.suggestions) == 2
    assert result.validation.total_minutes == 240


@pytest.mark.asyncio
async def test_oracle_failure_consumes_an_attempt(final_exam, calendar, now) -> None:
    planner, oracle = planner_for(ConnectionError("network down"), reply_for(*VALID_EXAM_PLAN))

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.status is PlanStatus.VALID
    assert result.attempts == 2
    assert len(oracle.prompts) == 2


@pytest.mark.asyncio
async def test_attempt_budget_comes_from_settings(final_exam, calendar, now) -> None:
    oracle = ScriptedOracle(["nothing"] * 5)
    planner = StudyPlanner(oracle, PlannerSettings(max_attempts=5))

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.attempts == 5
    assert len(oracle.prompts) == 5


@pytest.mark.asyncio
async def test_rule_violations_are_rejected_and_reported(final_exam, calendar, now) -> None:
    over_lab_shift = (VALID_EXAM_PLAN[0], VALID_EXAM_PLAN[1], ("2025-03-19T10:30", "2025-03-19T12:00"))
    planner, oracle = planner_for(reply_for(*over_lab_shift), reply_for(*VALID_EXAM_PLAN))

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.attempts == 2
    assert "broke these rules" in oracle.prompts[1]
    assert "Lab shift" in oracle.prompts[1].split("EVENT INFORMATION")[0]


@pytest.mark.asyncio
async def test_rule_check_can_be_disabled(final_exam, calendar, now) -> None:
    over_lab_shift = (VALID_EXAM_PLAN[0], VALID_EXAM_PLAN[1], ("2025-03-19T10:30", "2025-03-19T12:00"))
    planner, _ = planner_for(reply_for(*over_lab_shift), enforce_constraints=False)

    result = await planner.run(final_exam, 5, calendar, now)

    assert result.status is PlanStatus.VALID
    assert result.attempts == 1


@pytest.mark.asyncio
async def test_get_valid_plan_uses_stored_hours(final_exam, calendar, now) -> None:
    planner, _ = planner_for(reply_for(*VALID_EXAM_PLAN))

    suggestions = await planner.get_valid_plan(final_exam, None, calendar, now)

    assert len(suggestions) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("changes, hours", [
    ({"requires_preparation": False}, 5),
    ({"preparation_hours": None}, None),
    ({}, 0),
    ({}, -2),
    ({}, "abc"),
    ({}, ""),
])
async def test_invalid_input_is_rejected_before_any_oracle_call(final_exam, now, changes, hours) -> None:
    for name, value in changes.items():
        setattr(final_exam, name, value)
    planner, oracle = planner_for(reply_for(*VALID_EXAM_PLAN))

    with pytest.raises(InvalidPreparationError):
        await planner.run(final_exam, hours, [], now)
    assert oracle.prompts == []


def test_check_preparation_accepts_numeric_strings(final_exam) -> None:
    assert check_preparation(final_exam, "2.5") == 2.5
    assert check_preparation(final_exam) == 5.0


def test_feedback_for_too_long_plan() -> None:
    validation = ValidationResult(is_valid=False, total_minutes=390, requested_minutes=300,
                                  minutes_difference=90, tolerance_minutes=30)
    exam = CalendarEvent(id="e", title="Exam", start=at("2025-03-20T10:00"), end=at("2025-03-20T11:00"))

    sessions = [StudySuggestion(exam, at("2025-03-17T14:00"), at("2025-03-17T20:30"), "Cram")]
    feedback = build_feedback(validation, sessions, 1, 3, UTC)

    assert "attempt 1 of 3" in feedback
    assert "90 minutes too long" in feedback
    assert "+90 minutes" in feedback
    assert "Decrease the total" in feedback
    assert "- Mon Mar 17 14:00-20:30 (390 minutes)" in feedback
