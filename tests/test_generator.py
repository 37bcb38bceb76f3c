"""Tests for prompt building and oracle reply parsing."""
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from conftest import VALID_EXAM_PLAN, ScriptedOracle, at, reply_for
from study_planner.config import PlannerSettings
from study_planner.exceptions import PlanParseError
from study_planner.generator import PlanGenerator, days_until, extract_json_array, parse_suggestions
from study_planner.models import CalendarEvent, RecurrenceFrequency

UTC_SETTINGS = PlannerSettings()


def test_extracts_fenced_array_surrounded_by_prose() -> None:
    items = extract_json_array(reply_for(*VALID_EXAM_PLAN))

    assert len(items) == 3
    assert items[0]["suggestedStartTime"] == "2025-03-17T14:00:00+00:00"


def test_extracts_bare_array_from_prose() -> None:
    reply = 'Sure! [{"suggestedStartTime": "2025-03-17T14:00:00Z", "suggestedEndTime": "2025-03-17T15:00:00Z"}] Done.'

    assert len(extract_json_array(reply)) == 1


def test_accepts_raw_json() -> None:
    assert extract_json_array(reply_for(*VALID_EXAM_PLAN, prose=False))[2]["priority"] == "high"
    assert extract_json_array("  []  ") == []


@pytest.mark.parametrize("reply", ["", "I could not make a plan.", '{"sessions": 3}', "[{broken json}]"])
def test_unparsable_replies_raise(reply) -> None:
    with pytest.raises(PlanParseError):
        extract_json_array(reply)


def test_parse_suggestions_builds_sorted_sessions(final_exam) -> None:
    reversed_plan = reply_for(*reversed(VALID_EXAM_PLAN))

    suggestions = parse_suggestions(reversed_plan, final_exam, ZoneInfo("UTC"))

    assert [s.suggested_start for s in suggestions] == [at(start) for start, _ in VALID_EXAM_PLAN]
    assert all(s.related_event is final_exam for s in suggestions)
    assert sum(s.duration_minutes for s in suggestions) == 300


def test_parse_suggestions_skips_bad_entries(final_exam) -> None:
    reply = """[
        {"suggestedStartTime": "2025-03-17T14:00:00Z", "suggestedEndTime": "2025-03-17T15:00:00Z",
         "message": "Review", "priority": "URGENT"},
        {"suggestedStartTime": "2025-03-17T16:00:00Z", "suggestedEndTime": "2025-03-17T15:00:00Z"},
        {"suggestedStartTime": "not a date", "suggestedEndTime": "2025-03-17T15:00:00Z"},
        {"message": "no times"},
        "just text"
    ]"""

    suggestions = parse_suggestions(reply, final_exam, ZoneInfo("UTC"))

    assert len(suggestions) == 1
    assert suggestions[0].priority == "medium"
    assert suggestions[0].message == "Review"


def test_parse_suggestions_without_usable_entries_raises(final_exam) -> None:
    with pytest.raises(PlanParseError):
        parse_suggestions('[{"message": "no times"}]', final_exam, ZoneInfo("UTC"))


def test_naive_times_are_local(final_exam) -> None:
    new_york = ZoneInfo("America/New_York")
    reply = '[{"suggestedStartTime": "2025-03-17T14:00:00", "suggestedEndTime": "2025-03-17T15:00:00"}]'

    suggestion = parse_suggestions(reply, final_exam, new_york)[0]

    assert suggestion.suggested_start == datetime(2025, 3, 17, 14, 0, tzinfo=new_york)
    assert suggestion.message == "Study for Final Exam"


def test_days_until_rounds_up(final_exam, now) -> None:
    assert days_until(final_exam.start, now) == 5


class TestDigest:

    def test_window_exclusions_and_order(self, final_exam, lab_shift, now) -> None:
        lecture = CalendarEvent(
            id="lec", title="Lecture", start=at("2025-03-03T09:00"), end=at("2025-03-03T10:00"),
            is_recurring=True, recurrence_frequency=RecurrenceFrequency.WEEKLY,
        )
        fair = CalendarEvent(id="fair", title="Career fair", start=datetime(2025, 3, 18),
                             end=datetime(2025, 3, 19), all_day=True)
        yesterday = CalendarEvent(id="old", title="Yesterday", start=at("2025-03-14T09:00"), end=at("2025-03-14T10:00"))
        after = CalendarEvent(id="after", title="After exam", start=at("2025-03-21T09:00"), end=at("2025-03-21T10:00"))
        own_session = CalendarEvent(
            id="s1", title="[Final Exam] Review", start=at("2025-03-16T14:00"), end=at("2025-03-16T15:00"),
            is_study_session=True, related_event_id=final_exam.id,
        )

        digest = PlanGenerator(ScriptedOracle([]), UTC_SETTINGS).build_digest(
            final_exam, [final_exam, lab_shift, lecture, fair, yesterday, after, own_session], now,
        )

        assert digest == [
            "1. Lecture: Monday, March 17, 2025 9:00 AM - Monday, March 17, 2025 10:00 AM",
            "2. Career fair: Tuesday, March 18, 2025 (all day)",
            "3. Lab shift: Wednesday, March 19, 2025 9:00 AM - Wednesday, March 19, 2025 11:00 AM",
        ]

    def test_empty_calendar_prompt(self, final_exam, now) -> None:
        prompt = PlanGenerator(ScriptedOracle([]), UTC_SETTINGS).build_prompt(final_exam, 5, [final_exam], now)

        assert "No other events scheduled" in prompt


class TestPrompt:

    def test_contains_event_facts_and_rules(self, final_exam, calendar, now) -> None:
        prompt = PlanGenerator(ScriptedOracle([]), UTC_SETTINGS).build_prompt(final_exam, 5, calendar, now)

        assert "upcoming exam" in prompt
        assert "Title: Final Exam" in prompt
        assert "Thursday, March 20, 2025 10:00 AM" in prompt
        assert "Days until event: 5" in prompt
        assert "5 hours (300 minutes)" in prompt
        assert "at least 30 minutes" in prompt
        assert "between 1:00 AM and 8:00 AM" in prompt
        assert "maximum of 3 different days" in prompt
        assert "40% on the day before the exam" in prompt
        assert "Lab shift" in prompt
        assert "{" + "MAX_DAYS}" not in prompt

    def test_homework_rules_follow_hours(self, now) -> None:
        generator = PlanGenerator(ScriptedOracle([]), UTC_SETTINGS)
        homework = CalendarEvent(id="hw", title="Homework 3", start=at("2025-03-20T23:59"),
                                 end=at("2025-03-20T23:59"), requires_preparation=True)

        assert "2 hours or less" in generator.build_prompt(homework, 1.5, [], now)
        assert "longer than 2 hours" in generator.build_prompt(homework, 6, [], now)
        assert "maximum of 2 different days" in generator.build_prompt(homework, 6, [], now)

    def test_feedback_is_prepended(self, final_exam, calendar, now) -> None:
        prompt = PlanGenerator(ScriptedOracle([]), UTC_SETTINGS).build_prompt(
            final_exam, 5, calendar, now, feedback="PREVIOUS ATTEMPT REJECTED\n\n",
        )

        assert prompt.startswith("PREVIOUS ATTEMPT REJECTED")


class TestGeneratePlan:

    @pytest.mark.asyncio
    async def test_returns_parsed_sessions(self, final_exam, calendar, now) -> None:
        oracle = ScriptedOracle([reply_for(*VALID_EXAM_PLAN)])

        suggestions = await PlanGenerator(oracle, UTC_SETTINGS).generate_plan(final_exam, 5, calendar, now)

        assert len(suggestions) == 3
        assert len(oracle.prompts) == 1
        assert "Final Exam" in oracle.prompts[0]

    @pytest.mark.asyncio
    async def test_unparsable_reply_gives_empty_plan(self, final_exam, calendar, now) -> None:
        oracle = ScriptedOracle(["Sorry, I cannot help with that."])

        assert await PlanGenerator(oracle, UTC_SETTINGS).generate_plan(final_exam, 5, calendar, now) == []

    @pytest.mark.asyncio
    async def test_oracle_errors_propagate(self, final_exam, calendar, now) -> None:
        oracle = ScriptedOracle([TimeoutError("oracle timed out")])

        with pytest.raises(TimeoutError):
            await PlanGenerator(oracle, UTC_SETTINGS).generate_plan(final_exam, 5, calendar, now)
