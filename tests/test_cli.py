"""Tests for the study-plan command line."""
import json

import pytest
from click.testing import CliRunner

from orchestrator.run import main
from orchestrator.utils import load_events_file, save_events_file


@pytest.fixture
def calendar_file(tmp_path):
    path = tmp_path / "calendar.json"
    path.write_text(json.dumps({"events": [
        {"id": "exam-1", "title": "Final Exam", "start": "2025-03-20T10:00:00Z", "end": "2025-03-20T12:00:00Z",
         "requires_preparation": True, "preparation_hours": 5},
        {"title": "Lab shift", "start": "2025-03-19T09:00:00Z", "end": "2025-03-19T11:00:00Z"},
        {"title": "Career fair", "start": "2025-03-19T00:00:00", "end": "2025-03-20T00:00:00", "all_day": True},
    ]}))
    return path


def test_load_events_file_assigns_missing_ids(calendar_file) -> None:
    events = load_events_file(str(calendar_file))

    assert [e.id for e in events] == ["exam-1", "event-2", "event-3"]
    assert events[0].preparation_hours == 5


def test_save_and_reload_round_trip(calendar_file, tmp_path) -> None:
    events = load_events_file(str(calendar_file))
    out = tmp_path / "saved.json"

    save_events_file(str(out), events)

    assert load_events_file(str(out)) == events


def test_day_command(calendar_file) -> None:
    result = CliRunner().invoke(main, ["day", str(calendar_file), "2025-03-19"])

    assert result.exit_code == 0
    assert "Lab shift" in result.output
    assert "all day" in result.output


def test_nudges_command(calendar_file) -> None:
    result = CliRunner().invoke(main, ["nudges", str(calendar_file), "--now", "2025-03-15T12:00:00Z"])

    assert result.exit_code == 0
    assert "Final Exam" in result.output
    assert "plan now" in result.output


def test_plan_command_requires_api_key(calendar_file) -> None:
    result = CliRunner(env={"OPENAI_API_KEY": ""}).invoke(main, ["plan", str(calendar_file), "exam-1"])

    assert result.exit_code == 1


def test_plan_command_unknown_event(calendar_file) -> None:
    result = CliRunner().invoke(main, ["plan", str(calendar_file), "missing"])

    assert result.exit_code == 1
