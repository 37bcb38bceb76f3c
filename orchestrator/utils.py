"""Utility functions for the study-plan command line."""
from __future__ import annotations

import json
import sys
import typing as t
from datetime import datetime, tzinfo
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console

from services.shared.models import CalendarEvent as CalendarEventModel, event_from_dataclass, event_to_dataclass
from study_planner.models import CalendarEvent
from study_planner.occurrence import to_local

err_console = Console(stderr=True)


def fail(message: str) -> t.NoReturn:
    err_console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(1)


def load_events_file(path: str) -> list[CalendarEvent]:
    """Load calendar events from a JSON file.

    The file holds either a list of events or an object with an ``events`` list.
    Events without an id get ``event-<n>`` by position.

    Raises:
        SystemExit: If the file is not valid JSON or an event is malformed
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        fail(f"Cannot read calendar file '{path}': {e}")

    raw_events = data.get("events", []) if isinstance(data, dict) else data
    events = []
    for index, raw in enumerate(raw_events, 1):
        try:
            events.append(event_to_dataclass(CalendarEventModel.model_validate(raw), f"event-{index}"))
        except (ValidationError, ValueError) as e:
            fail(f"Event #{index} in '{path}' is invalid: {e}")
    return events


def save_events_file(path: str, events: list[CalendarEvent]) -> None:
    payload = [event_from_dataclass(event).model_dump(mode="json") for event in events]
    Path(path).write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def parse_now(value: t.Optional[str], tz: tzinfo) -> datetime:
    """ISO timestamp given on the command line, or the current time."""
    if not value:
        return datetime.now(tz)
    try:
        return to_local(datetime.fromisoformat(value.replace("Z", "+00:00")), tz)
    except ValueError:
        fail(f"'{value}' is not an ISO date/time.")


def truncate_title(title: str, max_length: int = 45) -> str:
    """Truncate title to max_length characters, adding ellipsis if needed."""
    if len(title) <= max_length:
        return title
    return title[:max_length-3] + "..."
