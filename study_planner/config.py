# -*- coding: utf-8 -*-
"""Runtime settings for the study planner, read from environment variables."""
from __future__ import annotations

import logging
import os
import typing as t
from dataclasses import dataclass, field
from datetime import time, timedelta, tzinfo
from zoneinfo import ZoneInfo

from rich.logging import RichHandler


# Scheduling constants
SESSION_BUFFER = timedelta(minutes=30)
MAX_SESSION_LENGTH = timedelta(hours=4)
SLOT_INCREMENT_MINUTES = 15
NUDGE_WINDOW_DAYS = 14
SUGGESTION_WINDOW_DAYS = 8
DEFAULT_STUDY_HOURS = 3
HOMEWORK_SAME_DAY_CUTOFF = time(17, 0)


def _parse_clock(value: str) -> time:
    """Parse 'HH:MM' into a time."""
    return time.fromisoformat(value.strip())


@dataclass(frozen=True)
class SleepSchedule:
    """Nightly window in which no session may be scheduled (local time)."""
    bedtime: time = time(1, 0)
    wakeup: time = time(8, 0)


@dataclass(frozen=True)
class PlannerSettings:
    """Settings shared by the plan generator and the retry controller."""
    openai_api_key: t.Optional[str] = None
    model: str = "gpt-4o"
    timezone: tzinfo = field(default_factory=lambda: ZoneInfo("UTC"))
    max_attempts: int = 3
    sleep: SleepSchedule = field(default_factory=SleepSchedule)
    oracle_timeout: float = 120.0

    @classmethod
    def from_env(cls) -> "PlannerSettings":
        """Build settings from STUDY_PLANNER_* variables and OPENAI_API_KEY."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("STUDY_PLANNER_MODEL", "gpt-4o"),
            timezone=ZoneInfo(os.getenv("STUDY_PLANNER_TIMEZONE", "UTC")),
            max_attempts=int(os.getenv("STUDY_PLANNER_MAX_ATTEMPTS", "3")),
            sleep=SleepSchedule(
                bedtime=_parse_clock(os.getenv("STUDY_PLANNER_BEDTIME", "01:00")),
                wakeup=_parse_clock(os.getenv("STUDY_PLANNER_WAKEUP", "08:00")),
            ),
            oracle_timeout=float(os.getenv("STUDY_PLANNER_ORACLE_TIMEOUT", "120")),
        )


def configure_logging(level: t.Optional[str] = None) -> None:
    """Route log records through rich for the CLI and the REST service."""
    level = level or os.getenv("STUDY_PLANNER_LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
