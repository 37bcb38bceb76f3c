# -*- coding: utf-8 -*-
"""
Plan generation through the text-generation oracle.

Builds the natural-language scheduling problem (target event, digest of the
calendar up to the deadline, numeric rules and the category allocation rules),
sends it to the oracle and turns the JSON array in the reply into
StudySuggestion records.
"""
from __future__ import annotations

import json
import logging
import math
import re
import typing as t
from datetime import date, datetime, timedelta, tzinfo

from prompts import load_prompt, render_prompt
from study_planner.classifier import classify_event
from study_planner.config import MAX_SESSION_LENGTH, SESSION_BUFFER, PlannerSettings
from study_planner.conflicts import is_excluded
from study_planner.exceptions import PlanParseError
from study_planner.models import PRIORITIES, CalendarEvent, EventCategory, StudySuggestion
from study_planner.occurrence import format_clock, occurrences_between, occurs_on, to_local
from study_planner.oracle import TextOracle
from study_planner.policy import day_budget, rules_prompt_name

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = load_prompt("study_plan_prompt")

# Reply extraction patterns, tried in order before the raw reply text
FENCED_ARRAY_PATTERN = re.compile(r"```(?:json)?\s*(\[.*?\])\s*```", re.DOTALL)
BARE_ARRAY_PATTERN = re.compile(r"\[\s*\{.*\}\s*\]", re.DOTALL)


def format_datetime(value: datetime) -> str:
    """'Thursday, March 20, 2025 10:00 AM'."""
    return f"{format_date(value)} {format_clock(value)}"


def format_date(value: t.Union[date, datetime]) -> str:
    return f"{value:%A, %B} {value.day}, {value:%Y}"


def format_hours(hours: float) -> str:
    return f"{hours:g}"


def days_until(target_start: datetime, now: datetime) -> int:
    return math.ceil((target_start - now) / timedelta(days=1))


def extract_json_array(reply: str) -> list[t.Any]:
    """Pull the first JSON array out of an oracle reply.

    Tries a fenced ```json block, then the outermost bracketed array of objects,
    then the whole reply.

    Raises:
        PlanParseError: If none of them decodes to a list.
    """
    candidates = []
    fenced = FENCED_ARRAY_PATTERN.search(reply)
    if fenced:
        candidates.append(fenced.group(1))
    bare = BARE_ARRAY_PATTERN.search(reply)
    if bare:
        candidates.append(bare.group(0))
    candidates.append(reply.strip())

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, list):
            return data
    raise PlanParseError("Could not find a JSON array of study sessions in the oracle reply")


def _parse_instant(value: t.Any, tz: tzinfo) -> datetime:
    return to_local(datetime.fromisoformat(str(value).replace("Z", "+00:00")), tz)


def parse_suggestions(reply: str, target: CalendarEvent, tz: tzinfo) -> list[StudySuggestion]:
    """Convert an oracle reply into study suggestions for ``target``.

    Entries without usable times, or ending before they start, are dropped.

    Raises:
        PlanParseError: If the reply has no JSON array, or it has entries but none is usable.
    """
    items = extract_json_array(reply)
    suggestions = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning("parse_suggestions: skipping non-object entry %r", item)
            continue
        try:
            start = _parse_instant(item["suggestedStartTime"], tz)
            end = _parse_instant(item["suggestedEndTime"], tz)
        except (KeyError, ValueError) as e:
            logger.warning("parse_suggestions: skipping entry %r (%s)", item, e)
            continue
        if end <= start:
            logger.warning("parse_suggestions: skipping entry ending before it starts: %r", item)
            continue

        priority = str(item.get("priority", "medium")).lower()
        suggestions.append(StudySuggestion(
            related_event=target,
            suggested_start=start,
            suggested_end=end,
            message=item.get("message") or f"Study for {target.title}",
            priority=priority if priority in PRIORITIES else "medium",
        ))

    if items and not suggestions:
        raise PlanParseError("Oracle reply contained no usable study sessions")
    return sorted(suggestions, key=lambda s: s.suggested_start)


class PlanGenerator:
    """Builds the scheduling prompt and asks the oracle for a candidate plan."""

    def __init__(self, oracle: TextOracle, settings: t.Optional[PlannerSettings] = None) -> None:
        self.oracle = oracle
        self.settings = settings or PlannerSettings()

    @property
    def tz(self) -> tzinfo:
        return self.settings.timezone

    def _all_day_dates(self, event: CalendarEvent, first: date, last: date) -> list[date]:
        """Dates in [first, last] on which an all-day event begins (or is already under way on ``first``)."""
        dates = []
        day = first
        while day <= last:
            if occurs_on(event, day, self.tz):
                if day == first or not occurs_on(event, day - timedelta(days=1), self.tz):
                    dates.append(day)
            day += timedelta(days=1)
        return dates

    def build_digest(
            self,
            target: CalendarEvent,
            existing_events: t.Iterable[CalendarEvent],
            now: datetime,
    ) -> list[str]:
        """One line per event occurrence between now and the target's start.

        All-day events show their date only; recurring events contribute each
        occurrence inside the window.
        """
        target_start = to_local(target.start, self.tz)
        entries: list[tuple[datetime, str]] = []

        for event in existing_events:
            if is_excluded(event, target.id, include_all_day=True):
                continue

            if event.all_day:
                for day in self._all_day_dates(event, now.date(), target_start.date()):
                    midnight = datetime.combine(day, datetime.min.time(), tzinfo=self.tz)
                    entries.append((midnight, f"{event.title}: {format_date(midnight)} (all day)"))
                continue

            for start, end in occurrences_between(event, now, target_start, self.tz):
                entries.append((start, f"{event.title}: {format_datetime(start)} - {format_datetime(end)}"))

        entries.sort(key=lambda entry: entry[0])
        return [f"{index}. {text}" for index, (_, text) in enumerate(entries, 1)]

    def build_prompt(
            self,
            target: CalendarEvent,
            preparation_hours: float,
            existing_events: t.Iterable[CalendarEvent],
            now: datetime,
            feedback: str = "",
            category: t.Optional[EventCategory] = None,
    ) -> str:
        """Render the full problem statement for one attempt."""
        category = category or classify_event(target)
        target_start = to_local(target.start, self.tz)
        max_days = day_budget(category, preparation_hours)
        digest = self.build_digest(target, existing_events, now)

        rule_values = {
            "PREPARATION_HOURS": format_hours(preparation_hours),
            "MAX_DAYS": max_days,
        }
        category_rules = render_prompt(load_prompt(rules_prompt_name(category, preparation_hours)), rule_values)

        return render_prompt(PROMPT_TEMPLATE, {
            "FEEDBACK": feedback,
            "EVENT_TYPE": category.value,
            "EVENT_TITLE": target.title,
            "EVENT_DESCRIPTION": target.description or "(none)",
            "EVENT_DATE": format_datetime(target_start),
            "PREPARATION_HOURS": format_hours(preparation_hours),
            "PREPARATION_MINUTES": round(preparation_hours * 60),
            "DAYS_UNTIL_EVENT": days_until(target_start, now),
            "NOW": format_datetime(now),
            "TIMEZONE": str(self.tz),
            "EXISTING_EVENTS": "\n".join(digest) or "No other events scheduled",
            "BUFFER_MINUTES": SESSION_BUFFER.seconds // 60,
            "BEDTIME": format_clock(self.settings.sleep.bedtime),
            "WAKEUP": format_clock(self.settings.sleep.wakeup),
            "MAX_SESSION_HOURS": MAX_SESSION_LENGTH.seconds // 3600,
            "MAX_DAYS": max_days,
            "CATEGORY_RULES": category_rules.strip(),
        })

    async def generate_plan(
            self,
            target: CalendarEvent,
            preparation_hours: float,
            existing_events: t.Iterable[CalendarEvent],
            now: t.Optional[datetime] = None,
            feedback: str = "",
    ) -> list[StudySuggestion]:
        """Ask the oracle for one candidate plan.

        An unparsable reply yields an empty list. Errors raised by the oracle
        itself propagate to the caller.
        """
        now = to_local(now, self.tz) if now else datetime.now(self.tz)
        prompt = self.build_prompt(target, preparation_hours, list(existing_events), now, feedback)
        logger.debug("generate_plan: prompt for %r:\n%s", target.title, prompt)

        reply = await self.oracle.complete(prompt)
        try:
            suggestions = parse_suggestions(reply, target, self.tz)
        except PlanParseError as e:
            logger.warning("generate_plan: %s", e)
            return []

        logger.info("generate_plan: %d session(s) proposed for %r", len(suggestions), target.title)
        return suggestions
