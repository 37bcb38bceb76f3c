# -*- coding: utf-8 -*-
import asyncio
import json
import typing as t
from dataclasses import asdict
from datetime import date

import click
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from orchestrator.utils import fail, load_events_file, parse_now, save_events_file, truncate_title
from study_planner.classifier import classify_event
from study_planner.config import PlannerSettings, configure_logging
from study_planner.exceptions import InvalidPreparationError, OracleConfigurationError
from study_planner.models import CalendarEvent, StudyPlanResult
from study_planner.nudger import identify_events_needing_study_suggestions, summarize_upcoming
from study_planner.occurrence import events_on_day, format_clock, resolve_instant, to_local
from study_planner.planner import StudyPlanner
from study_planner.store import CalendarStore


console = Console()


def create_plan_table(result: StudyPlanResult, settings: PlannerSettings) -> Table:
    """Create a table listing the proposed study sessions."""
    tz = settings.timezone
    table = Table(title="📚 Study Sessions", show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan", width=3)
    table.add_column("Date", style="yellow")
    table.add_column("Time", style="yellow")
    table.add_column("Minutes", justify="right")
    table.add_column("Priority")
    table.add_column("Message", style="white")

    priority_styles = {"high": "bold red", "medium": "yellow", "low": "dim"}
    for idx, suggestion in enumerate(result.suggestions, 1):
        start = to_local(suggestion.suggested_start, tz)
        end = to_local(suggestion.suggested_end, tz)
        table.add_row(
            str(idx),
            f"{start:%a %b %d}",
            f"{format_clock(start)} → {format_clock(end)}",
            str(round(suggestion.duration_minutes)),
            Text(suggestion.priority, style=priority_styles.get(suggestion.priority, "")),
            truncate_title(suggestion.message, 60),
        )
    return table


def create_status_panel(result: StudyPlanResult) -> Panel:
    validation = result.validation
    text = Text()
    if result.is_best_effort:
        text.append("Best-effort plan: no attempt passed validation\n", style="bold yellow")
    else:
        text.append("Plan validated\n", style="bold green")
    text.append(f"Attempts: {result.attempts}\n")
    text.append(f"Scheduled: {validation.total_minutes} of {validation.requested_minutes} minutes ")
    text.append(f"({validation.minutes_difference:+d}, tolerance ±{validation.tolerance_minutes})")
    for violation in validation.violations:
        text.append(f"\n• {violation}", style="red")
    return Panel(text, title="📊 Validation", border_style="yellow" if result.is_best_effort else "green")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--log-level", default=None, help="Log level (default: STUDY_PLANNER_LOG_LEVEL or INFO).")
@click.pass_context
def main(ctx: click.Context, log_level: t.Optional[str]) -> None:
    """Plan study sessions for the events in a JSON calendar file."""
    configure_logging(log_level)
    ctx.obj = PlannerSettings.from_env()


@main.command()
@click.argument("calendar", type=click.Path(exists=True, dir_okay=False))
@click.argument("event_id")
@click.option("--hours", type=float, default=None, help="Preparation hours (default: value stored on the event).")
@click.option("--now", "now_value", default=None, help="Plan as if it were this ISO date/time.")
@click.option("--accept", is_flag=True, help="Write the sessions back into the calendar file.")
@click.option("--output", type=click.Path(dir_okay=False), default=None, help="Write the updated calendar here instead.")
@click.option("--verbose", "-v", is_flag=True, help="Print the raw plan as JSON.")
@click.pass_obj
def plan(
        settings: PlannerSettings,
        calendar: str,
        event_id: str,
        hours: t.Optional[float],
        now_value: t.Optional[str],
        accept: bool,
        output: t.Optional[str],
        verbose: bool,
) -> None:
    """Generate study sessions for EVENT_ID from the CALENDAR file."""
    store = CalendarStore(load_events_file(calendar))
    try:
        target = store.get_event(event_id)
    except KeyError:
        fail(f"No event with id '{event_id}' in {calendar}.")
    now = parse_now(now_value, settings.timezone)

    try:
        planner = StudyPlanner.from_settings(settings)
    except OracleConfigurationError as e:
        fail(str(e))

    target_start = to_local(target.start, settings.timezone)
    console.print(
        Panel.fit(
            f"[bold blue]📚 Study Planner[/bold blue]\n"
            f"[bold]{target.title}[/bold] ({classify_event(target).value}) at "
            f"{target_start:%a %b %d} {format_clock(target_start)}",
            border_style="blue"
        )
    )

    with console.status("[bold green]Asking the model for a study plan..."):
        try:
            result = asyncio.run(planner.run(target, hours, store.list_events(), now))
        except InvalidPreparationError as e:
            fail(str(e))

    if verbose:
        console.print(Panel(JSON(json.dumps(asdict(result), default=str, indent=2)), title="📄 Plan", expand=True))

    if result.suggestions:
        console.print(create_plan_table(result, settings))
    else:
        console.print("[yellow]No study suggestions available.[/yellow]")
    console.print(create_status_panel(result))

    if accept and result.suggestions:
        created = store.accept_study_plan(target.id, result.suggestions)
        save_events_file(output or calendar, store.list_events())
        console.print(f"[bold green]✅ Added {len(created)} study session(s) to {output or calendar}[/bold green]")


@main.command()
@click.argument("calendar", type=click.Path(exists=True, dir_okay=False))
@click.option("--now", "now_value", default=None, help="Scan as if it were this ISO date/time.")
@click.pass_obj
def nudges(settings: PlannerSettings, calendar: str, now_value: t.Optional[str]) -> None:
    """List upcoming events in the CALENDAR file that need preparation."""
    events = load_events_file(calendar)
    now = parse_now(now_value, settings.timezone)
    overview = summarize_upcoming(events, now, settings.timezone)
    due_for_plan = {event.id for event in identify_events_needing_study_suggestions(events, now)}

    table = Table(title="⏰ Upcoming Preparation", show_header=True, header_style="bold magenta")
    table.add_column("Date", style="yellow")
    table.add_column("Event", style="white")
    table.add_column("Hours", justify="right")
    table.add_column("Status")
    for day, day_nudges in overview.events_by_date.items():
        for nudge in day_nudges:
            if nudge.needs_preparation_input:
                status = Text("enter hours", style="red")
            elif nudge.event.id in due_for_plan:
                status = Text("plan now", style="bold green")
            else:
                status = Text("")
            table.add_row(f"{day:%a %b %d}", truncate_title(nudge.event.title), f"{nudge.suggested_study_hours:g}", status)

    if not overview.nudges:
        console.print("[green]Nothing needs preparation in the next two weeks.[/green]")
        return
    console.print(table)
    console.print(f"Total: {overview.event_count} event(s), {overview.total_study_hours:g} hour(s) of study")


@main.command()
@click.argument("calendar", type=click.Path(exists=True, dir_okay=False))
@click.argument("day", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.pass_obj
def day(settings: PlannerSettings, calendar: str, day) -> None:
    """Show the events of DAY (YYYY-MM-DD) in the CALENDAR file."""
    selected: date = day.date()
    events: list[CalendarEvent] = events_on_day(load_events_file(calendar), selected, settings.timezone)

    table = Table(title=f"📅 {selected:%A, %B %d, %Y}", show_header=True, header_style="bold magenta")
    table.add_column("Time", style="yellow")
    table.add_column("Event", style="white")
    table.add_column("Location")
    for event in events:
        interval = resolve_instant(event, selected, settings.timezone)
        when = "all day" if interval is None else f"{format_clock(interval[0])} → {format_clock(interval[1])}"
        style = "cyan" if event.is_study_session else ""
        table.add_row(when, Text(truncate_title(event.title), style=style), event.location)

    if not events:
        console.print(f"[dim]No events on {selected:%a %b %d}.[/dim]")
        return
    console.print(table)


if __name__ == "__main__":
    main()
