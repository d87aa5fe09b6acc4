# -*- coding: utf-8 -*-
import asyncio
import json
import typing as t
from datetime import date, datetime, timedelta
from pathlib import Path

import click
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

from mcp_wrappers.suggestions.mcp_service import _suggest_for_task
from planner_cli.utils import (
    console,
    dump_tasks,
    fail,
    load_tasks,
    load_timetable,
    setup_logging,
    truncate_title,
)
from planner_server.errors import EmptyExportError
from planner_server.ical import count_exported, export_calendar, import_ics, write_ics
from planner_server.models import Occurrence, TimetableEntry
from planner_server.quick_capture import parse_quick_task
from planner_server.recurrence import describe_recurrence, expand_tasks
from planner_server.suggestions import Suggestion, generate_suggestions
from registry import list_tool_schemas

PRIORITY_STYLES = {"high": "red", "medium": "yellow", "low": "green"}


def format_datetime_human(iso_datetime: str) -> str:
    """Convert ISO datetime to human-readable format (Mon MM/DD HH:MM)."""
    try:
        dt = datetime.fromisoformat(iso_datetime.replace('Z', '+00:00'))
        return dt.strftime("%a %m/%d %H:%M")
    except (ValueError, AttributeError):
        return iso_datetime


def create_agenda_table(occurrences: list[Occurrence], title: str) -> Table:
    """Create a table of occurrences, one row per date."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("", style="cyan", width=3)
    table.add_column("Title", style="white")
    table.add_column("Due", style="yellow")
    table.add_column("Priority")
    table.add_column("Category", style="dim")

    for occurrence in occurrences:
        mark = "✅" if occurrence.completed else ("🔁" if occurrence.is_recurring_instance else "📌")
        style = PRIORITY_STYLES.get(occurrence.priority, "white")
        table.add_row(
            mark,
            truncate_title(occurrence.title),
            format_datetime_human(occurrence.due),
            f"[{style}]{occurrence.priority}[/{style}]",
            occurrence.category or "—",
        )
    return table


def create_timetable_table(entries: list[TimetableEntry]) -> Table:
    table = Table(title="🗓 Timetable", show_header=True, header_style="bold magenta")
    table.add_column("Course", style="white")
    table.add_column("Days", style="cyan")
    table.add_column("Time", style="yellow")
    table.add_column("Semester", style="dim")

    for entry in entries:
        course = entry.course_name if not entry.course_code else f"{entry.course_name} ({entry.course_code})"
        table.add_row(
            truncate_title(course),
            ", ".join(day.capitalize() for day in entry.days_of_week),
            f"{entry.start_time}–{entry.end_time}",
            f"{entry.semester_start} → {entry.semester_end}",
        )
    return table


def create_suggestion_table(suggestions: list[Suggestion]) -> Table:
    table = Table(title="💡 Suggestions", show_header=True, header_style="bold magenta")
    table.add_column("Suggestion", style="white")
    table.add_column("Priority")
    table.add_column("Confidence", justify="right", style="cyan")
    table.add_column("Why", style="dim")

    for suggestion in suggestions:
        style = PRIORITY_STYLES.get(suggestion.priority, "white")
        table.add_row(
            f"[bold]{suggestion.title}[/bold]\n{suggestion.description}",
            f"[{style}]{suggestion.priority}[/{style}]",
            f"{suggestion.confidence:.0%}",
            suggestion.reasoning,
        )
    return table


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Student planner: agenda, calendar export and suggestions."""
    setup_logging(verbose)


@cli.command()
@click.argument("tasks_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--start", "window_start", help="First day of the window (YYYY-MM-DD). Defaults to today.")
@click.option("--end", "window_end", help="Last day of the window (YYYY-MM-DD). Defaults to a week from start.")
def agenda(tasks_json: str, window_start: t.Optional[str], window_end: t.Optional[str]) -> None:
    """Show every task occurrence inside a date window.

    TASKS_JSON: Path to a JSON array of tasks.

    Examples:
        python -m planner_cli.run agenda tasks.json
        python -m planner_cli.run agenda tasks.json --start 2025-01-06 --end 2025-01-12
    """
    tasks = load_tasks(tasks_json)
    start = window_start or date.today().isoformat()
    try:
        end = window_end or (date.fromisoformat(start[:10]) + timedelta(days=6)).isoformat()
        occurrences = expand_tasks(tasks, start, end)
    except ValueError as e:
        fail(str(e))

    if not occurrences:
        console.print(f"[yellow]No tasks between {start} and {end}[/yellow]")
        return

    console.print(create_agenda_table(occurrences, f"📅 Agenda {start} → {end}"))
    for task in tasks:
        if task.is_recurring:
            console.print(f"[dim]🔁 {truncate_title(task.title)}: {describe_recurrence(task.recurrence)}[/dim]")


@cli.command("export-ics")
@click.argument("timetable_json", type=click.Path(exists=True, dir_okay=False))
@click.option("--tasks", "tasks_json", type=click.Path(exists=True, dir_okay=False), help="Also export these tasks.")
@click.option("--timezone", "tz_name", help="IANA timezone for class times. Defaults to the local zone.")
@click.option("--output-dir", "-o", default=".", type=click.Path(file_okay=False), help="Directory to write to.")
@click.option("--filename", help="File name. Defaults to timetable_<today>.ics.")
def export_ics(
        timetable_json: str,
        tasks_json: t.Optional[str],
        tz_name: t.Optional[str],
        output_dir: str,
        filename: t.Optional[str],
) -> None:
    """Export a class timetable as an .ics file.

    TIMETABLE_JSON: Path to a JSON array of timetable entries.
    """
    entries = load_timetable(timetable_json)
    tasks = load_tasks(tasks_json) if tasks_json else []

    try:
        content = export_calendar(entries, tasks, tz_name=tz_name)
    except EmptyExportError as e:
        fail(f"{e}. Add classes to your timetable first.")
    except ValueError as e:
        fail(str(e))

    path = write_ics(content, output_dir, filename)
    classes, exported_tasks = count_exported(content)
    skipped = len(entries) + len(tasks) - classes - exported_tasks
    console.print(
        Panel.fit(
            f"[bold green]✓ Exported[/bold green] {classes} class(es)"
            f"{f' and {exported_tasks} task(s)' if tasks else ''}"
            f"{f' [yellow]({skipped} skipped)[/yellow]' if skipped else ''}\n"
            f"[bold]{path}[/bold]\n"
            "[dim]Import it into Google Calendar, Outlook or Apple Calendar.[/dim]",
            border_style="green",
        )
    )


@cli.command("import-ics")
@click.argument("ics_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the imported tasks to this JSON file.")
def import_ics_command(ics_file: str, output: t.Optional[str]) -> None:
    """Read an .ics file into tasks and timetable entries.

    ICS_FILE: Path to the calendar file.
    """
    try:
        result = import_ics(Path(ics_file).read_text(encoding="utf-8"))
    except ValueError as e:
        fail(f"Invalid calendar file: {e}")

    if result.timetable_entries:
        console.print(create_timetable_table(result.timetable_entries))
    if result.tasks:
        occurrences = [
            Occurrence(
                id=task.id, master_id=task.id, date_key=task.due[:10], title=task.title,
                due=task.due, priority=task.priority, category=task.category,
                task_type=task.task_type, description=task.description, completed=task.completed,
                is_recurring_instance=task.is_recurring,
            )
            for task in result.tasks
        ]
        console.print(create_agenda_table(occurrences, "📥 Imported events"))
    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    if output:
        Path(output).write_text(dump_tasks(result.tasks), encoding="utf-8")
        console.print(f"   ✓ Wrote {len(result.tasks)} task(s) to {output}")


@cli.command()
@click.option("--title", default="", help="Title of the task being planned.")
@click.option("--subject", default="", help="Its subject, e.g. Mathematics.")
@click.option(
    "--type", "task_type",
    type=click.Choice(["academic", "personal", "event"]),
    default="academic",
    help="Task type.",
)
@click.option("--tasks", "tasks_json", type=click.Path(exists=True, dir_okay=False), help="Current tasks, for deadline checks.")
@click.option("--study-minutes", default=0, type=click.IntRange(min=0), help="Minutes studied without a break.")
@click.option("--offline", is_flag=True, help="Use local heuristics instead of the suggestion service.")
def suggest(
        title: str,
        subject: str,
        task_type: str,
        tasks_json: t.Optional[str],
        study_minutes: int,
        offline: bool,
) -> None:
    """Suggest study and scheduling actions.

    Examples:
        python -m planner_cli.run suggest --title "Study for calculus exam" --subject Mathematics
        python -m planner_cli.run suggest --offline --tasks tasks.json --study-minutes 120
    """
    tasks = load_tasks(tasks_json) if tasks_json else []

    if offline:
        suggestions = generate_suggestions(
            datetime.now(), tasks, title=title, subject=subject,
            task_type=task_type, recent_study_minutes=study_minutes,
        )
    else:
        with console.status("[bold green]Fetching suggestions..."):
            suggestions = asyncio.run(_suggest_for_task(
                title, subject, task_type, tasks=tasks, recent_study_minutes=study_minutes,
            ))

    if not suggestions:
        console.print("[yellow]No suggestions right now[/yellow]")
        return
    console.print(create_suggestion_table(suggestions))


@cli.command()
@click.argument("text", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Print the draft task as JSON.")
def quick(text: tuple[str, ...], as_json: bool) -> None:
    """Turn a one-line entry into a task.

    TEXT: The entry, e.g. "Study math exam tomorrow".
    """
    try:
        draft = parse_quick_task(" ".join(text))
    except ValueError as e:
        fail(str(e))

    if as_json:
        console.print(JSON(dump_tasks([draft.to_task()])))
        return

    style = PRIORITY_STYLES.get(draft.priority, "white")
    console.print(
        Panel.fit(
            f"[bold]{draft.title}[/bold]\n"
            f"Type: {draft.task_type}   Subject: {draft.subject or '—'}   "
            f"Priority: [{style}]{draft.priority}[/{style}]\n"
            f"Due: {format_datetime_human(draft.due)}"
            f"{'   ⏰ reminder' if draft.reminder else ''}",
            title="⚡ Quick task",
            border_style="blue",
        )
    )


@cli.command()
@click.argument("tool_names", nargs=-1, type=str)
def tools(tool_names: tuple[str, ...]) -> None:
    """Display information about available MCP tools.

    TOOL_NAMES: Optional tool names to show schemas for (format: server.tool_name or tool_name).
    """
    available_tools = asyncio.run(list_tool_schemas())

    if not tool_names:
        console.print("[bold blue]📋 Available MCP Tools[/bold blue]\n")
        tools_by_server: dict[str, list[str]] = {}
        for tool in available_tools:
            tools_by_server.setdefault(tool["server"], []).append(tool["name"])
        for server, names in sorted(tools_by_server.items()):
            console.print(f"[cyan]{server}[/cyan]")
            for name in sorted(names):
                console.print(f"  • {name}")
            console.print()
        return

    for tool_name in tool_names:
        server_name, _, name = tool_name.rpartition(".")
        matching = [
            tool for tool in available_tools
            if tool["name"] == name and (not server_name or tool["server"] == server_name)
        ]
        if not matching:
            console.print(f"[yellow]Warning: Tool '{tool_name}' not found[/yellow]")
        for tool in matching:
            console.print(f"\n[bold cyan]{tool['server']}.{tool['name']}[/bold cyan]\n")
            console.print(JSON(json.dumps(tool, indent=2)))


if __name__ == "__main__":
    cli()
