# -*- coding: utf-8 -*-
import typing as t
from datetime import datetime

from fastmcp import FastMCP

from planner_server import store
from planner_server.ical import IcsImport, export_timetable, import_ics
from planner_server.models import Occurrence, RecurrenceRule, Task, TimetableEntry
from planner_server.quick_capture import parse_quick_task
from planner_server.recurrence import describe_recurrence, expand_tasks
from planner_server.suggestions import Suggestion, generate_suggestions

mcp = FastMCP("StudentPlanner")


def _create_task(
        title: str,
        due: str = "",
        priority: str = "medium",
        category: str = "",
        task_type: str = "academic",
        description: str = "",
        recurrence: t.Optional[RecurrenceRule] = None,
) -> Task:
    """Creates a task, optionally repeating.

    :param title: Title of the task.
    :param due: Due time in ISO format (optional).
    :param priority: One of low, medium, high.
    :param category: Subject or category, e.g. "Mathematics".
    :param task_type: One of academic, personal, event.
    :param description: Longer description (optional).
    :param recurrence: Repeat rule (optional).
    :return: The stored Task.
    """
    task = Task(
        id="",
        title=title,
        due=due,
        priority=priority,
        category=category,
        task_type=task_type,
        description=description,
        recurrence=recurrence,
    )
    return store.add_task(task)


def _update_task(
        task_id: str,
        title: t.Optional[str] = None,
        due: t.Optional[str] = None,
        priority: t.Optional[str] = None,
        category: t.Optional[str] = None,
        description: t.Optional[str] = None,
        recurrence: t.Optional[RecurrenceRule] = None,
) -> Task:
    """Edits a task. Only the arguments given are changed.

    :param task_id: Id of the task.
    :return: The updated Task.
    """
    changes = {
        name: value
        for name, value in (
            ("title", title),
            ("due", due),
            ("priority", priority),
            ("category", category),
            ("description", description),
            ("recurrence", recurrence),
        )
        if value is not None
    }
    return store.update_task(task_id, **changes)


def _delete_task(task_id: str) -> Task:
    """Deletes a task.

    :param task_id: Id of the task.
    :return: The deleted Task.
    """
    return store.delete_task(task_id)


def _list_tasks(
        completed: t.Optional[bool] = None,
        category: t.Optional[str] = None,
        priority: t.Optional[str] = None,
) -> list[Task]:
    """Lists tasks, optionally filtered.

    :return: A list of Task objects.
    """
    return store.list_tasks(completed=completed, category=category, priority=priority)


def _toggle_task_completion(task_id: str) -> Task:
    """Marks a task done, or not done if it already was.

    :param task_id: Id of the task.
    :return: The updated Task.
    """
    return store.toggle_task(task_id)


def _toggle_occurrence_completion(task_id: str, date_key: str) -> Task:
    """Marks one occurrence of a recurring task done or not done.

    :param task_id: Id of the master task.
    :param date_key: Occurrence date as YYYY-MM-DD.
    :return: The updated master Task.
    """
    return store.toggle_occurrence(task_id, date_key)


def _list_occurrences(window_start: str, window_end: str) -> list[Occurrence]:
    """Lists every task occurrence inside a window, recurring tasks expanded.

    :param window_start: Start of the window, YYYY-MM-DD or ISO datetime.
    :param window_end: End of the window (inclusive), YYYY-MM-DD or ISO datetime.
    :return: Occurrences ordered by due time.
    """
    return expand_tasks(store.list_tasks(), window_start, window_end)


def _describe_task_recurrence(task_id: str) -> str:
    """Describes how a task repeats, e.g. 'Every week on Monday, 10 times'.

    :param task_id: Id of the task.
    """
    task = store.get_task(task_id)
    return describe_recurrence(task.recurrence or RecurrenceRule())


def _create_timetable_entry(
        course_name: str,
        days_of_week: list[str],
        start_time: str = "09:00",
        end_time: str = "10:00",
        semester_start: str = "",
        semester_end: str = "",
        course_code: str = "",
        instructor: str = "",
        location: str = "",
) -> TimetableEntry:
    """Adds a weekly class to the timetable.

    :param course_name: Name of the course.
    :param days_of_week: Weekday names, e.g. ["monday", "wednesday"].
    :param start_time: Start time as HH:MM.
    :param end_time: End time as HH:MM.
    :param semester_start: First day of the semester, YYYY-MM-DD.
    :param semester_end: Last day of the semester, YYYY-MM-DD.
    :return: The stored TimetableEntry.
    """
    entry = TimetableEntry(
        id="",
        course_name=course_name,
        course_code=course_code,
        instructor=instructor,
        location=location,
        start_time=start_time,
        end_time=end_time,
        days_of_week=[day.lower() for day in days_of_week],
        semester_start=semester_start,
        semester_end=semester_end,
    )
    return store.add_timetable_entry(entry)


def _list_timetable_entries() -> list[TimetableEntry]:
    """Lists all timetable entries."""
    return store.list_timetable_entries()


def _delete_timetable_entry(entry_id: str) -> TimetableEntry:
    """Removes a timetable entry.

    :param entry_id: Id of the entry.
    """
    return store.delete_timetable_entry(entry_id)


def _export_timetable_ics(timezone: t.Optional[str] = None) -> str:
    """Exports the stored timetable as iCalendar text.

    :param timezone: IANA timezone for class times. Defaults to the local zone.
    :return: The .ics document.
    """
    return export_timetable(store.list_timetable_entries(), tz_name=timezone)


def _import_calendar_ics(ics: str, save: bool = True) -> IcsImport:
    """Imports an .ics document as tasks and timetable entries.

    :param ics: The iCalendar text.
    :param save: Store the imported items when true.
    :return: What was found in the document.
    """
    result = import_ics(ics)
    if save:
        result.tasks = [store.add_task(task) for task in result.tasks]
        result.timetable_entries = [store.add_timetable_entry(entry) for entry in result.timetable_entries]
    return result


def _quick_add_task(text: str) -> Task:
    """Creates a task from a one-line entry such as 'Study math exam tomorrow'.

    :param text: The quick entry.
    :return: The stored Task.
    """
    return store.add_task(parse_quick_task(text).to_task())


def _suggest_for_task(title: str = "", subject: str = "", task_type: str = "academic") -> list[Suggestion]:
    """Heuristic suggestions for a task being planned, using the stored tasks as context.

    :param title: Title of the task being planned.
    :param subject: Its subject.
    :param task_type: One of academic, personal, event.
    """
    return generate_suggestions(
        datetime.now(),
        store.list_tasks(),
        title=title,
        subject=subject,
        task_type=task_type,
    )


def _format_datetime(iso_string: str) -> str:
    """Formats an ISO datetime string into a concise readable format.

    Converts ISO 8601 formatted datetime strings to format: 'Mon 1/15 2:30 PM'.
    If parsing fails, returns the original string.
    """
    try:
        dt = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
        return dt.strftime("%a %-m/%-d %-I:%M %p")
    except (ValueError, AttributeError):
        return iso_string


def format_agenda(occurrences: list[Occurrence]) -> str:
    """Formats occurrences as a clean table.

    :return: Formatted table string.
    """
    if not occurrences:
        return "📅 No tasks in this window."

    lines = []
    lines.append("📅 AGENDA")
    lines.append("=" * 100)
    lines.append(f"{'#':<4} {'':<3} {'Title':<40} {'Due':<18} {'Priority':<9} {'Category':<20}")
    lines.append("-" * 100)

    for idx, occurrence in enumerate(occurrences, 1):
        title = occurrence.title[:39] if len(occurrence.title) > 39 else occurrence.title
        mark = "✔" if occurrence.completed else ("↻" if occurrence.is_recurring_instance else "•")
        category = occurrence.category[:19] if occurrence.category else "—"
        lines.append(
            f"{idx:<4} {mark:<3} {title:<40} {_format_datetime(occurrence.due):<18} "
            f"{occurrence.priority:<9} {category:<20}"
        )

    done = sum(1 for occurrence in occurrences if occurrence.completed)
    lines.append("=" * 100)
    lines.append(f"Total: {len(occurrences)} item(s), {done} done")
    return "\n".join(lines)


def format_timetable(entries: list[TimetableEntry]) -> str:
    """Formats timetable entries as a clean table.

    :return: Formatted table string.
    """
    if not entries:
        return "🗓 No classes in the timetable."

    lines = []
    lines.append("🗓 TIMETABLE")
    lines.append("=" * 100)
    lines.append(f"{'#':<4} {'Course':<30} {'Days':<16} {'Time':<13} {'Location':<15} {'Semester':<20}")
    lines.append("-" * 100)

    for idx, entry in enumerate(entries, 1):
        course = entry.course_name if not entry.course_code else f"{entry.course_name} ({entry.course_code})"
        course = course[:29] if len(course) > 29 else course
        days = ",".join(day[:3].capitalize() for day in entry.days_of_week) or "—"
        location = entry.location[:14] if entry.location else "—"
        semester = f"{entry.semester_start}→{entry.semester_end}" if entry.semester_start else "—"
        lines.append(
            f"{idx:<4} {course:<30} {days:<16} {entry.start_time + '-' + entry.end_time:<13} "
            f"{location:<15} {semester:<20}"
        )

    lines.append("=" * 100)
    lines.append(f"Total: {len(entries)} class(es)")
    return "\n".join(lines)


def _show_agenda(window_start: str, window_end: str) -> str:
    """Displays every task occurrence in a window as a formatted table.

    :param window_start: Start of the window, YYYY-MM-DD or ISO datetime.
    :param window_end: End of the window (inclusive).
    """
    return format_agenda(_list_occurrences(window_start, window_end))


def _show_timetable() -> str:
    """Displays the timetable as a formatted table."""
    return format_timetable(store.list_timetable_entries())


PLANNER_TOOLS: dict[str, t.Callable[..., t.Any]] = {
    "create_task": _create_task,
    "update_task": _update_task,
    "delete_task": _delete_task,
    "list_tasks": _list_tasks,
    "toggle_task_completion": _toggle_task_completion,
    "toggle_occurrence_completion": _toggle_occurrence_completion,
    "list_occurrences": _list_occurrences,
    "describe_task_recurrence": _describe_task_recurrence,
    "create_timetable_entry": _create_timetable_entry,
    "list_timetable_entries": _list_timetable_entries,
    "delete_timetable_entry": _delete_timetable_entry,
    "export_timetable_ics": _export_timetable_ics,
    "import_calendar_ics": _import_calendar_ics,
    "quick_add_task": _quick_add_task,
    "suggest_for_task": _suggest_for_task,
    "show_agenda": _show_agenda,
    "show_timetable": _show_timetable,
}

for _name, _fn in PLANNER_TOOLS.items():
    mcp.tool(_fn, name=_name)


if __name__ == "__main__":
    mcp.run()
