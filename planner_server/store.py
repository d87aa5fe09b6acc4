# -*- coding: utf-8 -*-
import typing as t
import uuid
from dataclasses import replace

from .errors import TaskNotFoundError, TimetableEntryNotFoundError
from .models import Task, TimetableEntry
from .recurrence import parse_timestamp, toggle_occurrence_completion


# In-memory storage for tasks and timetable entries
# Stands in for the remote task/timetable persistence API


tasks: dict[str, Task] = {}
timetable_entries: dict[str, TimetableEntry] = {}


def new_id() -> str:
    return str(uuid.uuid4())


def add_task(task: Task) -> Task:
    """Adds a task, assigning an id when it has none.

    :param task: The task to store.
    :return: The stored task.
    """
    if not task.id:
        task = replace(task, id=new_id())
    tasks[task.id] = task
    return task


def get_task(task_id: str) -> Task:
    """Returns the task with ``task_id``.

    :raises TaskNotFoundError: If no such task exists.
    """
    try:
        return tasks[task_id]
    except KeyError:
        raise TaskNotFoundError(f"Task not found: {task_id}") from None


def update_task(task_id: str, **changes: t.Any) -> Task:
    """Applies field changes to a stored task and returns the new version."""
    task = replace(get_task(task_id), **changes)
    tasks[task_id] = task
    return task


def delete_task(task_id: str) -> Task:
    """Removes a task and returns it."""
    task = get_task(task_id)
    del tasks[task_id]
    return task


def toggle_task(task_id: str) -> Task:
    """Flips the master task's own completion flag."""
    task = get_task(task_id)
    return update_task(task_id, completed=not task.completed)


def toggle_occurrence(task_id: str, date_key: str) -> Task:
    """Flips the completion of one occurrence of a recurring task.

    The master's own flag and the other occurrences are not touched.
    """
    task = toggle_occurrence_completion(get_task(task_id), date_key)
    tasks[task_id] = task
    return task


def list_tasks(
        completed: t.Optional[bool] = None,
        task_type: t.Optional[str] = None,
        priority: t.Optional[str] = None,
        category: t.Optional[str] = None,
        due_before: t.Optional[str] = None,
        due_after: t.Optional[str] = None,
        has_recurrence: t.Optional[bool] = None,
) -> list[Task]:
    """Lists stored tasks matching every given filter.

    Date filters compare due timestamps; undated tasks never match them.
    """
    result = []
    for task in tasks.values():
        if completed is not None and task.completed != completed:
            continue
        if task_type is not None and task.task_type != task_type:
            continue
        if priority is not None and task.priority != priority:
            continue
        if category is not None and task.category.lower() != category.lower():
            continue
        if has_recurrence is not None and task.is_recurring != has_recurrence:
            continue
        if due_before is not None or due_after is not None:
            if not task.due:
                continue
            due = parse_timestamp(task.due).timestamp()
            if due_before is not None and due > parse_timestamp(due_before).timestamp():
                continue
            if due_after is not None and due < parse_timestamp(due_after).timestamp():
                continue
        result.append(task)
    return result


def add_timetable_entry(entry: TimetableEntry) -> TimetableEntry:
    """Adds a timetable entry, assigning an id when it has none."""
    if not entry.id:
        entry = replace(entry, id=new_id())
    timetable_entries[entry.id] = entry
    return entry


def get_timetable_entry(entry_id: str) -> TimetableEntry:
    try:
        return timetable_entries[entry_id]
    except KeyError:
        raise TimetableEntryNotFoundError(f"Timetable entry not found: {entry_id}") from None


def delete_timetable_entry(entry_id: str) -> TimetableEntry:
    entry = get_timetable_entry(entry_id)
    del timetable_entries[entry_id]
    return entry


def list_timetable_entries() -> list[TimetableEntry]:
    return list(timetable_entries.values())


def clear() -> None:
    """Drops everything. Used by tests and the CLI between runs."""
    tasks.clear()
    timetable_entries.clear()
