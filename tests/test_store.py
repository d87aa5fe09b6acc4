"""Tests for the in-memory task and timetable store."""
import pytest

from planner_server import store
from planner_server.errors import TaskNotFoundError, TimetableEntryNotFoundError
from planner_server.models import RecurrenceRule, Task, TimetableEntry


def test_add_assigns_ids() -> None:
    task = store.add_task(Task(id="", title="Read chapter 3"))

    assert task.id
    assert store.get_task(task.id) == task


def test_missing_task_raises() -> None:
    with pytest.raises(TaskNotFoundError):
        store.get_task("nope")
    with pytest.raises(KeyError):
        store.delete_task("nope")


def test_update_and_delete() -> None:
    task = store.add_task(Task(id="t1", title="Draft essay"))

    updated = store.update_task("t1", title="Final essay", priority="high")
    assert (updated.title, updated.priority) == ("Final essay", "high")

    assert store.delete_task("t1") == updated
    assert store.list_tasks() == []


def test_toggle_task_flips_completion() -> None:
    store.add_task(Task(id="t1", title="Draft essay"))

    assert store.toggle_task("t1").completed is True
    assert store.toggle_task("t1").completed is False


def test_toggle_occurrence_only_touches_that_date(weekly_lecture: Task) -> None:
    store.add_task(weekly_lecture)

    task = store.toggle_occurrence("lecture", "2025-01-08")

    assert task.completed is False
    assert task.completion_overrides == {"2025-01-08": True}
    assert store.get_task("lecture").completion_overrides == {"2025-01-08": True}


def test_list_filters(weekly_lecture: Task) -> None:
    store.add_task(weekly_lecture)
    store.add_task(Task(id="essay", title="Essay", due="2025-01-09T12:00:00", category="English", completed=True))
    store.add_task(Task(id="chores", title="Chores", task_type="personal"))

    assert {t.id for t in store.list_tasks(completed=True)} == {"essay"}
    assert {t.id for t in store.list_tasks(task_type="personal")} == {"chores"}
    assert {t.id for t in store.list_tasks(category="english")} == {"essay"}
    assert {t.id for t in store.list_tasks(has_recurrence=True)} == {"lecture"}
    assert {t.id for t in store.list_tasks(due_after="2025-01-07T00:00:00")} == {"essay"}
    assert {t.id for t in store.list_tasks(due_before="2025-01-07T00:00:00")} == {"lecture"}


def test_timetable_entries(calculus_class: TimetableEntry) -> None:
    store.add_timetable_entry(calculus_class)

    assert store.list_timetable_entries() == [calculus_class]
    assert store.delete_timetable_entry("calc-101") == calculus_class
    with pytest.raises(TimetableEntryNotFoundError):
        store.get_timetable_entry("calc-101")


def test_update_can_drop_recurrence(weekly_lecture: Task) -> None:
    store.add_task(weekly_lecture)

    task = store.update_task("lecture", recurrence=RecurrenceRule())

    assert not task.is_recurring
