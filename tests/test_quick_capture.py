"""Tests for one-line quick task entry."""
from datetime import datetime, timedelta

import pytest

from planner_server.quick_capture import parse_quick_task

NOW = datetime(2025, 1, 6, 9, 0)


def test_study_math_exam_tomorrow() -> None:
    draft = parse_quick_task("Study math exam tomorrow", now=NOW)

    assert draft.title == "Study math exam tomorrow"
    assert draft.task_type == "academic"
    assert draft.subject == "Mathematics"
    assert draft.priority == "high"
    assert draft.due == (NOW + timedelta(days=1)).isoformat()
    assert draft.reminder is True
    assert draft.description == "Mathematics task - created via quick entry"


def test_due_phrase_is_cut_from_title() -> None:
    draft = parse_quick_task("Read history chapter due next week", now=NOW)

    assert draft.title == "Read history chapter"
    assert draft.subject == "History"
    assert draft.priority == "medium"
    assert draft.due == (NOW + timedelta(days=7)).isoformat()
    assert draft.reminder is False


def test_same_day_entry_gets_a_reminder() -> None:
    draft = parse_quick_task("Buy groceries today", now=NOW)

    assert draft.due == NOW.isoformat()
    assert draft.reminder is True
    assert draft.description == ""


def test_low_priority_words() -> None:
    draft = parse_quick_task("maybe clean garage later", now=NOW)

    assert draft.priority == "low"
    assert draft.due == (NOW + timedelta(days=7)).isoformat()


def test_blank_entry_is_rejected() -> None:
    with pytest.raises(ValueError):
        parse_quick_task("   ")


def test_draft_becomes_a_task() -> None:
    task = parse_quick_task("Physics homework", now=NOW).to_task("t1")

    assert task.id == "t1"
    assert task.category == "Science"
    assert task.recurrence is None
