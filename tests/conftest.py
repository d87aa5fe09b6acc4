"""Shared fixtures for the planner tests."""
import typing as t

import pytest

from planner_server import store
from planner_server.models import RecurrenceRule, Task, TimetableEntry


@pytest.fixture(autouse=True)
def clean_store() -> t.Iterator[None]:
    """Give every test an empty in-memory store."""
    store.clear()
    yield
    store.clear()


@pytest.fixture
def weekly_lecture() -> Task:
    """Recurring Monday/Wednesday/Friday task starting Monday 2025-01-06 09:00."""
    return Task(
        id="lecture",
        title="Calculus lecture notes",
        due="2025-01-06T09:00:00",
        priority="high",
        category="Mathematics",
        recurrence=RecurrenceRule(
            frequency="weekly",
            days_of_week=["monday", "wednesday", "friday"],
        ),
    )


@pytest.fixture
def calculus_class() -> TimetableEntry:
    return TimetableEntry(
        id="calc-101",
        course_name="Calculus I",
        course_code="MATH101",
        instructor="Dr. Rivera",
        location="Room 204",
        start_time="10:00",
        end_time="11:30",
        days_of_week=["monday", "wednesday"],
        semester_start="2025-01-06",
        semester_end="2025-04-30",
    )

