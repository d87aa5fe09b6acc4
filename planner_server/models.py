"""
Data models for the student planner: tasks, recurrence rules, derived
occurrences and class timetable entries.

This module contains the dataclasses used throughout the planner server.
Timestamps are kept as ISO 8601 strings, the same shape the persistence
API returns them in.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import typing as t


Priority = t.Literal["low", "medium", "high"]
TaskType = t.Literal["academic", "personal", "event"]
Frequency = t.Literal["none", "daily", "weekly", "monthly", "yearly"]
EndType = t.Literal["never", "count", "until"]

PRIORITIES: tuple[str, ...] = ("low", "medium", "high")
TASK_TYPES: tuple[str, ...] = ("academic", "personal", "event")
FREQUENCIES: tuple[str, ...] = ("none", "daily", "weekly", "monthly", "yearly")
END_TYPES: tuple[str, ...] = ("never", "count", "until")
WEEKDAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


@dataclass
class RecurrenceEnd:
    """When a recurring task stops: never, after a count, or on a date."""
    kind: EndType = "never"
    count: t.Optional[int] = None
    until: str = ""  # "YYYY-MM-DD", inclusive

    def __post_init__(self) -> None:
        if self.kind not in END_TYPES:
            raise ValueError(f"Unknown recurrence end type: {self.kind!r}")
        if self.kind == "count" and (self.count is None or self.count < 1):
            raise ValueError("Recurrence count must be a positive integer")
        if self.kind == "until" and not self.until:
            raise ValueError("Recurrence end date is required when ending 'until'")

    @classmethod
    def never(cls) -> "RecurrenceEnd":
        return cls()

    @classmethod
    def after_count(cls, count: int) -> "RecurrenceEnd":
        return cls(kind="count", count=count)

    @classmethod
    def until_date(cls, until: str) -> "RecurrenceEnd":
        return cls(kind="until", until=until)


@dataclass
class RecurrenceRule:
    """
    Repeat rule attached to a master task.

    ``days_of_week`` only applies to weekly rules, e.g. ["monday", "wednesday"].
    An empty list repeats on the weekday of the master's due date.
    """
    frequency: Frequency = "none"
    interval: int = 1
    days_of_week: list[str] = field(default_factory=list)
    end: RecurrenceEnd = field(default_factory=RecurrenceEnd)

    def __post_init__(self) -> None:
        if self.frequency not in FREQUENCIES:
            raise ValueError(f"Unknown recurrence frequency: {self.frequency!r}")
        if not isinstance(self.interval, int) or self.interval < 1:
            raise ValueError("Recurrence interval must be an integer >= 1")
        days = [day.lower() for day in self.days_of_week]
        unknown = [day for day in days if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        # Keep calendar order so BYDAY output is deterministic
        self.days_of_week = [day for day in WEEKDAYS if day in days]

    @property
    def repeats(self) -> bool:
        return self.frequency != "none"


@dataclass
class Task:
    """A task or event owned by a student. May be a recurring master."""
    id: str
    title: str
    due: str = ""  # ISO datetime, "" when undated
    priority: Priority = "medium"
    category: str = ""  # subject, e.g. "Mathematics"
    task_type: TaskType = "academic"
    description: str = ""
    completed: bool = False
    recurrence: t.Optional[RecurrenceRule] = None
    completion_overrides: dict[str, bool] = field(default_factory=dict)

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not None and self.recurrence.repeats


@dataclass(frozen=True)
class Occurrence:
    """
    One concrete, date-bound instance of a task inside a display window.

    Derived on demand and never stored. ``completed`` is already resolved
    against the master's override map.
    """
    id: str
    master_id: str
    date_key: str  # "YYYY-MM-DD"
    title: str
    due: str
    priority: Priority
    category: str
    task_type: TaskType
    description: str
    completed: bool
    is_recurring_instance: bool = False


@dataclass
class TimetableEntry:
    """A weekly class meeting that repeats through a semester."""
    id: str
    course_name: str
    course_code: str = ""
    instructor: str = ""
    location: str = ""
    start_time: str = "09:00"  # "HH:MM" 24h
    end_time: str = "10:00"    # "HH:MM" 24h
    days_of_week: list[str] = field(default_factory=list)
    semester_start: str = ""   # "YYYY-MM-DD"
    semester_end: str = ""     # "YYYY-MM-DD"
    color: str = "#3b82f6"
