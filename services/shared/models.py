"""
Shared Pydantic models for REST API serialization.

This module contains Pydantic equivalents of the dataclass models in
planner_server.models, plus request/response bodies for the planner and
suggestion services. Conversion helpers at the bottom move between the two.
"""
from __future__ import annotations

import typing as t
from dataclasses import asdict

from pydantic import BaseModel, Field

from planner_server.ical import IcsImport
from planner_server.models import (
    Occurrence,
    RecurrenceEnd,
    RecurrenceRule,
    Task,
    TimetableEntry,
)
from planner_server.suggestions import Suggestion


# Type literals for commonly used values
Priority = t.Literal["low", "medium", "high"]
TaskType = t.Literal["academic", "personal", "event"]
Frequency = t.Literal["none", "daily", "weekly", "monthly", "yearly"]
EndType = t.Literal["never", "count", "until"]


class RecurrenceEndModel(BaseModel):
    """End condition: never, after ``count`` occurrences, or ``until`` a date."""
    kind: EndType = "never"
    count: t.Optional[int] = Field(default=None, ge=1)
    until: str = ""  # "YYYY-MM-DD"


class RecurrenceRuleModel(BaseModel):
    """
    Repeat rule like:
    - every 2 weeks on Monday and Wednesday, 10 times
    """
    frequency: Frequency = "none"
    interval: int = Field(default=1, ge=1)
    days_of_week: list[str] = Field(default_factory=list)  # ["monday", "wednesday"]
    end: RecurrenceEndModel = Field(default_factory=RecurrenceEndModel)


class TaskModel(BaseModel):
    """A task or event; may be a recurring master."""
    id: str = ""
    title: str = Field(min_length=1)
    due: str = ""  # ISO datetime
    priority: Priority = "medium"
    category: str = ""
    task_type: TaskType = "academic"
    description: str = ""
    completed: bool = False
    recurrence: t.Optional[RecurrenceRuleModel] = None
    completion_overrides: dict[str, bool] = Field(default_factory=dict)


class OccurrenceModel(BaseModel):
    """One date-bound instance of a task inside a window."""
    id: str
    master_id: str
    date_key: str
    title: str
    due: str
    priority: Priority
    category: str
    task_type: TaskType
    description: str
    completed: bool
    is_recurring_instance: bool = False


class TimetableEntryModel(BaseModel):
    """A weekly class meeting through a semester."""
    id: str = ""
    course_name: str = Field(min_length=1)
    course_code: str = ""
    instructor: str = ""
    location: str = ""
    start_time: str = "09:00"  # "HH:MM" 24h
    end_time: str = "10:00"    # "HH:MM" 24h
    days_of_week: list[str] = Field(default_factory=list)
    semester_start: str = ""   # "YYYY-MM-DD"
    semester_end: str = ""     # "YYYY-MM-DD"
    color: str = Field(default="#3b82f6", pattern=r"^#[0-9A-Fa-f]{6}$")


class SuggestionModel(BaseModel):
    """A heuristic suggestion."""
    id: str
    kind: str
    title: str
    description: str
    priority: Priority
    confidence: float
    reasoning: str
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    subject: str = ""
    suggested_time: str = ""
    duration_minutes: int = 0


# Request/Response Models for API endpoints
class CreateTaskRequest(BaseModel):
    """Request model for creating a task."""
    title: str = Field(min_length=1)
    due: str = ""
    priority: Priority = "medium"
    category: str = ""
    task_type: TaskType = "academic"
    description: str = ""
    recurrence: t.Optional[RecurrenceRuleModel] = None


class UpdateTaskRequest(BaseModel):
    """Request model for editing a task; only the fields sent are changed."""
    title: t.Optional[str] = Field(default=None, min_length=1)
    due: t.Optional[str] = None
    priority: t.Optional[Priority] = None
    category: t.Optional[str] = None
    task_type: t.Optional[TaskType] = None
    description: t.Optional[str] = None
    completed: t.Optional[bool] = None
    recurrence: t.Optional[RecurrenceRuleModel] = None


class ExpandTasksRequest(BaseModel):
    """Request model for expanding tasks into occurrences for a window."""
    tasks: list[TaskModel]
    window_start: str
    window_end: str


class CreateTimetableEntryRequest(BaseModel):
    """Request model for adding a timetable entry."""
    course_name: str = Field(min_length=1)
    course_code: str = ""
    instructor: str = ""
    location: str = ""
    start_time: str = "09:00"
    end_time: str = "10:00"
    days_of_week: list[str] = Field(default_factory=list)
    semester_start: str = ""
    semester_end: str = ""
    color: str = Field(default="#3b82f6", pattern=r"^#[0-9A-Fa-f]{6}$")


class ExportTimetableRequest(BaseModel):
    """Request model for an .ics export. Stored entries are used when ``entries`` is omitted."""
    entries: t.Optional[list[TimetableEntryModel]] = None
    timezone: t.Optional[str] = None


class ImportIcsRequest(BaseModel):
    """Request model for importing an .ics document."""
    ics: str
    save: bool = True


class ImportIcsResponse(BaseModel):
    """Response model for an .ics import."""
    tasks: list[TaskModel] = Field(default_factory=list)
    timetable_entries: list[TimetableEntryModel] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class QuickTaskRequest(BaseModel):
    """Request model for a one-line quick entry."""
    text: str = Field(min_length=1)


class SuggestionRequest(BaseModel):
    """Request model for the suggestion backend."""
    title: str = ""
    subject: str = ""
    task_type: TaskType = "academic"
    tasks: list[TaskModel] = Field(default_factory=list)
    now: str = ""  # ISO datetime, server time when empty
    recent_study_minutes: int = Field(default=0, ge=0)
    enable_break_reminders: bool = True
    limit: int = Field(default=5, ge=1, le=20)


class SuggestionResponse(BaseModel):
    """Response model for the suggestion backend."""
    suggestions: list[SuggestionModel] = Field(default_factory=list)


class ShowAgendaResponse(BaseModel):
    """Response model for the formatted agenda display."""
    formatted_agenda: str


class ShowTimetableResponse(BaseModel):
    """Response model for the formatted timetable display."""
    formatted_timetable: str


def recurrence_from_model(model: t.Optional[RecurrenceRuleModel]) -> t.Optional[RecurrenceRule]:
    if model is None:
        return None
    return RecurrenceRule(
        frequency=model.frequency,
        interval=model.interval,
        days_of_week=list(model.days_of_week),
        end=RecurrenceEnd(kind=model.end.kind, count=model.end.count, until=model.end.until),
    )


def task_from_model(model: TaskModel) -> Task:
    """Convert a wire task to the dataclass. Raises ValueError on an invalid rule."""
    return Task(
        id=model.id,
        title=model.title,
        due=model.due,
        priority=model.priority,
        category=model.category,
        task_type=model.task_type,
        description=model.description,
        completed=model.completed,
        recurrence=recurrence_from_model(model.recurrence),
        completion_overrides=dict(model.completion_overrides),
    )


def task_to_model(task: Task) -> TaskModel:
    return TaskModel.model_validate(asdict(task))


def occurrence_to_model(occurrence: Occurrence) -> OccurrenceModel:
    return OccurrenceModel.model_validate(asdict(occurrence))


def timetable_entry_from_model(model: t.Union[TimetableEntryModel, CreateTimetableEntryRequest]) -> TimetableEntry:
    return TimetableEntry(id=getattr(model, "id", ""), **model.model_dump(exclude={"id"}))


def timetable_entry_to_model(entry: TimetableEntry) -> TimetableEntryModel:
    return TimetableEntryModel.model_validate(asdict(entry))


def suggestion_to_model(suggestion: Suggestion) -> SuggestionModel:
    return SuggestionModel.model_validate(asdict(suggestion))


def suggestion_from_model(model: SuggestionModel) -> Suggestion:
    return Suggestion(**model.model_dump())


def import_to_response(result: IcsImport) -> ImportIcsResponse:
    return ImportIcsResponse(
        tasks=[task_to_model(task) for task in result.tasks],
        timetable_entries=[timetable_entry_to_model(entry) for entry in result.timetable_entries],
        warnings=list(result.warnings),
    )
