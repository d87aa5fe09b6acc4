"""
FastAPI service for planner operations.

This service exposes the task, recurrence and timetable logic from
planner_server as REST API endpoints. These are fast operations over the
in-memory store; nothing here calls out to other services.
"""
from __future__ import annotations

import logging
import typing as t
from contextlib import asynccontextmanager
from datetime import date

from fastapi import FastAPI, HTTPException, Response

from planner_server import store
from planner_server.errors import TaskNotFoundError, TimetableEntryNotFoundError
from planner_server.ical import export_filename, export_timetable, import_ics
from planner_server.quick_capture import parse_quick_task
from planner_server.recurrence import expand_tasks
from planner_server.server import format_agenda, format_timetable
from services.shared.models import (
    CreateTaskRequest,
    CreateTimetableEntryRequest,
    ExpandTasksRequest,
    ExportTimetableRequest,
    ImportIcsRequest,
    ImportIcsResponse,
    OccurrenceModel,
    QuickTaskRequest,
    ShowAgendaResponse,
    ShowTimetableResponse,
    TaskModel,
    TimetableEntryModel,
    UpdateTaskRequest,
    import_to_response,
    occurrence_to_model,
    recurrence_from_model,
    task_from_model,
    task_to_model,
    timetable_entry_from_model,
    timetable_entry_to_model,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize resources on startup and cleanup on shutdown."""
    # The store lives in memory; nothing to open or close
    yield


app = FastAPI(
    title="Planner Service",
    description="REST API for tasks, recurring occurrences and the class timetable",
    version="1.0.0",
    lifespan=lifespan,
)


def _http_error(e: Exception, action: str) -> HTTPException:
    """Maps a planner exception to an HTTP error for ``action``."""
    if isinstance(e, (TaskNotFoundError, TimetableEntryNotFoundError)):
        return HTTPException(status_code=404, detail=e.args[0] if e.args else str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=f"Error {action}: {e}")
    logger.exception("Unexpected error %s", action)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "service": "planner-service"}


@app.post("/tasks", response_model=TaskModel)
async def create_task(request: CreateTaskRequest) -> TaskModel:
    """
    Create a task, optionally with a repeat rule.

    The rule is validated before anything is stored.
    """
    try:
        task = task_from_model(TaskModel(**request.model_dump()))
        return task_to_model(store.add_task(task))
    except Exception as e:
        raise _http_error(e, "creating task")


@app.get("/tasks", response_model=list[TaskModel])
async def list_tasks(
        completed: t.Optional[bool] = None,
        task_type: t.Optional[str] = None,
        priority: t.Optional[str] = None,
        category: t.Optional[str] = None,
        due_before: t.Optional[str] = None,
        due_after: t.Optional[str] = None,
        has_recurrence: t.Optional[bool] = None,
) -> list[TaskModel]:
    """List stored tasks matching the given filters."""
    try:
        found = store.list_tasks(
            completed=completed,
            task_type=task_type,
            priority=priority,
            category=category,
            due_before=due_before,
            due_after=due_after,
            has_recurrence=has_recurrence,
        )
        return [task_to_model(task) for task in found]
    except Exception as e:
        raise _http_error(e, "listing tasks")


@app.get("/tasks/{task_id}", response_model=TaskModel)
async def get_task(task_id: str) -> TaskModel:
    try:
        return task_to_model(store.get_task(task_id))
    except Exception as e:
        raise _http_error(e, "reading task")


@app.patch("/tasks/{task_id}", response_model=TaskModel)
async def update_task(task_id: str, request: UpdateTaskRequest) -> TaskModel:
    """
    Edit a task. Only the fields present in the body change.

    Sending ``"recurrence": null`` explicitly turns a recurring task into a
    one-off task.
    """
    try:
        changes = request.model_dump(exclude_unset=True, exclude_none=True, exclude={"recurrence"})
        if "recurrence" in request.model_fields_set:
            changes["recurrence"] = recurrence_from_model(request.recurrence)
        return task_to_model(store.update_task(task_id, **changes))
    except Exception as e:
        raise _http_error(e, "updating task")


@app.delete("/tasks/{task_id}", response_model=TaskModel)
async def delete_task(task_id: str) -> TaskModel:
    try:
        return task_to_model(store.delete_task(task_id))
    except Exception as e:
        raise _http_error(e, "deleting task")


@app.post("/tasks/{task_id}/toggle", response_model=TaskModel)
async def toggle_task(task_id: str) -> TaskModel:
    """Flip the completion flag of a task."""
    try:
        return task_to_model(store.toggle_task(task_id))
    except Exception as e:
        raise _http_error(e, "toggling task")


@app.post("/tasks/{task_id}/occurrences/{date_key}/toggle", response_model=TaskModel)
async def toggle_occurrence(task_id: str, date_key: str) -> TaskModel:
    """
    Flip the completion of one occurrence of a recurring task.

    Returns the master task with its updated completion overrides.
    """
    try:
        date.fromisoformat(date_key)
        return task_to_model(store.toggle_occurrence(task_id, date_key))
    except Exception as e:
        raise _http_error(e, "toggling occurrence")


@app.get("/occurrences", response_model=list[OccurrenceModel])
async def list_occurrences(window_start: str, window_end: str) -> list[OccurrenceModel]:
    """
    List occurrences of every stored task inside a window.

    Both bounds are inclusive and accept a date or an ISO datetime.
    """
    try:
        occurrences = expand_tasks(store.list_tasks(), window_start, window_end)
        return [occurrence_to_model(occurrence) for occurrence in occurrences]
    except Exception as e:
        raise _http_error(e, "expanding occurrences")


@app.post("/occurrences/expand", response_model=list[OccurrenceModel])
async def expand_occurrences(request: ExpandTasksRequest) -> list[OccurrenceModel]:
    """
    Expand the tasks in the request body without touching the store.

    Used by clients that keep their own copy of the task list.
    """
    try:
        tasks = [task_from_model(task) for task in request.tasks]
        occurrences = expand_tasks(tasks, request.window_start, request.window_end)
        return [occurrence_to_model(occurrence) for occurrence in occurrences]
    except Exception as e:
        raise _http_error(e, "expanding occurrences")


@app.get("/agenda", response_model=ShowAgendaResponse)
async def show_agenda(window_start: str, window_end: str) -> ShowAgendaResponse:
    """
    Show occurrences in a window as a formatted table.
    """
    try:
        occurrences = expand_tasks(store.list_tasks(), window_start, window_end)
        return ShowAgendaResponse(formatted_agenda=format_agenda(occurrences))
    except Exception as e:
        raise _http_error(e, "formatting agenda")


@app.post("/timetable", response_model=TimetableEntryModel)
async def create_timetable_entry(request: CreateTimetableEntryRequest) -> TimetableEntryModel:
    try:
        entry = store.add_timetable_entry(timetable_entry_from_model(request))
        return timetable_entry_to_model(entry)
    except Exception as e:
        raise _http_error(e, "creating timetable entry")


@app.get("/timetable", response_model=list[TimetableEntryModel])
async def list_timetable_entries() -> list[TimetableEntryModel]:
    """
    List all timetable entries.

    Returns the raw list of entries as JSON objects.
    """
    return [timetable_entry_to_model(entry) for entry in store.list_timetable_entries()]


@app.delete("/timetable/{entry_id}", response_model=TimetableEntryModel)
async def delete_timetable_entry(entry_id: str) -> TimetableEntryModel:
    try:
        return timetable_entry_to_model(store.delete_timetable_entry(entry_id))
    except Exception as e:
        raise _http_error(e, "deleting timetable entry")


@app.get("/timetable/show", response_model=ShowTimetableResponse)
async def show_timetable() -> ShowTimetableResponse:
    """
    Show the timetable in a formatted display.
    """
    return ShowTimetableResponse(formatted_timetable=format_timetable(store.list_timetable_entries()))


@app.post("/timetable/export")
async def export_timetable_ics(request: ExportTimetableRequest) -> Response:
    """
    Export the timetable as an ``.ics`` attachment.

    Entries in the body are exported when given, otherwise the stored ones.
    An empty timetable is a 400.
    """
    try:
        if request.entries is None:
            entries = store.list_timetable_entries()
        else:
            entries = [timetable_entry_from_model(entry) for entry in request.entries]
        content = export_timetable(entries, tz_name=request.timezone)
    except Exception as e:
        raise _http_error(e, "exporting timetable")

    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@app.post("/calendar/import", response_model=ImportIcsResponse)
async def import_calendar(request: ImportIcsRequest) -> ImportIcsResponse:
    """
    Import an ``.ics`` document.

    Weekly events with class days become timetable entries and everything
    else becomes a task. With ``save`` the results are stored.
    """
    try:
        result = import_ics(request.ics)
        if request.save:
            result.tasks = [store.add_task(task) for task in result.tasks]
            result.timetable_entries = [store.add_timetable_entry(entry) for entry in result.timetable_entries]
        return import_to_response(result)
    except Exception as e:
        raise _http_error(e, "importing calendar")


@app.post("/quick-task", response_model=TaskModel)
async def quick_task(request: QuickTaskRequest) -> TaskModel:
    """
    Create a task from a one-line entry like 'Study math exam tomorrow'.
    """
    try:
        return task_to_model(store.add_task(parse_quick_task(request.text).to_task()))
    except Exception as e:
        raise _http_error(e, "creating quick task")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8004)
