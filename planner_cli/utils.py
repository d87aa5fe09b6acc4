"""Utility functions for the planner CLI."""
import json
import logging
import os
import typing as t
from pathlib import Path

from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler

from planner_server.models import Task, TimetableEntry
from services.shared.models import (
    TaskModel,
    TimetableEntryModel,
    task_from_model,
    task_to_model,
    timetable_entry_from_model,
)

console = Console()
err_console = Console(stderr=True)

LOG_LEVEL = os.getenv("PLANNER_LOG_LEVEL", "WARNING")

_TASKS = TypeAdapter(list[TaskModel])
_ENTRIES = TypeAdapter(list[TimetableEntryModel])


def setup_logging(verbose: bool = False) -> None:
    """Route log records through rich. ``verbose`` forces DEBUG."""
    level = logging.DEBUG if verbose else LOG_LEVEL.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def fail(message: str) -> t.NoReturn:
    """Print an error and exit with status 1."""
    err_console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(1)


def _read_json(path: str) -> t.Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        fail(f"Could not read '{path}': {e}")


def load_tasks(path: str) -> list[Task]:
    """Load a JSON array of tasks, as returned by the task API.

    Raises:
        SystemExit: If the file is unreadable or a task is invalid.
    """
    try:
        return [task_from_model(model) for model in _TASKS.validate_python(_read_json(path))]
    except (ValidationError, ValueError) as e:
        fail(f"Invalid task list in '{path}': {e}")


def load_timetable(path: str) -> list[TimetableEntry]:
    """Load a JSON array of timetable entries.

    Raises:
        SystemExit: If the file is unreadable or an entry is invalid.
    """
    try:
        return [timetable_entry_from_model(model) for model in _ENTRIES.validate_python(_read_json(path))]
    except (ValidationError, ValueError) as e:
        fail(f"Invalid timetable in '{path}': {e}")


def dump_tasks(tasks: t.Iterable[Task]) -> str:
    return json.dumps([task_to_model(task).model_dump() for task in tasks], indent=2)


def truncate_title(title: str, max_length: int = 45) -> str:
    """Truncate title to max_length characters, adding ellipsis if needed."""
    if len(title) <= max_length:
        return title
    return title[:max_length-3] + "..."
