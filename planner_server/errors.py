"""Exceptions raised by the planner server and its clients."""


class PlannerError(Exception):
    """Base class for planner errors."""


class TaskNotFoundError(PlannerError, KeyError):
    """No task with the requested id exists."""


class TimetableEntryNotFoundError(PlannerError, KeyError):
    """No timetable entry with the requested id exists."""


class EmptyExportError(PlannerError, ValueError):
    """An iCalendar export was requested with nothing to export."""


class SuggestionServiceError(PlannerError, RuntimeError):
    """The suggestion backend could not be reached after all retries."""
