"""
Recurring task expansion.

Given a master task with a repeat rule and a display window, enumerate the
concrete occurrences that fall inside the window. Enumeration always starts
from the master's own due date, so the result depends only on the master,
the window and the master's completion override map.
"""
from __future__ import annotations

import logging
import os
import typing as t
from dataclasses import replace
from datetime import date, datetime, time, tzinfo

from dateutil import parser as date_parser
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, YEARLY, FR, MO, SA, SU, TH, TU, WE, rrule
from icalendar import vRecur

from planner_server.models import Occurrence, RecurrenceEnd, RecurrenceRule, Task, WEEKDAYS

logger = logging.getLogger(__name__)

# Upper bound on occurrences generated for a single master per window
MAX_OCCURRENCES = int(os.getenv("PLANNER_MAX_OCCURRENCES", "100"))

_RRULE_FREQUENCIES = {
    "daily": DAILY,
    "weekly": WEEKLY,
    "monthly": MONTHLY,
    "yearly": YEARLY,
}

# RRULE parts a RecurrenceRule can hold; anything else changes which dates repeat
_SUPPORTED_RRULE_PARTS = {"FREQ", "INTERVAL", "BYDAY", "COUNT", "UNTIL", "WKST"}

_RRULE_WEEKDAYS = dict(zip(WEEKDAYS, (MO, TU, WE, TH, FR, SA, SU)))

BYDAY_CODES = dict(zip(WEEKDAYS, ("MO", "TU", "WE", "TH", "FR", "SA", "SU")))
WEEKDAYS_BY_CODE = {code: day for day, code in BYDAY_CODES.items()}

_UNIT_NAMES = {
    "daily": "day",
    "weekly": "week",
    "monthly": "month",
    "yearly": "year",
}

WindowBound = t.Union[date, datetime, str]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing 'Z'.

    :raises ValueError: If the value is empty or not a valid timestamp.
    """
    if not value:
        raise ValueError("missing timestamp")
    try:
        return date_parser.isoparse(value)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"unparseable timestamp {value!r}: {e}") from e


def date_key(when: datetime) -> str:
    """Occurrence date key used in ids and in the override map."""
    return when.date().isoformat()


def occurrence_id(master_id: str, key: str) -> str:
    """Stable identifier for the occurrence of ``master_id`` on ``key``."""
    return f"{master_id}_{key}"


def _as_bound(value: WindowBound, tz: t.Optional[tzinfo], *, end: bool) -> datetime:
    # Plain dates cover the whole day
    if isinstance(value, str):
        value = date.fromisoformat(value) if len(value) == 10 else parse_timestamp(value)
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max if end else time.min)
    if tz is not None and value.tzinfo is None:
        return value.replace(tzinfo=tz)
    if tz is None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def build_rrule(rule: RecurrenceRule, dtstart: datetime) -> rrule:
    """Build a dateutil rrule anchored at the master's due date."""
    if not rule.repeats:
        raise ValueError("task does not repeat")

    kwargs: dict[str, t.Any] = {
        "freq": _RRULE_FREQUENCIES[rule.frequency],
        "dtstart": dtstart,
        "interval": rule.interval,
    }
    if rule.frequency == "weekly" and rule.days_of_week:
        kwargs["byweekday"] = [_RRULE_WEEKDAYS[day] for day in rule.days_of_week]

    if rule.end.kind == "count":
        kwargs["count"] = rule.end.count
    elif rule.end.kind == "until":
        until = datetime.combine(date.fromisoformat(rule.end.until), time(23, 59, 59))
        if dtstart.tzinfo is not None:
            until = until.replace(tzinfo=dtstart.tzinfo)
        kwargs["until"] = until

    return rrule(**kwargs)


def resolve_completion(task: Task, key: str) -> bool:
    """Completion flag of one occurrence: its override, else the master's flag."""
    if not task.is_recurring:
        return task.completed
    return task.completion_overrides.get(key, task.completed)


def _make_occurrence(task: Task, when: datetime) -> Occurrence:
    key = date_key(when)
    recurring = task.is_recurring
    return Occurrence(
        id=occurrence_id(task.id, key) if recurring else task.id,
        master_id=task.id,
        date_key=key,
        title=task.title,
        due=when.isoformat(),
        priority=task.priority,
        category=task.category,
        task_type=task.task_type,
        description=task.description,
        completed=resolve_completion(task, key),
        is_recurring_instance=recurring,
    )


def expand_occurrences(
        task: Task,
        window_start: WindowBound,
        window_end: WindowBound,
        max_occurrences: int = MAX_OCCURRENCES,
) -> list[Occurrence]:
    """Enumerate the occurrences of ``task`` inside an inclusive window.

    Window bounds given as dates cover whole days. Naive bounds are read in
    the master's timezone. A one-off task yields itself when it is due inside
    the window.

    :param task: The master task.
    :param window_start: First instant (or day) of the window.
    :param window_end: Last instant (or day) of the window.
    :param max_occurrences: Cap on the number of occurrences returned.
    :return: Occurrences in ascending due order.
    :raises ValueError: If the due date or the window is invalid.
    """
    due = parse_timestamp(task.due)
    start = _as_bound(window_start, due.tzinfo, end=False)
    end = _as_bound(window_end, due.tzinfo, end=True)
    if end < start:
        raise ValueError("window end is before window start")

    if not task.is_recurring:
        return [_make_occurrence(task, due)] if start <= due <= end else []

    rule = build_rrule(task.recurrence, due)
    occurrences: list[Occurrence] = []
    # inc=True keeps an occurrence that lands exactly on the window start
    for when in rule.xafter(start, count=max_occurrences, inc=True):
        if when > end:
            break
        occurrences.append(_make_occurrence(task, when))
    return occurrences


def expand_tasks(
        tasks: t.Iterable[Task],
        window_start: WindowBound,
        window_end: WindowBound,
        max_occurrences: int = MAX_OCCURRENCES,
) -> list[Occurrence]:
    """Expand many tasks into one ordered list of occurrences.

    A task whose dates or rule cannot be interpreted is logged and skipped;
    it never prevents the remaining tasks from expanding. Undated tasks have
    no place in a calendar window and are left out.
    """
    if _as_bound(window_end, None, end=True) < _as_bound(window_start, None, end=False):
        raise ValueError("window end is before window start")

    expanded: list[Occurrence] = []
    for task in tasks:
        if not task.due:
            logger.debug("Task %s has no due date, leaving it out of the window", task.id)
            continue
        try:
            expanded.extend(expand_occurrences(task, window_start, window_end, max_occurrences))
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning("Skipping task %s (%r): %s", task.id, task.title, e)

    expanded.sort(key=lambda occurrence: (parse_timestamp(occurrence.due).timestamp(), occurrence.id))
    return expanded


def set_occurrence_completion(task: Task, key: str, completed: bool) -> Task:
    """Return a copy of ``task`` with one occurrence's completion overridden.

    The master's own flag and every other override are left as they were.
    For a one-off task the task's own flag is set instead.
    """
    date.fromisoformat(key)
    if not task.is_recurring:
        return replace(task, completed=completed)
    overrides = dict(task.completion_overrides)
    overrides[key] = completed
    return replace(task, completion_overrides=overrides)


def toggle_occurrence_completion(task: Task, key: str) -> Task:
    """Flip the resolved completion flag of the occurrence on ``key``."""
    return set_occurrence_completion(task, key, not resolve_completion(task, key))


def next_occurrence(task: Task, after: t.Optional[WindowBound] = None) -> t.Optional[str]:
    """Due timestamp of the first occurrence at or after ``after`` (default: now)."""
    due = parse_timestamp(task.due)
    after_dt = _as_bound(after, due.tzinfo, end=False) if after is not None else datetime.now(tz=due.tzinfo)

    if not task.is_recurring:
        return due.isoformat() if due >= after_dt else None

    upcoming = build_rrule(task.recurrence, due).after(after_dt, inc=True)
    return upcoming.isoformat() if upcoming else None


def to_rrule_string(rule: RecurrenceRule) -> t.Optional[str]:
    """Serialize a rule to an iCalendar RRULE value, or None if it does not repeat."""
    if not rule.repeats:
        return None

    parts: dict[str, t.Any] = {"FREQ": rule.frequency.upper()}
    if rule.interval != 1:
        parts["INTERVAL"] = rule.interval
    if rule.frequency == "weekly" and rule.days_of_week:
        parts["BYDAY"] = [BYDAY_CODES[day] for day in rule.days_of_week]
    if rule.end.kind == "count":
        parts["COUNT"] = rule.end.count
    elif rule.end.kind == "until":
        parts["UNTIL"] = date.fromisoformat(rule.end.until)

    return vRecur(parts).to_ical().decode("utf-8")


def parse_rrule_string(text: str) -> RecurrenceRule:
    """Parse an RRULE value (with or without the 'RRULE:' prefix) into a rule.

    :raises ValueError: If the rule is malformed or uses a frequency or part
        (ordinal BYDAY, BYMONTHDAY, BYSETPOS, ...) a RecurrenceRule cannot hold.
    """
    value = text.strip()
    if value.upper().startswith("RRULE:"):
        value = value[len("RRULE:"):]
    try:
        recur = vRecur.from_ical(value)
    except ValueError as e:
        raise ValueError(f"Invalid RRULE {text!r}: {e}") from e

    freq = str(recur.get("FREQ", [""])[0]).lower()
    if freq not in _RRULE_FREQUENCIES:
        raise ValueError(f"Unsupported recurrence frequency in {text!r}")

    unsupported = sorted(set(key.upper() for key in recur) - _SUPPORTED_RRULE_PARTS)
    if unsupported:
        raise ValueError(f"Unsupported RRULE part(s) {', '.join(unsupported)} in {text!r}")
    if str(recur.get("WKST", ["MO"])[0]).upper() != "MO":
        raise ValueError(f"Only weeks starting on Monday are supported in {text!r}")
    if "BYDAY" in recur and freq != "weekly":
        raise ValueError(f"BYDAY is only supported for weekly rules in {text!r}")

    interval = int(recur.get("INTERVAL", [1])[0])
    days: list[str] = []
    for code in recur.get("BYDAY", []):
        day = WEEKDAYS_BY_CODE.get(str(code).upper())
        if day is None:
            raise ValueError(f"Unsupported BYDAY value {code!r} in {text!r}")
        days.append(day)

    end = RecurrenceEnd.never()
    if "COUNT" in recur:
        end = RecurrenceEnd.after_count(int(recur["COUNT"][0]))
    elif "UNTIL" in recur:
        until = recur["UNTIL"][0]
        if isinstance(until, datetime):
            until = until.date()
        end = RecurrenceEnd.until_date(until.isoformat())

    return RecurrenceRule(
        frequency=freq,
        interval=interval,
        days_of_week=days if freq == "weekly" else [],
        end=end,
    )


def _join_names(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


def describe_recurrence(rule: RecurrenceRule) -> str:
    """Human-readable description, e.g. 'Every 2 weeks on Monday and Wednesday, 5 times'."""
    if not rule.repeats:
        return "Does not repeat"

    unit = _UNIT_NAMES[rule.frequency]
    text = f"Every {unit}" if rule.interval == 1 else f"Every {rule.interval} {unit}s"
    if rule.frequency == "weekly" and rule.days_of_week:
        text += " on " + _join_names([day.capitalize() for day in rule.days_of_week])

    if rule.end.kind == "count":
        text += ", once" if rule.end.count == 1 else f", {rule.end.count} times"
    elif rule.end.kind == "until":
        text += f", until {rule.end.until}"
    return text
