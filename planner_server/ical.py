"""
iCalendar (.ics) export and import for timetables and tasks.

Timetable entries become one weekly VEVENT each, bounded by the semester end
date. Times are written in the client's local IANA timezone unless one is
given explicitly.
"""
from __future__ import annotations

import logging
import os
import re
import typing as t
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import tzlocal
from icalendar import Calendar, Event, vRecur

from planner_server.errors import EmptyExportError
from planner_server.models import RecurrenceRule, Task, TimetableEntry, WEEKDAYS
from planner_server.recurrence import (
    BYDAY_CODES,
    build_rrule,
    parse_rrule_string,
    parse_timestamp,
    to_rrule_string,
)

logger = logging.getLogger(__name__)

PRODID = "-//Student Planner//Calendar Export//EN"
CALENDAR_NAME = "Student Planner"
UID_DOMAIN = "student-planner.local"
DEFAULT_COLOR = "#3b82f6"

PRIORITY_NUMBERS = {"high": 1, "medium": 5, "low": 9}

_COURSE_SUMMARY = re.compile(r"^(?P<name>.+?)\s*\((?P<code>[^()]+)\)\s*$")


@dataclass
class IcsValidation:
    """Outcome of checking an .ics document before import."""
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class IcsImport:
    """Tasks and timetable entries recovered from an .ics document."""
    tasks: list[Task] = field(default_factory=list)
    timetable_entries: list[TimetableEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def local_timezone_name() -> str:
    """IANA name of the zone exports are written in.

    ``PLANNER_TIMEZONE`` wins over the machine's configured zone.
    """
    configured = os.getenv("PLANNER_TIMEZONE")
    if configured:
        return configured
    return tzlocal.get_localzone_name() or "UTC"


def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz_name!r}") from e


def _clock(value: str, default: str) -> time:
    return datetime.strptime(value or default, "%H:%M").time()


def first_occurrence(semester_start: date, days_of_week: t.Iterable[str]) -> t.Optional[date]:
    """Earliest date on or after ``semester_start`` falling on one of the weekdays."""
    wanted = {WEEKDAYS.index(day.lower()) for day in days_of_week if day.lower() in WEEKDAYS}
    for offset in range(7):
        candidate = semester_start + timedelta(days=offset)
        if candidate.weekday() in wanted:
            return candidate
    return None


def _timetable_event(entry: TimetableEntry, tz: ZoneInfo, stamp: datetime) -> t.Optional[Event]:
    if not entry.semester_start or not entry.semester_end:
        logger.warning("Timetable entry %s has no semester dates, not exported", entry.id)
        return None

    semester_start = date.fromisoformat(entry.semester_start)
    semester_end = date.fromisoformat(entry.semester_end)
    days = [day for day in WEEKDAYS if day in {d.lower() for d in entry.days_of_week}]
    first = first_occurrence(semester_start, days)
    if first is None or first > semester_end:
        logger.warning("Timetable entry %s has no class day inside its semester, not exported", entry.id)
        return None

    dtstart = datetime.combine(first, _clock(entry.start_time, "09:00"), tzinfo=tz)
    dtend = datetime.combine(first, _clock(entry.end_time, "10:00"), tzinfo=tz)
    if dtend <= dtstart:
        raise ValueError(f"end time {entry.end_time} is not after start time {entry.start_time}")
    # UNTIL has to be UTC when DTSTART carries a TZID
    until = datetime.combine(semester_end, time(23, 59, 59), tzinfo=tz).astimezone(timezone.utc)

    summary = entry.course_name
    if entry.course_code:
        summary += f" ({entry.course_code})"

    event = Event()
    event.add("uid", f"timetable-{entry.id}@{UID_DOMAIN}")
    event.add("dtstamp", stamp)
    event.add("dtstart", dtstart)
    event.add("dtend", dtend)
    event.add("rrule", {"FREQ": "WEEKLY", "BYDAY": [BYDAY_CODES[day] for day in days], "UNTIL": until})
    event.add("summary", summary)
    if entry.location:
        event.add("location", entry.location)
    if entry.instructor:
        event.add("description", f"Instructor: {entry.instructor}")
    return event


def _task_event(task: Task, tz: ZoneInfo, stamp: datetime) -> t.Optional[Event]:
    if not task.due:
        return None
    due = parse_timestamp(task.due)
    # DTSTART always carries the export TZID so a UTC UNTIL stays valid
    due = due.replace(tzinfo=tz) if due.tzinfo is None else due.astimezone(tz)

    event = Event()
    event.add("uid", f"task-{task.id}@{UID_DOMAIN}")
    event.add("dtstamp", stamp)
    # Tasks are point-in-time events
    event.add("dtstart", due)
    event.add("dtend", due)
    event.add("summary", task.title)
    if task.description:
        event.add("description", task.description)
    event.add("categories", [task.task_type] + ([task.category] if task.category else []))
    event.add("priority", PRIORITY_NUMBERS.get(task.priority, 5))

    if task.is_recurring:
        recur = vRecur.from_ical(to_rrule_string(task.recurrence))
        if task.recurrence.end.kind == "until":
            until_day = date.fromisoformat(task.recurrence.end.until)
            recur["UNTIL"] = [
                datetime.combine(until_day, time(23, 59, 59), tzinfo=due.tzinfo).astimezone(timezone.utc)
            ]
        event.add("rrule", recur)
    return event


def export_calendar(
        entries: t.Sequence[TimetableEntry] = (),
        tasks: t.Sequence[Task] = (),
        tz_name: t.Optional[str] = None,
        now: t.Optional[datetime] = None,
        calendar_name: str = CALENDAR_NAME,
) -> str:
    """Export timetable entries and dated tasks as one iCalendar document.

    Entries or tasks that cannot be exported (missing semester dates, bad
    times, unparseable due dates) are logged and skipped.

    :param entries: Weekly timetable entries.
    :param tasks: Tasks; undated ones are ignored.
    :param tz_name: IANA zone for local times. Defaults to the client's zone.
    :param now: Timestamp for DTSTAMP. Defaults to the current time.
    :param calendar_name: Value for X-WR-CALNAME.
    :return: The iCalendar text with CRLF line endings.
    :raises EmptyExportError: If there is nothing to export.
    """
    if not entries and not tasks:
        raise EmptyExportError("No timetable entries or tasks to export")

    tz_name = tz_name or local_timezone_name()
    tz = _zone(tz_name)
    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)

    calendar = Calendar()
    calendar.add("prodid", PRODID)
    calendar.add("version", "2.0")
    calendar.add("calscale", "GREGORIAN")
    calendar.add("method", "PUBLISH")
    calendar.add("x-wr-calname", calendar_name)
    calendar.add("x-wr-timezone", tz_name)

    exported = 0
    for entry in entries:
        try:
            event = _timetable_event(entry, tz, stamp)
        except ValueError as e:
            logger.warning("Timetable entry %s not exported: %s", entry.id, e)
            continue
        if event is not None:
            calendar.add_component(event)
            exported += 1

    for task in tasks:
        try:
            event = _task_event(task, tz, stamp)
        except ValueError as e:
            logger.warning("Task %s not exported: %s", task.id, e)
            continue
        if event is not None:
            calendar.add_component(event)
            exported += 1

    if exported == 0:
        raise EmptyExportError("None of the given items could be exported")

    calendar.add_missing_timezones()
    logger.info("Exported %d event(s) to iCalendar in %s", exported, tz_name)
    return calendar.to_ical().decode("utf-8")


def export_timetable(
        entries: t.Sequence[TimetableEntry],
        tz_name: t.Optional[str] = None,
        now: t.Optional[datetime] = None,
) -> str:
    """Export a class timetable, one weekly VEVENT per entry.

    :raises EmptyExportError: If ``entries`` is empty or none can be exported.
    """
    if not entries:
        raise EmptyExportError("No timetable entries to export")
    return export_calendar(entries=entries, tz_name=tz_name, now=now)


def count_exported(content: str) -> tuple[int, int]:
    """Number of timetable and task events in an export."""
    uids = [str(event.get("UID", "")) for event in Calendar.from_ical(content).walk("VEVENT")]
    classes = sum(1 for uid in uids if uid.startswith("timetable-"))
    return classes, len(uids) - classes


def export_filename(today: t.Optional[date] = None) -> str:
    return f"timetable_{(today or date.today()).isoformat()}.ics"


def write_ics(content: str, directory: t.Union[str, Path] = ".", filename: t.Optional[str] = None) -> Path:
    """Write an export to disk, keeping its CRLF line endings."""
    path = Path(directory) / (filename or export_filename())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    return path


def validate_ics(text: str) -> IcsValidation:
    """Check that ``text`` is a calendar whose events carry UID, DTSTART and SUMMARY."""
    result = IcsValidation()
    stripped = text.strip()
    if not stripped.startswith("BEGIN:VCALENDAR"):
        result.errors.append("Missing BEGIN:VCALENDAR")
    if not stripped.endswith("END:VCALENDAR"):
        result.errors.append("Missing END:VCALENDAR")
    if result.errors:
        return result

    try:
        calendar = Calendar.from_ical(stripped)
    except ValueError as e:
        result.errors.append(f"Unparseable calendar: {e}")
        return result

    events = calendar.walk("VEVENT")
    if not events:
        result.warnings.append("Calendar contains no events")
    for index, event in enumerate(events, 1):
        for prop in ("UID", "DTSTART", "SUMMARY"):
            if prop not in event:
                result.errors.append(f"Event {index}: missing required property {prop}")
        for prop, message in event.errors:
            result.errors.append(f"Event {index}: invalid {prop}: {message}")
    return result


def _as_datetime(value: t.Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _priority_from_number(value: t.Any) -> str:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return "medium"
    if 1 <= number <= 4:
        return "high"
    if number >= 6:
        return "low"
    return "medium"


def _semester_end(recur: vRecur, rule: RecurrenceRule, start: datetime) -> t.Optional[str]:
    """Last class day of a weekly event, from its UNTIL or COUNT."""
    until = recur.get("UNTIL")
    if until:
        last = _as_datetime(until[0])
        if last.tzinfo is not None and start.tzinfo is not None:
            last = last.astimezone(start.tzinfo)
        return last.date().isoformat()
    if rule.end.kind == "count":
        return build_rrule(rule, start)[-1].date().isoformat()
    return None


def _timetable_entry_from_event(
        event: Event, start: datetime, end: datetime, days: list[str], semester_end: t.Optional[str],
) -> TimetableEntry:
    summary = str(event.get("SUMMARY", ""))
    match = _COURSE_SUMMARY.match(summary)
    course_name, course_code = (match.group("name"), match.group("code")) if match else (summary, "")

    description = str(event.get("DESCRIPTION", ""))
    instructor = description[len("Instructor:"):].strip() if description.startswith("Instructor:") else ""

    return TimetableEntry(
        id=str(uuid.uuid4()),
        course_name=course_name,
        course_code=course_code,
        instructor=instructor,
        location=str(event.get("LOCATION", "")),
        start_time=start.strftime("%H:%M"),
        end_time=end.strftime("%H:%M"),
        days_of_week=days,
        semester_start=start.date().isoformat(),
        semester_end=semester_end or "",
        color=DEFAULT_COLOR,
    )


def import_ics(text: str) -> IcsImport:
    """Turn an .ics document into tasks and timetable entries.

    Events repeating every week on a BYDAY list become timetable entries;
    every other event becomes a task, keeping its repeat rule when it can be
    represented and recording a warning when it cannot.

    :raises ValueError: If the document fails validation.
    """
    validation = validate_ics(text)
    if not validation.is_valid:
        raise ValueError("; ".join(validation.errors))

    result = IcsImport(warnings=list(validation.warnings))
    calendar = Calendar.from_ical(text.strip())

    for event in calendar.walk("VEVENT"):
        summary = str(event.get("SUMMARY", ""))
        start = _as_datetime(event.decoded("DTSTART"))
        end = _as_datetime(event.decoded("DTEND")) if "DTEND" in event else start
        recur = event.get("RRULE")

        recurrence = None
        if recur is not None:
            try:
                recurrence = parse_rrule_string(recur.to_ical().decode("utf-8"))
            except ValueError as e:
                result.warnings.append(f"{summary}: repeat rule dropped ({e})")

        if recurrence is not None and recurrence.frequency == "weekly" and recurrence.interval == 1 \
                and recurrence.days_of_week:
            semester_end = _semester_end(recur, recurrence, start)
            if semester_end is None:
                result.warnings.append(f"{summary}: repeats without an end, semester end left empty")
            result.timetable_entries.append(
                _timetable_entry_from_event(event, start, end, recurrence.days_of_week, semester_end)
            )
            continue

        result.tasks.append(
            Task(
                id=str(uuid.uuid4()),
                title=summary,
                due=start.isoformat(),
                priority=_priority_from_number(event.get("PRIORITY")),
                task_type="event",
                description=str(event.get("DESCRIPTION", "")),
                recurrence=recurrence,
            )
        )

    logger.info(
        "Imported %d task(s) and %d timetable entry(ies) from iCalendar",
        len(result.tasks), len(result.timetable_entries),
    )
    return result
