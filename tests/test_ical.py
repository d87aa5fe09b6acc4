"""Tests for iCalendar export and import."""
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
from icalendar import Calendar

from planner_server.errors import EmptyExportError
from planner_server.ical import (
    PRODID,
    export_calendar,
    export_filename,
    export_timetable,
    first_occurrence,
    import_ics,
    validate_ics,
    write_ics,
)
from planner_server.models import RecurrenceEnd, RecurrenceRule, Task, TimetableEntry

NOW = datetime(2025, 1, 2, 12, 0, tzinfo=timezone.utc)
TZ = "America/New_York"


def _events(content: str) -> list:
    return Calendar.from_ical(content).walk("VEVENT")


def test_zero_entries_are_rejected() -> None:
    with pytest.raises(EmptyExportError):
        export_timetable([], tz_name=TZ, now=NOW)
    with pytest.raises(EmptyExportError):
        export_calendar(tz_name=TZ, now=NOW)


def test_one_entry_gives_one_weekly_event(calculus_class: TimetableEntry) -> None:
    """One timetable entry becomes one VEVENT whose BYDAY matches its days."""
    events = _events(export_timetable([calculus_class], tz_name=TZ, now=NOW))

    assert len(events) == 1
    event = events[0]
    rrule = event["RRULE"]
    assert rrule["FREQ"] == ["WEEKLY"]
    assert [str(day) for day in rrule["BYDAY"]] == ["MO", "WE"]
    assert str(event["SUMMARY"]) == "Calculus I (MATH101)"
    assert str(event["LOCATION"]) == "Room 204"
    assert str(event["DESCRIPTION"]) == "Instructor: Dr. Rivera"
    assert str(event["UID"]) == "timetable-calc-101@student-planner.local"


def test_event_times_are_in_the_requested_zone(calculus_class: TimetableEntry) -> None:
    event = _events(export_timetable([calculus_class], tz_name=TZ, now=NOW))[0]

    start = event.decoded("DTSTART")
    end = event.decoded("DTEND")
    assert start.replace(tzinfo=None) == datetime(2025, 1, 6, 10, 0)
    assert end.replace(tzinfo=None) == datetime(2025, 1, 6, 11, 30)
    assert event["DTSTART"].params["TZID"] == TZ


def test_until_covers_the_last_semester_day(calculus_class: TimetableEntry) -> None:
    """UNTIL is written in UTC and lands after the last class of the semester."""
    event = _events(export_timetable([calculus_class], tz_name=TZ, now=NOW))[0]

    until = event["RRULE"]["UNTIL"][0]
    assert until.tzinfo is not None
    assert until.utcoffset().total_seconds() == 0
    # 23:59:59 in New York on April 30 is already May 1 in UTC
    assert until.date() == date(2025, 5, 1)


def test_calendar_headers(calculus_class: TimetableEntry) -> None:
    calendar = Calendar.from_ical(export_timetable([calculus_class], tz_name=TZ, now=NOW))

    assert str(calendar["PRODID"]) == PRODID
    assert str(calendar["VERSION"]) == "2.0"
    assert str(calendar["X-WR-TIMEZONE"]) == TZ


def test_dtstart_moves_to_the_first_class_day(calculus_class: TimetableEntry) -> None:
    """A semester starting on Tuesday begins on the following Wednesday."""
    entry = replace(calculus_class, semester_start="2025-01-07")

    event = _events(export_timetable([entry], tz_name=TZ, now=NOW))[0]

    assert event.decoded("DTSTART").date() == date(2025, 1, 8)


def test_first_occurrence() -> None:
    assert first_occurrence(date(2025, 1, 7), ["monday"]) == date(2025, 1, 13)
    assert first_occurrence(date(2025, 1, 6), ["friday", "monday"]) == date(2025, 1, 6)
    assert first_occurrence(date(2025, 1, 6), []) is None


def test_unexportable_entries_are_skipped(calculus_class: TimetableEntry) -> None:
    """Entries without semester dates or with bad times are left out, not fatal."""
    no_dates = replace(calculus_class, id="no-dates", semester_start="", semester_end="")
    backwards = replace(calculus_class, id="backwards", start_time="12:00", end_time="11:00")

    events = _events(export_timetable([no_dates, calculus_class, backwards], tz_name=TZ, now=NOW))

    assert [str(e["UID"]) for e in events] == ["timetable-calc-101@student-planner.local"]


def test_nothing_exportable_is_rejected(calculus_class: TimetableEntry) -> None:
    with pytest.raises(EmptyExportError):
        export_timetable([replace(calculus_class, days_of_week=[])], tz_name=TZ, now=NOW)


def test_unknown_timezone_is_rejected(calculus_class: TimetableEntry) -> None:
    with pytest.raises(ValueError):
        export_timetable([calculus_class], tz_name="Mars/Olympus_Mons", now=NOW)


def test_tasks_export_with_priority_and_rule(weekly_lecture: Task) -> None:
    essay = Task(id="essay", title="Submit essay", due="2025-01-09T23:59:00", priority="low", category="English")

    events = _events(export_calendar(tasks=[weekly_lecture, essay], tz_name=TZ, now=NOW))

    by_uid = {str(e["UID"]): e for e in events}
    lecture = by_uid["task-lecture@student-planner.local"]
    assert [str(d) for d in lecture["RRULE"]["BYDAY"]] == ["MO", "WE", "FR"]
    assert int(lecture["PRIORITY"]) == 1
    assert "RRULE" not in by_uid["task-essay@student-planner.local"]
    assert int(by_uid["task-essay@student-planner.local"]["PRIORITY"]) == 9


def test_write_ics_keeps_crlf(calculus_class: TimetableEntry, tmp_path: Path) -> None:
    content = export_timetable([calculus_class], tz_name=TZ, now=NOW)

    path = write_ics(content, tmp_path)

    assert path.name == export_filename()
    assert b"\r\n" in path.read_bytes()
    assert export_filename(date(2025, 1, 6)) == "timetable_2025-01-06.ics"


def test_validate_ics_reports_missing_properties() -> None:
    text = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nBEGIN:VEVENT\r\nSUMMARY:Orphan\r\nEND:VEVENT\r\nEND:VCALENDAR\r\n"

    result = validate_ics(text)

    assert not result.is_valid
    assert any("UID" in error for error in result.errors)
    assert any("DTSTART" in error for error in result.errors)


def test_validate_ics_rejects_non_calendar_text() -> None:
    assert not validate_ics("hello").is_valid
    with pytest.raises(ValueError):
        import_ics("hello")


def test_exported_timetable_imports_back(calculus_class: TimetableEntry) -> None:
    result = import_ics(export_timetable([calculus_class], tz_name=TZ, now=NOW))

    assert result.tasks == []
    [entry] = result.timetable_entries
    assert entry.course_name == "Calculus I"
    assert entry.course_code == "MATH101"
    assert entry.instructor == "Dr. Rivera"
    assert entry.days_of_week == ["monday", "wednesday"]
    assert (entry.start_time, entry.end_time) == ("10:00", "11:30")
    assert (entry.semester_start, entry.semester_end) == ("2025-01-06", "2025-04-30")


def test_non_weekly_events_import_as_tasks() -> None:
    rule = RecurrenceRule(frequency="daily", end=RecurrenceEnd.after_count(4))
    task = Task(id="flash", title="Flashcards", due="2025-01-06T08:00:00", priority="high", recurrence=rule)

    result = import_ics(export_calendar(tasks=[task], tz_name=TZ, now=NOW))

    [imported] = result.tasks
    assert imported.title == "Flashcards"
    assert imported.task_type == "event"
    assert imported.priority == "high"
    assert imported.recurrence == rule
    assert imported.id != "flash"


def test_export_declares_its_timezone(calculus_class: TimetableEntry) -> None:
    content = export_timetable([calculus_class], tz_name=TZ, now=NOW)

    [vtimezone] = Calendar.from_ical(content).walk("VTIMEZONE")
    assert str(vtimezone["TZID"]) == TZ


def test_offset_due_dates_keep_their_instant() -> None:
    """A due date with a UTC offset is written in the export zone, not as floating time."""
    rule = RecurrenceRule(frequency="weekly", end=RecurrenceEnd.until_date("2025-01-20"))
    call = Task(id="call", title="Advisor call", due="2025-01-06T09:00:00-05:00", recurrence=rule)

    content = export_calendar(tasks=[call], tz_name="Europe/Berlin", now=NOW)
    event = _events(content)[0]

    assert event["DTSTART"].params["TZID"] == "Europe/Berlin"
    assert event.decoded("DTSTART").astimezone(timezone.utc) == datetime(2025, 1, 6, 14, 0, tzinfo=timezone.utc)
    assert event["RRULE"]["UNTIL"][0].utcoffset().total_seconds() == 0
    [imported] = import_ics(content).tasks
    assert datetime.fromisoformat(imported.due) == datetime(2025, 1, 6, 14, 0, tzinfo=timezone.utc)


def _weekly_event(rrule: str) -> str:
    return (
        "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Registrar//EN\r\n"
        "BEGIN:VEVENT\r\nUID:bio-lab\r\nDTSTAMP:20250102T120000Z\r\n"
        "DTSTART;TZID=America/New_York:20250106T140000\r\n"
        "DTEND;TZID=America/New_York:20250106T160000\r\n"
        f"RRULE:{rrule}\r\nSUMMARY:Biology Lab (BIO110)\r\n"
        "END:VEVENT\r\nEND:VCALENDAR\r\n"
    )


def test_counted_weekly_event_imports_with_a_semester_end() -> None:
    result = import_ics(_weekly_event("FREQ=WEEKLY;BYDAY=MO;COUNT=10"))

    [entry] = result.timetable_entries
    assert (entry.semester_start, entry.semester_end) == ("2025-01-06", "2025-03-10")
    assert result.warnings == []
    assert len(_events(export_timetable([entry], tz_name=TZ, now=NOW))) == 1


def test_open_ended_weekly_event_imports_with_a_warning() -> None:
    result = import_ics(_weekly_event("FREQ=WEEKLY;BYDAY=MO"))

    assert result.timetable_entries[0].semester_end == ""
    assert any("without an end" in warning for warning in result.warnings)


def test_unrepresentable_rule_is_dropped_with_a_warning() -> None:
    result = import_ics(_weekly_event("FREQ=MONTHLY;BYDAY=2MO"))

    [task] = result.tasks
    assert task.recurrence is None
    assert any("repeat rule dropped" in warning for warning in result.warnings)
