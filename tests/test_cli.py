"""Tests for the planner command line."""
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from planner_cli.run import cli

TASKS = [
    {
        "id": "lecture",
        "title": "Calculus notes",
        "due": "2025-01-06T09:00:00",
        "priority": "high",
        "recurrence": {"frequency": "weekly", "days_of_week": ["monday", "wednesday"]},
    },
    {"id": "essay", "title": "Submit essay", "due": "2025-01-09T23:59:00"},
]

TIMETABLE = [
    {
        "id": "calc-101",
        "course_name": "Calculus I",
        "course_code": "MATH101",
        "start_time": "10:00",
        "end_time": "11:30",
        "days_of_week": ["monday", "wednesday"],
        "semester_start": "2025-01-06",
        "semester_end": "2025-04-30",
    }
]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _write(path: Path, data: object) -> str:
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_agenda_lists_occurrences(runner: CliRunner, tmp_path: Path) -> None:
    tasks = _write(tmp_path / "tasks.json", TASKS)

    result = runner.invoke(cli, ["agenda", tasks, "--start", "2025-01-06", "--end", "2025-01-12"])

    assert result.exit_code == 0, result.output
    assert "Mon 01/06 09:00" in result.output
    assert "Wed 01/08 09:00" in result.output
    assert "Mon 01/13" not in result.output
    assert "Submit essay" in result.output
    assert "Every week on Monday and Wednesday" in result.output


def test_agenda_rejects_invalid_json(runner: CliRunner, tmp_path: Path) -> None:
    tasks = _write(tmp_path / "tasks.json", [{"id": "x", "title": ""}])

    result = runner.invoke(cli, ["agenda", tasks])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_export_writes_ics_file(runner: CliRunner, tmp_path: Path) -> None:
    timetable = _write(tmp_path / "timetable.json", TIMETABLE)

    result = runner.invoke(cli, [
        "export-ics", timetable,
        "--timezone", "America/New_York",
        "--output-dir", str(tmp_path / "out"),
        "--filename", "classes.ics",
    ])

    assert result.exit_code == 0, result.output
    content = (tmp_path / "out" / "classes.ics").read_text(encoding="utf-8")
    assert "BYDAY=MO,WE" in content


def test_export_of_empty_timetable_fails(runner: CliRunner, tmp_path: Path) -> None:
    timetable = _write(tmp_path / "timetable.json", [])

    result = runner.invoke(cli, ["export-ics", timetable, "--output-dir", str(tmp_path)])

    assert result.exit_code == 1
    assert "Error" in result.output
    assert list(tmp_path.glob("*.ics")) == []


def test_import_ics_round_trip(runner: CliRunner, tmp_path: Path) -> None:
    timetable = _write(tmp_path / "timetable.json", TIMETABLE)
    tasks = _write(tmp_path / "tasks.json", TASKS[1:])
    runner.invoke(cli, [
        "export-ics", timetable, "--tasks", tasks,
        "--timezone", "America/New_York", "--output-dir", str(tmp_path), "--filename", "all.ics",
    ])

    result = runner.invoke(cli, ["import-ics", str(tmp_path / "all.ics"), "--output", str(tmp_path / "imported.json")])

    assert result.exit_code == 0, result.output
    imported = json.loads((tmp_path / "imported.json").read_text(encoding="utf-8"))
    assert [task["title"] for task in imported] == ["Submit essay"]


def test_quick_prints_draft_as_json(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["quick", "--json", "Study", "math", "exam", "tomorrow"])

    assert result.exit_code == 0, result.output
    assert '"category": "Mathematics"' in result.output
    assert '"priority": "high"' in result.output


def test_offline_suggestions(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["suggest", "--offline", "--title", "Group project"])

    assert result.exit_code == 0, result.output
    assert "milestones" in result.output


def test_tools_lists_gateway_tools(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["tools"])

    assert result.exit_code == 0, result.output
    assert "planner_server" in result.output
    assert "create_task" in result.output
    assert "suggest_for_task" in result.output


def test_export_reports_skipped_classes(runner: CliRunner, tmp_path: Path) -> None:
    undated = dict(TIMETABLE[0], id="seminar", course_name="Seminar", semester_start="", semester_end="")
    timetable = _write(tmp_path / "timetable.json", TIMETABLE + [undated])

    result = runner.invoke(cli, [
        "export-ics", timetable, "--timezone", "America/New_York", "--output-dir", str(tmp_path),
    ])

    assert result.exit_code == 0, result.output
    assert "1 class(es)" in result.output
    assert "1 skipped" in result.output
