"""Tests for the heuristic suggestion rules."""
from datetime import datetime

from planner_server.models import RecurrenceRule, Task
from planner_server.recurrence import set_occurrence_completion
from planner_server.suggestions import (
    KEYWORD_RULES,
    Suggestion,
    break_suggestions,
    deadline_suggestions,
    fallback_suggestions,
    generate_suggestions,
    keyword_suggestions,
    rank_suggestions,
    time_of_day_suggestions,
)

MORNING = datetime(2025, 1, 6, 9, 0)


def _suggestion(id: str, priority: str = "medium", confidence: float = 0.5) -> Suggestion:
    return Suggestion(
        id=id, kind="task", title=id, description="", priority=priority,
        confidence=confidence, reasoning="",
    )


def test_keywords_match_title_and_subject() -> None:
    suggestions = keyword_suggestions("Study for calculus exam", "Mathematics")

    assert [s.id for s in suggestions] == ["math-spaced-practice", "study-active-recall"]
    assert all(s.subject == "Mathematics" for s in suggestions)


def test_keyword_suggestions_do_not_share_tag_lists() -> None:
    suggestion = keyword_suggestions("math homework")[0]
    suggestion.tags.append("mine")

    assert "mine" not in KEYWORD_RULES[0][2].tags


def test_academic_task_without_keywords_gets_time_block() -> None:
    assert [s.id for s in keyword_suggestions("Write lab report", "Chemistry")] == ["general-academic-time-block"]
    assert keyword_suggestions("Clean room", task_type="personal") == []
    assert keyword_suggestions("", "") == []


def test_time_of_day() -> None:
    assert [s.id for s in time_of_day_suggestions(MORNING)] == ["morning-focus"]
    assert time_of_day_suggestions(datetime(2025, 1, 6, 14, 0)) == []
    assert [s.id for s in time_of_day_suggestions(datetime(2025, 1, 6, 20, 0))] == ["evening-review"]


def test_nearest_pending_deadline_is_flagged() -> None:
    tasks = [
        Task(id="later", title="Lab report", due="2025-01-06T22:00:00"),
        Task(id="soon", title="Problem set", due="2025-01-06T19:00:00", priority="high"),
        Task(id="done", title="Reading", due="2025-01-06T12:00:00", completed=True),
        Task(id="far", title="Essay", due="2025-01-10T12:00:00"),
    ]

    suggestions = deadline_suggestions(MORNING, tasks)

    assert [s.id for s in suggestions] == ["urgent-soon", "high-priority-focus"]
    assert "10 hour(s)" in suggestions[0].description


def test_recurring_deadline_uses_the_next_open_occurrence() -> None:
    rule = RecurrenceRule(frequency="daily")
    drill = Task(id="drill", title="Vocabulary drill", due="2025-01-01T18:00:00", recurrence=rule)

    [urgent] = deadline_suggestions(MORNING, [drill])

    assert urgent.id == "urgent-drill"
    assert "9 hour(s)" in urgent.description

    done_today = set_occurrence_completion(drill, "2025-01-06", True)
    assert deadline_suggestions(MORNING, [done_today]) == []


def test_deadline_checks_skip_unreadable_dates() -> None:
    tasks = [Task(id="bad", title="Mystery", due="someday")]

    assert deadline_suggestions(MORNING, tasks) == []


def test_break_reminder() -> None:
    assert [s.id for s in break_suggestions(MORNING, 120)] == ["break-needed"]
    assert break_suggestions(MORNING, 30) == []
    assert break_suggestions(MORNING, 120, enable_break_reminders=False) == []


def test_rank_dedupes_filters_and_orders() -> None:
    ranked = rank_suggestions([
        _suggestion("a", "low", 0.9),
        _suggestion("b", "high", 0.5),
        _suggestion("c", "high", 0.8),
        _suggestion("b", "high", 0.99),
        _suggestion("weak", "high", 0.1),
    ])

    assert [s.id for s in ranked] == ["c", "b", "a"]
    assert len(rank_suggestions([_suggestion(str(i)) for i in range(10)], limit=3)) == 3


def test_generate_suggestions_combines_rules() -> None:
    suggestions = generate_suggestions(MORNING, title="Study for calculus exam", subject="Mathematics")

    assert [s.id for s in suggestions] == ["study-active-recall", "morning-focus", "math-spaced-practice"]


def test_fallback_always_offers_a_first_step() -> None:
    assert [s.id for s in fallback_suggestions()] == ["fallback-first-step"]
    assert "project-milestones" in {s.id for s in fallback_suggestions("Group project")}
