"""
Heuristic task suggestions.

These are static rule tables: time-of-day checks, keyword matches on a
task's title and subject, deadline and priority checks over upcoming tasks,
and a break reminder after a long study stretch. Nothing here learns.
"""
from __future__ import annotations

import logging
import typing as t
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from planner_server.models import Task
from planner_server.recurrence import expand_occurrences, parse_timestamp

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.3
MAX_SUGGESTIONS = 5
URGENT_WITHIN_HOURS = 24
BREAK_AFTER_MINUTES = 90

_PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


@dataclass
class Suggestion:
    """A single suggestion shown next to a task or on the dashboard."""
    id: str
    kind: str  # "task", "study_time", "schedule", "break", "difficulty"
    title: str
    description: str
    priority: str
    confidence: float
    reasoning: str
    category: str = ""
    tags: list[str] = field(default_factory=list)
    subject: str = ""
    suggested_time: str = ""  # ISO datetime, "" when not time-bound
    duration_minutes: int = 0


# (keywords, fields searched, suggestion)
KEYWORD_RULES: list[tuple[tuple[str, ...], tuple[str, ...], Suggestion]] = [
    (
        ("math",),
        ("title", "subject"),
        Suggestion(
            id="math-spaced-practice",
            kind="task",
            title="Schedule spaced practice sessions",
            description="Break math topics into 30-minute practice sessions spread over several days.",
            priority="medium",
            confidence=0.85,
            reasoning="Spaced repetition works well for mathematical concepts.",
            category="academic",
            tags=["math", "practice", "spaced-repetition"],
            duration_minutes=30,
        ),
    ),
    (
        ("study", "review"),
        ("title",),
        Suggestion(
            id="study-active-recall",
            kind="study_time",
            title="Add active recall techniques",
            description="Include flashcards or practice questions in this study session.",
            priority="high",
            confidence=0.92,
            reasoning="Active recall beats passive re-reading for retention.",
            category="productivity",
            tags=["study", "active-recall", "flashcards"],
        ),
    ),
    (
        ("project", "assignment"),
        ("title",),
        Suggestion(
            id="project-milestones",
            kind="schedule",
            title="Break into smaller milestones",
            description="Split this into 3-4 smaller tasks, each with its own deadline.",
            priority="high",
            confidence=0.88,
            reasoning="Smaller pieces with deadlines avoid last-minute crunches.",
            category="productivity",
            tags=["project", "milestones", "planning"],
        ),
    ),
    (
        ("physics",),
        ("subject",),
        Suggestion(
            id="physics-concept-review",
            kind="difficulty",
            title="Start with concept review",
            description="Go over the fundamental concepts before tackling complex problems.",
            priority="medium",
            confidence=0.78,
            reasoning="Physics concepts build on each other.",
            category="academic",
            tags=["physics", "concepts", "foundation"],
        ),
    ),
]

GENERAL_ACADEMIC = Suggestion(
    id="general-academic-time-block",
    kind="study_time",
    title="Set a focused time block",
    description="Reserve a 45-90 minute focused session with short breaks for this task.",
    priority="medium",
    confidence=0.82,
    reasoning="Focused blocks reduce context switching on academic work.",
    category="productivity",
    tags=["focus", "time-block", "academic"],
    duration_minutes=60,
)


def _copy(suggestion: Suggestion, **changes: t.Any) -> Suggestion:
    return replace(suggestion, tags=list(suggestion.tags), **changes)


def time_of_day_suggestions(now: datetime) -> list[Suggestion]:
    """Morning focus and evening review prompts."""
    suggestions = []
    if 6 <= now.hour < 12:
        suggestions.append(Suggestion(
            id="morning-focus",
            kind="study_time",
            title="Start with a focused study session",
            description="Mornings suit deep work. Tackle your most challenging subject first.",
            priority="high",
            confidence=0.85,
            reasoning="Concentration is usually highest in the morning hours.",
            category="productivity",
            tags=["morning", "focus", "deep-work"],
            duration_minutes=90,
        ))
    elif now.hour >= 17:
        suggestions.append(Suggestion(
            id="evening-review",
            kind="schedule",
            title="Review today and plan tomorrow",
            description="Spend 15 minutes reviewing what you covered and lining up tomorrow's tasks.",
            priority="medium",
            confidence=0.75,
            reasoning="An evening review consolidates learning and makes the next day easier to start.",
            category="planning",
            tags=["evening", "review", "planning"],
            duration_minutes=15,
        ))
    return suggestions


def keyword_suggestions(title: str = "", subject: str = "", task_type: str = "academic") -> list[Suggestion]:
    """Suggestions matched from the task's title and subject."""
    if not title.strip() and not subject.strip():
        return []

    fields = {"title": title.lower(), "subject": subject.lower()}
    suggestions = [
        _copy(suggestion, subject=subject)
        for keywords, searched, suggestion in KEYWORD_RULES
        if any(keyword in fields[name] for keyword in keywords for name in searched)
    ]
    if not suggestions and task_type == "academic" and title.strip():
        suggestions.append(_copy(GENERAL_ACADEMIC, subject=subject))
    return suggestions


def _next_open_due(task: Task, now: datetime) -> t.Optional[datetime]:
    """Due time a deadline check should look at: the master due date, or for a
    repeating task its first open occurrence within the urgency horizon."""
    if not task.is_recurring:
        return parse_timestamp(task.due)
    horizon = now + timedelta(hours=URGENT_WITHIN_HOURS)
    for occurrence in expand_occurrences(task, now, horizon):
        if not occurrence.completed:
            return parse_timestamp(occurrence.due)
    return None


def deadline_suggestions(now: datetime, tasks: t.Iterable[Task]) -> list[Suggestion]:
    """Warn about the nearest pending deadline and pending high-priority work."""
    tasks = list(tasks)
    pending = [task for task in tasks if not task.completed]
    suggestions = []

    upcoming: list[tuple[datetime, Task]] = []
    for task in tasks:
        if not task.due or (task.completed and not task.is_recurring):
            continue
        try:
            due = _next_open_due(task, now)
        except ValueError as e:
            logger.warning("Ignoring task %s for deadline checks: %s", task.id, e)
            continue
        if due is None:
            continue
        if due.tzinfo is None and now.tzinfo is not None:
            due = due.replace(tzinfo=now.tzinfo)
        elif due.tzinfo is not None and now.tzinfo is None:
            due = due.astimezone().replace(tzinfo=None)
        if now <= due <= now + timedelta(hours=URGENT_WITHIN_HOURS):
            upcoming.append((due, task))

    if upcoming:
        due, task = min(upcoming, key=lambda item: item[0])
        hours = round((due - now).total_seconds() / 3600)
        suggestions.append(Suggestion(
            id=f"urgent-{task.id}",
            kind="task",
            title="Urgent task due soon",
            description=f'"{task.title}" is due in {hours} hour(s). Consider doing it first.',
            priority="high",
            confidence=0.9,
            reasoning=f"Due within {URGENT_WITHIN_HOURS} hours and not yet completed.",
            category="urgency",
            tags=["urgent", "deadline"],
            subject=task.category,
            suggested_time=now.isoformat(),
        ))

    high_priority = [task for task in pending if task.priority == "high"]
    if high_priority:
        suggestions.append(Suggestion(
            id="high-priority-focus",
            kind="task",
            title="Focus on high-priority tasks",
            description=f"You have {len(high_priority)} high-priority task(s) pending.",
            priority="medium",
            confidence=0.7,
            reasoning="High-priority tasks have the most impact when finished.",
            category="priority-management",
            tags=["high-priority", "impact"],
        ))
    return suggestions


def break_suggestions(
        now: datetime,
        recent_study_minutes: int = 0,
        enable_break_reminders: bool = True,
) -> list[Suggestion]:
    """Break reminder once a study stretch passes ``BREAK_AFTER_MINUTES``."""
    if not enable_break_reminders or recent_study_minutes < BREAK_AFTER_MINUTES:
        return []
    return [Suggestion(
        id="break-needed",
        kind="break",
        title="Time for a break",
        description=f"You've been studying for {recent_study_minutes} minutes. Take 10-15 minutes off.",
        priority="medium",
        confidence=0.8,
        reasoning=f"Sessions longer than {BREAK_AFTER_MINUTES} minutes lose focus.",
        category="wellness",
        tags=["break", "rest"],
        suggested_time=now.isoformat(),
        duration_minutes=15,
    )]


def rank_suggestions(
        suggestions: t.Iterable[Suggestion],
        limit: int = MAX_SUGGESTIONS,
        min_confidence: float = MIN_CONFIDENCE,
) -> list[Suggestion]:
    """Drop low-confidence and duplicate suggestions, then order by priority and confidence."""
    seen: set[str] = set()
    kept = []
    for suggestion in suggestions:
        if suggestion.confidence < min_confidence or suggestion.id in seen:
            continue
        seen.add(suggestion.id)
        kept.append(suggestion)
    kept.sort(key=lambda s: (-_PRIORITY_RANK.get(s.priority, 0), -s.confidence))
    return kept[:limit]


def generate_suggestions(
        now: datetime,
        tasks: t.Iterable[Task] = (),
        title: str = "",
        subject: str = "",
        task_type: str = "academic",
        recent_study_minutes: int = 0,
        enable_break_reminders: bool = True,
        limit: int = MAX_SUGGESTIONS,
) -> list[Suggestion]:
    """Run every rule table and return the ranked result."""
    suggestions: list[Suggestion] = []
    suggestions.extend(keyword_suggestions(title, subject, task_type))
    suggestions.extend(deadline_suggestions(now, tasks))
    suggestions.extend(time_of_day_suggestions(now))
    suggestions.extend(break_suggestions(now, recent_study_minutes, enable_break_reminders))
    return rank_suggestions(suggestions, limit=limit)


def fallback_suggestions(title: str = "", subject: str = "", limit: int = MAX_SUGGESTIONS) -> list[Suggestion]:
    """Offline suggestions for when the suggestion backend cannot be reached."""
    suggestions = keyword_suggestions(title, subject)
    suggestions.append(Suggestion(
        id="fallback-first-step",
        kind="task",
        title="Define the first small step",
        description="Write down the very first action needed to move this task forward.",
        priority="low",
        confidence=0.6,
        reasoning="A concrete first step makes starting easier.",
        category="productivity",
        tags=["planning", "fallback"],
    ))
    return rank_suggestions(suggestions, limit=limit)
