"""Parse one-line quick entries like 'Study math exam tomorrow' into draft tasks."""
from __future__ import annotations

import re
import typing as t
from dataclasses import dataclass
from datetime import datetime, timedelta

from planner_server.models import Task


@dataclass(frozen=True)
class QuickPattern:
    pattern: t.Pattern[str]
    task_type: t.Optional[str] = None
    subject: t.Optional[str] = None
    priority: t.Optional[str] = None
    days_from_now: t.Optional[int] = None
    extract_due: bool = False


def _p(expression: str, **kwargs: t.Any) -> QuickPattern:
    return QuickPattern(re.compile(expression, re.IGNORECASE), **kwargs)


# Applied in order; later matches override earlier ones
TASK_PATTERNS: list[QuickPattern] = [
    _p(r"\b(study|read|review)\b", task_type="academic", subject="General", priority="medium"),
    _p(r"\b(exam|test|quiz)\b", task_type="academic", priority="high"),
    _p(r"\b(homework|assignment|project)\b", task_type="academic", priority="medium"),
    _p(r"\b(research|paper|essay)\b", task_type="academic", priority="medium"),
    _p(r"\b(math|calculus|algebra|geometry)\b", subject="Mathematics"),
    _p(r"\b(science|physics|chemistry|biology)\b", subject="Science"),
    _p(r"\b(english|literature|writing|essay)\b", subject="English"),
    _p(r"\b(history|social studies|geography)\b", subject="History"),
    _p(r"\b(computer|programming|coding)\b", subject="Computer Science"),
    _p(r"\b(urgent|asap|important|critical)\b", priority="high"),
    _p(r"\b(optional|maybe|someday|later)\b", priority="low"),
    _p(r"\b(today|now)\b", days_from_now=0),
    _p(r"\btomorrow\b", days_from_now=1),
    _p(r"\b(next week|later)\b", days_from_now=7),
    _p(r"\bdue (.+)", extract_due=True),
]


@dataclass
class QuickTaskDraft:
    """Fields inferred from a quick entry, ready to become a Task."""
    title: str
    priority: str = "medium"
    task_type: str = "academic"
    subject: str = ""
    due: str = ""
    description: str = ""
    reminder: bool = False

    def to_task(self, task_id: str = "") -> Task:
        return Task(
            id=task_id,
            title=self.title,
            due=self.due,
            priority=self.priority,
            category=self.subject,
            task_type=self.task_type,
            description=self.description,
        )


def parse_quick_task(text: str, now: t.Optional[datetime] = None) -> QuickTaskDraft:
    """Infer type, subject, priority and due date from a quick entry.

    Defaults: academic, medium priority, due tomorrow. A 'due ...' phrase is
    cut from the title. Reminders are on for high-priority or same-day tasks.

    :raises ValueError: If the text is blank.
    """
    original = text.strip()
    if not original:
        raise ValueError("Quick entry is empty")

    now = now or datetime.now()
    title = original
    priority = "medium"
    task_type = "academic"
    subject = ""
    days_from_now = 1

    for rule in TASK_PATTERNS:
        match = rule.pattern.search(title)
        if not match:
            continue
        task_type = rule.task_type or task_type
        subject = rule.subject or subject
        priority = rule.priority or priority
        if rule.days_from_now is not None:
            days_from_now = rule.days_from_now
        if rule.extract_due:
            due_text = match.group(1).lower()
            if "today" in due_text:
                days_from_now = 0
            elif "tomorrow" in due_text:
                days_from_now = 1
            elif "week" in due_text:
                days_from_now = 7
            title = title.replace(match.group(0), "")

    title = re.sub(r"\s+", " ", title).strip()
    if len(title) < 3:
        title = original

    description = ""
    if task_type == "academic" and subject:
        description = f"{subject} task - created via quick entry"

    return QuickTaskDraft(
        title=title,
        priority=priority,
        task_type=task_type,
        subject=subject,
        due=(now + timedelta(days=days_from_now)).isoformat(),
        description=description,
        reminder=priority == "high" or days_from_now == 0,
    )
