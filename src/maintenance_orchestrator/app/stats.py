"""Derived task statistics. Nothing here is stored; every figure comes from current tasks."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from .models import Task, TaskPriority, TaskStats, TaskStatus, utc_now
from .recurrence import calendar_day, ensure_utc

_STATUS_FIELDS = {
    TaskStatus.PENDING: "pending",
    TaskStatus.IN_PROGRESS: "in_progress",
    TaskStatus.BLOCKED: "blocked",
    TaskStatus.COMPLETED: "completed",
}


def is_overdue(task: Task, now: datetime) -> bool:
    """Overdue is derived: due before `now` and not completed."""
    return task.status != TaskStatus.COMPLETED and ensure_utc(task.due_date) < now


def compute_task_stats(tasks: Iterable[Task], *, now: datetime | None = None) -> TaskStats:
    now = now or utc_now()
    today = calendar_day(now)
    # Calendar week runs Sunday through Saturday.
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    week_end = week_start + timedelta(days=6)

    stats = TaskStats()
    for task in tasks:
        stats.total += 1
        field = _STATUS_FIELDS[task.status]
        setattr(stats, field, getattr(stats, field) + 1)
        if is_overdue(task, now):
            stats.overdue += 1
        day = calendar_day(task.due_date)
        if day == today:
            stats.due_today += 1
        if week_start <= day <= week_end:
            stats.this_week += 1
        if task.priority == TaskPriority.HIGH:
            stats.high_priority += 1
    return stats
