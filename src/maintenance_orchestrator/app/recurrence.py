"""Recurring schedule generation.

Pure functions: they read templates, assets and existing tasks, and return `TaskCreate`
drafts. Inserting drafts is the engine's job.
"""

from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, timedelta
from typing import Any

from .models import (
    Asset,
    ChecklistItem,
    Frequency,
    RecurringTaskStats,
    RecurringTemplate,
    Task,
    TaskCreate,
    TaskStatus,
    ValidationReport,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 100
DEFAULT_LOOK_AHEAD_DAYS = 30

_FIXED_OFFSETS: dict[Frequency, timedelta] = {
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(weeks=1),
    Frequency.BI_WEEKLY: timedelta(weeks=2),
}

_MONTH_OFFSETS: dict[Frequency, int] = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.BI_ANNUAL: 6,
    Frequency.ANNUAL: 12,
}

FREQUENCY_LABELS: dict[Frequency, str] = {
    Frequency.DAILY: "Every day",
    Frequency.WEEKLY: "Every week",
    Frequency.BI_WEEKLY: "Every 2 weeks",
    Frequency.MONTHLY: "Every month",
    Frequency.QUARTERLY: "Every 3 months",
    Frequency.BI_ANNUAL: "Every 6 months",
    Frequency.ANNUAL: "Every year",
    Frequency.ONE_TIME: "One-time only",
    Frequency.AS_NEEDED: "As needed",
}


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def calendar_day(value: datetime) -> date:
    return ensure_utc(value).date()


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def next_occurrence(value: datetime, frequency: Frequency | str) -> datetime | None:
    """Advance `value` by one period. None for non-recurring frequencies.

    Unknown frequency strings raise ValueError instead of silently stopping.
    """
    frequency = Frequency(frequency)
    if frequency in _FIXED_OFFSETS:
        return value + _FIXED_OFFSETS[frequency]
    if frequency in _MONTH_OFFSETS:
        return add_months(value, _MONTH_OFFSETS[frequency])
    return None


def generate_occurrences(
    start: datetime,
    end: datetime,
    frequency: Frequency | str,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[datetime]:
    """Dates from `start` (inclusive) stepping by `frequency` while `< end`.

    `max_occurrences` is a hard cap on the result length whatever the inputs are.
    """
    frequency = Frequency(frequency)
    occurrences: list[datetime] = []
    current: datetime | None = start
    while current is not None and current < end and len(occurrences) < max_occurrences:
        occurrences.append(current)
        following = next_occurrence(current, frequency)
        if following is not None and following <= current:
            break
        current = following
    return occurrences


def is_applicable(template: RecurringTemplate, asset: Asset) -> bool:
    if template.phase:
        if (asset.current_phase or "").lower() != template.phase.lower():
            return False
    if template.asset_types and asset.type not in template.asset_types:
        return False
    return True


def interpolate(text: str, asset: Asset) -> str:
    return text.replace("{assetName}", asset.name)


def build_draft(
    template: RecurringTemplate,
    asset: Asset,
    due_date: datetime,
    *,
    parent_task_id: str | None = None,
) -> TaskCreate:
    return TaskCreate(
        title=f"{interpolate(template.name, asset)} - {asset.name}",
        description=interpolate(template.description, asset),
        asset_id=asset.id,
        asset_name=asset.name,
        type=template.type,
        priority=template.priority,
        frequency=template.frequency,
        due_date=due_date,
        template_id=template.id,
        is_recurring=True,
        parent_task_id=parent_task_id,
        checklist=[ChecklistItem(text=item, completed=False) for item in template.checklist],
        notes=template.notes,
        required_tools=list(template.required_tools),
    )


def generate_recurring_tasks(
    templates: Iterable[RecurringTemplate],
    assets: Iterable[Asset],
    start: datetime,
    end: datetime,
    *,
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
) -> list[TaskCreate]:
    """One draft per occurrence for every recurring template and applicable asset."""
    asset_list = list(assets)
    drafts: list[TaskCreate] = []
    for template in templates:
        if not template.frequency.is_recurring:
            continue
        for asset in asset_list:
            if not is_applicable(template, asset):
                continue
            for due_date in generate_occurrences(
                start, end, template.frequency, max_occurrences
            ):
                drafts.append(build_draft(template, asset, due_date))
    logger.debug("recurrence event=generated drafts=%s", len(drafts))
    return drafts


def get_upcoming_recurring_tasks(
    existing_tasks: Iterable[Task],
    templates: Iterable[RecurringTemplate],
    assets: Iterable[Asset],
    look_ahead_days: int = DEFAULT_LOOK_AHEAD_DAYS,
    *,
    now: datetime | None = None,
) -> list[TaskCreate]:
    """At most one next-occurrence draft per (template, asset).

    A draft is skipped when any existing task for the same template and asset already sits
    on that calendar day, so repeated calls never produce a duplicate once drafts are stored.
    """
    now = now or utc_now()
    horizon = now + timedelta(days=look_ahead_days)
    tasks = list(existing_tasks)
    asset_list = list(assets)
    upcoming: list[TaskCreate] = []

    for template in templates:
        if not template.frequency.is_recurring:
            continue
        for asset in asset_list:
            if not is_applicable(template, asset):
                continue
            related = [
                task
                for task in tasks
                if task.template_id == template.id
                and task.asset_id == asset.id
                and task.is_recurring
            ]
            latest = max(related, key=lambda task: ensure_utc(task.due_date), default=None)
            anchor = ensure_utc(latest.due_date) if latest else now

            occurrence = next_occurrence(anchor, template.frequency)
            if occurrence is None or not occurrence < horizon:
                continue

            day = calendar_day(occurrence)
            taken = any(
                task.template_id == template.id
                and task.asset_id == asset.id
                and calendar_day(task.due_date) == day
                for task in tasks
            )
            if taken:
                continue
            upcoming.append(
                build_draft(
                    template,
                    asset,
                    occurrence,
                    parent_task_id=latest.id if latest else None,
                )
            )
    return upcoming


def next_draft_from_task(task: Task) -> TaskCreate | None:
    """Draft for the occurrence after `task`, or None when the task does not repeat."""
    following = next_occurrence(task.due_date, task.frequency)
    if following is None:
        return None
    payload = task.model_dump(include=set(TaskCreate.model_fields))
    payload.update(
        due_date=following,
        is_recurring=True,
        parent_task_id=task.id,
        checklist=[{"text": item.text, "completed": False} for item in task.checklist],
    )
    return TaskCreate.model_validate(payload)


def get_recurring_task_stats(
    tasks: Iterable[Task], *, now: datetime | None = None
) -> RecurringTaskStats:
    now = now or utc_now()
    today = calendar_day(now)
    week_ahead = now + timedelta(days=7)
    stats = RecurringTaskStats()
    for task in tasks:
        if not task.is_recurring:
            continue
        stats.total += 1
        if task.status == TaskStatus.COMPLETED:
            stats.completed += 1
            continue
        due = ensure_utc(task.due_date)
        if due < now:
            stats.overdue += 1
        if calendar_day(due) == today:
            stats.due_today += 1
        if now < due < week_ahead:
            stats.upcoming += 1
    return stats


def validate_recurring_config(config: Mapping[str, Any] | TaskCreate) -> ValidationReport:
    """Form-level check for a recurring task before it becomes a `TaskCreate`."""
    if isinstance(config, TaskCreate):
        config = config.model_dump()
    errors: list[str] = []
    try:
        recurring = Frequency(config.get("frequency") or "").is_recurring
    except ValueError:
        recurring = False
    if not recurring:
        errors.append("Frequency must be specified for recurring tasks")
    if not config.get("due_date"):
        errors.append("Due date is required")
    if not config.get("asset_id"):
        errors.append("Asset must be selected")
    if not str(config.get("title") or "").strip():
        errors.append("Task title is required")
    return ValidationReport(valid=not errors, errors=errors)


def format_frequency(frequency: Frequency | str) -> str:
    try:
        return FREQUENCY_LABELS[Frequency(frequency)]
    except ValueError:
        return str(frequency)
