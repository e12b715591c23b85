"""Workflow templates: storage, trigger/condition matching and step scheduling.

Beginner terms used in this file:
- Trigger: a named event ("asset_created") that may start matching workflows.
- Condition: a predicate over an asset; every condition must hold for a trigger to match.
- Evaluator registry: a dict from condition type to the function that checks it.
- Step draft: the `TaskCreate` a workflow step turns into for one asset.

Running a workflow (creating tasks and wiring edges) is done by the engine, which owns the
registry and dependency graph; this module only decides what to create.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel

from .models import (
    Asset,
    AssetConditionIn,
    AssetTypeIn,
    NoRecentInspection,
    TaskCreate,
    WorkflowSpec,
    WorkflowStep,
    WorkflowTemplate,
    utc_now,
)
from .recurrence import add_months, ensure_utc, interpolate

logger = logging.getLogger(__name__)

# Days-since-inspection figure used when an asset has never been inspected.
NEVER_INSPECTED_DAYS = 999

NOT_FOUND_REASON = "Workflow not found or inactive"
ASSET_NOT_FOUND_REASON = "Asset not found"
ASSET_TYPE_REASON = "Workflow does not apply to this asset type"
INVALID_START_DATE_REASON = "Invalid start date"


@dataclass(frozen=True)
class ConditionSpec:
    # Conditions are validated against `model` before `fn` sees them.
    model: type[BaseModel]
    fn: Callable[[Any, Asset, datetime], bool]


def _asset_condition_in(condition: AssetConditionIn, asset: Asset, now: datetime) -> bool:
    return asset.condition in condition.value


def _asset_type_in(condition: AssetTypeIn, asset: Asset, now: datetime) -> bool:
    return asset.type in condition.value


def _no_recent_inspection(condition: NoRecentInspection, asset: Asset, now: datetime) -> bool:
    if asset.last_inspection is None:
        days = NEVER_INSPECTED_DAYS
    else:
        days = (now - ensure_utc(asset.last_inspection)).days
    return days > condition.value


CONDITION_EVALUATORS: dict[str, ConditionSpec] = {
    "asset_condition": ConditionSpec(model=AssetConditionIn, fn=_asset_condition_in),
    "asset_type": ConditionSpec(model=AssetTypeIn, fn=_asset_type_in),
    "has_no_recent_inspection": ConditionSpec(
        model=NoRecentInspection, fn=_no_recent_inspection
    ),
}


def evaluate_condition(
    condition: BaseModel | Mapping[str, Any],
    asset: Asset | None,
    *,
    now: datetime | None = None,
) -> bool:
    """Check one condition, given as a model or a raw dict, against an asset.

    Missing assets never satisfy a condition. An unknown condition type raises ValueError;
    a malformed payload raises pydantic's ValidationError.
    """
    payload = dict(condition) if isinstance(condition, Mapping) else condition.model_dump()
    spec = CONDITION_EVALUATORS.get(payload.get("type"))
    if spec is None:
        raise ValueError(f"Unknown condition type: {payload.get('type')!r}")
    parsed = spec.model.model_validate(payload)
    if asset is None:
        return False
    return spec.fn(parsed, asset, now or utc_now())


def calculate_step_due_date(step: WorkflowStep, start: datetime | None = None) -> datetime:
    """`days_from_start` wins over `relative_due_date`; with neither, due one day after start."""
    base = start or utc_now()
    if step.days_from_start is not None:
        return base + timedelta(days=step.days_from_start)
    if step.relative_due_date is not None:
        value = step.relative_due_date.value
        unit = step.relative_due_date.unit
        if unit == "weeks":
            return base + timedelta(weeks=value)
        if unit == "months":
            return add_months(base, value)
        return base + timedelta(days=value)
    return base + timedelta(days=1)


def build_step_draft(
    template: WorkflowTemplate,
    step: WorkflowStep,
    asset: Asset,
    start: datetime | None = None,
) -> TaskCreate:
    return TaskCreate(
        title=interpolate(step.title, asset),
        description=interpolate(step.description, asset),
        asset_id=asset.id,
        asset_name=asset.name,
        type=step.type,
        priority=step.priority,
        assigned_to=step.assigned_to,
        due_date=calculate_step_due_date(step, start),
        frequency=step.frequency,
        workflow_id=template.id,
        workflow_step_id=step.id,
    )


class WorkflowCatalog:
    """Registered workflow templates keyed by id."""

    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._workflows: dict[str, WorkflowTemplate] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._workflows)

    def create(self, spec: WorkflowSpec | dict[str, Any]) -> WorkflowTemplate:
        if isinstance(spec, dict):
            spec = WorkflowSpec.model_validate(spec)
        now = self._clock()
        template = WorkflowTemplate.model_validate(
            {**spec.model_dump(), "created_at": now, "updated_at": now}
        )
        self._workflows[template.id] = template
        logger.info(
            "workflow event=created workflow_id=%s name=%s steps=%s",
            template.id,
            template.name,
            len(template.steps),
        )
        return template.model_copy(deep=True)

    def get(self, workflow_id: str) -> WorkflowTemplate | None:
        template = self._workflows.get(workflow_id)
        return template.model_copy(deep=True) if template else None

    def get_active(self, workflow_id: str) -> WorkflowTemplate | None:
        template = self.get(workflow_id)
        if template is None or not template.is_active:
            return None
        return template

    def list_all(self) -> list[WorkflowTemplate]:
        return [template.model_copy(deep=True) for template in self._workflows.values()]

    def set_active(self, workflow_id: str, active: bool) -> WorkflowTemplate:
        template = self._workflows.get(workflow_id)
        if template is None:
            raise KeyError(f"Workflow {workflow_id} does not exist")
        updated = template.model_copy(update={"is_active": active, "updated_at": self._clock()})
        self._workflows[workflow_id] = updated
        return updated.model_copy(deep=True)

    def matching(
        self, trigger: str, asset: Asset | None, *, now: datetime | None = None
    ) -> list[WorkflowTemplate]:
        """Active templates listening for `trigger` whose conditions all hold for `asset`."""
        now = now or utc_now()
        return [
            template.model_copy(deep=True)
            for template in self._workflows.values()
            if template.is_active
            and trigger in template.triggers
            and all(evaluate_condition(c, asset, now=now) for c in template.conditions)
        ]


def applies_to(template: WorkflowSpec, asset: Asset) -> bool:
    return not template.asset_types or asset.type in template.asset_types
