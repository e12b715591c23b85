"""Pydantic models shared by the registry, dependency graph, workflows, recurrence and API.

Beginner terms used in this file:
- Model: a typed schema class used for validation/serialization.
- StrEnum: a closed set of allowed string values; anything else fails validation.
- Discriminated union: several model variants told apart by one literal field (`type`).
- Field(default_factory=...): creates a fresh default object per instance.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid4())


class TaskStatus(StrEnum):
    """Stored task lifecycle. "Overdue" is derived, never stored."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"


class TaskPriority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class TaskType(StrEnum):
    INSPECTION = "Inspection"
    MAINTENANCE = "Maintenance"
    SAFETY_CHECK = "Safety Check"
    CLEANING = "Cleaning"
    REPAIR = "Repair"
    EMERGENCY_REPAIR = "Emergency Repair"
    PLANNING = "Planning"
    DOCUMENTATION = "Documentation"


class Frequency(StrEnum):
    ONE_TIME = "One-time"
    AS_NEEDED = "As Needed"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    BI_WEEKLY = "Bi-weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    BI_ANNUAL = "Bi-annual"
    ANNUAL = "Annual"

    @classmethod
    def _missing_(cls, value: object) -> Frequency | None:
        # Older records spell the yearly cadence "Annually".
        if value == "Annually":
            return cls.ANNUAL
        return None

    @property
    def is_recurring(self) -> bool:
        return self not in (Frequency.ONE_TIME, Frequency.AS_NEEDED)


class DependencyType(StrEnum):
    FINISH_TO_START = "finish_to_start"
    START_TO_START = "start_to_start"
    FINISH_TO_FINISH = "finish_to_finish"
    START_TO_FINISH = "start_to_finish"


class HistoryEntryType(StrEnum):
    TASK_CREATED = "task_created"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_DELETED = "task_deleted"
    TASK_BLOCKED = "task_blocked"
    TASK_UNBLOCKED = "task_unblocked"
    DEPENDENCY_ADDED = "dependency_added"
    DEPENDENCY_REMOVED = "dependency_removed"
    WORKFLOW_EXECUTED = "workflow_executed"
    WORKFLOW_COMPLETED = "workflow_completed"
    RECURRING_TASKS_GENERATED = "recurring_tasks_generated"


class ChecklistItem(BaseModel):
    text: str
    completed: bool = False


class TaskCreate(BaseModel):
    """Input/draft shape for a task. Registry assigns id, status and timestamps."""

    title: str = Field(min_length=1)
    description: str = ""
    asset_id: str
    asset_name: str | None = None
    type: TaskType = TaskType.MAINTENANCE
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime
    assigned_to: str = ""
    frequency: Frequency = Frequency.ONE_TIME
    is_recurring: bool = False
    template_id: str | None = None
    workflow_id: str | None = None
    workflow_step_id: int | None = None
    parent_task_id: str | None = None
    checklist: list[ChecklistItem] = Field(default_factory=list)
    notes: str = ""
    required_tools: list[str] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    """Partial patch. Only explicitly provided fields are applied."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    type: TaskType | None = None
    priority: TaskPriority | None = None
    status: TaskStatus | None = None
    due_date: datetime | None = None
    assigned_to: str | None = None
    frequency: Frequency | None = None
    checklist: list[ChecklistItem] | None = None
    notes: str | None = None
    required_tools: list[str] | None = None


class Task(TaskCreate):
    """Canonical task record owned by the registry."""

    id: str
    status: TaskStatus = TaskStatus.PENDING
    blocked_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class Dependency(BaseModel):
    """Directed edge: `dependent_task_id` waits on `prerequisite_task_id`."""

    id: str = Field(default_factory=new_id)
    dependent_task_id: str
    prerequisite_task_id: str
    type: DependencyType = DependencyType.FINISH_TO_START
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)


class DependencyValidation(BaseModel):
    valid: bool
    error: str | None = None


class TaskDependencies(BaseModel):
    prerequisites: list[Dependency] = Field(default_factory=list)
    dependents: list[Dependency] = Field(default_factory=list)


class GraphNode(BaseModel):
    id: str
    label: str
    status: TaskStatus
    priority: TaskPriority
    type: TaskType


class GraphEdge(BaseModel):
    id: str
    # Edges point from prerequisite to dependent, in execution order.
    from_task_id: str
    to_task_id: str
    type: DependencyType


class DependencyGraphView(BaseModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


class Asset(BaseModel):
    """Asset attributes the engine reads from the asset directory."""

    id: str
    name: str
    type: str
    current_phase: str | None = None
    condition: str | None = None
    last_inspection: datetime | None = None


class RecurringTemplate(BaseModel):
    """Template for work that repeats on a fixed calendar cadence."""

    id: str
    name: str
    description: str = ""
    type: TaskType
    priority: TaskPriority = TaskPriority.MEDIUM
    frequency: Frequency
    # Only assets in this lifecycle phase receive generated work (case-insensitive).
    phase: str | None = None
    asset_types: list[str] = Field(default_factory=list)
    checklist: list[str] = Field(default_factory=list)
    required_tools: list[str] = Field(default_factory=list)
    notes: str = ""
    estimated_duration: int | None = Field(default=None, ge=0)


class RelativeDueDate(BaseModel):
    value: int = Field(ge=0)
    unit: Literal["days", "weeks", "months"] = "days"


class WorkflowStep(BaseModel):
    id: int
    title: str = Field(min_length=1)
    description: str = ""
    type: TaskType = TaskType.MAINTENANCE
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str = ""
    days_from_start: int | None = Field(default=None, ge=0)
    relative_due_date: RelativeDueDate | None = None
    depends_on_previous: bool = False
    dependencies: list[int] = Field(default_factory=list)
    dependency_type: DependencyType = DependencyType.FINISH_TO_START
    frequency: Frequency = Frequency.ONE_TIME


class AssetConditionIn(BaseModel):
    type: Literal["asset_condition"] = "asset_condition"
    value: list[str]


class AssetTypeIn(BaseModel):
    type: Literal["asset_type"] = "asset_type"
    value: list[str]


class NoRecentInspection(BaseModel):
    """True when the asset's last inspection is more than `value` days old."""

    type: Literal["has_no_recent_inspection"] = "has_no_recent_inspection"
    value: int = Field(ge=0)


WorkflowCondition = Annotated[
    AssetConditionIn | AssetTypeIn | NoRecentInspection,
    Field(discriminator="type"),
]


class WorkflowSpec(BaseModel):
    """Template definition before it is registered with the engine."""

    name: str = Field(min_length=1)
    description: str = ""
    steps: list[WorkflowStep] = Field(default_factory=list)
    triggers: list[str] = Field(default_factory=list)
    conditions: list[WorkflowCondition] = Field(default_factory=list)
    asset_types: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_step_references(self) -> WorkflowSpec:
        seen: set[int] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"duplicate workflow step id: {step.id}")
            missing = [dep for dep in step.dependencies if dep not in seen]
            if missing:
                raise ValueError(
                    f"step {step.id} depends on steps that do not precede it: {missing}"
                )
            seen.add(step.id)
        return self


class WorkflowTemplate(WorkflowSpec):
    id: str = Field(default_factory=new_id)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class WorkflowExecution(BaseModel):
    id: str = Field(default_factory=new_id)
    workflow_id: str
    asset_id: str
    created_tasks: list[str] = Field(default_factory=list)
    trigger_data: dict[str, Any] = Field(default_factory=dict)
    executed_at: datetime = Field(default_factory=utc_now)
    status: Literal["executed"] = "executed"


class WorkflowExecutionResult(BaseModel):
    success: bool
    reason: str | None = None
    execution: WorkflowExecution | None = None
    created_tasks: list[Task] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    type: HistoryEntryType
    task_id: str | None = None
    task_ids: list[str] = Field(default_factory=list)
    workflow_id: str | None = None
    asset_id: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)


class TaskCompletion(BaseModel):
    completed_task: Task
    affected_dependencies: list[str] = Field(default_factory=list)
    completed_workflow: WorkflowTemplate | None = None
    # Set only by recurring completion: the occurrence scheduled after this one.
    next_task: Task | None = None


class TaskStats(BaseModel):
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    blocked: int = 0
    completed: int = 0
    overdue: int = 0
    due_today: int = 0
    this_week: int = 0
    high_priority: int = 0


class RecurringTaskStats(BaseModel):
    total: int = 0
    overdue: int = 0
    due_today: int = 0
    upcoming: int = 0
    completed: int = 0


class ValidationReport(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class BulkOperationType(StrEnum):
    UPDATE_TASKS = "update_tasks"
    DELETE_TASKS = "delete_tasks"
    ASSIGN_TASKS = "assign_tasks"
    UPDATE_STATUS = "update_status"
    COMPLETE_TASKS = "complete_tasks"


class BulkItemResult(BaseModel):
    task_id: str
    success: bool
    error: str | None = None


class BulkOperationResult(BaseModel):
    success: bool
    results: list[BulkItemResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    total: int = 0
    processed: int = 0
