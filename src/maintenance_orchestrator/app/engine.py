"""Maintenance engine facade.

Beginner terms used in this file:
- Facade: one object that owns the registry, dependency graph, workflow catalog and
  history log, and is the only entry point callers use.
- Propagation: after a task starts, completes or disappears, every task waiting on it is
  re-evaluated so Blocked/Pending stays consistent.
- Collaborator: asset directory, notification emitter and task mirror. Their failures are
  logged and never interrupt an engine operation.
- Collaborator queue: notifications and mirror writes run on one background worker, so a
  slow database never holds the engine lock. `flush()` waits for it, `close()` drains it.
- RLock: a re-entrant lock; public methods may call each other while holding it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from . import bulk
from .catalog import builtin_recurring_templates, builtin_workflow_templates
from .collaborators import (
    AssetDirectory,
    InMemoryAssetDirectory,
    LoggingNotificationEmitter,
    NotificationEmitter,
    TaskMirror,
)
from .dependencies import DependencyGraph
from .history import TaskHistoryLog
from .models import (
    Asset,
    BulkOperationResult,
    Dependency,
    DependencyGraphView,
    DependencyType,
    DependencyValidation,
    HistoryEntry,
    HistoryEntryType,
    RecurringTaskStats,
    RecurringTemplate,
    Task,
    TaskCompletion,
    TaskCreate,
    TaskDependencies,
    TaskStats,
    TaskStatus,
    TaskUpdate,
    ValidationReport,
    WorkflowExecution,
    WorkflowExecutionResult,
    WorkflowSpec,
    WorkflowTemplate,
    utc_now,
)
from .recurrence import (
    add_months,
    calendar_day,
    ensure_utc,
    generate_recurring_tasks,
    get_recurring_task_stats,
    get_upcoming_recurring_tasks,
    next_draft_from_task,
)
from .registry import TaskRegistry, check_transition
from .settings import Settings, get_settings
from .stats import compute_task_stats, is_overdue
from .workflows import (
    ASSET_NOT_FOUND_REASON,
    ASSET_TYPE_REASON,
    INVALID_START_DATE_REASON,
    NOT_FOUND_REASON,
    WorkflowCatalog,
    applies_to,
    build_step_draft,
)

logger = logging.getLogger(__name__)

_START_DATE = TypeAdapter(datetime)


class MaintenanceEngine:
    def __init__(
        self,
        *,
        assets: AssetDirectory | None = None,
        notifier: NotificationEmitter | None = None,
        mirror: TaskMirror | None = None,
        settings: Settings | None = None,
        recurring_templates: Iterable[RecurringTemplate] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.settings = settings or get_settings()
        self.assets = assets if assets is not None else InMemoryAssetDirectory()
        self.notifier = notifier if notifier is not None else LoggingNotificationEmitter()
        self.mirror = mirror
        self._clock = clock
        self.registry = TaskRegistry(clock=clock)
        self.graph = DependencyGraph(self.registry, clock=clock)
        self.workflows = WorkflowCatalog(clock=clock)
        self.history = TaskHistoryLog(self.settings.history_limit)
        self.recurring_templates = (
            list(recurring_templates)
            if recurring_templates is not None
            else builtin_recurring_templates()
        )
        self._lock = threading.RLock()
        # One worker keeps notifications and mirror writes in the order they were queued.
        self._dispatcher = ThreadPoolExecutor(max_workers=1, thread_name_prefix="maintenance-io")
        self._closed = False

        if self.settings.seed_workflow_catalog:
            for spec in builtin_workflow_templates():
                self.workflows.create(spec)

    # Tasks

    def create_task(self, data: TaskCreate | dict[str, Any]) -> Task:
        with self._lock:
            if isinstance(data, dict):
                data = TaskCreate.model_validate(data)
            task = self.registry.create(data)
            self._record(HistoryEntryType.TASK_CREATED, task_id=task.id, asset_id=task.asset_id)
            self._mirror_upsert(task)
            self._notify(
                "task_created",
                {"task_id": task.id, "asset_id": task.asset_id, "title": task.title},
            )
            logger.info("task event=created task_id=%s asset_id=%s", task.id, task.asset_id)
            return task

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            return self.registry.get(task_id)

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return self.registry.list_all()

    def get_tasks_by_asset(self, asset_id: str) -> list[Task]:
        with self._lock:
            return self.registry.by_asset(asset_id)

    def update_task(self, task_id: str, patch: TaskUpdate | dict[str, Any]) -> Task:
        """Apply a partial patch. Status changes go through the same paths as start/complete."""
        with self._lock:
            if isinstance(patch, dict):
                patch = TaskUpdate.model_validate(patch)
            changes = patch.model_dump(exclude_unset=True)
            status = changes.pop("status", None)

            current = self.registry.get(task_id)
            if current is None:
                raise KeyError(f"Task {task_id} does not exist")
            if status is not None:
                check_transition(current, status)

            task = self.registry.update(task_id, TaskUpdate.model_validate(changes))
            if status is None or status == task.status:
                self._mirror_upsert(task)
                return task
            if status == TaskStatus.COMPLETED:
                return self.complete_task(task_id).completed_task
            if status == TaskStatus.IN_PROGRESS:
                return self.start_task(task_id)

            task = self.registry.set_status(task_id, status)
            self._mirror_upsert(task)
            # Manual Pending/Blocked is re-checked against live prerequisites.
            return self._reevaluate(task_id) or task

    def start_task(self, task_id: str) -> Task:
        """Start a task and re-evaluate its dependents.

        Starting a task whose prerequisites are unmet is recorded, but the task is put
        straight back to Blocked until they are satisfied.
        """
        with self._lock:
            task = self.registry.start(task_id)
            self._record(HistoryEntryType.TASK_STARTED, task_id=task.id, asset_id=task.asset_id)
            self._mirror_upsert(task)
            task = self._reevaluate(task_id) or task
            affected = self._propagate(task_id)
            logger.info("task event=started task_id=%s affected=%s", task_id, len(affected))
            return task

    def complete_task(self, task_id: str) -> TaskCompletion:
        """Complete a task and unblock whatever was waiting on it, in the same call."""
        with self._lock:
            current = self.registry.get(task_id)
            if current is None:
                raise KeyError(f"Task {task_id} does not exist")
            if current.status == TaskStatus.COMPLETED:
                return TaskCompletion(completed_task=current)

            task = self.registry.complete(task_id)
            self._mirror_upsert(task)
            affected = self._propagate(task_id)
            self._record(
                HistoryEntryType.TASK_COMPLETED,
                task_id=task.id,
                asset_id=task.asset_id,
                workflow_id=task.workflow_id,
                details={"affected_dependencies": affected},
            )
            self._notify(
                "task_completed",
                {"task_id": task.id, "asset_id": task.asset_id, "title": task.title},
            )
            logger.info("task event=completed task_id=%s affected=%s", task_id, len(affected))
            return TaskCompletion(
                completed_task=task,
                affected_dependencies=affected,
                completed_workflow=self._check_workflow_completion(task),
            )

    def complete_recurring_task(self, task_id: str) -> TaskCompletion:
        """Complete a recurring task and schedule its next occurrence from its own due date."""
        with self._lock:
            task = self.registry.get(task_id)
            if task is None:
                raise KeyError(f"Task {task_id} does not exist")
            if not task.is_recurring:
                raise ValueError(f"Task {task_id} is not a recurring task")
            already_completed = task.status == TaskStatus.COMPLETED

            completion = self.complete_task(task_id)
            if already_completed:
                return completion
            draft = next_draft_from_task(task)
            if draft is not None:
                completion.next_task = self.create_task(draft)
            return completion

    def delete_task(self, task_id: str) -> Task:
        with self._lock:
            if task_id not in self.registry:
                raise KeyError(f"Task {task_id} does not exist")
            orphaned = self.graph.deactivate_for_task(task_id)
            task = self.registry.delete(task_id)
            for dependent_id in orphaned:
                self._reevaluate(dependent_id)
            self._record(
                HistoryEntryType.TASK_DELETED,
                task_id=task.id,
                asset_id=task.asset_id,
                details={"released_dependents": orphaned},
            )
            self._mirror_delete(task_id)
            logger.info("task event=deleted task_id=%s released=%s", task_id, len(orphaned))
            return task

    def get_task_history(self, task_id: str) -> list[HistoryEntry]:
        with self._lock:
            return self.history.for_task(task_id)

    # Dependencies

    def add_dependency(
        self,
        dependent_id: str,
        prerequisite_id: str,
        dependency_type: DependencyType = DependencyType.FINISH_TO_START,
    ) -> tuple[DependencyValidation, Dependency | None]:
        with self._lock:
            validation, dependency = self.graph.add(dependent_id, prerequisite_id, dependency_type)
            if dependency is None:
                return validation, None
            self._record(
                HistoryEntryType.DEPENDENCY_ADDED,
                task_id=dependent_id,
                task_ids=[dependent_id, prerequisite_id],
                details={"dependency_id": dependency.id, "type": dependency.type.value},
            )
            self._reevaluate(dependent_id)
            return validation, dependency

    def remove_dependency(self, dependency_id: str) -> Dependency:
        with self._lock:
            dependency = self.graph.remove(dependency_id)
            self._record(
                HistoryEntryType.DEPENDENCY_REMOVED,
                task_id=dependency.dependent_task_id,
                task_ids=[dependency.dependent_task_id, dependency.prerequisite_task_id],
                details={"dependency_id": dependency.id},
            )
            self._reevaluate(dependency.dependent_task_id)
            return dependency

    def validate_dependency(self, dependent_id: str, prerequisite_id: str) -> DependencyValidation:
        with self._lock:
            return self.graph.validate(dependent_id, prerequisite_id)

    def get_task_dependencies(self, task_id: str) -> TaskDependencies:
        with self._lock:
            return self.graph.for_task(task_id)

    def can_start(self, task_id: str) -> bool:
        with self._lock:
            return self.graph.can_start(task_id)

    def get_dependency_graph(self) -> DependencyGraphView:
        with self._lock:
            return self.graph.view()

    # Workflows

    def get_workflow_templates(self) -> list[WorkflowSpec]:
        return builtin_workflow_templates()

    def create_workflow(self, spec: WorkflowSpec | dict[str, Any]) -> WorkflowTemplate:
        with self._lock:
            return self.workflows.create(spec)

    def get_workflow(self, workflow_id: str) -> WorkflowTemplate | None:
        with self._lock:
            return self.workflows.get(workflow_id)

    def list_workflows(self) -> list[WorkflowTemplate]:
        with self._lock:
            return self.workflows.list_all()

    def set_workflow_active(self, workflow_id: str, active: bool) -> WorkflowTemplate:
        with self._lock:
            return self.workflows.set_active(workflow_id, active)

    def execute_workflow(
        self,
        workflow_id: str,
        asset_id: str,
        trigger_data: dict[str, Any] | None = None,
    ) -> WorkflowExecutionResult:
        """Create one task per step for `asset_id` and wire their dependencies.

        Expected failures come back as `success=False` with a reason. Execution is best
        effort: tasks and edges created before an unexpected error are kept.
        """
        with self._lock:
            trigger_data = dict(trigger_data or {})
            template = self.workflows.get_active(workflow_id)
            if template is None:
                return self._workflow_rejected(workflow_id, asset_id, NOT_FOUND_REASON)
            asset = self._get_asset(asset_id)
            if asset is None:
                return self._workflow_rejected(workflow_id, asset_id, ASSET_NOT_FOUND_REASON)
            if not applies_to(template, asset):
                return self._workflow_rejected(workflow_id, asset_id, ASSET_TYPE_REASON)

            raw_start = trigger_data.get("start_date")
            try:
                start = (
                    ensure_utc(_START_DATE.validate_python(raw_start)) if raw_start else self._now()
                )
            except ValidationError:
                return self._workflow_rejected(workflow_id, asset_id, INVALID_START_DATE_REASON)

            created: list[Task] = []
            by_step: dict[int, Task] = {}
            previous: Task | None = None
            for step in template.steps:
                task = self.create_task(build_step_draft(template, step, asset, start))
                created.append(task)
                by_step[step.id] = task

                prerequisite_ids: list[str] = []
                if step.depends_on_previous and previous is not None:
                    prerequisite_ids.append(previous.id)
                for step_id in step.dependencies:
                    sibling = by_step.get(step_id)
                    if sibling is not None and sibling.id not in prerequisite_ids:
                        prerequisite_ids.append(sibling.id)
                for prerequisite_id in prerequisite_ids:
                    self.add_dependency(task.id, prerequisite_id, step.dependency_type)
                previous = task

            execution = WorkflowExecution(
                workflow_id=template.id,
                asset_id=asset.id,
                created_tasks=[task.id for task in created],
                trigger_data=trigger_data,
                executed_at=self._now(),
            )
            self._record(
                HistoryEntryType.WORKFLOW_EXECUTED,
                task_ids=execution.created_tasks,
                workflow_id=template.id,
                asset_id=asset.id,
                details={
                    "execution_id": execution.id,
                    "workflow_name": template.name,
                    "trigger_data": trigger_data,
                },
            )
            logger.info(
                "workflow event=executed workflow_id=%s asset_id=%s tasks=%s",
                template.id,
                asset.id,
                len(created),
            )
            refreshed = [self.registry.get(task.id) for task in created]
            return WorkflowExecutionResult(
                success=True,
                execution=execution,
                created_tasks=[task for task in refreshed if task is not None],
            )

    def check_workflow_triggers(self, trigger: str, asset_id: str) -> list[WorkflowTemplate]:
        """Active workflows listening for `trigger` whose conditions hold for the asset."""
        with self._lock:
            asset = self._get_asset(asset_id)
            matched = self.workflows.matching(trigger, asset, now=self._now())
            logger.info(
                "workflow event=trigger_checked trigger=%s asset_id=%s matched=%s",
                trigger,
                asset_id,
                len(matched),
            )
            return matched

    # Recurring tasks

    def get_upcoming_recurring_tasks(self, look_ahead_days: int | None = None) -> list[TaskCreate]:
        with self._lock:
            if look_ahead_days is None:
                look_ahead_days = self.settings.default_look_ahead_days
            return get_upcoming_recurring_tasks(
                self.registry.list_all(),
                self.recurring_templates,
                self._list_assets(),
                look_ahead_days,
                now=self._now(),
            )

    def generate_recurring_tasks(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        template_ids: Sequence[str] | None = None,
    ) -> list[Task]:
        """Insert every occurrence in [start, end); days already taken are skipped."""
        with self._lock:
            start = ensure_utc(start) if start else self._now()
            if end is None:
                end = add_months(start, self.settings.recurring_window_months)
            end = ensure_utc(end)
            templates = [
                template
                for template in self.recurring_templates
                if template_ids is None or template.id in template_ids
            ]
            drafts = generate_recurring_tasks(
                templates,
                self._list_assets(),
                start,
                end,
                max_occurrences=self.settings.max_occurrences,
            )
            taken = {
                (task.template_id, task.asset_id, calendar_day(task.due_date))
                for task in self.registry.list_all()
                if task.template_id
            }
            fresh: list[TaskCreate] = []
            for draft in drafts:
                key = (draft.template_id, draft.asset_id, calendar_day(draft.due_date))
                if key in taken:
                    continue
                taken.add(key)
                fresh.append(draft)
            return self._insert_generated(fresh, mode="window")

    def auto_generate_recurring_tasks(self, look_ahead_days: int | None = None) -> list[Task]:
        with self._lock:
            drafts = self.get_upcoming_recurring_tasks(look_ahead_days)
            return self._insert_generated(drafts, mode="look_ahead")

    def get_recurring_task_stats(self) -> RecurringTaskStats:
        with self._lock:
            return get_recurring_task_stats(self.registry.list_all(), now=self._now())

    # Statistics

    def get_task_stats(self) -> TaskStats:
        with self._lock:
            return compute_task_stats(self.registry.list_all(), now=self._now())

    def is_overdue(self, task: Task, now: datetime | None = None) -> bool:
        return is_overdue(task, now or self._now())

    # Bulk operations

    def validate_bulk_operation(
        self,
        operation: str | None,
        task_ids: Sequence[str] | None,
        options: dict[str, Any] | None = None,
    ) -> ValidationReport:
        return bulk.validate_bulk_operation(operation, task_ids, options)

    def execute_bulk_operation(
        self,
        operation: str | None,
        task_ids: Sequence[str] | None,
        options: dict[str, Any] | None = None,
    ) -> BulkOperationResult:
        with self._lock:
            return bulk.execute_bulk_operation(self, operation, task_ids, options)

    # Collaborator queue

    def flush(self, timeout: float | None = None) -> None:
        """Block until every notification and mirror write queued so far has run."""
        if self._closed:
            return
        self._dispatcher.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        """Drain the collaborator queue and stop its worker. Later writes are dropped."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._dispatcher.shutdown(wait=True)
        logger.info("engine event=closed")

    # Internals

    def _now(self) -> datetime:
        return self._clock()

    def _record(self, entry_type: HistoryEntryType, **fields: Any) -> HistoryEntry:
        return self.history.append(HistoryEntry(type=entry_type, timestamp=self._now(), **fields))

    def _reevaluate(self, task_id: str) -> Task | None:
        changed = self.graph.update_status(task_id)
        if changed is None:
            return None
        entry_type = (
            HistoryEntryType.TASK_BLOCKED
            if changed.status == TaskStatus.BLOCKED
            else HistoryEntryType.TASK_UNBLOCKED
        )
        self._record(
            entry_type,
            task_id=changed.id,
            asset_id=changed.asset_id,
            details={"reason": changed.blocked_reason},
        )
        self._mirror_upsert(changed)
        return changed

    def _propagate(self, task_id: str) -> list[str]:
        """Re-evaluate every dependent of `task_id`; return their ids."""
        affected: list[str] = []
        for dependency in self.graph.for_task(task_id).dependents:
            affected.append(dependency.dependent_task_id)
            self._reevaluate(dependency.dependent_task_id)
        return affected

    def _check_workflow_completion(self, task: Task) -> WorkflowTemplate | None:
        if not task.workflow_id:
            return None
        siblings = [
            other
            for other in self.registry.list_all()
            if other.workflow_id == task.workflow_id and other.asset_id == task.asset_id
        ]
        if not all(other.status == TaskStatus.COMPLETED for other in siblings):
            return None
        self._record(
            HistoryEntryType.WORKFLOW_COMPLETED,
            task_ids=[other.id for other in siblings],
            workflow_id=task.workflow_id,
            asset_id=task.asset_id,
        )
        self._notify(
            "workflow_completed",
            {"workflow_id": task.workflow_id, "asset_id": task.asset_id},
        )
        logger.info(
            "workflow event=completed workflow_id=%s asset_id=%s",
            task.workflow_id,
            task.asset_id,
        )
        return self.workflows.get(task.workflow_id)

    def _workflow_rejected(
        self, workflow_id: str, asset_id: str, reason: str
    ) -> WorkflowExecutionResult:
        logger.info(
            "workflow event=rejected workflow_id=%s asset_id=%s reason=%s",
            workflow_id,
            asset_id,
            reason,
        )
        return WorkflowExecutionResult(success=False, reason=reason)

    def _insert_generated(self, drafts: list[TaskCreate], *, mode: str) -> list[Task]:
        created = [self.create_task(draft) for draft in drafts]
        if not created:
            return created
        task_ids = [task.id for task in created]
        self._record(
            HistoryEntryType.RECURRING_TASKS_GENERATED,
            task_ids=task_ids,
            details={"count": len(created), "mode": mode},
        )
        self._notify("recurring_tasks_generated", {"count": len(created), "task_ids": task_ids})
        logger.info("recurring event=generated mode=%s count=%s", mode, len(created))
        return created

    def _get_asset(self, asset_id: str) -> Asset | None:
        try:
            return self.assets.get_asset(asset_id)
        except Exception:  # noqa: BLE001
            logger.exception("collaborator event=asset_lookup_failed asset_id=%s", asset_id)
            return None

    def _list_assets(self) -> list[Asset]:
        try:
            return list(self.assets.list_assets())
        except Exception:  # noqa: BLE001
            logger.exception("collaborator event=asset_list_failed")
            return []

    def _notify(self, event: str, payload: dict[str, Any]) -> None:
        self._dispatch(
            self.notifier.emit, event, payload, failure=f"notify_failed notification={event}"
        )

    def _mirror_upsert(self, task: Task) -> None:
        if self.mirror is None:
            return
        self._dispatch(self.mirror.upsert_task, task, failure=f"mirror_failed task_id={task.id}")

    def _mirror_delete(self, task_id: str) -> None:
        if self.mirror is None:
            return
        self._dispatch(self.mirror.delete_task, task_id, failure=f"mirror_failed task_id={task_id}")

    def _dispatch(self, fn: Callable[..., Any], *args: Any, failure: str) -> None:
        """Queue a collaborator call on the background worker; never waits for it."""
        if self._closed:
            logger.warning("collaborator event=dropped_after_close %s", failure)
            return

        def _log_failure(future: Future[Any]) -> None:
            exc = future.exception()
            if exc is not None:
                logger.error("collaborator event=%s", failure, exc_info=exc)

        self._dispatcher.submit(fn, *args).add_done_callback(_log_failure)
