"""In-memory task registry: the only owner of Task records."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from .models import Task, TaskCreate, TaskStatus, TaskUpdate, new_id, utc_now

logger = logging.getLogger(__name__)

# Manual and automatic moves the lifecycle allows. Completed is terminal.
_ALLOWED_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.BLOCKED, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED},
    TaskStatus.BLOCKED: {TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED},
    TaskStatus.IN_PROGRESS: {TaskStatus.BLOCKED, TaskStatus.COMPLETED},
    TaskStatus.COMPLETED: set(),
}


class InvalidStatusTransitionError(ValueError):
    def __init__(self, task_id: str, current: TaskStatus, target: TaskStatus) -> None:
        super().__init__(f"Task {task_id} cannot move from '{current}' to '{target}'")
        self.task_id = task_id
        self.current = current
        self.target = target


def check_transition(task: Task, target: TaskStatus) -> None:
    if target == task.status:
        return
    if target not in _ALLOWED_TRANSITIONS[task.status]:
        raise InvalidStatusTransitionError(task.id, task.status, target)


class TaskRegistry:
    """Holds tasks keyed by id.

    Reads return deep copies so callers cannot mutate registry state behind its back.
    Mutating an unknown id raises KeyError; callers check existence with `get` first.
    Every timestamp the registry writes comes from `clock`.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._tasks: dict[str, Task] = {}
        self._clock = clock

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def create(self, data: TaskCreate) -> Task:
        timestamp = self._clock()
        task = Task(
            **data.model_dump(),
            id=new_id(),
            status=TaskStatus.PENDING,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._tasks[task.id] = task
        logger.debug("registry event=created task_id=%s asset_id=%s", task.id, task.asset_id)
        return task.model_copy(deep=True)

    def get(self, task_id: str) -> Task | None:
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task else None

    def list_all(self) -> list[Task]:
        return [task.model_copy(deep=True) for task in self._tasks.values()]

    def by_asset(self, asset_id: str) -> list[Task]:
        return [
            task.model_copy(deep=True) for task in self._tasks.values() if task.asset_id == asset_id
        ]

    def update(self, task_id: str, patch: TaskUpdate | dict[str, Any]) -> Task:
        current = self._require(task_id)
        if isinstance(patch, dict):
            patch = TaskUpdate.model_validate(patch)
        changes = patch.model_dump(exclude_unset=True)
        target = changes.get("status")
        if target is not None:
            check_transition(current, target)
            changes.update(self._status_side_effects(current, target))
        return self._replace(current, changes)

    def set_status(self, task_id: str, status: TaskStatus, *, reason: str | None = None) -> Task:
        current = self._require(task_id)
        check_transition(current, status)
        changes: dict[str, Any] = {"status": status, "blocked_reason": reason}
        changes.update(self._status_side_effects(current, status))
        return self._replace(current, changes)

    def start(self, task_id: str) -> Task:
        return self.set_status(task_id, TaskStatus.IN_PROGRESS)

    def complete(self, task_id: str) -> Task:
        current = self._require(task_id)
        if current.status == TaskStatus.COMPLETED:
            return current.model_copy(deep=True)
        return self.set_status(task_id, TaskStatus.COMPLETED)

    def delete(self, task_id: str) -> Task:
        task = self._tasks.pop(task_id, None)
        if task is None:
            raise KeyError(f"Task {task_id} does not exist")
        logger.debug("registry event=deleted task_id=%s", task_id)
        return task

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise KeyError(f"Task {task_id} does not exist")
        return task

    def _replace(self, current: Task, changes: dict[str, Any]) -> Task:
        changes["updated_at"] = self._clock()
        updated = current.model_copy(update=changes, deep=True)
        # model_copy skips validation; re-validate so patched values keep their types.
        updated = Task.model_validate(updated.model_dump())
        self._tasks[current.id] = updated
        return updated.model_copy(deep=True)

    def _status_side_effects(self, current: Task, target: TaskStatus) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        now = self._clock()
        if target == TaskStatus.IN_PROGRESS and current.started_at is None:
            changes["started_at"] = now
        if target == TaskStatus.COMPLETED and current.status != TaskStatus.COMPLETED:
            changes["completed_at"] = now
        if target != TaskStatus.BLOCKED:
            changes["blocked_reason"] = None
        return changes
