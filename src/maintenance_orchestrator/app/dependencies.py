"""Dependency graph manager.

Edges are stored as soft-deletable `Dependency` records. The active subset, viewed as a
directed graph over task ids, is kept acyclic: every insert goes through `validate`.
Dependent status (Pending/Blocked) is derived from prerequisite status after every
mutation that can change it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from .models import (
    Dependency,
    DependencyGraphView,
    DependencyType,
    DependencyValidation,
    GraphEdge,
    GraphNode,
    Task,
    TaskDependencies,
    TaskStatus,
    utc_now,
)
from .registry import TaskRegistry

logger = logging.getLogger(__name__)

BLOCKED_REASON = "Waiting for prerequisite tasks to complete"
DUPLICATE_ERROR = "This dependency already exists"
CYCLE_ERROR = "This dependency would create a circular reference"

_STARTED = frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED})
_FINISHED = frozenset({TaskStatus.COMPLETED})

# Prerequisite statuses that let the dependent proceed, per edge type.
SATISFYING_STATUSES: dict[DependencyType, frozenset[TaskStatus]] = {
    DependencyType.FINISH_TO_START: _FINISHED,
    DependencyType.START_TO_START: _STARTED,
    DependencyType.FINISH_TO_FINISH: _FINISHED,
    DependencyType.START_TO_FINISH: _STARTED,
}


class _Color(Enum):
    WHITE = 0
    GRAY = 1
    BLACK = 2


def is_satisfied(dependency: Dependency, prerequisite: Task) -> bool:
    return prerequisite.status in SATISFYING_STATUSES[dependency.type]


class DependencyGraph:
    def __init__(
        self, registry: TaskRegistry, *, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._dependencies: dict[str, Dependency] = {}

    def get(self, dependency_id: str) -> Dependency | None:
        dependency = self._dependencies.get(dependency_id)
        return dependency.model_copy() if dependency else None

    def active(self) -> list[Dependency]:
        """Active edges whose endpoints both still exist; dangling edges count as inactive."""
        return [
            dep.model_copy()
            for dep in self._dependencies.values()
            if self._is_live(dep)
        ]

    def validate(self, dependent_id: str, prerequisite_id: str) -> DependencyValidation:
        for dep in self._dependencies.values():
            if (
                self._is_live(dep)
                and dep.dependent_task_id == dependent_id
                and dep.prerequisite_task_id == prerequisite_id
            ):
                return DependencyValidation(valid=False, error=DUPLICATE_ERROR)

        if self._would_create_cycle(dependent_id, prerequisite_id):
            return DependencyValidation(valid=False, error=CYCLE_ERROR)

        return DependencyValidation(valid=True)

    def add(
        self,
        dependent_id: str,
        prerequisite_id: str,
        dependency_type: DependencyType = DependencyType.FINISH_TO_START,
    ) -> tuple[DependencyValidation, Dependency | None]:
        for task_id in (dependent_id, prerequisite_id):
            if task_id not in self._registry:
                raise KeyError(f"Task {task_id} does not exist")

        validation = self.validate(dependent_id, prerequisite_id)
        if not validation.valid:
            logger.info(
                "dependency event=rejected dependent=%s prerequisite=%s error=%s",
                dependent_id,
                prerequisite_id,
                validation.error,
            )
            return validation, None

        dependency = Dependency(
            dependent_task_id=dependent_id,
            prerequisite_task_id=prerequisite_id,
            type=dependency_type,
            created_at=self._clock(),
        )
        self._dependencies[dependency.id] = dependency
        logger.info(
            "dependency event=added id=%s dependent=%s prerequisite=%s type=%s",
            dependency.id,
            dependent_id,
            prerequisite_id,
            dependency_type.value,
        )
        return validation, dependency.model_copy()

    def remove(self, dependency_id: str) -> Dependency:
        dependency = self._dependencies.get(dependency_id)
        if dependency is None:
            raise KeyError(f"Dependency {dependency_id} does not exist")
        dependency.is_active = False
        logger.info("dependency event=removed id=%s", dependency_id)
        return dependency.model_copy()

    def deactivate_for_task(self, task_id: str) -> list[str]:
        """Deactivate every edge touching `task_id`; return dependents that lost a prerequisite."""
        orphaned: list[str] = []
        for dep in self._dependencies.values():
            if not dep.is_active:
                continue
            if task_id in (dep.dependent_task_id, dep.prerequisite_task_id):
                dep.is_active = False
                if dep.prerequisite_task_id == task_id:
                    orphaned.append(dep.dependent_task_id)
        return orphaned

    def for_task(self, task_id: str) -> TaskDependencies:
        live = self.active()
        return TaskDependencies(
            prerequisites=[d for d in live if d.dependent_task_id == task_id],
            dependents=[d for d in live if d.prerequisite_task_id == task_id],
        )

    def can_start(self, task_id: str) -> bool:
        for dep in self.for_task(task_id).prerequisites:
            prerequisite = self._registry.get(dep.prerequisite_task_id)
            if prerequisite is not None and not is_satisfied(dep, prerequisite):
                return False
        return True

    def update_status(self, task_id: str) -> Task | None:
        """Re-derive Blocked for one task. Returns the task if its status changed.

        Any open task (Pending or In Progress) with an unmet live prerequisite becomes
        Blocked; a Blocked task whose prerequisites are all met returns to Pending.
        Completed tasks are left alone.
        """
        task = self._registry.get(task_id)
        if task is None or task.status == TaskStatus.COMPLETED:
            return None

        if not self.for_task(task_id).prerequisites:
            # Not a plain no-op: a task still held by the dependency block after losing its
            # last prerequisite is released. Manual blocks carry no such reason and stay.
            if task.status == TaskStatus.BLOCKED and task.blocked_reason == BLOCKED_REASON:
                logger.info("dependency event=unblocked task_id=%s", task_id)
                return self._registry.set_status(task_id, TaskStatus.PENDING)
            return None

        blocked = not self.can_start(task_id)
        if blocked and task.status != TaskStatus.BLOCKED:
            logger.info("dependency event=blocked task_id=%s from=%s", task_id, task.status)
            return self._registry.set_status(task_id, TaskStatus.BLOCKED, reason=BLOCKED_REASON)
        if not blocked and task.status == TaskStatus.BLOCKED:
            logger.info("dependency event=unblocked task_id=%s", task_id)
            return self._registry.set_status(task_id, TaskStatus.PENDING)
        return None

    def view(self) -> DependencyGraphView:
        nodes = [
            GraphNode(
                id=task.id,
                label=task.title,
                status=task.status,
                priority=task.priority,
                type=task.type,
            )
            for task in self._registry.list_all()
        ]
        edges = [
            GraphEdge(
                id=dep.id,
                from_task_id=dep.prerequisite_task_id,
                to_task_id=dep.dependent_task_id,
                type=dep.type,
            )
            for dep in self.active()
        ]
        return DependencyGraphView(nodes=nodes, edges=edges)

    def _is_live(self, dep: Dependency) -> bool:
        return (
            dep.is_active
            and dep.dependent_task_id in self._registry
            and dep.prerequisite_task_id in self._registry
        )

    def _would_create_cycle(self, dependent_id: str, prerequisite_id: str) -> bool:
        """Iterative three-color DFS from `dependent_id` with the proposed edge included.

        Walks "waits on" edges (dependent -> prerequisite). Reaching a GRAY node means the
        walk came back onto its own path, which is a cycle.
        """
        adjacency: dict[str, list[str]] = defaultdict(list)
        for dep in self._dependencies.values():
            if self._is_live(dep):
                adjacency[dep.dependent_task_id].append(dep.prerequisite_task_id)
        adjacency[dependent_id].append(prerequisite_id)

        color: dict[str, _Color] = defaultdict(lambda: _Color.WHITE)
        stack: list[tuple[str, int]] = [(dependent_id, 0)]
        color[dependent_id] = _Color.GRAY

        while stack:
            node, index = stack[-1]
            neighbours = adjacency[node]
            if index >= len(neighbours):
                color[node] = _Color.BLACK
                stack.pop()
                continue
            stack[-1] = (node, index + 1)
            nxt = neighbours[index]
            if color[nxt] == _Color.GRAY:
                return True
            if color[nxt] == _Color.WHITE:
                color[nxt] = _Color.GRAY
                stack.append((nxt, 0))
        return False
