from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from maintenance_orchestrator.app.dependencies import (
    BLOCKED_REASON,
    CYCLE_ERROR,
    DUPLICATE_ERROR,
    DependencyGraph,
)
from maintenance_orchestrator.app.engine import MaintenanceEngine
from maintenance_orchestrator.app.models import (
    DependencyType,
    HistoryEntryType,
    Task,
    TaskCreate,
    TaskStatus,
)
from maintenance_orchestrator.app.registry import TaskRegistry


def _assert_status_consistent(engine: MaintenanceEngine) -> None:
    """Open tasks with live prerequisites are Blocked exactly when they cannot start."""
    for task in engine.list_tasks():
        if task.status == TaskStatus.COMPLETED:
            continue
        if not engine.get_task_dependencies(task.id).prerequisites:
            continue
        assert (task.status == TaskStatus.BLOCKED) == (not engine.can_start(task.id)), task.title


def test_finish_to_start_blocks_until_prerequisite_completes(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("Pour foundation")
    b = task_factory("Frame walls")

    validation, dependency = engine.add_dependency(b.id, a.id)

    assert validation.valid is True
    assert dependency is not None
    assert engine.can_start(b.id) is False
    blocked = engine.get_task(b.id)
    assert blocked is not None
    assert blocked.status == TaskStatus.BLOCKED
    assert blocked.blocked_reason == BLOCKED_REASON

    completion = engine.complete_task(a.id)

    assert completion.affected_dependencies == [b.id]
    assert engine.can_start(b.id) is True
    unblocked = engine.get_task(b.id)
    assert unblocked is not None
    assert unblocked.status == TaskStatus.PENDING
    assert unblocked.blocked_reason is None


def test_cycle_is_rejected_and_graph_unchanged(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a, b, c = (task_factory(name) for name in ("A", "B", "C"))
    engine.add_dependency(b.id, a.id)
    engine.add_dependency(c.id, b.id)
    edges_before = engine.get_dependency_graph().edges

    validation, dependency = engine.add_dependency(a.id, c.id)

    assert validation.valid is False
    assert validation.error == CYCLE_ERROR
    assert dependency is None
    assert engine.get_dependency_graph().edges == edges_before


def test_self_dependency_is_a_cycle(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory()

    validation = engine.validate_dependency(a.id, a.id)

    assert validation.valid is False
    assert validation.error == CYCLE_ERROR


def test_duplicate_dependency_is_rejected(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    engine.add_dependency(b.id, a.id)

    validation, dependency = engine.add_dependency(b.id, a.id, DependencyType.START_TO_START)

    assert validation.error == DUPLICATE_ERROR
    assert dependency is None
    assert len(engine.get_task_dependencies(b.id).prerequisites) == 1


def test_removed_dependency_can_be_added_again(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    _, dependency = engine.add_dependency(b.id, a.id)
    assert dependency is not None

    engine.remove_dependency(dependency.id)

    assert engine.validate_dependency(b.id, a.id).valid is True


def test_start_to_start_unblocks_when_prerequisite_starts(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("Open site")
    b = task_factory("Deliver materials")
    engine.add_dependency(b.id, a.id, DependencyType.START_TO_START)
    assert engine.get_task(b.id).status == TaskStatus.BLOCKED

    engine.start_task(a.id)

    assert engine.get_task(b.id).status == TaskStatus.PENDING
    assert engine.can_start(b.id) is True


def test_finish_to_finish_waits_for_completion(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    engine.add_dependency(b.id, a.id, DependencyType.FINISH_TO_FINISH)

    engine.start_task(a.id)
    assert engine.can_start(b.id) is False

    engine.complete_task(a.id)
    assert engine.can_start(b.id) is True


def test_removing_last_prerequisite_unblocks(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    _, dependency = engine.add_dependency(b.id, a.id)
    assert engine.get_task(b.id).status == TaskStatus.BLOCKED

    engine.remove_dependency(dependency.id)

    assert engine.get_task(b.id).status == TaskStatus.PENDING
    assert engine.get_task_dependencies(b.id).prerequisites == []


def test_deleting_prerequisite_releases_dependent(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    engine.add_dependency(b.id, a.id)

    engine.delete_task(a.id)

    assert engine.get_task(b.id).status == TaskStatus.PENDING
    assert engine.get_dependency_graph().edges == []
    entry_types = [entry.type for entry in engine.get_task_history(b.id)]
    assert HistoryEntryType.TASK_UNBLOCKED in entry_types


def test_started_task_is_blocked_by_new_unmet_prerequisite(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    engine.start_task(b.id)

    validation, _ = engine.add_dependency(b.id, a.id)

    assert validation.valid is True
    blocked = engine.get_task(b.id)
    assert blocked.status == TaskStatus.BLOCKED
    assert blocked.blocked_reason == BLOCKED_REASON
    assert blocked.started_at is not None
    _assert_status_consistent(engine)

    engine.complete_task(a.id)

    assert engine.get_task(b.id).status == TaskStatus.PENDING
    _assert_status_consistent(engine)


def test_starting_a_blocked_task_keeps_it_blocked(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    engine.add_dependency(b.id, a.id)

    started = engine.start_task(b.id)

    assert started.status == TaskStatus.BLOCKED
    types = [entry.type for entry in engine.get_task_history(b.id)]
    assert types[:2] == [HistoryEntryType.TASK_BLOCKED, HistoryEntryType.TASK_STARTED]
    _assert_status_consistent(engine)


def test_manual_block_without_prerequisites_is_kept(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("Awaiting permit")

    blocked = engine.update_task(a.id, {"status": "Blocked"})

    assert blocked.status == TaskStatus.BLOCKED
    assert blocked.blocked_reason is None
    assert engine.get_task(a.id).status == TaskStatus.BLOCKED


def test_manual_block_is_lifted_when_prerequisites_are_met(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    engine.add_dependency(b.id, a.id)
    engine.complete_task(a.id)

    result = engine.update_task(b.id, {"status": "Blocked"})

    assert result.status == TaskStatus.PENDING
    _assert_status_consistent(engine)


def test_one_prerequisite_left_keeps_dependent_blocked(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A")
    b = task_factory("B")
    c = task_factory("C")
    engine.add_dependency(c.id, a.id)
    engine.add_dependency(c.id, b.id)

    engine.complete_task(a.id)
    assert engine.get_task(c.id).status == TaskStatus.BLOCKED

    engine.complete_task(b.id)
    assert engine.get_task(c.id).status == TaskStatus.PENDING


def test_status_stays_consistent_through_mixed_operations(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    tasks = [task_factory(f"T{i}") for i in range(6)]
    ids = [task.id for task in tasks]
    engine.add_dependency(ids[1], ids[0])
    engine.add_dependency(ids[2], ids[1], DependencyType.START_TO_START)
    engine.add_dependency(ids[3], ids[1])
    engine.add_dependency(ids[3], ids[2])
    _, removable = engine.add_dependency(ids[4], ids[3])
    engine.add_dependency(ids[5], ids[0], DependencyType.START_TO_FINISH)
    _assert_status_consistent(engine)

    engine.start_task(ids[0])
    _assert_status_consistent(engine)
    engine.complete_task(ids[0])
    _assert_status_consistent(engine)
    engine.start_task(ids[1])
    _assert_status_consistent(engine)
    engine.remove_dependency(removable.id)
    _assert_status_consistent(engine)
    engine.delete_task(ids[2])
    _assert_status_consistent(engine)
    engine.complete_task(ids[1])
    _assert_status_consistent(engine)

    assert engine.get_task(ids[3]).status == TaskStatus.PENDING
    assert engine.get_task(ids[4]).status == TaskStatus.PENDING


def test_graph_view_edges_point_from_prerequisite(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory("A", priority="High", type="Inspection")
    b = task_factory("B")
    _, dependency = engine.add_dependency(b.id, a.id)

    view = engine.get_dependency_graph()

    assert {node.id for node in view.nodes} == {a.id, b.id}
    node_a = next(node for node in view.nodes if node.id == a.id)
    assert node_a.label == "A"
    assert node_a.priority == "High"
    assert len(view.edges) == 1
    edge = view.edges[0]
    assert (edge.from_task_id, edge.to_task_id) == (a.id, b.id)
    assert edge.id == dependency.id
    assert edge.type == DependencyType.FINISH_TO_START


def test_unknown_tasks_raise_key_error(
    engine: MaintenanceEngine, task_factory: Callable[..., Task]
) -> None:
    a = task_factory()

    with pytest.raises(KeyError):
        engine.add_dependency(a.id, "missing")
    with pytest.raises(KeyError):
        engine.remove_dependency("missing")


def test_cycle_check_handles_long_chains_without_recursion() -> None:
    registry = TaskRegistry()
    graph = DependencyGraph(registry)
    due = datetime(2025, 1, 1, tzinfo=UTC)
    ids = [
        registry.create(TaskCreate(title=f"step {i}", asset_id="a", due_date=due)).id
        for i in range(1500)
    ]
    for previous, current in zip(ids, ids[1:]):
        validation, _ = graph.add(current, previous)
        assert validation.valid

    assert graph.validate(ids[0], ids[-1]).error == CYCLE_ERROR
    assert graph.validate(ids[-1], ids[0]).valid is True


def test_engine_clock_stamps_tasks_and_edges(
    engine: MaintenanceEngine, task_factory: Callable[..., Task], now: datetime
) -> None:
    a = task_factory("A")
    b = task_factory("B")

    _, dependency = engine.add_dependency(b.id, a.id)
    started = engine.start_task(a.id)
    completed = engine.complete_task(a.id).completed_task
    released = engine.get_task(b.id)

    assert dependency.created_at == now
    assert started.started_at == now
    assert completed.completed_at == now
    assert completed.updated_at == now
    assert released.updated_at == now
