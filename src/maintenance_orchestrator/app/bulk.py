"""Bulk task operations.

Options are validated up front and reported as a result, never raised. Once validation
passes, each task is handled independently: a failure on one id is recorded in the result
and the remaining ids are still processed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .models import (
    BulkItemResult,
    BulkOperationResult,
    BulkOperationType,
    TaskStatus,
    ValidationReport,
)

if TYPE_CHECKING:
    from .engine import MaintenanceEngine

logger = logging.getLogger(__name__)

MAX_BULK_ITEMS = 1000


def validate_bulk_operation(
    operation: str | None,
    task_ids: Sequence[str] | None,
    options: dict[str, Any] | None = None,
) -> ValidationReport:
    options = options or {}
    errors: list[str] = []

    if not operation:
        errors.append("Operation type is required")
    elif operation not in set(BulkOperationType):
        errors.append(f"Unsupported operation type: {operation}")

    if not task_ids:
        errors.append("Items array is required and must not be empty")
    elif len(task_ids) > MAX_BULK_ITEMS:
        errors.append(f"Maximum {MAX_BULK_ITEMS} items allowed per bulk operation")

    if operation == BulkOperationType.UPDATE_TASKS and not options.get("update_data"):
        errors.append("Update data is required for update operations")
    if operation == BulkOperationType.ASSIGN_TASKS and not options.get("assignee"):
        errors.append("Assignee is required for task assignment")
    if operation == BulkOperationType.UPDATE_STATUS:
        status = options.get("status")
        if not status:
            errors.append("Status is required for status update operations")
        elif status not in set(TaskStatus):
            errors.append(f"Unknown status: {status}")

    return ValidationReport(valid=not errors, errors=errors)


def _handler(
    engine: MaintenanceEngine, operation: BulkOperationType, options: dict[str, Any]
) -> Callable[[str], object]:
    if operation == BulkOperationType.UPDATE_TASKS:
        return lambda task_id: engine.update_task(task_id, options["update_data"])
    if operation == BulkOperationType.DELETE_TASKS:
        return engine.delete_task
    if operation == BulkOperationType.ASSIGN_TASKS:
        return lambda task_id: engine.update_task(task_id, {"assigned_to": options["assignee"]})
    if operation == BulkOperationType.UPDATE_STATUS:
        return lambda task_id: engine.update_task(task_id, {"status": options["status"]})
    return engine.complete_task


def execute_bulk_operation(
    engine: MaintenanceEngine,
    operation: str | None,
    task_ids: Sequence[str] | None,
    options: dict[str, Any] | None = None,
) -> BulkOperationResult:
    options = options or {}
    validation = validate_bulk_operation(operation, task_ids, options)
    total = len(task_ids or [])
    if not validation.valid:
        logger.info("bulk event=rejected operation=%s errors=%s", operation, validation.errors)
        return BulkOperationResult(success=False, errors=validation.errors, total=total)

    handle = _handler(engine, BulkOperationType(operation), options)
    results: list[BulkItemResult] = []
    errors: list[str] = []
    for task_id in task_ids or []:
        try:
            handle(task_id)
        except KeyError:
            message = f"Task {task_id} does not exist"
        except (ValidationError, ValueError) as exc:
            message = str(exc)
        else:
            results.append(BulkItemResult(task_id=task_id, success=True))
            continue
        results.append(BulkItemResult(task_id=task_id, success=False, error=message))
        errors.append(f"{task_id}: {message}")

    logger.info(
        "bulk event=completed operation=%s total=%s failed=%s",
        operation,
        total,
        len(errors),
    )
    return BulkOperationResult(
        success=not errors,
        results=results,
        errors=errors,
        total=total,
        processed=len(results),
    )
