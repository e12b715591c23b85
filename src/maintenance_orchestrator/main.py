"""FastAPI application wiring for the maintenance orchestrator.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- Route/path operation: a function exposed over HTTP (for example, GET /health).
- response_model: Pydantic model used to validate/shape API responses.
- app.state: a place to store shared runtime objects (engine, settings).
- Exception handler: turns a Python exception raised in a route into an HTTP response.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .app.engine import MaintenanceEngine
from .app.models import (
    BulkOperationResult,
    Dependency,
    DependencyGraphView,
    DependencyType,
    HistoryEntry,
    RecurringTaskStats,
    Task,
    TaskCompletion,
    TaskCreate,
    TaskDependencies,
    TaskStats,
    TaskUpdate,
    WorkflowExecutionResult,
    WorkflowSpec,
    WorkflowTemplate,
)
from .app.registry import InvalidStatusTransitionError
from .app.settings import Settings, get_settings
from .app.storage import PostgresTaskMirror

logger = logging.getLogger(__name__)


class CreateDependencyRequest(BaseModel):
    dependent_task_id: str
    prerequisite_task_id: str
    type: DependencyType = DependencyType.FINISH_TO_START


class ExecuteWorkflowRequest(BaseModel):
    asset_id: str
    trigger_data: dict[str, Any] = Field(default_factory=dict)


class WorkflowTriggerRequest(BaseModel):
    trigger: str = Field(min_length=1)
    asset_id: str
    # Passed as trigger data to each execution; matching looks at the asset only.
    data: dict[str, Any] = Field(default_factory=dict)
    # When set, every matched workflow is executed against the asset.
    execute: bool = False


class WorkflowTriggerResponse(BaseModel):
    matched: list[WorkflowTemplate]
    executions: list[WorkflowExecutionResult] = Field(default_factory=list)


class GenerateRecurringRequest(BaseModel):
    start: datetime | None = None
    end: datetime | None = None
    template_ids: list[str] | None = None


class AutoGenerateRequest(BaseModel):
    look_ahead_days: int | None = Field(default=None, ge=0)


class BulkOperationRequest(BaseModel):
    operation: str | None = None
    task_ids: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)


def create_app(
    *,
    engine: MaintenanceEngine | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Tests pass their own engine; otherwise one is built from settings, with a Postgres
    mirror when a database URL is configured.
    """
    settings = settings_override or get_settings()
    logging.getLogger("maintenance_orchestrator").setLevel(settings.log_level.upper())

    if engine is None:
        mirror = PostgresTaskMirror(settings.database_url) if settings.database_url else None
        engine = MaintenanceEngine(mirror=mirror, settings=settings)

    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        yield
        # Drain queued notifications and mirror writes before the process exits.
        application.state.engine.close()

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.engine = engine
    app.state.settings = settings
    app.add_exception_handler(KeyError, _not_found_handler)
    app.add_exception_handler(InvalidStatusTransitionError, _conflict_handler)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    # Tasks

    @app.post("/tasks", response_model=Task, status_code=201)
    def create_task(payload: TaskCreate) -> Task:
        return app.state.engine.create_task(payload)

    @app.get("/tasks", response_model=list[Task])
    def list_tasks() -> list[Task]:
        return app.state.engine.list_tasks()

    @app.get("/tasks/{task_id}", response_model=Task)
    def get_task(task_id: str) -> Task:
        task = app.state.engine.get_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail="Task not found")
        return task

    @app.patch("/tasks/{task_id}", response_model=Task)
    def update_task(task_id: str, payload: TaskUpdate) -> Task:
        return app.state.engine.update_task(task_id, payload)

    @app.delete("/tasks/{task_id}", response_model=Task)
    def delete_task(task_id: str) -> Task:
        return app.state.engine.delete_task(task_id)

    @app.post("/tasks/{task_id}/start", response_model=Task)
    def start_task(task_id: str) -> Task:
        return app.state.engine.start_task(task_id)

    @app.post("/tasks/{task_id}/complete", response_model=TaskCompletion)
    def complete_task(task_id: str) -> TaskCompletion:
        task = get_task(task_id)
        if task.is_recurring:
            return app.state.engine.complete_recurring_task(task_id)
        return app.state.engine.complete_task(task_id)

    @app.get("/tasks/{task_id}/history", response_model=list[HistoryEntry])
    def task_history(task_id: str) -> list[HistoryEntry]:
        return app.state.engine.get_task_history(task_id)

    @app.get("/tasks/{task_id}/dependencies", response_model=TaskDependencies)
    def task_dependencies(task_id: str) -> TaskDependencies:
        get_task(task_id)
        return app.state.engine.get_task_dependencies(task_id)

    @app.get("/tasks/{task_id}/can-start")
    def can_start(task_id: str) -> dict[str, Any]:
        get_task(task_id)
        return {"task_id": task_id, "can_start": app.state.engine.can_start(task_id)}

    @app.get("/assets/{asset_id}/tasks", response_model=list[Task])
    def asset_tasks(asset_id: str) -> list[Task]:
        return app.state.engine.get_tasks_by_asset(asset_id)

    # Dependencies

    @app.post("/dependencies", response_model=Dependency, status_code=201)
    def add_dependency(payload: CreateDependencyRequest) -> Dependency:
        validation, dependency = app.state.engine.add_dependency(
            payload.dependent_task_id,
            payload.prerequisite_task_id,
            payload.type,
        )
        if dependency is None:
            raise HTTPException(status_code=409, detail=validation.error)
        return dependency

    @app.delete("/dependencies/{dependency_id}", response_model=Dependency)
    def remove_dependency(dependency_id: str) -> Dependency:
        return app.state.engine.remove_dependency(dependency_id)

    @app.get("/dependency-graph", response_model=DependencyGraphView)
    def dependency_graph() -> DependencyGraphView:
        return app.state.engine.get_dependency_graph()

    # Workflows

    @app.get("/workflow-templates", response_model=list[WorkflowSpec])
    def workflow_templates() -> list[WorkflowSpec]:
        return app.state.engine.get_workflow_templates()

    @app.get("/workflows", response_model=list[WorkflowTemplate])
    def list_workflows() -> list[WorkflowTemplate]:
        return app.state.engine.list_workflows()

    @app.post("/workflows", response_model=WorkflowTemplate, status_code=201)
    def create_workflow(payload: WorkflowSpec) -> WorkflowTemplate:
        return app.state.engine.create_workflow(payload)

    # Rejections (unknown workflow, wrong asset type) come back as 200 with success=false.
    @app.post("/workflows/{workflow_id}/execute", response_model=WorkflowExecutionResult)
    def execute_workflow(
        workflow_id: str, payload: ExecuteWorkflowRequest
    ) -> WorkflowExecutionResult:
        return app.state.engine.execute_workflow(
            workflow_id, payload.asset_id, payload.trigger_data
        )

    @app.post("/workflow-triggers", response_model=WorkflowTriggerResponse)
    def workflow_triggers(payload: WorkflowTriggerRequest) -> WorkflowTriggerResponse:
        matched = app.state.engine.check_workflow_triggers(payload.trigger, payload.asset_id)
        executions: list[WorkflowExecutionResult] = []
        if payload.execute:
            trigger_data = {"trigger": payload.trigger, **payload.data}
            executions = [
                app.state.engine.execute_workflow(workflow.id, payload.asset_id, trigger_data)
                for workflow in matched
            ]
        return WorkflowTriggerResponse(matched=matched, executions=executions)

    # Recurring tasks

    @app.get("/recurring/upcoming", response_model=list[TaskCreate])
    def upcoming_recurring(look_ahead_days: int | None = None) -> list[TaskCreate]:
        return app.state.engine.get_upcoming_recurring_tasks(look_ahead_days)

    @app.post("/recurring/generate", response_model=list[Task])
    def generate_recurring(payload: GenerateRecurringRequest) -> list[Task]:
        return app.state.engine.generate_recurring_tasks(
            payload.start, payload.end, payload.template_ids
        )

    @app.post("/recurring/auto-generate", response_model=list[Task])
    def auto_generate_recurring(payload: AutoGenerateRequest) -> list[Task]:
        return app.state.engine.auto_generate_recurring_tasks(payload.look_ahead_days)

    @app.get("/recurring/stats", response_model=RecurringTaskStats)
    def recurring_stats() -> RecurringTaskStats:
        return app.state.engine.get_recurring_task_stats()

    @app.get("/stats", response_model=TaskStats)
    def task_stats() -> TaskStats:
        return app.state.engine.get_task_stats()

    @app.post("/bulk", response_model=BulkOperationResult)
    def bulk_operation(payload: BulkOperationRequest) -> BulkOperationResult:
        return app.state.engine.execute_bulk_operation(
            payload.operation, payload.task_ids, payload.options
        )

    return app


def _not_found_handler(request: Request, exc: KeyError) -> JSONResponse:
    detail = exc.args[0] if exc.args else "Not found"
    return JSONResponse(status_code=404, content={"detail": str(detail)})


def _conflict_handler(request: Request, exc: InvalidStatusTransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# Module-level app for `uvicorn maintenance_orchestrator.main:app`.
app = create_app()
