"""Engine modules and their public types."""

from maintenance_orchestrator.app.collaborators import (
    AssetDirectory,
    InMemoryAssetDirectory,
    InMemoryTaskMirror,
    LoggingNotificationEmitter,
    NotificationEmitter,
    TaskMirror,
)
from maintenance_orchestrator.app.engine import MaintenanceEngine
from maintenance_orchestrator.app.registry import InvalidStatusTransitionError
from maintenance_orchestrator.app.storage import PostgresTaskMirror

__all__ = [
    "AssetDirectory",
    "InMemoryAssetDirectory",
    "InMemoryTaskMirror",
    "InvalidStatusTransitionError",
    "LoggingNotificationEmitter",
    "MaintenanceEngine",
    "NotificationEmitter",
    "PostgresTaskMirror",
    "TaskMirror",
]
