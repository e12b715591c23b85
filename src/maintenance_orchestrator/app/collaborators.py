"""Interfaces the engine depends on but does not own, plus in-memory implementations.

Beginner terms used in this file:
- Protocol: a structural interface; any object with matching methods satisfies it.
- Collaborator: an outside service (asset directory, notifications, persistence).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from .models import Asset, Task

logger = logging.getLogger(__name__)


class AssetDirectory(Protocol):
    def get_asset(self, asset_id: str) -> Asset | None: ...

    def list_assets(self) -> list[Asset]: ...


class NotificationEmitter(Protocol):
    def emit(self, event: str, payload: dict[str, Any]) -> None: ...


class TaskMirror(Protocol):
    def upsert_task(self, task: Task) -> None: ...

    def delete_task(self, task_id: str) -> None: ...


class InMemoryAssetDirectory:
    def __init__(self, assets: Iterable[Asset] = ()) -> None:
        self._assets: dict[str, Asset] = {asset.id: asset for asset in assets}

    def add(self, asset: Asset) -> None:
        self._assets[asset.id] = asset

    def get_asset(self, asset_id: str) -> Asset | None:
        asset = self._assets.get(asset_id)
        return asset.model_copy() if asset else None

    def list_assets(self) -> list[Asset]:
        return [asset.model_copy() for asset in self._assets.values()]


class LoggingNotificationEmitter:
    """Default emitter: writes each notification to the log."""

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("notification event=%s payload=%s", event, payload)


class InMemoryTaskMirror:
    """Mirror for tests and local runs."""

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}

    def upsert_task(self, task: Task) -> None:
        self.tasks[task.id] = task.model_copy(deep=True)

    def delete_task(self, task_id: str) -> None:
        self.tasks.pop(task_id, None)
