from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from maintenance_orchestrator.app.collaborators import InMemoryAssetDirectory, InMemoryTaskMirror
from maintenance_orchestrator.app.engine import MaintenanceEngine
from maintenance_orchestrator.app.models import Asset, Task
from maintenance_orchestrator.app.settings import Settings

# Monday; the calendar week around it runs Sunday 2025-03-09 to Saturday 2025-03-15.
FIXED_NOW = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


class RecordingNotifier:
    """Test-only notification emitter that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def assets() -> InMemoryAssetDirectory:
    return InMemoryAssetDirectory(
        [
            Asset(
                id="asset-house",
                name="Maple House",
                type="House",
                current_phase="maintenance",
                condition="Good",
                last_inspection=FIXED_NOW - timedelta(days=30),
            ),
            Asset(
                id="asset-condo",
                name="Harbor Condo",
                type="Condo",
                current_phase="acquisition",
                condition="Poor",
            ),
            Asset(
                id="asset-land",
                name="North Lot",
                type="Land",
                current_phase="maintenance",
                condition="Fair",
            ),
        ]
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def mirror() -> InMemoryTaskMirror:
    return InMemoryTaskMirror()


@pytest.fixture
def engine(
    assets: InMemoryAssetDirectory,
    notifier: RecordingNotifier,
    mirror: InMemoryTaskMirror,
    settings: Settings,
) -> MaintenanceEngine:
    engine = MaintenanceEngine(
        assets=assets,
        notifier=notifier,
        mirror=mirror,
        settings=settings,
        clock=lambda: FIXED_NOW,
    )
    yield engine
    engine.close()


@pytest.fixture
def task_factory(engine: MaintenanceEngine) -> Callable[..., Task]:
    def _create(title: str = "Replace filters", **overrides: Any) -> Task:
        payload: dict[str, Any] = {
            "title": title,
            "asset_id": "asset-house",
            "due_date": FIXED_NOW + timedelta(days=3),
        }
        payload.update(overrides)
        return engine.create_task(payload)

    return _create


@pytest.fixture
def client(engine: MaintenanceEngine, settings: Settings) -> TestClient:
    from maintenance_orchestrator.main import create_app

    app = create_app(engine=engine, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client
