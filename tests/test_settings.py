from __future__ import annotations

from collections.abc import Iterator

import pytest
from pydantic import ValidationError

from maintenance_orchestrator.app.settings import Settings, get_settings


@pytest.fixture
def fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.app_name == "maintenance-orchestrator"
    assert settings.history_limit == 1000
    assert settings.max_occurrences == 100
    assert settings.default_look_ahead_days == 30
    assert settings.recurring_window_months == 6
    assert settings.seed_workflow_catalog is False
    assert settings.database_url == ""


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, fresh_settings: None) -> None:
    monkeypatch.setenv("MAINTENANCE_ORCHESTRATOR_HISTORY_LIMIT", "25")
    monkeypatch.setenv("MAINTENANCE_ORCHESTRATOR_SEED_WORKFLOW_CATALOG", "true")
    monkeypatch.setenv("MAINTENANCE_ORCHESTRATOR_LOG_LEVEL", "DEBUG")

    settings = get_settings()

    assert settings.history_limit == 25
    assert settings.seed_workflow_catalog is True
    assert settings.log_level == "DEBUG"
    assert get_settings() is settings


def test_history_limit_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(history_limit=0, _env_file=None)
