"""Application settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "maintenance-orchestrator"
    log_level: str = "INFO"
    history_limit: int = Field(default=1000, ge=1)
    max_occurrences: int = Field(default=100, ge=1)
    default_look_ahead_days: int = Field(default=30, ge=0)
    recurring_window_months: int = Field(default=6, ge=1)
    # Register the built-in workflow templates as executable workflows at startup.
    seed_workflow_catalog: bool = False
    # Empty means no Postgres mirror.
    database_url: str = ""

    model_config = SettingsConfigDict(
        env_prefix="MAINTENANCE_ORCHESTRATOR_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
