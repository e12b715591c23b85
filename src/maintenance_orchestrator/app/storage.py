"""PostgreSQL mirror for task records.

The in-memory registry stays authoritative; this writes a copy of every task so other
services can query it.

Beginner terms:
- Migration: creating/updating database tables before normal reads/writes.
- JSONB: PostgreSQL JSON type; the full task is stored as one JSONB payload.
- Upsert: insert a row, or update it when the primary key already exists.
- Row factory: returns query rows as dict-like objects instead of tuples.
"""

from __future__ import annotations

import json
import threading
from typing import Any

from .models import Task


class PostgresTaskMirror:
    """Thread-safe PostgreSQL-backed copy of Task records."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()
        self.migrate()

    def migrate(self) -> None:
        """Create the mirror table and indexes if they do not already exist."""
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS maintenance_tasks (
                    task_id TEXT PRIMARY KEY,
                    asset_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    due_date TIMESTAMPTZ NOT NULL,
                    payload JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_maintenance_tasks_asset
                ON maintenance_tasks(asset_id)
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_maintenance_tasks_due_date
                ON maintenance_tasks(due_date)
                """)
            conn.commit()

    def upsert_task(self, task: Task) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO maintenance_tasks (
                    task_id,
                    asset_id,
                    status,
                    due_date,
                    payload,
                    updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (task_id) DO UPDATE
                SET asset_id = EXCLUDED.asset_id,
                    status = EXCLUDED.status,
                    due_date = EXCLUDED.due_date,
                    payload = EXCLUDED.payload,
                    updated_at = EXCLUDED.updated_at
                """,
                (
                    task.id,
                    task.asset_id,
                    task.status.value,
                    task.due_date,
                    self._json_wrapper(task.model_dump(mode="json")),
                    task.updated_at,
                ),
            )
            conn.commit()

    def delete_task(self, task_id: str) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("DELETE FROM maintenance_tasks WHERE task_id = %s", (task_id,))
            conn.commit()

    def get_task(self, task_id: str) -> Task | None:
        """Read one mirrored task back as a typed Task model."""
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM maintenance_tasks WHERE task_id = %s",
                (task_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        """Import psycopg and helpers with a friendly install hint on failure."""
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover - exercised only without dependency
            raise RuntimeError(
                "PostgreSQL mirror requires psycopg. Install with: "
                'python -m pip install "maintenance-orchestrator[postgres]"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _row_to_task(row: Any) -> Task:
        raw = row["payload"]
        if isinstance(raw, str):
            return Task.model_validate(json.loads(raw))
        return Task.model_validate(raw)
