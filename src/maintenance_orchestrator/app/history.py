"""Bounded, newest-first log of lifecycle events."""

from __future__ import annotations

import logging
from collections import deque

from .models import HistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 1000


class TaskHistoryLog:
    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError("history limit must be positive")
        self._entries: deque[HistoryEntry] = deque(maxlen=limit)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def limit(self) -> int:
        return self._entries.maxlen or DEFAULT_HISTORY_LIMIT

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        # appendleft keeps newest first; maxlen drops the oldest from the right.
        self._entries.appendleft(entry)
        logger.debug("history event=%s task_id=%s", entry.type.value, entry.task_id)
        return entry

    def for_task(self, task_id: str) -> list[HistoryEntry]:
        """Entries naming the task directly or in `task_ids`, newest first."""
        return [
            entry.model_copy(deep=True)
            for entry in self._entries
            if entry.task_id == task_id or task_id in entry.task_ids
        ]

    def entries(self) -> list[HistoryEntry]:
        return [entry.model_copy(deep=True) for entry in self._entries]
