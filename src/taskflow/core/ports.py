# src/taskflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage swappable and makes testing easier.
"""

from datetime import datetime
from typing import Protocol

from ..tasks.task_models import Task, TaskStatus
from ..tasks.time_stats import TimeEntryRecord


class TaskRepo(Protocol):
    """
    Persistence collaborator.

    get_task raises TaskNotFoundError for unknown ids; everything else about a
    stored row (missing fields, odd values) is coerced to defaults on load.
    """

    def add_task(
        self,
        *,
        title: str,
        description: str = "",
        status: TaskStatus = TaskStatus.OPEN,
        parent_id: str | None = None,
        due_date: datetime | None = None,
        created_at: datetime | None = None,
    ) -> str: ...

    def get_task(self, task_id: str) -> Task: ...
    def list_tasks(self, *, status: TaskStatus | None = None) -> list[Task]: ...
    def save_task(self, task: Task) -> None: ...
    def delete_task(self, task_id: str) -> list[str]: ...
    def count_tasks(self) -> int: ...


class TimeEntrySource(Protocol):
    """Time-entry summary collaborator: raw entries whose start_time is in [start_ms, end_ms)."""

    def list_time_entries(self, *, start_ms: int, end_ms: int) -> list[TimeEntryRecord]: ...
