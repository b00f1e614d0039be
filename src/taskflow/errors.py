# src/taskflow/errors.py

"""
Exception taxonomy.

- TaskValidationError: the caller asked for something the rules forbid
  (empty title, a task as its own ancestor, completing a task with open subtasks).
- TaskNotFoundError: the id is not in the current snapshot / store.

Data defects (bad CSV rows, unknown parents, half-broken stored rows) are not
errors: they are repaired in place and logged.
"""

from __future__ import annotations

from typing import Any


class TaskflowError(Exception):
    """Base class for errors surfaced to the user."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class TaskValidationError(TaskflowError, ValueError):
    pass


class TaskNotFoundError(TaskflowError, LookupError):
    def __init__(self, task_id: str, what: str = "Task") -> None:
        super().__init__(f"{what} not found: {task_id}", {"task_id": task_id})
        self.task_id = task_id
