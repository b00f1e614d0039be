# src/taskflow/tasks/task_guard.py

from __future__ import annotations

from collections.abc import Iterable

from ..errors import TaskValidationError
from .task_models import MUTABLE_STATUSES, Task, TaskStatus


def open_children(task: Task, all_tasks: Iterable[Task]) -> list[Task]:
    """Direct children (by parent_id) that are not Done."""
    return [t for t in all_tasks if t.parent_id == task.id and t.status != TaskStatus.DONE]


def can_complete(task: Task, all_tasks: Iterable[Task]) -> bool:
    """A task may become Done only when every direct child is Done."""
    return not open_children(task, all_tasks)


def ensure_can_complete(task: Task, all_tasks: Iterable[Task]) -> None:
    blocking = open_children(task, all_tasks)
    if blocking:
        raise TaskValidationError(
            "Cannot complete task with open subtasks",
            {"task_id": task.id, "open_subtasks": [t.id for t in blocking]},
        )


def ensure_status_transition(task: Task, new_status: TaskStatus, all_tasks: Iterable[Task]) -> None:
    if new_status not in MUTABLE_STATUSES:
        raise TaskValidationError(
            f"Invalid status: {new_status}. Must be one of: Open, In Progress, Done",
            {"task_id": task.id, "status": str(new_status)},
        )
    if new_status == TaskStatus.DONE and task.status != TaskStatus.DONE:
        ensure_can_complete(task, all_tasks)
