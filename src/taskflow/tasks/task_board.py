# src/taskflow/tasks/task_board.py

"""
Task board: one immutable snapshot of a user's tasks.

The board holds the canonical id -> Task map. Trees, child ids and depths are
recomputed from it on demand. Every mutation validates first, then returns a new
board; the caller decides when to persist it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from ..errors import TaskNotFoundError, TaskValidationError
from . import time_account
from .task_guard import ensure_status_transition
from .task_models import Task, TaskNode, TaskStatus
from .task_tree import build_task_tree, descendant_ids, ensure_parent_allowed, index_nodes

logger = logging.getLogger(__name__)

_UNSET = object()


def _clean_title(title: str | None) -> str:
    if not title or not title.strip():
        raise TaskValidationError("Title is required")
    return title.strip()


@dataclass(frozen=True, slots=True)
class TaskBoard:
    tasks: dict[str, Task] = field(default_factory=dict)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> TaskBoard:
        by_id: dict[str, Task] = {}
        for t in tasks:
            if t.id in by_id:
                logger.warning("Duplicate task id=%s ignored while loading board", t.id)
                continue
            by_id[t.id] = replace(t, time_tracking=time_account.repair(t.time_tracking))
        return cls(tasks=by_id)

    # ---- queries ----

    def __len__(self) -> int:
        return len(self.tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.tasks

    def get(self, task_id: str) -> Task:
        try:
            return self.tasks[str(task_id)]
        except KeyError:
            raise TaskNotFoundError(str(task_id)) from None

    def all(self) -> list[Task]:
        return list(self.tasks.values())

    def tree(self) -> list[TaskNode]:
        return build_task_tree(self.tasks.values())

    def nodes(self) -> dict[str, TaskNode]:
        return index_nodes(self.tree())

    def by_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self.tasks.values() if t.status == status]

    def elapsed(self, task_id: str, now: int) -> int:
        return time_account.elapsed(self.get(task_id).time_tracking, now)

    # ---- mutations ----

    def with_task(self, task: Task) -> TaskBoard:
        tasks = dict(self.tasks)
        tasks[task.id] = task
        return TaskBoard(tasks=tasks)

    def create_task(
        self,
        *,
        task_id: str,
        title: str,
        description: str = "",
        status: TaskStatus = TaskStatus.OPEN,
        parent_id: str | None = None,
        due_date: datetime | None = None,
        created_at: datetime | None = None,
    ) -> TaskBoard:
        if task_id in self.tasks:
            raise TaskValidationError(f"Task id already exists: {task_id}", {"task_id": task_id})
        if status == TaskStatus.REVIEW:
            raise TaskValidationError("Invalid status. Must be one of: Open, In Progress, Done")
        if parent_id is not None and parent_id not in self.tasks:
            raise TaskNotFoundError(parent_id, what="Parent task")

        task = Task(
            id=task_id,
            title=_clean_title(title),
            description=description or "",
            status=status,
            parent_id=parent_id,
            created_at=created_at or datetime.now(timezone.utc),
            due_date=due_date,
        )
        logger.debug("Task created id=%s parent=%s", task_id, parent_id)
        return self.with_task(task)

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        status: TaskStatus | None = None,
        parent_id: object = _UNSET,
        due_date: object = _UNSET,
    ) -> TaskBoard:
        """
        Partial update. `parent_id=None` / `due_date=None` clear the field;
        leaving them out keeps the current value.
        """
        task = self.get(task_id)
        changes: dict[str, object] = {}

        if title is not None:
            changes["title"] = _clean_title(title)
        if description is not None:
            changes["description"] = description
        if parent_id is not _UNSET and parent_id != task.parent_id:
            new_parent = None if parent_id is None else str(parent_id)
            ensure_parent_allowed(task.id, new_parent, self.tasks.values())
            changes["parent_id"] = new_parent
        if due_date is not _UNSET:
            changes["due_date"] = due_date
        if status is not None and status != task.status:
            ensure_status_transition(task, status, self.tasks.values())
            changes["status"] = status

        if not changes:
            return self
        return self.with_task(replace(task, **changes))

    def move_task(self, task_id: str, status: TaskStatus) -> TaskBoard:
        return self.update_task(task_id, status=status)

    def remove_task(self, task_id: str) -> TaskBoard:
        """Drop a task and its whole subtree (same cascade as the store)."""
        task = self.get(task_id)
        doomed = descendant_ids(task.id, self.tasks.values()) | {task.id}
        logger.debug("Removing task id=%s with %d subtasks", task.id, len(doomed) - 1)
        return TaskBoard(tasks={k: v for k, v in self.tasks.items() if k not in doomed})

    def start_timer(self, task_id: str, now: int) -> TaskBoard:
        """Start tracking; the task moves to In Progress."""
        task = self.get(task_id)
        account = time_account.start(task.time_tracking, now)
        if account is task.time_tracking and task.status == TaskStatus.IN_PROGRESS:
            return self
        return self.with_task(replace(task, time_tracking=account, status=TaskStatus.IN_PROGRESS))

    def pause_timer(self, task_id: str, now: int) -> TaskBoard:
        task = self.get(task_id)
        account = time_account.pause(task.time_tracking, now)
        if account is task.time_tracking:
            return self
        return self.with_task(replace(task, time_tracking=account))

    def record_completion(self, task_id: str, duration_ms: int, now: int) -> TaskBoard:
        task = self.get(task_id)
        account = time_account.record_completion(task.time_tracking, duration_ms, now)
        return self.with_task(replace(task, time_tracking=account))

    def with_tasks(self, tasks: Iterable[Task]) -> TaskBoard:
        """Add many tasks at once (e.g. after an import); ids must be new."""
        merged = dict(self.tasks)
        for t in tasks:
            if t.id in merged:
                raise TaskValidationError(f"Task id already exists: {t.id}", {"task_id": t.id})
            merged[t.id] = t
        return TaskBoard(tasks=merged)
