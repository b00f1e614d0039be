# src/taskflow/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - "Review" is shown by some views but is never a mutation target here.
    """

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    DONE = "Done"
    REVIEW = "Review"  # display-only

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.OPEN
        try:
            return cls(raw.strip())
        except ValueError:
            return cls.OPEN


# Statuses a caller may move a task into.
MUTABLE_STATUSES = frozenset({TaskStatus.OPEN, TaskStatus.IN_PROGRESS, TaskStatus.DONE})


def current_millis() -> int:
    return int(time.time() * 1000)


def to_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_millis(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


@dataclass(frozen=True, slots=True)
class TimeEntry:
    """One start -> stop interval. Times are ms since epoch."""

    start_time: int
    end_time: int | None = None
    duration: int | None = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def closed_duration(self) -> int:
        """Duration of a closed entry (stored value wins over end - start)."""
        if self.duration is not None:
            return max(0, int(self.duration))
        if self.end_time is None:
            return 0
        return max(0, int(self.end_time) - int(self.start_time))


@dataclass(frozen=True, slots=True)
class TimeTracking:
    total_time_spent: int = 0
    is_active: bool = False
    last_started: int | None = None
    time_entries: tuple[TimeEntry, ...] = ()

    @property
    def open_entry(self) -> TimeEntry | None:
        if self.time_entries and self.time_entries[-1].is_open:
            return self.time_entries[-1]
        return None


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.OPEN
    parent_id: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    due_date: datetime | None = None
    time_tracking: TimeTracking = field(default_factory=TimeTracking)

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE


@dataclass(slots=True)
class TaskNode:
    """
    A Task plus its position in the computed tree.

    `depth` and `children` are derived by the tree builder and never stored.
    """

    task: Task
    depth: int = 0
    children: list[TaskNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def parent_id(self) -> str | None:
        return self.task.parent_id

    @property
    def child_ids(self) -> list[str]:
        return [c.task.id for c in self.children]
