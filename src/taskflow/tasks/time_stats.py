# src/taskflow/tasks/time_stats.py

"""
Time statistics over a window.

Two paths produce the same `TaskTimeStat` rows:
- server path: raw (task_id, start_time, end_time) records from the time-entry
  source, joined against the task list
- local path: records derived from each task's own time_tracking

Window filtering looks at the entry start only. An entry that starts inside the
window counts in full even if it ends after the window closes (no clipping).
Running entries are measured up to `now`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from .task_models import Task, TaskStatus, from_millis, to_millis
from .time_account import elapsed

if TYPE_CHECKING:
    from ..core.ports import TimeEntrySource

logger = logging.getLogger(__name__)

PERIODS = ("day", "week", "month", "year")


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open [start_ms, end_ms)."""

    start_ms: int
    end_ms: int

    def contains(self, ts_ms: int) -> bool:
        return self.start_ms <= ts_ms < self.end_ms

    @classmethod
    def between(cls, start: datetime, end: datetime) -> TimeWindow:
        return cls(start_ms=to_millis(start), end_ms=to_millis(end))

    @classmethod
    def for_period(cls, period: str, now_ms: int) -> TimeWindow:
        """Calendar period (UTC) containing `now_ms`: day | week | month | year."""
        now = from_millis(now_ms)
        day = datetime(now.year, now.month, now.day, tzinfo=timezone.utc)

        if period == "day":
            start, end = day, day + timedelta(days=1)
        elif period == "week":
            start = day - timedelta(days=day.weekday())
            end = start + timedelta(days=7)
        elif period == "month":
            start = day.replace(day=1)
            if start.month == 12:
                end = start.replace(year=start.year + 1, month=1)
            else:
                end = start.replace(month=start.month + 1)
        elif period == "year":
            start = day.replace(month=1, day=1)
            end = start.replace(year=start.year + 1)
        else:
            raise ValueError(f"Unknown period: {period!r} (expected one of {', '.join(PERIODS)})")

        return cls.between(start, end)


@dataclass(frozen=True, slots=True)
class TimeEntryRecord:
    task_id: str
    start_time: int
    end_time: int | None = None


@dataclass(frozen=True, slots=True)
class TaskTimeStat:
    id: str
    title: str
    status: TaskStatus
    time_spent: int


def summarize(entries: Iterable[TimeEntryRecord], window: TimeWindow, now: int) -> dict[str, int]:
    totals: dict[str, int] = {}
    for e in entries:
        if not window.contains(e.start_time):
            continue
        end = e.end_time if e.end_time is not None else now
        totals[e.task_id] = totals.get(e.task_id, 0) + max(0, int(end) - int(e.start_time))
    return totals


def join_with_tasks(totals: dict[str, int], tasks: Iterable[Task]) -> list[TaskTimeStat]:
    """Attach title/status; ids without a task are dropped."""
    out: list[TaskTimeStat] = []
    seen: set[str] = set()
    for t in tasks:
        if t.id in totals and t.id not in seen:
            seen.add(t.id)
            out.append(TaskTimeStat(id=t.id, title=t.title, status=t.status, time_spent=totals[t.id]))

    dropped = set(totals) - seen
    if dropped:
        logger.debug("Time totals for unknown task ids dropped: %s", sorted(dropped))
    return out


def server_summary(
    source: TimeEntrySource,
    tasks: Iterable[Task],
    window: TimeWindow,
    now: int,
) -> list[TaskTimeStat]:
    records = source.list_time_entries(start_ms=window.start_ms, end_ms=window.end_ms)
    return join_with_tasks(summarize(records, window, now), tasks)


def entries_from_tasks(tasks: Iterable[Task]) -> list[TimeEntryRecord]:
    out: list[TimeEntryRecord] = []
    for t in tasks:
        for e in t.time_tracking.time_entries:
            end = e.end_time
            if end is None and e.duration is not None and not t.time_tracking.is_active:
                end = e.start_time + e.duration
            out.append(TimeEntryRecord(task_id=t.id, start_time=e.start_time, end_time=end))
    return out


def local_summary(tasks: Iterable[Task], window: TimeWindow, now: int) -> list[TaskTimeStat]:
    """
    Summary computed from the tasks alone.

    A task that has time but no entries (e.g. only a stored total) contributes its
    elapsed time when it was created inside the window.
    """
    task_list = list(tasks)
    totals = summarize(entries_from_tasks(task_list), window, now)

    for t in task_list:
        acc = t.time_tracking
        if acc.time_entries or t.id in totals:
            continue
        spent = elapsed(acc, now)
        if spent > 0 and window.contains(to_millis(t.created_at)):
            totals[t.id] = spent

    return join_with_tasks(totals, task_list)


def totals_by_status(stats: Iterable[TaskTimeStat]) -> dict[TaskStatus, int]:
    out: dict[TaskStatus, int] = {}
    for s in stats:
        out[s.status] = out.get(s.status, 0) + s.time_spent
    return out


def total_time(stats: Iterable[TaskTimeStat]) -> int:
    return sum(s.time_spent for s in stats)


def format_duration(ms: int) -> str:
    """hh:mm:ss (hours are not wrapped)."""
    ms = max(0, int(ms))
    hours = ms // 3_600_000
    minutes = (ms % 3_600_000) // 60_000
    seconds = (ms % 60_000) // 1000
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
