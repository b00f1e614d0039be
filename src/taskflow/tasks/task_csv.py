# src/taskflow/tasks/task_csv.py

"""
CSV export / import of tasks with their time tracking.

Columns (one row per task):
    id, title, description, status, createdAt, dueDate, parentId,
    childIds (";"-joined), totalTimeSpent, timeEntries (JSON array)

Export is read-only: a running session is written out as if it had stopped at
`now`, but the in-memory task keeps running.

Import never aborts the batch. Every row becomes a TaskDraft; problems are kept
in `TaskDraft.warnings` and summarised by `import_summary`.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import IO, Any

from .task_models import Task, TaskStatus, TimeEntry, TimeTracking, current_millis
from .task_tree import build_task_tree, walk
from .time_account import live_duration

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "id",
    "title",
    "description",
    "status",
    "createdAt",
    "dueDate",
    "parentId",
    "childIds",
    "totalTimeSpent",
    "timeEntries",
)

UNTITLED = "Untitled Task"


@dataclass(slots=True)
class TaskDraft:
    """An imported row, not yet given a real id."""

    source_id: str | None
    title: str
    description: str
    status: TaskStatus
    created_at: datetime
    due_date: datetime | None
    parent_id: str | None
    time_tracking: TimeTracking
    warnings: list[str] = field(default_factory=list)


# ---- export ----


def _iso(dt: datetime | None) -> str:
    if dt is None:
        return ""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _entry_to_json(e: TimeEntry) -> dict[str, int]:
    d = {"startTime": e.start_time}
    if e.end_time is not None:
        d["endTime"] = e.end_time
    if e.duration is not None:
        d["duration"] = e.duration
    return d


def export_tracking(account: TimeTracking, now: int) -> tuple[int, list[TimeEntry]]:
    """(total, entries) as they should be written out, running session closed at `now`."""
    total = account.total_time_spent
    entries = list(account.time_entries)
    if not account.is_active or account.last_started is None:
        return total, entries

    session = live_duration(account, now)
    total += session
    if entries and entries[-1].is_open:
        entries[-1] = TimeEntry(start_time=entries[-1].start_time, end_time=int(now), duration=session)
    else:
        entries.append(TimeEntry(start_time=account.last_started, end_time=int(now), duration=session))
    return total, entries


def to_rows(tasks: Iterable[Task], now: int | None = None) -> list[dict[str, str]]:
    task_list = list(tasks)
    now = current_millis() if now is None else now
    child_ids = {n.id: n.child_ids for n in walk(build_task_tree(task_list))}

    rows: list[dict[str, str]] = []
    for t in task_list:
        total, entries = export_tracking(t.time_tracking, now)
        rows.append(
            {
                "id": t.id,
                "title": t.title,
                "description": t.description,
                "status": str(t.status),
                "createdAt": _iso(t.created_at),
                "dueDate": _iso(t.due_date),
                "parentId": t.parent_id or "",
                "childIds": ";".join(child_ids.get(t.id, [])),
                "totalTimeSpent": str(total),
                "timeEntries": json.dumps([_entry_to_json(e) for e in entries], separators=(",", ":")),
            }
        )
    return rows


def write_csv(rows: Iterable[dict[str, str]], fp: IO[str]) -> None:
    writer = csv.DictWriter(fp, fieldnames=CSV_COLUMNS, lineterminator="\r\n", extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)


def dumps_tasks(tasks: Iterable[Task], now: int | None = None) -> str:
    buf = io.StringIO()
    write_csv(to_rows(tasks, now), buf)
    return buf.getvalue()


# ---- import ----


def _to_int(value: Any) -> int | None:
    """Numeric coercion: numbers and numeric strings -> int (truncated); anything else -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return int(num)


def _parse_dt(raw: str | None) -> datetime | None:
    s = (raw or "").strip()
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_time_entries(raw: str | None, warnings: list[str]) -> list[TimeEntry]:
    s = (raw or "").strip()
    if not s:
        return []

    # Transport may leave CSV quote-doubling in place.
    s = s.replace('""', '"')
    try:
        data = json.loads(s)
    except ValueError as e:
        warnings.append(f"timeEntries is not valid JSON ({e}); entries dropped")
        return []

    if not isinstance(data, list):
        warnings.append("timeEntries is not a JSON array; entries dropped")
        return []

    out: list[TimeEntry] = []
    for item in data:
        if not isinstance(item, dict):
            warnings.append(f"time entry {item!r} is not an object; skipped")
            continue
        start = _to_int(item.get("startTime"))
        if start is None:
            warnings.append(f"time entry {item!r} has no usable startTime; skipped")
            continue
        end = _to_int(item.get("endTime"))
        duration = _to_int(item.get("duration"))
        if end is None:
            # Entry was running when exported: close it with its own duration.
            duration = max(0, duration or 0)
            end = start + duration
        out.append(TimeEntry(start_time=start, end_time=end, duration=duration))
    return out


def draft_from_row(row: dict[str, Any]) -> TaskDraft:
    warnings: list[str] = []

    def text(key: str) -> str:
        v = row.get(key)
        return v.strip() if isinstance(v, str) else ""

    title = text("title")
    if not title:
        warnings.append(f"missing title; using {UNTITLED!r}")
        title = UNTITLED

    raw_status = text("status")
    status = TaskStatus.from_db(raw_status)
    if raw_status and str(status) != raw_status:
        warnings.append(f"unknown status {raw_status!r}; using {status}")

    created_at = _parse_dt(text("createdAt"))
    if created_at is None:
        if text("createdAt"):
            warnings.append(f"bad createdAt {text('createdAt')!r}; using now")
        created_at = datetime.now(timezone.utc)

    due_date = _parse_dt(text("dueDate"))
    if due_date is None and text("dueDate"):
        warnings.append(f"bad dueDate {text('dueDate')!r}; dropped")

    total = _to_int(row.get("totalTimeSpent"))
    if total is None:
        if text("totalTimeSpent"):
            warnings.append(f"bad totalTimeSpent {text('totalTimeSpent')!r}; using 0")
        total = 0

    raw_entries = row.get("timeEntries")
    entries = parse_time_entries(raw_entries if isinstance(raw_entries, str) else None, warnings)

    description = row.get("description")
    return TaskDraft(
        source_id=text("id") or None,
        title=title,
        description=description if isinstance(description, str) else "",
        status=status,
        created_at=created_at,
        due_date=due_date,
        parent_id=text("parentId") or None,
        time_tracking=TimeTracking(
            total_time_spent=max(0, total),
            is_active=False,
            time_entries=tuple(entries),
        ),
        warnings=warnings,
    )


def _flag_done_over_open(drafts: list[TaskDraft]) -> None:
    """Done rows whose children in the same file are not Done are kept, with a warning."""
    by_source = {d.source_id: d for d in drafts if d.source_id}
    for d in drafts:
        parent = by_source.get(d.parent_id) if d.parent_id else None
        if parent is None or parent.status != TaskStatus.DONE or d.status == TaskStatus.DONE:
            continue
        msg = f"marked Done but subtask {d.source_id or d.title!r} is {d.status}"
        if msg not in parent.warnings:
            parent.warnings.append(msg)


def from_rows(rows: Iterable[dict[str, Any]]) -> list[TaskDraft]:
    drafts = [draft_from_row(row if isinstance(row, dict) else {}) for row in rows]
    _flag_done_over_open(drafts)
    for i, draft in enumerate(drafts, start=1):
        if draft.warnings:
            logger.warning("Import row %s (%s): %s", i, draft.title, "; ".join(draft.warnings))
    return drafts


def import_summary(drafts: Iterable[TaskDraft]) -> str | None:
    n = sum(1 for d in drafts if d.warnings)
    if not n:
        return None
    return f"{n} rows could not be parsed and were skipped/defaulted"


def read_csv(fp: IO[str]) -> list[dict[str, str]]:
    reader = csv.DictReader(fp)
    if reader.fieldnames:
        # Spreadsheet "CSV UTF-8" files start with a byte-order mark.
        reader.fieldnames = [reader.fieldnames[0].lstrip("\ufeff"), *reader.fieldnames[1:]]
    # Skip blank lines the way spreadsheet exports leave them.
    return [row for row in reader if any((v or "").strip() for v in row.values() if isinstance(v, str))]


def loads_tasks(text: str) -> list[TaskDraft]:
    return from_rows(read_csv(io.StringIO(text)))


def materialize_drafts(
    drafts: Iterable[TaskDraft],
    new_id: Callable[[], str],
) -> list[Task]:
    """
    Give drafts real ids and keep their hierarchy.

    parentId values that name another row of the same import are remapped to that
    row's new id. Parents outside the import are dropped (the task becomes a root).
    """
    draft_list = list(drafts)
    id_map: dict[str, str] = {}
    fresh: list[str] = []
    for d in draft_list:
        nid = new_id()
        fresh.append(nid)
        if d.source_id and d.source_id not in id_map:
            id_map[d.source_id] = nid

    out: list[Task] = []
    for d, nid in zip(draft_list, fresh):
        parent = id_map.get(d.parent_id) if d.parent_id else None
        if d.parent_id and parent is None:
            logger.info("Imported task %r references unknown parent %s; imported as root", d.title, d.parent_id)
        out.append(
            Task(
                id=nid,
                title=d.title,
                description=d.description,
                status=d.status,
                parent_id=parent,
                created_at=d.created_at,
                due_date=d.due_date,
                time_tracking=d.time_tracking,
            )
        )
    return out
