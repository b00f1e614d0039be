# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

import pytest

from taskflow.errors import TaskNotFoundError, TaskValidationError
from taskflow.tasks import time_account
from taskflow.tasks.task_models import TaskStatus, TimeEntry
from taskflow.tasks.task_store import TaskStore


def test_add_get_list(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")

    due = datetime(2024, 3, 1, tzinfo=timezone.utc)
    root = store.add_task(title=" Plan trip ", description="summer", due_date=due)
    child = store.add_task(title="Book hotel", parent_id=root, status=TaskStatus.IN_PROGRESS)

    t = store.get_task(root)
    assert t.title == "Plan trip"
    assert t.description == "summer"
    assert t.status == TaskStatus.OPEN
    assert t.due_date == due
    assert t.created_at.tzinfo is not None
    assert not t.time_tracking.is_active

    assert [x.id for x in store.list_tasks()] == [root, child]
    assert [x.id for x in store.list_tasks(status=TaskStatus.IN_PROGRESS)] == [child]
    assert store.get_task(child).parent_id == root
    assert store.count_tasks() == 2


def test_add_validation(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    with pytest.raises(TaskValidationError):
        store.add_task(title="  ")
    with pytest.raises(TaskNotFoundError):
        store.add_task(title="orphan", parent_id="42")
    with pytest.raises(TaskNotFoundError):
        store.get_task("not-a-number")
    with pytest.raises(TaskNotFoundError):
        store.get_task("42")


def test_save_task_persists_time_entries(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    tid = store.add_task(title="Focus")

    task = store.get_task(tid)
    running = replace(task, time_tracking=time_account.start(task.time_tracking, 1000))
    store.save_task(running)

    loaded = store.get_task(tid)
    assert loaded.time_tracking.is_active
    assert loaded.time_tracking.last_started == 1000
    assert loaded.time_tracking.time_entries == (TimeEntry(start_time=1000),)

    stopped = replace(loaded, time_tracking=time_account.pause(loaded.time_tracking, 4000))
    store.save_task(stopped)

    loaded = store.get_task(tid)
    assert not loaded.time_tracking.is_active
    assert loaded.time_tracking.total_time_spent == 3000
    assert loaded.time_tracking.time_entries == (TimeEntry(start_time=1000, end_time=4000, duration=3000),)


def test_save_unknown_task_raises(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    tid = store.add_task(title="x")
    ghost = replace(store.get_task(tid), id="999")
    with pytest.raises(TaskNotFoundError):
        store.save_task(ghost)


def test_delete_cascades_to_subtasks_and_entries(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    a = store.add_task(title="a")
    b = store.add_task(title="b", parent_id=a)
    c = store.add_task(title="c", parent_id=b)
    keep = store.add_task(title="keep")

    task_c = store.get_task(c)
    store.save_task(replace(task_c, time_tracking=time_account.record_completion(task_c.time_tracking, 100, 5000)))

    assert sorted(store.delete_task(a)) == sorted([a, b, c])
    assert [t.id for t in store.list_tasks()] == [keep]
    assert store.list_time_entries(start_ms=0, end_ms=10_000) == []
    with pytest.raises(TaskNotFoundError):
        store.delete_task(a)


def test_list_time_entries_filters_on_start(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    tid = store.add_task(title="x")
    task = store.get_task(tid)
    acc = time_account.record_completion(task.time_tracking, 500, 1000)  # [500, 1000]
    acc = time_account.record_completion(acc, 1000, 3000)  # [2000, 3000]
    store.save_task(replace(task, time_tracking=acc))

    records = store.list_time_entries(start_ms=1000, end_ms=2500)
    assert [(r.task_id, r.start_time, r.end_time) for r in records] == [(tid, 2000, 3000)]


def test_old_schema_is_migrated_and_bad_rows_hydrate_to_defaults(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    conn = sqlite3.connect(db)
    conn.execute(
        "CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT NOT NULL, "
        "created_at REAL NOT NULL, updated_at REAL NOT NULL)"
    )
    conn.execute("INSERT INTO tasks(title, created_at, updated_at) VALUES ('legacy', 0, 0)")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    conn = sqlite3.connect(db)
    conn.execute("UPDATE tasks SET status = 'Someday' WHERE id = 1")
    conn.commit()
    conn.close()

    t = store.get_task("1")
    assert t.title == "legacy"
    assert t.status == TaskStatus.OPEN
    assert t.description == ""
    assert t.time_tracking.total_time_spent == 0
    assert t.created_at == datetime(1970, 1, 1, tzinfo=timezone.utc)
