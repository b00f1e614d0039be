# src/taskflow/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path

from ..errors import TaskNotFoundError, TaskValidationError
from .task_models import Task, TaskStatus, TimeEntry, TimeTracking
from .time_account import repair
from .time_stats import TimeEntryRecord

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Time tracking lives in `time_entries`; a task is active when its latest entry
    has no end_time. `tasks.total_time_ms` caches the closed total.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'Open',
                    parent_id INTEGER,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    due_date REAL,
                    total_time_ms INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS time_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL,
                    start_time INTEGER NOT NULL,
                    end_time INTEGER,
                    duration INTEGER
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("status", "TEXT NOT NULL DEFAULT 'Open'")
            add_col("parent_id", "INTEGER")
            add_col("due_date", "REAL")
            add_col("total_time_ms", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_entries_task ON time_entries(task_id, start_time)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_entries_start ON time_entries(start_time)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _key(task_id: str | int) -> int:
        try:
            return int(str(task_id).strip())
        except ValueError:
            raise TaskNotFoundError(str(task_id)) from None

    @staticmethod
    def _ts(dt: datetime | None) -> float | None:
        if dt is None:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()

    @staticmethod
    def _dt(ts: float | None) -> datetime | None:
        if ts is None:
            return None
        return datetime.fromtimestamp(float(ts), tz=timezone.utc)

    def _row_to_task(self, row: sqlite3.Row, entries: list[TimeEntry]) -> Task:
        open_last = entries[-1] if entries and entries[-1].end_time is None else None
        tracking = TimeTracking(
            total_time_spent=max(0, int(row["total_time_ms"] or 0)),
            is_active=open_last is not None,
            last_started=open_last.start_time if open_last else None,
            time_entries=tuple(entries),
        )
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or "Untitled Task"),
            description=str(row["description"] or ""),
            status=TaskStatus.from_db(row["status"]),
            parent_id=str(row["parent_id"]) if row["parent_id"] is not None else None,
            created_at=datetime.fromtimestamp(float(row["created_at"] or 0.0), tz=timezone.utc),
            due_date=self._dt(row["due_date"]),
            time_tracking=repair(tracking),
        )

    @staticmethod
    def _entries_by_task(conn: sqlite3.Connection, task_ids: list[int]) -> dict[int, list[TimeEntry]]:
        out: dict[int, list[TimeEntry]] = {tid: [] for tid in task_ids}
        if not task_ids:
            return out
        placeholders = ",".join("?" for _ in task_ids)
        cur = conn.execute(
            f"""
            SELECT task_id, start_time, end_time, duration
            FROM time_entries
            WHERE task_id IN ({placeholders})
            ORDER BY task_id, start_time ASC, id ASC
            """,
            task_ids,
        )
        for r in cur.fetchall():
            out[int(r["task_id"])].append(
                TimeEntry(
                    start_time=int(r["start_time"]),
                    end_time=int(r["end_time"]) if r["end_time"] is not None else None,
                    duration=int(r["duration"]) if r["duration"] is not None else None,
                )
            )
        return out

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        description: str = "",
        status: TaskStatus = TaskStatus.OPEN,
        parent_id: str | None = None,
        due_date: datetime | None = None,
        created_at: datetime | None = None,
    ) -> str:
        if not title or not title.strip():
            raise TaskValidationError("Title is required")

        now = time.time()
        conn = self._get_conn()
        try:
            parent_key = None
            if parent_id is not None:
                parent_key = self._key(parent_id)
                if conn.execute("SELECT 1 FROM tasks WHERE id = ?", (parent_key,)).fetchone() is None:
                    raise TaskNotFoundError(str(parent_id), what="Parent task")

            cur = conn.execute(
                """
                INSERT INTO tasks(title, description, status, parent_id, created_at, updated_at, due_date)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title.strip(),
                    description or "",
                    TaskStatus(status).value,
                    parent_key,
                    self._ts(created_at) or now,
                    now,
                    self._ts(due_date),
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            logger.debug("Task added id=%s parent=%s status=%s", rowid, parent_key, status)
            return str(rowid)
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task:
        key = self._key(task_id)
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (key,)).fetchone()
            if row is None:
                raise TaskNotFoundError(str(task_id))
            return self._row_to_task(row, self._entries_by_task(conn, [key])[key])
        finally:
            conn.close()

    def list_tasks(self, *, status: TaskStatus | None = None) -> list[Task]:
        conn = self._get_conn()
        try:
            if status is None:
                rows = conn.execute("SELECT * FROM tasks ORDER BY id ASC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE status = ? ORDER BY id ASC",
                    (TaskStatus(status).value,),
                ).fetchall()
            entries = self._entries_by_task(conn, [int(r["id"]) for r in rows])
            return [self._row_to_task(r, entries[int(r["id"])]) for r in rows]
        finally:
            conn.close()

    def save_task(self, task: Task) -> None:
        """Write back fields and time entries of a task that already exists."""
        key = self._key(task.id)
        acc = task.time_tracking
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, status = ?, parent_id = ?,
                    due_date = ?, total_time_ms = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    task.title,
                    task.description,
                    task.status.value,
                    self._key(task.parent_id) if task.parent_id is not None else None,
                    self._ts(task.due_date),
                    int(acc.total_time_spent),
                    time.time(),
                    key,
                ),
            )
            if cur.rowcount != 1:
                conn.rollback()
                raise TaskNotFoundError(task.id)

            conn.execute("DELETE FROM time_entries WHERE task_id = ?", (key,))
            conn.executemany(
                "INSERT INTO time_entries(task_id, start_time, end_time, duration) VALUES (?, ?, ?, ?)",
                [(key, e.start_time, e.end_time, e.duration) for e in acc.time_entries],
            )
            conn.commit()
        finally:
            conn.close()

    def delete_task(self, task_id: str) -> list[str]:
        """Delete a task, its subtasks (recursively) and their time entries. Returns deleted ids."""
        key = self._key(task_id)
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                WITH RECURSIVE sub(id) AS (
                    SELECT id FROM tasks WHERE id = ?
                    UNION
                    SELECT t.id FROM tasks t JOIN sub ON t.parent_id = sub.id
                )
                SELECT id FROM sub
                """,
                (key,),
            ).fetchall()
            ids = sorted(int(r["id"]) for r in rows)
            if not ids:
                raise TaskNotFoundError(str(task_id))

            placeholders = ",".join("?" for _ in ids)
            conn.execute(f"DELETE FROM time_entries WHERE task_id IN ({placeholders})", ids)
            conn.execute(f"DELETE FROM tasks WHERE id IN ({placeholders})", ids)
            conn.commit()
            logger.debug("Deleted task id=%s cascade=%s", key, ids)
            return [str(i) for i in ids]
        finally:
            conn.close()

    def list_time_entries(self, *, start_ms: int, end_ms: int) -> list[TimeEntryRecord]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT task_id, start_time, end_time
                FROM time_entries
                WHERE start_time >= ? AND start_time < ?
                ORDER BY start_time ASC
                """,
                (int(start_ms), int(end_ms)),
            ).fetchall()
            return [
                TimeEntryRecord(
                    task_id=str(r["task_id"]),
                    start_time=int(r["start_time"]),
                    end_time=int(r["end_time"]) if r["end_time"] is not None else None,
                )
                for r in rows
            ]
        finally:
            conn.close()
