# src/taskflow/cli/commands.py

from __future__ import annotations

import inspect
import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import cast

from ..core.state import AppState
from ..errors import TaskflowError, TaskNotFoundError, TaskValidationError
from ..tasks.attachments import attach
from ..tasks.task_board import TaskBoard
from ..tasks.task_csv import dumps_tasks, from_rows, import_summary, materialize_drafts, read_csv
from ..tasks.task_models import TaskNode, TaskStatus
from ..tasks.task_tree import build_task_tree, filter_task_tree, walk
from ..tasks.time_account import elapsed
from ..tasks.time_stats import (
    PERIODS,
    TimeWindow,
    format_duration,
    local_summary,
    server_summary,
    total_time,
    totals_by_status,
)

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tree, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Validation / not-found errors become the reply text.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskflowError as e:
            logger.info("/%s refused: %s", name, e)
            return str(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _save(state: AppState, board: TaskBoard, task_ids: Iterable[str]) -> None:
    for tid in task_ids:
        state.task_store.save_task(board.get(tid))


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise TaskValidationError(f"Usage: {usage}")


def _parse_status(raw: str) -> TaskStatus:
    for s in TaskStatus:
        if s.value.lower() == raw.strip().lower():
            return s
    raise TaskValidationError(f"Invalid status: {raw}. Must be one of: Open, In Progress, Done")


def _parse_date(raw: str) -> datetime:
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        raise TaskValidationError(f"Invalid date: {raw} (expected YYYY-MM-DD)") from None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def render_tree(roots: list[TaskNode], now: int) -> str:
    lines: list[str] = []
    for node in walk(roots):
        t = node.task
        spent = elapsed(t.time_tracking, now)
        running = " *running*" if t.time_tracking.is_active else ""
        lines.append(
            f"{'  ' * node.depth}- [{t.id}] {t.title} ({t.status}) {format_duration(spent)}{running}"
        )
    return "\n".join(lines)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_tree(state: AppState, args: list[str]) -> str:
    """
    /tree                -> whole tree
    /tree <status>       -> only tasks with that status (+ their ancestors)
    /tree ? <text>       -> search titles/descriptions
    """
    tasks = state.task_store.list_tasks()
    if not tasks:
        return "No tasks yet. Use /add <title> to create one."

    if args and args[0] == "?":
        roots = filter_task_tree(tasks, search=" ".join(args[1:]))
    elif args:
        roots = filter_task_tree(tasks, status=_parse_status(" ".join(args)))
    else:
        roots = build_task_tree(tasks)

    if not roots:
        return "No matching tasks."
    return render_tree(roots, state.now())


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <title> [--parent <id>] [--due YYYY-MM-DD]
    """
    _need(args, 1, "/add <title> [--parent <id>] [--due YYYY-MM-DD]")
    title_parts: list[str] = []
    parent_id: str | None = None
    due = None
    it = iter(args)
    for a in it:
        if a == "--parent":
            parent_id = next(it, None)
        elif a == "--due":
            raw = next(it, None)
            due = _parse_date(raw) if raw else None
        else:
            title_parts.append(a)

    task_id = state.task_store.add_task(title=" ".join(title_parts), parent_id=parent_id, due_date=due)
    return f"Task created: [{task_id}]"


def cmd_status(state: AppState, args: list[str]) -> str:
    """
    /status <id> <Open|In Progress|Done>
    """
    _need(args, 2, "/status <id> <Open|In Progress|Done>")
    board = state.load_board().move_task(args[0], _parse_status(" ".join(args[1:])))
    _save(state, board, [args[0]])
    t = board.get(args[0])
    return f"[{t.id}] {t.title} -> {t.status}"


def cmd_done(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/done <id>")
    return cmd_status(state, [args[0], TaskStatus.DONE.value])


def cmd_parent(state: AppState, args: list[str]) -> str:
    """
    /parent <id> <parent_id>   -> move under another task
    /parent <id> none          -> make it a root task
    """
    _need(args, 2, "/parent <id> <parent_id|none>")
    new_parent = None if args[1].lower() in ("none", "-", "root") else args[1]
    board = state.load_board().update_task(args[0], parent_id=new_parent)
    _save(state, board, [args[0]])
    return f"[{args[0]}] moved {'to root' if new_parent is None else f'under [{new_parent}]'}"


def cmd_start(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/start <id>")
    board = state.load_board()
    before = board.get(args[0]).time_tracking
    board = board.start_timer(args[0], state.now())
    _save(state, board, [args[0]])
    if before.is_active:
        return f"Timer already running for [{args[0]}]."
    return f"Timer started for [{args[0]}]."


def cmd_pause(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/pause <id>")
    board = state.load_board()
    if not board.get(args[0]).time_tracking.is_active:
        return f"No timer running for [{args[0]}]."
    board = board.pause_timer(args[0], state.now())
    _save(state, board, [args[0]])
    return f"Timer paused for [{args[0]}]. Total: {format_duration(board.elapsed(args[0], state.now()))}"


def cmd_elapsed(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/elapsed <id>")
    return format_duration(state.load_board().elapsed(args[0], state.now()))


def cmd_log(state: AppState, args: list[str]) -> str:
    """
    /log <id> <minutes>  -> record finished work without a timer
    """
    _need(args, 2, "/log <id> <minutes>")
    try:
        minutes = float(args[1])
    except ValueError:
        raise TaskValidationError(f"Invalid minutes: {args[1]}") from None
    if not math.isfinite(minutes):
        raise TaskValidationError(f"Invalid minutes: {args[1]}")
    board = state.load_board().record_completion(args[0], int(minutes * 60_000), state.now())
    _save(state, board, [args[0]])
    return f"Logged {format_duration(int(minutes * 60_000))} on [{args[0]}]."


def cmd_rm(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/rm <id>")
    board = state.load_board()
    board.get(args[0])
    deleted = state.task_store.delete_task(args[0])
    return f"Deleted {len(deleted)} task(s): {', '.join(deleted)}"


def cmd_attach(state: AppState, args: list[str]) -> str:
    _need(args, 3, "/attach <id> <name> <url>")
    board = state.load_board()
    task = board.get(args[0])
    board = board.update_task(task.id, description=attach(task.description, args[1], args[2]))
    _save(state, board, [task.id])
    return f"Attached {args[1]} to [{task.id}]."


def cmd_stats(state: AppState, args: list[str]) -> str:
    """
    /stats [day|week|month|year] [--local]
    """
    period = getattr(state.settings, "stats_period", "week")
    use_local = False
    for a in args:
        if a == "--local":
            use_local = True
        elif a.lower() in PERIODS:
            period = a.lower()
        else:
            raise TaskValidationError(f"Usage: /stats [{'|'.join(PERIODS)}] [--local]")

    now = state.now()
    window = TimeWindow.for_period(period, now)
    tasks = state.task_store.list_tasks()
    if use_local:
        stats = local_summary(tasks, window, now)
    else:
        stats = server_summary(state.task_store, tasks, window, now)

    if not stats:
        return f"No time tracked this {period}."

    lines = [f"Time this {period}:"]
    for s in stats:
        lines.append(f"  [{s.id}] {s.title} ({s.status}) {format_duration(s.time_spent)}")
    for status, ms in totals_by_status(stats).items():
        lines.append(f"  {status}: {format_duration(ms)}")
    lines.append(f"  Total: {format_duration(total_time(stats))}")
    return "\n".join(lines)


def cmd_export(state: AppState, args: list[str]) -> str:
    now = state.now()
    if args:
        path = Path(args[0]).expanduser()
    else:
        stamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        path = Path(state.settings.export_dir) / f"tasks-{stamp}.csv"
    path.parent.mkdir(parents=True, exist_ok=True)
    tasks = state.task_store.list_tasks()
    path.write_text(dumps_tasks(tasks, now), encoding="utf-8")
    logger.info("Exported %d tasks to %s", len(tasks), path)
    return f"Exported {len(tasks)} task(s) to {path}"


def cmd_import(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    _need(args, 1, "/import <path.csv>")
    path = Path(args[0]).expanduser()
    if not path.exists():
        raise TaskNotFoundError(str(path), what="File")

    with path.open(encoding="utf-8-sig", newline="") as fp:
        drafts = from_rows(read_csv(fp))

    counter = iter(range(1, len(drafts) + 1))
    staged = materialize_drafts(drafts, lambda: f"import-{next(counter)}")

    # Parents first so every parent already has its real id.
    real_ids: dict[str, str] = {}
    for node in walk(build_task_tree(staged)):
        t = node.task
        parent = real_ids.get(t.parent_id) if t.parent_id else None
        real_id = state.task_store.add_task(
            title=t.title,
            description=t.description,
            status=t.status,
            parent_id=parent,
            due_date=t.due_date,
            created_at=t.created_at,
        )
        real_ids[t.id] = real_id
        if t.time_tracking.time_entries or t.time_tracking.total_time_spent:
            stored = state.task_store.get_task(real_id)
            state.task_store.save_task(replace(stored, time_tracking=t.time_tracking))
        if emit is not None:
            emit(f"Imported [{real_id}] {t.title}")

    summary = import_summary(drafts)
    reply = f"Imported {len(staged)} task(s) from {path}."
    return f"{reply} {summary}." if summary else reply


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tree", cmd_tree, help_text="Show tasks as a tree: /tree [status] | /tree ? <text>.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create a task: /add <title> [--parent <id>] [--due YYYY-MM-DD].")
registry.register("status", cmd_status, help_text="Change status: /status <id> <Open|In Progress|Done>.", aliases=["mv"])
registry.register("done", cmd_done, help_text="Mark a task Done (all subtasks must be Done).")
registry.register("parent", cmd_parent, help_text="Move a task: /parent <id> <parent_id|none>.")
registry.register("start", cmd_start, help_text="Start the timer of a task.")
registry.register("pause", cmd_pause, help_text="Pause the timer of a task.", aliases=["stop"])
registry.register("elapsed", cmd_elapsed, help_text="Show time spent on a task.")
registry.register("log", cmd_log, help_text="Record finished work: /log <id> <minutes>.")
registry.register("rm", cmd_rm, help_text="Delete a task and its subtasks.")
registry.register("attach", cmd_attach, help_text="Attach a link: /attach <id> <name> <url>.")
registry.register("stats", cmd_stats, help_text="Time statistics: /stats [day|week|month|year] [--local].")
registry.register("export", cmd_export, help_text="Export tasks to CSV: /export [path].")
registry.register("import", cmd_import, help_text="Import tasks from CSV: /import <path>.")
