# src/taskflow/core/state.py

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_board import TaskBoard
from ..tasks.task_models import current_millis
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    """
    Everything a command needs.

    `clock` returns "now" in ms since epoch; tests swap it for a fixed value.
    """

    settings: Any
    task_store: TaskStore
    clock: Callable[[], int] = field(default=current_millis)

    def now(self) -> int:
        return int(self.clock())

    def load_board(self) -> TaskBoard:
        return TaskBoard.from_tasks(self.task_store.list_tasks())
