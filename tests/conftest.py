# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskflow.core.state import AppState
from taskflow.tasks.task_store import TaskStore

from .fakes import NOW, FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskflow-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        log_dir=tmp_path / "logs",
        export_dir=tmp_path / "exports",
        # Behaviour
        stats_period="week",
        console_enabled=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FakeClock) -> AppState:
    """
    AppState wired with a fixed clock.

    NOTE: We keep the real SQLite TaskStore here because its correctness is
    part of what we want to test.
    """
    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        clock=clock,
    )
