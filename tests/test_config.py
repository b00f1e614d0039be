# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from taskflow.config import Settings
from taskflow.logging_setup import _ConsoleNoiseFilter, setup_logging


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("DATA_DIR", "TASKS_DB_PATH", "LOG_DIR", "EXPORT_DIR", "STATS_PERIOD", "CONSOLE_ENABLED"):
        monkeypatch.delenv(f"TASKFLOW_{key}", raising=False)

    s = Settings.from_env()
    assert s.data_dir == Path(".local/taskflow")
    assert s.tasks_db_path == Path(".local/taskflow/tasks.sqlite3")
    assert s.export_dir == Path(".local/taskflow/exports")
    assert s.stats_period == "week"
    assert s.console_enabled is True


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKFLOW_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TASKFLOW_LOG_LEVEL", "debug")
    monkeypatch.setenv("TASKFLOW_STATS_PERIOD", "Month")
    monkeypatch.setenv("TASKFLOW_CONSOLE_ENABLED", "no")
    monkeypatch.delenv("TASKFLOW_TASKS_DB_PATH", raising=False)

    s = Settings.from_env()
    assert s.log_level == "DEBUG"
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
    assert s.stats_period == "month"
    assert s.console_enabled is False

    monkeypatch.setenv("TASKFLOW_STATS_PERIOD", "fortnight")
    assert Settings.from_env().stats_period == "week"


def test_setup_logging_writes_log_file(tmp_path: Path) -> None:
    root = logging.getLogger()
    saved = list(root.handlers)
    try:
        setup_logging(log_dir=tmp_path, console_level=logging.WARNING)
        logging.getLogger("taskflow.test").info("hello from test")
        for h in root.handlers:
            h.flush()
        assert "hello from test" in (tmp_path / "taskflow.log").read_text(encoding="utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved:
            root.addHandler(h)
        logging.captureWarnings(False)


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_floors() -> None:
    f = _ConsoleNoiseFilter()

    # project warnings (e.g. bad import rows) reach the console
    assert f.filter(_record("taskflow.tasks.task_csv", logging.WARNING))
    assert f.filter(_record("taskflow.tasks.task_tree", logging.INFO))

    # chatter that repeats the command reply stays in the file only
    assert not f.filter(_record("taskflow.cli.commands", logging.INFO))
    assert not f.filter(_record("taskflow.tasks.task_store", logging.INFO))
    assert f.filter(_record("taskflow.tasks.task_store", logging.WARNING))

    assert not f.filter(_record("py.warnings", logging.WARNING))
    assert not f.filter(_record("urllib3", logging.WARNING))
    assert f.filter(_record("urllib3", logging.ERROR))
