# tests/test_main.py

from __future__ import annotations

import logging

import pytest

from taskflow.cli import main as cli_main
from taskflow.cli.bootstrap import create_initial_state


def test_create_initial_state_makes_local_dirs(settings) -> None:
    state = create_initial_state(settings=settings)
    assert settings.export_dir.is_dir()
    assert state.task_store.count_tasks() == 0


def test_one_shot_command(settings, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(cli_main, "get_settings", lambda: settings)
    root = logging.getLogger()
    saved = list(root.handlers)
    try:
        assert cli_main.main(["add", "Water", "plants"]) == 0
        assert cli_main.main(["/tree"]) == 0
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved:
            root.addHandler(h)
        logging.captureWarnings(False)

    out = capsys.readouterr().out
    assert "Task created: [1]" in out
    assert "- [1] Water plants (Open) 00:00:00" in out
