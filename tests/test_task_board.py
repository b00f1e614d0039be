# tests/test_task_board.py

from __future__ import annotations

import pytest

from taskflow.errors import TaskNotFoundError, TaskValidationError
from taskflow.tasks.task_board import TaskBoard
from taskflow.tasks.task_models import Task, TaskStatus, TimeEntry, TimeTracking

from .fakes import make_task


def _board() -> TaskBoard:
    return TaskBoard.from_tasks(
        [
            make_task("1", "Project"),
            make_task("2", "Draft", parent_id="1"),
            make_task("3", "Review", parent_id="2"),
            make_task("4", "Other"),
        ]
    )


def test_create_and_query() -> None:
    board = TaskBoard().create_task(task_id="1", title="  Plan trip ")
    board = board.create_task(task_id="2", title="Book hotel", parent_id="1")

    assert len(board) == 2
    assert "2" in board
    assert board.get("1").title == "Plan trip"
    assert board.nodes()["1"].child_ids == ["2"]
    assert [t.id for t in board.by_status(TaskStatus.OPEN)] == ["1", "2"]


def test_create_validation() -> None:
    board = _board()
    with pytest.raises(TaskValidationError):
        board.create_task(task_id="9", title="   ")
    with pytest.raises(TaskValidationError):
        board.create_task(task_id="1", title="dup")
    with pytest.raises(TaskValidationError):
        board.create_task(task_id="9", title="x", status=TaskStatus.REVIEW)
    with pytest.raises(TaskNotFoundError):
        board.create_task(task_id="9", title="x", parent_id="404")


def test_mutations_return_new_boards() -> None:
    board = _board()
    renamed = board.update_task("4", title="Renamed")

    assert renamed.get("4").title == "Renamed"
    assert board.get("4").title == "Other"
    assert board.update_task("4") is board


def test_reparent_rejects_cycles() -> None:
    board = _board()
    with pytest.raises(TaskValidationError):
        board.update_task("1", parent_id="3")
    with pytest.raises(TaskValidationError):
        board.update_task("1", parent_id="1")

    moved = board.update_task("3", parent_id="4")
    assert moved.nodes()["4"].child_ids == ["3"]
    assert moved.update_task("3", parent_id=None).get("3").parent_id is None


def test_done_requires_done_children() -> None:
    board = _board()
    with pytest.raises(TaskValidationError):
        board.move_task("2", TaskStatus.DONE)

    board = board.move_task("3", TaskStatus.DONE).move_task("2", TaskStatus.DONE)
    assert board.get("2").status == TaskStatus.DONE
    with pytest.raises(TaskValidationError):
        board.move_task("4", TaskStatus.REVIEW)


def test_remove_cascades() -> None:
    board = _board().remove_task("2")
    assert sorted(board.tasks) == ["1", "4"]
    with pytest.raises(TaskNotFoundError):
        board.remove_task("2")


def test_timer_flow() -> None:
    board = _board().start_timer("4", 1000)
    task = board.get("4")
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.time_tracking.is_active
    assert board.start_timer("4", 2000) is board
    assert board.elapsed("4", 3000) == 2000

    board = board.pause_timer("4", 3500)
    assert board.elapsed("4", 9999) == 2500
    assert board.pause_timer("4", 4000) is board

    board = board.record_completion("4", 1500, 10_000)
    assert board.get("4").time_tracking.total_time_spent == 4000


def test_unknown_ids_raise_not_found() -> None:
    board = _board()
    for op in (
        lambda: board.get("x"),
        lambda: board.update_task("x", title="t"),
        lambda: board.start_timer("x", 1),
        lambda: board.pause_timer("x", 1),
        lambda: board.elapsed("x", 1),
    ):
        with pytest.raises(TaskNotFoundError):
            op()


def test_from_tasks_dedupes_and_repairs() -> None:
    broken = Task(
        id="1",
        title="first",
        time_tracking=TimeTracking(is_active=False, time_entries=(TimeEntry(start_time=10, duration=5),)),
    )
    board = TaskBoard.from_tasks([broken, make_task("1", "second")])

    assert len(board) == 1
    acc = board.get("1").time_tracking
    assert acc.time_entries == (TimeEntry(start_time=10, end_time=15, duration=5),)
    assert acc.total_time_spent == 5


def test_with_tasks_rejects_existing_ids() -> None:
    board = _board()
    assert len(board.with_tasks([make_task("9")])) == 5
    with pytest.raises(TaskValidationError):
        board.with_tasks([make_task("1")])
