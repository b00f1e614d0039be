# tests/test_task_guard.py

from __future__ import annotations

import pytest

from taskflow.errors import TaskValidationError
from taskflow.tasks.task_guard import can_complete, ensure_can_complete, ensure_status_transition
from taskflow.tasks.task_models import TaskStatus

from .fakes import make_task


def test_task_with_open_child_cannot_complete() -> None:
    parent = make_task("1")
    tasks = [parent, make_task("2", parent_id="1", status=TaskStatus.DONE), make_task("3", parent_id="1")]

    assert can_complete(parent, tasks) is False
    with pytest.raises(TaskValidationError) as exc:
        ensure_can_complete(parent, tasks)
    assert str(exc.value) == "Cannot complete task with open subtasks"
    assert exc.value.details["open_subtasks"] == ["3"]


def test_only_direct_children_are_checked() -> None:
    parent = make_task("1")
    tasks = [
        parent,
        make_task("2", parent_id="1", status=TaskStatus.DONE),
        make_task("3", parent_id="2"),
    ]
    assert can_complete(parent, tasks) is True


def test_leaf_can_always_complete() -> None:
    leaf = make_task("1")
    assert can_complete(leaf, [leaf]) is True


def test_status_transition_rules() -> None:
    parent = make_task("1")
    tasks = [parent, make_task("2", parent_id="1", status=TaskStatus.IN_PROGRESS)]

    ensure_status_transition(parent, TaskStatus.IN_PROGRESS, tasks)
    with pytest.raises(TaskValidationError):
        ensure_status_transition(parent, TaskStatus.DONE, tasks)
    with pytest.raises(TaskValidationError):
        ensure_status_transition(parent, TaskStatus.REVIEW, tasks)
