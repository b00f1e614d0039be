# tests/test_task_tree.py

from __future__ import annotations

import pytest

from taskflow.errors import TaskNotFoundError, TaskValidationError
from taskflow.tasks.task_models import TaskStatus
from taskflow.tasks.task_tree import (
    ancestor_ids,
    build_task_tree,
    descendant_ids,
    ensure_parent_allowed,
    filter_task_tree,
    index_nodes,
    walk,
)

from .fakes import make_task


def test_tree_children_and_depth_follow_parent_ids() -> None:
    tasks = [
        make_task("1"),
        make_task("2", parent_id="1"),
        make_task("3", parent_id="1"),
        make_task("4", parent_id="3"),
        make_task("5"),
    ]
    roots = build_task_tree(tasks)

    assert [r.id for r in roots] == ["1", "5"]
    nodes = index_nodes(roots)
    assert nodes["1"].child_ids == ["2", "3"]
    assert nodes["3"].child_ids == ["4"]
    assert [nodes[i].depth for i in ("1", "2", "3", "4", "5")] == [0, 1, 1, 2, 0]

    # every task appears exactly once, pre-order
    assert [n.id for n in walk(roots)] == ["1", "2", "3", "4", "5"]


def test_tree_does_not_touch_input_tasks() -> None:
    tasks = [make_task("1"), make_task("2", parent_id="1")]
    before = list(tasks)
    build_task_tree(tasks)
    assert tasks == before


def test_unknown_parent_becomes_root() -> None:
    roots = build_task_tree([make_task("1", parent_id="missing"), make_task("2", parent_id="1")])
    assert [r.id for r in roots] == ["1"]
    assert roots[0].child_ids == ["2"]


def test_duplicate_ids_keep_first_occurrence() -> None:
    roots = build_task_tree([make_task("1", "first"), make_task("1", "second")])
    assert len(roots) == 1
    assert roots[0].task.title == "first"


def test_cycle_is_cut_at_first_member_in_input_order() -> None:
    # A -> C, B -> A, C -> B
    tasks = [
        make_task("A", parent_id="C"),
        make_task("B", parent_id="A"),
        make_task("C", parent_id="B"),
    ]
    roots = build_task_tree(tasks)

    assert [r.id for r in roots] == ["A"]
    nodes = index_nodes(roots)
    assert nodes["A"].child_ids == ["B"]
    assert nodes["B"].child_ids == ["C"]
    assert nodes["C"].depth == 2
    assert len(nodes) == 3


def test_self_parent_is_a_cycle_too() -> None:
    roots = build_task_tree([make_task("1", parent_id="1")])
    assert [r.id for r in roots] == ["1"]
    assert roots[0].children == []


def test_descendants_and_ancestors() -> None:
    tasks = [
        make_task("1"),
        make_task("2", parent_id="1"),
        make_task("3", parent_id="2"),
        make_task("4"),
    ]
    assert descendant_ids("1", tasks) == {"2", "3"}
    assert descendant_ids("4", tasks) == set()
    assert ancestor_ids("3", tasks) == ["2", "1"]
    assert ancestor_ids("1", tasks) == []


def test_ensure_parent_allowed() -> None:
    tasks = [make_task("1"), make_task("2", parent_id="1"), make_task("3")]

    ensure_parent_allowed("2", None, tasks)
    ensure_parent_allowed("2", "3", tasks)

    with pytest.raises(TaskValidationError):
        ensure_parent_allowed("1", "1", tasks)
    with pytest.raises(TaskValidationError):
        ensure_parent_allowed("1", "2", tasks)
    with pytest.raises(TaskNotFoundError) as exc:
        ensure_parent_allowed("1", "99", tasks)
    assert "Parent task not found: 99" in str(exc.value)


def test_filter_keeps_ancestors_of_matches() -> None:
    tasks = [
        make_task("1", "Project"),
        make_task("2", "Write report", parent_id="1", status=TaskStatus.DONE),
        make_task("3", "Call bank", parent_id="1"),
        make_task("4", "Groceries"),
    ]

    by_status = filter_task_tree(tasks, status=TaskStatus.DONE)
    assert [r.id for r in by_status] == ["1"]
    assert by_status[0].child_ids == ["2"]

    by_text = filter_task_tree(tasks, search="REPORT")
    assert [n.id for n in walk(by_text)] == ["1", "2"]

    assert filter_task_tree(tasks, search="nothing like this") == []
    assert len(list(walk(filter_task_tree(tasks)))) == 4
