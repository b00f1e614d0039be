# src/taskflow/tasks/task_tree.py

"""
Task tree builder.

The flat task list (keyed by id) is the only source of truth; `build_task_tree`
derives `children` / `depth` from `parent_id` every time it is called.

Defects are repaired, not raised:
- duplicate ids: first occurrence wins
- parent_id pointing at an unknown task: the task becomes a root
- parent cycles: the cycle is broken at the member that appears first in the
  input, which becomes a root
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from ..errors import TaskNotFoundError, TaskValidationError
from .task_models import Task, TaskNode, TaskStatus

logger = logging.getLogger(__name__)


def _dedupe(tasks: Iterable[Task]) -> dict[str, Task]:
    by_id: dict[str, Task] = {}
    for t in tasks:
        if t.id in by_id:
            logger.warning("Duplicate task id=%s dropped (keeping first occurrence)", t.id)
            continue
        by_id[t.id] = t
    return by_id


def _effective_parents(by_id: dict[str, Task]) -> dict[str, str | None]:
    """Map id -> parent id actually used in the tree (unknown parents and cycles cut)."""
    parent_of: dict[str, str | None] = {}
    for tid, t in by_id.items():
        pid = t.parent_id
        if pid is not None and pid not in by_id:
            logger.debug("Task id=%s has unknown parent_id=%s; promoted to root", tid, pid)
            pid = None
        parent_of[tid] = pid

    order = {tid: i for i, tid in enumerate(by_id)}
    resolved: set[str] = set()  # ids whose chain is known to end at a root

    for start in by_id:
        while True:
            path: list[str] = []
            on_path: set[str] = set()
            cur: str | None = start
            cycle: list[str] | None = None

            while cur is not None and cur not in resolved:
                if cur in on_path:
                    cycle = path[path.index(cur):]
                    break
                path.append(cur)
                on_path.add(cur)
                cur = parent_of[cur]

            if cycle is None:
                resolved.update(path)
                break

            cut = min(cycle, key=order.__getitem__)
            logger.warning(
                "Parent cycle detected among task ids=%s; promoting id=%s to root",
                cycle,
                cut,
            )
            parent_of[cut] = None

    return parent_of


def build_task_tree(tasks: Iterable[Task]) -> list[TaskNode]:
    """
    Build a forest of TaskNode from a flat task list.

    Children keep the input order. The input tasks are not modified.
    """
    by_id = _dedupe(tasks)
    parent_of = _effective_parents(by_id)

    nodes = {tid: TaskNode(task=t) for tid, t in by_id.items()}
    roots: list[TaskNode] = []
    for tid, node in nodes.items():
        pid = parent_of[tid]
        if pid is None:
            roots.append(node)
        else:
            nodes[pid].children.append(node)

    stack = [(r, 0) for r in roots]
    while stack:
        node, depth = stack.pop()
        node.depth = depth
        stack.extend((c, depth + 1) for c in node.children)

    return roots


def walk(roots: Iterable[TaskNode]) -> Iterator[TaskNode]:
    """Depth-first, pre-order."""
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def index_nodes(roots: Iterable[TaskNode]) -> dict[str, TaskNode]:
    return {n.id: n for n in walk(roots)}


def child_map(tasks: Iterable[Task]) -> dict[str, list[str]]:
    out: dict[str, list[str]] = {}
    for t in tasks:
        if t.parent_id is not None:
            out.setdefault(t.parent_id, []).append(t.id)
    return out


def descendant_ids(task_id: str, tasks: Iterable[Task]) -> set[str]:
    children = child_map(tasks)
    found: set[str] = set()
    stack = list(children.get(task_id, []))
    while stack:
        cid = stack.pop()
        if cid in found or cid == task_id:
            continue
        found.add(cid)
        stack.extend(children.get(cid, []))
    return found


def ancestor_ids(task_id: str, tasks: Iterable[Task]) -> list[str]:
    """Parent first, root last. Stops at unknown parents and at cycles."""
    by_id = {t.id: t for t in tasks}
    out: list[str] = []
    seen = {task_id}
    cur = by_id.get(task_id)
    while cur is not None and cur.parent_id is not None and cur.parent_id not in seen:
        if cur.parent_id not in by_id:
            break
        out.append(cur.parent_id)
        seen.add(cur.parent_id)
        cur = by_id[cur.parent_id]
    return out


def ensure_parent_allowed(task_id: str, parent_id: str | None, tasks: Iterable[Task]) -> None:
    """
    Reject a parent assignment that would create a cycle.

    Must run before the snapshot changes.
    """
    if parent_id is None:
        return
    task_list = list(tasks)
    if parent_id == task_id:
        raise TaskValidationError("A task cannot be its own parent", {"task_id": task_id})
    if not any(t.id == parent_id for t in task_list):
        raise TaskNotFoundError(parent_id, what="Parent task")
    if parent_id in descendant_ids(task_id, task_list):
        raise TaskValidationError(
            "A task cannot be moved under one of its own subtasks",
            {"task_id": task_id, "parent_id": parent_id},
        )


def filter_task_tree(
    tasks: Iterable[Task],
    *,
    status: TaskStatus | None = None,
    search: str | None = None,
) -> list[TaskNode]:
    """
    Tree of the tasks matching the filter, plus all their ancestors
    (so a matching subtask is still shown in context).
    """
    task_list = list(tasks)
    needle = (search or "").strip().lower()
    if status is None and not needle:
        return build_task_tree(task_list)

    def matches(t: Task) -> bool:
        if status is not None and t.status != status:
            return False
        if needle and needle not in t.title.lower() and needle not in t.description.lower():
            return False
        return True

    keep = {t.id for t in task_list if matches(t)}
    for tid in list(keep):
        keep.update(ancestor_ids(tid, task_list))

    return build_task_tree(t for t in task_list if t.id in keep)
