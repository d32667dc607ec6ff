# src/atelier_planner/tasks/ordering.py

"""
Manual priority ordering of a collaborator's tasks.

Two steps:
- reorder(): pure list splice over the open partition, returns new Task objects
  with order_index = position,
- persist(): writes every order_index of that partition in one atomic batch.

Only open tasks are ranked. Completed tasks keep whatever index they had when
they were closed; gaps left behind are compacted by the next persist() of the
open partition. order_index is an advisory ranking, not a global invariant.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace

from ..core.errors import ValidationError
from ..core.ports import BatchWrite, Collection, EntityStore
from .task_models import Task, stamp

logger = logging.getLogger(__name__)

# Tasks never ranked sort after ranked ones, in creation order.
_UNRANKED = 1_000_000


def _rank_key(task: Task) -> tuple[int, float, str]:
    idx = task.order_index if task.order_index is not None else _UNRANKED
    return idx, task.created_at, task.id


@dataclass(slots=True)
class TaskQueue:
    """A collaborator's tasks split into the reorderable open partition and the done list."""

    open: list[Task] = field(default_factory=list)
    done: list[Task] = field(default_factory=list)


def split_queue(tasks: Iterable[Task]) -> TaskQueue:
    queue = TaskQueue()
    for t in tasks:
        (queue.open if t.is_open else queue.done).append(t)
    queue.open.sort(key=_rank_key)
    return queue


def next_order_index(open_tasks: Sequence[Task]) -> int:
    """Index that appends a new task at the end of the open partition."""
    ranked = [t.order_index for t in open_tasks if t.order_index is not None]
    return max(ranked) + 1 if ranked else 0


def reorder(queue: Sequence[Task], from_index: int, to_index: int) -> list[Task]:
    """
    Move queue[from_index] to to_index and renumber 0..n-1.

    The input is not modified.
    """
    n = len(queue)
    if not 0 <= from_index < n:
        raise ValidationError(f"from_index {from_index} out of range for a queue of {n}")
    if not 0 <= to_index < n:
        raise ValidationError(f"to_index {to_index} out of range for a queue of {n}")
    closed = [t.id for t in queue if not t.is_open]
    if closed:
        raise ValidationError(f"completed tasks cannot be reordered: {', '.join(closed)}")

    items = list(queue)
    moved = items.pop(from_index)
    items.insert(to_index, moved)
    return [replace(t, order_index=pos) for pos, t in enumerate(items)]


async def persist(store: EntityStore, queue: Sequence[Task]) -> None:
    """Write order_index = position for every task in the queue, as one batch."""
    writes = [
        BatchWrite(Collection.TASKS, t.id, stamp({"order_index": pos}))
        for pos, t in enumerate(queue)
    ]
    await store.batch_update(writes)
    logger.debug("Persisted order of %d tasks", len(writes))


async def load_queue(store: EntityStore, collaborator_ref: str) -> TaskQueue:
    if not collaborator_ref:
        raise ValidationError("collaborator_ref is required")
    docs = await store.query(Collection.TASKS, [("collaborator_ref", "==", collaborator_ref)])
    return split_queue(Task.from_doc(d) for d in docs)


async def move_task(
        store: EntityStore,
        collaborator_ref: str,
        task_id: str,
        to_index: int,
) -> list[Task]:
    """Drag-and-drop handler: move task_id to to_index within its owner's open queue."""
    queue = await load_queue(store, collaborator_ref)
    positions = {t.id: i for i, t in enumerate(queue.open)}
    if task_id not in positions:
        raise ValidationError(f"task {task_id} is not in the open queue of {collaborator_ref}")

    reordered = reorder(queue.open, positions[task_id], to_index)
    await persist(store, reordered)
    logger.info(
        "Task %s moved %d -> %d (collaborator=%s)",
        task_id,
        positions[task_id],
        to_index,
        collaborator_ref,
    )
    return reordered
