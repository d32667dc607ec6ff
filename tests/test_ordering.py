# tests/test_ordering.py

from __future__ import annotations

import pytest

from atelier_planner.core.errors import ValidationError
from atelier_planner.core.ports import Collection
from atelier_planner.tasks import ordering
from atelier_planner.tasks.task_models import OperationalStatus, Task, TaskKind


def _task(i: int, *, order_index: int | None = None, status=OperationalStatus.PENDING, collab: str = "c1") -> Task:
    return Task(
        id=f"t{i}",
        title=f"task {i}",
        kind=TaskKind.MANUAL,
        status_label="Terminé" if status == OperationalStatus.COMPLETED else "À qualifier",
        status=status,
        collaborator_ref=collab,
        order_index=order_index,
        created_at=float(i),
        updated_at=float(i),
    )


def test_reorder_moves_and_renumbers() -> None:
    queue = [_task(0, order_index=0), _task(1, order_index=1), _task(2, order_index=2)]

    out = ordering.reorder(queue, 0, 2)

    assert [t.id for t in out] == ["t1", "t2", "t0"]
    assert [t.order_index for t in out] == [0, 1, 2]
    # input untouched
    assert [t.order_index for t in queue] == [0, 1, 2]


def test_reorder_rejects_bad_indexes_and_completed() -> None:
    queue = [_task(0, order_index=0), _task(1, order_index=1)]
    with pytest.raises(ValidationError):
        ordering.reorder(queue, 2, 0)
    with pytest.raises(ValidationError):
        ordering.reorder(queue, 0, -1)
    with pytest.raises(ValidationError):
        ordering.reorder([*queue, _task(2, status=OperationalStatus.COMPLETED)], 0, 1)


def test_split_queue_ranks_unindexed_last() -> None:
    tasks = [
        _task(0),  # never ranked
        _task(1, order_index=5),
        _task(2, order_index=1),
        _task(3, order_index=0, status=OperationalStatus.COMPLETED),
    ]
    queue = ordering.split_queue(tasks)
    assert [t.id for t in queue.open] == ["t2", "t1", "t0"]
    assert [t.id for t in queue.done] == ["t3"]


def test_next_order_index() -> None:
    assert ordering.next_order_index([]) == 0
    assert ordering.next_order_index([_task(0)]) == 0
    assert ordering.next_order_index([_task(0, order_index=0), _task(1, order_index=5)]) == 6


async def _seed(store, tasks: list[Task]) -> list[str]:
    return [await store.create(Collection.TASKS, t.to_doc()) for t in tasks]


@pytest.mark.asyncio
async def test_move_task_persists_a_permutation(store) -> None:
    ids = await _seed(store, [_task(i, order_index=i) for i in range(4)])
    # another collaborator's task must not be touched
    (other,) = await _seed(store, [_task(9, order_index=0, collab="c2")])

    await ordering.move_task(store, "c1", ids[3], 0)

    queue = await ordering.load_queue(store, "c1")
    assert [t.id for t in queue.open] == [ids[3], ids[0], ids[1], ids[2]]
    assert sorted(t.order_index for t in queue.open) == [0, 1, 2, 3]
    assert (await store.get(Collection.TASKS, other))["order_index"] == 0


@pytest.mark.asyncio
async def test_move_task_compacts_gaps_left_by_completed(store) -> None:
    ids = await _seed(
        store,
        [
            _task(0, order_index=0),
            _task(1, order_index=1, status=OperationalStatus.COMPLETED),
            _task(2, order_index=2),
            _task(3, order_index=3),
        ],
    )

    await ordering.move_task(store, "c1", ids[0], 2)

    queue = await ordering.load_queue(store, "c1")
    assert [t.id for t in queue.open] == [ids[2], ids[3], ids[0]]
    assert [t.order_index for t in queue.open] == [0, 1, 2]
    assert [t.id for t in queue.done] == [ids[1]]


@pytest.mark.asyncio
async def test_move_task_writes_one_batch(store) -> None:
    ids = await _seed(store, [_task(i, order_index=i) for i in range(3)])
    store.calls.clear()

    await ordering.move_task(store, "c1", ids[0], 1)

    writes = [c for c in store.calls if c[0] in ("update", "batch_update")]
    assert writes == [("batch_update", "tasks")]


@pytest.mark.asyncio
async def test_move_task_unknown_or_completed_task(store) -> None:
    ids = await _seed(store, [_task(0, order_index=0), _task(1, status=OperationalStatus.COMPLETED)])
    with pytest.raises(ValidationError):
        await ordering.move_task(store, "c1", ids[1], 0)
    with pytest.raises(ValidationError):
        await ordering.move_task(store, "c1", "missing", 0)
