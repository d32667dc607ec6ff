# tests/test_binding.py

from __future__ import annotations

import time as clock
from datetime import date, time

import pytest

from atelier_planner.agenda.agenda_models import (
    Appointment,
    AppointmentLocation,
    AppointmentStatus,
    AppointmentType,
)
from atelier_planner.core.errors import ValidationError
from atelier_planner.core.ports import Collection
from atelier_planner.lifecycle.binding import (
    BindingAction,
    CalendarPlacement,
    reconcile_task_link,
    sync_task_appointment,
    watch_task_link,
)
from atelier_planner.tasks.task_models import OperationalStatus, Task, TaskKind

DAY = date(2026, 3, 12)


def _on(start: str = "09:00", end: str = "10:00", day: date = DAY) -> CalendarPlacement:
    return CalendarPlacement(
        enabled=True,
        day=day,
        start=time.fromisoformat(start),
        end=time.fromisoformat(end),
    )


async def _stored_task(store, title: str = "Commander les plans") -> Task:
    task = Task(
        id="",
        title=title,
        kind=TaskKind.MANUAL,
        status_label="À qualifier",
        status=OperationalStatus.PENDING,
        collaborator_ref="c1",
        client_ref="cl1",
        created_at=clock.time(),
    )
    task.id = await store.create(Collection.TASKS, task.to_doc())
    return task


@pytest.mark.asyncio
async def test_enable_creates_linked_appointment(store) -> None:
    task = await _stored_task(store)

    res = await sync_task_appointment(
        store,
        task,
        _on(),
        location=AppointmentLocation.HOME,
        appointment_type=AppointmentType.METRE,
    )

    assert res.action == BindingAction.CREATED
    appt = res.appointment
    assert appt is not None
    assert appt.task_id == task.id
    assert appt.title == "[Tâche] Commander les plans"
    assert appt.status == AppointmentStatus.CONFIRMED
    assert appt.location == AppointmentLocation.HOME
    assert appt.type == AppointmentType.METRE
    assert appt.client_ref == "cl1"
    assert res.task.linked_appointment_id == appt.id
    assert (await store.get(Collection.TASKS, task.id))["linked_appointment_id"] == appt.id


@pytest.mark.asyncio
async def test_same_placement_is_unchanged_and_move_keeps_id(store) -> None:
    task = await _stored_task(store)
    first = await sync_task_appointment(store, task, _on())
    appt_id = first.appointment.id

    again = await sync_task_appointment(store, first.task, _on())
    assert again.action == BindingAction.UNCHANGED
    assert again.appointment.id == appt_id

    # status edited from the calendar survives a time change made from the task
    await store.update(Collection.APPOINTMENTS, appt_id, {"status": AppointmentStatus.PENDING.value})
    moved = await sync_task_appointment(store, first.task, _on("14:00", "15:30"))

    assert moved.action == BindingAction.UPDATED
    assert moved.appointment.id == appt_id
    doc = await store.get(Collection.APPOINTMENTS, appt_id)
    assert (doc["start_time"], doc["end_time"]) == ("14:00", "15:30")
    assert doc["status"] == AppointmentStatus.PENDING.value
    assert len(await store.query(Collection.APPOINTMENTS)) == 1


@pytest.mark.asyncio
async def test_enable_then_disable_returns_to_start(store) -> None:
    task = await _stored_task(store)
    placed = await sync_task_appointment(store, task, _on())

    res = await sync_task_appointment(store, placed.task, CalendarPlacement.off())

    assert res.action == BindingAction.DELETED
    assert res.task.linked_appointment_id is None
    assert await store.query(Collection.APPOINTMENTS) == []
    assert (await store.get(Collection.TASKS, task.id))["linked_appointment_id"] is None

    noop = await sync_task_appointment(store, res.task, CalendarPlacement.off())
    assert noop.action == BindingAction.NONE


@pytest.mark.asyncio
async def test_enable_edit_time_then_disable_leaves_no_slot(store) -> None:
    task = await _stored_task(store)
    placed = await sync_task_appointment(store, task, _on())
    moved = await sync_task_appointment(store, placed.task, _on("11:00", "12:00"))
    assert moved.action == BindingAction.UPDATED

    await sync_task_appointment(store, moved.task, CalendarPlacement.off())

    assert await store.query(Collection.APPOINTMENTS) == []


@pytest.mark.asyncio
async def test_invalid_placement_writes_nothing(store) -> None:
    task = await _stored_task(store)
    store.calls.clear()

    with pytest.raises(ValidationError):
        await sync_task_appointment(store, task, CalendarPlacement(enabled=True, day=DAY))
    with pytest.raises(ValidationError):
        await sync_task_appointment(store, task, _on("10:00", "09:00"))

    assert not [c for c in store.calls if c[0] in ("create", "update", "delete", "batch_update")]


@pytest.mark.asyncio
async def test_reconcile_clears_link_after_calendar_delete(store) -> None:
    task = await _stored_task(store)
    placed = await sync_task_appointment(store, task, _on())

    await store.delete(Collection.APPOINTMENTS, placed.appointment.id)
    healed = await reconcile_task_link(store, placed.task)

    assert healed.linked_appointment_id is None
    assert (await store.get(Collection.TASKS, task.id))["linked_appointment_id"] is None

    # placing again creates a fresh slot
    res = await sync_task_appointment(store, healed, _on())
    assert res.action == BindingAction.CREATED


@pytest.mark.asyncio
async def test_reconcile_restores_link_from_back_reference(store) -> None:
    task = await _stored_task(store)
    # the slot exists but the task's cached id was never written
    appt = Appointment(
        id="",
        title="[Tâche] Commander les plans",
        day=DAY,
        start_time=time(9, 0),
        end_time=time(10, 0),
        collaborator_ref="c1",
        client_ref="cl1",
        task_id=task.id,
        created_at=clock.time(),
    )
    appt_id = await store.create(Collection.APPOINTMENTS, appt.to_doc())

    healed = await reconcile_task_link(store, task)

    assert healed.linked_appointment_id == appt_id
    res = await sync_task_appointment(store, healed, _on())
    assert res.action == BindingAction.UNCHANGED


@pytest.mark.asyncio
async def test_reconcile_keeps_oldest_of_duplicates(store) -> None:
    task = await _stored_task(store)
    base = Appointment(
        id="",
        title="x",
        day=DAY,
        start_time=time(9, 0),
        end_time=time(10, 0),
        collaborator_ref="c1",
        task_id=task.id,
    )
    newer = await store.create(Collection.APPOINTMENTS, {**base.to_doc(), "created_at": 200.0})
    older = await store.create(Collection.APPOINTMENTS, {**base.to_doc(), "created_at": 100.0})

    healed = await reconcile_task_link(store, task)

    assert healed.linked_appointment_id == older
    assert healed.linked_appointment_id != newer


@pytest.mark.asyncio
async def test_conflicts_reported_but_slot_saved(store) -> None:
    other = await _stored_task(store, "Autre")
    await sync_task_appointment(store, other, _on("09:00", "10:00"))
    task = await _stored_task(store)

    res = await sync_task_appointment(store, task, _on("09:30", "10:30"))

    assert res.action == BindingAction.CREATED
    assert [a.title for a in res.conflicts] == ["[Tâche] Autre"]


@pytest.mark.asyncio
async def test_watch_task_link_follows_slot(store) -> None:
    task = await _stored_task(store)
    seen: list[Appointment | None] = []

    unsubscribe = watch_task_link(store, task.id, seen.append)
    placed = await sync_task_appointment(store, task, _on())
    await sync_task_appointment(store, placed.task, CalendarPlacement.off())
    unsubscribe()
    await sync_task_appointment(store, placed.task, _on())

    assert seen[0] is None
    assert any(a is not None and a.id == placed.appointment.id for a in seen)
    assert seen[-1] is None
