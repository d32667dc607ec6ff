# src/atelier_planner/lifecycle/binding.py

"""
Task <-> appointment binding.

A task owns at most one calendar slot. The relation is two plain fields:

    Task.linked_appointment_id  -> appointment id (cached, may go stale)
    Appointment.task_id         -> task id (the back-reference, authoritative)

The store has no referential integrity, so every sync starts with
reconcile_task_link(): the link is re-derived from the appointments that carry
the task's id, and the cached field is corrected when it disagrees. Deleting a
slot from the calendar therefore never orphans the task; the next load clears it.

Transitions driven by CalendarPlacement:
- enabled, no link        -> create the slot, stamp task_id, store its id on the task
- enabled, link exists    -> update the slot in place (same id) if anything changed
- disabled, link exists   -> delete the slot, clear the link
- disabled, no link       -> nothing

refresh_linked_slot() covers edits without a placement: a new label (and so a
new auto title) or a new owner is carried over to the existing slot.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import date
from datetime import time as dtime
from enum import StrEnum

from ..agenda.agenda_models import (
    Appointment,
    AppointmentLocation,
    AppointmentStatus,
    AppointmentType,
    TimeSlot,
    format_time,
)
from ..agenda.conflicts import check_conflicts
from ..core.errors import ValidationError
from ..core.ports import Collection, Document, EntityStore, Unsubscribe
from ..tasks.task_models import Task, stamp
from ..tasks.titles import appointment_title

logger = logging.getLogger(__name__)


class BindingAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    NONE = "none"


@dataclass(slots=True, frozen=True)
class CalendarPlacement:
    """The "place on calendar" switch of the task form, plus the candidate slot."""

    enabled: bool
    day: date | None = None
    start: dtime | None = None
    end: dtime | None = None

    @classmethod
    def off(cls) -> CalendarPlacement:
        return cls(enabled=False)

    def slot_for(self, collaborator_ref: str) -> TimeSlot:
        if self.day is None or self.start is None or self.end is None:
            raise ValidationError("a calendar placement needs a date, a start and an end time")
        return TimeSlot(self.day, self.start, self.end, collaborator_ref)


@dataclass(slots=True)
class BindingResult:
    task: Task
    appointment: Appointment | None
    action: BindingAction
    conflicts: list[Appointment] = field(default_factory=list)


def _oldest_first(docs: list[Document]) -> list[Document]:
    return sorted(docs, key=lambda d: (float(d.get("created_at") or 0.0), str(d["id"])))


async def reconcile_task_link(store: EntityStore, task: Task) -> Task:
    """Re-derive linked_appointment_id from the appointments pointing at the task."""
    docs = _oldest_first(await store.query(Collection.APPOINTMENTS, [("task_id", "==", task.id)]))
    if len(docs) > 1:
        logger.warning(
            "Task %s is referenced by %d appointments; keeping the oldest (%s)",
            task.id,
            len(docs),
            docs[0]["id"],
        )
    actual = str(docs[0]["id"]) if docs else None
    if actual == task.linked_appointment_id:
        return task

    logger.info(
        "Task %s link healed: %s -> %s",
        task.id,
        task.linked_appointment_id,
        actual,
    )
    await store.update(Collection.TASKS, task.id, stamp({"linked_appointment_id": actual}))
    return replace(task, linked_appointment_id=actual)


def _task_fields(task: Task) -> Document:
    return {
        "title": appointment_title(task.kind, task.title),
        "collaborator_ref": task.collaborator_ref,
        "client_ref": task.client_ref,
        "project_ref": task.project_ref,
        "task_id": task.id,
    }


def _slot_fields(task: Task, slot: TimeSlot) -> Document:
    """Fields of the slot that follow the task; status/type/location stay as edited in the calendar."""
    return {
        **_task_fields(task),
        "date": slot.day.isoformat(),
        "start_time": format_time(slot.start),
        "end_time": format_time(slot.end),
    }


async def sync_task_appointment(
        store: EntityStore,
        task: Task,
        placement: CalendarPlacement,
        *,
        location: AppointmentLocation = AppointmentLocation.SHOWROOM,
        appointment_type: AppointmentType = AppointmentType.OTHER,
) -> BindingResult:
    """Bring the task's calendar slot in line with the placement. The task must already be stored."""
    # Validate before the first write.
    slot = placement.slot_for(task.collaborator_ref) if placement.enabled else None

    task = await reconcile_task_link(store, task)

    if slot is None:
        if not task.linked_appointment_id:
            return BindingResult(task=task, appointment=None, action=BindingAction.NONE)
        appt_id = task.linked_appointment_id
        await store.delete(Collection.APPOINTMENTS, appt_id)
        await store.update(Collection.TASKS, task.id, stamp({"linked_appointment_id": None}))
        logger.info("Task %s removed from calendar (appointment %s deleted)", task.id, appt_id)
        return BindingResult(
            task=replace(task, linked_appointment_id=None),
            appointment=None,
            action=BindingAction.DELETED,
        )

    conflicts = await check_conflicts(store, slot, exclude_appointment_id=task.linked_appointment_id)
    wanted = _slot_fields(task, slot)

    if task.linked_appointment_id:
        current = await store.get(Collection.APPOINTMENTS, task.linked_appointment_id)
        if current is not None:
            changed = {k: v for k, v in wanted.items() if current.get(k) != v}
            if not changed:
                return BindingResult(
                    task=task,
                    appointment=Appointment.from_doc(current),
                    action=BindingAction.UNCHANGED,
                    conflicts=conflicts,
                )
            await store.update(Collection.APPOINTMENTS, task.linked_appointment_id, changed)
            current.update(changed)
            logger.info("Task %s appointment %s updated (%s)", task.id, current["id"], ", ".join(sorted(changed)))
            return BindingResult(
                task=task,
                appointment=Appointment.from_doc(current),
                action=BindingAction.UPDATED,
                conflicts=conflicts,
            )
        # Vanished between reconcile and now: fall through and place a new slot.
        logger.warning("Appointment %s of task %s disappeared during sync", task.linked_appointment_id, task.id)

    record = {
        **wanted,
        "status": AppointmentStatus.CONFIRMED.value,
        "type": appointment_type.value,
        "location": location.value,
        "created_at": time.time(),
    }
    appt_id = await store.create(Collection.APPOINTMENTS, record)
    # If this write fails the slot still carries task_id, so the next reconcile restores the link.
    await store.update(Collection.TASKS, task.id, stamp({"linked_appointment_id": appt_id}))
    logger.info("Task %s placed on calendar as appointment %s", task.id, appt_id)
    return BindingResult(
        task=replace(task, linked_appointment_id=appt_id),
        appointment=Appointment.from_doc({**record, "id": appt_id}),
        action=BindingAction.CREATED,
        conflicts=conflicts,
    )


async def refresh_linked_slot(store: EntityStore, task: Task) -> BindingResult:
    """
    Push an edited task's title, owner and refs to its slot, keeping the slot's
    date and times. Used when the task changes without a new placement.
    """
    task = await reconcile_task_link(store, task)
    if not task.linked_appointment_id:
        return BindingResult(task=task, appointment=None, action=BindingAction.NONE)

    current = await store.get(Collection.APPOINTMENTS, task.linked_appointment_id)
    if current is None:
        logger.warning("Appointment %s of task %s disappeared during refresh", task.linked_appointment_id, task.id)
        return BindingResult(task=replace(task, linked_appointment_id=None), appointment=None, action=BindingAction.NONE)

    changed = {k: v for k, v in _task_fields(task).items() if current.get(k) != v}
    if changed:
        await store.update(Collection.APPOINTMENTS, task.linked_appointment_id, changed)
        current.update(changed)
        logger.info("Task %s appointment %s refreshed (%s)", task.id, current["id"], ", ".join(sorted(changed)))

    appt = Appointment.from_doc(current)
    conflicts = await check_conflicts(store, appt.slot, exclude_appointment_id=appt.id)
    return BindingResult(
        task=task,
        appointment=appt,
        action=BindingAction.UPDATED if changed else BindingAction.UNCHANGED,
        conflicts=conflicts,
    )


def watch_task_link(
        store: EntityStore,
        task_id: str,
        on_change: Callable[[Appointment | None], None],
) -> Unsubscribe:
    """Follow the slot linked to a task (None when it is removed), e.g. while its form is open."""

    def _on_snapshot(docs: list[Document]) -> None:
        ordered = _oldest_first(docs)
        on_change(Appointment.from_doc(ordered[0]) if ordered else None)

    return store.subscribe(Collection.APPOINTMENTS, [("task_id", "==", task_id)], _on_snapshot)
