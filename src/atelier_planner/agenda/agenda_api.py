# src/atelier_planner/agenda/agenda_api.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ..core.errors import NotFoundError, ValidationError
from ..core.ports import Collection
from ..core.state import AppState
from ..tasks.task_models import Task
from .agenda_models import (
    Appointment,
    AppointmentLocation,
    AppointmentStatus,
    AppointmentType,
    TimeSlot,
    format_time,
)
from .conflicts import check_conflicts

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass(slots=True)
class AppointmentSaveResult:
    appointment: Appointment
    conflicts: list[Appointment] = field(default_factory=list)


async def get_appointment(state: AppState, appointment_id: str) -> Appointment:
    doc = await state.store.get(Collection.APPOINTMENTS, appointment_id)
    if doc is None:
        raise NotFoundError(Collection.APPOINTMENTS, appointment_id)
    return Appointment.from_doc(doc)


async def create_appointment(
    state: AppState,
    *,
    title: str,
    slot: TimeSlot,
    client_ref: str | None = None,
    project_ref: str | None = None,
    type: AppointmentType = AppointmentType.R1,
    location: AppointmentLocation | None = None,
) -> AppointmentSaveResult:
    """
    Standalone calendar slot (not tied to a task). Conflicts are returned as
    warnings; the slot is saved regardless.
    """
    title = (title or "").strip()
    if not title:
        raise ValidationError("appointment title is required")

    conflicts = await check_conflicts(state.store, slot)
    appt = Appointment(
        id="",
        title=title,
        day=slot.day,
        start_time=slot.start,
        end_time=slot.end,
        collaborator_ref=slot.collaborator_ref,
        client_ref=client_ref,
        project_ref=project_ref,
        status=AppointmentStatus.CONFIRMED,
        type=type,
        location=location or state.appointment_location,
        created_at=time.time(),
    )
    appt.id = await state.store.create(Collection.APPOINTMENTS, appt.to_doc())
    logger.info("Appointment %s created %s %s-%s for %s", appt.id, slot.day, slot.start, slot.end, slot.collaborator_ref)
    return AppointmentSaveResult(appointment=appt, conflicts=conflicts)


async def update_appointment(
    state: AppState,
    appointment_id: str,
    *,
    title: Any = _UNSET,
    slot: TimeSlot | None = None,
    status: AppointmentStatus | None = None,
    type: AppointmentType | None = None,
    location: AppointmentLocation | None = None,
) -> AppointmentSaveResult:
    """
    Edit from the calendar. The task back-reference is never touched here, so
    a slot moved in the calendar stays bound to its task.
    """
    appt = await get_appointment(state, appointment_id)
    fields: dict[str, Any] = {}
    conflicts: list[Appointment] = []

    if title is not _UNSET:
        title = (title or "").strip()
        if not title:
            raise ValidationError("appointment title is required")
        fields["title"] = title
    if slot is not None:
        conflicts = await check_conflicts(state.store, slot, exclude_appointment_id=appt.id)
        fields.update(
            {
                "date": slot.day.isoformat(),
                "start_time": format_time(slot.start),
                "end_time": format_time(slot.end),
                "collaborator_ref": slot.collaborator_ref,
            }
        )
    if status is not None:
        fields["status"] = status.value
    if type is not None:
        fields["type"] = type.value
    if location is not None:
        fields["location"] = location.value

    if fields:
        await state.store.update(Collection.APPOINTMENTS, appt.id, fields)
        appt = Appointment.from_doc({**appt.to_doc(), **fields, "id": appt.id})
        logger.info("Appointment %s updated (%s)", appt.id, ", ".join(sorted(fields)))
    return AppointmentSaveResult(appointment=appt, conflicts=conflicts)


async def delete_appointment(state: AppState, appointment_id: str) -> None:
    """
    Remove a slot from the calendar. A linked task keeps its stale id until its
    next load, where reconciliation clears it.
    """
    await state.store.delete(Collection.APPOINTMENTS, appointment_id)
    logger.info("Appointment %s deleted", appointment_id)


async def list_day(state: AppState, collaborator_ref: str, day: date) -> list[Appointment]:
    docs = await state.store.query(
        Collection.APPOINTMENTS,
        [("collaborator_ref", "==", collaborator_ref), ("date", "==", day.isoformat())],
    )
    appts = [Appointment.from_doc(d) for d in docs]
    appts.sort(key=lambda a: (a.start_time, a.end_time, a.id))
    return appts


async def open_linked_task(state: AppState, appointment_id: str) -> Task | None:
    """
    Task behind a calendar slot, or None for a standalone slot. A back-reference
    to a deleted task is cleared on the way.
    """
    appt = await get_appointment(state, appointment_id)
    if not appt.task_id:
        return None
    doc = await state.store.get(Collection.TASKS, appt.task_id)
    if doc is None:
        logger.warning("Appointment %s points at missing task %s; unlinking", appt.id, appt.task_id)
        await state.store.update(Collection.APPOINTMENTS, appt.id, {"task_id": None})
        return None
    return Task.from_doc(doc)
