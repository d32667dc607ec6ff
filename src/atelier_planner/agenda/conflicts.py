# src/atelier_planner/agenda/conflicts.py

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.ports import Collection, EntityStore
from .agenda_models import Appointment, TimeSlot

logger = logging.getLogger(__name__)


def find_conflicts(
        candidate: TimeSlot,
        appointments: Iterable[Appointment],
        exclude_appointment_id: str | None = None,
) -> list[Appointment]:
    """
    Every appointment of the same collaborator, on the same day, overlapping the
    candidate slot. The excluded id is the slot being edited (it cannot clash
    with itself).

    Advisory only: callers show the list and let a human confirm.
    """
    out: list[Appointment] = []
    for appt in appointments:
        if exclude_appointment_id and appt.id == exclude_appointment_id:
            continue
        if appt.collaborator_ref != candidate.collaborator_ref or appt.day != candidate.day:
            continue
        if candidate.overlaps(appt.start_time, appt.end_time):
            out.append(appt)
    out.sort(key=lambda a: (a.start_time, a.end_time, a.id))
    return out


async def check_conflicts(
        store: EntityStore,
        candidate: TimeSlot,
        exclude_appointment_id: str | None = None,
) -> list[Appointment]:
    docs = await store.query(
        Collection.APPOINTMENTS,
        [
            ("collaborator_ref", "==", candidate.collaborator_ref),
            ("date", "==", candidate.day.isoformat()),
        ],
    )
    conflicts = find_conflicts(candidate, (Appointment.from_doc(d) for d in docs), exclude_appointment_id)
    if conflicts:
        logger.info(
            "Slot %s %s-%s for %s overlaps %d appointment(s)",
            candidate.day,
            candidate.start,
            candidate.end,
            candidate.collaborator_ref,
            len(conflicts),
        )
    return conflicts


def describe_conflicts(conflicts: Iterable[Appointment]) -> str:
    """One-line warning for display: "Déjà occupé : 09:30-10:30 R1 Dupont, ..."."""
    parts = [
        f"{a.start_time.strftime('%H:%M')}-{a.end_time.strftime('%H:%M')} {a.title}".rstrip()
        for a in conflicts
    ]
    return f"Déjà occupé : {', '.join(parts)}" if parts else ""
