# src/atelier_planner/agenda/agenda_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError
from ..core.ports import Document


class AppointmentStatus(StrEnum):
    CONFIRMED = "confirmed"
    PENDING = "pending"
    CANCELLED = "cancelled"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> AppointmentStatus:
        if not raw:
            return cls.CONFIRMED
        try:
            return cls(raw)
        except ValueError:
            return cls.CONFIRMED


class AppointmentType(StrEnum):
    R1 = "R1"
    R2 = "R2"
    METRE = "Métré"
    POSE = "Pose"
    SAV = "SAV"
    OTHER = "Autre"


class AppointmentLocation(StrEnum):
    SHOWROOM = "Showroom"
    HOME = "Domicile"
    VIDEO = "Visio"
    OTHER = "Autre"


def parse_time(raw: Any) -> time:
    """Accept a datetime.time or "HH:MM" / "HH:MM:SS"."""
    if isinstance(raw, time):
        return raw
    try:
        return time.fromisoformat(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(f"invalid time {raw!r}, expected HH:MM") from exc


def parse_date(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(f"invalid date {raw!r}, expected YYYY-MM-DD") from exc


def format_time(t: time) -> str:
    return t.strftime("%H:%M")


@dataclass(slots=True, frozen=True)
class TimeSlot:
    """A candidate placement: one collaborator, one day, [start, end)."""

    day: date
    start: time
    end: time
    collaborator_ref: str

    def __post_init__(self) -> None:
        if not self.collaborator_ref:
            raise ValidationError("collaborator_ref is required")
        if self.start >= self.end:
            raise ValidationError(
                f"start {format_time(self.start)} must be before end {format_time(self.end)}"
            )

    def overlaps(self, start: time, end: time) -> bool:
        # Half-open: a slot ending at 10:00 does not touch one starting at 10:00.
        return self.start < end and self.end > start


@dataclass(slots=True)
class Appointment:
    id: str
    title: str
    day: date
    start_time: time
    end_time: time
    collaborator_ref: str

    client_ref: str | None = None
    project_ref: str | None = None
    task_id: str | None = None

    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    type: AppointmentType = AppointmentType.OTHER
    location: AppointmentLocation = AppointmentLocation.SHOWROOM
    created_at: float = 0.0

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot(self.day, self.start_time, self.end_time, self.collaborator_ref)

    def to_doc(self) -> Document:
        return {
            "title": self.title,
            "date": self.day.isoformat(),
            "start_time": format_time(self.start_time),
            "end_time": format_time(self.end_time),
            "collaborator_ref": self.collaborator_ref,
            "client_ref": self.client_ref,
            "project_ref": self.project_ref,
            "task_id": self.task_id,
            "status": self.status.value,
            "type": self.type.value,
            "location": self.location.value,
            "created_at": self.created_at,
        }

    @classmethod
    def from_doc(cls, doc: Document) -> Appointment:
        try:
            kind = AppointmentType(doc.get("type") or AppointmentType.OTHER)
        except ValueError:
            kind = AppointmentType.OTHER
        try:
            location = AppointmentLocation(doc.get("location") or AppointmentLocation.SHOWROOM)
        except ValueError:
            location = AppointmentLocation.OTHER
        return cls(
            id=str(doc["id"]),
            title=str(doc.get("title") or ""),
            day=parse_date(doc.get("date")),
            start_time=parse_time(doc.get("start_time")),
            end_time=parse_time(doc.get("end_time")),
            collaborator_ref=str(doc.get("collaborator_ref") or ""),
            client_ref=doc.get("client_ref") or None,
            project_ref=doc.get("project_ref") or None,
            task_id=doc.get("task_id") or None,
            status=AppointmentStatus.from_db(doc.get("status")),
            type=kind,
            location=location,
            created_at=float(doc.get("created_at") or 0.0),
        )
