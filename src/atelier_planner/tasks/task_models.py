# src/atelier_planner/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

from ..core.ports import Document


class TaskKind(StrEnum):
    """
    What kind of task this is. Decided once at creation, never changes.

    The kind selects the label vocabulary (see tasks.taxonomy) and whether the
    title is synthesised (auto kinds) or user-supplied (manual, memo).
    """

    MANUAL = "manual"
    MEMO = "memo"
    AUTO_LEAD = "auto_lead"
    AUTO_PROJECT = "auto_project"

    @property
    def is_auto(self) -> bool:
        return self in (TaskKind.AUTO_LEAD, TaskKind.AUTO_PROJECT)

    @classmethod
    def from_db(cls, raw: str | None) -> TaskKind:
        if not raw:
            return cls.MANUAL
        try:
            return cls(raw)
        except ValueError:
            return cls.MANUAL


class OperationalStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> OperationalStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


def _date_or_none(raw: Any) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        return None


@dataclass(slots=True)
class Task:
    id: str
    title: str
    kind: TaskKind
    status_label: str
    status: OperationalStatus
    collaborator_ref: str

    due_date: date | None = None
    note: str | None = None
    client_ref: str | None = None
    project_ref: str | None = None

    order_index: int | None = None
    linked_appointment_id: str | None = None

    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.status != OperationalStatus.COMPLETED

    def is_late(self, today: date, *, grace_days: int = 0) -> bool:
        if self.due_date is None or not self.is_open:
            return False
        return (today - self.due_date).days > grace_days

    def to_doc(self) -> Document:
        return {
            "title": self.title,
            "kind": self.kind.value,
            "status_label": self.status_label,
            "status": self.status.value,
            "collaborator_ref": self.collaborator_ref,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "note": self.note,
            "client_ref": self.client_ref,
            "project_ref": self.project_ref,
            "order_index": self.order_index,
            "linked_appointment_id": self.linked_appointment_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_doc(cls, doc: Document) -> Task:
        raw_index = doc.get("order_index")
        return cls(
            id=str(doc["id"]),
            title=str(doc.get("title") or ""),
            kind=TaskKind.from_db(doc.get("kind")),
            status_label=str(doc.get("status_label") or ""),
            status=OperationalStatus.from_db(doc.get("status")),
            collaborator_ref=str(doc.get("collaborator_ref") or ""),
            due_date=_date_or_none(doc.get("due_date")),
            note=doc.get("note"),
            client_ref=doc.get("client_ref") or None,
            project_ref=doc.get("project_ref") or None,
            order_index=int(raw_index) if raw_index is not None else None,
            linked_appointment_id=doc.get("linked_appointment_id") or None,
            created_at=float(doc.get("created_at") or 0.0),
            updated_at=float(doc.get("updated_at") or 0.0),
        )


@dataclass(slots=True)
class TaskDraft:
    """
    User input for creating a task (the task form), before validation.

    `status_label` may be left empty: the vocabulary's initial label is used.
    `subject_name` is the client name used to synthesise auto-task titles.
    """

    kind: TaskKind
    collaborator_ref: str
    title: str = ""
    status_label: str = ""
    due_date: date | None = None
    note: str | None = None
    client_ref: str | None = None
    project_ref: str | None = None
    subject_name: str = ""


def stamp(fields: Document) -> Document:
    """Add updated_at to a partial update."""
    fields["updated_at"] = time.time()
    return fields
