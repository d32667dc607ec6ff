# src/atelier_planner/crm/crm_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from ..core.ports import Document

PROJECT_INITIAL_STATUS = "Étude client"
PROJECT_INITIAL_PROGRESS = 2


class ClientStatus(StrEnum):
    """
    Sales-funnel stage.

    lead --(first project)--> prospect --(manual only)--> client.
    Nothing ever moves a contact back to lead.
    """

    LEAD = "lead"
    PROSPECT = "prospect"
    CLIENT = "client"

    @classmethod
    def from_db(cls, raw: str | None) -> ClientStatus:
        if not raw:
            return cls.LEAD
        try:
            return cls(raw)
        except ValueError:
            return cls.LEAD


@dataclass(slots=True)
class Client:
    id: str
    name: str
    status: ClientStatus = ClientStatus.LEAD
    project_count: int = 0
    # Projects already reflected in project_count; makes the promotion step replayable.
    counted_project_ids: list[str] = field(default_factory=list)
    created_at: float = 0.0

    def to_doc(self) -> Document:
        return {
            "name": self.name,
            "status": self.status.value,
            "project_count": self.project_count,
            "counted_project_ids": list(self.counted_project_ids),
            "created_at": self.created_at,
        }

    @classmethod
    def from_doc(cls, doc: Document) -> Client:
        counted = doc.get("counted_project_ids") or []
        return cls(
            id=str(doc["id"]),
            name=str(doc.get("name") or ""),
            status=ClientStatus.from_db(doc.get("status")),
            project_count=max(0, int(doc.get("project_count") or 0)),
            counted_project_ids=[str(x) for x in counted] if isinstance(counted, list) else [],
            created_at=float(doc.get("created_at") or 0.0),
        )


@dataclass(slots=True)
class Project:
    id: str
    client_ref: str
    name: str
    status: str = PROJECT_INITIAL_STATUS
    progress: int = PROJECT_INITIAL_PROGRESS
    created_at: float = 0.0

    def to_doc(self) -> Document:
        return {
            "client_ref": self.client_ref,
            "name": self.name,
            "status": self.status,
            "progress": self.progress,
            "created_at": self.created_at,
        }

    @classmethod
    def from_doc(cls, doc: Document) -> Project:
        return cls(
            id=str(doc["id"]),
            client_ref=str(doc.get("client_ref") or ""),
            name=str(doc.get("name") or ""),
            status=str(doc.get("status") or PROJECT_INITIAL_STATUS),
            progress=int(doc.get("progress") or 0),
            created_at=float(doc.get("created_at") or 0.0),
        )
