# src/atelier_planner/lifecycle/promotion.py

"""
Project creation saga.

Creating a project for a contact triggers, exactly once:

  1. create the project record                      (gate: failure raises)
  2. count the project on the client; lead -> prospect
  3. close the client's open auto-lead tasks (label forced to "Terminé")

Steps 2 and 3 run concurrently once step 1 succeeded. The store offers no
transaction spanning them, so a failure in 2 or 3 leaves a legitimate but
incomplete state: it is logged and reported on the outcome, never raised.

Both follow-up steps are idempotent, so run_followups() can simply be called
again for the same project:
- step 2 remembers which project ids it already counted,
- step 3 only selects tasks that are not completed yet.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum

from ..core.errors import NotFoundError, ValidationError
from ..core.ports import BatchWrite, Collection, EntityStore
from ..crm.crm_models import Client, ClientStatus, Project
from ..tasks.task_models import OperationalStatus, TaskKind, stamp
from ..tasks.taxonomy import LEAD_TERMINAL
from ..tasks.titles import auto_title

logger = logging.getLogger(__name__)


class SagaStep(StrEnum):
    CREATE_PROJECT = "create_project"
    PROMOTE_CLIENT = "promote_client"
    CLOSE_LEAD_TASKS = "close_lead_tasks"


@dataclass(slots=True)
class ProjectCreationOutcome:
    project: Project
    counted: bool = False
    promoted: bool = False
    closed_task_ids: list[str] = field(default_factory=list)
    failures: dict[SagaStep, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures


async def load_client(store: EntityStore, client_id: str) -> Client:
    doc = await store.get(Collection.CLIENTS, client_id)
    if doc is None:
        raise NotFoundError(Collection.CLIENTS, client_id)
    return Client.from_doc(doc)


async def count_project_on_client(store: EntityStore, client_id: str, project_id: str) -> tuple[bool, bool]:
    """
    Step 2. Returns (counted, promoted).

    Counter, bookkeeping and status go out as one update. Read-modify-write:
    a concurrent manual edit of the same client is last-write-wins.
    """
    client = await load_client(store, client_id)
    if project_id in client.counted_project_ids:
        logger.debug("Project %s already counted on client %s", project_id, client_id)
        return False, False

    fields: dict[str, object] = {
        "project_count": client.project_count + 1,
        "counted_project_ids": [*client.counted_project_ids, project_id],
    }
    promoted = client.status == ClientStatus.LEAD
    if promoted:
        fields["status"] = ClientStatus.PROSPECT.value

    await store.update(Collection.CLIENTS, client_id, fields)
    logger.info(
        "Client %s project_count=%d%s",
        client_id,
        client.project_count + 1,
        " (lead -> prospect)" if promoted else "",
    )
    return True, promoted


async def close_lead_tasks(store: EntityStore, client_id: str, subject_name: str) -> list[str]:
    """Step 3. Complete every open auto-lead task of the client in one batch."""
    docs = await store.query(
        Collection.TASKS,
        [
            ("client_ref", "==", client_id),
            ("kind", "==", TaskKind.AUTO_LEAD.value),
            ("status", "!=", OperationalStatus.COMPLETED.value),
        ],
    )
    if not docs:
        return []

    title = auto_title(LEAD_TERMINAL, subject_name)
    writes = [
        BatchWrite(
            Collection.TASKS,
            str(d["id"]),
            stamp(
                {
                    "status_label": LEAD_TERMINAL,
                    "status": OperationalStatus.COMPLETED.value,
                    "title": title,
                }
            ),
        )
        for d in docs
    ]
    await store.batch_update(writes)
    closed = [w.record_id for w in writes]
    logger.info("Closed %d auto-lead task(s) of client %s", len(closed), client_id)
    return closed


async def run_followups(store: EntityStore, project: Project, client: Client) -> ProjectCreationOutcome:
    """Steps 2 and 3, concurrently. Safe to call again for the same project."""
    outcome = ProjectCreationOutcome(project=project)

    promote_res, close_res = await asyncio.gather(
        count_project_on_client(store, client.id, project.id),
        close_lead_tasks(store, client.id, client.name),
        return_exceptions=True,
    )

    if isinstance(promote_res, BaseException):
        if not isinstance(promote_res, Exception):
            raise promote_res
        logger.error(
            "Project %s: promoting client %s failed: %s",
            project.id,
            client.id,
            promote_res,
            exc_info=promote_res,
        )
        outcome.failures[SagaStep.PROMOTE_CLIENT] = str(promote_res)
    else:
        outcome.counted, outcome.promoted = promote_res

    if isinstance(close_res, BaseException):
        if not isinstance(close_res, Exception):
            raise close_res
        logger.error(
            "Project %s: closing auto-lead tasks of client %s failed: %s",
            project.id,
            client.id,
            close_res,
            exc_info=close_res,
        )
        outcome.failures[SagaStep.CLOSE_LEAD_TASKS] = str(close_res)
    else:
        outcome.closed_task_ids = close_res

    return outcome


async def run_project_creation(store: EntityStore, client_id: str, name: str) -> ProjectCreationOutcome:
    name = (name or "").strip()
    if not name:
        raise ValidationError("project name is required")
    client = await load_client(store, client_id)

    # Step 1 is the gate: if it fails nothing else is attempted.
    project = Project(id="", client_ref=client.id, name=name, created_at=time.time())
    project.id = await store.create(Collection.PROJECTS, project.to_doc())
    logger.info("Project %s created for client %s (%s)", project.id, client.id, name)

    outcome = await run_followups(store, project, client)
    if not outcome.complete:
        logger.warning(
            "Project %s created with incomplete follow-ups: %s",
            project.id,
            ", ".join(s.value for s in outcome.failures),
        )
    return outcome
