# src/atelier_planner/crm/crm_api.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from ..core.errors import NotFoundError, ValidationError
from ..core.ports import Collection
from ..core.state import AppState
from ..lifecycle import promotion
from ..lifecycle.binding import BindingResult
from ..tasks.task_api import create_task
from ..tasks.task_models import Task, TaskDraft, TaskKind
from ..tasks.titles import format_subject_name
from .crm_models import Client, ClientStatus, Project

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LeadRegistration:
    client: Client
    qualification_task: Task | None


@dataclass(slots=True)
class ProjectCreation:
    outcome: promotion.ProjectCreationOutcome
    followup: BindingResult | None = None


async def get_client(state: AppState, client_id: str) -> Client:
    return await promotion.load_client(state.store, client_id)


async def register_lead(
    state: AppState,
    name: str,
    collaborator_ref: str,
    *,
    qualify: bool = True,
) -> LeadRegistration:
    """
    New contact entered as a lead, followed by its qualification task
    ("À qualifier") for the collaborator in charge.
    """
    display = format_subject_name(name)
    if not display:
        raise ValidationError("client name is required")
    if qualify and not collaborator_ref:
        raise ValidationError("collaborator_ref is required")

    client = Client(id="", name=display, status=ClientStatus.LEAD, created_at=time.time())
    client.id = await state.store.create(Collection.CLIENTS, client.to_doc())
    logger.info("Lead %s registered (%s)", client.id, display)

    if not qualify:
        return LeadRegistration(client=client, qualification_task=None)

    res = await create_task(
        state,
        TaskDraft(
            kind=TaskKind.AUTO_LEAD,
            collaborator_ref=collaborator_ref,
            client_ref=client.id,
            subject_name=display,
        ),
    )
    return LeadRegistration(client=client, qualification_task=res.task)


async def create_project(
    state: AppState,
    client_id: str,
    name: str,
    *,
    followup_collaborator_ref: str | None = None,
) -> ProjectCreation:
    """
    "User created project P for client C": runs the creation saga, then opens the
    project follow-up task ("Etude à réaliser") when a collaborator is given.
    """
    outcome = await promotion.run_project_creation(state.store, client_id, name)
    creation = ProjectCreation(outcome=outcome)
    if not followup_collaborator_ref:
        return creation

    client = await get_client(state, client_id)
    creation.followup = await create_task(
        state,
        TaskDraft(
            kind=TaskKind.AUTO_PROJECT,
            collaborator_ref=followup_collaborator_ref,
            client_ref=client_id,
            project_ref=outcome.project.id,
            subject_name=client.name,
        ),
    )
    return creation


async def retry_project_followups(state: AppState, project_id: str) -> promotion.ProjectCreationOutcome:
    """Replay saga steps 2 and 3 after a partial failure; no-op for what already happened."""
    doc = await state.store.get(Collection.PROJECTS, project_id)
    if doc is None:
        raise NotFoundError(Collection.PROJECTS, project_id)
    project = Project.from_doc(doc)
    client = await get_client(state, project.client_ref)
    outcome = await promotion.run_followups(state.store, project, client)
    logger.info(
        "Follow-ups of project %s replayed: counted=%s promoted=%s closed=%d failures=%d",
        project.id,
        outcome.counted,
        outcome.promoted,
        len(outcome.closed_task_ids),
        len(outcome.failures),
    )
    return outcome


async def delete_project(state: AppState, project_id: str) -> None:
    """Delete a project and uncount it on its client. The client's status never moves back."""
    store = state.store
    doc = await store.get(Collection.PROJECTS, project_id)
    if doc is None:
        raise NotFoundError(Collection.PROJECTS, project_id)
    project = Project.from_doc(doc)

    await store.delete(Collection.PROJECTS, project_id)

    client_doc = await store.get(Collection.CLIENTS, project.client_ref)
    if client_doc is None:
        logger.warning("Project %s deleted but its client %s is gone", project_id, project.client_ref)
        return
    client = Client.from_doc(client_doc)
    if project_id not in client.counted_project_ids:
        # Step 2 of the creation saga never ran for it: nothing to uncount.
        logger.info("Project %s deleted; it was never counted on client %s", project_id, client.id)
        return
    count = max(0, client.project_count - 1)
    counted = [p for p in client.counted_project_ids if p != project_id]
    await store.update(
        Collection.CLIENTS,
        client.id,
        {"project_count": count, "counted_project_ids": counted},
    )
    logger.info("Project %s deleted; client %s project_count=%d", project_id, client.id, count)


async def set_client_status(state: AppState, client_id: str, status: ClientStatus) -> Client:
    """Manual override from the client sheet. Moving back to lead is refused."""
    client = await get_client(state, client_id)
    if status == ClientStatus.LEAD and client.status != ClientStatus.LEAD:
        raise ValidationError(f"client {client_id} cannot go back to lead")
    if status == client.status:
        return client
    await state.store.update(Collection.CLIENTS, client.id, {"status": status.value})
    logger.info("Client %s status %s -> %s (manual)", client.id, client.status.value, status.value)
    client.status = status
    return client
