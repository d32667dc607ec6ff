# tests/test_crm_api.py

from __future__ import annotations

import pytest

from atelier_planner.core.errors import ValidationError
from atelier_planner.core.ports import Collection
from atelier_planner.crm import crm_api
from atelier_planner.crm.crm_models import ClientStatus
from atelier_planner.tasks.task_models import OperationalStatus, TaskKind


@pytest.mark.asyncio
async def test_register_lead_creates_qualification_task(state) -> None:
    reg = await crm_api.register_lead(state, "jean dupont", "alice")

    assert reg.client.name == "Jean DUPONT"
    assert reg.client.status == ClientStatus.LEAD
    task = reg.qualification_task
    assert task is not None
    assert task.kind == TaskKind.AUTO_LEAD
    assert task.title == "Qualifier : Jean DUPONT"
    assert task.status_label == "À qualifier"
    assert task.client_ref == reg.client.id

    bare = await crm_api.register_lead(state, "Marie Martin", "alice", qualify=False)
    assert bare.qualification_task is None

    with pytest.raises(ValidationError):
        await crm_api.register_lead(state, "   ", "alice")


@pytest.mark.asyncio
async def test_create_project_end_to_end(state) -> None:
    reg = await crm_api.register_lead(state, "jean dupont", "alice")

    creation = await crm_api.create_project(state, reg.client.id, "Cuisine", followup_collaborator_ref="alice")

    outcome = creation.outcome
    assert outcome.complete and outcome.promoted
    assert outcome.closed_task_ids == [reg.qualification_task.id]

    client = await crm_api.get_client(state, reg.client.id)
    assert (client.status, client.project_count) == (ClientStatus.PROSPECT, 1)

    lead_task = await state.store.get(Collection.TASKS, reg.qualification_task.id)
    assert lead_task["status"] == OperationalStatus.COMPLETED.value
    assert lead_task["title"] == "Clôturé : Jean DUPONT"

    followup = creation.followup
    assert followup is not None
    assert followup.task.kind == TaskKind.AUTO_PROJECT
    assert followup.task.project_ref == outcome.project.id
    assert followup.task.title == "Suivi : Etude à réaliser - Jean DUPONT"


@pytest.mark.asyncio
async def test_project_creation_closes_lead_every_time(state) -> None:
    for n in range(10):
        reg = await crm_api.register_lead(state, f"client {n}", "alice")

        creation = await crm_api.create_project(state, reg.client.id, "Cuisine")

        assert creation.outcome.complete
        assert creation.outcome.closed_task_ids == [reg.qualification_task.id]
        lead_task = await state.store.get(Collection.TASKS, reg.qualification_task.id)
        assert lead_task["status"] == OperationalStatus.COMPLETED.value
        client = await crm_api.get_client(state, reg.client.id)
        assert (client.status, client.project_count) == (ClientStatus.PROSPECT, 1)


@pytest.mark.asyncio
async def test_retry_followups_is_idempotent(state) -> None:
    reg = await crm_api.register_lead(state, "jean dupont", "alice", qualify=False)
    creation = await crm_api.create_project(state, reg.client.id, "Cuisine")

    again = await crm_api.retry_project_followups(state, creation.outcome.project.id)

    assert again.complete and not again.counted
    assert (await crm_api.get_client(state, reg.client.id)).project_count == 1


@pytest.mark.asyncio
async def test_delete_project_uncounts_but_never_demotes(state) -> None:
    reg = await crm_api.register_lead(state, "jean dupont", "alice", qualify=False)
    creation = await crm_api.create_project(state, reg.client.id, "Cuisine")

    await crm_api.delete_project(state, creation.outcome.project.id)

    client = await crm_api.get_client(state, reg.client.id)
    assert client.project_count == 0
    assert client.counted_project_ids == []
    assert client.status == ClientStatus.PROSPECT
    assert await state.store.get(Collection.PROJECTS, creation.outcome.project.id) is None


@pytest.mark.asyncio
async def test_manual_status_override(state) -> None:
    reg = await crm_api.register_lead(state, "jean dupont", "alice", qualify=False)

    client = await crm_api.set_client_status(state, reg.client.id, ClientStatus.CLIENT)
    assert client.status == ClientStatus.CLIENT

    with pytest.raises(ValidationError):
        await crm_api.set_client_status(state, reg.client.id, ClientStatus.LEAD)
    # a later project does not move it back to prospect
    await crm_api.create_project(state, reg.client.id, "Dressing")
    assert (await crm_api.get_client(state, reg.client.id)).status == ClientStatus.CLIENT
