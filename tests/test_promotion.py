# tests/test_promotion.py

from __future__ import annotations

import pytest

from atelier_planner.core.errors import NotFoundError, StoreError, ValidationError
from atelier_planner.core.ports import Collection
from atelier_planner.crm.crm_models import Client, ClientStatus, Project
from atelier_planner.lifecycle.promotion import SagaStep, run_followups, run_project_creation
from atelier_planner.tasks.task_models import OperationalStatus, Task, TaskKind

from .fakes import FailingStore


async def _client(store, name: str = "Jean DUPONT", status: ClientStatus = ClientStatus.LEAD) -> str:
    return await store.create(Collection.CLIENTS, Client(id="", name=name, status=status).to_doc())


async def _task(store, client_id: str, *, kind: TaskKind, label: str, status: OperationalStatus, title: str) -> str:
    task = Task(
        id="",
        title=title,
        kind=kind,
        status_label=label,
        status=status,
        collaborator_ref="c1",
        client_ref=client_id,
    )
    return await store.create(Collection.TASKS, task.to_doc())


@pytest.mark.asyncio
async def test_first_project_promotes_lead_and_closes_lead_tasks(store) -> None:
    client_id = await _client(store)
    open_a = await _task(
        store, client_id, kind=TaskKind.AUTO_LEAD, label="À qualifier",
        status=OperationalStatus.PENDING, title="Qualifier : Jean DUPONT",
    )
    open_b = await _task(
        store, client_id, kind=TaskKind.AUTO_LEAD, label="À recontacter",
        status=OperationalStatus.IN_PROGRESS, title="Recontacter : Jean DUPONT",
    )
    manual = await _task(
        store, client_id, kind=TaskKind.MANUAL, label="À qualifier",
        status=OperationalStatus.PENDING, title="Envoyer la brochure",
    )

    outcome = await run_project_creation(store, client_id, "Cuisine")

    assert outcome.complete
    assert outcome.counted and outcome.promoted
    assert sorted(outcome.closed_task_ids) == sorted([open_a, open_b])

    project = await store.get(Collection.PROJECTS, outcome.project.id)
    assert project["status"] == "Étude client"
    assert project["progress"] == 2
    assert project["client_ref"] == client_id

    client = Client.from_doc(await store.get(Collection.CLIENTS, client_id))
    assert client.status == ClientStatus.PROSPECT
    assert client.project_count == 1

    for task_id in (open_a, open_b):
        doc = await store.get(Collection.TASKS, task_id)
        assert doc["status_label"] == "Terminé"
        assert doc["status"] == OperationalStatus.COMPLETED.value
        assert doc["title"] == "Clôturé : Jean DUPONT"

    untouched = await store.get(Collection.TASKS, manual)
    assert untouched["status"] == OperationalStatus.PENDING.value
    assert untouched["title"] == "Envoyer la brochure"


@pytest.mark.asyncio
async def test_followups_replay_is_a_noop(store) -> None:
    client_id = await _client(store)
    outcome = await run_project_creation(store, client_id, "Salle de bain")
    client = Client.from_doc(await store.get(Collection.CLIENTS, client_id))

    again = await run_followups(store, outcome.project, client)

    assert again.complete
    assert not again.counted and not again.promoted
    assert again.closed_task_ids == []
    assert Client.from_doc(await store.get(Collection.CLIENTS, client_id)).project_count == 1


@pytest.mark.asyncio
async def test_second_project_counts_without_status_change(store) -> None:
    client_id = await _client(store)
    await run_project_creation(store, client_id, "Cuisine")
    second = await run_project_creation(store, client_id, "Dressing")

    assert second.counted and not second.promoted
    client = Client.from_doc(await store.get(Collection.CLIENTS, client_id))
    assert client.status == ClientStatus.PROSPECT
    assert client.project_count == 2


@pytest.mark.asyncio
async def test_client_status_never_moves_backwards(store) -> None:
    client_id = await _client(store, status=ClientStatus.CLIENT)
    outcome = await run_project_creation(store, client_id, "Cuisine")
    assert not outcome.promoted
    assert Client.from_doc(await store.get(Collection.CLIENTS, client_id)).status == ClientStatus.CLIENT


@pytest.mark.asyncio
async def test_failed_promotion_is_reported_and_retryable(store) -> None:
    client_id = await _client(store)
    lead_task = await _task(
        store, client_id, kind=TaskKind.AUTO_LEAD, label="À qualifier",
        status=OperationalStatus.PENDING, title="Qualifier : Jean DUPONT",
    )
    flaky = FailingStore(store, fail_on={("update", "clients")})

    outcome = await run_project_creation(flaky, client_id, "Cuisine")

    assert not outcome.complete
    assert SagaStep.PROMOTE_CLIENT in outcome.failures
    assert SagaStep.CLOSE_LEAD_TASKS not in outcome.failures
    assert outcome.closed_task_ids == [lead_task]
    assert await store.get(Collection.PROJECTS, outcome.project.id) is not None
    assert Client.from_doc(await store.get(Collection.CLIENTS, client_id)).status == ClientStatus.LEAD

    client = Client.from_doc(await store.get(Collection.CLIENTS, client_id))
    retried = await run_followups(store, outcome.project, client)
    assert retried.complete
    assert retried.counted and retried.promoted
    assert retried.closed_task_ids == []


@pytest.mark.asyncio
async def test_failed_project_creation_runs_no_followups(store) -> None:
    client_id = await _client(store)
    lead_task = await _task(
        store, client_id, kind=TaskKind.AUTO_LEAD, label="À qualifier",
        status=OperationalStatus.PENDING, title="Qualifier : Jean DUPONT",
    )
    broken = FailingStore(store, fail_on={("create", "projects")})

    with pytest.raises(StoreError):
        await run_project_creation(broken, client_id, "Cuisine")

    assert await store.query(Collection.PROJECTS) == []
    assert Client.from_doc(await store.get(Collection.CLIENTS, client_id)).project_count == 0
    assert (await store.get(Collection.TASKS, lead_task))["status"] == OperationalStatus.PENDING.value


@pytest.mark.asyncio
async def test_project_creation_validates_input(store) -> None:
    client_id = await _client(store)
    with pytest.raises(ValidationError):
        await run_project_creation(store, client_id, "   ")
    with pytest.raises(NotFoundError):
        await run_project_creation(store, "nope", "Cuisine")
    assert await store.query(Collection.PROJECTS) == []


def test_project_defaults() -> None:
    project = Project(id="p1", client_ref="c1", name="Cuisine")
    assert (project.status, project.progress) == ("Étude client", 2)
