# src/atelier_planner/tasks/task_api.py

"""
High-level task operations, called by the UI layer (console commands, forms).

Each function takes the AppState, validates before writing, and leaves change
propagation to the store's own subscriptions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import date
from typing import Any

from ..core.errors import NotFoundError, ValidationError
from ..core.ports import Collection, EntityStore
from ..core.state import AppState
from ..lifecycle.binding import (
    BindingAction,
    BindingResult,
    CalendarPlacement,
    reconcile_task_link,
    refresh_linked_slot,
    sync_task_appointment,
)
from . import ordering, taxonomy
from .task_models import OperationalStatus, Task, TaskDraft, TaskKind, stamp
from .titles import auto_title

logger = logging.getLogger(__name__)

_UNSET: Any = object()


async def _subject_name(store: EntityStore, client_ref: str | None) -> str:
    if not client_ref:
        return ""
    doc = await store.get(Collection.CLIENTS, client_ref)
    return str(doc.get("name") or "") if doc else ""


async def _get_task(store: EntityStore, task_id: str) -> Task:
    doc = await store.get(Collection.TASKS, task_id)
    if doc is None:
        raise NotFoundError(Collection.TASKS, task_id)
    return Task.from_doc(doc)


def _check_refs(kind: TaskKind, client_ref: str | None, project_ref: str | None) -> None:
    if kind == TaskKind.MEMO and (client_ref or project_ref):
        raise ValidationError("memos are not attached to a client or a project")
    if kind == TaskKind.AUTO_LEAD and not client_ref:
        raise ValidationError("auto-lead tasks need a client")
    if kind == TaskKind.AUTO_PROJECT and not (client_ref and project_ref):
        raise ValidationError("auto-project tasks need a client and a project")


async def load_task(state: AppState, task_id: str) -> Task:
    """Load a task and heal its calendar link."""
    task = await _get_task(state.store, task_id)
    return await reconcile_task_link(state.store, task)


async def create_task(
    state: AppState,
    draft: TaskDraft,
    placement: CalendarPlacement | None = None,
) -> BindingResult:
    if not draft.collaborator_ref:
        raise ValidationError("collaborator_ref is required")
    _check_refs(draft.kind, draft.client_ref, draft.project_ref)
    label = taxonomy.validate_label(draft.kind, draft.status_label)
    if placement is not None and placement.enabled:
        placement.slot_for(draft.collaborator_ref)

    store = state.store
    if draft.kind.is_auto:
        subject = draft.subject_name or await _subject_name(store, draft.client_ref)
        title = auto_title(label, subject)
    else:
        title = (draft.title or "").strip()
        if not title:
            raise ValidationError("title is required")

    queue = await ordering.load_queue(store, draft.collaborator_ref)
    now = time.time()
    task = Task(
        id="",
        title=title,
        kind=draft.kind,
        status_label=label,
        status=taxonomy.resolve_status(draft.kind, label),
        collaborator_ref=draft.collaborator_ref,
        due_date=draft.due_date,
        note=(draft.note or None),
        client_ref=draft.client_ref,
        project_ref=draft.project_ref,
        order_index=ordering.next_order_index(queue.open),
        created_at=now,
        updated_at=now,
    )
    task.id = await store.create(Collection.TASKS, task.to_doc())
    logger.info("Task %s created kind=%s label=%r for %s", task.id, task.kind.value, label, task.collaborator_ref)

    if placement is None:
        return BindingResult(task=task, appointment=None, action=BindingAction.NONE)
    return await sync_task_appointment(
        store,
        task,
        placement,
        location=state.appointment_location,
        appointment_type=state.appointment_type,
    )


async def change_status_label(state: AppState, task_id: str, label: str) -> Task:
    """Label picked in the form: re-derive status, regenerate the title of auto tasks."""
    task = await _get_task(state.store, task_id)
    label = taxonomy.validate_label(task.kind, label)
    status = taxonomy.resolve_status(task.kind, label, task.status)

    fields: dict[str, Any] = {"status_label": label, "status": status.value}
    if task.kind.is_auto:
        fields["title"] = auto_title(label, await _subject_name(state.store, task.client_ref))

    await state.store.update(Collection.TASKS, task.id, stamp(fields))
    logger.info("Task %s label %r -> %r (status %s)", task.id, task.status_label, label, status.value)
    task = replace(task, status_label=label, status=status, title=fields.get("title", task.title))
    return (await refresh_linked_slot(state.store, task)).task


async def set_operational_status(state: AppState, task_id: str, status: OperationalStatus) -> Task:
    """Quick toggle from a list view; the label follows so the taxonomy invariant holds."""
    task = await _get_task(state.store, task_id)
    label = taxonomy.label_for_status(task.kind, task.status_label, status)

    fields: dict[str, Any] = {"status": status.value, "status_label": label}
    if task.kind.is_auto and label != task.status_label:
        fields["title"] = auto_title(label, await _subject_name(state.store, task.client_ref))

    await state.store.update(Collection.TASKS, task.id, stamp(fields))
    logger.info("Task %s status %s -> %s", task.id, task.status.value, status.value)
    task = replace(task, status=status, status_label=label, title=fields.get("title", task.title))
    return (await refresh_linked_slot(state.store, task)).task


async def edit_task(
    state: AppState,
    task_id: str,
    *,
    title: Any = _UNSET,
    status_label: Any = _UNSET,
    due_date: Any = _UNSET,
    note: Any = _UNSET,
    collaborator_ref: Any = _UNSET,
    placement: CalendarPlacement | None = None,
) -> BindingResult:
    """
    Save the task form in edit mode. Only the given fields change; a placement
    (on or off) also syncs the calendar slot, otherwise an existing slot just
    follows the new title and owner.
    """
    store = state.store
    task = await _get_task(store, task_id)
    fields: dict[str, Any] = {}

    if collaborator_ref is not _UNSET and collaborator_ref != task.collaborator_ref:
        if not collaborator_ref:
            raise ValidationError("collaborator_ref is required")
        queue = await ordering.load_queue(store, collaborator_ref)
        fields["collaborator_ref"] = collaborator_ref
        fields["order_index"] = ordering.next_order_index(queue.open) if task.is_open else task.order_index

    owner = fields.get("collaborator_ref", task.collaborator_ref)
    if placement is not None and placement.enabled:
        placement.slot_for(owner)

    label = task.status_label
    if status_label is not _UNSET:
        label = taxonomy.validate_label(task.kind, status_label)
        fields["status_label"] = label
        fields["status"] = taxonomy.resolve_status(task.kind, label, task.status).value

    if task.kind.is_auto:
        if title is not _UNSET and title != task.title:
            raise ValidationError("auto-task titles are generated from the status label")
        if "status_label" in fields:
            fields["title"] = auto_title(label, await _subject_name(store, task.client_ref))
    elif title is not _UNSET:
        title = (title or "").strip()
        if not title:
            raise ValidationError("title is required")
        fields["title"] = title

    if due_date is not _UNSET:
        if due_date is not None and not isinstance(due_date, date):
            raise ValidationError("due_date must be a date")
        fields["due_date"] = due_date.isoformat() if due_date else None
    if note is not _UNSET:
        fields["note"] = note or None

    if fields:
        await store.update(Collection.TASKS, task.id, stamp(fields))
        task = Task.from_doc({**task.to_doc(), **fields, "id": task.id})
        logger.info("Task %s edited (%s)", task.id, ", ".join(sorted(k for k in fields if k != "updated_at")))

    if placement is None:
        return await refresh_linked_slot(store, task)
    return await sync_task_appointment(
        store,
        task,
        placement,
        location=state.appointment_location,
        appointment_type=state.appointment_type,
    )


async def schedule_task(state: AppState, task_id: str, placement: CalendarPlacement) -> BindingResult:
    """The "place on calendar" switch was toggled or its slot edited."""
    task = await _get_task(state.store, task_id)
    return await sync_task_appointment(
        state.store,
        task,
        placement,
        location=state.appointment_location,
        appointment_type=state.appointment_type,
    )


async def delete_task(state: AppState, task_id: str) -> None:
    """Delete a task together with its calendar slot."""
    store = state.store
    task = await load_task(state, task_id)
    if task.linked_appointment_id:
        await store.delete(Collection.APPOINTMENTS, task.linked_appointment_id)
    await store.delete(Collection.TASKS, task.id)
    logger.info("Task %s deleted (appointment=%s)", task.id, task.linked_appointment_id)


async def list_queue(state: AppState, collaborator_ref: str) -> ordering.TaskQueue:
    return await ordering.load_queue(state.store, collaborator_ref)


async def move_task(state: AppState, collaborator_ref: str, task_id: str, to_index: int) -> list[Task]:
    return await ordering.move_task(state.store, collaborator_ref, task_id, to_index)


def late_tasks(state: AppState, tasks: list[Task], today: date | None = None) -> list[Task]:
    today = today or date.today()
    return [t for t in tasks if t.is_late(today, grace_days=state.late_grace_days)]
