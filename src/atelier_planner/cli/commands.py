# src/atelier_planner/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import TypeVar, cast

from ..agenda import agenda_api
from ..agenda.agenda_models import parse_date, parse_time
from ..agenda.conflicts import describe_conflicts
from ..core.errors import PlannerError, ValidationError
from ..core.ports import Collection
from ..core.state import AppState
from ..crm import crm_api
from ..crm.crm_models import Client
from ..lifecycle.binding import BindingAction, CalendarPlacement
from ..tasks import task_api
from ..tasks.task_models import OperationalStatus, Task, TaskDraft, TaskKind

CommandEmitter = Callable[[str], None]
CommandHandler3 = Callable[[AppState, list[str], str], str]
CommandHandler4 = Callable[[AppState, list[str], str, CommandEmitter | None], str]
CommandHandler = CommandHandler3 | CommandHandler4

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /task, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        collaborator_ref: str = "",
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 4

        try:
            if nparams >= 4:
                h4 = cast(CommandHandler4, handler)
                return h4(state, args, collaborator_ref, emit)
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, collaborator_ref)
        except PlannerError as e:
            logger.info("/%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _run(coro: Awaitable[T]) -> T:
    # The console is synchronous; each command is one short event-loop run.
    return asyncio.run(coro)  # type: ignore[arg-type]


def _resolve_task(state: AppState, token: str, collaborator_ref: str, *, done: bool = False) -> str:
    """
    "#2" -> id of the 2nd open task in the queue (the 2nd completed one with
    done=True, as numbered by /queue all); anything else is taken as an id.
    """
    if token.startswith("#") and token[1:].isdigit():
        queue = _run(task_api.list_queue(state, collaborator_ref))
        tasks = queue.done if done else queue.open
        pos = int(token[1:]) - 1
        if not 0 <= pos < len(tasks):
            kind = "completed" if done else "open"
            raise ValidationError(f"no {kind} task at position {token}")
        return tasks[pos].id
    return token


def _task_line(pos: int, t: Task, today: date, grace_days: int) -> str:
    prefix = f"{pos:>2}."
    label = f" [{t.status_label}]" if t.status_label else ""
    due = f" due {t.due_date.isoformat()}" if t.due_date else ""
    late = " LATE" if t.is_late(today, grace_days=grace_days) else ""
    cal = " (agenda)" if t.linked_appointment_id else ""
    return f"{prefix} {t.title}{label}{due}{late}{cal}  <{t.id}>"


def cmd_help(state: AppState, args: list[str], collaborator_ref: str) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], collaborator_ref: str) -> str:
    settings = state.settings
    return (
        "Status:\n"
        f"  App: {getattr(settings, 'app_name', 'atelier')}\n"
        f"  Database: {getattr(settings, 'db_path', '?')}\n"
        f"  Collaborator: {collaborator_ref or '-'}\n"
        f"  Default slot: {getattr(settings, 'slot_start', '09:00')}-{getattr(settings, 'slot_end', '10:00')}"
        f" at {state.appointment_location.value}"
    )


def cmd_lead(state: AppState, args: list[str], collaborator_ref: str) -> str:
    """/lead <first name> <last name>"""
    if not args:
        return "Usage: /lead <first name> <last name>"
    reg = _run(crm_api.register_lead(state, " ".join(args), collaborator_ref))
    task = reg.qualification_task
    tail = f"\n  Task: {task.title} <{task.id}>" if task else ""
    return f"Lead {reg.client.name} registered <{reg.client.id}>{tail}"


def cmd_clients(state: AppState, args: list[str], collaborator_ref: str) -> str:
    docs = _run(state.store.query(Collection.CLIENTS))
    if not docs:
        return "No clients yet. Use /lead to add one."
    lines = ["Clients:"]
    for c in (Client.from_doc(d) for d in docs):
        lines.append(f"  {c.name} [{c.status.value}] projects={c.project_count}  <{c.id}>")
    return "\n".join(lines)


def _add_task(state: AppState, args: list[str], collaborator_ref: str, kind: TaskKind) -> str:
    if not args:
        return f"Usage: /{'memo' if kind == TaskKind.MEMO else 'task'} <text>"
    res = _run(
        task_api.create_task(
            state,
            TaskDraft(kind=kind, collaborator_ref=collaborator_ref, title=" ".join(args)),
        )
    )
    return f"Added: {res.task.title} <{res.task.id}>"


def cmd_task(state: AppState, args: list[str], collaborator_ref: str) -> str:
    return _add_task(state, args, collaborator_ref, TaskKind.MANUAL)


def cmd_memo(state: AppState, args: list[str], collaborator_ref: str) -> str:
    return _add_task(state, args, collaborator_ref, TaskKind.MEMO)


def cmd_queue(state: AppState, args: list[str], collaborator_ref: str) -> str:
    """
    /queue       -> open tasks in priority order
    /queue all   -> also completed tasks
    """
    queue = _run(task_api.list_queue(state, collaborator_ref))
    today = date.today()
    grace = state.late_grace_days
    lines = [f"Open tasks ({len(queue.open)}):"]
    lines += [_task_line(i, t, today, grace) for i, t in enumerate(queue.open, start=1)]
    if args and args[0].lower() == "all":
        lines.append(f"Done ({len(queue.done)}):")
        lines += [_task_line(i, t, today, grace) for i, t in enumerate(queue.done, start=1)]
    return "\n".join(lines)


def cmd_label(state: AppState, args: list[str], collaborator_ref: str) -> str:
    """/label <task> <label...>"""
    if len(args) < 2:
        return "Usage: /label <task id | #n> <label>"
    task = _run(task_api.change_status_label(state, _resolve_task(state, args[0], collaborator_ref), " ".join(args[1:])))
    return f"{task.title} -> {task.status_label} ({task.status.value})"


def cmd_done(state: AppState, args: list[str], collaborator_ref: str) -> str:
    if len(args) != 1:
        return "Usage: /done <task id | #n>"
    task_id = _resolve_task(state, args[0], collaborator_ref)
    task = _run(task_api.set_operational_status(state, task_id, OperationalStatus.COMPLETED))
    return f"Completed: {task.title}"


def cmd_reopen(state: AppState, args: list[str], collaborator_ref: str) -> str:
    """/reopen <task> where #n counts in the Done list of /queue all"""
    if len(args) != 1:
        return "Usage: /reopen <task id | #n>"
    task_id = _resolve_task(state, args[0], collaborator_ref, done=True)
    task = _run(task_api.set_operational_status(state, task_id, OperationalStatus.PENDING))
    return f"Reopened: {task.title} [{task.status_label or '-'}]"


def cmd_move(state: AppState, args: list[str], collaborator_ref: str) -> str:
    """/move <task> <position> (1-based, like /queue)"""
    if len(args) != 2 or not args[1].isdigit():
        return "Usage: /move <task id | #n> <position>"
    task_id = _resolve_task(state, args[0], collaborator_ref)
    _run(task_api.move_task(state, collaborator_ref, task_id, int(args[1]) - 1))
    return cmd_queue(state, [], collaborator_ref)


def cmd_schedule(
    state: AppState,
    args: list[str],
    collaborator_ref: str,
    emit: CommandEmitter | None = None,
) -> str:
    """/schedule <task> <YYYY-MM-DD> [HH:MM HH:MM]"""
    if len(args) not in (2, 4):
        return "Usage: /schedule <task id | #n> <YYYY-MM-DD> [HH:MM HH:MM]"
    task_id = _resolve_task(state, args[0], collaborator_ref)
    start_raw = args[2] if len(args) == 4 else getattr(state.settings, "slot_start", "09:00")
    end_raw = args[3] if len(args) == 4 else getattr(state.settings, "slot_end", "10:00")
    placement = CalendarPlacement(
        enabled=True,
        day=parse_date(args[1]),
        start=parse_time(start_raw),
        end=parse_time(end_raw),
    )
    res = _run(task_api.schedule_task(state, task_id, placement))
    if res.conflicts and emit is not None:
        emit(f"[AGENDA] {describe_conflicts(res.conflicts)}")
    appt = res.appointment
    if appt is None:
        return "Nothing scheduled."
    verb = {BindingAction.CREATED: "Placed", BindingAction.UPDATED: "Moved"}.get(res.action, "Unchanged")
    return f"{verb}: {appt.title} on {appt.day.isoformat()} {appt.start_time:%H:%M}-{appt.end_time:%H:%M}"


def cmd_unschedule(state: AppState, args: list[str], collaborator_ref: str) -> str:
    if len(args) != 1:
        return "Usage: /unschedule <task id | #n>"
    task_id = _resolve_task(state, args[0], collaborator_ref)
    res = _run(task_api.schedule_task(state, task_id, CalendarPlacement.off()))
    return "Removed from agenda." if res.action == BindingAction.DELETED else "Task was not on the agenda."


def cmd_project(
    state: AppState,
    args: list[str],
    collaborator_ref: str,
    emit: CommandEmitter | None = None,
) -> str:
    """/project <client id> <project name...>"""
    if len(args) < 2:
        return "Usage: /project <client id> <project name>"
    creation = _run(crm_api.create_project(state, args[0], " ".join(args[1:]), followup_collaborator_ref=collaborator_ref))
    outcome = creation.outcome
    lines = [f"Project {outcome.project.name} created <{outcome.project.id}>"]
    if outcome.promoted:
        lines.append("  Client promoted to prospect.")
    if outcome.closed_task_ids:
        lines.append(f"  Closed {len(outcome.closed_task_ids)} qualification task(s).")
    if creation.followup is not None:
        lines.append(f"  Follow-up: {creation.followup.task.title}")
    if outcome.failures and emit is not None:
        emit(f"[PROJECT] Incomplete follow-ups ({', '.join(outcome.failures)}); retry later.")
    return "\n".join(lines)


def cmd_agenda(state: AppState, args: list[str], collaborator_ref: str) -> str:
    """/agenda [YYYY-MM-DD]"""
    day = parse_date(args[0]) if args else date.today()
    appts = _run(agenda_api.list_day(state, collaborator_ref, day))
    if not appts:
        return f"Nothing on {day.isoformat()}."
    lines = [f"Agenda {day.isoformat()}:"]
    for a in appts:
        lines.append(f"  {a.start_time:%H:%M}-{a.end_time:%H:%M} {a.title} [{a.status.value}]")
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current settings.")
registry.register("lead", cmd_lead, help_text="Register a lead and its qualification task: /lead <name>.")
registry.register("clients", cmd_clients, help_text="List clients with their ids.")
registry.register("task", cmd_task, help_text="Add a manual task: /task <title>.")
registry.register("memo", cmd_memo, help_text="Add a memo: /memo <text>.")
registry.register("queue", cmd_queue, help_text="Show your task queue: /queue | /queue all.", aliases=["q"])
registry.register("label", cmd_label, help_text="Change a task's status label: /label <task> <label>.")
registry.register("done", cmd_done, help_text="Complete a task: /done <task>.")
registry.register("reopen", cmd_reopen, help_text="Reopen a completed task: /reopen <task id | #n> (#n as listed by /queue all).")
registry.register("move", cmd_move, help_text="Reorder your queue: /move <task> <position>.")
registry.register("schedule", cmd_schedule, help_text="Place a task on the agenda: /schedule <task> <date> [start end].")
registry.register("unschedule", cmd_unschedule, help_text="Remove a task from the agenda: /unschedule <task>.")
registry.register("project", cmd_project, help_text="Create a project for a client: /project <client id> <name>.")
registry.register("agenda", cmd_agenda, help_text="Show your agenda for a day: /agenda [date].")
