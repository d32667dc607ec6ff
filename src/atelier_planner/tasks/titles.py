# src/atelier_planner/tasks/titles.py

from __future__ import annotations

from .task_models import TaskKind

FALLBACK_SUBJECT = "Client"

_TEMPLATES: dict[str, str] = {
    "À qualifier": "Qualifier : {subject}",
    "À recontacter": "Recontacter : {subject}",
    "Projet long terme": "Suivi long terme : {subject}",
    "Non qualifié": "Dossier non qualifié : {subject}",
    "Terminé": "Clôturé : {subject}",
    "Etude à réaliser": "Suivi : Etude à réaliser - {subject}",
    "Etude à modifier": "Suivi : Etude à modifier - {subject}",
    "Etude à relancer": "Suivi : Etude à relancer - {subject}",
    "Etude cloturée": "Suivi : Etude cloturée - {subject}",
}
_DEFAULT_TEMPLATE = "Suivi : {subject}"

_APPOINTMENT_PREFIX: dict[TaskKind, str] = {
    TaskKind.AUTO_LEAD: "Auto",
    TaskKind.AUTO_PROJECT: "Auto",
    TaskKind.MEMO: "Mémo",
    TaskKind.MANUAL: "Tâche",
}


def format_subject_name(full_name: str | None) -> str:
    """
    "jean dupont" -> "Jean DUPONT".

    The first word is the first name, everything after it the last name.
    A single word is returned as typed.
    """
    parts = (full_name or "").split()
    if not parts:
        return ""
    if len(parts) < 2:
        return parts[0]
    first = parts[0]
    return f"{first[:1].upper()}{first[1:].lower()} {' '.join(parts[1:]).upper()}"


def auto_title(label: str, subject_name: str | None) -> str:
    subject = format_subject_name(subject_name) or FALLBACK_SUBJECT
    return _TEMPLATES.get(label, _DEFAULT_TEMPLATE).format(subject=subject)


def appointment_title(kind: TaskKind, task_title: str) -> str:
    """Calendar title for a slot placed from a task: "[Auto] Qualifier : Jean DUPONT"."""
    return f"[{_APPOINTMENT_PREFIX[kind]}] {task_title}"
