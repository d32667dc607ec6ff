# src/atelier_planner/tasks/taxonomy.py

"""
Status taxonomy.

Each task kind has a fixed label vocabulary; exactly one label per vocabulary is
terminal and means "done". The operational status is derived from the label:

    terminal label          -> completed
    non-terminal label      -> previous status, except completed reopens to pending

Memos have no label; their status is whatever the user toggled.
Pure functions, no I/O.
"""

from __future__ import annotations

from ..core.errors import ValidationError
from .task_models import OperationalStatus, TaskKind

LEAD_LABELS: tuple[str, ...] = (
    "À qualifier",
    "À recontacter",
    "Projet long terme",
    "Non qualifié",
    "Terminé",
)

PROJECT_LABELS: tuple[str, ...] = (
    "Etude à réaliser",
    "Etude à modifier",
    "Etude à relancer",
    "Etude cloturée",
)

LEAD_TERMINAL = "Terminé"
PROJECT_TERMINAL = "Etude cloturée"

_VOCABULARY: dict[TaskKind, tuple[str, ...]] = {
    TaskKind.MANUAL: LEAD_LABELS,
    TaskKind.AUTO_LEAD: LEAD_LABELS,
    TaskKind.AUTO_PROJECT: PROJECT_LABELS,
    TaskKind.MEMO: (),
}

_TERMINAL: dict[TaskKind, str | None] = {
    TaskKind.MANUAL: LEAD_TERMINAL,
    TaskKind.AUTO_LEAD: LEAD_TERMINAL,
    TaskKind.AUTO_PROJECT: PROJECT_TERMINAL,
    TaskKind.MEMO: None,
}


def allowed_labels(kind: TaskKind) -> tuple[str, ...]:
    return _VOCABULARY[kind]


def terminal_label(kind: TaskKind) -> str | None:
    return _TERMINAL[kind]


def initial_label(kind: TaskKind) -> str:
    labels = _VOCABULARY[kind]
    return labels[0] if labels else ""


def is_terminal(kind: TaskKind, label: str) -> bool:
    term = _TERMINAL[kind]
    return term is not None and label == term


def validate_label(kind: TaskKind, label: str | None) -> str:
    """
    Normalise and check a label against the kind's vocabulary.

    Empty input falls back to the initial label. Memos only accept "".
    """
    label = (label or "").strip()
    if kind == TaskKind.MEMO:
        if label:
            raise ValidationError("memos do not carry a status label")
        return ""
    if not label:
        return initial_label(kind)
    if label not in _VOCABULARY[kind]:
        allowed = ", ".join(_VOCABULARY[kind])
        raise ValidationError(f"label {label!r} is not allowed for {kind.value} tasks (allowed: {allowed})")
    return label


def resolve_status(
        kind: TaskKind,
        label: str,
        previous: OperationalStatus | None = None,
) -> OperationalStatus:
    if kind == TaskKind.MEMO:
        return previous or OperationalStatus.PENDING
    if is_terminal(kind, label):
        return OperationalStatus.COMPLETED
    if previous is None or previous == OperationalStatus.COMPLETED:
        return OperationalStatus.PENDING
    return previous


def label_for_status(kind: TaskKind, label: str, status: OperationalStatus) -> str:
    """
    Label to store when the status is set directly (quick toggle).

    Completing forces the terminal label; leaving completed while the label is
    terminal falls back to the initial label so the invariant keeps holding.
    """
    if kind == TaskKind.MEMO:
        return ""
    if status == OperationalStatus.COMPLETED:
        return terminal_label(kind) or label
    if is_terminal(kind, label):
        return initial_label(kind)
    return label
