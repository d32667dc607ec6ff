# src/atelier_planner/store/query.py

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from ..core.errors import ValidationError
from ..core.ports import Document, Where

_OPS = frozenset({"==", "!=", "in", "not-in"})


def validate_where(where: Sequence[Where]) -> None:
    for clause in where:
        if len(clause) != 3:
            raise ValidationError(f"malformed predicate: {clause!r}")
        field, op, value = clause
        if not field or not isinstance(field, str):
            raise ValidationError(f"predicate field must be a non-empty string: {clause!r}")
        if op not in _OPS:
            raise ValidationError(f"unsupported predicate operator {op!r}")
        if op in ("in", "not-in") and not isinstance(value, (list, tuple, set, frozenset)):
            raise ValidationError(f"operator {op!r} expects a collection, got {type(value).__name__}")


def _matches_clause(doc: Document, field: str, op: str, value: Any) -> bool:
    actual = doc.get(field)
    if op == "==":
        return actual == value
    if op == "!=":
        return actual != value
    if op == "in":
        return actual in value
    return actual not in value


def matches(doc: Document, where: Sequence[Where]) -> bool:
    """All clauses must hold (AND). Missing fields compare as None."""
    return all(_matches_clause(doc, field, op, value) for field, op, value in where)
