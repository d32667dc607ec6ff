# src/atelier_planner/core/ports.py

"""
Ports (interfaces) used by the core.

The core never talks to a database directly: it depends on the EntityStore
Protocol, a generic document store with CRUD, one atomic batch primitive and
change subscriptions. SQLite backs it in the app; tests swap in fakes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

Document = dict[str, Any]
# Stored records are plain JSON-compatible dicts; reads always include "id".

Where = tuple[str, str, Any]
# (field, op, value) with op in: "==", "!=", "in", "not-in".

OnChange = Callable[[list[Document]], None]
Unsubscribe = Callable[[], None]


class Collection(StrEnum):
    TASKS = "tasks"
    APPOINTMENTS = "appointments"
    CLIENTS = "clients"
    PROJECTS = "projects"


@dataclass(slots=True, frozen=True)
class BatchWrite:
    """One partial update inside an atomic batch."""

    collection: str
    record_id: str
    fields: Document


class EntityStore(Protocol):
    """
    Store-agnostic persistence port.

    Guarantees expected from implementations:
    - single-document writes are atomic,
    - batch_update applies all writes or none,
    - subscribe() delivers a full snapshot of matching documents after each change
      (and once immediately), until the returned callable is invoked.
    """

    def create(self, collection: str, record: Document) -> Awaitable[str]: ...

    def get(self, collection: str, record_id: str) -> Awaitable[Document | None]: ...

    def update(self, collection: str, record_id: str, fields: Document) -> Awaitable[None]: ...

    def delete(self, collection: str, record_id: str) -> Awaitable[None]: ...

    def batch_update(self, writes: Sequence[BatchWrite]) -> Awaitable[None]: ...

    def query(self, collection: str, where: Sequence[Where] = ()) -> Awaitable[list[Document]]: ...

    def subscribe(
            self,
            collection: str,
            where: Sequence[Where],
            on_change: OnChange,
    ) -> Unsubscribe: ...
