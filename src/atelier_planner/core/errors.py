# src/atelier_planner/core/errors.py

"""
Error taxonomy shared by the core.

- ValidationError: the request is malformed; raised before any write.
- NotFoundError: a referenced record does not exist (or no longer exists).
- StoreError: the entity store rejected or failed a call; prior state is untouched
  for single-document writes.

Partial failures of multi-step sequences are reported as data on the result
objects (see lifecycle.promotion), not raised.
"""

from __future__ import annotations


class PlannerError(Exception):
    """Base class for all errors raised by atelier_planner."""


class ValidationError(PlannerError, ValueError):
    pass


class NotFoundError(PlannerError, LookupError):
    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"{collection}/{record_id} not found")
        self.collection = collection
        self.record_id = record_id


class StoreError(PlannerError, RuntimeError):
    def __init__(self, operation: str, collection: str, detail: str = "") -> None:
        msg = f"store {operation} failed on {collection}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.operation = operation
        self.collection = collection
