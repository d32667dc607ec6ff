# src/atelier_planner/store/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.errors import NotFoundError, StoreError, ValidationError
from ..core.ports import BatchWrite, Document, OnChange, Unsubscribe, Where
from .query import matches, validate_where

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Subscription:
    collection: str
    where: tuple[Where, ...]
    on_change: OnChange
    active: bool = True


class SQLiteEntityStore:
    """
    SQLite document store implementing the EntityStore port.

    Every record is a JSON document keyed by (collection, id). Filtering happens
    in Python after narrowing by collection: collections stay small (one company),
    and predicates need to work on any field without a schema per collection.

    Thread-safety:
    - each call opens its own SQLite connection
    - blocking work runs in a worker thread (asyncio.to_thread), listeners are
      notified back on the event loop
    """

    def __init__(self, db_path: str | Path = "atelier.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._subscriptions: list[_Subscription] = []
        self._ensure_schema()
        try:
            total = self.count_documents()
        except sqlite3.Error:
            total = -1
        logger.info("SQLiteEntityStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Drop listeners; connections are per call so nothing else is held."""
        for sub in self._subscriptions:
            sub.active = False
        self._subscriptions.clear()

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _encode(doc: Document) -> str:
        body = {k: v for k, v in doc.items() if k != "id"}
        try:
            return json.dumps(body, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"record is not JSON-serialisable: {exc}") from exc

    @staticmethod
    def _decode(row: sqlite3.Row) -> Document:
        try:
            data = json.loads(row["data"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt document %s/%s; returning empty body", row["collection"], row["id"])
            data = {}
        if not isinstance(data, dict):
            data = {}
        data["id"] = row["id"]
        return data

    def _load_one(self, conn: sqlite3.Connection, collection: str, record_id: str) -> Document | None:
        row = conn.execute(
            "SELECT * FROM documents WHERE collection = ? AND id = ?",
            (collection, record_id),
        ).fetchone()
        return self._decode(row) if row else None

    # ---- sync implementations ----

    def count_documents(self, collection: str | None = None) -> int:
        conn = self._get_conn()
        try:
            if collection is None:
                (n,) = conn.execute("SELECT COUNT(*) FROM documents").fetchone()
            else:
                (n,) = conn.execute(
                    "SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,)
                ).fetchone()
            return int(n)
        finally:
            conn.close()

    def _create_sync(self, collection: str, record: Document) -> str:
        record_id = uuid.uuid4().hex
        now = time.time()
        data = self._encode(record)
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO documents(collection, id, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (collection, record_id, data, now, now),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Document created %s/%s", collection, record_id)
        return record_id

    def _get_sync(self, collection: str, record_id: str) -> Document | None:
        conn = self._get_conn()
        try:
            return self._load_one(conn, collection, record_id)
        finally:
            conn.close()

    def _apply_update(
            self,
            conn: sqlite3.Connection,
            collection: str,
            record_id: str,
            fields: Document,
    ) -> None:
        current = self._load_one(conn, collection, record_id)
        if current is None:
            raise NotFoundError(collection, record_id)
        current.update({k: v for k, v in fields.items() if k != "id"})
        conn.execute(
            "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
            (self._encode(current), time.time(), collection, record_id),
        )

    def _update_sync(self, collection: str, record_id: str, fields: Document) -> None:
        if not fields:
            return
        self._batch_update_sync([BatchWrite(collection, record_id, fields)])

    def _delete_sync(self, collection: str, record_id: str) -> None:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, record_id),
            )
            conn.commit()
            if cur.rowcount == 0:
                logger.debug("Delete of missing document %s/%s ignored", collection, record_id)
        finally:
            conn.close()

    def _batch_update_sync(self, writes: Sequence[BatchWrite]) -> None:
        conn = self._get_conn()
        try:
            # Write lock taken before the first read so concurrent writers queue
            # on the busy timeout; any missing document rolls the batch back.
            conn.execute("BEGIN IMMEDIATE")
            try:
                for w in writes:
                    self._apply_update(conn, w.collection, w.record_id, w.fields)
            except BaseException:
                conn.rollback()
                raise
            conn.commit()
        finally:
            conn.close()

    def _query_sync(self, collection: str, where: Sequence[Where]) -> list[Document]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM documents WHERE collection = ? ORDER BY created_at ASC, id ASC",
                (collection,),
            ).fetchall()
        finally:
            conn.close()
        docs = (self._decode(r) for r in rows)
        return [d for d in docs if matches(d, where)]

    # ---- async port ----

    async def _run(self, operation: str, collection: str, fn: Any, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except (NotFoundError, ValidationError):
            raise
        except sqlite3.Error as exc:
            logger.error("SQLite %s failed on %s: %s", operation, collection, exc)
            raise StoreError(operation, collection, str(exc)) from exc

    async def create(self, collection: str, record: Document) -> str:
        record_id = await self._run("create", collection, self._create_sync, collection, record)
        self._notify({collection})
        return record_id

    async def get(self, collection: str, record_id: str) -> Document | None:
        return await self._run("get", collection, self._get_sync, collection, record_id)

    async def update(self, collection: str, record_id: str, fields: Document) -> None:
        await self._run("update", collection, self._update_sync, collection, record_id, fields)
        self._notify({collection})

    async def delete(self, collection: str, record_id: str) -> None:
        await self._run("delete", collection, self._delete_sync, collection, record_id)
        self._notify({collection})

    async def batch_update(self, writes: Sequence[BatchWrite]) -> None:
        if not writes:
            return
        touched = {w.collection for w in writes}
        label = ",".join(sorted(touched))
        await self._run("batch_update", label, self._batch_update_sync, list(writes))
        self._notify(touched)

    async def query(self, collection: str, where: Sequence[Where] = ()) -> list[Document]:
        validate_where(where)
        return await self._run("query", collection, self._query_sync, collection, tuple(where))

    def subscribe(self, collection: str, where: Sequence[Where], on_change: OnChange) -> Unsubscribe:
        validate_where(where)
        sub = _Subscription(collection=collection, where=tuple(where), on_change=on_change)
        self._subscriptions.append(sub)
        self._deliver(sub)

        def unsubscribe() -> None:
            sub.active = False
            with contextlib.suppress(ValueError):
                self._subscriptions.remove(sub)

        return unsubscribe

    # ---- change notification ----

    def _deliver(self, sub: _Subscription) -> None:
        if not sub.active:
            return
        try:
            snapshot = self._query_sync(sub.collection, sub.where)
        except sqlite3.Error:
            logger.exception("Snapshot query failed for listener on %s", sub.collection)
            return
        try:
            sub.on_change(snapshot)
        except Exception:
            # A broken listener must not fail the write that triggered it.
            logger.exception("Change listener on %s raised", sub.collection)

    def _notify(self, collections: set[str]) -> None:
        for sub in list(self._subscriptions):
            if sub.collection in collections:
                self._deliver(sub)
