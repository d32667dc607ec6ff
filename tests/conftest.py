# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from atelier_planner.core.state import AppState
from atelier_planner.store.sqlite_store import SQLiteEntityStore

from .fakes import InMemoryEntityStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the console commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="atelier-test",
        data_dir=tmp_path,
        db_path=tmp_path / "atelier.sqlite3",
        collaborator_ref="alice",
        # Calendar defaults
        appointment_location="Showroom",
        appointment_type="Autre",
        slot_start="09:00",
        slot_end="10:00",
        late_grace_days=0,
    )


@pytest.fixture()
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with the real SQLite store.

    Its persistence (batches, partial updates, queries) is part of what we test.
    """
    return AppState(settings=settings, store=SQLiteEntityStore(settings.db_path))
