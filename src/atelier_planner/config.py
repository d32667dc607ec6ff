# src/atelier_planner/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Module-level constants are exported for the few call sites that want them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "ATELIER"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Console identity ----
    collaborator_ref: str

    # ---- Calendar defaults ----
    appointment_location: str
    appointment_type: str
    slot_start: str
    slot_end: str

    # ---- Task lists ----
    late_grace_days: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "atelier") or "atelier"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/atelier"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "atelier.sqlite3")

        collaborator_ref = _env(_k("COLLABORATOR"), "").strip() or os.getenv("USER", "") or "me"

        appointment_location = _env(_k("APPOINTMENT_LOCATION"), "Showroom")
        appointment_type = _env(_k("APPOINTMENT_TYPE"), "Autre")
        slot_start = _env(_k("SLOT_START"), "09:00")
        slot_end = _env(_k("SLOT_END"), "10:00")

        late_grace_days = max(0, _env_int(_k("LATE_GRACE_DAYS"), 0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            db_path=db_path,
            collaborator_ref=collaborator_ref,
            appointment_location=appointment_location,
            appointment_type=appointment_type,
            slot_start=slot_start,
            slot_end=slot_end,
            late_grace_days=late_grace_days,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS


# App / logging
APP_NAME = SETTINGS.app_name
LOG_LEVEL = SETTINGS.log_level

# Paths
DATA_DIR = SETTINGS.data_dir
DB_PATH = SETTINGS.db_path
