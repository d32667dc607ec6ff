# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file,
see src/atelier_planner/config.py). Nothing here is imported by the app.

This file exists to make the repo self-documenting without opening config.py.
"""

ENV_VARS = {
    # App / logging
    "ATELIER_APP_NAME": "App display name (default: atelier).",
    "ATELIER_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "ATELIER_CONSOLE_ENABLED": "Enable the console REPL (true/false, default: true).",
    # Paths (gitignored)
    "ATELIER_DATA_DIR": "Local data directory; also holds logs/ (default: .local/atelier).",
    "ATELIER_DB_PATH": "Entity store SQLite path (default: <data_dir>/atelier.sqlite3).",
    # Console identity
    "ATELIER_COLLABORATOR": "Collaborator the console acts as (default: $USER, then 'me').",
    # Calendar defaults for slots placed from a task
    "ATELIER_APPOINTMENT_LOCATION": "Showroom | Domicile | Visio | Autre (default: Showroom).",
    "ATELIER_APPOINTMENT_TYPE": "R1 | R2 | Métré | Pose | SAV | Autre (default: Autre).",
    "ATELIER_SLOT_START": "Start used by /schedule when no time is given (default: 09:00).",
    "ATELIER_SLOT_END": "End used by /schedule when no time is given (default: 10:00).",
    # Task lists
    "ATELIER_LATE_GRACE_DAYS": "Days past the due date before a task shows as LATE (default: 0).",
}
