# src/atelier_planner/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

APP_LOGGER = "atelier_planner"

# Loggers that fire on every document write; only their problems reach the console.
QUIET_LOGGERS: tuple[str, ...] = ("atelier_planner.store",)


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console gate. Planner logs pass, except the quiet ones below WARNING.
    Anything else (libraries, captured warnings) needs ERROR.
    """

    def __init__(self, quiet: Iterable[str] = QUIET_LOGGERS) -> None:
        super().__init__()
        self._quiet = tuple(quiet)

    @staticmethod
    def _under(name: str, prefix: str) -> bool:
        return name == prefix or name.startswith(prefix + ".")

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not self._under(name, APP_LOGGER):
            return record.levelno >= logging.ERROR
        if any(self._under(name, q) for q in self._quiet):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/atelier",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> Path:
    """
    Send planner logs to stderr (filtered) and to <log_dir>/atelier.log (unfiltered).

    Replaces whatever handlers the root logger had, so calling it twice does
    not duplicate lines. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "atelier.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(quiet))
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # warnings.warn() ends up under "py.warnings"
    logging.captureWarnings(True)
    return log_file
