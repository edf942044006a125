# src/taskgraph/logging_setup.py

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE_NAME = "taskgraph.log"

# Loggers that fire on every mutation / runner tick; console gets WARNING+ only.
_CHATTY_PREFIXES = (
    "taskgraph.storage.",
    "taskgraph.core.events",
)


class _ConsoleNoiseFilter(logging.Filter):
    """Console shows our own logs (minus per-mutation chatter) and only errors from anyone else."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("taskgraph."):
            # third-party libs and captured py.warnings
            return record.levelno >= logging.ERROR
        if name.startswith(_CHATTY_PREFIXES):
            return record.levelno >= logging.WARNING
        return True


def resolve_level(level: int | str | None, default: int = logging.INFO) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level or "").strip().upper(), default)


def setup_logging(
    *,
    log_dir: str | Path = ".local/taskgraph",
    console_level: int | str = logging.INFO,
    file_level: int | str = logging.DEBUG,
    max_bytes: int = 2_000_000,
    backup_count: int = 3,
) -> Path:
    """
    Install two handlers on the root logger and return the log file path:
    - stderr: short format, filtered for interactive use
    - <log_dir>/taskgraph.log: full detail, rotated

    Call this ONCE, very early (before first logger.info). Calling it again replaces
    the handlers instead of stacking duplicates.
    """
    log_path = Path(log_dir) / LOG_FILE_NAME
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(resolve_level(console_level))
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", datefmt="%H:%M:%S"))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    file_handler.setLevel(resolve_level(file_level, logging.DEBUG))
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(threadName)s]: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_path
