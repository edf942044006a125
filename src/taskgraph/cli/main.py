# src/taskgraph/cli/main.py

"""
CLI entrypoint (`taskgraph` console script).

Order matters: settings -> logging -> AppState -> console REPL -> shutdown.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)

_QUIET_LIBS = ("httpx", "httpcore", "openai")


def _log_startup_summary(state: AppState) -> None:
    stats = state.graph.get_stats()
    nxt = state.graph.get_next_task()
    logger.info(
        "List %s: %s tasks (%s pending, %s in progress, %s overdue). Next: %s",
        state.graph.current_list_id,
        stats["total"],
        stats["pending"],
        stats["in_progress"],
        stats["overdue"],
        f'"{nxt.title}"' if nxt else "-",
    )


def _wait_for_signal() -> None:
    """Block the main thread until SIGINT/SIGTERM."""
    stop = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handle_signal)
        except (ValueError, OSError):
            # Not available on this platform / not the main thread.
            logger.debug("Cannot install handler for %s", sig)
    stop.wait()


def _shutdown(state: AppState) -> None:
    """Release the store. Every mutation is already saved, so nothing is flushed here."""
    close = getattr(state.storage, "close", None)
    if close is None:
        return
    try:
        close()
    except Exception:
        logger.debug("Storage close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)
    for name in _QUIET_LIBS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Starting %s (planner=%s, log=%s)", settings.app_name, settings.planner, log_file)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)
    _log_startup_summary(state)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled; press Ctrl+C to stop.")
            _wait_for_signal()
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
