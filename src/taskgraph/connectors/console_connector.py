# src/taskgraph/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Any

from ..cli.commands import registry as command_registry
from ..core.events import TaskEvent
from ..core.state import AppState

logger = logging.getLogger(__name__)

# Events worth echoing to the user; per-task chatter stays in the log file.
_ECHO_EVENTS = {TaskEvent.TASKS_IMPORTED, TaskEvent.TASKS_UPDATED}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def _on_event(event: str, payload: Any) -> None:
    logger.debug("event %s", event)
    if event not in _ECHO_EVENTS:
        return
    if event == TaskEvent.TASKS_IMPORTED and isinstance(payload, list):
        _print_ts(f"[EVENT] {len(payload)} tasks imported")
    elif isinstance(payload, dict) and "subtasks" in payload:
        _print_ts(f"[EVENT] goal decomposed into {len(payload['subtasks'])} steps")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (list=%s).", state.graph.current_list_id)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    subscription = state.bus.subscribe(_on_event)

    def emit(text: str) -> None:
        # Immediate feedback for long operations (e.g. LLM planning)
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        while True:
            try:
                user_input = input(">>> ").strip()
                _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            if not user_input.startswith("/"):
                # Bare text is a shortcut for /add.
                user_input = "/add " + user_input

            try:
                reply = command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is not None:
                print(f"[{_ts_local()}] {reply}")
    finally:
        subscription.cancel()

    logger.info("Console connector finished.")
