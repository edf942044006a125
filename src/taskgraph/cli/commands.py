# src/taskgraph/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import cast

from ..core.state import AppState
from ..errors import TaskGraphError
from ..tasks import task_api
from ..tasks.task_models import Task, TaskPriority, TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_STATUS_MARK = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
    TaskStatus.FAILED: "[!]",
    TaskStatus.AWAITING_APPROVAL: "[?]",
}


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Task graph errors (unknown id, blank title, bad format) become the reply text.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        nparams = len(inspect.signature(handler).parameters)

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskGraphError as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _fmt_ts(ms: float | None) -> str:
    if ms is None:
        return "-"
    return datetime.fromtimestamp(ms / 1000.0).astimezone().strftime("%Y-%m-%d %H:%M")


def _short(task_id: str) -> str:
    return task_id.rsplit("_", 1)[-1]


def _fmt_task(task: Task, indent: int = 0) -> str:
    mark = _STATUS_MARK.get(task.status, "[ ]")
    prio = "" if task.priority == TaskPriority.MEDIUM else f" !{task.priority.value}"
    deps = f" (after {', '.join(_short(d) for d in task.dependencies)})" if task.dependencies else ""
    return f"{'  ' * indent}{mark} {_short(task.id)} {task.title}{prio}{deps}"


class _Ambiguous(TaskGraphError):
    pass


def resolve_task_id(state: AppState, token: str) -> str:
    """Accept a full task id or a unique short suffix as printed by /list."""
    if state.graph.get_task(token) is not None:
        return token
    matches = [t.id for t in state.graph.iter_all_tasks() if t.id.endswith(token)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        return token  # let the graph raise NotFoundError
    raise _Ambiguous(f"Ambiguous task id {token!r} ({len(matches)} matches)")


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add Buy milk            -> medium priority task in the current list
    /add !urgent Call mom    -> with priority
    """
    priority = TaskPriority.MEDIUM
    if args and args[0].startswith("!"):
        try:
            priority = TaskPriority(args[0][1:].lower())
        except ValueError:
            return f"Unknown priority {args[0]!r}. Use !low, !medium, !high or !urgent."
        args = args[1:]

    task = task_api.create_task(state, title=" ".join(args), priority=priority)
    return f"Created {_short(task.id)}: {task.title}"


def cmd_list(state: AppState, args: list[str]) -> str:
    tasks = task_api.get_all_tasks(state, args[0] if args else None)
    if not tasks:
        return "No tasks in this list."

    by_id = {t.id: t for t in tasks}
    lines: list[str] = []
    # Depth-first over roots, iterative so deep trees print fine.
    roots = [t for t in tasks if t.parent_id is None or t.parent_id not in by_id]
    stack = [(t, 0) for t in reversed(roots)]
    while stack:
        task, depth = stack.pop()
        lines.append(_fmt_task(task, depth))
        children = [by_id[sid] for sid in task.subtasks if sid in by_id]
        stack.extend((c, depth + 1) for c in reversed(children))
    return "\n".join(lines)


def cmd_next(state: AppState, args: list[str]) -> str:
    task = task_api.get_next_task(state)
    if task is None:
        return "Nothing to do: no actionable task."
    if task.status == TaskStatus.AWAITING_APPROVAL:
        return f"Waiting for approval: {_short(task.id)} {task.title} (use /approve {_short(task.id)})"
    return f"Next: {_fmt_task(task)}"


def _set_status(state: AppState, args: list[str], status: TaskStatus) -> str:
    if not args:
        return "Usage: /<command> <task-id> [<task-id> ...]"
    ids = [resolve_task_id(state, a) for a in args]
    if len(ids) == 1:
        task = task_api.set_status(state, ids[0], status)
        return f"{_fmt_task(task)}"
    updated = task_api.bulk_update_tasks(state, ids, {"status": status})
    return f"Updated {len(updated)} tasks -> {status.value}"


def cmd_start(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.IN_PROGRESS)


def cmd_done(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.COMPLETED)


def cmd_fail(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.FAILED)


def cmd_approve(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /approve <task-id>"
    task = task_api.approve_task(state, resolve_task_id(state, args[0]))
    return f"Approved: {task.title}"


def cmd_rm(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /rm <task-id> [<task-id> ...]"
    ids = [resolve_task_id(state, a) for a in args]
    if len(ids) == 1:
        task = task_api.delete_task(state, ids[0])
        return f"Deleted: {task.title}"
    deleted = task_api.bulk_delete_tasks(state, ids)
    return f"Deleted {len(deleted)} tasks."


def cmd_note(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /note <task-id> <text>"
    task_api.add_note(state, resolve_task_id(state, args[0]), " ".join(args[1:]))
    return "Note added."


def cmd_show(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /show <task-id>"
    task = state.graph.require_task(resolve_task_id(state, args[0]))
    lines = [
        _fmt_task(task),
        f"  id: {task.id}",
        f"  status: {task.status.value}  priority: {task.priority.value}  confidence: {task.confidence:.2f}",
        f"  created: {_fmt_ts(task.created_time)}  started: {_fmt_ts(task.start_time)}  "
        f"completed: {_fmt_ts(task.completed_time)}",
    ]
    if task.description:
        lines.append(f"  {task.description}")
    if task.tags:
        lines.append("  tags: " + " ".join(f"#{t}" for t in task.tags))
    if task.subtasks:
        lines.append(f"  progress: {state.graph.get_progress(task.id)}% of {len(task.subtasks)} subtasks")
    for note in task.notes:
        lines.append(f"  - [{note.type.value}] {_fmt_ts(note.timestamp)} {note.content}")
    return "\n".join(lines)


def cmd_breakdown(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /breakdown <task-id>"
    task_id = resolve_task_id(state, args[0])
    if emit:
        emit("Planning subtasks...")
    subtasks = task_api.breakdown(state, task_id)
    lines = [f"Created {len(subtasks)} subtasks:"]
    lines.extend(_fmt_task(t, 1) for t in subtasks)
    return "\n".join(lines)


def cmd_stats(state: AppState, args: list[str]) -> str:
    stats = task_api.get_stats(state, args[0] if args else None)
    return "Stats:\n" + "\n".join(f"  {k}: {v}" for k, v in stats.items())


def cmd_lists(state: AppState, args: list[str]) -> str:
    current = state.graph.current_list_id
    lines = ["Lists:"]
    for lst in state.graph.get_all_lists():
        marker = "*" if lst.id == current else " "
        lines.append(f" {marker} {lst.id}  {lst.name}")
    return "\n".join(lines)


def cmd_newlist(state: AppState, args: list[str]) -> str:
    lst = task_api.create_list(state, " ".join(args))
    return f"Created list {lst.id}: {lst.name}"


def cmd_uselist(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /uselist <list-id>"
    task_api.set_current_list(state, args[0])
    return f"Current list: {args[0]}"


def cmd_export(state: AppState, args: list[str]) -> str:
    """
    /export                 -> JSON to the console
    /export markdown        -> checklist to the console
    /export json out.json   -> write to a file
    """
    fmt = args[0] if args else "json"
    text = task_api.export(state, fmt)
    if len(args) < 2:
        return text
    path = Path(args[1]).expanduser()
    path.write_text(text, "utf-8")
    return f"Exported to {path}"


def cmd_import(state: AppState, args: list[str]) -> str:
    """/import <path> [json|markdown] (format defaults from the file suffix)"""
    if not args:
        return "Usage: /import <path> [json|markdown]"
    path = Path(args[0]).expanduser()
    if not path.exists():
        return f"File not found: {path}"
    fmt = args[1] if len(args) > 1 else ("markdown" if path.suffix.lower() in (".md", ".txt") else "json")
    imported = task_api.import_(state, path.read_text("utf-8"), fmt)
    return f"Imported {len(imported)} tasks."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Add a task: /add [!priority] <title>.")
registry.register("list", cmd_list, help_text="Show tasks of the current (or given) list.", aliases=["ls"])
registry.register("next", cmd_next, help_text="Show the next actionable task.")
registry.register("show", cmd_show, help_text="Show task details: /show <id>.")
registry.register("start", cmd_start, help_text="Mark task(s) in progress: /start <id>...")
registry.register("done", cmd_done, help_text="Mark task(s) completed: /done <id>...")
registry.register("fail", cmd_fail, help_text="Mark task(s) failed: /fail <id>...")
registry.register("approve", cmd_approve, help_text="Approve an approval gate: /approve <id>.")
registry.register("rm", cmd_rm, help_text="Delete task(s) with their subtasks: /rm <id>...")
registry.register("note", cmd_note, help_text="Add a note: /note <id> <text>.")
registry.register("breakdown", cmd_breakdown, help_text="Split a goal into chained subtasks: /breakdown <id>.")
registry.register("stats", cmd_stats, help_text="Counts per status (+ overdue).")
registry.register("lists", cmd_lists, help_text="Show all lists.")
registry.register("newlist", cmd_newlist, help_text="Create a list: /newlist <name>.")
registry.register("uselist", cmd_uselist, help_text="Switch the current list: /uselist <id>.")
registry.register("export", cmd_export, help_text="Export: /export [json|markdown] [path].")
registry.register("import", cmd_import, help_text="Import: /import <path> [json|markdown].")
