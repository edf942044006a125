# src/taskgraph/tasks/task_codec.py

"""
Import/export of tasks.

Formats:
- "json": {"exportDate": ISO-8601, "listId": ..., "tasks": [task records]}
- "markdown": tasks grouped by status, one checkbox line per task

Imports always create new tasks (fresh ids) in the current list. JSON imports are
flattened: parent/subtask links and dependencies from the payload are dropped.
An import is all-or-nothing: a bad record anywhere rejects the whole payload.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime
from typing import Any

from ..core.events import TaskEvent
from ..errors import FormatError, ValidationError
from .task_models import Task, TaskPriority, TaskStatus
from .task_store import TaskGraph

logger = logging.getLogger(__name__)

FORMATS = ("json", "markdown")

CHECKBOX_RE = re.compile(r"^\s*[-*]\s*\[([ xX])\]\s*(.+?)\s*$")

# Fields of an exported record that survive a JSON import.
_IMPORTED_FIELDS = (
    "description",
    "status",
    "priority",
    "confidence",
    "dueDate",
    "estimatedTime",
    "actualTime",
    "tags",
    "results",
    "notes",
)

_STATUS_SECTIONS = (
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.AWAITING_APPROVAL,
)


def _check_format(fmt: str) -> str:
    f = (fmt or "").strip().lower()
    if f in ("md", "checklist"):
        f = "markdown"
    if f not in FORMATS:
        raise ValidationError(f"Unsupported format: {fmt}")
    return f


def _fmt_date(ms: float) -> str:
    return datetime.fromtimestamp(ms / 1000.0).astimezone().strftime("%Y-%m-%d")


# ---- export ----


def export_tasks(graph: TaskGraph, fmt: str = "json", list_id: str | None = None) -> str:
    fmt = _check_format(fmt)
    target = list_id or graph.current_list_id
    tasks = graph.get_all_tasks(target)

    if fmt == "json":
        return json.dumps(
            {
                "exportDate": datetime.now(UTC).isoformat(),
                "listId": target,
                "tasks": [t.to_dict() for t in tasks],
            },
            ensure_ascii=False,
            indent=2,
        )
    return render_markdown(tasks)


def render_markdown(tasks: list[Task]) -> str:
    lines = [
        "# Tasks Export",
        "",
        f"Exported on: {datetime.now().astimezone().strftime('%Y-%m-%d %H:%M:%S')}",
        "",
    ]

    for status in _STATUS_SECTIONS:
        group = [t for t in tasks if t.status == status]
        if not group:
            continue
        lines.append(f"## {status.value.replace('_', ' ').upper()}")
        lines.append("")

        for task in group:
            checkbox = "[x]" if status == TaskStatus.COMPLETED else "[ ]"
            lines.append(f"- {checkbox} **{task.title}**")
            if task.description:
                lines.append(f"  {task.description}")

            meta: list[str] = []
            if task.priority != TaskPriority.MEDIUM:
                meta.append(f"Priority: {task.priority.value}")
            if task.due_date is not None:
                meta.append(f"Due: {_fmt_date(task.due_date)}")
            if task.tags:
                meta.append("Tags: " + " ".join(f"#{t}" for t in task.tags))
            if meta:
                lines.append(f"  *{' • '.join(meta)}*")
            lines.append("")

    return "\n".join(lines)


# ---- import ----


_NUMBER_FIELDS = ("confidence", "dueDate", "estimatedTime", "actualTime")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_record_types(i: int, rec: dict[str, Any]) -> None:
    """Reject values create_task() cannot store, before anything is created."""

    def bad(field: str, expected: str) -> FormatError:
        return FormatError(f"Invalid JSON format: task #{i} field {field!r} must be {expected}")

    if rec.get("description") is not None and not isinstance(rec["description"], str):
        raise bad("description", "a string")
    for key in _NUMBER_FIELDS:
        if rec.get(key) is not None and not _is_number(rec[key]):
            raise bad(key, "a number")

    tags = rec.get("tags")
    if tags is not None:
        if not isinstance(tags, list) or not all(isinstance(t, (str, int, float)) for t in tags):
            raise bad("tags", "a list of strings")

    results = rec.get("results")
    if results is not None and not isinstance(results, dict):
        raise bad("results", "an object")

    notes = rec.get("notes")
    if notes is not None:
        if not isinstance(notes, list):
            raise bad("notes", "a list of note objects")
        for note in notes:
            if not isinstance(note, dict):
                raise bad("notes", "a list of note objects")
            if note.get("content") is not None and not isinstance(note["content"], str):
                raise bad("notes", "a list of note objects with string content")
            if note.get("timestamp") is not None and not _is_number(note["timestamp"]):
                raise bad("notes", "a list of note objects with numeric timestamps")


def parse_json_payload(data: str | bytes) -> list[dict[str, Any]]:
    """
    Turn a JSON snapshot (wrapped {"tasks": [...]} or a bare list) into create_task() inputs.
    Raises FormatError on anything that is not a list of well-typed records with titles.
    Every record is checked before the caller creates anything.
    """
    try:
        parsed = json.loads(data)
    except (TypeError, json.JSONDecodeError) as e:
        raise FormatError(f"Invalid JSON format: {e}") from e

    records = parsed.get("tasks") if isinstance(parsed, dict) else parsed
    if not isinstance(records, list):
        raise FormatError("Invalid JSON format: expected a list of tasks")

    out: list[dict[str, Any]] = []
    for i, rec in enumerate(records):
        if not isinstance(rec, dict):
            raise FormatError(f"Invalid JSON format: task #{i} is not an object")
        title = str(rec.get("title") or "").strip()
        if not title:
            raise FormatError(f"Invalid JSON format: task #{i} has no title")
        _check_record_types(i, rec)

        item: dict[str, Any] = {"title": title}
        for key in _IMPORTED_FIELDS:
            if rec.get(key) is not None:
                item[key] = rec[key]
        # Unknown (or non-string) status and priority fall back to the defaults.
        if str(item.get("status")) not in {s.value for s in TaskStatus}:
            item.pop("status", None)
        if str(item.get("priority")) not in {p.value for p in TaskPriority}:
            item.pop("priority", None)
        out.append(item)
    return out


def parse_markdown_checklist(text: str) -> list[dict[str, Any]]:
    """Every "- [ ] title" / "- [x] title" line becomes one task; other lines are ignored."""
    out: list[dict[str, Any]] = []
    for line in (text or "").splitlines():
        m = CHECKBOX_RE.match(line)
        if not m:
            continue
        checked, title = m.groups()
        title = title.strip()
        if title.startswith("**") and title.endswith("**") and len(title) > 4:
            title = title[2:-2].strip()
        if not title:
            continue
        out.append(
            {
                "title": title,
                "status": TaskStatus.COMPLETED if checked.lower() == "x" else TaskStatus.PENDING,
                "priority": TaskPriority.MEDIUM,
            }
        )
    return out


def import_tasks(graph: TaskGraph, data: str | bytes, fmt: str = "json") -> list[Task]:
    fmt = _check_format(fmt)
    if fmt == "json":
        items = parse_json_payload(data)
    else:
        text = data.decode("utf-8") if isinstance(data, bytes) else str(data)
        items = parse_markdown_checklist(text)

    with graph.batch():
        list_id = graph.current_list_id
        imported = [graph.create_task(item, list_id=list_id) for item in items]
        graph.announce(TaskEvent.TASKS_IMPORTED, imported)

    logger.info("Imported %s tasks (format=%s)", len(imported), fmt)
    return imported
