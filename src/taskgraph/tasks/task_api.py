# src/taskgraph/tasks/task_api.py

"""
Programmatic surface for callers (console commands, automation, tool integrations).

Thin helpers over AppState.graph / AppState.planner so callers never reach into
the composition root themselves.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.ports import TaskExecutor
from ..core.state import AppState
from .task_breakdown import breakdown_goal, replan
from .task_codec import export_tasks, import_tasks
from .task_models import Note, NoteType, Task, TaskList, TaskStatus
from .task_scheduler import run_task_runner

logger = logging.getLogger(__name__)


def create_task(state: AppState, data: Mapping[str, Any] | None = None, /, **fields: Any) -> Task:
    return state.graph.create_task(data, **fields)


def update_task(state: AppState, task_id: str, patch: Mapping[str, Any]) -> Task:
    return state.graph.update_task(task_id, patch)


def delete_task(state: AppState, task_id: str) -> Task:
    return state.graph.delete_task(task_id)


def bulk_update_tasks(state: AppState, task_ids: Iterable[str], patch: Mapping[str, Any]) -> list[Task]:
    return state.graph.bulk_update_tasks(task_ids, patch)


def bulk_delete_tasks(state: AppState, task_ids: Iterable[str]) -> list[Task]:
    return state.graph.bulk_delete_tasks(task_ids)


def set_status(state: AppState, task_id: str, status: TaskStatus | str) -> Task:
    return state.graph.update_task(task_id, {"status": status})


def approve_task(state: AppState, task_id: str) -> Task:
    """
    Resolve an approval gate: the gate is marked completed, which unblocks the
    first step that depends on it.
    """
    task = state.graph.require_task(task_id)
    if task.status != TaskStatus.AWAITING_APPROVAL:
        logger.info("approve_task: %s is %s, not awaiting approval", task_id, task.status.value)
    return state.graph.update_task(task_id, {"status": TaskStatus.COMPLETED})


def add_note(state: AppState, task_id: str, content: str, note_type: NoteType | str = NoteType.USER) -> Note:
    return state.graph.add_note(task_id, content, note_type)


def create_list(state: AppState, name: str, *, description: str = "", color: str | None = None) -> TaskList:
    return state.graph.create_list(name=name, description=description, color=color)


def set_current_list(state: AppState, list_id: str) -> None:
    state.graph.set_current_list(list_id)


def get_next_task(state: AppState) -> Task | None:
    return state.graph.get_next_task()


def get_all_tasks(state: AppState, list_id: str | None = None) -> list[Task]:
    return state.graph.get_all_tasks(list_id)


def get_stats(state: AppState, list_id: str | None = None) -> dict[str, int]:
    return state.graph.get_stats(list_id)


def export(state: AppState, fmt: str = "json", list_id: str | None = None) -> str:
    return export_tasks(state.graph, fmt, list_id)


def import_(state: AppState, data: str | bytes, fmt: str = "json") -> list[Task]:
    return import_tasks(state.graph, data, fmt)


def breakdown(state: AppState, task: Task | str) -> list[Task]:
    return breakdown_goal(state.graph, state.planner, task)


def replan_tasks(state: AppState, templates: Iterable[Mapping[str, Any]]) -> list[Task]:
    return replan(state.graph, templates)


async def run_runner(state: AppState, executor: TaskExecutor) -> None:
    """Run the task runner loop with the configured polling interval until cancelled."""
    interval = float(getattr(state.settings, "runner_interval_seconds", 15.0))
    await run_task_runner(state.graph, executor, interval_seconds=interval)
