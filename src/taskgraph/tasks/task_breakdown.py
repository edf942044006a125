# src/taskgraph/tasks/task_breakdown.py

"""
Goal decomposition.

breakdown_goal() asks a Planner for subtask templates and turns them into a strict
linear chain under the goal:

    [approval gate] -> step 1 -> step 2 -> ... -> step N

Each link depends on exactly the previous one. The approval gate is only inserted
for goals the planner classifies as critical.
"""

from __future__ import annotations


import logging
from collections.abc import Iterable, Mapping
from typing import Any

from ..core.events import TaskEvent
from ..core.ports import Planner
from .task_models import NoteType, SubtaskTemplate, Task, TaskPriority, TaskStatus
from .task_store import TaskGraph

logger = logging.getLogger(__name__)

FALLBACK_PLAN: tuple[SubtaskTemplate, ...] = (
    SubtaskTemplate("Analyze the task requirements", "Understand what needs to be done", TaskPriority.HIGH, 0.9),
    SubtaskTemplate("Execute the main task", "Perform the requested work", TaskPriority.HIGH, 0.8),
    SubtaskTemplate("Verify completion", "Ensure the task was completed successfully", TaskPriority.MEDIUM, 0.95),
)

APPROVAL_TITLE = "User Approval: Review and confirm the execution plan"
APPROVAL_TAGS = ["ai-generated", "approval"]
SUBTASK_TAGS = ["ai-generated", "subtask"]


def _usable_steps(templates: Iterable[SubtaskTemplate]) -> list[SubtaskTemplate]:
    """Drop steps without a title; unknown priorities become medium."""
    steps: list[SubtaskTemplate] = []
    for t in templates:
        title = str(getattr(t, "title", "") or "").strip()
        if not title:
            logger.warning("Planner step without a title dropped: %r", t)
            continue
        try:
            priority = TaskPriority(t.priority) if t.priority else TaskPriority.MEDIUM
        except ValueError:
            priority = TaskPriority.MEDIUM
        steps.append(SubtaskTemplate(title, t.description or "", priority, t.confidence))
    return steps


def breakdown_goal(graph: TaskGraph, planner: Planner, goal: Task | str) -> list[Task]:
    """
    Expand a goal into chained subtasks.

    Returns the created subtasks in chain order (approval gate first, if any).
    The goal gets a system note and moves to in_progress.
    """
    goal_id = goal if isinstance(goal, str) else goal.id

    with graph.batch():
        goal_task = graph.require_task(goal_id)

        try:
            templates = _usable_steps(planner.plan(goal_task.title) or [])
        except Exception:
            logger.exception("Planner failed for goal %r; using fallback plan", goal_task.title)
            templates = []
        if not templates:
            templates = list(FALLBACK_PLAN)

        try:
            critical = bool(planner.is_critical(goal_task.title))
        except Exception:
            logger.exception("Planner critical check failed for goal %r", goal_task.title)
            critical = False

        subtasks: list[Task] = []
        prev_id: str | None = None

        if critical:
            gate = graph.create_task(
                title=APPROVAL_TITLE,
                description=(
                    f'A plan was proposed to "{goal_task.title}" with {len(templates)} steps. '
                    "Please review the subtasks and approve to proceed."
                ),
                priority=TaskPriority.HIGH,
                status=TaskStatus.AWAITING_APPROVAL,
                parent_id=goal_task.id,
                list_id=goal_task.list_id,
                tags=APPROVAL_TAGS,
            )
            subtasks.append(gate)
            prev_id = gate.id

        for step in templates:
            subtask = graph.create_task(
                title=step.title,
                description=step.description or "",
                priority=step.priority,
                confidence=step.confidence if step.confidence is not None else 0.9,
                parent_id=goal_task.id,
                list_id=goal_task.list_id,
                dependencies=[prev_id] if prev_id else [],
                tags=SUBTASK_TAGS,
            )
            subtasks.append(subtask)
            prev_id = subtask.id

        graph.add_note(goal_task.id, f"Task broken down into {len(subtasks)} subtasks", NoteType.SYSTEM)
        updated_goal = graph.update_task(goal_task.id, {"status": TaskStatus.IN_PROGRESS})
        graph.announce(TaskEvent.TASKS_UPDATED, {"mainTask": updated_goal, "subtasks": subtasks})

    logger.info('Created %s subtasks for "%s" (approval=%s)', len(subtasks), goal_task.title, critical)
    return subtasks


def replan(graph: TaskGraph, templates: Iterable[Mapping[str, Any]]) -> list[Task]:
    """Add a batch of new tasks (e.g. a revised plan) in one persisted operation."""
    with graph.batch():
        created = [graph.create_task(dict(data)) for data in templates]
    logger.info("Replanned and added %s new tasks.", len(created))
    return created
