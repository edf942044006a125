# src/taskgraph/tasks/task_status.py

from __future__ import annotations

"""
Status state machine.

No transition is forbidden; entering a state has mandatory side effects:
- -> in_progress: start_time is set on first entry (or after a finished run)
  and the task becomes the active task
- -> completed / failed: completed_time is set and the active pointer is released
- leaving in_progress any other way also releases the active pointer

Every path that changes a status (create, update, bulk update, runner) calls
apply_status_change() so the side effects are never bypassed.
"""

from .task_models import TERMINAL_STATUSES, Task, TaskStatus


def apply_status_change(
    task: Task,
    old_status: TaskStatus | None,
    *,
    active_task_id: str | None,
    now: float,
) -> str | None:
    """
    Apply the side effects of task.status having moved from old_status.

    old_status is None for a freshly created task.
    Returns the new active task id.
    """
    new_status = task.status
    if new_status == old_status:
        return active_task_id

    if new_status == TaskStatus.IN_PROGRESS:
        # Re-entering after completion starts a fresh run.
        if task.start_time is None or old_status in TERMINAL_STATUSES:
            task.start_time = now
            task.actual_time = None
        task.completed_time = None
        return task.id

    if new_status in TERMINAL_STATUSES:
        task.completed_time = now
        if new_status == TaskStatus.COMPLETED and task.actual_time is None and task.start_time is not None:
            task.actual_time = max(0.0, now - task.start_time)
    else:
        # Back to pending/awaiting_approval: a previous run no longer counts as done.
        task.completed_time = None

    if active_task_id == task.id:
        return None
    return active_task_id
