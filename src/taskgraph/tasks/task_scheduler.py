# src/taskgraph/tasks/task_scheduler.py

from __future__ import annotations

"""
Task scheduler.

select_next_task() is the pure selection rule used by TaskGraph.get_next_task():
- candidates are pending or awaiting_approval tasks,
- ordered by priority (urgent > high > medium > low > unknown), then oldest first,
- the first approval gate wins regardless of its dependencies,
- otherwise the first candidate whose dependencies all exist and are completed.

run_task_runner() is a small polling loop that keeps pulling the next task and
hands it to an injected executor port. It never runs approval gates; those wait
for a human to move them on.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from ..core.ports import TaskExecutor
from .task_models import Task, TaskPriority, TaskStatus

if TYPE_CHECKING:
    from .task_store import TaskGraph

logger = logging.getLogger(__name__)

PRIORITY_RANK: dict[str, int] = {
    TaskPriority.URGENT.value: 4,
    TaskPriority.HIGH.value: 3,
    TaskPriority.MEDIUM.value: 2,
    TaskPriority.LOW.value: 1,
}

_CANDIDATE_STATUSES = (TaskStatus.PENDING, TaskStatus.AWAITING_APPROVAL)


def priority_rank(priority: str | None) -> int:
    return PRIORITY_RANK.get(str(priority or ""), 0)


def dependencies_met(task: Task, lookup: Callable[[str], Task | None]) -> bool:
    """A dependency on a deleted task is never met."""
    for dep_id in task.dependencies:
        dep = lookup(dep_id)
        if dep is None or dep.status != TaskStatus.COMPLETED:
            return False
    return True


def select_next_task(tasks: Iterable[Task], lookup: Callable[[str], Task | None]) -> Task | None:
    # enumerate() keeps insertion order as the last tie-breaker for equal timestamps.
    candidates = [
        (idx, t) for idx, t in enumerate(tasks) if t.status in _CANDIDATE_STATUSES
    ]
    candidates.sort(key=lambda pair: (-priority_rank(pair[1].priority), pair[1].created_time, pair[0]))

    for _, task in candidates:
        if task.status == TaskStatus.AWAITING_APPROVAL:
            return task
        if dependencies_met(task, lookup):
            return task
    return None


async def run_task_runner(
        graph: TaskGraph,
        executor: TaskExecutor,
        *,
        interval_seconds: float = 15.0,
) -> None:
    """
    Keep executing the next actionable task.

    Each tick:
    - ask the graph for the next task,
    - an approval gate (or nothing) -> sleep interval_seconds and look again,
    - otherwise move it to in_progress and await executor.execute(task)
        * success -> completed, returned dict stored into results
        * failure -> failed, plus a system note with the error

    To stop the runner, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            task = graph.get_next_task()
        except Exception:
            logger.exception("get_next_task failed")
            task = None

        if task is None or task.status == TaskStatus.AWAITING_APPROVAL:
            if task is not None:
                logger.debug("Runner waiting on approval gate %s", task.id)
            await asyncio.sleep(sleep_s)
            continue

        try:
            task = graph.update_task(task.id, {"status": TaskStatus.IN_PROGRESS})
        except Exception:
            logger.exception("claim failed task_id=%s", task.id)
            await asyncio.sleep(sleep_s)
            continue

        logger.info('Runner started: "%s"', task.title)

        try:
            results = await executor.execute(task)
        except asyncio.CancelledError:
            # Runner stopped mid-task: hand the claim back so the task is picked up again.
            try:
                with graph.batch():
                    graph.update_task(task.id, {"status": TaskStatus.PENDING})
                    graph.add_note(task.id, "Execution interrupted; returned to pending", "system")
                logger.info('Runner interrupted: "%s" returned to pending', task.title)
            except Exception:
                logger.exception("update_task(pending) failed task_id=%s", task.id)
            raise
        except Exception as e:
            logger.exception("executor failed task_id=%s", task.id)
            try:
                graph.update_task(task.id, {"status": TaskStatus.FAILED})
                graph.add_note(task.id, f"Execution failed: {e.__class__.__name__}: {e}", "system")
            except Exception:
                logger.exception("update_task(failed) failed task_id=%s", task.id)
            continue

        try:
            graph.update_task(
                task.id,
                {"status": TaskStatus.COMPLETED, "results": dict(results or {})},
            )
            logger.info('Runner completed: "%s"', task.title)
        except Exception:
            logger.exception("update_task(completed) failed task_id=%s", task.id)

        # Yield to the loop between consecutive tasks.
        await asyncio.sleep(0)
