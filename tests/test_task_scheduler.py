# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio

import pytest

from taskgraph.core.state import AppState
from taskgraph.tasks import task_api
from taskgraph.tasks.task_models import NoteType, TaskStatus
from taskgraph.tasks.task_scheduler import priority_rank, run_task_runner
from taskgraph.tasks.task_store import TaskGraph

from .fakes import BlockingExecutor, FakeExecutor


def test_priority_rank_unknown_is_lowest() -> None:
    assert priority_rank("urgent") > priority_rank("high") > priority_rank("medium") > priority_rank("low")
    assert priority_rank("whatever") == 0
    assert priority_rank(None) == 0


def test_next_task_prefers_priority_then_age(graph: TaskGraph) -> None:
    graph.create_task(title="old low", priority="low")
    first_high = graph.create_task(title="first high", priority="high")
    graph.create_task(title="second high", priority="high")

    assert graph.get_next_task().id == first_high.id


def test_next_task_empty_graph(graph: TaskGraph) -> None:
    assert graph.get_next_task() is None


def test_next_task_skips_unmet_dependencies(graph: TaskGraph) -> None:
    a = graph.create_task(title="A", priority="low")
    b = graph.create_task(title="B", priority="urgent", dependencies=[a.id])

    assert graph.get_next_task().id == a.id

    graph.update_task(a.id, status="completed")
    assert graph.get_next_task().id == b.id


def test_dependency_on_deleted_task_blocks_forever(graph: TaskGraph) -> None:
    a = graph.create_task(title="A")
    graph.create_task(title="B", dependencies=[a.id])
    graph.delete_task(a.id)

    assert graph.get_next_task() is None


def test_approval_gate_wins_regardless_of_dependencies(graph: TaskGraph) -> None:
    blocker = graph.create_task(title="blocker", status="in_progress")
    graph.create_task(title="ready", priority="high")
    gate = graph.create_task(title="gate", priority="urgent", status="awaiting_approval", dependencies=[blocker.id])

    nxt = graph.get_next_task()
    assert nxt.id == gate.id
    assert nxt.status == TaskStatus.AWAITING_APPROVAL


def test_in_progress_and_finished_tasks_are_not_candidates(graph: TaskGraph) -> None:
    graph.create_task(title="running", status="in_progress")
    graph.create_task(title="done", status="completed")
    graph.create_task(title="broken", status="failed")

    assert graph.get_next_task() is None


async def _run_briefly(graph: TaskGraph, executor: FakeExecutor, seconds: float = 0.1) -> None:
    runner = asyncio.create_task(run_task_runner(graph, executor, interval_seconds=0.01))
    await asyncio.sleep(seconds)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner


@pytest.mark.asyncio
async def test_runner_executes_chain_in_order(graph: TaskGraph) -> None:
    a = graph.create_task(title="A")
    b = graph.create_task(title="B", dependencies=[a.id])
    executor = FakeExecutor()

    await _run_briefly(graph, executor)

    assert executor.executed == ["A", "B"]
    done = graph.require_task(b.id)
    assert done.status == TaskStatus.COMPLETED
    assert done.results == {"ok": "B"}
    assert done.start_time is not None and done.completed_time is not None


@pytest.mark.asyncio
async def test_runner_marks_failures_with_a_system_note(graph: TaskGraph) -> None:
    t = graph.create_task(title="explode")
    executor = FakeExecutor(fail_titles={"explode"})

    await _run_briefly(graph, executor)

    failed = graph.require_task(t.id)
    assert failed.status == TaskStatus.FAILED
    assert executor.executed == ["explode"]
    assert failed.notes[-1].type == NoteType.SYSTEM
    assert "Execution failed" in failed.notes[-1].content


@pytest.mark.asyncio
async def test_runner_waits_on_approval_gate(graph: TaskGraph) -> None:
    gate = graph.create_task(title="approve me", status="awaiting_approval")
    graph.create_task(title="after", dependencies=[gate.id])
    executor = FakeExecutor()

    await _run_briefly(graph, executor, seconds=0.05)

    assert executor.executed == []
    assert graph.require_task(gate.id).status == TaskStatus.AWAITING_APPROVAL


@pytest.mark.asyncio
async def test_task_api_runner_uses_configured_interval(state: AppState) -> None:
    state.graph.create_task(title="via api")
    executor = FakeExecutor()

    runner = asyncio.create_task(task_api.run_runner(state, executor))
    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert executor.executed == ["via api"]


@pytest.mark.asyncio
async def test_cancel_during_execute_returns_task_to_pending(graph: TaskGraph) -> None:
    t = graph.create_task(title="long job")
    executor = BlockingExecutor()

    runner = asyncio.create_task(run_task_runner(graph, executor, interval_seconds=0.01))
    await asyncio.wait_for(executor.started.wait(), timeout=1)
    assert graph.require_task(t.id).status == TaskStatus.IN_PROGRESS

    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    back = graph.require_task(t.id)
    assert back.status == TaskStatus.PENDING
    assert back.notes[-1].type == NoteType.SYSTEM
    assert "interrupted" in back.notes[-1].content
    assert graph.get_next_task().id == t.id
    assert graph.active_task_id is None
