# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from taskgraph.core.ports import ChatMessage
from taskgraph.tasks.task_models import SubtaskTemplate, Task


class FakeClock:
    """Monotonic millisecond clock: every call advances by `step` ms."""

    def __init__(self, start: float = 1_700_000_000_000.0, step: float = 1000.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk (or raises `error`)
    """

    def __init__(self, next_text: str = "ok", error: Exception | None = None) -> None:
        self.next_text = next_text
        self.error = error
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        if self.error is not None:
            raise self.error
        yield self.next_text


@dataclass(slots=True)
class FakePlanner:
    steps: list[SubtaskTemplate] = field(default_factory=list)
    critical: bool = False
    calls: list[str] = field(default_factory=list)

    def plan(self, goal_title: str) -> list[SubtaskTemplate]:
        self.calls.append(goal_title)
        return list(self.steps)

    def is_critical(self, goal_title: str) -> bool:
        return self.critical


@dataclass(slots=True)
class FakeExecutor:
    """
    Executor used by runner tests.

    Titles listed in `fail_titles` raise; everything else returns {"ok": title}.
    """

    fail_titles: set[str] = field(default_factory=set)
    executed: list[str] = field(default_factory=list)

    async def execute(self, task: Task) -> dict[str, Any]:
        self.executed.append(task.title)
        if task.title in self.fail_titles:
            raise RuntimeError(f"boom: {task.title}")
        return {"ok": task.title}


class BlockingExecutor:
    """Executor that never finishes on its own; `started` is set once a task is running."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.executed: list[str] = []

    async def execute(self, task: Task) -> dict[str, Any]:
        self.executed.append(task.title)
        self.started.set()
        await asyncio.Event().wait()
        return {}


class FailingStorage:
    """Storage gateway whose save() always raises; load() returns nothing."""

    def __init__(self) -> None:
        self.save_attempts = 0

    def save(self, key: str, blob: Any) -> None:
        self.save_attempts += 1
        raise OSError("disk full")

    def load(self, key: str) -> Any | None:
        return None
