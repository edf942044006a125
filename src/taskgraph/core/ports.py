# src/taskgraph/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/planners/executors/LLM providers swappable and makes testing easier.
"""

from collections.abc import Callable, Iterable
from typing import Any, Awaitable, Protocol

from ..tasks.task_models import SubtaskTemplate, Task

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

EventCallback = Callable[[str, Any], None]
# Subscribers receive (event_name, payload).


class StorageGateway(Protocol):
    """
    Opaque key/value persistence.

    The task graph saves its whole snapshot under a single key and loads it once
    at startup. load() returns None when nothing was stored yet.
    """

    def save(self, key: str, blob: Any) -> None: ...
    def load(self, key: str) -> Any | None: ...


class Planner(Protocol):
    """Goal-decomposition strategy used by breakdown_goal()."""

    def plan(self, goal_title: str) -> list[SubtaskTemplate]: ...
    def is_critical(self, goal_title: str) -> bool: ...


class TaskExecutor(Protocol):
    """
    Runner-side port: how the task runner actually performs a task.

    The returned dict is stored into Task.results.
    """

    def execute(self, task: Task) -> Awaitable[dict[str, Any]]: ...


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""
    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...
