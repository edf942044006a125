# src/taskgraph/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.task_store import TaskGraph
from .events import NotificationBus
from .ports import LLMClient, Planner, StorageGateway


@dataclass
class AppState:
    """Everything a caller needs, wired once by the composition root (cli/bootstrap.py)."""

    # Store Settings on the state for easy access in other modules.
    settings: Any

    storage: StorageGateway
    bus: NotificationBus
    graph: TaskGraph
    planner: Planner
    llm: LLMClient | None = None
