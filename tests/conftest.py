# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskgraph.core.events import NotificationBus
from taskgraph.core.state import AppState
from taskgraph.planning.keyword_planner import KeywordPlanner
from taskgraph.storage.kv_store import MemoryKVStore
from taskgraph.tasks.task_store import TaskGraph

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskgraph-test",
        data_dir=tmp_path,
        db_path=tmp_path / "taskgraph.sqlite3",
        storage_key="taskManager_data",
        default_list_name="My Tasks",
        default_list_color="#3498db",
        planner="keyword",
        critical_keywords=None,
        runner_interval_seconds=0.01,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage() -> MemoryKVStore:
    return MemoryKVStore()


@pytest.fixture()
def bus() -> NotificationBus:
    return NotificationBus()


@pytest.fixture()
def graph(storage: MemoryKVStore, bus: NotificationBus, clock: FakeClock) -> TaskGraph:
    g = TaskGraph(storage, bus, clock=clock)
    g.init()
    return g


@pytest.fixture()
def state(settings: SimpleNamespace, storage: MemoryKVStore, bus: NotificationBus, graph: TaskGraph) -> AppState:
    """
    AppState wired with deterministic pieces.

    The graph is real (in-memory store) because its behavior is what we test.
    """
    return AppState(
        settings=settings,
        storage=storage,
        bus=bus,
        graph=graph,
        planner=KeywordPlanner(),
    )
