# tests/test_kv_store.py

from __future__ import annotations

from pathlib import Path

from taskgraph.cli.bootstrap import create_initial_state
from taskgraph.storage.kv_store import MemoryKVStore, SQLiteKVStore
from taskgraph.tasks.task_store import TaskGraph


def test_sqlite_save_load_overwrite_delete(tmp_path: Path) -> None:
    store = SQLiteKVStore(tmp_path / "nested" / "kv.sqlite3")

    assert store.load("missing") is None

    store.save("a", {"tasks": [["t1", {"title": "Ünïcode"}]], "currentListId": "default"})
    assert store.load("a")["tasks"][0][1]["title"] == "Ünïcode"

    store.save("a", {"v": 2})
    store.save("b", [1, 2])
    assert store.load("a") == {"v": 2}
    assert store.keys() == ["a", "b"]

    store.delete("a")
    assert store.load("a") is None
    assert store.keys() == ["b"]


def test_graph_persists_across_sqlite_reopen(tmp_path: Path) -> None:
    db = tmp_path / "graph.sqlite3"
    g1 = TaskGraph(SQLiteKVStore(db))
    g1.init()
    t = g1.create_task(title="persist me", priority="high")

    g2 = TaskGraph(SQLiteKVStore(db))
    g2.init()
    assert g2.require_task(t.id).title == "persist me"


def test_memory_store_copies_values() -> None:
    store = MemoryKVStore()
    blob = {"x": [1]}
    store.save("k", blob)
    blob["x"].append(2)

    loaded = store.load("k")
    assert loaded == {"x": [1]}
    loaded["x"].append(3)
    assert store.load("k") == {"x": [1]}
    assert store.saves == 1


def test_bootstrap_wires_sqlite_state(settings) -> None:
    state = create_initial_state(settings=settings)
    state.graph.create_task(title="boot")

    assert settings.db_path.exists()
    again = create_initial_state(settings=settings)
    assert [t.title for t in again.graph.get_all_tasks()] == ["boot"]
