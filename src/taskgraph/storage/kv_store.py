# src/taskgraph/storage/kv_store.py

from __future__ import annotations

import contextlib
import copy
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class SQLiteKVStore:
    """
    SQLite key/value store (a "settings" table holding JSON values).

    The task graph keeps its whole snapshot under one key, so the schema is a
    single table:
    - id TEXT PRIMARY KEY
    - value TEXT (JSON)
    - updated_at REAL

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "taskgraph.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("SQLiteKVStore ready db=%s", self._db_path)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    id TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    def save(self, key: str, blob: Any) -> None:
        if not key:
            raise ValueError("key is required")
        payload = json.dumps(blob, ensure_ascii=False)

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO settings(id, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, payload, time.time()),
            )
            conn.commit()
            logger.debug("KV saved key=%s bytes=%s", key, len(payload))
        finally:
            conn.close()

    def load(self, key: str) -> Any | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT value FROM settings WHERE id = ?", (key,))
            row = cur.fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return json.loads(row["value"])

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM settings WHERE id = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    def keys(self) -> list[str]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT id FROM settings ORDER BY id ASC")
            return [str(r["id"]) for r in cur.fetchall()]
        finally:
            conn.close()


class MemoryKVStore:
    """Dict-backed store for tests and demos. Values are deep-copied both ways."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self.saves = 0

    def save(self, key: str, blob: Any) -> None:
        self._data[key] = copy.deepcopy(blob)
        self.saves += 1

    def load(self, key: str) -> Any | None:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
