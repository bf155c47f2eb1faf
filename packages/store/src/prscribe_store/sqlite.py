"""SQLiteKeyValueStore: file-based store for power users and shared machines.

Why SQLite as an alternative to the JSON file:
- Batteries included: ships with Python, no extra dependencies.
- Each collection is its own row, so rewriting the session cache does not
  rewrite the chat transcripts alongside it.
- The database survives concurrent readers (e.g. a second terminal listing
  recent sessions) without partial-file reads.

Schema:
  kv: one row per collection name; value is the JSON-encoded collection.

sqlite3 is blocking, so every statement runs through asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any

from prscribe_store.base import BaseKeyValueStore
from prscribe_store.exceptions import StoreError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    name        TEXT PRIMARY KEY,
    value_json  TEXT NOT NULL,
    updated_at  TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SQLiteKeyValueStore(BaseKeyValueStore):
    """Stores collections in a local SQLite database file.

    The database file path defaults to `~/.prscribe/cache.db`. Configure via
    .prscribe.yml: `store: sqlite` and `store_path: /path/to/cache.db`.
    """

    def __init__(self, db_path: str = "~/.prscribe/cache.db"):
        path = Path(db_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        # Statements run on worker threads; the lock keeps them one at a time.
        self._conn = sqlite3.connect(str(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    async def get(self, name: str) -> Any | None:
        row = await asyncio.to_thread(self._fetch, name)
        if row is None:
            return None
        try:
            return json.loads(row["value_json"])
        except json.JSONDecodeError as e:
            raise StoreError(f"Value for {name!r} is not valid JSON: {e}") from e

    async def set(self, name: str, value: Any) -> None:
        value_json = json.dumps(value, ensure_ascii=False)
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO kv (name, value_json, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(name) DO UPDATE SET
              value_json = excluded.value_json,
              updated_at = excluded.updated_at
            """,
            (name, value_json),
        )

    async def remove(self, name: str) -> None:
        await asyncio.to_thread(self._execute, "DELETE FROM kv WHERE name=?", (name,))

    async def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _fetch(self, name: str) -> sqlite3.Row | None:
        with self._lock:
            try:
                return self._conn.execute("SELECT value_json FROM kv WHERE name=?", (name,)).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"SQLite read of {name!r} failed: {e}") from e

    def _execute(self, sql: str, params: tuple) -> None:
        with self._lock:
            try:
                self._conn.execute(sql, params)
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise StoreError(f"SQLite write failed: {e}") from e
