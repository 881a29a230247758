# src/storage/sqlite_store.py — v1
"""SQLite-based key-value store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. One row per key, value kept
as JSON text.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from stockscan.storage.base_kv_store import BaseKeyValueStore, StorageUnavailable

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class SqliteKeyValueStore(BaseKeyValueStore):
    """SQLite-backed store; a single database file holds every key."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None
        try:
            self._connect()
        except (sqlite3.Error, OSError) as e:
            logger.warning("SQLite store %s unavailable, retrying on use: %s", self._db_path, e)

    def _connect(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path))
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA)
        except sqlite3.Error:
            conn.close()
            raise
        self._conn = conn
        return conn

    def _connection(self, key: str) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            return self._connect()
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailable(key, str(e)) from e

    async def get(self, key: str) -> Any | None:
        try:
            row = self._connection(key).execute(
                "SELECT value FROM kv_entries WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(key, str(e)) from e
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning("Discarding corrupt store row %s: %s", key, e)
            return None

    async def set(self, key: str, value: Any) -> None:
        """Store a value (upsert)."""
        try:
            conn = self._connection(key)
            conn.execute(
                """INSERT OR REPLACE INTO kv_entries (key, value, updated_at)
                   VALUES (?, ?, CURRENT_TIMESTAMP)""",
                (key, json.dumps(value, ensure_ascii=False)),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailable(key, str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            conn = self._connection(key)
            conn.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailable(key, str(e)) from e

    async def keys(self) -> list[str]:
        try:
            cursor = self._connection("*").execute("SELECT key FROM kv_entries ORDER BY key")
            return [row[0] for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageUnavailable("*", str(e)) from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
