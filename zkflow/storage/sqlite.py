"""SQLite implementation of the key-value store."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Optional

from .base import KeyValueStore


class SQLiteStore(KeyValueStore):
    """Persist records in a SQLite table shared by all prefixes."""

    def __init__(self, db_path: str | Path, prefix: str = ""):
        self.db_path = str(db_path)
        self.prefix = prefix
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    # ------------------------------------------------------------------
    # Store API
    async def get(self, key: str) -> Optional[str]:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT value FROM kv_store WHERE key = ?", self._key(key)
        )
        return row["value"] if row else None

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO kv_store (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            self._key(key),
            value,
        )

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM kv_store WHERE key = ?", self._key(key)
        )

    async def clear(self) -> None:
        # substr avoids LIKE wildcards in the prefix
        await asyncio.to_thread(
            self._execute,
            "DELETE FROM kv_store WHERE substr(key, 1, ?) = ?",
            len(self.prefix),
            self.prefix,
        )

    def close(self) -> None:
        self._conn.close()
