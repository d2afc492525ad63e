"""PostgreSQL implementation of the key-value store."""

from __future__ import annotations

from typing import Optional

import asyncpg

from .base import KeyValueStore


class PostgresStore(KeyValueStore):
    """Persist records using PostgreSQL."""

    def __init__(self, dsn: str, prefix: str = ""):
        self._dsn = dsn
        self.prefix = prefix
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    # ------------------------------------------------------------------
    async def get(self, key: str) -> Optional[str]:
        conn = await self._connect()
        try:
            return await conn.fetchval(
                "SELECT value FROM kv_store WHERE key = $1", self._key(key)
            )
        finally:
            await conn.close()

    async def set(self, key: str, value: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO kv_store (key, value) VALUES ($1, $2)
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                """,
                self._key(key),
                value,
            )
        finally:
            await conn.close()

    async def remove(self, key: str) -> None:
        conn = await self._connect()
        try:
            await conn.execute("DELETE FROM kv_store WHERE key = $1", self._key(key))
        finally:
            await conn.close()

    async def clear(self) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "DELETE FROM kv_store WHERE left(key, $1) = $2",
                len(self.prefix),
                self.prefix,
            )
        finally:
            await conn.close()
