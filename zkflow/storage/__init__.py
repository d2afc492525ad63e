"""Key-value stores for durable and session-scoped workflow records."""

from __future__ import annotations

from typing import Optional

from .base import KeyValueStore
from .inmemory import InMemoryStore, shared_backend
from .sqlite import SQLiteStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresStore
except Exception:  # pragma: no cover - optional dependency
    PostgresStore = None  # type: ignore


def get_store(url: str, prefix: str = "", ttl: Optional[int] = None) -> KeyValueStore:
    """Factory function to obtain a store for ``url``.

    ``memory://<name>`` returns a store on the process-wide backend ``name``,
    ``sqlite://<path>`` a SQLite file, ``redis://`` a Redis database (with
    optional ``ttl``) and ``postgres://``/``postgresql://`` a PostgreSQL table.
    """

    if url.startswith("memory://"):
        name = url.replace("memory://", "", 1) or "default"
        return InMemoryStore(prefix, backend=shared_backend(name))
    if url.startswith("sqlite://"):
        path = url.replace("sqlite://", "", 1)
        return SQLiteStore(path, prefix=prefix)
    if url.startswith("redis://") or url.startswith("rediss://"):
        from .redis import RedisStore

        return RedisStore(url, prefix=prefix, ttl=ttl)
    if url.startswith("postgres://") or url.startswith("postgresql://"):
        if PostgresStore is None:
            raise RuntimeError("Postgres support not available")
        return PostgresStore(url, prefix=prefix)
    raise ValueError(f"Unsupported store backend: {url}")


__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "SQLiteStore",
    "PostgresStore",
    "get_store",
    "shared_backend",
]
