"""In-memory implementation of the key-value store."""

from __future__ import annotations

from typing import Dict, Optional

from .base import KeyValueStore

_BACKENDS: Dict[str, Dict[str, str]] = {}


def shared_backend(name: str) -> Dict[str, str]:
    """Return the process-wide dictionary registered under ``name``."""
    return _BACKENDS.setdefault(name, {})


class InMemoryStore(KeyValueStore):
    """Store records in local memory.

    Useful for tests or session-scoped data. Instances built on the same
    ``backend`` dictionary see each other's records; nothing survives the
    process.
    """

    def __init__(self, prefix: str = "", backend: Optional[Dict[str, str]] = None) -> None:
        self.prefix = prefix
        self._data: Dict[str, str] = backend if backend is not None else {}

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        self._data[self._key(key)] = value

    async def remove(self, key: str) -> None:
        self._data.pop(self._key(key), None)

    async def clear(self) -> None:
        for key in [k for k in self._data if k.startswith(self.prefix)]:
            del self._data[key]
