"""Key-value store abstraction for persisted workflow records."""

from __future__ import annotations

from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """Protocol for prefix-scoped text stores.

    Every key is stored as ``prefix + key``; ``clear`` only removes keys under
    the store's own prefix.
    """

    prefix: str

    async def get(self, key: str) -> Optional[str]:
        """Return the stored value or ``None``."""

    async def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    async def remove(self, key: str) -> None:
        """Delete ``key`` if present."""

    async def clear(self) -> None:
        """Delete every key under the prefix."""
