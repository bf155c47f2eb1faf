"""Abstract key-value store interface.

Every persistent collection prscribe keeps (session cache, chat transcripts,
recency index, credentials) lives under one name inside a KeyValueStore as a
single JSON value. Repositories depend on BaseKeyValueStore, not on a
concrete backend, so an in-memory store can stand in for the file or SQLite
backends in tests without touching repository code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class BaseKeyValueStore(ABC):
    """Asynchronous name → JSON-value store.

    There is no atomicity across names: each call reads or replaces exactly
    one value. Callers that need a consistent view of several names must
    serialise their own writes.
    """

    @abstractmethod
    async def get(self, name: str) -> Any | None:
        """Return the value stored under ``name``, or None when absent."""

    @abstractmethod
    async def set(self, name: str, value: Any) -> None:
        """Replace the value stored under ``name``.

        ``value`` must be JSON-serialisable.
        """

    @abstractmethod
    async def remove(self, name: str) -> None:
        """Delete ``name``. Removing an absent name is not an error."""

    async def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional; subclasses that need cleanup should override this.
        Default is a no-op so callers can always close() safely.
        """
