"""In-memory store: the backend for tests and throwaway runs.

Values are deep-copied through JSON on the way in and out so callers can
never mutate stored state by holding on to a returned object, matching the
behaviour of the persistent backends.
"""

from __future__ import annotations

import json
from typing import Any

from prscribe_store.base import BaseKeyValueStore


class MemoryKeyValueStore(BaseKeyValueStore):
    """Keeps every value in a process-local dict; nothing survives exit."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, str] = {}
        for name, value in (initial or {}).items():
            self._data[name] = json.dumps(value)

    async def get(self, name: str) -> Any | None:
        raw = self._data.get(name)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, name: str, value: Any) -> None:
        self._data[name] = json.dumps(value)

    async def remove(self, name: str) -> None:
        self._data.pop(name, None)

    def names(self) -> list[str]:
        return sorted(self._data)
