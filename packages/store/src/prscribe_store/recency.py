"""RecencyRepository: the capped "recently viewed" index.

A pure read model: rebuilt on every save and capped independently of the
session cache. Trimming uses the same shape as cache eviction (sort oldest
first, drop enough to make room for the new entry) so both caps behave alike.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from prscribe_store.base import BaseKeyValueStore
from prscribe_store.collection import read_collection, write_collection
from prscribe_store.models import RecencyEntry

logger = logging.getLogger(__name__)

RECENCY_NAME = "recent_sessions"
DEFAULT_RECENCY_CAP = 10


class RecencyRepository:
    def __init__(
        self,
        store: BaseKeyValueStore,
        cap: int = DEFAULT_RECENCY_CAP,
        clock: Callable[[], float] = time.time,
        name: str = RECENCY_NAME,
    ):
        if cap < 1:
            raise ValueError(f"Recency cap must be at least 1, got {cap}")
        self._store = store
        self._name = name
        self.cap = cap
        self._clock = clock

    async def _load(self) -> list[RecencyEntry]:
        return [RecencyEntry.from_dict(d) for d in await read_collection(self._store, self._name, list)]

    async def _save(self, entries: list[RecencyEntry]) -> None:
        await write_collection(self._store, self._name, [e.to_dict() for e in entries])

    async def touch(self, key: str, title: str) -> None:
        """Upsert ``key`` with the current time, trimming to the cap first."""
        entries = [e for e in await self._load() if e.key != key]
        if len(entries) >= self.cap:
            entries.sort(key=lambda e: e.touched_at)
            overflow = len(entries) - self.cap + 1
            logger.debug("Trimming %d recency entr(ies) to stay within cap %d", overflow, self.cap)
            entries = entries[overflow:]
        entries.append(RecencyEntry(key=key, title=title, touched_at=self._clock()))
        await self._save(entries)

    async def list(self) -> list[RecencyEntry]:
        """Return entries most-recent-first; on equal times the later touch wins."""
        return sorted(await self._load(), key=lambda e: e.touched_at)[::-1]

    async def remove(self, key: str) -> None:
        await self.remove_batch([key])

    async def remove_batch(self, keys: list[str]) -> None:
        targets = set(keys)
        entries = await self._load()
        remaining = [e for e in entries if e.key not in targets]
        if len(remaining) != len(entries):
            await self._save(remaining)

    async def clear(self) -> None:
        await self._store.remove(self._name)
