"""SessionRepository: the session snapshot collection.

Stored under one name as an array of SessionRecord dicts. Not individually
addressable: every save or eviction rewrites the whole array. The repository
holds no business rules (caps, cascades); those live in ReviewCacheService.
"""

from __future__ import annotations

from prscribe_store.base import BaseKeyValueStore
from prscribe_store.collection import read_collection, write_collection
from prscribe_store.models import AnalysisResult, SessionRecord

SESSIONS_NAME = "session_cache"


class SessionRepository:
    def __init__(self, store: BaseKeyValueStore, name: str = SESSIONS_NAME):
        self._store = store
        self._name = name

    async def _load(self) -> list[dict]:
        return await read_collection(self._store, self._name, list)

    async def _save(self, items: list[dict]) -> None:
        await write_collection(self._store, self._name, items)

    async def get_all(self) -> list[SessionRecord]:
        return [SessionRecord.from_dict(d) for d in await self._load()]

    async def get(self, key: str) -> SessionRecord | None:
        for d in await self._load():
            if d.get("key") == key:
                return SessionRecord.from_dict(d)
        return None

    async def upsert(self, record: SessionRecord) -> None:
        """Insert ``record`` or replace the record with the same key in place."""
        items = await self._load()
        for i, d in enumerate(items):
            if d.get("key") == record.key:
                items[i] = record.to_dict()
                break
        else:
            items.append(record.to_dict())
        await self._save(items)

    async def update_analysis(self, key: str, analysis: AnalysisResult, saved_at: float) -> bool:
        """Replace the analysis of an existing record; return False if absent."""
        items = await self._load()
        for d in items:
            if d.get("key") == key:
                d["analysis"] = analysis.to_dict()
                d["saved_at"] = saved_at
                await self._save(items)
                return True
        return False

    async def remove(self, key: str) -> None:
        await self.remove_batch([key])

    async def remove_batch(self, keys: list[str]) -> None:
        targets = set(keys)
        items = await self._load()
        remaining = [d for d in items if d.get("key") not in targets]
        if len(remaining) != len(items):
            await self._save(remaining)

    async def clear(self) -> None:
        await self._store.remove(self._name)
