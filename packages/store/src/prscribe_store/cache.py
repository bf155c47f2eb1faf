"""ReviewCacheService: the single write path over the three session stores.

The session key is referenced by three independent collections (session
snapshots, chat transcripts, the recency index) and nothing in the store
enforces that they agree. This façade is what keeps them consistent:

    save()          evict oldest (cascading) → upsert session → touch recency
    remove*()       session → transcripts → recency
    merge_analysis()    read and rewrite the analysis in one locked step
    save_transcript*()  transcripts only, and only for a cached session

Within one call the stores are always touched in that order, so after a
crash between two writes the session collection is the most up-to-date of
the three. A transcript orphaned that way is dead data: listings are driven
by the session and recency collections, never by scanning transcripts.

All mutating calls are serialised through one asyncio.Lock. Each repository
does read-modify-write of a whole collection; without the lock two
concurrent saves could both read the pre-eviction list and the second write
would drop the first one's record.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from prscribe_store.base import BaseKeyValueStore
from prscribe_store.models import AnalysisResult, ChatTranscript, ChatTurn, RecencyEntry, SessionRecord, SessionSnapshot
from prscribe_store.recency import DEFAULT_RECENCY_CAP, RecencyRepository
from prscribe_store.sessions import SessionRepository
from prscribe_store.transcripts import ChatTranscriptRepository, TranscriptStats

logger = logging.getLogger(__name__)

DEFAULT_CACHE_CAP = 20


class ReviewCacheService:
    """Bounded, evictable cache of review sessions with cascading deletes."""

    def __init__(
        self,
        sessions: SessionRepository,
        transcripts: ChatTranscriptRepository,
        recency: RecencyRepository,
        cache_cap: int = DEFAULT_CACHE_CAP,
        clock: Callable[[], float] = time.time,
    ):
        if cache_cap < 1:
            raise ValueError(f"Cache cap must be at least 1, got {cache_cap}")
        self._sessions = sessions
        self._transcripts = transcripts
        self._recency = recency
        self.cache_cap = cache_cap
        self._clock = clock
        self._lock = asyncio.Lock()

    @classmethod
    def from_store(
        cls,
        store: BaseKeyValueStore,
        cache_cap: int = DEFAULT_CACHE_CAP,
        recency_cap: int = DEFAULT_RECENCY_CAP,
        clock: Callable[[], float] = time.time,
    ) -> ReviewCacheService:
        """Build the service and its repositories over one backing store."""
        return cls(
            SessionRepository(store),
            ChatTranscriptRepository(store),
            RecencyRepository(store, cap=recency_cap, clock=clock),
            cache_cap=cache_cap,
            clock=clock,
        )

    # ------------------------------------------------------------------ #
    # Sessions                                                             #
    # ------------------------------------------------------------------ #

    async def save(
        self,
        key: str,
        snapshot: SessionSnapshot,
        analysis: AnalysisResult | None = None,
        *,
        clear_analysis: bool = False,
    ) -> None:
        """Store ``snapshot`` under ``key``, evicting the oldest sessions if full.

        An existing analysis is kept unless a new one is given or
        ``clear_analysis`` is set.
        """
        async with self._lock:
            records = await self._sessions.get_all()
            existing = next((r for r in records if r.key == key), None)

            if existing is None and len(records) >= self.cache_cap:
                records.sort(key=lambda r: r.saved_at)
                evict_count = len(records) - self.cache_cap + 1
                evicted = [r.key for r in records[:evict_count]]
                logger.info("Cache full (%d/%d); evicting %s", len(records), self.cache_cap, ", ".join(evicted))
                await self._remove_batch_unlocked(evicted)

            if analysis is None and existing is not None and not clear_analysis:
                analysis = existing.analysis

            await self._sessions.upsert(
                SessionRecord(key=key, snapshot=snapshot, analysis=analysis, saved_at=self._clock())
            )
            await self._recency.touch(key, snapshot.title)

    async def update_analysis_result(self, key: str, analysis: AnalysisResult) -> None:
        """Attach ``analysis`` to a cached session; no-op if ``key`` is not cached."""
        async with self._lock:
            updated = await self._sessions.update_analysis(key, analysis, self._clock())
        if not updated:
            logger.debug("Ignoring analysis update for uncached session %s", key)

    async def merge_analysis(
        self,
        key: str,
        merge: Callable[[AnalysisResult | None], AnalysisResult],
    ) -> AnalysisResult | None:
        """Apply ``merge`` to the stored analysis and write the result back.

        The read and the write happen under the lock, so two merges for
        different files cannot overwrite each other. Returns the new analysis,
        or None (writing nothing) if ``key`` is not cached. Exceptions raised
        by ``merge`` propagate and leave the record unchanged.
        """
        async with self._lock:
            record = await self._sessions.get(key)
            if record is None:
                logger.debug("Ignoring analysis merge for uncached session %s", key)
                return None
            analysis = merge(record.analysis)
            await self._sessions.update_analysis(key, analysis, self._clock())
            return analysis

    async def get(self, key: str) -> SessionRecord | None:
        return await self._sessions.get(key)

    async def get_all(self) -> list[SessionRecord]:
        return await self._sessions.get_all()

    async def remove(self, key: str) -> None:
        """Remove ``key`` from all three stores. Removing an absent key succeeds."""
        await self.remove_batch([key])

    async def remove_batch(self, keys: list[str]) -> None:
        """Remove several keys, writing each store once for the whole batch."""
        async with self._lock:
            await self._remove_batch_unlocked(keys)

    async def _remove_batch_unlocked(self, keys: list[str]) -> None:
        if not keys:
            return
        await self._sessions.remove_batch(keys)
        await self._transcripts.remove_for_keys(keys)
        await self._recency.remove_batch(keys)

    async def clear(self) -> None:
        async with self._lock:
            await self._sessions.clear()
            await self._transcripts.clear()
            await self._recency.clear()

    async def recent(self) -> list[RecencyEntry]:
        return await self._recency.list()

    # ------------------------------------------------------------------ #
    # Transcripts                                                          #
    # ------------------------------------------------------------------ #

    async def save_transcripts(self, key: str, transcripts: ChatTranscript) -> bool:
        """Reset every discussion of a session to ``transcripts``.

        Returns False, writing nothing, if ``key`` is not cached.
        """
        async with self._lock:
            if not await self._is_cached(key, "transcript reset"):
                return False
            await self._transcripts.save_all(key, transcripts)
            return True

    async def save_transcript(self, key: str, file_path: str, turns: list[ChatTurn]) -> bool:
        """Replace one file's turns; False, writing nothing, if ``key`` is not cached.

        A session evicted while a reply was streaming must not get its
        transcript back, or it would be orphaned.
        """
        async with self._lock:
            if not await self._is_cached(key, "transcript write"):
                return False
            await self._transcripts.save_one(key, file_path, turns)
            return True

    async def _is_cached(self, key: str, action: str) -> bool:
        if await self._sessions.get(key) is not None:
            return True
        logger.info("Dropping %s for uncached session %s", action, key)
        return False

    async def get_transcripts(self, key: str) -> ChatTranscript:
        return await self._transcripts.get_all(key)

    async def get_transcript(self, key: str, file_path: str) -> list[ChatTurn]:
        return await self._transcripts.get_one(key, file_path)

    async def transcript_stats(self) -> TranscriptStats:
        return await self._transcripts.stats()
