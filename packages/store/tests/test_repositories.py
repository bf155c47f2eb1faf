"""Tests for the three session repositories in isolation."""

from __future__ import annotations

import pytest

from prscribe_store.memory import MemoryKeyValueStore
from prscribe_store.models import AnalysisResult, ChatTurn, SessionRecord, SessionSnapshot
from prscribe_store.recency import RecencyRepository
from prscribe_store.sessions import SESSIONS_NAME, SessionRepository
from prscribe_store.transcripts import ChatTranscriptRepository


class _Clock:
    """Strictly increasing fake clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        self.now += 1
        return self.now


def _record(key: str, saved_at: float = 1.0, title: str = "Fix auth bug") -> SessionRecord:
    return SessionRecord(key=key, snapshot=SessionSnapshot(title=title, number=1), saved_at=saved_at)


def _turns(*texts: str) -> list[ChatTurn]:
    return [ChatTurn(sender="user" if i % 2 == 0 else "assistant", text=t) for i, t in enumerate(texts)]


# ---------------------------------------------------------------------------
# SessionRepository
# ---------------------------------------------------------------------------


class TestSessionRepository:
    @pytest.mark.asyncio
    async def test_empty_store_returns_empty(self):
        repo = SessionRepository(MemoryKeyValueStore())
        assert await repo.get_all() == []
        assert await repo.get("a") is None

    @pytest.mark.asyncio
    async def test_upsert_inserts_then_replaces_in_place(self):
        repo = SessionRepository(MemoryKeyValueStore())
        await repo.upsert(_record("a", title="one"))
        await repo.upsert(_record("b"))
        await repo.upsert(_record("a", title="two"))

        records = await repo.get_all()
        assert [r.key for r in records] == ["a", "b"]
        assert records[0].snapshot.title == "two"

    @pytest.mark.asyncio
    async def test_update_analysis_existing(self):
        repo = SessionRepository(MemoryKeyValueStore())
        await repo.upsert(_record("a", saved_at=1.0))
        analysis = AnalysisResult(summary="ok", generated_at="t")

        assert await repo.update_analysis("a", analysis, saved_at=5.0) is True
        record = await repo.get("a")
        assert record.analysis == analysis
        assert record.saved_at == 5.0

    @pytest.mark.asyncio
    async def test_update_analysis_absent_returns_false(self):
        store = MemoryKeyValueStore()
        repo = SessionRepository(store)
        assert await repo.update_analysis("a", AnalysisResult(), saved_at=1.0) is False
        assert await store.get(SESSIONS_NAME) is None

    @pytest.mark.asyncio
    async def test_remove_batch(self):
        repo = SessionRepository(MemoryKeyValueStore())
        for key in ("a", "b", "c"):
            await repo.upsert(_record(key))
        await repo.remove_batch(["a", "c", "zzz"])
        assert [r.key for r in await repo.get_all()] == ["b"]

    @pytest.mark.asyncio
    async def test_reads_unversioned_records(self):
        legacy = [_record("a").to_dict()]
        repo = SessionRepository(MemoryKeyValueStore({SESSIONS_NAME: legacy}))
        assert (await repo.get("a")).snapshot.title == "Fix auth bug"


# ---------------------------------------------------------------------------
# ChatTranscriptRepository
# ---------------------------------------------------------------------------


class TestChatTranscriptRepository:
    @pytest.mark.asyncio
    async def test_get_one_missing_returns_empty_list(self):
        repo = ChatTranscriptRepository(MemoryKeyValueStore())
        assert await repo.get_one("k", "a.ts") == []
        assert await repo.get_all("k") == {}

    @pytest.mark.asyncio
    async def test_save_one_leaves_sibling_files_untouched(self):
        repo = ChatTranscriptRepository(MemoryKeyValueStore())
        turns_a = _turns("why?", "because")
        turns_b = _turns("and this?")

        await repo.save_one("k", "a.ts", turns_a)
        await repo.save_one("k", "b.ts", turns_b)

        assert await repo.get_one("k", "a.ts") == turns_a
        assert await repo.get_one("k", "b.ts") == turns_b

    @pytest.mark.asyncio
    async def test_save_one_empty_deletes_file(self):
        repo = ChatTranscriptRepository(MemoryKeyValueStore())
        await repo.save_one("k", "a.ts", _turns("x"))
        await repo.save_one("k", "b.ts", _turns("y"))
        await repo.save_one("k", "a.ts", [])
        assert list((await repo.get_all("k")).keys()) == ["b.ts"]

    @pytest.mark.asyncio
    async def test_save_all_discards_stale_files(self):
        repo = ChatTranscriptRepository(MemoryKeyValueStore())
        await repo.save_one("k", "old.ts", _turns("stale"))
        await repo.save_all("k", {"new.ts": _turns("fresh"), "empty.ts": []})

        transcripts = await repo.get_all("k")
        assert list(transcripts.keys()) == ["new.ts"]
        assert transcripts["new.ts"][0].text == "fresh"

    @pytest.mark.asyncio
    async def test_keys_are_isolated(self):
        repo = ChatTranscriptRepository(MemoryKeyValueStore())
        await repo.save_one("k1", "a.ts", _turns("one"))
        await repo.save_one("k2", "a.ts", _turns("two"))
        await repo.remove_for_key("k1")
        assert await repo.get_all("k1") == {}
        assert (await repo.get_one("k2", "a.ts"))[0].text == "two"

    @pytest.mark.asyncio
    async def test_keys_with_slashes_do_not_collide(self):
        repo = ChatTranscriptRepository(MemoryKeyValueStore())
        await repo.save_one("github.com/o/r/1", "src/a.ts", _turns("x"))
        await repo.save_one("github.com/o/r/12", "src/a.ts", _turns("y"))
        await repo.remove_for_keys(["github.com/o/r/1"])
        assert await repo.get_all("github.com/o/r/1") == {}
        assert await repo.get_one("github.com/o/r/12", "src/a.ts") != []

    @pytest.mark.asyncio
    async def test_stats(self):
        repo = ChatTranscriptRepository(MemoryKeyValueStore())
        await repo.save_one("k", "a.ts", _turns("x"))
        await repo.save_one("k", "b.ts", _turns("y"))
        stats = await repo.stats()
        assert stats.total_entries == 2
        assert stats.total_size > 0


# ---------------------------------------------------------------------------
# RecencyRepository
# ---------------------------------------------------------------------------


class TestRecencyRepository:
    @pytest.mark.asyncio
    async def test_cap_keeps_most_recent_first(self):
        repo = RecencyRepository(MemoryKeyValueStore(), cap=10, clock=_Clock())
        for i in range(15):
            await repo.touch(f"k{i}", f"PR {i}")

        entries = await repo.list()
        assert [e.key for e in entries] == [f"k{i}" for i in range(14, 4, -1)]

    @pytest.mark.asyncio
    async def test_touch_existing_moves_to_front_without_duplicates(self):
        repo = RecencyRepository(MemoryKeyValueStore(), cap=3, clock=_Clock())
        for key in ("a", "b", "c"):
            await repo.touch(key, key.upper())
        await repo.touch("a", "A2")

        entries = await repo.list()
        assert [e.key for e in entries] == ["a", "c", "b"]
        assert entries[0].title == "A2"

    @pytest.mark.asyncio
    async def test_touch_existing_at_cap_does_not_evict(self):
        repo = RecencyRepository(MemoryKeyValueStore(), cap=2, clock=_Clock())
        await repo.touch("a", "A")
        await repo.touch("b", "B")
        await repo.touch("b", "B")
        assert {e.key for e in await repo.list()} == {"a", "b"}

    @pytest.mark.asyncio
    async def test_remove_batch(self):
        repo = RecencyRepository(MemoryKeyValueStore(), clock=_Clock())
        for key in ("a", "b", "c"):
            await repo.touch(key, key)
        await repo.remove_batch(["a", "b"])
        assert [e.key for e in await repo.list()] == ["c"]

    def test_invalid_cap_rejected(self):
        with pytest.raises(ValueError):
            RecencyRepository(MemoryKeyValueStore(), cap=0)
