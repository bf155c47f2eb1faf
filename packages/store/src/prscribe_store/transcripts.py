"""ChatTranscriptRepository: per-session, per-file chat turns.

Stored under one name as a nested mapping:

    {session_key: {file_path: [{"sender": ..., "text": ...}, ...]}}

Nesting by session key (rather than joining "key/path" into one string)
means cascade deletes never have to parse a key back out of a file path.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from prscribe_store.base import BaseKeyValueStore
from prscribe_store.collection import read_collection, write_collection
from prscribe_store.models import ChatTranscript, ChatTurn

TRANSCRIPTS_NAME = "chat_transcripts"


@dataclass
class TranscriptStats:
    total_entries: int  # stored (session, file) transcripts
    total_size: int  # characters of serialised JSON


class ChatTranscriptRepository:
    def __init__(self, store: BaseKeyValueStore, name: str = TRANSCRIPTS_NAME):
        self._store = store
        self._name = name

    async def _load(self) -> dict[str, dict[str, list[dict]]]:
        return await read_collection(self._store, self._name, dict)

    async def _save(self, data: dict) -> None:
        await write_collection(self._store, self._name, data)

    async def save_all(self, key: str, transcripts: ChatTranscript) -> None:
        """Replace every transcript for ``key`` with ``transcripts``.

        Existing files for the key are cleared first, so no stale file
        survives a reset. Files with no turns are not stored.
        """
        data = await self._load()
        data.pop(key, None)
        files = {path: [t.to_dict() for t in turns] for path, turns in transcripts.items() if turns}
        if files:
            data[key] = files
        await self._save(data)

    async def save_one(self, key: str, file_path: str, turns: list[ChatTurn]) -> None:
        """Replace the turns of one file; sibling files are left untouched.

        An empty ``turns`` deletes the file's entry.
        """
        data = await self._load()
        files = data.setdefault(key, {})
        if turns:
            files[file_path] = [t.to_dict() for t in turns]
        else:
            files.pop(file_path, None)
        if not files:
            del data[key]
        await self._save(data)

    async def get_all(self, key: str) -> ChatTranscript:
        files = (await self._load()).get(key, {})
        return {path: [ChatTurn.from_dict(t) for t in turns] for path, turns in files.items()}

    async def get_one(self, key: str, file_path: str) -> list[ChatTurn]:
        files = (await self._load()).get(key, {})
        return [ChatTurn.from_dict(t) for t in files.get(file_path, [])]

    async def remove_for_key(self, key: str) -> None:
        await self.remove_for_keys([key])

    async def remove_for_keys(self, keys: list[str]) -> None:
        data = await self._load()
        removed = [k for k in keys if data.pop(k, None) is not None]
        if removed:
            await self._save(data)

    async def clear(self) -> None:
        await self._store.remove(self._name)

    async def stats(self) -> TranscriptStats:
        data = await self._load()
        return TranscriptStats(
            total_entries=sum(len(files) for files in data.values()),
            total_size=len(json.dumps(data, ensure_ascii=False)),
        )
