"""JsonFileKeyValueStore: the default local store.

Why a single JSON document:
- Zero infra: one file under ~/.prscribe, readable with any text editor.
- The collections are small (the session cache is capped at a few dozen
  records), so reading the whole document per call is cheap.
- Writes go to a sibling temp file that is then renamed over the original,
  so a crash mid-write leaves the previous document intact.

File I/O is asynchronous through aiofiles so the event loop keeps streaming
model tokens while the cache is being written.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os as aios

from prscribe_store.base import BaseKeyValueStore
from prscribe_store.exceptions import StoreError

logger = logging.getLogger(__name__)


class JsonFileKeyValueStore(BaseKeyValueStore):
    """Stores every name as a top-level key of one JSON object on disk."""

    def __init__(self, path: str | os.PathLike = "~/.prscribe/cache.json"):
        self.path = Path(path).expanduser()

    async def get(self, name: str) -> Any | None:
        document = await self._read()
        return document.get(name)

    async def set(self, name: str, value: Any) -> None:
        document = await self._read()
        document[name] = value
        await self._write(document)

    async def remove(self, name: str) -> None:
        document = await self._read()
        if name not in document:
            return
        del document[name]
        await self._write(document)

    async def _read(self) -> dict[str, Any]:
        if not await aios.path.exists(self.path):
            return {}
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                text = await f.read()
        except OSError as e:
            raise StoreError(f"Could not read {self.path}: {e}") from e
        if not text.strip():
            return {}
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            # A corrupt cache is reported, never silently replaced.
            raise StoreError(f"{self.path} is not valid JSON: {e}") from e
        if not isinstance(document, dict):
            raise StoreError(f"{self.path} does not contain a JSON object")
        return document

    async def _write(self, document: dict[str, Any]) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            await aios.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(document, ensure_ascii=False))
            await aios.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Could not write {self.path}: {e}") from e
        logger.debug("Wrote %d collection(s) to %s", len(document), self.path)
