"""CredentialStore: opaque secret cells kept alongside the cache.

Secrets are only read back by the model-client factory and the GitHub token
resolver; nothing else inspects them. Environment variables always take
precedence over stored values so CI can override without touching the store.
"""

from __future__ import annotations

from prscribe_store.base import BaseKeyValueStore

CREDENTIALS_NAME = "credentials"


class CredentialStore:
    def __init__(self, store: BaseKeyValueStore, name: str = CREDENTIALS_NAME):
        self._store = store
        self._name = name

    async def _load(self) -> dict[str, str]:
        data = await self._store.get(self._name)
        return data if isinstance(data, dict) else {}

    async def get(self, secret: str) -> str | None:
        return (await self._load()).get(secret) or None

    async def set(self, secret: str, value: str) -> None:
        data = await self._load()
        data[secret] = value
        await self._store.set(self._name, data)

    async def clear(self, secret: str) -> None:
        data = await self._load()
        if data.pop(secret, None) is not None:
            await self._store.set(self._name, data)
