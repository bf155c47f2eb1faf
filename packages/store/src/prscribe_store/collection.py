"""Versioned envelope around each persisted collection.

Every repository reads its whole collection, mutates it in memory, and
writes the whole collection back. The collection is wrapped as

    {"version": 1, "items": <list or dict>}

so a future shape change can be detected instead of guessed at. An
unwrapped list/dict (written before the envelope existed) is read as
version 0 and re-wrapped on the next write. Anything else raises
IncompatibleStoreError, the stored data is left untouched.
"""

from __future__ import annotations

import logging
from typing import Any

from prscribe_store.base import BaseKeyValueStore
from prscribe_store.exceptions import IncompatibleStoreError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
_SUPPORTED_VERSIONS = {SCHEMA_VERSION}


def unwrap(name: str, raw: Any, expected: type) -> Any:
    """Return the items of a stored collection, validating shape and version."""
    if raw is None:
        return expected()

    if isinstance(raw, dict) and "version" in raw and "items" in raw:
        version = raw["version"]
        if version not in _SUPPORTED_VERSIONS:
            raise IncompatibleStoreError(name, f"unsupported schema version {version!r}")
        items = raw["items"]
    elif isinstance(raw, expected):
        logger.info("Migrating unversioned collection %r to schema version %d", name, SCHEMA_VERSION)
        items = raw
    else:
        raise IncompatibleStoreError(name, f"expected {expected.__name__}, found {type(raw).__name__}")

    if not isinstance(items, expected):
        raise IncompatibleStoreError(name, f"expected {expected.__name__} items, found {type(items).__name__}")
    return items


def wrap(items: Any) -> dict:
    return {"version": SCHEMA_VERSION, "items": items}


async def read_collection(store: BaseKeyValueStore, name: str, expected: type) -> Any:
    return unwrap(name, await store.get(name), expected)


async def write_collection(store: BaseKeyValueStore, name: str, items: Any) -> None:
    await store.set(name, wrap(items))
