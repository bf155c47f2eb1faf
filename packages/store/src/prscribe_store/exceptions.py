"""Errors raised by the store layer.

Repositories do not catch these; they propagate through ReviewCacheService
to the caller unchanged.
"""

from __future__ import annotations


class StoreError(Exception):
    """A backend could not read or write a value."""


class IncompatibleStoreError(StoreError):
    """A persisted collection has a shape or version this release cannot read.

    Raised instead of discarding the data, so a newer release's cache is never
    overwritten by an older one.
    """

    def __init__(self, name: str, detail: str):
        self.name = name
        self.detail = detail
        super().__init__(f"Stored collection {name!r} is incompatible: {detail}")
