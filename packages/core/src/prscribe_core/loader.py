"""SessionLoader: glue between the code host, the cache and the orchestrator.

    load()               cache.get → (miss or refresh) GitHubClient → cache.save
    generate_checklist() load → orchestrator → cache.merge_analysis
    toggle_item()        cache.merge_analysis (no fetch)
    chat()               load → user turn → stream reply → persist reply
    reset_chat()         cache transcripts only (no fetch)
    summarize()          load → stream summary → cache.merge_analysis

Partial replies are persisted on abort, marked with INTERRUPTED_MARKER, and
the AbortedError is re-raised for the caller.
"""

from __future__ import annotations

import asyncio
import logging

from prscribe_store.cache import ReviewCacheService
from prscribe_store.models import AnalysisResult, ChatTurn, ChecklistItem, FileChecklist, SessionRecord

from prscribe_core.errors import AbortedError, NotFoundError
from prscribe_core.gh.pull_request import GitHubClient
from prscribe_core.identifiers import SessionIdentifier, session_key
from prscribe_core.orchestrator import AIOrchestrationService
from prscribe_core.providers.base import TokenCallback

logger = logging.getLogger(__name__)

INTERRUPTED_MARKER = " [interrupted]"


class SessionLoader:
    def __init__(
        self,
        cache: ReviewCacheService,
        github: GitHubClient,
        orchestrator: AIOrchestrationService,
        instruction_path: str | None = None,
        model_name: str = "",
    ):
        self.cache = cache
        self.github = github
        self.orchestrator = orchestrator
        self.instruction_path = instruction_path
        self.model_name = model_name

    async def load(self, identifier: SessionIdentifier, *, refresh: bool = False) -> SessionRecord:
        """Return the cached session, fetching it from GitHub on a miss or refresh."""
        key = session_key(identifier)
        if not refresh:
            record = await self.cache.get(key)
            if record is not None:
                logger.debug("Cache hit for %s", key)
                return record

        logger.info("Fetching %s from the code host", key)
        snapshot = await self.github.fetch_session(identifier, self.instruction_path)
        await self.cache.save(key, snapshot)
        return await self.cache.get(key)

    async def generate_checklist(self, identifier: SessionIdentifier, filename: str, locale: str = "en") -> FileChecklist:
        record = await self.load(identifier)
        result = await self.orchestrator.generate_checklist(record, filename, locale)
        checklist = result.to_file_checklist()
        await self.cache.merge_analysis(record.key, lambda current: self._base(current).with_checklist(checklist))
        return checklist

    async def toggle_item(self, identifier: SessionIdentifier, filename: str, item_id: str) -> ChecklistItem:
        """Flip one checklist item of a cached session and return its new state.

        Works from the cache alone; nothing is fetched.
        """
        key = session_key(identifier)
        try:
            analysis = await self.cache.merge_analysis(
                key, lambda current: self._base(current).with_item_toggled(filename, item_id)
            )
        except KeyError:
            raise NotFoundError(f"No checklist item {item_id!r} for {filename} in {key}")
        if analysis is None:
            raise NotFoundError(f"No cached session {key}")
        return next(i for i in analysis.checklist_for(filename).items if i.id == item_id)

    async def reset_chat(self, identifier: SessionIdentifier, filename: str | None = None) -> None:
        """Forget the discussion of one file, or of every file when ``filename`` is None."""
        key = session_key(identifier)
        if filename is None:
            stored = await self.cache.save_transcripts(key, {})
        else:
            stored = await self.cache.save_transcript(key, filename, [])
        if not stored:
            raise NotFoundError(f"No cached session {key}")

    async def chat(
        self,
        identifier: SessionIdentifier,
        filename: str,
        message: str,
        on_token: TokenCallback,
        locale: str = "en",
        signal: asyncio.Event | None = None,
    ) -> str:
        """Send ``message`` about ``filename`` and stream the reply.

        The user turn is stored before the model is called, so it survives a
        failed or aborted request.
        """
        record = await self.load(identifier)
        history = await self.cache.get_transcript(record.key, filename)
        history = history + [ChatTurn(sender="user", text=message)]
        await self.cache.save_transcript(record.key, filename, history)

        partial: list[str] = []

        def collect(token: str) -> None:
            partial.append(token)
            on_token(token)

        try:
            reply = await self.orchestrator.stream_chat(record, filename, history, collect, locale, signal=signal)
        except AbortedError:
            if partial:
                text = "".join(partial) + INTERRUPTED_MARKER
                await self.cache.save_transcript(record.key, filename, history + [ChatTurn(sender="assistant", text=text)])
                logger.info("Stored interrupted reply for %s (%d chars)", filename, len(text))
            raise

        await self.cache.save_transcript(record.key, filename, history + [ChatTurn(sender="assistant", text=reply)])
        return reply

    async def summarize(
        self,
        identifier: SessionIdentifier,
        locale: str,
        on_token: TokenCallback,
        signal: asyncio.Event | None = None,
    ) -> str:
        record = await self.load(identifier)
        summary = await self.orchestrator.stream_summary(record, locale, on_token, signal=signal)
        await self.cache.merge_analysis(record.key, lambda current: self._base(current).with_summary(summary))
        return summary

    def close(self) -> None:
        self.github.close()

    def _base(self, current: AnalysisResult | None) -> AnalysisResult:
        return current if current is not None else AnalysisResult(model=self.model_name)
