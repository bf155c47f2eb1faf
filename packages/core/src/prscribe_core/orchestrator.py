"""AIOrchestrationService: prompt composition and model calls for a session.

The service never picks a provider. It is handed an async factory returning
a ModelClient, builds prompts from the cached snapshot, and maps every
failure onto the error taxonomy in prscribe_core.errors:

    input problems          → InvalidInputError (before any client is built)
    factory / transport     → ServiceUnavailableError (original kept as cause)
    schema mismatch         → MalformedResponseError
    caller abort            → AbortedError

Nothing is retried here; retry policy belongs to the caller.
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import ValidationError

from prscribe_store.models import ChatTurn, FileDiff, SessionRecord

from prscribe_core.errors import (
    AbortedError,
    InvalidInputError,
    MalformedResponseError,
    PRScribeError,
    wrap_unavailable,
)
from prscribe_core.prompts import build_chat_messages, build_checklist_prompt, build_summary_messages
from prscribe_core.providers.base import ModelClient, TokenCallback
from prscribe_core.providers.factory import ClientFactory
from prscribe_core.schemas import ChecklistResult, checklist_json_schema

logger = logging.getLogger(__name__)


def _raise_if_aborted(signal: asyncio.Event | None, message: str = "Aborted by caller") -> None:
    if signal is not None and signal.is_set():
        raise AbortedError(message)


class AIOrchestrationService:
    def __init__(self, client_factory: ClientFactory):
        self._client_factory = client_factory

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def generate_checklist(self, session: SessionRecord, filename: str, locale: str = "en") -> ChecklistResult:
        """Generate the review checklist for one file of ``session``."""
        file = self._resolve_file(session, filename)
        prompt = build_checklist_prompt(session.snapshot, file, locale)

        client = await self._acquire_client()
        try:
            raw = await client.generate_structured(prompt, checklist_json_schema())
            try:
                result = ChecklistResult.model_validate(raw)
            except ValidationError as e:
                logger.warning("Checklist for %s did not match the schema: %s", filename, e)
                raise MalformedResponseError(f"Checklist for {filename} did not match the schema", cause=e) from e
        except PRScribeError:
            raise
        except Exception as e:
            logger.error("Checklist generation for %s failed: %s", filename, e)
            raise wrap_unavailable(e, f"Checklist generation failed: {e}") from e
        finally:
            await client.close()

        if not result.filename:
            result.filename = file.filename
        return result

    async def stream_chat(
        self,
        session: SessionRecord,
        filename: str,
        history: list[ChatTurn],
        on_token: TokenCallback,
        locale: str = "en",
        *,
        signal: asyncio.Event | None = None,
    ) -> str:
        """Stream the assistant's reply to the last turn of ``history``.

        Returns the full reply. On abort, tokens already passed to
        ``on_token`` are the caller's to keep.
        """
        file = self._resolve_file(session, filename)
        _raise_if_aborted(signal)
        messages = build_chat_messages(session.snapshot, file, history, locale)
        return await self._stream(messages, on_token, signal)

    async def stream_summary(
        self,
        session: SessionRecord,
        locale: str,
        on_token: TokenCallback,
        *,
        signal: asyncio.Event | None = None,
    ) -> str:
        """Stream a five-part summary of the whole pull request."""
        self._require_session(session)
        _raise_if_aborted(signal)
        messages = build_summary_messages(session.snapshot, locale)
        return await self._stream(messages, on_token, signal)

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _require_session(session: SessionRecord | None) -> None:
        if session is None or session.snapshot is None:
            raise InvalidInputError("No session given")

    @classmethod
    def _resolve_file(cls, session: SessionRecord, filename: str) -> FileDiff:
        cls._require_session(session)
        if not session.snapshot.files:
            raise InvalidInputError("Session has no changed files")
        file = session.snapshot.find_file(filename)
        if file is None:
            raise InvalidInputError(f"File not in session: {filename}")
        return file

    async def _acquire_client(self) -> ModelClient:
        try:
            return await self._client_factory()
        except PRScribeError:
            raise
        except Exception as e:
            logger.error("Could not create model client: %s", e)
            raise wrap_unavailable(e, f"Could not create model client: {e}") from e

    async def _stream(self, messages: list[dict], on_token: TokenCallback, signal: asyncio.Event | None) -> str:
        client = await self._acquire_client()
        chunks: list[str] = []

        # Checked here as well as in the client so a transport that ignores
        # the signal still stops reaching on_token.
        def guarded(token: str) -> None:
            _raise_if_aborted(signal, "Aborted mid-stream")
            chunks.append(token)
            on_token(token)

        try:
            await client.stream_chat(messages, guarded, signal=signal)
        except PRScribeError:
            raise
        except Exception as e:
            logger.error("Streaming failed after %d tokens: %s", len(chunks), e)
            raise wrap_unavailable(e, f"Streaming failed: {e}") from e
        finally:
            await client.close()
        return "".join(chunks)
