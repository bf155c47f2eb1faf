"""Base model client implementing the Template Method pattern.

All providers share the same two capabilities:
    generate_structured() → prompt + schema → _complete_json() → _parse()
    stream_chat()         → _stream()  ← one async iterator of text deltas
                          → abort check before every token → on_token()

Subclasses implement two things only:
  - _complete_json: make one raw non-streaming call and return the text
  - _stream: yield text deltas from one streaming call

Cancellation and JSON extraction live here so every provider honours the
abort signal and reports non-JSON output the same way.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import AsyncIterator, Callable

from prscribe_core.errors import AbortedError, MalformedResponseError
from prscribe_core.prompts import STRUCTURED_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

TokenCallback = Callable[[str], None]

_MAX_TOKENS = 4096


class ModelClient(ABC):
    MODEL: str = ""
    TEMPERATURE: float = 0.3
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(self, model: str | None = None):
        self.model = model or self.MODEL

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def generate_structured(self, prompt: str, schema: dict) -> dict:
        """Ask for one JSON object matching ``schema`` and return it parsed."""
        user = f"{prompt}\n\nThe response must validate against this JSON schema:\n{json.dumps(schema)}"
        raw = await self._complete_json(STRUCTURED_SYSTEM_PROMPT, user)
        return self._parse(raw)

    async def stream_chat(
        self,
        messages: list[dict],
        on_token: TokenCallback,
        signal: asyncio.Event | None = None,
    ) -> None:
        """Stream a reply, calling ``on_token`` per delta until done or aborted."""
        if signal is not None and signal.is_set():
            raise AbortedError("Aborted before the stream started")
        async with aclosing(self._stream(messages)) as stream:
            async for token in stream:
                if signal is not None and signal.is_set():
                    logger.info("%s: stream aborted by caller", self.__class__.__name__)
                    raise AbortedError("Aborted mid-stream")
                if token:
                    on_token(token)

    async def close(self) -> None:
        """Release the underlying SDK client. Safe to call more than once."""

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _complete_json(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single non-streaming call and return the raw text response."""

    @abstractmethod
    def _stream(self, messages: list[dict]) -> AsyncIterator[str]:
        """Yield text deltas of one streaming call."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _parse(self, raw: str) -> dict:
        """Parse the model's raw text into a JSON object.

        Raises MalformedResponseError when the text is not a JSON object.
        """
        # Strip only the outer ```json ... ``` fence, not backticks inside values.
        cleaned = re.sub(r"^```(?:json)?\s*", "", (raw or "").strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.warning("%s: failed to parse response as JSON: %s", self.__class__.__name__, (raw or "")[:200])
            raise MalformedResponseError("Model response is not valid JSON", cause=e)
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")
        return data


def split_system(messages: list[dict]) -> tuple[str, list[dict]]:
    """Hoist system messages out of ``messages`` for APIs that take them separately."""
    system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    rest = [{"role": m["role"], "content": m["content"]} for m in messages if m["role"] != "system"]
    return system, rest
