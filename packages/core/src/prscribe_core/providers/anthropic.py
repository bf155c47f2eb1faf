from __future__ import annotations

from typing import AsyncIterator

from anthropic import AsyncAnthropic
from anthropic.types import TextBlock

from prscribe_core.providers.base import ModelClient, split_system


class AnthropicModelClient(ModelClient):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(model)
        self.client = AsyncAnthropic(api_key=api_key)

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()

    async def _stream(self, messages: list[dict]) -> AsyncIterator[str]:
        # The Messages API takes the system prompt as a separate argument.
        system, rest = split_system(messages)
        async with self.client.messages.stream(
            model=self.model,
            system=system,
            messages=rest,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        ) as stream:
            async for text in stream.text_stream:
                yield text

    async def close(self) -> None:
        await self.client.close()
