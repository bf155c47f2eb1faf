from __future__ import annotations

from typing import AsyncIterator

from openai import AsyncOpenAI

from prscribe_core.providers.base import ModelClient


class OpenAIModelClient(ModelClient):
    MODEL = "gpt-4o"
    TEMPERATURE = 0.3
    BASE_URL: str | None = None

    def __init__(self, api_key: str, model: str | None = None, base_url: str | None = None):
        super().__init__(model)
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url or self.BASE_URL)

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    async def _stream(self, messages: list[dict]) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            stream=True,
        )
        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

    async def close(self) -> None:
        await self.client.close()


class GeminiModelClient(OpenAIModelClient):
    """Gemini through its OpenAI-compatible endpoint."""

    MODEL = "gemini-1.5-pro-latest"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
