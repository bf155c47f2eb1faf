"""Tests for model client implementations.

Shared behaviour (_parse, abort handling in stream_chat, schema embedding in
generate_structured) lives in ModelClient and is tested once via a
lightweight stub. Provider-specific tests cover only what differs: SDK client
setup, _complete_json and _stream.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from anthropic.types import TextBlock

from prscribe_core.errors import AbortedError, MalformedResponseError, ServiceUnavailableError
from prscribe_core.providers.anthropic import AnthropicModelClient
from prscribe_core.providers.base import ModelClient, split_system
from prscribe_core.providers.factory import make_client_factory
from prscribe_core.providers.openai import GeminiModelClient, OpenAIModelClient
from prscribe_store.credentials import CredentialStore
from prscribe_store.memory import MemoryKeyValueStore

VALID_JSON = json.dumps({"filename": "a.py", "explanation": "x", "checklistItems": []})


async def _aiter(items):
    for item in items:
        yield item


class _StubClient(ModelClient):
    """Minimal concrete subclass used to test ModelClient shared methods."""

    MODEL = "stub"

    def __init__(self, raw: str = VALID_JSON, tokens=()):
        super().__init__()
        self.raw = raw
        self.tokens = list(tokens)
        self.prompts = []

    async def _complete_json(self, system_prompt, user_prompt):
        self.prompts.append((system_prompt, user_prompt))
        return self.raw

    async def _stream(self, messages):
        for token in self.tokens:
            yield token


# ---------------------------------------------------------------------------
# Shared behaviour, tested once through the stub, not per provider
# ---------------------------------------------------------------------------


class TestModelClientParse:
    def test_parses_valid_json(self):
        assert _StubClient()._parse(VALID_JSON)["filename"] == "a.py"

    def test_strips_markdown_code_fences(self):
        assert _StubClient()._parse(f"```json\n{VALID_JSON}\n```")["filename"] == "a.py"

    def test_preserves_code_blocks_inside_values(self):
        payload = json.dumps({"explanation": "Use:\n```python\nfoo()\n```"})
        assert "```python" in _StubClient()._parse(f"```json\n{payload}\n```")["explanation"]

    def test_invalid_json_raises_malformed(self):
        with pytest.raises(MalformedResponseError):
            _StubClient()._parse("not json at all")

    def test_non_object_raises_malformed(self):
        with pytest.raises(MalformedResponseError):
            _StubClient()._parse("[1, 2]")


class TestModelClientStructured:
    @pytest.mark.asyncio
    async def test_schema_embedded_in_prompt(self):
        client = _StubClient()
        result = await client.generate_structured("Review a.py", {"type": "object", "title": "ChecklistResult"})
        assert result["filename"] == "a.py"
        system, user = client.prompts[0]
        assert "JSON format" in system
        assert user.startswith("Review a.py")
        assert '"title": "ChecklistResult"' in user


class TestModelClientStream:
    @pytest.mark.asyncio
    async def test_tokens_forwarded_in_order(self):
        tokens = []
        await _StubClient(tokens=["Hel", "lo", "", "!"]).stream_chat([], tokens.append)
        assert tokens == ["Hel", "lo", "!"]

    @pytest.mark.asyncio
    async def test_pre_set_signal_aborts_without_tokens(self):
        signal = asyncio.Event()
        signal.set()
        on_token = MagicMock()
        with pytest.raises(AbortedError):
            await _StubClient(tokens=["a"]).stream_chat([], on_token, signal=signal)
        on_token.assert_not_called()

    @pytest.mark.asyncio
    async def test_signal_set_mid_stream_stops_tokens(self):
        signal = asyncio.Event()
        received = []

        def on_token(token):
            received.append(token)
            signal.set()

        with pytest.raises(AbortedError):
            await _StubClient(tokens=["a", "b", "c"]).stream_chat([], on_token, signal=signal)
        assert received == ["a"]


def test_split_system_hoists_system_messages():
    system, rest = split_system(
        [
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]
    )
    assert system == "be nice"
    assert [m["role"] for m in rest] == ["user", "assistant"]


# ---------------------------------------------------------------------------
# OpenAI / Gemini
# ---------------------------------------------------------------------------


def _chunk(content):
    chunk = MagicMock()
    chunk.choices = [MagicMock()]
    chunk.choices[0].delta.content = content
    return chunk


class TestOpenAIModelClient:
    def test_default_model(self):
        with patch("prscribe_core.providers.openai.AsyncOpenAI"):
            assert OpenAIModelClient(api_key="sk").model == "gpt-4o"

    def test_model_override(self):
        with patch("prscribe_core.providers.openai.AsyncOpenAI"):
            assert OpenAIModelClient(api_key="sk", model="gpt-4o-mini").model == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_complete_json_requests_json_object(self):
        with patch("prscribe_core.providers.openai.AsyncOpenAI") as mock_cls:
            mock_client = mock_cls.return_value
            response = MagicMock()
            response.choices[0].message.content = VALID_JSON
            mock_client.chat.completions.create = AsyncMock(return_value=response)

            result = await OpenAIModelClient(api_key="sk").generate_structured("prompt", {})

        assert result["filename"] == "a.py"
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_stream_yields_delta_content(self):
        with patch("prscribe_core.providers.openai.AsyncOpenAI") as mock_cls:
            mock_client = mock_cls.return_value
            mock_client.chat.completions.create = AsyncMock(
                return_value=_aiter([_chunk("Hi"), _chunk(None), _chunk(" there")])
            )
            tokens = []
            await OpenAIModelClient(api_key="sk").stream_chat([{"role": "user", "content": "q"}], tokens.append)

        assert tokens == ["Hi", " there"]
        assert mock_client.chat.completions.create.call_args.kwargs["stream"] is True

    @pytest.mark.asyncio
    async def test_close_closes_sdk_client(self):
        with patch("prscribe_core.providers.openai.AsyncOpenAI") as mock_cls:
            mock_cls.return_value.close = AsyncMock()
            await OpenAIModelClient(api_key="sk").close()
        mock_cls.return_value.close.assert_awaited_once()

    def test_gemini_uses_openai_compatible_endpoint(self):
        with patch("prscribe_core.providers.openai.AsyncOpenAI") as mock_cls:
            client = GeminiModelClient(api_key="gm")
        assert client.model == "gemini-1.5-pro-latest"
        assert "generativelanguage.googleapis.com" in mock_cls.call_args.kwargs["base_url"]


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class _FakeAnthropicStream:
    def __init__(self, texts):
        self._texts = texts

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    @property
    def text_stream(self):
        return _aiter(self._texts)


class TestAnthropicModelClient:
    def test_default_model(self):
        with patch("prscribe_core.providers.anthropic.AsyncAnthropic"):
            assert AnthropicModelClient(api_key="sk-ant").model == "claude-sonnet-4-20250514"

    @pytest.mark.asyncio
    async def test_complete_json_joins_text_blocks(self):
        with patch("prscribe_core.providers.anthropic.AsyncAnthropic") as mock_cls:
            mock_client = mock_cls.return_value
            response = MagicMock()
            response.content = [TextBlock(type="text", text=VALID_JSON)]
            mock_client.messages.create = AsyncMock(return_value=response)

            result = await AnthropicModelClient(api_key="sk-ant").generate_structured("prompt", {})

        assert result["explanation"] == "x"

    @pytest.mark.asyncio
    async def test_stream_hoists_system_prompt(self):
        with patch("prscribe_core.providers.anthropic.AsyncAnthropic") as mock_cls:
            mock_client = mock_cls.return_value
            mock_client.messages.stream = MagicMock(return_value=_FakeAnthropicStream(["Lo", "oks ", "fine"]))
            tokens = []
            await AnthropicModelClient(api_key="sk-ant").stream_chat(
                [{"role": "system", "content": "ctx"}, {"role": "user", "content": "ok?"}],
                tokens.append,
            )

        assert "".join(tokens) == "Looks fine"
        kwargs = mock_client.messages.stream.call_args.kwargs
        assert kwargs["system"] == "ctx"
        assert kwargs["messages"] == [{"role": "user", "content": "ok?"}]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestMakeClientFactory:
    @pytest.mark.asyncio
    async def test_uses_env_key(self):
        with patch("prscribe_core.providers.openai.AsyncOpenAI") as mock_cls:
            client = await make_client_factory({"model": "openai", "openai_api_key": "sk-env"})()
        assert isinstance(client, OpenAIModelClient)
        assert mock_cls.call_args.kwargs["api_key"] == "sk-env"

    @pytest.mark.asyncio
    async def test_falls_back_to_credential_store(self):
        creds = CredentialStore(MemoryKeyValueStore())
        await creds.set("anthropic_api_key", "sk-stored")
        with patch("prscribe_core.providers.anthropic.AsyncAnthropic") as mock_cls:
            client = await make_client_factory({"model": "anthropic", "anthropic_api_key": None}, creds)()
        assert isinstance(client, AnthropicModelClient)
        mock_cls.assert_called_once_with(api_key="sk-stored")

    @pytest.mark.asyncio
    async def test_model_override_applied(self):
        config = {"model": "gemini", "gemini_api_key": "gm", "models": {"gemini": "gemini-2.0-flash"}}
        with patch("prscribe_core.providers.openai.AsyncOpenAI"):
            client = await make_client_factory(config)()
        assert client.model == "gemini-2.0-flash"

    @pytest.mark.asyncio
    async def test_missing_key_raises_service_unavailable(self):
        with pytest.raises(ServiceUnavailableError, match="OPENAI_API_KEY"):
            await make_client_factory({"model": "openai"}, CredentialStore(MemoryKeyValueStore()))()

    @pytest.mark.asyncio
    async def test_unknown_provider_raises_service_unavailable(self):
        with pytest.raises(ServiceUnavailableError, match="Unknown model provider"):
            await make_client_factory({"model": "llama"})()
