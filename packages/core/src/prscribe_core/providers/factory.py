"""Provider selection, kept outside the orchestrator.

The orchestrator only sees ``Callable[[], Awaitable[ModelClient]]``; which
provider it gets and where the API key comes from are decided here.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from prscribe_store.credentials import CredentialStore

from prscribe_core.errors import ServiceUnavailableError
from prscribe_core.providers.anthropic import AnthropicModelClient
from prscribe_core.providers.base import ModelClient
from prscribe_core.providers.openai import GeminiModelClient, OpenAIModelClient

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[ModelClient]] = {
    "openai": OpenAIModelClient,
    "anthropic": AnthropicModelClient,
    "gemini": GeminiModelClient,
}

ClientFactory = Callable[[], Awaitable[ModelClient]]


def api_key_name(provider: str) -> str:
    """Config / credential-store name holding ``provider``'s API key."""
    return f"{provider}_api_key"


def make_client_factory(config: dict, credentials: CredentialStore | None = None) -> ClientFactory:
    """Return an async factory building the client named by ``config["model"]``.

    The API key is read from the environment-derived config first, then from
    ``credentials``. A missing key or unknown provider raises
    ServiceUnavailableError when the factory is awaited, not when it is built.
    """

    async def factory() -> ModelClient:
        provider = config.get("model", "openai")
        client_cls = PROVIDERS.get(provider)
        if client_cls is None:
            raise ServiceUnavailableError(
                f"Unknown model provider: {provider!r}. Choose one of: {', '.join(sorted(PROVIDERS))}."
            )

        key_name = api_key_name(provider)
        api_key = config.get(key_name)
        if not api_key and credentials is not None:
            api_key = await credentials.get(key_name)
        if not api_key:
            raise ServiceUnavailableError(
                f"No API key for {provider}. Set {key_name.upper()} or run `prscribe login {provider}`."
            )

        model = (config.get("models") or {}).get(provider)
        logger.debug("Using %s model client (%s)", provider, model or client_cls.MODEL)
        return client_cls(api_key=api_key, model=model)

    return factory
