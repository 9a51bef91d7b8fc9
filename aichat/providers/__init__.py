"""AI provider back-ends.

Example:
    registry = ProviderRegistry()
    registry.load_from_descriptors([{"name": "OpenRouter (s)", "stream": True}])
    provider = registry.require("OpenRouter (s)")
    async for chunk in provider.stream_message(history, api_key, model):
        print(chunk, end="")
"""

from __future__ import annotations

from aichat.providers.base import AIProvider, ChatMessage, ProviderInfo, Role
from aichat.providers.openai import (
    OPENAI_ENDPOINT,
    OPENROUTER_ENDPOINT,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenRouterProvider,
    create_async_http_client,
)
from aichat.providers.registry import PROVIDER_FAMILIES, ProviderRegistry

__all__ = [
    "OPENAI_ENDPOINT",
    "OPENROUTER_ENDPOINT",
    "PROVIDER_FAMILIES",
    "AIProvider",
    "ChatMessage",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "ProviderInfo",
    "ProviderRegistry",
    "Role",
    "create_async_http_client",
]
