"""Provider registry.

Descriptors (from providers.json) are matched by exact name against the
known provider families. Entries with unknown names are skipped.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any, TypeAlias

from pydantic import ValidationError

from aichat._logger import get_logger
from aichat.errors import ConfigError, ProviderNotFoundError
from aichat.providers.base import AIProvider, ProviderInfo
from aichat.providers.openai import OpenAIProvider, OpenRouterProvider

logger = get_logger(__name__)

ProviderFactory: TypeAlias = Callable[..., AIProvider]

PROVIDER_FAMILIES: dict[str, ProviderFactory] = {
    "OpenAI": OpenAIProvider,
    "OpenAI (s)": OpenAIProvider,
    "OpenRouter": OpenRouterProvider,
    "OpenRouter (s)": OpenRouterProvider,
}


def parse_descriptors(text: str, source: str) -> list[Any]:
    """Decode a providers.json document into its list of descriptors.

    Raises:
        ConfigError: If text is not JSON or not a JSON list.
    """
    try:
        entries = json.loads(text)
    except ValueError as e:
        raise ConfigError(f"invalid JSON in {source}: {e}", cause=e) from e
    if not isinstance(entries, list):
        raise ConfigError(f"{source} must contain a JSON list of providers")
    return entries


class ProviderRegistry:
    """Name to provider mapping.

    Constructed and injected explicitly; there is no module-level instance.
    Iteration order is registration order.
    """

    def __init__(self, provider_options: Mapping[str, Any] | None = None) -> None:
        """Initialize an empty registry.

        Args:
            provider_options: Keyword arguments passed to every provider built
                from a descriptor (timeouts, retries, a shared client).
        """
        self._providers: dict[str, AIProvider] = {}
        self._provider_options = dict(provider_options or {})

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __repr__(self) -> str:
        return f"ProviderRegistry({self.names()!r})"

    def register(self, provider: AIProvider) -> None:
        """Add a provider under its info name, replacing any previous one."""
        if provider.name in self._providers:
            logger.debug("Replacing provider %r", provider.name)
        self._providers[provider.name] = provider

    def load_from_descriptors(self, descriptors: Iterable[ProviderInfo | Mapping[str, Any]]) -> int:
        """Build and register providers for every known descriptor name.

        Returns:
            Number of providers registered.

        Raises:
            ConfigError: If a descriptor does not fit the ProviderInfo schema.
        """
        loaded = 0
        for raw in descriptors:
            try:
                info = raw if isinstance(raw, ProviderInfo) else ProviderInfo.model_validate(raw)
            except ValidationError as e:
                raise ConfigError(f"invalid provider descriptor: {e}", cause=e) from e

            factory = PROVIDER_FAMILIES.get(info.name)
            if factory is None:
                logger.debug("Skipping unknown provider %r", info.name)
                continue
            self.register(factory(info, **self._provider_options))
            loaded += 1

        logger.debug("Loaded %d provider(s)", loaded)
        return loaded

    def load_from_json(self, path: Path | str) -> int:
        """Load descriptors from a JSON file holding a list of objects.

        Raises:
            ConfigError: If the file cannot be read or is not a JSON list.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"cannot read {path}: {e}", cause=e) from e
        return self.load_from_descriptors(parse_descriptors(text, str(path)))

    def get_all(self) -> list[AIProvider]:
        """Return every registered provider."""
        return list(self._providers.values())

    def get_by_name(self, name: str) -> AIProvider | None:
        """Return the provider registered under exactly name, if any."""
        return self._providers.get(name)

    def require(self, name: str) -> AIProvider:
        """Return the provider registered under name.

        Raises:
            ProviderNotFoundError: If no such provider is registered.
        """
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotFoundError(name)
        return provider

    def names(self) -> list[str]:
        return list(self._providers)
