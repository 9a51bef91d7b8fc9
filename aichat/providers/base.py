"""Provider abstraction shared by every AI back-end."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    """One message of a conversation history."""

    role: Role
    content: str


class ProviderInfo(BaseModel):
    """Static description of a provider. Also the providers.json entry schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    """Exact name used for registry lookup, e.g. "OpenRouter (s)"."""

    endpoint: str = ""
    """Chat completions URL. Empty means the provider family default."""

    stream: bool = False
    """Whether replies should be streamed."""


class AIProvider(ABC):
    """Capability to send a conversation to a model and get a reply.

    Implementations map every failure to a ProviderError subclass.
    """

    def __init__(self, info: ProviderInfo) -> None:
        self._info = info

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._info.name!r}, stream={self._info.stream})"

    @property
    def info(self) -> ProviderInfo:
        return self._info

    @property
    def name(self) -> str:
        return self._info.name

    @abstractmethod
    async def send_message(self, history: Sequence[ChatMessage], api_key: str, model: str) -> str:
        """Send history and return the complete reply text.

        Raises:
            ProviderError: On transport, authentication or upstream failure.
        """

    @abstractmethod
    def stream_message(self, history: Sequence[ChatMessage], api_key: str, model: str) -> AsyncIterator[str]:
        """Send history and yield reply fragments in arrival order.

        The iterator is lazy, finite and cannot be restarted. A failure ends
        it by raising a ProviderError; fragments already yielded stand.
        """

    async def stream_message_to(
        self,
        history: Sequence[ChatMessage],
        api_key: str,
        model: str,
        on_chunk: Callable[[str], None],
    ) -> str:
        """Stream history, invoking on_chunk once per fragment.

        Returns:
            The concatenated reply.
        """
        parts: list[str] = []
        async for chunk in self.stream_message(history, api_key, model):
            parts.append(chunk)
            on_chunk(chunk)
        return "".join(parts)
