"""Chat session: history, provider dispatch and chat events.

ChatState is the Subject that modals and views observe. ChatSession owns
one conversation and is the single writer of its state.

Example:
    session = ChatSession(registry, "OpenRouter (s)", api_key, "gpt-4o-mini")
    reply = await session.send("Hello")
    if reply is None:
        show_error(session.state.last_error.user_message)
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass

import httpx

from aichat._logger import get_logger
from aichat.errors import (
    AIChatError,
    ProviderAuthError,
    ProviderError,
    ProviderTransportError,
)
from aichat.events import (
    ChatErrorEvent,
    KeyTestCompletedEvent,
    MessageAddedEvent,
    StreamChunkEvent,
    StreamCompletedEvent,
    StreamStartedEvent,
)
from aichat.observers import Subject
from aichat.providers.base import AIProvider, ChatMessage
from aichat.providers.registry import ProviderRegistry
from aichat.rendering import RichRenderer
from aichat.streaming import TextStreamer
from aichat.transcript import ChatMetadata, ChatRecord, TranscriptMessage

logger = get_logger(__name__)

KEY_TEST_PROMPT = "Hello"
DEFAULT_KEY_TEST_TIMEOUT = 10.0


def _new_event_id() -> str:
    return uuid.uuid4().hex


class ChatState(Subject):
    """Observable state of one conversation."""

    def __init__(self) -> None:
        super().__init__()
        self.messages: list[ChatMessage] = []
        self.streaming = False
        self.waiting_for_response = False
        self.last_error: AIChatError | None = None

    def add_message(self, message: ChatMessage) -> None:
        """Append a message and tell observers about it."""
        self.messages.append(message)
        self.notify(MessageAddedEvent(event_id=_new_event_id(), message=message))

    def clear(self) -> None:
        self.messages.clear()
        self.streaming = False
        self.waiting_for_response = False
        self.last_error = None


class ChatSession:
    """Sends user messages to a provider and records the replies."""

    def __init__(
        self,
        registry: ProviderRegistry,
        provider_name: str,
        api_key: str,
        model: str,
        *,
        state: ChatState | None = None,
        system_prompt: str = "",
        renderer: RichRenderer | None = None,
    ) -> None:
        self.registry = registry
        self.provider_name = provider_name
        self.api_key = api_key
        self.model = model
        self.state = state or ChatState()
        self.system_prompt = system_prompt
        self.streamer = TextStreamer(renderer)

    @property
    def provider(self) -> AIProvider:
        """Resolve the session's provider.

        Raises:
            ProviderNotFoundError: If the name is not registered.
        """
        return self.registry.require(self.provider_name)

    def history(self) -> list[ChatMessage]:
        """Messages to send, with the system prompt first when set."""
        messages: list[ChatMessage] = []
        if self.system_prompt:
            messages.append(ChatMessage(role="system", content=self.system_prompt))
        messages.extend(self.state.messages)
        return messages

    async def send(self, text: str) -> str | None:
        """Send a user message and append the assistant reply.

        Failures are reported inline: the error is stored in state.last_error
        and published as ChatErrorEvent. The user message stays in history.

        Returns:
            The reply text, or None on failure.
        """
        self.state.add_message(ChatMessage(role="user", content=text))
        self.state.last_error = None
        self.state.waiting_for_response = True
        try:
            provider = self.provider
            if provider.info.stream:
                reply = await self._stream_reply(provider)
            else:
                reply = await provider.send_message(self.history(), self.api_key, self.model)
        except ProviderError as e:
            logger.warning("Send to %s failed: %s", self.provider_name, e)
            self.state.last_error = e
            self.state.notify(
                ChatErrorEvent(
                    event_id=_new_event_id(),
                    error_type=e.error_type.value,
                    message=str(e),
                    user_message=e.user_message,
                )
            )
            return None
        finally:
            self.state.waiting_for_response = False
            self.state.streaming = False

        self.state.add_message(ChatMessage(role="assistant", content=reply))
        return reply

    async def _stream_reply(self, provider: AIProvider) -> str:
        event_id = _new_event_id()
        self.state.streaming = True
        self.state.notify(StreamStartedEvent(event_id=event_id, provider=provider.name, model=self.model))
        self.streamer.start()
        try:
            async for chunk in provider.stream_message(self.history(), self.api_key, self.model):
                rendered = self.streamer.update(chunk)
                self.state.notify(
                    StreamChunkEvent(event_id=event_id, chunk=chunk, text=self.streamer.text, rendered=rendered)
                )
        except BaseException:
            self.streamer.stop()
            raise
        rendered = self.streamer.finalize()
        self.state.notify(StreamCompletedEvent(event_id=event_id, text=self.streamer.text, rendered=rendered))
        return self.streamer.text

    def to_record(self, title: str) -> ChatRecord:
        """Snapshot the conversation as a transcript record."""
        messages = [
            TranscriptMessage(role=message.role, content=message.content, message_number=number)
            for number, message in enumerate(self.history())
        ]
        return ChatRecord(
            metadata=ChatMetadata(title=title, provider=self.provider_name, model=self.model),
            messages=messages,
        )


# =============================================================================
# API Key Test
# =============================================================================


@dataclass
class KeyTestResult:
    """Outcome of verify_api_key()."""

    success: bool
    code: str
    message: str


def _classify_failure(error: ProviderError) -> KeyTestResult:
    if isinstance(error, ProviderAuthError):
        return KeyTestResult(success=False, code="auth", message=str(error))
    if isinstance(error, ProviderTransportError):
        if isinstance(error.cause, httpx.TimeoutException):
            return KeyTestResult(success=False, code="timeout", message="No response (timeout)")
        return KeyTestResult(success=False, code="network", message=str(error))
    return KeyTestResult(success=False, code="upstream", message=str(error))


async def _ping(provider: AIProvider, api_key: str, model: str) -> str:
    history = [ChatMessage(role="user", content=KEY_TEST_PROMPT)]
    if not provider.info.stream:
        return await provider.send_message(history, api_key, model)
    # Any content proves the key works
    stream = provider.stream_message(history, api_key, model)
    try:
        async for chunk in stream:
            return chunk
    finally:
        close = getattr(stream, "aclose", None)
        if close is not None:
            await close()
    return ""


async def verify_api_key(
    provider: AIProvider,
    api_key: str,
    model: str,
    *,
    subject: Subject | None = None,
    timeout: float = DEFAULT_KEY_TEST_TIMEOUT,
) -> KeyTestResult:
    """Send a short test message and report whether the key works.

    Args:
        provider: Provider to test against.
        api_key: Key to test.
        model: Model to address.
        subject: When given, a KeyTestCompletedEvent is published on it.
        timeout: Seconds to wait for any reply.
    """
    try:
        async with asyncio.timeout(timeout):
            reply = await _ping(provider, api_key, model)
    except TimeoutError:
        result = KeyTestResult(success=False, code="timeout", message="API key test timed out")
    except ProviderError as e:
        result = _classify_failure(e)
    else:
        if reply:
            result = KeyTestResult(success=True, code="ok", message="Key is working")
        else:
            result = KeyTestResult(success=False, code="upstream", message="No response (empty)")

    logger.debug("Key test against %s: %s", provider.name, result.code)
    if subject is not None:
        subject.notify(
            KeyTestCompletedEvent(
                event_id=_new_event_id(),
                provider=provider.name,
                success=result.success,
                code=result.code,
                message=result.message,
            )
        )
    return result
