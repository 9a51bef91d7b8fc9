"""Tests for aichat.chat module."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from aichat.chat import ChatSession, ChatState, verify_api_key
from aichat.errors import ProviderAuthError, ProviderNotFoundError, ProviderTransportError
from aichat.events import (
    ChatErrorEvent,
    KeyTestCompletedEvent,
    MessageAddedEvent,
    StreamChunkEvent,
    StreamCompletedEvent,
    StreamStartedEvent,
)
from aichat.observers import Subject
from aichat.rendering import RichRenderer
from aichat.providers import (
    OPENROUTER_ENDPOINT,
    AIProvider,
    ChatMessage,
    ProviderInfo,
    ProviderRegistry,
)


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[Any] = []

    def notify(self, event: Any) -> None:
        self.events.append(event)


class SlowProvider(AIProvider):
    """Provider whose replies never arrive."""

    async def send_message(self, history: Any, api_key: str, model: str) -> str:
        await asyncio.sleep(10)
        return "late"

    async def stream_message(self, history: Any, api_key: str, model: str):  # type: ignore[override]
        await asyncio.sleep(10)
        yield "late"


def _sse(*chunks: str) -> bytes:
    lines = [f"data: {json.dumps({'choices': [{'delta': {'content': c}}]})}\n\n" for c in chunks]
    return ("".join(lines) + "data: [DONE]\n\n").encode()


# =============================================================================
# ChatState Tests
# =============================================================================


def test_add_message_notifies() -> None:
    state = ChatState()
    observer = RecordingObserver()
    state.subscribe(observer)

    state.add_message(ChatMessage(role="user", content="hi"))

    (event,) = observer.events
    assert isinstance(event, MessageAddedEvent)
    assert event.message is not None and event.message.content == "hi"


def test_clear_resets_state() -> None:
    state = ChatState()
    state.add_message(ChatMessage(role="user", content="hi"))
    state.streaming = True
    state.clear()
    assert state.messages == []
    assert state.streaming is False


# =============================================================================
# ChatSession Tests
# =============================================================================


async def test_send_blocking(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_response(json={"choices": [{"message": {"content": "Hello!"}}]})
    session = ChatSession(registry, "OpenRouter", "sk", "m", system_prompt="Be kind")

    reply = await session.send("Hi")

    assert reply == "Hello!"
    assert [(m.role, m.content) for m in session.state.messages] == [("user", "Hi"), ("assistant", "Hello!")]
    sent = json.loads(httpx_mock.get_request().content)
    assert sent["messages"][0] == {"role": "system", "content": "Be kind"}
    assert session.state.waiting_for_response is False


async def test_send_streaming_publishes_chunks_in_order(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_response(url=OPENROUTER_ENDPOINT, content=_sse("Hel", "lo", " there"))
    session = ChatSession(registry, "OpenRouter (s)", "sk", "m")
    observer = RecordingObserver()
    session.state.subscribe(observer)

    reply = await session.send("Hi")

    assert reply == "Hello there"
    chunks = [e for e in observer.events if isinstance(e, StreamChunkEvent)]
    assert [c.chunk for c in chunks] == ["Hel", "lo", " there"]
    assert [c.text for c in chunks] == ["Hel", "Hello", "Hello there"]

    kinds = [type(e) for e in observer.events]
    assert kinds[0] is MessageAddedEvent
    assert kinds[1] is StreamStartedEvent
    assert kinds[-2] is StreamCompletedEvent
    assert kinds[-1] is MessageAddedEvent
    assert observer.events[-2].text == "Hello there"
    assert len({e.event_id for e in observer.events if isinstance(e, StreamChunkEvent | StreamStartedEvent)}) == 1
    assert session.state.streaming is False


class CountingRenderer(RichRenderer):
    def __init__(self) -> None:
        super().__init__(width=40)
        self.calls = 0

    def render_markdown(self, text: str, code_theme: str | None = None, width: int | None = None) -> str:
        self.calls += 1
        return super().render_markdown(text, code_theme=code_theme, width=width)


async def test_streamed_renders_reach_observers(httpx_mock, registry: ProviderRegistry) -> None:
    """Every markdown render of a streamed reply is published, none is thrown away."""
    pieces = [f"w{n} " for n in range(50)]
    httpx_mock.add_response(url=OPENROUTER_ENDPOINT, content=_sse(*pieces))
    renderer = CountingRenderer()
    session = ChatSession(registry, "OpenRouter (s)", "sk", "m", renderer=renderer)
    observer = RecordingObserver()
    session.state.subscribe(observer)

    await session.send("Hi")

    chunks = [e for e in observer.events if isinstance(e, StreamChunkEvent)]
    (completed,) = [e for e in observer.events if isinstance(e, StreamCompletedEvent)]
    assert renderer.calls == len(chunks) == 50
    assert "w0" in chunks[0].rendered
    assert "w49" in completed.rendered
    assert completed.rendered == chunks[-1].rendered


async def test_send_failure_is_inline(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_response(status_code=401, json={"error": {"message": "bad key"}})
    session = ChatSession(registry, "OpenRouter", "sk", "m")
    session.state.add_message(ChatMessage(role="user", content="earlier"))
    observer = RecordingObserver()
    session.state.subscribe(observer)

    assert await session.send("Hi") is None

    assert isinstance(session.state.last_error, ProviderAuthError)
    assert [m.content for m in session.state.messages] == ["earlier", "Hi"]
    error_event = observer.events[-1]
    assert isinstance(error_event, ChatErrorEvent)
    assert error_event.error_type == "authentication"
    assert error_event.user_message == "Authentication failed. Check your API key."


async def test_send_with_unknown_provider(registry: ProviderRegistry) -> None:
    session = ChatSession(registry, "Gemini", "sk", "m")

    assert await session.send("Hi") is None
    assert isinstance(session.state.last_error, ProviderNotFoundError)
    assert session.state.last_error.user_message == "Unsupported provider: Gemini"


async def test_stream_break_keeps_history(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_exception(httpx.ReadError("reset"))
    session = ChatSession(registry, "OpenAI (s)", "sk", "m")

    assert await session.send("Hi") is None
    assert isinstance(session.state.last_error, ProviderTransportError)
    assert [m.role for m in session.state.messages] == ["user"]


def test_to_record(registry: ProviderRegistry) -> None:
    session = ChatSession(registry, "OpenAI", "sk", "gpt-4o-mini", system_prompt="Be kind")
    session.state.add_message(ChatMessage(role="user", content="Hi"))
    session.state.add_message(ChatMessage(role="assistant", content="Hello"))

    record = session.to_record("Greeting")

    assert record.title == "Greeting"
    assert record.metadata.provider == "OpenAI"
    assert record.metadata.model == "gpt-4o-mini"
    assert [(m.message_number, m.role) for m in record.messages] == [(0, "system"), (1, "user"), (2, "assistant")]


# =============================================================================
# verify_api_key Tests
# =============================================================================


async def test_verify_api_key_ok_publishes_event(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_response(content=_sse("Hi"))
    subject = Subject()
    observer = RecordingObserver()
    subject.subscribe(observer)

    result = await verify_api_key(registry.require("OpenRouter (s)"), "sk", "m", subject=subject)

    assert result.success is True
    assert result.code == "ok"
    (event,) = observer.events
    assert isinstance(event, KeyTestCompletedEvent)
    assert event.provider == "OpenRouter (s)"
    assert event.success is True


async def test_verify_api_key_auth_failure(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_response(status_code=401, json={"error": {"message": "User not found."}})

    result = await verify_api_key(registry.require("OpenRouter"), "bad", "m")

    assert result.success is False
    assert result.code == "auth"
    assert result.message == "User not found."


async def test_verify_api_key_upstream_failure(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_response(status_code=502, text="bad gateway")

    result = await verify_api_key(registry.require("OpenAI"), "sk", "m")

    assert result.code == "upstream"


async def test_verify_api_key_empty_reply(httpx_mock, registry: ProviderRegistry) -> None:
    httpx_mock.add_response(content=b"data: [DONE]\n\n")

    result = await verify_api_key(registry.require("OpenAI (s)"), "sk", "m")

    assert result.success is False
    assert result.code == "upstream"
    assert result.message == "No response (empty)"


@pytest.mark.parametrize("stream", [True, False])
async def test_verify_api_key_timeout(stream: bool) -> None:
    provider = SlowProvider(ProviderInfo(name="Slow", stream=stream))

    result = await verify_api_key(provider, "sk", "m", timeout=0.01)

    assert result.success is False
    assert result.code == "timeout"
