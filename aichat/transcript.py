"""Chat transcript record models.

Only the record shape lives here. Storing records (one JSON document per
title) belongs to the persistence layer.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from aichat.errors import FlowValidationError

MAX_LISTED_TITLE_LENGTH = 20


class ChatMetadata(BaseModel):
    """Information about a chat besides its messages."""

    title: str
    """Unique key of the chat within a store."""

    summary: str = ""
    created_at: datetime = Field(default_factory=datetime.now)
    provider: str = ""
    model: str = ""
    favorite: bool = False


class TranscriptMessage(BaseModel):
    """One stored chat message."""

    role: Literal["system", "user", "assistant"]
    content: str
    message_number: int = 0


class ChatRecord(BaseModel):
    """A complete chat: metadata plus ordered messages."""

    metadata: ChatMetadata
    messages: list[TranscriptMessage] = Field(default_factory=list)

    @property
    def title(self) -> str:
        return self.metadata.title


def build_chat_record(data: Mapping[str, str | bool], *, provider: str = "") -> ChatRecord:
    """Build a new, empty chat record from collected flow data.

    Recognized keys: title (required), prompt, model, provider. A non-empty
    prompt becomes the first (system) message.

    Raises:
        FlowValidationError: If no usable title was collected.
    """
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise FlowValidationError("A chat title is required.", key="title")

    model = data.get("model")
    chosen_provider = data.get("provider")
    metadata = ChatMetadata(
        title=title.strip(),
        model=model if isinstance(model, str) else "",
        provider=chosen_provider if isinstance(chosen_provider, str) else provider,
    )

    messages: list[TranscriptMessage] = []
    prompt = data.get("prompt")
    if isinstance(prompt, str) and prompt.strip():
        messages.append(TranscriptMessage(role="system", content=prompt.strip(), message_number=0))

    return ChatRecord(metadata=metadata, messages=messages)


def truncate_title(title: str, max_length: int = MAX_LISTED_TITLE_LENGTH) -> str:
    """Shorten a title for list display, marking the cut with an ellipsis."""
    if len(title) <= max_length:
        return title
    return title[: max_length - 3] + "..."
