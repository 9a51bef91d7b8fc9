"""Events published on a ChatState subject.

Modals that implement the Observer protocol receive these while they sit on
the modal stack. Every event carries an id so start/complete pairs can be
correlated by the presenting layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aichat.providers.base import ChatMessage


@dataclass
class AppEvent:
    """Base class for application events.

    Attributes:
        event_id: Unique identifier to correlate related events.
        timestamp: When the event was created.
    """

    event_id: str
    timestamp: datetime = field(default_factory=datetime.now)


# =============================================================================
# Chat Events
# =============================================================================


@dataclass
class MessageAddedEvent(AppEvent):
    """Emitted when a message is appended to the chat history."""

    message: ChatMessage | None = None


@dataclass
class StreamStartedEvent(AppEvent):
    """Emitted before the first chunk of a streamed reply is requested."""

    provider: str = ""
    model: str = ""


@dataclass
class StreamChunkEvent(AppEvent):
    """Emitted for every fragment of a streamed reply, in arrival order.

    Attributes:
        chunk: The fragment just received.
        text: Accumulated reply text including this fragment.
        rendered: The accumulated text rendered as ANSI markdown.
    """

    chunk: str = ""
    text: str = ""
    rendered: str = ""


@dataclass
class StreamCompletedEvent(AppEvent):
    """Emitted when a streamed reply finishes normally."""

    text: str = ""
    rendered: str = ""


@dataclass
class ChatErrorEvent(AppEvent):
    """Emitted when a send fails. Already collected chat data is untouched."""

    error_type: str = ""
    message: str = ""
    user_message: str = ""


# =============================================================================
# API Key Test Events
# =============================================================================


@dataclass
class KeyTestCompletedEvent(AppEvent):
    """Emitted when an API key test finishes.

    Attributes:
        provider: Provider name the key was tested against.
        success: Whether the test request succeeded.
        code: Result code ("ok", "timeout", "auth", "network", "upstream").
        message: Human-readable result.
    """

    provider: str = ""
    success: bool = False
    code: str = ""
    message: str = ""
