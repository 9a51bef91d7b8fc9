"""View contract shared by menus, the chat view and modal dialogs.

A view never renders to the terminal itself: render() returns an ANSI string
and update() returns the next state plus an optional deferred effect, a
coroutine function the event loop schedules after the update returns.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol, TypeAlias, runtime_checkable

from prompt_toolkit.keys import Keys

Effect: TypeAlias = Callable[[], Awaitable[None]]


class ViewType(Enum):
    """Kind of a view."""

    MENU = auto()
    CHAT = auto()
    MODAL = auto()


@dataclass(frozen=True)
class KeyEvent:
    """A key press.

    Attributes:
        key: A prompt_toolkit Keys value, or Keys.Any for printable input.
        text: The typed characters when key is Keys.Any.
    """

    key: str
    text: str = ""

    @classmethod
    def char(cls, text: str) -> KeyEvent:
        return cls(Keys.Any, text)

    @property
    def is_char(self) -> bool:
        return self.key == Keys.Any and bool(self.text)


@dataclass(frozen=True)
class ViewContext:
    """Size of the region a view renders into."""

    width: int = 80
    height: int = 24


class Navigator(Protocol):
    """Lets a view open and close modals or end the application."""

    def show_modal(self, view: ViewState) -> None: ...

    def hide_modal(self) -> None: ...

    def quit(self) -> None: ...


@runtime_checkable
class ViewState(Protocol):
    """Anything that can be shown and receive key events."""

    @property
    def view_type(self) -> ViewType: ...

    def init(self) -> Effect | None: ...

    def render(self, ctx: ViewContext) -> str: ...

    def update(self, event: KeyEvent, ctx: ViewContext, nav: Navigator) -> tuple[ViewState, Effect | None]: ...
