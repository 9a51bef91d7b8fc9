"""Modal stack with balanced observer registration.

Every push of an Observer view subscribes it to the stack's subject; the
matching pop releases exactly that subscription. A view that was popped
never receives further events, and no subscription outlives its entry.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from aichat._logger import get_logger
from aichat.modals.base import ViewState
from aichat.observers import Observer, Subject, Subscription

logger = get_logger(__name__)


@dataclass(eq=False)
class ModalEntry:
    """A view on the stack and the subscription created when it was pushed."""

    view: ViewState
    subscription: Subscription | None = None


class ModalStack:
    """LIFO of modal views. Only the top view receives input."""

    def __init__(self, subject: Subject | None = None) -> None:
        self._subject = subject
        self._entries: list[ModalEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __iter__(self) -> Iterator[ViewState]:
        """Iterate views from bottom to top."""
        return iter([entry.view for entry in self._entries])

    @property
    def subject(self) -> Subject | None:
        return self._subject

    def push(self, view: ViewState) -> ModalEntry:
        """Subscribe view (if it observes) and make it the top of the stack."""
        subscription = None
        if self._subject is not None and isinstance(view, Observer):
            subscription = self._subject.subscribe(view)
        entry = ModalEntry(view=view, subscription=subscription)
        self._entries.append(entry)
        logger.debug("Pushed %s (depth %d)", type(view).__name__, len(self._entries))
        return entry

    def pop(self) -> ModalEntry | None:
        """Remove the top entry and release its subscription.

        Returns:
            The removed entry, or None when the stack is empty.
        """
        if not self._entries:
            return None
        entry = self._entries.pop()
        if entry.subscription is not None:
            entry.subscription.close()
        logger.debug("Popped %s (depth %d)", type(entry.view).__name__, len(self._entries))
        return entry

    def current(self) -> ViewState | None:
        """Return the top view without removing it."""
        if not self._entries:
            return None
        return self._entries[-1].view

    def clear(self) -> None:
        """Pop every entry, releasing each subscription."""
        while self.pop() is not None:
            pass
