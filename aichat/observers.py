"""Observer subscriptions.

A Subject keeps explicit Subscription handles instead of a bare observer
list. Whoever subscribes holds the handle and releases exactly that handle,
which keeps register/unregister calls symmetric.

Example:
    subject = Subject()
    sub = subject.subscribe(modal)
    subject.notify(StreamChunkEvent(event_id="1", chunk="Hi"))
    sub.close()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Observer(Protocol):
    """Anything that wants to be told about subject events."""

    def notify(self, event: Any) -> None: ...


@dataclass(eq=False)
class Subscription:
    """Handle for one observer registration on a subject."""

    subject: Subject = field(repr=False)
    observer: Observer
    active: bool = True

    def close(self) -> bool:
        """Release this registration.

        Returns:
            True if the subscription was active, False if already released.
        """
        return self.subject.unsubscribe(self)


class Subject:
    """Publishes events to subscribed observers.

    Not thread-safe: subscribe, unsubscribe and notify are expected to run
    on the single UI event loop.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    @property
    def observer_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)

    def subscribe(self, observer: Observer) -> Subscription:
        """Register an observer.

        Subscribing the same observer twice yields two independent handles;
        each must be closed.
        """
        subscription = Subscription(subject=self, observer=observer)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Release a subscription. No-op for released or foreign handles."""
        if not subscription.active or subscription.subject is not self:
            return False
        subscription.active = False
        self._subscriptions.remove(subscription)
        return True

    def is_subscribed(self, observer: Observer) -> bool:
        """Check whether the observer holds at least one active subscription."""
        return any(sub.observer is observer for sub in self._subscriptions)

    def notify(self, event: Any) -> None:
        """Deliver an event to every observer subscribed at call time."""
        for subscription in list(self._subscriptions):
            if subscription.active:
                subscription.observer.notify(event)
