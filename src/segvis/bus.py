"""Named in-process publish/subscribe channels.

A bus only relays: it keeps no history, so late subscribers miss earlier
events, and two buses never deliver each other's events.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeAlias

from segvis.events import Event, as_event

Handler: TypeAlias = Callable[[Event], None]


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`."""

    def __init__(self, bus: "EventBus", handler: Handler, owner: object | None = None):
        self.bus = bus
        self.handler = handler
        self.owner = owner

    @property
    def active(self) -> bool:
        return self in self.bus._subscriptions

    def cancel(self) -> None:
        self.bus.unsubscribe(self)


class EventBus:
    def __init__(self, name: str):
        self.name = name
        self.log = logging.getLogger(f"bus.{name}")
        self._subscriptions: list[Subscription] = []

    def __repr__(self) -> str:
        return f"EventBus({self.name!r})"

    def subscribe(self, handler: Handler, owner: object | None = None) -> Subscription:
        """Register ``handler`` for every event published from now on.

        ``owner`` identifies the subscriber so its own publications are not echoed back.
        """
        sub = Subscription(self, handler, owner)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: Event | str, sender: object | None = None) -> None:
        """Deliver ``event`` to every current subscriber in subscription order."""
        event = as_event(event)
        self.log.debug("publish %s", event.type)
        # Snapshot so handlers may (un)subscribe while we deliver.
        for sub in list(self._subscriptions):
            if sender is not None and sub.owner is sender:
                continue
            sub.handler(event)

    # Buses are also valid send targets for actors.
    def send(self, event: Event | str, sender: object | None = None) -> None:
        self.publish(event, sender=sender)

    def __len__(self) -> int:
        return len(self._subscriptions)


@dataclass
class Buses:
    """The buses of one application session, created once and passed to every coordinator."""

    api: EventBus = field(default_factory=lambda: EventBus("api"))
    image: EventBus = field(default_factory=lambda: EventBus("image"))
    raw: EventBus = field(default_factory=lambda: EventBus("raw"))
    select: EventBus = field(default_factory=lambda: EventBus("select"))
    canvas: EventBus = field(default_factory=lambda: EventBus("canvas"))
    labeled: EventBus = field(default_factory=lambda: EventBus("labeled"))
