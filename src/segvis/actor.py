"""Minimal actor runtime shared by the coordinators.

Each actor owns a mailbox and processes one event to completion before taking
the next. Events an actor sends to itself, or receives from another actor while
it is busy, wait in the mailbox. Long-running work is *invoked* as an asyncio
task whose outcome comes back as an ordinary event.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable, Coroutine
from enum import StrEnum
from typing import Any, Protocol

from segvis.bus import EventBus, Subscription
from segvis.errors import ActorStoppedError
from segvis.events import Event, EventType, as_event
from segvis.utils import fire_and_forget


class Receiver(Protocol):
    def send(self, event: Event | str, sender: Any = None) -> None: ...


class ActorStatus(StrEnum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    STOPPED = "stopped"


class Actor:
    """Base class for event-driven actors.

    Subclasses implement :meth:`receive` and may override :meth:`on_start` and
    :meth:`on_stop`.
    """

    def __init__(self, uid: str, parent: Receiver | None = None):
        self.uid = uid
        self.parent = parent
        self.log = logging.getLogger(f"{uid}.{self.__class__.__name__}")
        self.status = ActorStatus.NOT_STARTED

        self._mailbox: deque[tuple[Event, Any]] = deque()
        self._processing = False
        self._sender: Any = None
        self._tasks: set[asyncio.Task] = set()
        self._subscriptions: list[Subscription] = []

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.uid!r}, {self.status})"

    # ---- lifecycle ----

    def start(self) -> None:
        if self.status is not ActorStatus.NOT_STARTED:
            return
        self.status = ActorStatus.RUNNING
        self._processing = True
        try:
            self.on_start()
        finally:
            self._processing = False
        self._drain()

    def stop(self) -> None:
        if self.status is ActorStatus.STOPPED:
            return
        self.status = ActorStatus.STOPPED
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
        self._mailbox.clear()
        self.on_stop()

    def on_start(self) -> None:
        """Entry actions, run once when the actor starts."""

    def on_stop(self) -> None:
        """Exit actions, run once when the actor stops."""

    @property
    def running(self) -> bool:
        return self.status is ActorStatus.RUNNING

    # ---- messaging ----

    def send(self, event: Event | str, sender: Any = None) -> None:
        """Queue ``event`` and process the mailbox unless already processing."""
        if self.status is ActorStatus.STOPPED:
            self.log.debug("Dropping %s sent to stopped actor", as_event(event).type)
            return
        self._mailbox.append((as_event(event), sender))
        if self.status is ActorStatus.RUNNING and not self._processing:
            self._drain()

    def _drain(self) -> None:
        self._processing = True
        try:
            while self._mailbox and self.status is ActorStatus.RUNNING:
                event, sender = self._mailbox.popleft()
                self._sender = sender
                try:
                    self.receive(event)
                finally:
                    self._sender = None
        finally:
            self._processing = False

    def receive(self, event: Event) -> None:
        raise NotImplementedError

    def send_to(self, target: Receiver | None, event: Event | str) -> None:
        if target is None:
            self.log.debug("No target for %s", as_event(event).type)
            return
        target.send(event, sender=self)

    def send_self(self, event: Event | str) -> None:
        self.send(event, sender=self)

    def send_parent(self, event: Event | str) -> None:
        self.send_to(self.parent, event)

    def respond(self, event: Event | str) -> None:
        """Reply to the sender of the event being processed."""
        if self._sender is None:
            self.log.debug("No sender to respond to with %s", as_event(event).type)
            return
        self._sender.send(event, sender=self)

    def listen(self, bus: EventBus) -> Subscription:
        """Receive every event published on ``bus`` (except our own publications)."""
        sub = bus.subscribe(self.send, owner=self)
        self._subscriptions.append(sub)
        return sub

    # ---- invoked work ----

    def invoke(
        self,
        coro: Coroutine[Any, Any, Any],
        *,
        src: str,
        on_done: Callable[[Any], Event] | None = None,
        on_error: Callable[[Exception], Event] | None = None,
    ) -> asyncio.Task:
        """Run ``coro`` in the background and deliver its outcome to this actor.

        By default the outcome arrives as ``done.invoke`` with ``src`` and ``data``,
        or ``error.invoke`` with ``src`` and ``error``.
        """

        async def run() -> None:
            try:
                result = await coro
            except asyncio.CancelledError:
                raise
            except Exception as e:
                outcome = on_error(e) if on_error else Event(type=EventType.FAILED, src=src, error=e)
            else:
                outcome = on_done(result) if on_done else Event(type=EventType.DONE, src=src, data=result)
            self.send(outcome, sender=self)

        return fire_and_forget(run(), name=f"{self.uid}:{src}", log=self.log, tasks=self._tasks)


class ReplyInbox:
    """One-shot receiver resolving a future with the first event it is sent."""

    def __init__(self, future: asyncio.Future):
        self.future = future

    def send(self, event: Event | str, sender: Any = None) -> None:
        if not self.future.done():
            self.future.set_result(as_event(event))


async def ask(target: Actor, event: Event | str, *, timeout: float | None = 5.0) -> Event:
    """Send ``event`` to ``target`` and wait for the event it responds with."""
    if target.status is ActorStatus.STOPPED:
        raise ActorStoppedError(target.uid)
    inbox = ReplyInbox(asyncio.get_running_loop().create_future())
    target.send(event, sender=inbox)
    return await asyncio.wait_for(inbox.future, timeout)
