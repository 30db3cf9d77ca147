"""Shared test doubles."""

import asyncio
from typing import Any

from segvis.events import Event, as_event


class Recorder:
    """Receiver that keeps everything it is sent."""

    def __init__(self):
        self.events: list[Event] = []
        self.senders: list[Any] = []

    def send(self, event: Event | str, sender: Any = None) -> None:
        self.events.append(as_event(event))
        self.senders.append(sender)

    # Bus handler form
    def __call__(self, event: Event) -> None:
        self.send(event)

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]

    def of_type(self, type_: str) -> list[Event]:
        return [e for e in self.events if e.type == type_]


async def settle(rounds: int = 20) -> None:
    """Let background tasks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)
