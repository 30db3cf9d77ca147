"""Foreground/background label selection."""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from segvis.actor import Actor, Receiver, ask
from segvis.bus import EventBus
from segvis.events import Event, EventType


def prev_label(label: int, labels: Mapping[int, Any]) -> int:
    """The largest label below ``label``, wrapping to the largest label overall.

    With no labels at all the current label is kept.
    """
    all_labels = [int(k) for k in labels]
    if not all_labels:
        return label
    smaller = [val for val in all_labels if val < label]
    return max(smaller) if smaller else max(all_labels)


def next_label(label: int, labels: Mapping[int, Any]) -> int:
    """The smallest label above ``label``, wrapping to the smallest label overall.

    With no labels at all the current label is kept.
    """
    all_labels = [int(k) for k in labels]
    if not all_labels:
        return label
    larger = [val for val in all_labels if val > label]
    return min(larger) if larger else min(all_labels)


def new_label(labels: Mapping[int, Any]) -> int:
    return max([0, *(int(k) for k in labels)]) + 1


class SelectionSnapshot(BaseModel):
    foreground: int
    background: int


class SelectionCoordinator(Actor):
    """Tracks the foreground and background labels used for painting.

    Every change is republished on the select bus as ``FOREGROUND``,
    ``BACKGROUND`` and the derived ``SELECTED`` so renderers can follow along.
    """

    def __init__(
        self,
        *,
        select_bus: EventBus,
        canvas_bus: EventBus | None = None,
        labeled_bus: EventBus | None = None,
        parent: Receiver | None = None,
    ):
        super().__init__(uid="select", parent=parent)
        self._select_bus = select_bus
        self._listen_to = [bus for bus in (select_bus, canvas_bus, labeled_bus) if bus is not None]

        self.foreground: int | None = None
        self.background: int | None = None
        self.selected: int | None = None
        self.hovering: int | None = None
        self.labels: dict[int, Any] = {}

    def on_start(self) -> None:
        for bus in self._listen_to:
            self.listen(bus)
        self.send_self(Event(type=EventType.FOREGROUND, foreground=1))
        self.send_self(Event(type=EventType.BACKGROUND, background=0))

    def receive(self, event: Event) -> None:
        match event.type:
            case EventType.SHIFT_CLICK:
                self._shift_click(event.get("detail"))
            case EventType.HOVERING:
                self.hovering = event.hovering
            case EventType.LABELS:
                self.labels = {int(k): v for k, v in event.labels.items()}
            case EventType.FOREGROUND:
                self.foreground = event.foreground
                self._send_selected()
                self._publish(event)
            case EventType.BACKGROUND:
                self.background = event.background
                self._send_selected()
                self._publish(event)
            case EventType.SELECTED:
                self.selected = event.selected
                self._publish(event)
            case EventType.SET_FOREGROUND:
                self._set(foreground=event.foreground)
            case EventType.SELECT_FOREGROUND:
                self._select_foreground()
            case EventType.SELECT_BACKGROUND:
                self._select_background()
            case EventType.SWITCH:
                self._set(foreground=self.background, background=self.foreground)
            case EventType.NEW_FOREGROUND:
                self._set(foreground=new_label(self.labels))
            case EventType.RESET_FOREGROUND:
                self._set(foreground=0)
            case EventType.RESET_BACKGROUND:
                self._set(background=0)
            case EventType.PREV_FOREGROUND:
                self._set(foreground=prev_label(self.foreground or 0, self.labels))
            case EventType.NEXT_FOREGROUND:
                self._set(foreground=next_label(self.foreground or 0, self.labels))
            case EventType.PREV_BACKGROUND:
                self._set(background=prev_label(self.background or 0, self.labels))
            case EventType.NEXT_BACKGROUND:
                self._set(background=next_label(self.background or 0, self.labels))
            case EventType.SAVE:
                self.respond(Event(type=EventType.RESTORE, foreground=self.foreground, background=self.background))
            case EventType.RESTORE:
                self.respond(EventType.RESTORED)
                self._set(foreground=event.foreground, background=event.background)

    # ---- gestures ----

    def _shift_click(self, detail: int | None) -> None:
        if detail == 2:
            self._set(foreground=self.hovering, background=0)
        elif self.hovering == self.background:
            self._select_foreground()
        else:
            self._select_background()

    def _select_foreground(self) -> None:
        hovering, foreground, background = self.hovering, self.foreground, self.background
        self._set(foreground=hovering, background=foreground if hovering == background else background)

    def _select_background(self) -> None:
        hovering, foreground, background = self.hovering, self.foreground, self.background
        self._set(background=hovering, foreground=background if hovering == foreground else foreground)

    # ---- plumbing ----

    def _set(self, **values: int | None) -> None:
        """Queue FOREGROUND/BACKGROUND updates in argument order, computed from the current snapshot."""
        for key, value in values.items():
            self.send_self(Event(type=key.upper(), **{key: value}))

    def _send_selected(self) -> None:
        selected = self.background if self.foreground == 0 else self.foreground
        self.send_self(Event(type=EventType.SELECTED, selected=selected))

    def _publish(self, event: Event) -> None:
        self._select_bus.publish(event, sender=self)

    # ---- request/response helpers ----

    async def save(self) -> SelectionSnapshot:
        reply = await ask(self, EventType.SAVE)
        return SelectionSnapshot(foreground=reply.foreground, background=reply.background)

    async def restore(self, snapshot: SelectionSnapshot) -> None:
        await ask(self, Event(type=EventType.RESTORE, **snapshot.model_dump()))
