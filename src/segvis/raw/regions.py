"""The orthogonal regions of the raw-data coordinator.

Every region sees the same immutable :class:`RawContext` for an event and
answers with a :class:`Reaction`: its next state, the context fields it wants
changed, and the effects to run once all changes are applied.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeAlias

from segvis.events import Event, EventType

if TYPE_CHECKING:
    from segvis.raw.coordinator import RawDataCoordinator


@dataclass(frozen=True)
class RawContext:
    project_id: str
    num_channels: int
    num_frames: int
    channel_names: tuple[str, ...]
    is_grayscale: bool
    frame: int = 0
    loading_frame: int | None = None
    channel: int = 0


Effect: TypeAlias = Callable[[RawContext], None]


@dataclass
class Reaction:
    target: str | None = None
    updates: dict[str, Any] = field(default_factory=dict)
    effects: list[Effect] = field(default_factory=list)


class Region:
    name: str = ""
    initial: str = ""

    def __init__(self, raw: "RawDataCoordinator"):
        self.raw = raw
        self.state = self.initial

    def enter(self, ctx: RawContext) -> Reaction | None:
        return None

    def react(self, ctx: RawContext, event: Event) -> Reaction | None:
        return None


class PreloadRegion(Region):
    """Keeps every channel warming its cache in the background."""

    name = "preload"
    initial = "active"

    def enter(self, ctx: RawContext) -> Reaction | None:
        if not self.raw.preload:
            return None
        return Reaction(effects=[lambda _: self.raw.broadcast_channels(EventType.PRELOAD)])

    def react(self, ctx: RawContext, event: Event) -> Reaction | None:
        if event.type == EventType.CHANNEL_LOADED and self.raw.preload:
            return Reaction(effects=[lambda _: self.raw.respond(EventType.PRELOAD)])
        return None


class FrameState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"


class FrameRegion(Region):
    """Tracks the frame being loaded until the active display reports it ready."""

    name = "frame"
    initial = FrameState.IDLE

    def react(self, ctx: RawContext, event: Event) -> Reaction | None:
        if event.type == EventType.LOAD_FRAME:
            if event.frame == ctx.loading_frame:
                self.raw.log.debug("Already loading frame %s", event.frame)
                return None
            return Reaction(
                target=FrameState.LOADING,
                updates={"loading_frame": event.frame},
                effects=[lambda _: self.raw.forward_to_display(event)],
            )
        if event.type == EventType.ERROR:
            return self._on_error(ctx, event)

        match self.state, event.type:
            case FrameState.LOADING, EventType.CHANNEL_LOADED:
                if event.frame == ctx.loading_frame:
                    return Reaction(effects=[lambda _: self.raw.forward_to_display(event)])
            case FrameState.LOADING, EventType.FRAME_LOADED:
                if event.frame == ctx.loading_frame:
                    return Reaction(
                        target=FrameState.LOADED,
                        effects=[lambda _: self.raw.send_parent(Event(type=EventType.RAW_LOADED, frame=event.frame))],
                    )
                self.raw.log.debug("Ignoring frame %s while loading %s", event.frame, ctx.loading_frame)
            case FrameState.LOADED, EventType.FRAME:
                return Reaction(
                    target=FrameState.IDLE,
                    updates={"frame": event.frame},
                    effects=[lambda _: self.raw.forward_to_display(event)],
                )
            case FrameState.LOADED, EventType.CHANNEL:
                return Reaction(target=FrameState.LOADING)
        return None

    def _on_error(self, ctx: RawContext, event: Event) -> Reaction:
        if self.state == FrameState.LOADING and event.get("frame") == ctx.loading_frame:
            # Forget the frame so asking for it again starts a new load.
            return Reaction(
                target=FrameState.IDLE,
                updates={"loading_frame": None},
                effects=[lambda _: self.raw.forward_to_display(event), lambda _: self.raw.send_parent(event)],
            )
        return Reaction(effects=[lambda _: self.raw.send_parent(event)])


class ChannelRegion(Region):
    """Channel choice belongs to the parent; loads go to the active display."""

    name = "channel"
    initial = "active"

    def react(self, ctx: RawContext, event: Event) -> Reaction | None:
        match event.type:
            case EventType.CHANNEL:
                return Reaction(effects=[lambda _: self.raw.send_parent(event)])
            case EventType.LOAD_CHANNEL:
                return Reaction(
                    updates={"channel": event.channel},
                    effects=[lambda _: self.raw.forward_to_display(event)],
                )
            case EventType.CHANNEL_LOADED:
                return Reaction(effects=[lambda _: self.raw.forward_to_display(event)])
        return None


class DisplayState(StrEnum):
    GRAYSCALE = "grayscale"
    COLOR = "color"


class DisplayRegion(Region):
    name = "display"
    initial = ""

    def enter(self, ctx: RawContext) -> Reaction | None:
        return self._enter_mode(DisplayState.GRAYSCALE if ctx.is_grayscale else DisplayState.COLOR, initial=True)

    def react(self, ctx: RawContext, event: Event) -> Reaction | None:
        match self.state, event.type:
            case DisplayState.GRAYSCALE, EventType.TOGGLE_COLOR_MODE:
                return self._enter_mode(DisplayState.COLOR)
            case DisplayState.COLOR, EventType.TOGGLE_COLOR_MODE:
                return self._enter_mode(DisplayState.GRAYSCALE)
            case DisplayState.GRAYSCALE, EventType.RESET:
                return Reaction(effects=[lambda _: self.raw.forward_to_channel(event)])
            case DisplayState.GRAYSCALE, EventType.CHANNEL:
                # Re-entered even for the same channel so the grayscale mode restarts on it.
                return Reaction(
                    target=DisplayState.GRAYSCALE,
                    updates={"channel": event.channel},
                    effects=[lambda _: self.raw.grayscale_mode.send(event, sender=self.raw)],
                )
        return None

    def _enter_mode(self, mode: DisplayState, initial: bool = False) -> Reaction:
        announcement = EventType.GRAYSCALE if mode is DisplayState.GRAYSCALE else EventType.COLOR
        effects: list[Effect] = [lambda _: self.raw.publish(announcement)]
        if not initial:
            effects.append(self.raw.sync_display)
        return Reaction(target=mode, updates={"is_grayscale": mode is DisplayState.GRAYSCALE}, effects=effects)


class RestoreRegion(Region):
    name = "restore"
    initial = "active"

    def react(self, ctx: RawContext, event: Event) -> Reaction | None:
        match event.type:
            case EventType.SAVE:
                reply = Event(type=EventType.RESTORE, channel=ctx.channel, is_grayscale=ctx.is_grayscale)
                return Reaction(effects=[lambda _: self.raw.respond(reply)])
            case EventType.RESTORE:
                return Reaction(effects=[lambda _: self._restore(ctx, event)])
        return None

    def _restore(self, ctx: RawContext, event: Event) -> None:
        self.raw.send_self(Event(type=EventType.LOAD_CHANNEL, channel=event.channel))
        if ctx.is_grayscale != event.is_grayscale:
            self.raw.send_self(EventType.TOGGLE_COLOR_MODE)
        self.raw.respond(EventType.RESTORED)


REGIONS: tuple[type[Region], ...] = (PreloadRegion, FrameRegion, ChannelRegion, DisplayRegion, RestoreRegion)
