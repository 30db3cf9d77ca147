"""Coordinator for the raw image channels of a project."""

from dataclasses import replace
from typing import Any

from pydantic import BaseModel

from segvis.actor import Actor, Receiver, ask
from segvis.bus import EventBus
from segvis.events import Event, EventType
from segvis.raw.channel import ChannelActor, FrameLoader
from segvis.raw.display import ColorMode, DisplayMode, GrayscaleMode
from segvis.raw.regions import REGIONS, FrameState, RawContext, Reaction, Region


class RegionConflictError(RuntimeError):
    """Two regions proposed different values for the same context field."""


class RawSnapshot(BaseModel):
    channel: int
    is_grayscale: bool


class RawDataCoordinator(Actor):
    """Owns the channel actors and display modes and runs the raw-data regions.

    Five regions (preload, frame, channel, display, restore) are all active at
    once. Each event is offered to every region against the same context
    snapshot; their proposed changes are merged, applied, and only then are
    their effects run, in region order.
    """

    def __init__(
        self,
        project_id: str,
        num_channels: int,
        num_frames: int,
        loader: FrameLoader,
        *,
        raw_bus: EventBus,
        parent: Receiver | None = None,
        channel_names: list[str] | None = None,
        preload: bool = True,
    ):
        super().__init__(uid="raw", parent=parent)
        self._loader = loader
        self._raw_bus = raw_bus
        self.preload = preload

        self.context = RawContext(
            project_id=project_id,
            num_channels=num_channels,
            num_frames=num_frames,
            channel_names=tuple(channel_names or (f"channel {i}" for i in range(num_channels))),
            is_grayscale=num_channels == 1,
        )
        self.channels: list[ChannelActor] = []
        self.grayscale_mode: GrayscaleMode | None = None
        self.color_mode: ColorMode | None = None
        self.regions: dict[str, Region] = {cls.name: cls(self) for cls in REGIONS}

    @property
    def state(self) -> dict[str, str]:
        return {name: str(region.state) for name, region in self.regions.items()}

    @property
    def display_mode(self) -> DisplayMode | None:
        return self.grayscale_mode if self.context.is_grayscale else self.color_mode

    # ---- lifecycle ----

    def on_start(self) -> None:
        ctx = self.context
        self.channels = [ChannelActor(i, ctx.num_frames, self._loader, parent=self) for i in range(ctx.num_channels)]
        self.grayscale_mode = GrayscaleMode(self.channels, channel=ctx.channel, parent=self)
        self.color_mode = ColorMode(self.channels, parent=self)
        for child in (*self.channels, self.grayscale_mode, self.color_mode):
            child.start()
        self.listen(self._raw_bus)

        self._apply([(region, region.enter(ctx)) for region in self.regions.values()])

    def on_stop(self) -> None:
        for child in (*self.channels, self.grayscale_mode, self.color_mode):
            if child is not None:
                child.stop()

    # ---- dispatch ----

    def receive(self, event: Event) -> None:
        match event.type:
            case EventType.TOGGLE_INVERT:
                self.forward_to_channel(event)
                return
            case EventType.ADD_LAYER:
                self.send_parent(EventType.ADD_LAYER)
                return
            case EventType.FRAME_LOADED | EventType.CHANNEL if self._from_inactive_mode():
                self.log.debug("Dropping %s from the inactive display mode", event.type)
                return

        snapshot = self.context
        self._apply([(region, region.react(snapshot, event)) for region in self.regions.values()])

    def _from_inactive_mode(self) -> bool:
        return self._sender in (self.grayscale_mode, self.color_mode) and self._sender is not self.display_mode

    def _apply(self, reactions: list[tuple[Region, Reaction | None]]) -> None:
        reactions = [(region, r) for region, r in reactions if r is not None]

        updates: dict[str, Any] = {}
        for region, reaction in reactions:
            for key, value in reaction.updates.items():
                if key in updates and updates[key] != value:
                    raise RegionConflictError(f"Region '{region.name}' conflicts on '{key}': {updates[key]} vs {value}")
                updates[key] = value

        for region, reaction in reactions:
            if reaction.target is not None:
                region.state = reaction.target
        if updates:
            self.context = replace(self.context, **updates)

        for _, reaction in reactions:
            for effect in reaction.effects:
                effect(self.context)

    # ---- actions used by the regions ----

    def forward_to_display(self, event: Event) -> None:
        self.send_to(self.display_mode, event)

    def forward_to_channel(self, event: Event) -> None:
        self.send_to(self.channels[self.context.channel], event)

    def broadcast_channels(self, event: Event | str) -> None:
        for channel in self.channels:
            self.send_to(channel, event)

    def publish(self, event: Event | str) -> None:
        self._raw_bus.publish(event, sender=self)

    def sync_display(self, ctx: RawContext) -> None:
        """Bring a newly activated display mode to the current frame and channel."""
        mode = self.display_mode
        state = self.regions["frame"].state
        # Until the parent commits with FRAME, the frame region waits on loading_frame.
        frame = ctx.frame if state == FrameState.IDLE or ctx.loading_frame is None else ctx.loading_frame
        self.send_to(mode, Event(type=EventType.FRAME, frame=frame))
        if state == FrameState.LOADING and ctx.loading_frame is not None:
            self.send_to(mode, Event(type=EventType.LOAD_FRAME, frame=ctx.loading_frame))
        self.send_to(mode, Event(type=EventType.LOAD_CHANNEL, channel=ctx.channel))

    # ---- request/response helpers ----

    async def save(self) -> RawSnapshot:
        reply = await ask(self, EventType.SAVE)
        return RawSnapshot(channel=reply.channel, is_grayscale=reply.is_grayscale)

    async def restore(self, snapshot: RawSnapshot) -> None:
        await ask(self, Event(type=EventType.RESTORE, **snapshot.model_dump()))
