"""Display-mode coordinators: which channels are shown and how their frames are loaded."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from segvis.actor import Actor, Receiver
from segvis.events import Event, EventType
from segvis.raw.channel import ChannelActor


class DisplayMode(Actor, ABC):
    """Loads frames for the channels currently shown and reports when they are ready.

    ``LOAD_FRAME`` asks every shown channel for the frame and sends
    ``FRAME_LOADED`` to the parent once all of them answered. ``LOAD_CHANNEL``
    loads one channel and reports ``CHANNEL`` followed by ``FRAME_LOADED``.
    A channel chosen while a frame is loading joins that load, so
    ``FRAME_LOADED`` always names the frame that was asked for. Repeated
    ``CHANNEL_LOADED`` notifications are harmless.
    """

    def __init__(self, uid: str, channels: Sequence[ChannelActor], parent: Receiver | None = None):
        super().__init__(uid=uid, parent=parent)
        self._channels = channels
        self.frame = 0
        self.loading_frame: int | None = None
        self.pending: set[int] = set()
        self._announce: int | None = None

    @property
    @abstractmethod
    def layers(self) -> list[int]:
        """Channels currently shown."""

    @abstractmethod
    def select_channel(self, channel: int) -> None:
        """Show ``channel``."""

    @abstractmethod
    def pending_with(self, channel: int) -> list[int]:
        """Channels still to load for the current frame once ``channel`` is shown."""

    def receive(self, event: Event) -> None:
        match event.type:
            case EventType.LOAD_FRAME:
                self._load_frame(event.frame, self.layers)
            case EventType.FRAME:
                self.frame = event.frame
            case EventType.LOAD_CHANNEL:
                self.select_channel(event.channel)
                self._announce = event.channel
                self._load_channel(event.channel)
            case EventType.CHANNEL_LOADED:
                self._on_channel_loaded(event.channel, event.frame)
            case EventType.ERROR:
                self._on_load_failed(event.get("frame"))
            case _:
                self.handle(event)

    def handle(self, event: Event) -> None:
        """Mode-specific events."""

    def _load_channel(self, channel: int) -> None:
        if self.loading_frame is None:
            self._load_frame(self.frame, [channel])
        else:
            self._load_frame(self.loading_frame, self.pending_with(channel))

    def _load_frame(self, frame: int, channels: list[int]) -> None:
        self.loading_frame = frame
        self.pending = set(channels)
        for channel in channels:
            self.send_to(self._channels[channel], Event(type=EventType.LOAD, frame=frame))
        if not channels:
            self._finish()

    def _on_channel_loaded(self, channel: int, frame: int) -> None:
        if frame != self.loading_frame or channel not in self.pending:
            return
        self.pending.discard(channel)
        if not self.pending:
            self._finish()

    def _on_load_failed(self, frame: int | None) -> None:
        if frame is None or frame != self.loading_frame:
            return
        self.log.debug("Abandoning frame %s", frame)
        self.loading_frame = None
        self.pending.clear()
        self._announce = None

    def _finish(self) -> None:
        frame, self.loading_frame = self.loading_frame, None
        self.frame = frame
        if self._announce is not None:
            channel, self._announce = self._announce, None
            self.send_parent(Event(type=EventType.CHANNEL, channel=channel))
        self.send_parent(Event(type=EventType.FRAME_LOADED, frame=frame))


class GrayscaleMode(DisplayMode):
    """Shows a single channel."""

    def __init__(self, channels: Sequence[ChannelActor], channel: int = 0, parent: Receiver | None = None):
        super().__init__("grayscaleMode", channels, parent)
        self.channel = channel

    @property
    def layers(self) -> list[int]:
        return [self.channel]

    def select_channel(self, channel: int) -> None:
        self.channel = channel

    def pending_with(self, channel: int) -> list[int]:
        return [channel]

    def handle(self, event: Event) -> None:
        match event.type:
            case EventType.CHANNEL:
                # Restart on the channel, even when it is already shown.
                self.channel = event.channel
                self._load_channel(self.channel)


class ColorMode(DisplayMode):
    """Shows several channels blended together."""

    MAX_INITIAL_LAYERS = 3

    def __init__(self, channels: Sequence[ChannelActor], parent: Receiver | None = None):
        super().__init__("colorMode", channels, parent)
        self._layers = list(range(min(len(channels), self.MAX_INITIAL_LAYERS)))

    @property
    def layers(self) -> list[int]:
        return list(self._layers)

    def select_channel(self, channel: int) -> None:
        if channel not in self._layers:
            self._layers.append(channel)

    def pending_with(self, channel: int) -> list[int]:
        return sorted(self.pending | {channel})
