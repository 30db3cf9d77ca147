"""Per-channel frame cache."""

from collections.abc import Awaitable, Callable
from typing import TypeAlias

import numpy as np

from segvis.actor import Actor, Receiver
from segvis.errors import error_event
from segvis.events import Event, EventType

FrameLoader: TypeAlias = Callable[[int, int], Awaitable[np.ndarray]]
"""``await loader(channel, frame)`` returns the raw pixels of one frame."""

_FETCHED = "channel.fetched"
_FETCH_FAILED = "channel.fetch_failed"


class ChannelActor(Actor):
    """Loads and caches the frames of one raw channel.

    At most one fetch is in flight. An on-demand ``LOAD`` arriving meanwhile
    waits for it (only the latest one is kept); a ``PRELOAD`` is remembered and
    served once nothing on-demand is pending. Every finished load is reported to
    the parent as ``CHANNEL_LOADED``. A failed on-demand load is reported as
    ``ERROR`` with the channel and frame. Frames that failed to load are skipped
    by preloading but fetched again on the next ``LOAD``.
    """

    def __init__(self, channel: int, num_frames: int, loader: FrameLoader, parent: Receiver | None = None):
        super().__init__(uid=f"channel{channel}", parent=parent)
        self.channel = channel
        self.num_frames = num_frames
        self._loader = loader

        self.frames: dict[int, np.ndarray] = {}
        self.invert = False
        self.loading: int | None = None
        self.failed: set[int] = set()
        self._requested: int | None = None
        self._preload_requested = False
        self._preloading = False
        self._on_demand = False

    @property
    def fully_loaded(self) -> bool:
        return len(self.frames) >= self.num_frames

    def next_unloaded(self) -> int | None:
        for frame in range(self.num_frames):
            if frame not in self.frames and frame != self.loading and frame not in self.failed:
                return frame
        return None

    def receive(self, event: Event) -> None:
        match event.type:
            case EventType.PRELOAD:
                self._preload()
            case EventType.LOAD:
                self._load(event.frame)
            case EventType.TOGGLE_INVERT:
                self.invert = not self.invert
            case EventType.RESET:
                self.invert = False
            case _ if event.type == _FETCHED:
                self._on_fetched(event.frame, event.data)
            case _ if event.type == _FETCH_FAILED:
                self._on_fetch_failed(event.frame, event.error)

    def _load(self, frame: int) -> None:
        if frame in self.frames:
            self._send_loaded(frame)
        elif frame == self.loading:
            self._on_demand = True
        elif self.loading is not None:
            self._requested = frame
        else:
            self._fetch(frame)

    def _preload(self) -> None:
        if self.loading is not None:
            self._preload_requested = True
            return
        self._preload_requested = False
        frame = self.next_unloaded()
        if frame is not None:
            self._fetch(frame, preload=True)

    def _fetch(self, frame: int, preload: bool = False) -> None:
        self.loading = frame
        self._preloading = preload
        self._on_demand = not preload
        self.invoke(
            self._loader(self.channel, frame),
            src="fetch",
            on_done=lambda data: Event(type=_FETCHED, frame=frame, data=data),
            on_error=lambda error: Event(type=_FETCH_FAILED, frame=frame, error=error),
        )

    def _on_fetched(self, frame: int, data: np.ndarray) -> None:
        # Raw frames are immutable.
        self.frames[frame] = data
        self.failed.discard(frame)
        self.loading = None
        self._send_loaded(frame)
        self._continue()

    def _on_fetch_failed(self, frame: int, error: Exception) -> None:
        self.log.error("Failed to load channel %d frame %d: %s", self.channel, frame, error)
        self.failed.add(frame)
        self.loading = None
        # No CHANNEL_LOADED follows a failure, so nobody else re-arms preloading.
        self._preload_requested = self._preload_requested or self._preloading
        if self._on_demand:
            self.send_parent(error_event(error, channel=self.channel, frame=frame))
        self._continue()

    def _continue(self) -> None:
        if self._requested is not None:
            frame, self._requested = self._requested, None
            self._load(frame)
        elif self._preload_requested:
            self._preload()

    def _send_loaded(self, frame: int) -> None:
        self.send_parent(Event(type=EventType.CHANNEL_LOADED, channel=self.channel, frame=frame))
