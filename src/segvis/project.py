"""Project session: builds the coordinators of one project and relays between them."""

from functools import partial

from segvis.actor import Actor
from segvis.api import ApiCoordinator, DownloadSink
from segvis.bus import Buses
from segvis.client import ApiClient
from segvis.config import ProjectConfig
from segvis.events import Event, EventType
from segvis.raw import FrameLoader, RawDataCoordinator
from segvis.selection import SelectionCoordinator


class Project(Actor):
    """Root actor of a labeling session.

    Children send it ``RAW_LOADED``, ``CHANNEL``, ``ADD_LAYER`` and ``ERROR``.
    The frame and channel on screen are published on the image bus, which is
    how the API coordinator's edit cursor follows them.
    """

    def __init__(
        self,
        config: ProjectConfig,
        *,
        client: ApiClient | None = None,
        buses: Buses | None = None,
        loader: FrameLoader | None = None,
        download_sink: DownloadSink | None = None,
    ):
        super().__init__(uid=f"project.{config.project_id}")
        self.config = config
        self.buses = buses or Buses()
        self.client = client or ApiClient(config.origin, timeout_s=config.timeout_s)
        self._owns_client = client is None

        self.frame = 0
        self.feature = 0
        self.channel = 0
        self.errors: list[Event] = []

        self.api = ApiCoordinator(
            self.client,
            project_id=config.project_id,
            bucket=config.bucket,
            export_format=config.export_format,
            api_bus=self.buses.api,
            image_bus=self.buses.image,
            parent=self,
            download_sink=download_sink,
            download_dir=config.download_dir,
        )
        self.raw = RawDataCoordinator(
            config.project_id,
            config.num_channels,
            config.num_frames,
            loader or partial(self.client.load_raw, config.project_id),
            raw_bus=self.buses.raw,
            parent=self,
            preload=config.preload,
        )
        self.select = SelectionCoordinator(
            select_bus=self.buses.select,
            canvas_bus=self.buses.canvas,
            labeled_bus=self.buses.labeled,
            parent=self,
        )

    @property
    def last_error(self) -> Event | None:
        return self.errors[-1] if self.errors else None

    # ---- lifecycle ----

    async def shutdown(self) -> None:
        """Let an in-flight request finish, then stop every actor."""
        await self.api.wait_until_idle(timeout=self.config.timeout_s)
        self.stop()

    def load_frame(self, frame: int) -> None:
        self.send(Event(type=EventType.LOAD_FRAME, frame=frame))

    def on_start(self) -> None:
        self.listen(self.buses.image)
        for child in (self.api, self.select, self.raw):
            child.start()
        self.send_self(Event(type=EventType.LOAD_FRAME, frame=self.frame))

    def on_stop(self) -> None:
        for child in (self.raw, self.select, self.api):
            child.stop()
        if self._owns_client:
            self.client.close()

    # ---- events ----

    def receive(self, event: Event) -> None:
        match event.type:
            case EventType.LOAD_FRAME:
                self.send_to(self.raw, event)
            case EventType.RAW_LOADED:
                self._show_frame(event.frame)
            case EventType.CHANNEL:
                self.channel = event.channel
                self._publish(event)
            case EventType.FEATURE:
                self.feature = event.feature
                self._publish(event)
            case EventType.ERROR:
                self.log.warning("%s error: %s", event.get("kind", "api"), event.error)
                self.errors.append(event)
            case EventType.EDITED:
                self.log.debug("Edit applied: %s", event.data)
            case EventType.ADD_LAYER:
                self.log.info("Layer requested")

    def _show_frame(self, frame: int) -> None:
        self.frame = frame
        shown = Event(type=EventType.FRAME, frame=frame)
        self.send_to(self.raw, shown)
        self._publish(shown)

    def _publish(self, event: Event) -> None:
        self.buses.image.publish(event, sender=self)

    # ---- requests ----

    async def _request(self, event: Event) -> Event | None:
        """Send a request to the API coordinator and wait for it to finish.

        Returns the ERROR event it produced, if any.
        """
        await self.api.wait_until_idle()
        errors_before = len(self.errors)
        self.send_to(self.api, event)
        await self.api.wait_until_idle(timeout=self.config.timeout_s)
        return self.errors[-1] if len(self.errors) > errors_before else None

    async def edit(self, action: str, **args) -> Event | None:
        return await self._request(Event(type=EventType.EDIT, action=action, args=args))

    async def undo(self) -> Event | None:
        return await self._request(Event(type=EventType.BACKEND_UNDO))

    async def redo(self) -> Event | None:
        return await self._request(Event(type=EventType.BACKEND_REDO))

    async def upload(self) -> Event | None:
        return await self._request(Event(type=EventType.UPLOAD))

    async def download(self) -> Event | None:
        return await self._request(Event(type=EventType.DOWNLOAD))
