"""Single-flight coordinator for backend edit, undo, redo, upload and download requests."""

import asyncio
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeAlias

from segvis.actor import Actor, Receiver
from segvis.bus import EventBus
from segvis.client import ApiClient, DownloadedFile, save_download
from segvis.config import ExportFormat
from segvis.errors import error_event
from segvis.events import Event, EventType

DownloadSink: TypeAlias = Callable[[DownloadedFile], Any]


class ApiState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"


_REQUESTS = {
    EventType.EDIT: ApiState.LOADING,
    EventType.BACKEND_UNDO: ApiState.LOADING,
    EventType.BACKEND_REDO: ApiState.LOADING,
    EventType.UPLOAD: ApiState.UPLOADING,
    EventType.DOWNLOAD: ApiState.DOWNLOADING,
}


class ApiCoordinator(Actor):
    """Runs at most one backend request at a time.

    Requests that arrive while one is in flight are ignored, not queued; callers
    wait for :attr:`state` to return to ``idle`` (see :meth:`wait_until_idle`).
    """

    def __init__(
        self,
        client: ApiClient,
        *,
        project_id: str,
        bucket: str = "",
        export_format: ExportFormat = "npz",
        api_bus: EventBus,
        image_bus: EventBus,
        parent: Receiver | None = None,
        download_sink: DownloadSink | None = None,
        download_dir: str | Path = ".",
    ):
        super().__init__(uid="api", parent=parent)
        self._client = client
        self.project_id = project_id
        self.bucket = bucket
        self.export_format = export_format
        self._api_bus = api_bus
        self._image_bus = image_bus
        self._download_sink = download_sink or (lambda file: save_download(file, download_dir))

        self.frame = 0
        self.feature = 0
        self.channel = 0

        self.state = ApiState.IDLE
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def busy(self) -> bool:
        return self.state is not ApiState.IDLE

    async def wait_until_idle(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._idle.wait(), timeout)

    def on_start(self) -> None:
        self.listen(self._api_bus)
        self.listen(self._image_bus)

    def receive(self, event: Event) -> None:
        match event.type:
            case EventType.FRAME:
                self.frame = event.frame
            case EventType.FEATURE:
                self.feature = event.feature
            case EventType.CHANNEL:
                self.channel = event.channel
            case EventType.DONE:
                self._on_done(event.data)
            case EventType.FAILED:
                self._on_failed(event.error)
            case t if t in _REQUESTS:
                self._start_request(event)

    def _start_request(self, event: Event) -> None:
        if self.busy:
            self.log.debug("Ignoring %s while %s", event.type, self.state)
            return
        try:
            work = self._service(event)
        except ValueError as e:
            self.log.warning("Rejected %s: %s", event.type, e)
            self.send_parent(error_event(e))
            return
        self._transition(_REQUESTS[EventType(event.type)])
        self.log.debug("Starting %s", event.type)
        self.invoke(work, src=event.type.lower())

    def _service(self, event: Event):
        match event.type:
            case EventType.EDIT:
                action = event.get("action")
                if not action:
                    raise ValueError("EDIT requires an action")
                return self._client.edit(
                    self.project_id,
                    action,
                    event.get("args") or {},
                    frame=self.frame,
                    feature=self.feature,
                    channel=self.channel,
                )
            case EventType.BACKEND_UNDO:
                return self._client.undo(self.project_id)
            case EventType.BACKEND_REDO:
                return self._client.redo(self.project_id)
            case EventType.UPLOAD:
                return self._client.upload(self.project_id, self.bucket, self.export_format)
            case EventType.DOWNLOAD:
                return self._client.download(self.project_id, self.export_format)
        raise ValueError(f"No service for {event.type}")

    def _on_done(self, data: Any) -> None:
        finished = self.state
        self._transition(ApiState.IDLE)
        match finished:
            case ApiState.LOADING:
                self._image_bus.publish(Event(type=EventType.EDITED, data=data), sender=self)
            case ApiState.DOWNLOADING:
                try:
                    path = self._download_sink(data)
                except OSError as e:
                    self.log.warning("Could not save %s: %s", data.filename, e)
                    self.send_parent(error_event(e))
                    return
                self.log.info("Downloaded %s", path or data.filename)
            case ApiState.UPLOADING:
                self.log.info("Uploaded project %s", self.project_id)

    def _on_failed(self, error: Exception) -> None:
        self.log.warning("Request failed while %s: %s", self.state, error)
        self._transition(ApiState.IDLE)
        self.send_parent(error_event(error))

    def _transition(self, state: ApiState) -> None:
        self.state = state
        if state is ApiState.IDLE:
            self._idle.set()
        else:
            self._idle.clear()
