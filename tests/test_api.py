"""Tests for the single-flight API coordinator."""

import asyncio

import pytest
from support import Recorder, settle

from segvis.api import ApiCoordinator, ApiState
from segvis.bus import Buses
from segvis.client import DownloadedFile
from segvis.errors import RequestError, TransportError, error_event
from segvis.events import Event, EventType

# ============== Test Doubles ==============


class FakeClient:
    """Backend stand-in. Requests block on ``gate`` and answer from ``results``."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.results: list = []
        self.gate = asyncio.Event()
        self.gate.set()

    async def _answer(self, default):
        await self.gate.wait()
        result = self.results.pop(0) if self.results else default
        if isinstance(result, Exception):
            raise result
        return result

    async def edit(self, project_id, action, args=None, *, frame=0, feature=0, channel=0):
        self.calls.append(("edit", project_id, action, dict(args or {}), frame, feature, channel))
        return await self._answer({"tracks": []})

    async def undo(self, project_id):
        self.calls.append(("undo", project_id))
        return await self._answer({"tracks": []})

    async def redo(self, project_id):
        self.calls.append(("redo", project_id))
        return await self._answer({"tracks": []})

    async def upload(self, project_id, bucket, fmt):
        self.calls.append(("upload", project_id, bucket, fmt))
        return await self._answer({})

    async def download(self, project_id, fmt):
        self.calls.append(("download", project_id, fmt))
        return await self._answer(DownloadedFile(filename=f"{project_id}.{fmt}", content=b"data"))


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def buses():
    return Buses()


@pytest.fixture
def parent():
    return Recorder()


@pytest.fixture
def api(client, buses, parent, tmp_path):
    coordinator = ApiCoordinator(
        client,
        project_id="proj",
        bucket="my-bucket",
        export_format="npz",
        api_bus=buses.api,
        image_bus=buses.image,
        parent=parent,
        download_dir=tmp_path,
    )
    coordinator.start()
    yield coordinator
    coordinator.stop()


# ============== Tests ==============


class TestRequests:
    """Test the request lifecycle."""

    @pytest.mark.asyncio
    async def test_edit_publishes_edited(self, api, client, buses):
        """A successful edit returns to idle and publishes the response on the image bus."""
        image = Recorder()
        buses.image.subscribe(image)
        client.results.append({"tracks": {"1": {}}})

        api.send(Event(type=EventType.EDIT, action="swap_single_frame", args={"label_1": 1, "label_2": 2}))
        assert api.state is ApiState.LOADING
        await api.wait_until_idle(timeout=1)

        assert api.state is ApiState.IDLE
        (edited,) = image.of_type(EventType.EDITED)
        assert edited.data == {"tracks": {"1": {}}}
        assert client.calls == [("edit", "proj", "swap_single_frame", {"label_1": 1, "label_2": 2}, 0, 0, 0)]

    @pytest.mark.asyncio
    async def test_requests_via_api_bus(self, api, client, buses):
        buses.api.publish(EventType.BACKEND_UNDO)
        await api.wait_until_idle(timeout=1)
        buses.api.publish(EventType.BACKEND_REDO)
        await api.wait_until_idle(timeout=1)

        assert client.calls == [("undo", "proj"), ("redo", "proj")]

    @pytest.mark.asyncio
    async def test_single_flight(self, api, client):
        """Requests arriving while one is in flight are ignored."""
        client.gate.clear()

        api.send(Event(type=EventType.EDIT, action="a"))
        await settle()
        api.send(Event(type=EventType.EDIT, action="b"))
        api.send(EventType.UPLOAD)
        await settle()

        assert api.state is ApiState.LOADING
        assert [call[2] for call in client.calls] == ["a"]

        client.gate.set()
        await api.wait_until_idle(timeout=1)
        assert api.state is ApiState.IDLE
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_upload_uses_bucket_and_format(self, api, client):
        api.send(EventType.UPLOAD)
        assert api.state is ApiState.UPLOADING
        await api.wait_until_idle(timeout=1)

        assert client.calls == [("upload", "proj", "my-bucket", "npz")]

    @pytest.mark.asyncio
    async def test_download_saved_to_directory(self, api, tmp_path):
        api.send(EventType.DOWNLOAD)
        assert api.state is ApiState.DOWNLOADING
        await api.wait_until_idle(timeout=1)

        assert (tmp_path / "proj.npz").read_bytes() == b"data"


class TestCursor:
    """Test that edits target the frame, feature and channel on screen."""

    @pytest.mark.asyncio
    async def test_cursor_follows_image_bus(self, api, client, buses):
        buses.image.publish(Event(type=EventType.FRAME, frame=4))
        buses.image.publish(Event(type=EventType.FEATURE, feature=1))
        buses.image.publish(Event(type=EventType.CHANNEL, channel=2))

        api.send(Event(type=EventType.EDIT, action="fill", args={"label": 3}))
        await api.wait_until_idle(timeout=1)

        assert (api.frame, api.feature, api.channel) == (4, 1, 2)
        assert client.calls == [("edit", "proj", "fill", {"label": 3}, 4, 1, 2)]


class TestErrors:
    """Test error reporting."""

    @pytest.mark.asyncio
    async def test_failed_edit_reports_error(self, api, client, parent, buses):
        """The body's error field reaches the parent and the coordinator becomes idle again."""
        image = Recorder()
        buses.image.subscribe(image)
        client.results.append(RequestError(400, {"error": "bad frame"}))

        api.send(Event(type=EventType.EDIT, action="swap"))
        await api.wait_until_idle(timeout=1)

        assert api.state is ApiState.IDLE
        (error,) = parent.of_type(EventType.ERROR)
        assert error.error == "bad frame"
        assert error.kind == "request"
        assert image.of_type(EventType.EDITED) == []

    @pytest.mark.asyncio
    async def test_request_after_error_is_served(self, api, client, parent):
        client.results.append(TransportError("connection refused"))
        api.send(EventType.BACKEND_UNDO)
        await api.wait_until_idle(timeout=1)

        api.send(EventType.BACKEND_UNDO)
        await api.wait_until_idle(timeout=1)

        assert len(client.calls) == 2
        assert len(parent.of_type(EventType.ERROR)) == 1

    @pytest.mark.asyncio
    async def test_edit_without_action_rejected(self, api, client, parent):
        """A malformed edit is reported without occupying the coordinator."""
        api.send(EventType.EDIT)

        assert api.state is ApiState.IDLE
        (error,) = parent.of_type(EventType.ERROR)
        assert error.kind == "client"
        assert client.calls == []

        api.send(EventType.BACKEND_UNDO)
        await api.wait_until_idle(timeout=1)
        assert client.calls == [("undo", "proj")]

    @pytest.mark.asyncio
    async def test_download_sink_failure_reports_error(self, client, buses, parent):
        def sink(file):
            raise PermissionError("read-only")

        api = ApiCoordinator(
            client,
            project_id="proj",
            api_bus=buses.api,
            image_bus=buses.image,
            parent=parent,
            download_sink=sink,
        )
        api.start()
        api.send(EventType.DOWNLOAD)
        await api.wait_until_idle(timeout=1)

        (error,) = parent.of_type(EventType.ERROR)
        assert error.kind == "client"
        assert "read-only" in error.error
        api.stop()

    def test_error_event_detail(self):
        assert error_event(RequestError(500, "Internal Server Error")).error == "Internal Server Error"
        assert error_event(TransportError("timed out")).error == "timed out"
        assert error_event(RequestError(404, {"message": "gone"})).error == {"message": "gone"}
