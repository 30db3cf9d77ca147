"""Integration tests: a project session wired to a fake backend."""

import numpy as np
import pytest
from support import Recorder, settle

from segvis import cli
from segvis.actor import ActorStatus
from segvis.client import DownloadedFile
from segvis.config import ProjectConfig
from segvis.errors import RequestError
from segvis.events import EventType
from segvis.project import Project

# ============== Test Doubles ==============


class FakeClient:
    def __init__(self):
        self.calls: list[tuple] = []
        self.failures: list[Exception] = []

    async def _answer(self, call, result=None):
        self.calls.append(call)
        if self.failures:
            raise self.failures.pop(0)
        return result if result is not None else {"tracks": {}}

    async def edit(self, project_id, action, args=None, *, frame=0, feature=0, channel=0):
        return await self._answer(("edit", action, dict(args or {}), frame, feature, channel))

    async def undo(self, project_id):
        return await self._answer(("undo",))

    async def redo(self, project_id):
        return await self._answer(("redo",))

    async def upload(self, project_id, bucket, fmt):
        return await self._answer(("upload", bucket, fmt))

    async def download(self, project_id, fmt):
        return await self._answer(("download", fmt), DownloadedFile(f"{project_id}.{fmt}", b"data"))

    def close(self):
        self.calls.append(("close",))


async def load_frame(channel: int, frame: int) -> np.ndarray:
    return np.zeros((4, 4), dtype=np.uint8)


@pytest.fixture
def config(tmp_path):
    return ProjectConfig(project_id="proj", bucket="b", num_frames=3, preload=False, download_dir=tmp_path)


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def downloads():
    return []


@pytest.fixture
def project(config, client, downloads):
    return Project(config, client=client, loader=load_frame, download_sink=downloads.append)


# ============== Tests ==============


class TestProject:
    """Test the project session end to end."""

    @pytest.mark.asyncio
    async def test_start_shows_first_frame(self, project):
        image = Recorder()
        project.buses.image.subscribe(image)

        project.start()
        await settle()

        assert project.frame == 0
        assert project.raw.state["frame"] == "idle"
        assert [e.frame for e in image.of_type(EventType.FRAME)] == [0]
        assert (project.select.foreground, project.select.background) == (1, 0)

    @pytest.mark.asyncio
    async def test_edit_targets_current_frame(self, project, client):
        project.start()
        project.load_frame(2)
        await settle()

        error = await project.edit("swap_single_frame", label_1=1, label_2=2)

        assert error is None
        assert project.api.frame == 2
        assert client.calls == [("edit", "swap_single_frame", {"label_1": 1, "label_2": 2}, 2, 0, 0)]

    @pytest.mark.asyncio
    async def test_failed_edit_returns_error(self, project, client):
        project.start()
        client.failures.append(RequestError(400, {"error": "bad frame"}))

        error = await project.edit("swap_single_frame")

        assert error.error == "bad frame"
        assert project.last_error is error
        assert await project.undo() is None
        assert project.errors == [error]

    @pytest.mark.asyncio
    async def test_upload_and_download(self, project, client, downloads):
        project.start()

        assert await project.upload() is None
        assert await project.download() is None

        assert client.calls == [("upload", "b", "npz"), ("download", "npz")]
        assert len(downloads) == 1

    @pytest.mark.asyncio
    async def test_invert_and_add_layer(self, project):
        project.start()
        await settle()

        project.raw.send(EventType.TOGGLE_INVERT)
        project.buses.raw.publish(EventType.ADD_LAYER)

        assert project.raw.channels[0].invert
        assert project.channel == 0

    @pytest.mark.asyncio
    async def test_shutdown_stops_everything(self, project, client):
        project.start()
        await settle()

        await project.shutdown()

        assert project.status is ActorStatus.STOPPED
        assert all(a.status is ActorStatus.STOPPED for a in (project.api, project.raw, project.select))
        assert ("close",) not in client.calls


class TestCli:
    """Test the command line entry point."""

    def test_parse_edit(self):
        args = cli.create_parser().parse_args(
            ["--config", "p.yaml", "edit", "swap_single_frame", "--arg", "label_1=1", "--arg", "label_2=2"]
        )

        assert args.command == "edit"
        assert args.action == "swap_single_frame"
        assert dict(args.args) == {"label_1": "1", "label_2": "2"}

    def test_rejects_malformed_arg(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["--config", "p.yaml", "edit", "fill", "--arg", "label"])

    @pytest.mark.asyncio
    async def test_exit_codes(self, config, client, monkeypatch):
        monkeypatch.setattr(cli, "Project", lambda cfg: Project(cfg, client=client, loader=load_frame))
        parser = cli.create_parser()

        assert await cli.run(config, parser.parse_args(["--config", "p.yaml", "undo"])) == 0

        client.failures.append(RequestError(409, {"error": "nothing to redo"}))
        assert await cli.run(config, parser.parse_args(["--config", "p.yaml", "redo"])) == 1
        assert client.calls == [("undo",), ("redo",)]
