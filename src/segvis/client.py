"""HTTP client for the labeling backend.

Blocking ``requests`` calls run on a small thread pool so the coordinators'
event loop is never blocked.
"""

import asyncio
import io
import logging
import re
from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import numpy as np
import requests

from segvis.config import ExportFormat
from segvis.errors import RequestError, TransportError

logger = logging.getLogger(__name__)

R = TypeVar("R")

_FILENAME_RE = re.compile(r"filename=(.*)$")


@dataclass(frozen=True)
class DownloadedFile:
    """An exported project held in memory until it is saved."""

    filename: str
    content: bytes


def filename_from_disposition(header: str | None, default: str) -> str:
    """Extract the filename from a ``content-disposition`` header.

    Quotes and any leading folders are stripped; ``default`` is used when the
    header is missing or names no file.
    """
    match = _FILENAME_RE.search(header or "")
    if match is None:
        return default
    filename = match.group(1).replace('"', "").strip()
    if "/" in filename:
        filename = filename[filename.rindex("/") + 1 :]
    return filename or default


def check_response(response: requests.Response) -> Any:
    """Return the parsed JSON body, raising RequestError for a non-success status."""
    try:
        payload = response.json()
    except ValueError as e:
        if not response.ok:
            raise RequestError(response.status_code, response.text) from e
        raise TransportError(f"Malformed response from {response.url}: {e}") from e
    if not response.ok:
        raise RequestError(response.status_code, payload)
    return payload


def save_download(file: DownloadedFile, directory: str | Path) -> Path:
    """Write a downloaded export into ``directory`` and return its path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / file.filename
    path.write_bytes(file.content)
    return path


class ApiClient:
    def __init__(
        self,
        origin: str,
        session: requests.Session | None = None,
        timeout_s: float = 30.0,
        max_workers: int = 4,
    ):
        self.origin = origin.rstrip("/")
        self.timeout_s = timeout_s
        self._session = session or requests.Session()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="segvis-http")

    def url(self, route: str) -> str:
        return f"{self.origin}/api/{route}"

    async def _run(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, lambda: fn(*args, **kwargs))

    def _request(self, method: str, route: str, **kwargs: Any) -> requests.Response:
        try:
            return self._session.request(method, self.url(route), timeout=self.timeout_s, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{method} {route} failed: {e}") from e

    def _call(self, method: str, route: str, **kwargs: Any) -> Any:
        return check_response(self._request(method, route, **kwargs))

    async def edit(
        self,
        project_id: str,
        action: str,
        args: Mapping[str, Any] | None = None,
        *,
        frame: int = 0,
        feature: int = 0,
        channel: int = 0,
    ) -> Any:
        """Apply an edit action to the given frame, feature and channel."""
        body = {**(args or {}), "frame": frame, "feature": feature, "channel": channel}
        logger.debug("edit %s %s", action, body)
        return await self._run(self._call, "POST", f"edit/{project_id}/{action}", data=body)

    async def undo(self, project_id: str) -> Any:
        return await self._run(self._call, "POST", f"undo/{project_id}")

    async def redo(self, project_id: str) -> Any:
        return await self._run(self._call, "POST", f"redo/{project_id}")

    async def upload(self, project_id: str, bucket: str, fmt: ExportFormat) -> Any:
        """Send the project to its storage bucket in the given format."""
        form = {"id": (None, project_id), "bucket": (None, bucket), "format": (None, fmt)}
        return await self._run(self._call, "POST", "upload", files=form)

    async def download(self, project_id: str, fmt: ExportFormat) -> DownloadedFile:
        """Export the project and return the file the backend produced."""
        return await self._run(self._download, project_id, fmt)

    def _download(self, project_id: str, fmt: ExportFormat) -> DownloadedFile:
        response = self._request("GET", "download", params={"id": project_id, "format": fmt})
        if not response.ok:
            check_response(response)
        filename = filename_from_disposition(response.headers.get("content-disposition"), f"{project_id}.npz")
        return DownloadedFile(filename=filename, content=response.content)

    async def load_raw(self, project_id: str, channel: int, frame: int) -> np.ndarray:
        """Fetch one frame of one raw channel."""
        return await self._run(self._load_raw, project_id, channel, frame)

    def _load_raw(self, project_id: str, channel: int, frame: int) -> np.ndarray:
        response = self._request("GET", f"raw/{project_id}/{channel}/{frame}")
        if not response.ok:
            check_response(response)
        try:
            return np.load(io.BytesIO(response.content), allow_pickle=False)
        except (ValueError, OSError) as e:
            raise TransportError(f"Malformed raw frame for channel {channel} frame {frame}: {e}") from e

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._session.close()
