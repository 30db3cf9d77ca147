"""Configuration model for a labeling session."""

import logging
from pathlib import Path
from typing import Literal, Self, TypeAlias

from pydantic import BaseModel, Field
from ruyaml import YAML

logger = logging.getLogger(__name__)
yaml = YAML(typ="safe")

ExportFormat: TypeAlias = Literal["trk", "npz"]


class ProjectConfig(BaseModel):
    """Everything the coordinators need to know about one project."""

    project_id: str
    bucket: str = ""
    origin: str = Field(default="http://localhost:5000")  # Backend base URL
    track: bool = False  # Export as tracking (.trk) instead of .npz
    num_channels: int = Field(default=1, ge=1)
    num_frames: int = Field(default=1, ge=1)
    preload: bool = True  # Warm every channel's cache in the background
    download_dir: Path = Field(default=Path("."))
    timeout_s: float = Field(default=30.0, gt=0)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Load configuration from YAML file."""
        with open(path, "r") as f:
            data = yaml.load(f)
        data.pop("_anchors", None)
        logger.debug(f"Loaded config: {data}")
        return cls.model_validate(data)

    @property
    def export_format(self) -> ExportFormat:
        return "trk" if self.track else "npz"
