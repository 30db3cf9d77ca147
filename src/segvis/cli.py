"""Headless command line for a labeling backend.

Examples:
    # Apply an edit on the first frame
    segvis --config project.yaml edit swap_single_frame --arg label_1=1 --arg label_2=2

    # Undo it
    segvis --config project.yaml undo

    # Export the project to the download directory
    segvis --config project.yaml download
"""

import argparse
import asyncio
import logging
import sys

from segvis.config import ProjectConfig
from segvis.log import configure_logging
from segvis.project import Project


def parse_arg(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected key=value, got {value!r}")
    return key, val


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="segvis",
        description="Segmentation label editor - backend requests",
    )
    parser.add_argument("--config", required=True, help="Project YAML file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)
    edit = commands.add_parser("edit", help="Apply an edit action")
    edit.add_argument("action", help="Edit action name")
    edit.add_argument("--arg", dest="args", action="append", type=parse_arg, default=[], help="Action argument")
    commands.add_parser("undo", help="Undo the last edit")
    commands.add_parser("redo", help="Redo the last undone edit")
    commands.add_parser("upload", help="Upload the project to its bucket")
    commands.add_parser("download", help="Download the project export")

    return parser


async def run(config: ProjectConfig, args: argparse.Namespace) -> int:
    project = Project(config.model_copy(update={"preload": False}))
    project.start()
    try:
        match args.command:
            case "edit":
                error = await project.edit(args.action, **dict(args.args))
            case "undo":
                error = await project.undo()
            case "redo":
                error = await project.redo()
            case "upload":
                error = await project.upload()
            case "download":
                error = await project.download()
            case _:
                raise ValueError(f"Unknown command {args.command}")
    finally:
        await project.shutdown()
    return 1 if error is not None else 0


def main() -> None:
    """Main entry point for the segvis CLI."""
    parser = create_parser()
    args = parser.parse_args()

    log_level = logging.DEBUG if args.debug else logging.INFO
    configure_logging(level=log_level)
    log = logging.getLogger("segvis")

    config = ProjectConfig.from_yaml(args.config)
    log.info("Project %s at %s", config.project_id, config.origin)

    sys.exit(asyncio.run(run(config, args)))


if __name__ == "__main__":
    main()
