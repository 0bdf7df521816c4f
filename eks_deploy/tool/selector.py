"""Library for flags shared by commands."""

from argparse import ArgumentParser
import logging
import pathlib
import sys
from typing import TextIO

from eks_deploy.config import PipelineSettings
from eks_deploy.exceptions import PipelineFailedError
from eks_deploy.pipeline import PipelineResult

from .format import PrintFormatter

_LOGGER = logging.getLogger(__name__)


def add_path_flag(args: ArgumentParser) -> None:
    """Add the project directory flag to the arguments object."""
    args.add_argument(
        "--path",
        help="Project directory with the terraform configuration (default: current directory)",
        type=pathlib.Path,
        default=pathlib.Path("."),
    )


def build_settings(path: pathlib.Path | None = None) -> PipelineSettings:
    """Build the pipeline settings for the project directory."""
    return PipelineSettings.from_env(path)


def _first_line(message: str | None) -> str | None:
    if not message:
        return None
    return message.splitlines()[0]


def print_trace(result: PipelineResult, file: TextIO = sys.stdout) -> None:
    """Print the stages that ran with their status and duration."""
    print(file=file)
    PrintFormatter(["stage", "status", "duration", "message"]).print(
        [
            {
                "stage": stage.name,
                "status": "ok" if stage.ok else "FAILED",
                "duration": f"{stage.duration:0.1f}s",
                "message": _first_line(stage.message),
            }
            for stage in result.results
        ],
        file=file,
    )


def raise_for_result(result: PipelineResult) -> None:
    """Raise an error naming the failed stage, if any."""
    if (failed := result.failed) is not None:
        raise PipelineFailedError(failed.name, failed.message)
