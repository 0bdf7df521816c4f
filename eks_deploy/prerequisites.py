"""Checks that the external command line tools used by the pipeline are installed."""

from collections.abc import Iterable
import logging
import shutil

from .exceptions import MissingPrerequisiteError

__all__ = [
    "REQUIRED_TOOLS",
    "check_prerequisites",
]

_LOGGER = logging.getLogger(__name__)

REQUIRED_TOOLS = ["aws", "terraform", "kubectl", "docker", "helm"]


def check_prerequisites(tools: Iterable[str] = REQUIRED_TOOLS) -> None:
    """Verify that every tool resolves on the PATH.

    The first missing tool raises a `MissingPrerequisiteError` naming it.
    """
    for tool in tools:
        if (path := shutil.which(tool)) is None:
            raise MissingPrerequisiteError(tool)
        _LOGGER.debug("Found %s at %s", tool, path)
